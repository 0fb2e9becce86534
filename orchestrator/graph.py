"""The application resource graph and the pure classification of its resources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Union

from pydantic import TypeAdapter, ValidationError

from .models import (
    AnyResource,
    CloudFormationStackResource,
    CloudFormationTemplateResource,
    EmulatorPolicy,
    LambdaEmulator,
    LambdaFunction,
    LambdaProjectMetadata,
    LambdaProjectResource,
    ProjectFunctionDescriptor,
    Resource,
    load_document,
)

_resources_adapter = TypeAdapter(list[AnyResource])


# ---------------------------------------------------------------------------
# roles


@dataclass(frozen=True)
class CloudFormationStackRole:
    resource: CloudFormationStackResource


@dataclass(frozen=True)
class CloudFormationTemplateRole:
    resource: CloudFormationTemplateResource


@dataclass(frozen=True)
class LambdaWrapperProjectRole:
    """Executable project that must be built before the emulator can run it."""

    descriptor: ProjectFunctionDescriptor


@dataclass(frozen=True)
class LambdaClassLibraryProjectRole:
    """Class library whose handler is ``assembly::type::method``."""

    descriptor: ProjectFunctionDescriptor


@dataclass(frozen=True)
class LambdaEmulatorRole:
    resource_name: str
    policy: EmulatorPolicy


@dataclass(frozen=True)
class OtherRole:
    resource_name: str


Role = Union[
    CloudFormationStackRole,
    CloudFormationTemplateRole,
    LambdaWrapperProjectRole,
    LambdaClassLibraryProjectRole,
    LambdaEmulatorRole,
    OtherRole,
]


def classify(resource: Resource) -> list[Role]:
    """Return every role ``resource`` plays; ``[OtherRole]`` when it plays none.

    The wrapper and class-library roles are checked independently, so a Lambda
    project may carry both.
    """
    roles: list[Role] = []
    if isinstance(resource, CloudFormationTemplateResource):
        roles.append(CloudFormationTemplateRole(resource))
    elif isinstance(resource, CloudFormationStackResource):
        roles.append(CloudFormationStackRole(resource))

    if isinstance(resource, LambdaProjectResource):
        project_path = resource.project_path()
        function = resource.last_annotation(LambdaFunction)
        if project_path and function is not None:
            descriptor = ProjectFunctionDescriptor(
                project_path=project_path,
                function_handler=function.handler,
                resource_name=resource.name,
            )
            if descriptor.is_class_library:
                roles.append(LambdaClassLibraryProjectRole(descriptor))
        wrapper = resource.last_annotation(LambdaProjectMetadata)
        if wrapper is not None:
            roles.append(LambdaWrapperProjectRole(ProjectFunctionDescriptor(
                project_path=project_path or wrapper.project_path,
                function_handler=function.handler if function else "",
                resource_name=resource.name,
            )))

    emulator = resource.last_annotation(LambdaEmulator)
    if emulator is not None:
        roles.append(LambdaEmulatorRole(resource.name, emulator.policy()))

    if not roles:
        roles.append(OtherRole(resource.name))
    return roles


@dataclass
class ClassifiedResources:
    """Roles grouped by the pass that consumes them."""

    stacks: list[CloudFormationStackRole | CloudFormationTemplateRole] = field(default_factory=list)
    wrapper_projects: list[LambdaWrapperProjectRole] = field(default_factory=list)
    class_library_projects: list[LambdaClassLibraryProjectRole] = field(default_factory=list)
    emulator: LambdaEmulatorRole | None = None
    others: list[OtherRole] = field(default_factory=list)

    def add(self, role: Role) -> None:
        if isinstance(role, (CloudFormationStackRole, CloudFormationTemplateRole)):
            self.stacks.append(role)
        elif isinstance(role, LambdaWrapperProjectRole):
            self.wrapper_projects.append(role)
        elif isinstance(role, LambdaClassLibraryProjectRole):
            self.class_library_projects.append(role)
        elif isinstance(role, LambdaEmulatorRole):
            # only the first declared emulator counts
            if self.emulator is None:
                self.emulator = role
        else:
            self.others.append(role)


# ---------------------------------------------------------------------------
# graph


@dataclass
class ResourceGraph:
    """Ordered collection of the resources declared by the application."""

    resources: list[Resource] = field(default_factory=list)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.resources)

    def __len__(self) -> int:
        return len(self.resources)

    def get(self, name: str) -> Resource | None:
        for resource in self.resources:
            if resource.name == name:
                return resource
        return None

    def add(self, resource: Resource) -> Resource:
        if self.get(resource.name) is not None:
            raise ValueError(f"A resource named '{resource.name}' is already declared")
        self.resources.append(resource)
        return resource

    def classify(self) -> ClassifiedResources:
        classified = ClassifiedResources()
        for resource in self.resources:
            for role in classify(resource):
                classified.add(role)
        return classified

    @classmethod
    def load(cls, value: Any) -> ResourceGraph:
        """Build a graph from a mapping, YAML/JSON text or a path to such a file."""
        payload = load_document(value)
        try:
            resources = _resources_adapter.validate_python(payload.get("resources") or [])
        except ValidationError as exc:
            raise ValueError("Invalid application model") from exc
        graph = cls()
        for resource in resources:
            graph.add(resource)
        return graph


__all__ = [
    "ClassifiedResources",
    "CloudFormationStackRole",
    "CloudFormationTemplateRole",
    "LambdaClassLibraryProjectRole",
    "LambdaEmulatorRole",
    "LambdaWrapperProjectRole",
    "OtherRole",
    "ResourceGraph",
    "Role",
    "classify",
]
