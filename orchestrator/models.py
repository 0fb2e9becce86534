"""Pydantic models that capture the apphost resource and Lambda tooling concepts."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated, Any, Literal, Mapping, TypeVar, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LAMBDA_TEST_TOOL_VERSION = "0.0.2-preview"


# ---------------------------------------------------------------------------
# annotations


class ProjectMetadata(BaseModel):
    """Generic project metadata: where the project file lives."""

    kind: Literal["project-metadata"] = "project-metadata"
    project_path: str


class LambdaProjectMetadata(BaseModel):
    """Marks an executable project wrapping a Lambda function (test-runner wrapper)."""

    kind: Literal["lambda-project-metadata"] = "lambda-project-metadata"
    project_path: str


class LambdaFunction(BaseModel):
    """Lambda function handler, ``assembly::type::method`` for class libraries."""

    kind: Literal["lambda-function"] = "lambda-function"
    handler: str


class LambdaEmulator(BaseModel):
    """User configuration of the Lambda emulator resource."""

    kind: Literal["lambda-emulator"] = "lambda-emulator"
    disable_auto_install: bool = False
    override_minimum_install_version: str | None = None
    allow_downgrade: bool = False

    def policy(self) -> EmulatorPolicy:
        return EmulatorPolicy(
            disable_auto_install=self.disable_auto_install,
            override_minimum_version=self.override_minimum_install_version,
            allow_downgrade=self.allow_downgrade,
        )


class CloudFormationReference(BaseModel):
    """Records that a CloudFormation resource is referenced by ``target_resource``."""

    kind: Literal["cloudformation-reference"] = "cloudformation-reference"
    target_resource: str


class ConstructOutput(BaseModel):
    """Name of a CDK construct output exposed to referencing resources."""

    kind: Literal["construct-output"] = "construct-output"
    output_name: str


Annotation = Annotated[
    Union[
        ProjectMetadata,
        LambdaProjectMetadata,
        LambdaFunction,
        LambdaEmulator,
        CloudFormationReference,
        ConstructOutput,
    ],
    Field(discriminator="kind"),
]

A = TypeVar("A", bound=BaseModel)


# ---------------------------------------------------------------------------
# resources


class AWSSDKConfig(BaseModel):
    """Region and profile used when talking to AWS on behalf of a resource."""

    region: str | None = None
    profile: str | None = None


class Resource(BaseModel):
    """A declared node of the application graph."""

    type: str
    name: str = Field(..., min_length=1)
    annotations: list[Annotation] = Field(default_factory=list)

    def last_annotation(self, annotation_type: type[A]) -> A | None:
        """Return the most recently attached annotation of ``annotation_type``."""
        for annotation in reversed(self.annotations):
            if isinstance(annotation, annotation_type):
                return annotation
        return None

    def annotations_of(self, annotation_type: type[A]) -> list[A]:
        return [a for a in self.annotations if isinstance(a, annotation_type)]

    def project_path(self) -> str | None:
        """Path of the first project metadata annotation, wrapper marker included."""
        for annotation in self.annotations:
            if isinstance(annotation, (ProjectMetadata, LambdaProjectMetadata)):
                return annotation.project_path
        return None


class ProjectResource(Resource):
    type: Literal["project"] = "project"


class LambdaProjectResource(Resource):
    type: Literal["lambda-project"] = "lambda-project"


class LambdaEmulatorResource(Resource):
    type: Literal["lambda-emulator"] = "lambda-emulator"


class CloudFormationStackResource(Resource):
    """An existing CloudFormation stack looked up by name."""

    type: Literal["cloudformation-stack"] = "cloudformation-stack"
    stack_name: str | None = None
    aws_sdk_config: AWSSDKConfig | None = None

    @property
    def effective_stack_name(self) -> str:
        return self.stack_name or self.name


class CloudFormationTemplateResource(CloudFormationStackResource):
    """A CloudFormation stack provisioned from a local template."""

    type: Literal["cloudformation-template"] = "cloudformation-template"  # type: ignore[assignment]
    template_path: str
    parameters: dict[str, str] = Field(default_factory=dict)

    def with_parameter(self, key: str, value: str) -> CloudFormationTemplateResource:
        """Return a copy of this template with one more CloudFormation parameter."""
        return self.model_copy(update={"parameters": {**self.parameters, key: value}})


class OtherResource(Resource):
    type: Literal["other"] = "other"


AnyResource = Annotated[
    Union[
        ProjectResource,
        LambdaProjectResource,
        LambdaEmulatorResource,
        CloudFormationStackResource,
        CloudFormationTemplateResource,
        OtherResource,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Lambda tooling values


class EmulatorPolicy(BaseModel):
    """Install policy for the Lambda test tool, read once from the emulator annotation."""

    model_config = ConfigDict(frozen=True)

    disable_auto_install: bool = False
    override_minimum_version: str | None = None
    allow_downgrade: bool = False


class InstalledToolInfo(BaseModel):
    """What ``lambda-test-tool info`` reports about the installed tool."""

    model_config = ConfigDict(frozen=True)

    version: str | None = None
    install_path: str | None = None


class ProjectFunctionDescriptor(BaseModel):
    """A Lambda project as seen by the launch settings patcher."""

    model_config = ConfigDict(frozen=True)

    project_path: str
    function_handler: str = ""
    resource_name: str

    @property
    def is_class_library(self) -> bool:
        return "::" in self.function_handler


class LambdaToolingSettings(BaseModel):
    """Explicit configuration handed to the lifecycle hook."""

    model_config = ConfigDict(frozen=True)

    default_tool_version: str = DEFAULT_LAMBDA_TEST_TOOL_VERSION
    dotnet_executable: str = "dotnet"
    tool_package: str = "Amazon.Lambda.TestTool"
    profile_prefix: str = "Aspire_"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LambdaToolingSettings:
        """Build settings from APPHOST_AWS_* variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        payload: dict[str, Any] = {}
        if env.get("APPHOST_AWS_DEFAULT_TOOL_VERSION"):
            payload["default_tool_version"] = env["APPHOST_AWS_DEFAULT_TOOL_VERSION"]
        if env.get("APPHOST_AWS_DOTNET"):
            payload["dotnet_executable"] = env["APPHOST_AWS_DOTNET"]
        return cls.model_validate(payload)


# ---------------------------------------------------------------------------
# helpers


def load_document(value: Any) -> dict[str, Any]:
    """Normalize a mapping, raw YAML/JSON text or a file path into a dict."""
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, Path):
        return _load_text_payload(value.read_text())
    if isinstance(value, (str, bytes)):
        return _load_text_payload(value)
    raise TypeError("Unsupported value for an application model document")


def _load_text_payload(raw: str | bytes) -> dict[str, Any]:
    """Interpret raw text as YAML first, falling back to JSON."""
    text = raw.decode() if isinstance(raw, bytes) else raw
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError:
        payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("Application model document must be a mapping")
    return payload


__all__ = [
    "AWSSDKConfig",
    "Annotation",
    "AnyResource",
    "CloudFormationReference",
    "CloudFormationStackResource",
    "CloudFormationTemplateResource",
    "ConstructOutput",
    "DEFAULT_LAMBDA_TEST_TOOL_VERSION",
    "EmulatorPolicy",
    "InstalledToolInfo",
    "LambdaEmulator",
    "LambdaEmulatorResource",
    "LambdaFunction",
    "LambdaProjectMetadata",
    "LambdaProjectResource",
    "LambdaToolingSettings",
    "OtherResource",
    "ProjectFunctionDescriptor",
    "ProjectMetadata",
    "ProjectResource",
    "Resource",
    "load_document",
]
