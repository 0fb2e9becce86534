"""
CloudFormation resources: references to other resources, manifest entries and
wiring of stack outputs into the environment of referencing projects.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

import boto3
from botocore.exceptions import ClientError

from common.errors import ToolingError

from .models import AWSSDKConfig, CloudFormationReference, CloudFormationStackResource, CloudFormationTemplateResource, Resource

STACK_MANIFEST_TYPE = "aws.cloudformation.stack.v0"
TEMPLATE_MANIFEST_TYPE = "aws.cloudformation.template.v0"
DEFAULT_OUTPUT_SECTION = "AWS__Resources"


def add_reference(stack: CloudFormationStackResource, target: Resource) -> CloudFormationStackResource:
    """Record that ``target`` references ``stack``; repeated references are ignored."""
    existing = {a.target_resource for a in stack.annotations_of(CloudFormationReference)}
    if target.name not in existing:
        stack.annotations.append(CloudFormationReference(target_resource=target.name))
    return stack


def write_manifest(resource: CloudFormationStackResource) -> dict[str, Any]:
    """Manifest entry published for a CloudFormation stack or template resource."""
    manifest: dict[str, Any] = {
        "type": TEMPLATE_MANIFEST_TYPE if isinstance(resource, CloudFormationTemplateResource) else STACK_MANIFEST_TYPE,
        "stack-name": resource.effective_stack_name,
    }
    if isinstance(resource, CloudFormationTemplateResource):
        manifest["template-path"] = resource.template_path
        if resource.parameters:
            manifest["parameters"] = dict(resource.parameters)
    manifest["references"] = [
        {"target-resource": a.target_resource}
        for a in resource.annotations_of(CloudFormationReference)
    ]
    return manifest


def manifest_json(resource: CloudFormationStackResource) -> str:
    return json.dumps(write_manifest(resource), indent=2)


def cloudformation_client(sdk_config: AWSSDKConfig | None = None):
    """CloudFormation client honouring the resource's region and profile."""
    sdk_config = sdk_config or AWSSDKConfig()
    session = boto3.session.Session(profile_name=sdk_config.profile, region_name=sdk_config.region)
    return session.client("cloudformation")


def fetch_stack_outputs(stack_name: str, sdk_config: AWSSDKConfig | None = None, client=None) -> dict[str, str]:
    """Read the outputs of an existing stack as ``{OutputKey: OutputValue}``."""
    client = client or cloudformation_client(sdk_config)
    try:
        response = client.describe_stacks(StackName=stack_name)
    except ClientError as exc:
        raise ToolingError(f"Unable to describe CloudFormation stack '{stack_name}': {exc}", log=True) from exc
    stacks = response.get("Stacks") or []
    if not stacks:
        raise ToolingError(f"CloudFormation stack '{stack_name}' does not exist", log=True)
    return {
        output["OutputKey"]: output.get("OutputValue", "")
        for output in stacks[0].get("Outputs") or []
    }


def output_environment(outputs: Mapping[str, str], section: str = DEFAULT_OUTPUT_SECTION) -> dict[str, str]:
    """Environment variables exposing stack outputs to a referencing project."""
    return {f"{section}__{key}": value for key, value in outputs.items()}


__all__ = [
    "STACK_MANIFEST_TYPE",
    "TEMPLATE_MANIFEST_TYPE",
    "add_reference",
    "cloudformation_client",
    "fetch_stack_outputs",
    "manifest_json",
    "output_environment",
    "write_manifest",
]
