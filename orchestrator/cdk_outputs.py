"""CDK construct outputs surfaced as CloudFormation outputs of the owning stack."""

from __future__ import annotations

import re
from typing import Callable, Generic, TypeVar

from aws_cdk import CfnOutput, Stack
from constructs import IConstruct

from common.errors import ToolingError

from .models import ConstructOutput

T = TypeVar("T", bound=IConstruct)

_NOT_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")


def owning_stack(construct: IConstruct) -> Stack:
    """The construct itself when it is a Stack, otherwise the outermost enclosing Stack."""
    if isinstance(construct, Stack):
        return construct
    for scope in construct.node.scopes:
        if isinstance(scope, Stack):
            return scope
    raise ToolingError("Construct is not part of a Stack")


def stack_unique_id(construct: IConstruct) -> str:
    """Path of ``construct`` below its stack, reduced to alphanumerics."""
    stack = owning_stack(construct)
    if construct is stack:
        return _NOT_ALPHANUMERIC.sub("", stack.node.id)
    relative = construct.node.path[len(stack.node.path):]
    return _NOT_ALPHANUMERIC.sub("", relative)


class ConstructOutputAnnotation(Generic[T]):
    """
    Marks a construct value to be exported so it can be mapped to environment
    variables after synthesis.

    Args:
        output_name: name appended to the construct's stack-unique id.
        output: resolves the value to export from the construct.
    """

    def __init__(self, output_name: str, output: Callable[[T], str]):
        self.output_name = output_name
        self.output = output

    def output_key(self, construct: T) -> str:
        return f"{stack_unique_id(construct)}{self.output_name}"

    def marker(self) -> ConstructOutput:
        return ConstructOutput(output_name=self.output_name)

    def change_construct(self, construct: T) -> CfnOutput:
        """Add a CfnOutput on the owning stack referencing the resolved value."""
        stack = owning_stack(construct)
        key = self.output_key(construct)
        output = CfnOutput(stack, key, value=self.output(construct))
        output.override_logical_id(key)
        return output
