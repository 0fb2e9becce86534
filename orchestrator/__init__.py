"""Core orchestrator package exposing the application resource model."""

from .graph import ClassifiedResources, ResourceGraph, classify
from .models import (
    AWSSDKConfig,
    EmulatorPolicy,
    InstalledToolInfo,
    LambdaToolingSettings,
    ProjectFunctionDescriptor,
    Resource,
)

__all__ = [
    "AWSSDKConfig",
    "ClassifiedResources",
    "EmulatorPolicy",
    "InstalledToolInfo",
    "LambdaToolingSettings",
    "ProjectFunctionDescriptor",
    "Resource",
    "ResourceGraph",
    "classify",
]
