"""Reads single MSBuild properties of a project through ``dotnet msbuild -getProperty``."""

import logging
from typing import Optional

from connectors.process_interface import CancellationToken, ProcessCommandService
from orchestrator.models import LambdaToolingSettings


class ProjectMetadataProber:
    """
    Asks the build system for project properties. Nothing is cached: every
    call runs a new query-only process. An empty string means the value
    could not be determined.
    """

    def __init__(self, process_service: ProcessCommandService, settings: LambdaToolingSettings,
                 logger: Optional[logging.Logger] = None):
        self.process_service = process_service
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)

    async def get_property(self, project_path: str, property_name: str,
                           cancellation_token: Optional[CancellationToken] = None) -> str:
        result = await self.process_service.run_process_and_capture_output(
            self.logger, self.settings.dotnet_executable,
            ["msbuild", project_path, "-nologo", "-v:q", f"-getProperty:{property_name}"],
            cancellation_token,
        )
        if result.exit_code != 0:
            self.logger.debug(f"Reading {property_name} of '{project_path}' failed with exit code {result.exit_code}: {result.output}")
            return ""
        value = result.output.strip()
        self.logger.debug(f"The {property_name} of '{project_path}' is {value}")
        return value

    async def get_target_framework(self, project_path: str,
                                   cancellation_token: Optional[CancellationToken] = None) -> str:
        return await self.get_property(project_path, "TargetFramework", cancellation_token)

    async def get_assembly_name(self, project_path: str,
                                cancellation_token: Optional[CancellationToken] = None) -> str:
        return await self.get_property(project_path, "AssemblyName", cancellation_token)
