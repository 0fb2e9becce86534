"""
lifecycle.py
------------
Startup hook for local Lambda development.

Run once before the application's resources start. When the graph declares a
Lambda emulator it makes sure Amazon.Lambda.TestTool is installed, builds the
executable wrapper projects and points every class-library Lambda project's
launch settings at the tool. Without an emulator nothing is run or written.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from connectors.dotnet_connector import SubprocessCommandService
from connectors.process_interface import CancellationToken, ProcessCommandService
from lambda_emulator.install_manager import InstallOutcome, LambdaTestToolManager
from lambda_emulator.launch_settings import (
    LaunchSettingsOutcome,
    LaunchSettingsPatcher,
    content_root_from_install_path,
    runtime_support_assembly_path,
)
from lambda_emulator.project_prober import ProjectMetadataProber
from orchestrator.graph import LambdaClassLibraryProjectRole, LambdaWrapperProjectRole, ResourceGraph
from orchestrator.models import LambdaToolingSettings
from orchestrator.sdk_config import validate_sdk_default_config_in_background


@dataclass
class LifecycleReport:
    """What a single before_start pass did."""
    emulator_found: bool = False
    install_outcome: Optional[InstallOutcome] = None
    built_projects: dict[str, int] = field(default_factory=dict)
    launch_settings: dict[str, LaunchSettingsOutcome] = field(default_factory=dict)
    skipped_projects: list[str] = field(default_factory=list)
    halted: bool = False


class LambdaLifecycleHook:
    """Gets the Lambda test tool installed and wired up when a Lambda emulator is declared."""

    def __init__(
        self,
        process_service: Optional[ProcessCommandService] = None,
        settings: Optional[LambdaToolingSettings] = None,
        logger: Optional[logging.Logger] = None,
        validate_sdk_config: Optional[Callable[[logging.Logger], object]] = None,
        patcher: Optional[LaunchSettingsPatcher] = None,
    ):
        self.process_service = process_service or SubprocessCommandService()
        self.settings = settings or LambdaToolingSettings.from_env()
        self.logger = logger or logging.getLogger(__name__)
        self.validate_sdk_config = validate_sdk_config or validate_sdk_default_config_in_background
        self.tool_manager = LambdaTestToolManager(self.process_service, self.settings, self.logger)
        self.prober = ProjectMetadataProber(self.process_service, self.settings, self.logger)
        self.patcher = patcher or LaunchSettingsPatcher(self.settings, self.logger)

    async def before_start(self, graph: ResourceGraph,
                           cancellation_token: Optional[CancellationToken] = None) -> LifecycleReport:
        self.validate_sdk_config(self.logger)
        report = LifecycleReport()

        classified = graph.classify()
        if classified.emulator is None:
            self.logger.debug(f"Skipping installing {self.settings.tool_package} since no Lambda emulator resource was found")
            return report
        report.emulator_found = True

        report.install_outcome = await self.tool_manager.ensure_installed(
            classified.emulator.policy, cancellation_token)

        for wrapper in classified.wrapper_projects:
            self._check_cancelled(cancellation_token)
            report.built_projects[wrapper.descriptor.resource_name] = self.build_wrapper_project(wrapper)

        for project in classified.class_library_projects:
            self._check_cancelled(cancellation_token)
            outcome = await self.configure_class_library_project(project, cancellation_token)
            if outcome is None:
                report.halted = True
                return report
            if outcome is False:
                report.skipped_projects.append(project.descriptor.resource_name)
            else:
                report.launch_settings[project.descriptor.resource_name] = outcome
        return report

    def build_wrapper_project(self, wrapper: LambdaWrapperProjectRole) -> int:
        """Build the executable wrapper so the compiled test runner exists on disk."""
        project_file = Path(wrapper.descriptor.project_path).resolve()
        exit_code = self.process_service.run_process(
            self.logger, self.settings.dotnet_executable,
            ["build", project_file.name], str(project_file.parent),
        )
        if exit_code != 0:
            self.logger.warning(f"Building '{project_file}' for resource '{wrapper.descriptor.resource_name}' exited with code {exit_code}")
        return exit_code

    async def configure_class_library_project(
        self, project: LambdaClassLibraryProjectRole,
        cancellation_token: Optional[CancellationToken] = None,
    ):
        """
        Probe and patch one class-library project.
        Returns the LaunchSettingsOutcome, False when the project was skipped,
        or None when the tool location is unknown and no project can be configured.
        """
        descriptor = project.descriptor
        package = self.settings.tool_package

        install_path = await self.tool_manager.get_install_path(cancellation_token)
        if not install_path:
            self.logger.error(f"Failed to determine the location of {package} on disk which is required for running class library Lambda functions.")
            return None
        content_root = content_root_from_install_path(install_path)
        if content_root is None:
            self.logger.error(f"Failed to determine the content folder of the {package} NuGet package which is required for running class library Lambda functions.")
            return None

        target_framework = await self.prober.get_target_framework(descriptor.project_path, cancellation_token)
        if not target_framework:
            self.logger.error(f"Cannot determine the target framework of the project '{descriptor.project_path}'")
            return False
        assembly_name = await self.prober.get_assembly_name(descriptor.project_path, cancellation_token)
        if not assembly_name:
            self.logger.error(f"Cannot determine the assembly name of the project '{descriptor.project_path}'")
            return False

        runtime_support = runtime_support_assembly_path(content_root, target_framework)
        if not runtime_support.is_file():
            self.logger.error(f"Cannot find a version of Amazon.Lambda.RuntimeSupport that supports your project's target framework '{target_framework}'. The following file does not exist '{runtime_support}'.")
            return False

        return self.patcher.apply_lambda_tester_profile(
            descriptor, str(runtime_support), target_framework, assembly_name)

    @staticmethod
    def _check_cancelled(cancellation_token: Optional[CancellationToken]) -> None:
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()
