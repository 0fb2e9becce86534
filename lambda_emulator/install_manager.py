"""
install_manager.py
------------------
Makes sure the Amazon.Lambda.TestTool global tool is installed at a version
that satisfies the emulator's install policy before Lambda projects run.

Installing never fails the startup pass: a failed install is logged and the
projects that depend on the tool fail later, when they are probed.
"""

import logging
from enum import Enum
from typing import Optional

from box import Box, BoxError

from connectors.process_interface import CancellationToken, ProcessCommandService
from orchestrator.models import EmulatorPolicy, InstalledToolInfo, LambdaToolingSettings

PREVIEW_SUFFIX = "-preview"


class InstallOutcome(str, Enum):
    SKIPPED = "skipped"
    ALREADY_INSTALLED = "already-installed"
    INSTALLED = "installed"
    UPDATED = "updated"
    FAILED = "failed"


def parse_version(version: str) -> tuple[int, ...]:
    """
    Parse a dotted numeric version, ignoring a ``-preview`` qualifier.
    Between two and four components are accepted; anything else is a ValueError.
    """
    text = version.replace(PREVIEW_SUFFIX, "").strip()
    parts = text.split(".")
    if not 2 <= len(parts) <= 4:
        raise ValueError(f"Invalid version string '{version}'")
    try:
        numbers = tuple(int(p) for p in parts)
    except ValueError:
        raise ValueError(f"Invalid version string '{version}'") from None
    if any(n < 0 for n in numbers):
        raise ValueError(f"Invalid version string '{version}'")
    return numbers


def should_install(installed_version: Optional[str], expected_version: str, allow_downgrade: bool) -> bool:
    """
    Decide whether the tool must be (re)installed.

    Nothing installed always installs. Otherwise install when the installed
    version is older, or when downgrading is allowed and the versions differ.
    """
    if not installed_version:
        return True
    installed = parse_version(installed_version)
    expected = parse_version(expected_version)
    return installed < expected or (allow_downgrade and installed != expected)


class LambdaTestToolManager:
    """Queries and installs the Lambda test tool through the dotnet CLI."""

    def __init__(self, process_service: ProcessCommandService, settings: LambdaToolingSettings,
                 logger: Optional[logging.Logger] = None):
        self.process_service = process_service
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)

    async def get_tool_info(self, cancellation_token: Optional[CancellationToken] = None) -> InstalledToolInfo:
        """Run ``lambda-test-tool info``; an empty InstalledToolInfo means not installed or unreadable."""
        result = await self.process_service.run_process_and_capture_output(
            self.logger, self.settings.dotnet_executable,
            ["lambda-test-tool", "info", "--format", "json"],
            cancellation_token,
        )
        if result.exit_code != 0:
            return InstalledToolInfo()
        try:
            info = Box.from_json(result.output)
        except (ValueError, BoxError) as e:
            self.logger.warning(f"Error parsing information from {self.settings.tool_package}: {result.output} ({e})")
            return InstalledToolInfo()
        version = info.get("Version")
        install_path = info.get("InstallPath")
        return InstalledToolInfo(
            version=str(version) if version else None,
            install_path=str(install_path) if install_path else None,
        )

    async def get_installed_version(self, cancellation_token: Optional[CancellationToken] = None) -> str:
        info = await self.get_tool_info(cancellation_token)
        self.logger.debug(f"Installed version of {self.settings.tool_package} is {info.version}")
        return info.version or ""

    async def get_install_path(self, cancellation_token: Optional[CancellationToken] = None) -> str:
        info = await self.get_tool_info(cancellation_token)
        self.logger.debug(f"Install path of {self.settings.tool_package} is {info.install_path}")
        return info.install_path or ""

    async def ensure_installed(self, policy: EmulatorPolicy,
                               cancellation_token: Optional[CancellationToken] = None) -> InstallOutcome:
        """Apply ``policy``: install, upgrade or downgrade the tool when needed."""
        package = self.settings.tool_package
        if policy.disable_auto_install:
            self.logger.debug(f"Automatic install of {package} is disabled")
            return InstallOutcome.SKIPPED

        expected_version = policy.override_minimum_version or self.settings.default_tool_version
        installed_version = await self.get_installed_version(cancellation_token)

        try:
            install_needed = should_install(installed_version, expected_version, policy.allow_downgrade)
        except ValueError as e:
            self.logger.error(f"Cannot compare the installed version of {package} with {expected_version}: {e}")
            return InstallOutcome.FAILED
        if not install_needed:
            self.logger.info(f"{package} version {installed_version} already installed")
            return InstallOutcome.ALREADY_INSTALLED

        self.logger.debug(f"Installing .NET Tool {package} ({expected_version})")
        arguments = ["tool", "install", "-g", package, "--version", expected_version]
        if policy.allow_downgrade:
            arguments.append("--allow-downgrade")

        result = await self.process_service.run_process_and_capture_output(
            self.logger, self.settings.dotnet_executable, arguments, cancellation_token,
        )
        if result.exit_code == 0:
            if installed_version:
                self.logger.info(f"Successfully updated .NET Tool {package} from version {installed_version} to {expected_version}")
                return InstallOutcome.UPDATED
            self.logger.info(f"Successfully installed .NET Tool {package} ({expected_version})")
            return InstallOutcome.INSTALLED

        if installed_version:
            self.logger.warning(f"Failed to update {package} from {installed_version} to {expected_version}:\n{result.output}")
        else:
            self.logger.error(f"Failed to install {package} ({expected_version}) required for running Lambda functions locally:\n{result.output}")
        return InstallOutcome.FAILED
