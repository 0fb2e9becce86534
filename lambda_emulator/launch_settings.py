"""
launch_settings.py
------------------
Points a project's ``Properties/launchSettings.json`` at the Lambda test tool.

One profile per Lambda resource is owned here (``<prefix><resource name>``).
Its ``commandLineArgs`` and ``workingDirectory`` are rewritten on every run
since they hold machine-specific paths; every other key and profile of the
document is written back untouched.
"""

import json
import logging
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from orchestrator.models import LambdaToolingSettings, ProjectFunctionDescriptor

PROPERTIES_DIRECTORY = "Properties"
LAUNCH_SETTINGS_FILE = "launchSettings.json"
RUNTIME_SUPPORT_PACKAGE = "Amazon.Lambda.RuntimeSupport"
RUNTIME_SUPPORT_ASSEMBLY = "Amazon.Lambda.RuntimeSupport.dll"


class LaunchSettingsOutcome(str, Enum):
    UPDATED = "updated"
    PARSE_FAILED = "parse-failed"
    WRITE_FAILED = "write-failed"


def content_root_from_install_path(install_path: str) -> Optional[Path]:
    """The tool package root sits three levels above the reported install path."""
    if not install_path:
        return None
    parents = Path(install_path).parents
    if len(parents) < 3:
        return None
    return parents[2]


def runtime_support_assembly_path(content_root: Path, target_framework: str) -> Path:
    return content_root / "content" / RUNTIME_SUPPORT_PACKAGE / target_framework / RUNTIME_SUPPORT_ASSEMBLY


def substitute_home_path(path: str, home: Optional[str] = None, windows: Optional[bool] = None) -> str:
    """
    Replace the user's home directory at the start of ``path`` with the
    platform placeholder (``%USERPROFILE%`` on Windows, ``$HOME`` elsewhere).
    Paths outside the home directory are returned unchanged.
    """
    if windows is None:
        windows = sys.platform == "win32"
    if home is None:
        home = str(Path.home())
    placeholder = "%USERPROFILE%" if windows else "$HOME"
    home = home.rstrip("/\\")
    if not home:
        return path
    if path == home:
        return placeholder
    if path.startswith(home) and path[len(home)] in ("/", "\\"):
        return placeholder + path[len(home):]
    return path


def launch_settings_path(project_path: str) -> Path:
    parent_directory = os.path.dirname(project_path)
    if not parent_directory:
        raise ValueError(f"The project path '{project_path}' is invalid. Unable to retrieve the '{LAUNCH_SETTINGS_FILE}' file.")
    return Path(parent_directory) / PROPERTIES_DIRECTORY / LAUNCH_SETTINGS_FILE


def read_launch_settings(project_path: str) -> str:
    """Current launchSettings.json text, ``{}`` when there is none yet."""
    path = launch_settings_path(project_path)
    if not path.parent.is_dir() or not path.is_file():
        return "{}"
    return path.read_text(encoding="utf-8-sig")


def save_launch_settings(project_path: str, content: str) -> Path:
    path = launch_settings_path(project_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class LaunchSettingsPatcher:
    """Injects the Lambda test tool profile into launchSettings.json documents."""

    def __init__(self, settings: LambdaToolingSettings, logger: Optional[logging.Logger] = None,
                 home: Optional[str] = None, windows: Optional[bool] = None):
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self.home = home
        self.windows = windows

    def profile_key(self, resource_name: str) -> str:
        return f"{self.settings.profile_prefix}{resource_name}"

    def command_line_args(self, assembly_name: str, runtime_support_path: str, function_handler: str) -> str:
        runtime_support = substitute_home_path(runtime_support_path, self.home, self.windows)
        return (f"exec --depsfile ./{assembly_name}.deps.json "
                f"--runtimeconfig ./{assembly_name}.runtimeconfig.json "
                f"{runtime_support} {function_handler}")

    @staticmethod
    def working_directory(target_framework: str) -> str:
        return os.path.join(".", "bin", "$(Configuration)", target_framework)

    def patch_document(self, document: Any, descriptor: ProjectFunctionDescriptor, runtime_support_path: str,
                       target_framework: str, assembly_name: str) -> dict[str, Any]:
        """Return ``document`` (repaired when it is not an object) with the tester profile applied."""
        root: dict[str, Any] = document if isinstance(document, dict) else {}

        profiles = root.get("profiles")
        if not isinstance(profiles, dict):
            if profiles is not None:
                self.logger.warning(f"Replacing invalid 'profiles' node in the launch settings of '{descriptor.project_path}'")
            profiles = {}
            root["profiles"] = profiles

        key = self.profile_key(descriptor.resource_name)
        lambda_tester = profiles.get(key)
        if not isinstance(lambda_tester, dict):
            lambda_tester = {
                "commandName": "Executable",
                "executablePath": self.settings.dotnet_executable,
            }
            profiles[key] = lambda_tester

        lambda_tester["commandLineArgs"] = self.command_line_args(
            assembly_name, runtime_support_path, descriptor.function_handler)
        lambda_tester["workingDirectory"] = self.working_directory(target_framework)
        return root

    def apply_lambda_tester_profile(self, descriptor: ProjectFunctionDescriptor, runtime_support_path: str,
                                    target_framework: str, assembly_name: str) -> LaunchSettingsOutcome:
        """
        Initialize the project's launch settings if necessary and make sure
        they reference the Lambda test tool's location.
        An invalid project path raises ValueError; JSON and IO errors are logged
        and reported through the returned outcome.
        """
        try:
            text = read_launch_settings(descriptor.project_path)
            document = json.loads(text) if text.strip() else {}
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            self.logger.error(f"Failed to read the {LAUNCH_SETTINGS_FILE} file for the project '{descriptor.project_path}': {e}")
            return LaunchSettingsOutcome.PARSE_FAILED

        root = self.patch_document(document, descriptor, runtime_support_path, target_framework, assembly_name)
        try:
            updated = json.dumps(root, indent=2, ensure_ascii=False)
            path = save_launch_settings(descriptor.project_path, updated)
        except (TypeError, ValueError, OSError) as e:
            self.logger.error(f"Failed to write the {LAUNCH_SETTINGS_FILE} file for the project '{descriptor.project_path}': {e}")
            return LaunchSettingsOutcome.WRITE_FAILED

        self.logger.info(f"Updated launch profile '{self.profile_key(descriptor.resource_name)}' in {path}")
        return LaunchSettingsOutcome.UPDATED
