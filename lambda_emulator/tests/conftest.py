import json
import logging

import pytest

from connectors.process_interface import ProcessResult
from orchestrator.models import LambdaToolingSettings


class FakeProcessService:
    """
    Records every command instead of running it.
    Awaited commands are answered from ``responses`` keyed by the joined
    argument string; unknown commands exit with code 1.
    """
    def __init__(self, responses=None, build_exit_code=0):
        self.responses = dict(responses or {})
        self.build_exit_code = build_exit_code
        self.calls = []
        self.builds = []

    async def run_process_and_capture_output(self, logger, path, arguments, cancellation_token=None, working_directory=None):
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()
        key = " ".join(arguments)
        self.calls.append((path, key))
        response = self.responses.get(key, ProcessResult(1, ""))
        if isinstance(response, list):
            return response.pop(0) if len(response) > 1 else response[0]
        return response

    def run_process(self, logger, path, arguments, working_directory):
        self.builds.append((path, " ".join(arguments), working_directory))
        return self.build_exit_code

    def commands(self):
        return [key for _, key in self.calls]


INFO_COMMAND = "lambda-test-tool info --format json"


def tool_info(version=None, install_path=None):
    return ProcessResult(0, json.dumps({"Version": version, "InstallPath": install_path}))


@pytest.fixture
def settings():
    return LambdaToolingSettings()


@pytest.fixture
def logger():
    return logging.getLogger("apphost-aws-tests")


@pytest.fixture
def fake_service():
    return FakeProcessService()


@pytest.fixture
def make_service():
    return FakeProcessService


@pytest.fixture
def info_result():
    return tool_info
