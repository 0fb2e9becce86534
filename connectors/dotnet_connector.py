"""
dotnet_connector.py
-------------------
Runs external command-line tools (the dotnet CLI in practice) for the
Lambda emulator tooling.

Using asyncio subprocesses for the awaited calls and plain subprocess
for the blocking build. No timeout is enforced: commands run to completion.
"""

import asyncio
import logging
import subprocess
from typing import Optional, Sequence

from connectors.process_interface import CancellationToken, ProcessCommandService, ProcessResult

# exit code reported when the executable itself cannot be started
LAUNCH_FAILURE_EXIT_CODE = -1


class SubprocessCommandService(ProcessCommandService):
    """ProcessCommandService backed by real child processes."""

    async def run_process_and_capture_output(
        self,
        logger: logging.Logger,
        path: str,
        arguments: Sequence[str],
        cancellation_token: Optional[CancellationToken] = None,
        working_directory: Optional[str] = None,
    ) -> ProcessResult:
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()
        logger.debug(f"Running command: {path} {' '.join(arguments)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                path, *arguments,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=working_directory,
            )
        except OSError as e:
            logger.warning(f"Failed to start '{path}': {e}")
            return ProcessResult(LAUNCH_FAILURE_EXIT_CODE, str(e))
        stdout, _ = await proc.communicate()
        output = stdout.decode(errors="replace").strip() if stdout else ""
        exit_code = proc.returncode if proc.returncode is not None else LAUNCH_FAILURE_EXIT_CODE
        logger.debug(f"Command '{path}' exited with code {exit_code}")
        return ProcessResult(exit_code, output)

    def run_process(
        self,
        logger: logging.Logger,
        path: str,
        arguments: Sequence[str],
        working_directory: str,
    ) -> int:
        cmd = [path, *arguments]
        logger.debug(f"Running command in {working_directory}: {' '.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd, cwd=working_directory,
                stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True,
            )
        except OSError as e:
            logger.warning(f"Failed to start '{path}': {e}")
            return LAUNCH_FAILURE_EXIT_CODE
        if proc.stdout:
            logger.info(proc.stdout.strip())
        return proc.returncode
