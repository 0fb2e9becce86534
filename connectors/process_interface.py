import logging
import threading
from typing import NamedTuple, Optional, Protocol, Sequence

from common.errors import OperationCancelled


class ProcessResult(NamedTuple):
    """Exit code and combined stdout/stderr (trimmed) of a finished command."""
    exit_code: int
    output: str


class CancellationToken:
    """
    Cooperative cancellation flag threaded through every external call.
    Setting it stops new commands from being issued; a command that is
    already running is left to finish.
    """
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Cancellation requested, no further commands will be issued")


class ProcessCommandService(Protocol):
    """Interface Protocol for running external command-line tools.
    To be subclassed by actual implementations (and fakes in tests).
    """

    async def run_process_and_capture_output(
        self,
        logger: logging.Logger,
        path: str,
        arguments: Sequence[str],
        cancellation_token: Optional[CancellationToken] = None,
        working_directory: Optional[str] = None,
    ) -> ProcessResult:
        """
        Run ``path`` with ``arguments`` until it exits.
        :return: exit code and anything written to stdout or stderr.
        """
        ...

    def run_process(
        self,
        logger: logging.Logger,
        path: str,
        arguments: Sequence[str],
        working_directory: str,
    ) -> int:
        """
        Run a command synchronously, echoing its output to the log.
        :return: the exit code.
        """
        ...
