"""Exceptions shared by the apphost AWS tooling modules."""

import logging
mylogger = logging.getLogger()


class ToolingError(Exception):
    """Custom exception with a message, optionally logged when raised."""
    def __init__(self, message="An apphost AWS tooling error occurred", log=False):
        self.message = message
        super().__init__(self.message)
        if log:
            mylogger.error(message)


class OperationCancelled(ToolingError):
    """Raised when a cancellation was requested before a command was issued."""
    def __init__(self, message="Operation cancelled", log=False):
        super().__init__(message, log)
