"""Standardized error handling utilities."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


def log_and_ignore(
    error: BaseException,
    message: str,
    *,
    logger_instance: Optional[logging.Logger] = None,
    level: int = logging.WARNING,
) -> None:
    """
    Log an error and ignore it (don't re-raise).

    Use for expected, non-actionable failures such as acting on a process
    that exited between enumeration and action.

    Args:
        error: Exception to log
        message: Context message to log
        logger_instance: Logger to use (defaults to module logger)
        level: Log level (default: WARNING)
    """
    log = logger_instance or logger
    log.log(level, f"{message}: {error}")


class ErrorContext:
    """
    Context manager for handling errors with consistent logging.

    Usage:
        with ErrorContext("raising window of 4242", raise_on_error=False):
            table.set_foreground(handle)
    """

    def __init__(
        self,
        operation: str,
        *,
        raise_on_error: bool = True,
        logger_instance: Optional[logging.Logger] = None,
        log_level: int = logging.ERROR,
    ):
        """
        Initialize error context.

        Args:
            operation: Description of the operation
            raise_on_error: Whether to re-raise exceptions
            logger_instance: Logger to use
            log_level: Log level for errors
        """
        self.operation = operation
        self.raise_on_error = raise_on_error
        self.logger = logger_instance or logger
        self.log_level = log_level
        self.error: Optional[Exception] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False
        if not issubclass(exc_type, Exception):
            return False  # Never suppress KeyboardInterrupt, WorkerAbortedError, ...

        self.error = exc_val
        self.logger.log(
            self.log_level,
            f"Error during {self.operation}: {exc_val}",
        )
        return not self.raise_on_error

