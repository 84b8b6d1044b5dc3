"""Shared utility functions."""

from .error_handling import ErrorContext, log_and_ignore
from .rich_logging import WorkerLogFormatter, setup_logging

__all__ = [
    # Error handling
    "ErrorContext",
    "log_and_ignore",
    # Logging
    "WorkerLogFormatter",
    "setup_logging",
]
