"""Exception taxonomy and user-friendly error translation."""

from .exceptions import (
    OperationCancelledError,
    ProcessToolsError,
    UnsupportedPlatformError,
    WorkerAbortedError,
    WorkerStateError,
)
from .translator import ErrorTranslator, UserFriendlyError

__all__ = [
    "OperationCancelledError",
    "ProcessToolsError",
    "UnsupportedPlatformError",
    "WorkerAbortedError",
    "WorkerStateError",
    "ErrorTranslator",
    "UserFriendlyError",
]
