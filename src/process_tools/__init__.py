"""Escalating termination control for threads and process trees."""

from .core.cancellation import CancellationToken, CancellationTokenSource
from .core.worker import TerminableWorker, WorkerState, current_token
from .errors.exceptions import (
    OperationCancelledError,
    ProcessToolsError,
    UnsupportedPlatformError,
    WorkerAbortedError,
    WorkerStateError,
)
from .process.table import ProcessTable, PsutilProcessTable
from .process.tree import ProcessTreeController, TreeSweepReport
from .safeguards.escalation import EscalationOutcome, EscalationPolicy

__version__ = "0.1.0"

__all__ = [
    # Cancellation
    "CancellationToken",
    "CancellationTokenSource",
    # Workers
    "TerminableWorker",
    "WorkerState",
    "current_token",
    # Process trees
    "ProcessTable",
    "PsutilProcessTable",
    "ProcessTreeController",
    "TreeSweepReport",
    # Escalation
    "EscalationOutcome",
    "EscalationPolicy",
    # Errors
    "OperationCancelledError",
    "ProcessToolsError",
    "UnsupportedPlatformError",
    "WorkerAbortedError",
    "WorkerStateError",
]
