"""Core worker, cancellation and configuration."""

from .cancellation import CancellationToken, CancellationTokenSource
from .config import ProcessToolsConfig, load_config
from .worker import TerminableWorker, WorkerState, current_token

__all__ = [
    "CancellationToken",
    "CancellationTokenSource",
    "ProcessToolsConfig",
    "load_config",
    "TerminableWorker",
    "WorkerState",
    "current_token",
]
