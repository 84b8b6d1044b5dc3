"""Exception taxonomy for worker and process-tree termination."""


class ProcessToolsError(Exception):
    """Base class for all process-tools errors."""


class WorkerStateError(ProcessToolsError):
    """Operation attempted in a worker state that forbids it.

    Raised immediately to the caller (e.g. starting a worker that is
    still running, joining one that was never started). Never retried.
    """


class OperationCancelledError(ProcessToolsError):
    """Raised inside work that observed a cooperative cancellation request."""

    def __init__(self, message: str = "The operation was cancelled."):
        super().__init__(message)


class UnsupportedPlatformError(ProcessToolsError, NotImplementedError):
    """The running platform lacks a required OS capability.

    Configuration error, not a runtime race: always propagated
    synchronously to the caller.
    """

    def __init__(self, operation: str, platform: str):
        self.operation = operation
        self.platform = platform
        super().__init__(f"{operation} is not supported on platform '{platform}'")


class WorkerAbortedError(BaseException):
    """Injected into a worker thread by a forced abort.

    Derives from BaseException so that ``except Exception`` blocks in
    user code do not swallow it.
    """

    def __init__(self, message: str = "The worker was aborted."):
        super().__init__(message)
