"""Threads that can be cancelled cooperatively and, failing that, aborted.

CPython has no unconditional thread kill. A forced abort here signals the
worker's cancellation source and asynchronously raises
:class:`WorkerAbortedError` inside the worker thread, then waits a short grace
period. The exception is only delivered when the thread next executes Python
bytecode: code blocked in an uninterruptible native call (a C extension, a
blocking socket read without timeout) keeps running. Callers must re-check
``is_alive`` after ``force_abort`` and decide their own fallback.
"""

import ctypes
import itertools
import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..errors.exceptions import (
    OperationCancelledError,
    WorkerAbortedError,
    WorkerStateError,
)
from ..safeguards.escalation import EscalationOutcome, EscalationPolicy
from .cancellation import CancellationToken, CancellationTokenSource

logger = logging.getLogger(__name__)

DEFAULT_ABORT_GRACE = 0.05

_NO_ARGUMENT = object()
_counter = itertools.count(1)
_current = threading.local()
# threading.stack_size() is process-wide
_stack_size_lock = threading.Lock()


class WorkerState(str, Enum):
    """Lifecycle state of the current worker generation."""
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"  # Observed the cooperative cancellation signal
    ABORTED = "aborted"  # Stopped by force_abort
    FAILED = "failed"

    @property
    def finished(self) -> bool:
        return self not in (WorkerState.CREATED, WorkerState.RUNNING)


def _raise_in_thread(thread_id: int, exc_type: type) -> bool:
    """Schedule ``exc_type`` to be raised in the thread with ``thread_id``."""
    affected = ctypes.pythonapi.PyThreadState_SetAsyncExc(
        ctypes.c_ulong(thread_id), ctypes.py_object(exc_type)
    )
    if affected > 1:
        # Should never happen; undo rather than hit unrelated threads
        _clear_pending(thread_id)
        return False
    return affected == 1


def _clear_pending(thread_id: int) -> None:
    """Drop an asynchronous exception not yet delivered to the thread."""
    ctypes.pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(thread_id), None)


def current_token() -> CancellationToken:
    """Cancellation token of the worker running on this thread.

    Outside a worker this returns a token that is never cancelled, so
    library code can poll unconditionally.
    """
    token = getattr(_current, "token", None)
    return token if token is not None else CancellationToken.none()


class TerminableWorker:
    """
    Runs a callable on its own thread under an owned cancellation source.

    Exactly one of ``target`` (no arguments) or ``parameterized_target``
    (one argument, supplied to ``start``) must be given. Every ``start``
    creates a new generation with a fresh cancellation source; the previous
    source is disposed first.

    Exceptions raised by the callable never reach the starter. They are
    captured in ``last_error``, which survives a restart until the new run
    records its own failure.

    Args:
        target: Niladic callable to run
        parameterized_target: One-argument callable to run
        name: Thread name (generated when omitted)
        daemon: Whether the thread is a daemon thread
        stack_size: Stack size hint in bytes for this worker's threads
        abort_grace: Seconds force_abort waits for the thread to unwind
    """

    def __init__(
        self,
        target: Optional[Callable[[], Any]] = None,
        parameterized_target: Optional[Callable[[Any], Any]] = None,
        *,
        name: Optional[str] = None,
        daemon: bool = True,
        stack_size: Optional[int] = None,
        abort_grace: float = DEFAULT_ABORT_GRACE,
    ):
        if target is None and parameterized_target is None:
            raise ValueError("A unit of work is required: pass target or parameterized_target")
        if target is not None and parameterized_target is not None:
            raise ValueError("Pass either target or parameterized_target, not both")

        self._target = target
        self._parameterized_target = parameterized_target
        self._name = name or f"TerminableWorker-{next(_counter)}"
        self._daemon = daemon
        self._stack_size = stack_size
        self.abort_grace = abort_grace

        self._thread: Optional[threading.Thread] = None
        self._source: Optional[CancellationTokenSource] = None
        self._generation = 0
        self._state = WorkerState.CREATED
        self._last_error: Optional[BaseException] = None
        self._in_user_code = False
        self._lock = threading.Lock()

    # -- lifecycle ---------------------------------------------------------

    def start(self, argument: Any = _NO_ARGUMENT) -> "TerminableWorker":
        """
        Launch a new generation of the worker.

        Args:
            argument: Passed to ``parameterized_target``; omitted for niladic
                work (a parameterized target then receives None)

        Returns:
            self, for chaining

        Raises:
            WorkerStateError: If the worker is still running
            ValueError: If an argument is given to niladic work
        """
        if argument is not _NO_ARGUMENT and self._parameterized_target is None:
            raise ValueError(f"Worker {self._name} runs niladic work and takes no argument")

        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                raise WorkerStateError(f"Worker {self._name} is already running")

            if self._source is not None:
                self._source.dispose()
            source = CancellationTokenSource()
            self._source = source
            self._generation += 1
            generation = self._generation

            thread = threading.Thread(
                target=self._shell,
                args=(source, generation, None if argument is _NO_ARGUMENT else argument),
                name=self._name,
                daemon=self._daemon,
            )
            self._thread = thread
            self._state = WorkerState.RUNNING
            try:
                self._launch(thread)
            except BaseException:
                self._state = WorkerState.FAILED
                source.dispose()
                raise

        logger.debug(f"Started worker {self._name}", extra=self._log_extra(generation))
        return self

    def _launch(self, thread: threading.Thread) -> None:
        if self._stack_size is None:
            thread.start()
            return
        with _stack_size_lock:
            previous = threading.stack_size(self._stack_size)
            try:
                thread.start()
            finally:
                threading.stack_size(previous)

    def _shell(self, source: CancellationTokenSource, generation: int, argument: Any) -> None:
        """Execution shell: runs the callable and classifies how it ended."""
        _current.worker = self
        _current.token = source.token
        extra = self._log_extra(generation)
        outcome = WorkerState.FAILED
        error: Optional[BaseException] = None

        try:
            self._invoke(argument)
            outcome = WorkerState.CANCELLED if source.cancelled else WorkerState.COMPLETED
        except OperationCancelledError as e:
            error = e
            outcome = WorkerState.CANCELLED
            logger.info(f"Worker {self._name} stopped on cancellation request", extra=extra)
        except WorkerAbortedError as e:
            error = e
            outcome = WorkerState.ABORTED
            logger.warning(f"Worker {self._name} was aborted", extra=extra)
        except Exception as e:
            error = e
            outcome = WorkerState.FAILED
            logger.warning(f"Worker {self._name} failed: {e}", extra=extra, exc_info=True)
        finally:
            with self._lock:
                self._in_user_code = False
                if error is not None:
                    self._last_error = error
                if generation == self._generation:
                    self._state = outcome
            _current.worker = None
            _current.token = None

        logger.debug(f"Worker {self._name} finished: {outcome.value}", extra=extra)

    def _invoke(self, argument: Any) -> None:
        """Run the callable with abort injection enabled."""
        try:
            with self._lock:
                self._in_user_code = True
            if self._parameterized_target is not None:
                self._parameterized_target(argument)
            else:
                self._target()
        finally:
            with self._lock:
                self._in_user_code = False
            # An abort injected while the callable was ending may still be
            # pending; it must not fire later inside the shell's handlers
            _clear_pending(threading.get_ident())

    # -- termination -------------------------------------------------------

    def request_cooperative_cancel(self) -> None:
        """Signal the owned token. Advisory: the callable must poll it."""
        source = self._source
        if source is None:
            logger.debug(f"Worker {self._name} was never started, nothing to cancel")
            return
        logger.info(
            f"Requesting cooperative cancellation of {self._name}",
            extra=self._log_extra(self._generation),
        )
        source.cancel()

    def wait_until_finished(self, timeout: Optional[float]) -> bool:
        """
        Block up to ``timeout`` seconds for the worker to finish.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            True if the worker has finished
        """
        return self.join(timeout)

    def force_abort(self) -> bool:
        """
        Best-effort escalation for work that ignored cooperative cancellation.

        Signals the cancellation source, raises WorkerAbortedError inside the
        worker thread if it is executing the callable, waits ``abort_grace``
        seconds, then disposes the source.

        Returns:
            True if the thread had stopped when the grace period ended. This
            is a snapshot, not a guarantee: re-check ``is_alive`` later.
        """
        generation = self._generation
        with self._lock:
            source = self._source
            thread = self._thread
            if source is not None:
                source.cancel()
            injected = False
            if (
                thread is not None
                and thread.ident is not None
                and thread.is_alive()
                and self._in_user_code
            ):
                injected = _raise_in_thread(thread.ident, WorkerAbortedError)

        logger.warning(
            f"Forcing abort of worker {self._name} (exception injected: {injected})",
            extra=self._log_extra(generation),
        )

        if thread is not None and thread.is_alive():
            thread.join(self.abort_grace)
        if source is not None:
            source.dispose()

        stopped = not self.is_alive
        if not stopped:
            logger.warning(
                f"Worker {self._name} still alive after {self.abort_grace}s abort grace",
                extra=self._log_extra(generation),
            )
        return stopped

    def stop(self, cooperative_timeout: float) -> EscalationOutcome:
        """
        Cancel cooperatively, wait, and force an abort if still alive.

        Args:
            cooperative_timeout: Seconds to wait for a cooperative exit

        Returns:
            EscalationOutcome; ``escalated`` is True if force_abort ran
        """
        self.request_cooperative_cancel()
        policy = EscalationPolicy(rounds=2, round_wait=cooperative_timeout, wait=self.join)
        return policy.run(
            lambda: [self] if self.is_alive else [],
            lambda _pending: self.force_abort(),
        )

    # -- thread pass-through -----------------------------------------------

    @property
    def is_alive(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread to finish; returns True if it did."""
        thread = self._thread
        if thread is None:
            raise WorkerStateError(f"Worker {self._name} has not been started")
        thread.join(timeout)
        return not thread.is_alive()

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value
        if self._thread is not None:
            self._thread.name = value

    @property
    def daemon(self) -> bool:
        return self._daemon

    @daemon.setter
    def daemon(self, value: bool) -> None:
        if self.is_alive:
            raise WorkerStateError(f"Cannot change daemon flag of running worker {self._name}")
        self._daemon = value

    @property
    def ident(self) -> Optional[int]:
        return self._thread.ident if self._thread is not None else None

    @property
    def native_id(self) -> Optional[int]:
        return self._thread.native_id if self._thread is not None else None

    @property
    def token(self) -> Optional[CancellationToken]:
        return self._source.token if self._source is not None else None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    @staticmethod
    def current() -> Optional["TerminableWorker"]:
        """The worker executing on the calling thread, if any."""
        return getattr(_current, "worker", None)

    def _log_extra(self, generation: int) -> Dict[str, Any]:
        return {"worker": self._name, "generation": generation}

    def __repr__(self) -> str:
        return (
            f"<TerminableWorker {self._name!r} generation={self._generation} "
            f"state={self._state.value}>"
        )
