"""Tests for TerminableWorker: cooperative cancel, forced abort, restarts."""

import threading
import time

import pytest

from process_tools.core.worker import (
    TerminableWorker,
    WorkerState,
    _raise_in_thread,
    current_token,
)
from process_tools.errors.exceptions import (
    OperationCancelledError,
    WorkerAbortedError,
    WorkerStateError,
)


def _cooperative_loop(started: threading.Event):
    def work():
        started.set()
        token = current_token()
        while True:
            token.raise_if_cancelled()
            time.sleep(0.01)
    return work


def _stubborn_loop(started: threading.Event, release: threading.Event = None):
    """Never polls the token and swallows ordinary exceptions."""
    def work():
        started.set()
        while release is None or not release.is_set():
            try:
                time.sleep(0.005)
            except Exception:
                pass
    return work


@pytest.fixture
def started():
    return threading.Event()


class TestConstruction:
    def test_requires_unit_of_work(self):
        with pytest.raises(ValueError, match="unit of work"):
            TerminableWorker()

    def test_rejects_both_callables(self):
        with pytest.raises(ValueError, match="not both"):
            TerminableWorker(target=lambda: None, parameterized_target=lambda arg: None)

    def test_construction_starts_nothing(self):
        worker = TerminableWorker(target=lambda: None, name="idle")

        assert worker.is_alive is False
        assert worker.state == WorkerState.CREATED
        assert worker.generation == 0
        assert worker.token is None
        assert worker.ident is None
        assert worker.last_error is None

    def test_join_before_start_is_invalid_state(self):
        worker = TerminableWorker(target=lambda: None)
        with pytest.raises(WorkerStateError):
            worker.join(0.1)

    def test_cancel_before_start_is_noop(self):
        worker = TerminableWorker(target=lambda: None)
        worker.request_cooperative_cancel()
        assert worker.token is None


class TestLifecycle:
    def test_alive_after_start_before_first_side_effect(self):
        gate = threading.Event()
        effects = []

        def work():
            gate.wait(5)
            effects.append("ran")

        worker = TerminableWorker(target=work)
        assert worker.is_alive is False

        worker.start()
        assert worker.is_alive is True
        assert effects == []
        assert worker.state == WorkerState.RUNNING

        gate.set()
        assert worker.wait_until_finished(5) is True
        assert effects == ["ran"]
        assert worker.state == WorkerState.COMPLETED

    def test_parameterized_target_receives_argument(self):
        received = []
        worker = TerminableWorker(parameterized_target=received.append)

        worker.start({"user": "Harry"})
        worker.join(5)

        assert received == [{"user": "Harry"}]

    def test_parameterized_target_without_argument_gets_none(self):
        received = []
        worker = TerminableWorker(parameterized_target=received.append)

        worker.start()
        worker.join(5)

        assert received == [None]

    def test_argument_for_niladic_work_is_rejected(self):
        worker = TerminableWorker(target=lambda: None)
        with pytest.raises(ValueError):
            worker.start("unexpected")
        assert worker.generation == 0

    def test_start_while_running_is_invalid_state(self):
        release = threading.Event()
        worker = TerminableWorker(target=lambda: release.wait(5))
        worker.start()
        try:
            with pytest.raises(WorkerStateError, match="already running"):
                worker.start()
            assert worker.generation == 1
        finally:
            release.set()
            worker.join(5)

    def test_exceptions_are_captured_not_raised(self):
        def boom():
            raise ValueError("bad input")

        worker = TerminableWorker(target=boom)
        worker.start()

        assert worker.join(5) is True
        assert worker.state == WorkerState.FAILED
        assert isinstance(worker.last_error, ValueError)
        assert str(worker.last_error) == "bad input"

    def test_current_worker_and_token_inside_work(self):
        seen = {}

        def work():
            seen["worker"] = TerminableWorker.current()
            seen["token"] = current_token()

        worker = TerminableWorker(target=work)
        worker.start()
        worker.join(5)

        assert seen["worker"] is worker
        assert seen["token"] is worker.token

    def test_current_token_outside_worker_is_never_cancelled(self):
        assert TerminableWorker.current() is None
        assert current_token().cancelled is False

    def test_stack_size_hint_is_restored(self):
        previous = threading.stack_size()
        worker = TerminableWorker(target=lambda: None, stack_size=512 * 1024)

        worker.start()
        worker.join(5)

        assert threading.stack_size() == previous
        assert worker.state == WorkerState.COMPLETED

    def test_name_and_daemon_pass_through(self):
        release = threading.Event()
        worker = TerminableWorker(target=lambda: release.wait(5), name="DemoThread")
        worker.start()
        try:
            assert worker.name == "DemoThread"
            assert worker.daemon is True
            assert worker.ident is not None
            assert worker.native_id is not None
            worker.name = "Renamed"
            assert worker.name == "Renamed"
            with pytest.raises(WorkerStateError):
                worker.daemon = False
        finally:
            release.set()
            worker.join(5)


class TestCooperativeCancel:
    def test_polling_work_stops_with_cancellation_error(self, started):
        worker = TerminableWorker(target=_cooperative_loop(started))
        worker.start()
        assert started.wait(5)

        worker.request_cooperative_cancel()

        assert worker.wait_until_finished(5) is True
        assert worker.is_alive is False
        assert worker.state == WorkerState.CANCELLED
        assert isinstance(worker.last_error, OperationCancelledError)

    def test_work_returning_after_cancel_counts_as_cancelled(self, started):
        def work():
            started.set()
            current_token().wait(5)

        worker = TerminableWorker(target=work)
        worker.start()
        assert started.wait(5)
        worker.request_cooperative_cancel()

        assert worker.wait_until_finished(5) is True
        assert worker.state == WorkerState.CANCELLED
        assert worker.last_error is None

    def test_non_polling_work_stays_alive(self, started):
        release = threading.Event()
        worker = TerminableWorker(target=_stubborn_loop(started, release))
        worker.start()
        assert started.wait(5)

        worker.request_cooperative_cancel()
        try:
            assert worker.wait_until_finished(0.2) is False
            assert worker.is_alive is True
        finally:
            release.set()
            worker.join(5)


class TestForceAbort:
    def test_force_abort_returns_within_grace_bound(self, started):
        release = threading.Event()
        worker = TerminableWorker(target=_stubborn_loop(started, release), abort_grace=0.05)
        worker.start()
        assert started.wait(5)

        begin = time.monotonic()
        worker.force_abort()
        elapsed = time.monotonic() - begin

        # Termination is not guaranteed; only the bounded wait is
        assert elapsed < 1.0
        release.set()
        worker.join(5)

    def test_force_abort_interrupts_python_level_loop(self, started):
        worker = TerminableWorker(target=_stubborn_loop(started))
        worker.start()
        assert started.wait(5)

        worker.request_cooperative_cancel()
        assert worker.wait_until_finished(0.1) is False

        worker.force_abort()

        assert worker.join(5) is True
        assert worker.state == WorkerState.ABORTED
        assert isinstance(worker.last_error, WorkerAbortedError)

    def test_force_abort_disposes_source(self, started):
        worker = TerminableWorker(target=_cooperative_loop(started))
        worker.start()
        assert started.wait(5)

        worker.force_abort()
        worker.join(5)

        assert worker.token.cancelled is True
        assert worker._source.disposed is True

    @pytest.mark.parametrize("failure", [OperationCancelledError, ValueError])
    def test_abort_racing_a_failure_never_escapes_the_thread(self, monkeypatch, failure):
        """An abort landing as the callable raises is settled inside the worker."""
        escaped = []
        monkeypatch.setattr(threading, "excepthook", escaped.append)

        def work():
            _raise_in_thread(threading.get_ident(), WorkerAbortedError)
            raise failure()

        worker = TerminableWorker(target=work)
        worker.start()

        assert worker.join(5) is True
        assert escaped == []
        assert worker.state in (WorkerState.ABORTED, WorkerState.CANCELLED, WorkerState.FAILED)
        assert isinstance(worker.last_error, (WorkerAbortedError, failure))

    def test_force_abort_on_finished_worker_is_harmless(self):
        worker = TerminableWorker(target=lambda: None)
        worker.start()
        worker.join(5)

        assert worker.force_abort() is True
        assert worker.state == WorkerState.COMPLETED


class TestStop:
    def test_stop_cooperative_does_not_escalate(self, started):
        worker = TerminableWorker(target=_cooperative_loop(started))
        worker.start()
        assert started.wait(5)

        outcome = worker.stop(cooperative_timeout=5)

        assert outcome.escalated is False
        assert worker.state == WorkerState.CANCELLED

    def test_stop_escalates_to_abort(self, started):
        worker = TerminableWorker(target=_stubborn_loop(started))
        worker.start()
        assert started.wait(5)

        outcome = worker.stop(cooperative_timeout=0.1)

        assert outcome.escalated is True
        assert worker.join(5) is True
        assert worker.state == WorkerState.ABORTED

    def test_stop_unstarted_worker(self):
        worker = TerminableWorker(target=lambda: None)
        outcome = worker.stop(cooperative_timeout=0.1)
        assert outcome.escalated is False


class TestRestart:
    def test_restart_creates_new_generation(self):
        runs = []
        worker = TerminableWorker(target=lambda: runs.append(current_token()))

        worker.start()
        worker.join(5)
        first_token = worker.token
        first_source = worker._source

        worker.start()
        worker.join(5)

        assert worker.generation == 2
        assert len(runs) == 2
        assert runs[0] is first_token
        assert runs[1] is worker.token
        assert worker.token is not first_token
        assert first_source.disposed is True

    def test_restart_preserves_previous_error_until_replaced(self):
        calls = []

        def work():
            calls.append(1)
            if len(calls) == 1:
                raise ValueError("first run failed")

        worker = TerminableWorker(target=work)
        worker.start()
        worker.join(5)
        first_error = worker.last_error

        worker.start()
        worker.join(5)

        assert worker.state == WorkerState.COMPLETED
        assert worker.last_error is first_error

    def test_restart_after_cancel_gets_fresh_token(self, started):
        worker = TerminableWorker(target=_cooperative_loop(started))
        worker.start()
        assert started.wait(5)
        worker.request_cooperative_cancel()
        worker.join(5)

        started.clear()
        worker.start()
        try:
            assert started.wait(5)
            assert worker.token.cancelled is False
            assert worker.is_alive is True
        finally:
            worker.request_cooperative_cancel()
            worker.join(5)
