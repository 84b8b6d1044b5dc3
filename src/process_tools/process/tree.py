"""Depth-first escalation over a process tree.

Every level of the tree runs the same countdown: poll the direct children,
wait while any survive, and on the final round recurse into every survivor
before acting on it. Children are therefore always resolved before their
parent is touched, so killing an intermediate process never orphans a live
grandchild outside the controller's view.
"""

import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Union

from ..core.config import ProcessTreeConfig
from ..errors.exceptions import UnsupportedPlatformError
from ..safeguards.escalation import EscalationPolicy
from ..utils.error_handling import ErrorContext
from .table import ProcessTable, PsutilProcessTable

logger = logging.getLogger(__name__)

DEFAULT_REAP_ROUNDS = 3
DEFAULT_ROUND_WAIT = 0.25
DEFAULT_CONTROL_POLL = 0.5


@dataclass
class TreeSweepReport:
    """What a single reap or foreground sweep did."""
    root_pid: int
    action: str
    visited: List[int] = field(default_factory=list)  # pids whose children were polled, in descent order
    acted: List[int] = field(default_factory=list)  # pids the terminal action succeeded on
    skipped: List[int] = field(default_factory=list)  # pids gone, inaccessible or windowless

    @property
    def escalated(self) -> bool:
        return bool(self.acted or self.skipped)


def _resolve_pid(root: Union[int, Any]) -> int:
    """Accept a pid or anything with a ``pid`` attribute (Popen, psutil.Process)."""
    if isinstance(root, int):
        return root
    pid = getattr(root, "pid", None)
    if pid is None:
        raise TypeError(f"Expected a process id or process object, got {type(root).__name__}")
    return int(pid)


class ProcessTreeController:
    """
    Reaps or foregrounds the descendants of a process.

    Both public operations run the sweep on a dedicated control thread and
    block the caller until it finishes, so they behave synchronously.

    Args:
        table: Process table to query and act through (psutil by default)
        round_wait: Seconds between polling rounds
        control_poll: Seconds between the caller's liveness checks of the
            control thread
        wait: Blocking wait used between rounds
    """

    KILL = "kill"
    FOREGROUND = "foreground"

    def __init__(
        self,
        table: Optional[ProcessTable] = None,
        *,
        round_wait: float = DEFAULT_ROUND_WAIT,
        control_poll: float = DEFAULT_CONTROL_POLL,
        wait: Callable[[float], object] = time.sleep,
    ):
        self.table = table if table is not None else PsutilProcessTable()
        self.round_wait = round_wait
        self.control_poll = control_poll
        self._wait = wait

    @classmethod
    def from_config(
        cls,
        config: ProcessTreeConfig,
        table: Optional[ProcessTable] = None,
    ) -> "ProcessTreeController":
        return cls(table, round_wait=config.round_wait, control_poll=config.control_poll)

    def reap_descendants(self, root: Union[int, Any], rounds: int = DEFAULT_REAP_ROUNDS) -> TreeSweepReport:
        """
        Wait for the descendants of ``root`` to exit, killing survivors at last.

        Args:
            root: Process id or process object whose descendants are reaped
            rounds: Polling rounds; survivors are killed on round 1

        Returns:
            TreeSweepReport listing killed and skipped processes

        Raises:
            UnsupportedPlatformError: If the process table cannot enumerate children
        """
        if rounds < 1:
            raise ValueError(f"rounds must be >= 1, got {rounds}")
        self._require_enumeration("Process tree reaping")

        root_pid = _resolve_pid(root)
        report = TreeSweepReport(root_pid=root_pid, action=self.KILL)
        logger.info(f"Reaping descendants of process {root_pid} ({rounds} rounds)")

        self._run_on_control_thread(
            lambda: self._sweep(root_pid, rounds, self.round_wait, self._kill, report),
            name=f"reap-{root_pid}",
        )

        if report.acted:
            logger.warning(f"Killed {len(report.acted)} descendant(s) of {root_pid}: {report.acted}")
        else:
            logger.info(f"Descendants of process {root_pid} exited without being killed")
        return report

    def raise_to_foreground(self, root: Union[int, Any]) -> TreeSweepReport:
        """
        Bring the main windows of all descendants of ``root`` to the foreground.

        A single sweep with no waiting. Descendants that are gone or have no
        main window are skipped.

        Raises:
            UnsupportedPlatformError: If enumeration or window activation is unavailable
        """
        self._require_enumeration("Process tree foregrounding")
        if not self.table.supports_foreground:
            raise UnsupportedPlatformError("Foreground window activation", sys.platform)

        root_pid = _resolve_pid(root)
        report = TreeSweepReport(root_pid=root_pid, action=self.FOREGROUND)
        logger.info(f"Raising descendants of process {root_pid} to the foreground")

        self._run_on_control_thread(
            lambda: self._sweep(root_pid, 1, 0.0, self._foreground, report),
            name=f"foreground-{root_pid}",
        )
        return report

    def _require_enumeration(self, operation: str) -> None:
        if not self.table.supports_enumeration:
            raise UnsupportedPlatformError(operation, sys.platform)

    def _run_on_control_thread(self, body: Callable[[], None], name: str) -> None:
        """Run ``body`` on its own thread and block until it finishes."""
        errors: List[BaseException] = []

        def _control() -> None:
            try:
                body()
            except BaseException as e:
                errors.append(e)

        thread = threading.Thread(target=_control, name=name, daemon=True)
        thread.start()
        while thread.is_alive():
            thread.join(self.control_poll or None)

        if errors:
            raise errors[0]

    def _sweep(
        self,
        pid: int,
        rounds: int,
        round_wait: float,
        action: Callable[[int, TreeSweepReport], None],
        report: TreeSweepReport,
    ) -> None:
        """Run the countdown over the children of ``pid``, post-order."""
        report.visited.append(pid)
        own_pid = self.table.own_pid()
        policy = EscalationPolicy(rounds, round_wait, wait=self._wait)

        def survivors() -> List[int]:
            # Re-query every round: pids are recycled, snapshots go stale
            return [child for child in self.table.children_of(pid) if child != own_pid]

        def finish(children: List[int]) -> None:
            for child in children:
                self._sweep(child, 1, round_wait, action, report)
            for child in children:
                action(child, report)

        policy.run(survivors, finish)

    def _kill(self, pid: int, report: TreeSweepReport) -> None:
        if self.table.terminate(pid):
            logger.info(f"Killed process {pid}")
            report.acted.append(pid)
        else:
            report.skipped.append(pid)

    def _foreground(self, pid: int, report: TreeSweepReport) -> None:
        raised = False
        with ErrorContext(
            f"raising process {pid} to the foreground",
            raise_on_error=False,
            logger_instance=logger,
            log_level=logging.DEBUG,
        ):
            handle = self.table.main_window_handle(pid)
            if handle is not None:
                raised = self.table.set_foreground(handle)

        if raised:
            logger.debug(f"Raised main window of process {pid}")
            report.acted.append(pid)
        else:
            report.skipped.append(pid)
