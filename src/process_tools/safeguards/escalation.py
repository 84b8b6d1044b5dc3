"""Countdown escalation shared by thread abort and process-tree reaping."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class EscalationOutcome(Generic[T]):
    """Result of running an escalation policy."""
    escalated: bool
    final_round: int
    remaining: List[T] = field(default_factory=list)

    @property
    def resolved_naturally(self) -> bool:
        """True if nothing was left to act on before the terminal round."""
        return not self.escalated


class EscalationPolicy:
    """
    Wait-and-recheck countdown that ends in a terminal action.

    Rounds count down from ``rounds`` to 1. At every round the policy asks
    ``remaining()`` for a fresh snapshot; an empty snapshot ends the run
    without action. At rounds above 1 it waits ``round_wait`` seconds and
    rechecks. At round 1 the terminal action is applied unconditionally to
    whatever is left.

    Args:
        rounds: Number of rounds, at least 1
        round_wait: Seconds to wait between rounds
        wait: Blocking wait used between rounds (time.sleep by default;
            callers may pass a join-with-timeout instead)
    """

    def __init__(
        self,
        rounds: int,
        round_wait: float,
        wait: Callable[[float], object] = time.sleep,
    ):
        if rounds < 1:
            raise ValueError(f"rounds must be >= 1, got {rounds}")
        if round_wait < 0:
            raise ValueError(f"round_wait must be >= 0, got {round_wait}")
        self.rounds = rounds
        self.round_wait = round_wait
        self._wait = wait

    def run(
        self,
        remaining: Callable[[], Sequence[T]],
        terminal_action: Callable[[List[T]], None],
    ) -> EscalationOutcome[T]:
        """
        Run the countdown.

        Args:
            remaining: Returns what is still left to act on; called once per round
            terminal_action: Applied to the final snapshot on round 1

        Returns:
            EscalationOutcome describing whether the terminal action ran
        """
        for round_number in range(self.rounds, 0, -1):
            pending = list(remaining())
            if not pending:
                return EscalationOutcome(escalated=False, final_round=round_number)

            if round_number > 1:
                logger.debug(
                    f"{len(pending)} item(s) remaining at round {round_number}, "
                    f"waiting {self.round_wait}s"
                )
                self._wait(self.round_wait)
                continue

            terminal_action(pending)
            return EscalationOutcome(escalated=True, final_round=1, remaining=pending)

        # Unreachable: rounds >= 1 guarantees the loop returns.
        raise AssertionError("escalation countdown exited without a result")
