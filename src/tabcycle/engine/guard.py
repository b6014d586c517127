"""Re-entrancy guard for evaluation cycles and event handlers."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Literal, Optional

LOGGER = logging.getLogger(__name__)

GuardEvent = Literal["enter", "finish", "expire", "reset"]


class CyclePhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    TIMED_OUT = "timed_out"


_TRANSITIONS: dict[tuple[CyclePhase, GuardEvent], CyclePhase] = {
    (CyclePhase.IDLE, "enter"): CyclePhase.RUNNING,
    (CyclePhase.RUNNING, "finish"): CyclePhase.IDLE,
    (CyclePhase.RUNNING, "expire"): CyclePhase.TIMED_OUT,
    (CyclePhase.TIMED_OUT, "reset"): CyclePhase.IDLE,
}


class CycleGuard:
    """Exclusive ownership of the engine model.

    Holders receive a ticket from :meth:`try_enter` and hand it back to
    :meth:`leave`. A holder that keeps the guard longer than ``timeout`` is
    considered stuck: the next caller expires it with a warning and takes
    over, and the stale ticket can no longer release the guard.

    Attributes:
        placement_in_progress: Set while a new tab is being placed.
    """

    def __init__(self, timeout: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._timeout = timeout
        self._clock = clock
        self._phase = CyclePhase.IDLE
        self._started_at: Optional[float] = None
        self._ticket = 0
        self.placement_in_progress = False

    @property
    def phase(self) -> CyclePhase:
        return self._phase

    @property
    def busy(self) -> bool:
        return self._phase == CyclePhase.RUNNING or self.placement_in_progress

    @property
    def timeout(self) -> float:
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        self._timeout = value

    def _transition(self, event: GuardEvent) -> CyclePhase:
        """Apply ``event`` to the current phase.

        Raises:
            RuntimeError: If ``event`` is not valid in the current phase.
        """
        target = _TRANSITIONS.get((self._phase, event))
        if target is None:
            raise RuntimeError(f"Invalid guard transition {event!r} from {self._phase.value}")
        LOGGER.debug("Cycle guard %s -> %s", self._phase.value, target.value)
        self._phase = target
        self._started_at = self._clock() if target == CyclePhase.RUNNING else None
        return target

    def try_enter(self) -> Optional[int]:
        """Take the guard if it is free or stuck.

        Returns:
            Optional[int]: Ticket for :meth:`leave`, or ``None`` when another holder is active.
        """
        if self._phase == CyclePhase.RUNNING and self._started_at is not None:
            held_for = self._clock() - self._started_at
            if held_for > self._timeout:
                LOGGER.warning("Evaluation guard held for %.1fs; clearing stuck cycle", held_for)
                self._transition("expire")
        if self._phase == CyclePhase.TIMED_OUT:
            self._transition("reset")
        if self._phase == CyclePhase.RUNNING:
            return None
        self._transition("enter")
        self._ticket += 1
        return self._ticket

    def expire(self, ticket: int) -> None:
        """Mark the holder of ``ticket`` as timed out."""
        if ticket == self._ticket and self._phase == CyclePhase.RUNNING:
            self._transition("expire")

    def leave(self, ticket: int) -> None:
        """Release the guard if ``ticket`` still owns it."""
        if ticket != self._ticket:
            LOGGER.debug("Ignoring release from stale guard ticket %s", ticket)
            return
        if self._phase == CyclePhase.RUNNING:
            self._transition("finish")
        elif self._phase == CyclePhase.TIMED_OUT:
            self._transition("reset")


__all__ = ["CycleGuard", "CyclePhase"]
