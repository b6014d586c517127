"""Focused-time accounting for the active-time aging mode."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from tabcycle.state.models import ActiveTimeState

LOGGER = logging.getLogger(__name__)


class ActiveTimeAccumulator:
    """Track total time during which any browser window held focus.

    The accumulator owns its :class:`ActiveTimeState` and is mutated only
    through the named operations below. Every delta is clamped at zero so the
    accumulated total never decreases, even when the clock steps backwards.
    """

    def __init__(
        self,
        state: Optional[ActiveTimeState] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the accumulator.

        Args:
            state: Persisted accumulator state to resume from.
            clock: Callable returning the current epoch time in seconds.
        """
        self._clock = clock
        self._state = state.model_copy() if state is not None else ActiveTimeState(last_persisted_at=clock())

    @property
    def focused(self) -> bool:
        return self._state.focus_started_at is not None

    def on_focus_gained(self) -> None:
        """Start accumulating if no window held focus before."""
        now = self._clock()
        if self._state.focus_started_at is None:
            self._state.focus_started_at = now
        self._state.last_persisted_at = now

    def on_focus_lost(self) -> None:
        """Fold the running focus span into the total and stop accumulating."""
        now = self._clock()
        if self._state.focus_started_at is not None:
            self._state.accumulated += max(0.0, now - self._state.focus_started_at)
            self._state.focus_started_at = None
        self._state.last_persisted_at = now

    def on_focus_changed(self, window_id: Optional[int]) -> None:
        """Dispatch a focus change; ``None`` means no window is focused."""
        if window_id is None:
            self.on_focus_lost()
        else:
            self.on_focus_gained()

    def current_total(self) -> float:
        """Return the accumulated focused seconds including the running span.

        Returns:
            float: Total focused seconds.
        """
        total = self._state.accumulated
        if self._state.focus_started_at is not None:
            total += max(0.0, self._clock() - self._state.focus_started_at)
        return total

    def tick(self) -> float:
        """Fold the running span into the persisted total.

        Returns:
            float: Total focused seconds after folding.
        """
        now = self._clock()
        if self._state.focus_started_at is not None:
            self._state.accumulated += max(0.0, now - self._state.focus_started_at)
            self._state.focus_started_at = now
        self._state.last_persisted_at = now
        return self._state.accumulated

    def recover(self) -> float:
        """Approximate time lost while the engine was not running.

        When the persisted state says a window was focused, the gap since the
        last checkpoint is added once and accounting resumes from now. This is
        a best-effort estimate: the process cannot know whether focus was held
        for the whole gap.

        Returns:
            float: Total focused seconds after recovery.
        """
        now = self._clock()
        if self._state.focus_started_at is not None:
            delta = now - self._state.last_persisted_at
            if delta > 0:
                self._state.accumulated += delta
                LOGGER.info("Recovered %.1fs of active time after restart", delta)
            self._state.focus_started_at = now
        self._state.last_persisted_at = now
        return self._state.accumulated

    def snapshot(self) -> ActiveTimeState:
        """Return a copy of the state suitable for persistence."""
        return self._state.model_copy()


__all__ = ["ActiveTimeAccumulator"]
