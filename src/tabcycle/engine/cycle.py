"""One evaluation cycle over the whole engine model."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from tabcycle.aging.accumulator import ActiveTimeAccumulator
from tabcycle.aging.evaluator import StatusTransition, evaluate_items
from tabcycle.config.models import TabCycleConfig
from tabcycle.organization.archive import ArchiveCoordinator
from tabcycle.organization.zones import WindowReport, ZoneManager
from tabcycle.providers import Host, ProviderError
from tabcycle.state.models import EngineState

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CycleReport:
    """Outcome of an evaluation cycle.

    Attributes:
        started_at: Wall-clock time the cycle used for every age computation.
        active_time: Accumulated active time the cycle used.
        skipped: ``True`` when aging was disabled and only the accumulator advanced.
        transitions: Status changes applied this cycle.
        windows: Per-window organization summaries.
        archived: Archive entries written.
        removed: Gone tabs closed.
        failed: Gone tabs left in place for retry.
        archive_folder_renamed: New archive folder title when the user renamed it.
    """

    started_at: float
    active_time: float
    skipped: bool = False
    transitions: list[StatusTransition] = field(default_factory=list)
    windows: list[WindowReport] = field(default_factory=list)
    archived: int = 0
    removed: int = 0
    failed: int = 0
    archive_folder_renamed: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-ready summary."""
        return {
            "started_at": self.started_at,
            "active_time": self.active_time,
            "skipped": self.skipped,
            "transitions": [
                {"item_id": t.item_id, "from": t.old_status.value, "to": t.new_status.value}
                for t in self.transitions
            ],
            "windows": [
                {
                    "window_id": w.window_id,
                    "moved_to_special": w.moved_to_special,
                    "released": w.released,
                    "groups_moved": w.groups_moved,
                    "dissolved": w.dissolved,
                    "renamed": w.renamed,
                    "title_updates": w.title_updates,
                    "color_updates": w.color_updates,
                    "retired": list(w.retired),
                    "errors": list(w.errors),
                }
                for w in self.windows
            ],
            "archived": self.archived,
            "removed": self.removed,
            "failed": self.failed,
            "archive_folder_renamed": self.archive_folder_renamed,
        }


class EvaluationCycle:
    """Run accumulator, evaluator and zone manager in their fixed order."""

    def __init__(
        self,
        host: Host,
        accumulator: ActiveTimeAccumulator,
        zones: ZoneManager,
        archive: ArchiveCoordinator,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._host = host
        self._accumulator = accumulator
        self._zones = zones
        self._archive = archive
        self._clock = clock

    async def run(self, state: EngineState, config: TabCycleConfig) -> CycleReport:
        """Evaluate and organize every tracked tab once.

        Args:
            state: Working copy of the model; mutated in place.
            config: Settings snapshot for this cycle.

        Returns:
            CycleReport: Summary of the cycle.
        """
        active_time = self._accumulator.tick()
        state.active_time = self._accumulator.snapshot()
        now = self._clock()
        report = CycleReport(started_at=now, active_time=active_time)

        if not config.aging.enabled:
            LOGGER.debug("Aging disabled; only active time advanced")
            report.skipped = True
            return report

        live_windows = await self._sync_drift(state)

        report.transitions = evaluate_items(
            state.items.values(),
            active_time=active_time,
            now=now,
            settings=config.aging,
        )
        for transition in report.transitions:
            state.items[transition.item_id].status = transition.new_status

        session = self._archive.session(config.archive, state.archive)
        for window_id in sorted(state.window_ids() | live_windows):
            window_report = await self._zones.run_window(
                window_id,
                state,
                config,
                archive=session,
                active_time=active_time,
                now=now,
            )
            report.windows.append(window_report)

        report.archived = session.archived
        report.removed = session.removed
        report.failed = session.failed
        report.archive_folder_renamed = session.renamed_to
        if report.transitions:
            LOGGER.info(
                "Cycle applied %d transitions across %d tabs", len(report.transitions), len(state.items)
            )
        else:
            LOGGER.debug("Cycle complete with no transitions (%d tabs)", len(state.items))
        return report

    async def _sync_drift(self, state: EngineState) -> set[int]:
        """Correct stale window, group and URL data against the live world."""
        try:
            tabs = await self._host.tabs.list_tabs()
            windows = await self._host.windows.list_windows()
        except ProviderError as exc:
            LOGGER.warning("Unable to sync with live tabs: %s", exc)
            return set()

        live_windows = {window.id for window in windows}
        live = {tab.id: tab for tab in tabs}
        fixes = 0
        for item_id in list(state.items):
            item = state.items[item_id]
            tab = live.get(item_id)
            if tab is None or tab.pinned:
                del state.items[item_id]
                fixes += 1
                continue
            if (item.window_id, item.group_id) != (tab.window_id, tab.group_id):
                item.window_id = tab.window_id
                item.group_id = tab.group_id
                fixes += 1
            if tab.url and tab.url != item.url:
                item.url = tab.url
            item.title = tab.title
        for window_id in list(state.windows):
            if window_id not in live_windows:
                state.drop_window(window_id)
        if fixes:
            LOGGER.info("Reconciled %d drifted tab records", fixes)
        return live_windows


__all__ = ["CycleReport", "EvaluationCycle"]
