"""Cold-start reconciliation of the persisted model against the live world."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Optional

from tabcycle.organization.archive import BLOCKED_URLS
from tabcycle.providers import Host, TabInfo
from tabcycle.state.models import SPECIAL_KINDS, EngineState, ItemRecord, WindowState

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileReport:
    """Counts describing a reconciliation pass."""

    kept: int = 0
    url_matched: int = 0
    created: int = 0
    dropped: int = 0
    windows: int = 0
    group_remaps: int = 0


def _best_votes(votes: dict[int, Counter[int]]) -> dict[int, int]:
    return {old: counter.most_common(1)[0][0] for old, counter in votes.items() if counter}


class StateReconciler:
    """Converge the model to the live tabs, groups and windows.

    Tabs keep their stored age when their id is known. After a browser
    restart ids are reassigned, so unmatched tabs are paired with unconsumed
    stored entries by URL; group and window references of the stored state are
    remapped by majority vote of those pairings.
    """

    def __init__(self, host: Host) -> None:
        self._host = host

    async def reconcile(self, state: EngineState, *, active_time: float, now: float) -> ReconcileReport:
        """Rebuild ``state.items`` and ``state.windows`` from the live world.

        Args:
            state: Model to reconcile in place.
            active_time: Current accumulated active time, used for fresh entries.
            now: Current wall-clock time, used for fresh entries.

        Returns:
            ReconcileReport: Summary counts.

        Raises:
            ProviderError: If the live world cannot be listed.
        """
        tabs = [tab for tab in await self._host.tabs.list_tabs() if not tab.pinned]
        windows = await self._host.windows.list_windows()
        live_windows = {window.id for window in windows}
        report = ReconcileReport()

        stored = dict(state.items)
        items: dict[int, ItemRecord] = {}
        unmatched: list[TabInfo] = []
        for tab in tabs:
            existing = stored.pop(tab.id, None)
            if existing is None:
                unmatched.append(tab)
                continue
            existing.window_id = tab.window_id
            existing.group_id = tab.group_id
            existing.url = tab.url or existing.url
            existing.title = tab.title
            items[tab.id] = existing
            report.kept += 1

        by_url: dict[str, list[ItemRecord]] = defaultdict(list)
        for record in stored.values():
            if record.url not in BLOCKED_URLS:
                by_url[record.url].append(record)

        group_votes: dict[int, Counter[int]] = defaultdict(Counter)
        window_votes: dict[int, Counter[int]] = defaultdict(Counter)
        for tab in unmatched:
            candidates = by_url.get(tab.url) if tab.url not in BLOCKED_URLS else None
            if candidates:
                previous = candidates.pop(0)
                if previous.group_id is not None and tab.group_id is not None:
                    group_votes[previous.group_id][tab.group_id] += 1
                if previous.window_id != tab.window_id:
                    window_votes[previous.window_id][tab.window_id] += 1
                items[tab.id] = previous.model_copy(
                    update={
                        "item_id": tab.id,
                        "window_id": tab.window_id,
                        "group_id": tab.group_id,
                        "url": tab.url,
                        "title": tab.title,
                        "in_special_group": False,
                        "pinned": False,
                    }
                )
                report.url_matched += 1
            else:
                items[tab.id] = ItemRecord(
                    item_id=tab.id,
                    window_id=tab.window_id,
                    group_id=tab.group_id,
                    refresh_active_time=active_time,
                    refresh_wall_time=now,
                    url=tab.url,
                    title=tab.title,
                )
                report.created += 1
        report.dropped = len(state.items) - report.kept - report.url_matched

        group_map = _best_votes(group_votes)
        window_map = _best_votes(window_votes)
        report.group_remaps = len(group_map)

        live_groups: dict[int, set[int]] = defaultdict(set)
        for tab in tabs:
            if tab.group_id is not None:
                live_groups[tab.window_id].add(tab.group_id)

        reconciled: dict[int, WindowState] = {}
        for window_id, window in state.windows.items():
            target = window_id if window_id in live_windows else window_map.get(window_id)
            if target is None or target not in live_windows or target in reconciled:
                continue
            reconciled[target] = self._remap_window(window, group_map, live_groups[target])
        for window_id in live_windows:
            reconciled.setdefault(window_id, WindowState())

        for item in items.values():
            owner = reconciled.get(item.window_id)
            item.in_special_group = owner is not None and owner.is_special(item.group_id)

        state.items = items
        state.windows = reconciled
        report.windows = len(reconciled)
        LOGGER.info(
            "Reconciled %d tabs (%d kept, %d matched by URL, %d new, %d dropped) across %d windows",
            len(items),
            report.kept,
            report.url_matched,
            report.created,
            report.dropped,
            report.windows,
        )
        return report

    @staticmethod
    def _remap_window(window: WindowState, group_map: dict[int, int], live_groups: set[int]) -> WindowState:
        def resolve(group_id: Optional[int]) -> Optional[int]:
            if group_id is None:
                return None
            if group_id in live_groups:
                return group_id
            mapped = group_map.get(group_id)
            return mapped if mapped in live_groups else None

        remapped = WindowState()
        for kind in SPECIAL_KINDS:
            remapped.special_groups.set(kind, resolve(window.special_groups.get(kind)))
        for group_id, zone in window.group_zones.items():
            target = resolve(group_id)
            if target is not None:
                remapped.group_zones[target] = zone
        for group_id, naming in window.group_naming.items():
            target = resolve(group_id)
            if target is not None:
                remapped.group_naming[target] = naming.model_copy()
        for group_id in window.extension_groups:
            target = resolve(group_id)
            if target is not None:
                remapped.mark_extension_group(target)
        return remapped


__all__ = ["ReconcileReport", "StateReconciler"]
