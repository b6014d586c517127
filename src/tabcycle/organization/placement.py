"""Placement of newly opened tabs relative to the tab they were opened from."""

from __future__ import annotations

import logging
from enum import Enum

from tabcycle.config.models import PlacementSettings
from tabcycle.providers import Host, ProviderError, TabInfo
from tabcycle.state.models import EngineState

from .ledger import WriteLedger

LOGGER = logging.getLogger(__name__)


class Placement(str, Enum):
    """How a new tab was placed."""

    SKIPPED = "skipped"
    JOINED = "joined"
    GROUPED = "grouped"
    LEFTMOST = "leftmost"
    FAILED = "failed"


class TabPlacer:
    """Apply the opener rules to a freshly created tab.

    1. Opener sits in a user group: the new tab joins that group right of the opener.
    2. Opener is ungrouped and unpinned: both are grouped into a new green group
       that the engine owns.
    3. Otherwise (no opener, pinned opener, opener in a special group) the new
       tab moves to the leftmost position.
    """

    def __init__(self, host: Host, ledger: WriteLedger) -> None:
        self._host = host
        self._ledger = ledger

    async def place(self, tab: TabInfo, state: EngineState, settings: PlacementSettings) -> Placement:
        """Place ``tab`` and update the tracked group membership in ``state``.

        Args:
            tab: Newly created tab.
            state: Engine model; group ids of affected items are updated in place.
            settings: Placement options.

        Returns:
            Placement: Rule that was applied.
        """
        if not settings.auto_group_enabled:
            LOGGER.debug("Auto-grouping disabled; leaving tab %s in place", tab.id)
            return Placement.SKIPPED

        window = state.ensure_window(tab.window_id)
        try:
            opener = await self._host.tabs.get_tab(tab.opener_id) if tab.opener_id is not None else None
            if opener is None or opener.pinned or window.is_special(opener.group_id):
                await self._host.tabs.move_tab(tab.id, 0)
                return Placement.LEFTMOST

            if opener.group_id is not None:
                return await self._join(tab, opener, state)

            group_id = await self._host.tabs.group_tabs([opener.id, tab.id], window_id=tab.window_id)
            self._ledger.record(group_id, title="", color="green")
            await self._host.groups.update_group(group_id, title="", color="green")
            window.mark_extension_group(group_id)
            for tab_id in (opener.id, tab.id):
                item = state.items.get(tab_id)
                if item is not None:
                    item.group_id = group_id
                    item.in_special_group = False
            LOGGER.debug("Grouped tab %s with opener %s into group %s", tab.id, opener.id, group_id)
            return Placement.GROUPED
        except ProviderError as exc:
            LOGGER.warning("Failed to place new tab %s: %s", tab.id, exc)
            return Placement.FAILED

    async def _join(self, tab: TabInfo, opener: TabInfo, state: EngineState) -> Placement:
        group_id = opener.group_id
        try:
            await self._host.tabs.group_tabs([tab.id], group_id=group_id)
            current = await self._host.tabs.get_tab(opener.id)
            await self._host.tabs.move_tab(tab.id, (current or opener).index + 1)
        except ProviderError as exc:
            LOGGER.warning("Could not join group %s, moving tab %s leftmost: %s", group_id, tab.id, exc)
            await self._host.tabs.move_tab(tab.id, 0)
            return Placement.LEFTMOST
        item = state.items.get(tab.id)
        if item is not None:
            item.group_id = group_id
            item.in_special_group = False
        return Placement.JOINED


__all__ = ["Placement", "TabPlacer"]
