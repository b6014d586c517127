"""Per-window zone organization.

The manager runs once per window per cycle and walks a fixed sequence:
sync, ungrouped placement, group aggregation, terminal handling, zone
ordering, degenerate-group cleanup and visual metadata. Every host call may
fail with :class:`ProviderError`; failures are logged and the affected step is
retried on the next cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from tabcycle.aging.evaluator import compute_age
from tabcycle.config.models import TabCycleConfig
from tabcycle.naming.generator import generate_group_name
from tabcycle.naming.titles import compose, format_age, parse
from tabcycle.providers import GroupInfo, Host, ProviderError, TabInfo
from tabcycle.state.models import (
    SPECIAL_KINDS,
    EngineState,
    ItemRecord,
    ItemStatus,
    NamingRecord,
    WindowState,
)

from .archive import ArchiveSession
from .ledger import WriteLedger

LOGGER = logging.getLogger(__name__)

ZONE_COLORS = {
    ItemStatus.GREEN: "green",
    ItemStatus.YELLOW: "yellow",
    ItemStatus.RED: "red",
}


@dataclass(slots=True)
class WindowReport:
    """Summary of the work done for one window during a cycle.

    Attributes:
        window_id: Window processed.
        moved_to_special: Tabs moved into a special group.
        released: Tabs taken out of a special group after a refresh.
        groups_moved: Group move calls issued while reordering zones.
        dissolved: Engine-owned groups dissolved during cleanup.
        renamed: Groups that received a generated name.
        title_updates: Group title writes issued.
        color_updates: Group color writes issued.
        retired: Tabs archived and/or closed.
        errors: Provider failures encountered.
    """

    window_id: int
    moved_to_special: int = 0
    released: int = 0
    groups_moved: int = 0
    dissolved: int = 0
    renamed: int = 0
    title_updates: int = 0
    color_updates: int = 0
    retired: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def special_group_title(kind: ItemStatus, config: TabCycleConfig) -> str:
    if kind == ItemStatus.YELLOW:
        return config.aging.yellow_group_name
    return config.aging.red_group_name


def group_zone(members: list[ItemRecord]) -> Optional[ItemStatus]:
    """Return the zone of a group: the freshest status among its members."""
    return ItemStatus.freshest([member.status for member in members])


def group_age(
    members: list[ItemRecord],
    *,
    active_time: float,
    now: float,
    config: TabCycleConfig,
) -> float:
    """Return the age of the freshest member, or ``0`` for an empty group."""
    ages = [
        compute_age(member, active_time=active_time, now=now, time_mode=config.aging.time_mode)
        for member in members
    ]
    return min(ages, default=0.0)


class ZoneManager:
    """Organize one window's tabs and groups into aging zones."""

    def __init__(self, host: Host, ledger: WriteLedger) -> None:
        self._host = host
        self._ledger = ledger

    async def run_window(
        self,
        window_id: int,
        state: EngineState,
        config: TabCycleConfig,
        *,
        archive: ArchiveSession,
        active_time: float,
        now: float,
    ) -> WindowReport:
        """Run every organization step for ``window_id``.

        Args:
            window_id: Window to organize.
            state: Working copy of the engine model; mutated in place.
            config: Settings snapshot for this cycle.
            archive: Archive session shared by all windows of the cycle.
            active_time: Accumulated active time for this cycle.
            now: Wall-clock time for this cycle.

        Returns:
            WindowReport: Summary of the window's changes.
        """
        report = WindowReport(window_id=window_id)
        window = state.ensure_window(window_id)
        try:
            tabs = await self._sync(window_id, state, window, active_time=active_time, now=now)
        except ProviderError as exc:
            LOGGER.warning("Skipping window %s; unable to read live tabs: %s", window_id, exc)
            report.errors.append(str(exc))
            return report

        if config.aging.tab_sorting_enabled:
            await self._place_ungrouped(window_id, state, window, tabs, config, report)

        groups = await self._live_groups(window_id, window, report)
        if groups is None:
            return report
        zones = self._aggregate(state, window, groups)

        if await self._retire_terminal(state, window, groups, zones, archive, report):
            groups = await self._live_groups(window_id, window, report)
            if groups is None:
                return report
            zones = self._aggregate(state, window, groups)

        if config.aging.group_sorting_enabled:
            await self._order_zones(window, groups, zones, report)

        await self._cleanup(window_id, state, window, report)

        groups = await self._live_groups(window_id, window, report)
        if groups is None:
            return report
        await self._apply_visuals(
            state, window, groups, zones, config, report, active_time=active_time, now=now
        )
        return report

    # Step 0 -----------------------------------------------------------

    async def _sync(
        self,
        window_id: int,
        state: EngineState,
        window: WindowState,
        *,
        active_time: float,
        now: float,
    ) -> list[TabInfo]:
        tabs = await self._host.tabs.list_tabs(window_id)
        live = {tab.id: tab for tab in tabs}
        for item in state.items_in_window(window_id):
            tab = live.get(item.item_id)
            if tab is None:
                tab = await self._host.tabs.get_tab(item.item_id)
                if tab is not None:
                    item.window_id = tab.window_id
                    item.group_id = tab.group_id
                    continue
            if tab is None or tab.pinned:
                del state.items[item.item_id]
        for tab in tabs:
            if tab.pinned:
                continue
            item = state.items.get(tab.id)
            if item is None:
                item = ItemRecord(
                    item_id=tab.id,
                    window_id=window_id,
                    refresh_active_time=active_time,
                    refresh_wall_time=now,
                )
                state.items[tab.id] = item
                LOGGER.debug("Tracking untracked tab %s in window %s", tab.id, window_id)
            item.window_id = window_id
            item.group_id = tab.group_id
            item.in_special_group = window.is_special(tab.group_id)
            item.url = tab.url or item.url
            item.title = tab.title
        return tabs

    async def _live_groups(
        self, window_id: int, window: WindowState, report: WindowReport
    ) -> Optional[list[GroupInfo]]:
        try:
            groups = await self._host.groups.list_groups(window_id)
        except ProviderError as exc:
            LOGGER.warning("Unable to list groups for window %s: %s", window_id, exc)
            report.errors.append(str(exc))
            return None
        live_ids = {group.id for group in groups}
        for kind in SPECIAL_KINDS:
            group_id = window.special_groups.get(kind)
            if group_id is not None and group_id not in live_ids:
                LOGGER.debug("Special %s group %s is gone; clearing reference", kind.value, group_id)
                window.special_groups.set(kind, None)
        for group_id in set(window.group_zones) | set(window.group_naming) | set(window.extension_groups):
            if group_id not in live_ids:
                window.forget_group(group_id)
                self._ledger.forget(group_id)
        return groups

    # Step 1 -----------------------------------------------------------

    async def _place_ungrouped(
        self,
        window_id: int,
        state: EngineState,
        window: WindowState,
        tabs: list[TabInfo],
        config: TabCycleConfig,
        report: WindowReport,
    ) -> None:
        for tab in tabs:
            item = state.items.get(tab.id)
            if item is None:
                continue
            current_kind = window.special_groups.kind_of(item.group_id)
            try:
                if item.status in SPECIAL_KINDS and (item.group_id is None or current_kind is not None):
                    if current_kind != item.status:
                        await self._move_to_special(window_id, item, window, config)
                        report.moved_to_special += 1
                elif item.status == ItemStatus.GREEN and current_kind is not None:
                    await self._host.tabs.ungroup_tab(item.item_id)
                    await self._host.tabs.move_tab(item.item_id, 0)
                    item.group_id = None
                    item.in_special_group = False
                    report.released += 1
            except ProviderError as exc:
                LOGGER.warning("Failed to place tab %s in window %s: %s", item.item_id, window_id, exc)
                report.errors.append(str(exc))

    async def _move_to_special(
        self,
        window_id: int,
        item: ItemRecord,
        window: WindowState,
        config: TabCycleConfig,
    ) -> None:
        kind = item.status
        group_id = window.special_groups.get(kind)
        if group_id is not None and await self._host.groups.get_group(group_id) is None:
            window.special_groups.set(kind, None)
            group_id = None

        if group_id is None:
            group_id = await self._host.tabs.group_tabs([item.item_id], window_id=window_id)
            window.special_groups.set(kind, group_id)
            title = special_group_title(kind, config)
            self._ledger.record(group_id, title=title, color=kind.value)
            await self._host.groups.update_group(group_id, title=title, color=kind.value)
            LOGGER.info("Created special %s group %s in window %s", kind.value, group_id, window_id)
        else:
            await self._host.tabs.group_tabs([item.item_id], group_id=group_id)
        item.group_id = group_id
        item.in_special_group = True

    # Step 2 -----------------------------------------------------------

    def _aggregate(
        self,
        state: EngineState,
        window: WindowState,
        groups: list[GroupInfo],
    ) -> dict[int, ItemStatus]:
        zones: dict[int, ItemStatus] = {}
        for group in groups:
            if window.is_special(group.id):
                continue
            zone = group_zone(state.group_members(group.id))
            if zone is None:
                continue
            zones[group.id] = zone
            if zone != ItemStatus.GONE:
                window.group_zones[group.id] = zone
        return zones

    # Step 3 -----------------------------------------------------------

    async def _retire_terminal(
        self,
        state: EngineState,
        window: WindowState,
        groups: list[GroupInfo],
        zones: dict[int, ItemStatus],
        archive: ArchiveSession,
        report: WindowReport,
    ) -> bool:
        touched = False
        for item in list(state.items_in_window(report.window_id)):
            if item.status != ItemStatus.GONE:
                continue
            if item.group_id is not None and not window.is_special(item.group_id):
                continue
            touched = True
            if await archive.retire_item(item):
                del state.items[item.item_id]
                report.retired.append(item.item_id)

        for group in groups:
            if zones.get(group.id) != ItemStatus.GONE:
                continue
            touched = True
            members = state.group_members(group.id)
            removed = await archive.retire_group(parse(group.title).base_name, members)
            for item_id in removed:
                state.items.pop(item_id, None)
            report.retired.extend(removed)
            if len(removed) == len(members):
                window.forget_group(group.id)
                self._ledger.forget(group.id)
                LOGGER.info("Retired gone group %s (%d tabs)", group.id, len(removed))
        return touched

    # Step 4 -----------------------------------------------------------

    async def _order_zones(
        self,
        window: WindowState,
        groups: list[GroupInfo],
        zones: dict[int, ItemStatus],
        report: WindowReport,
    ) -> None:
        specials = {kind: window.special_groups.get(kind) for kind in SPECIAL_KINDS}
        live_ids = {group.id for group in groups}
        ranked = [
            group.id
            for group in groups
            if group.id in zones and zones[group.id] != ItemStatus.GONE and not window.is_special(group.id)
        ]
        ranked.sort(key=lambda group_id: zones[group_id].rank)

        desired: list[int] = []
        pending = [
            (kind, group_id)
            for kind, group_id in specials.items()
            if group_id is not None and group_id in live_ids
        ]
        for group_id in ranked:
            while pending and zones[group_id].rank >= pending[0][0].rank:
                desired.append(pending.pop(0)[1])
            desired.append(group_id)
        desired.extend(group_id for _, group_id in pending)

        current = [group.id for group in groups if group.id in desired]
        if current == desired:
            return
        for group_id in desired:
            try:
                await self._host.groups.move_group(group_id, -1)
                report.groups_moved += 1
            except ProviderError as exc:
                LOGGER.warning("Failed to move group %s into zone order: %s", group_id, exc)
                report.errors.append(str(exc))

    # Step 5 -----------------------------------------------------------

    async def _cleanup(
        self,
        window_id: int,
        state: EngineState,
        window: WindowState,
        report: WindowReport,
    ) -> None:
        if not window.extension_groups:
            return
        try:
            groups = {group.id: group for group in await self._host.groups.list_groups(window_id)}
            tabs = await self._host.tabs.list_tabs(window_id)
        except ProviderError as exc:
            LOGGER.warning("Skipping group cleanup for window %s: %s", window_id, exc)
            report.errors.append(str(exc))
            return

        for group_id in list(window.extension_groups):
            group = groups.get(group_id)
            if group is None:
                window.forget_group(group_id)
                continue
            if window.is_special(group_id) or parse(group.title).base_name:
                continue
            members = [tab for tab in tabs if tab.group_id == group_id]
            if len(members) > 1:
                continue
            try:
                for tab in members:
                    await self._host.tabs.ungroup_tab(tab.id)
                    item = state.items.get(tab.id)
                    if item is not None:
                        item.group_id = None
                        item.in_special_group = False
            except ProviderError as exc:
                LOGGER.warning("Failed to dissolve group %s: %s", group_id, exc)
                report.errors.append(str(exc))
                continue
            window.forget_group(group_id)
            self._ledger.forget(group_id)
            report.dissolved += 1
            LOGGER.debug("Dissolved unnamed single-tab group %s", group_id)

    # Step 6 -----------------------------------------------------------

    async def _apply_visuals(
        self,
        state: EngineState,
        window: WindowState,
        groups: list[GroupInfo],
        zones: dict[int, ItemStatus],
        config: TabCycleConfig,
        report: WindowReport,
        *,
        active_time: float,
        now: float,
    ) -> None:
        for group in groups:
            if window.is_special(group.id):
                continue
            members = state.group_members(group.id)
            if not members:
                continue
            zone = zones.get(group.id)
            parsed = parse(group.title)
            naming = window.group_naming.setdefault(group.id, NamingRecord())

            base_name = parsed.base_name
            candidate_text: Optional[str] = None
            if not base_name:
                if naming.first_unnamed_seen_at is None:
                    naming.first_unnamed_seen_at = now
                if self._naming_allowed(naming, config, now):
                    candidate = generate_group_name(members)
                    if candidate is not None:
                        candidate_text = candidate.text
                        base_name = candidate.text
            else:
                naming.first_unnamed_seen_at = None

            annotation = ""
            if config.aging.show_group_age:
                age = group_age(members, active_time=active_time, now=now, config=config)
                annotation = format_age(age)
            title = compose(base_name, annotation)

            color: Optional[str] = None
            if config.aging.group_coloring_enabled and zone in ZONE_COLORS:
                wanted = ZONE_COLORS[zone]
                if wanted != group.color:
                    color = wanted

            new_title = title if title != group.title else None
            if new_title is None and color is None:
                continue

            if new_title is not None:
                unchanged = False
                try:
                    live = await self._host.groups.get_group(group.id)
                    if live is None:
                        continue
                    unchanged = live.title == group.title
                except ProviderError as exc:
                    LOGGER.warning("Unable to re-read group %s before writing: %s", group.id, exc)
                    report.errors.append(str(exc))
                if not unchanged:
                    LOGGER.debug("Group %s title may have changed underneath; keeping it", group.id)
                    new_title = None
                    candidate_text = None
                    if color is None:
                        continue

            self._ledger.record(group.id, title=new_title, color=color)
            try:
                await self._host.groups.update_group(group.id, title=new_title, color=color)
            except ProviderError as exc:
                LOGGER.warning("Failed to update group %s: %s", group.id, exc)
                report.errors.append(str(exc))
                continue

            if new_title is not None:
                report.title_updates += 1
            if color is not None:
                report.color_updates += 1
            if candidate_text is not None:
                naming.last_auto_named_at = now
                naming.last_candidate = candidate_text
                naming.first_unnamed_seen_at = None
                report.renamed += 1
                LOGGER.info("Named group %s %r", group.id, candidate_text)

    @staticmethod
    def _naming_allowed(naming: NamingRecord, config: TabCycleConfig, now: float) -> bool:
        if not config.naming.enabled or naming.first_unnamed_seen_at is None:
            return False
        if now - naming.first_unnamed_seen_at < config.naming.delay_minutes * 60.0:
            return False
        return not naming.is_locked(now)


__all__ = ["ZoneManager", "WindowReport", "ZONE_COLORS", "group_zone", "group_age", "special_group_title"]
