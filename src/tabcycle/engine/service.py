"""Engine service that owns the model, runs cycles and reacts to host events."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections import deque
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from tabcycle.aging.accumulator import ActiveTimeAccumulator
from tabcycle.config import ConfigManager
from tabcycle.config.exceptions import ConfigError
from tabcycle.config.models import TabCycleConfig
from tabcycle.naming.titles import parse
from tabcycle.organization.archive import ArchiveCoordinator
from tabcycle.organization.ledger import WriteLedger
from tabcycle.organization.placement import TabPlacer
from tabcycle.organization.zones import ZONE_COLORS, ZoneManager, group_zone, special_group_title
from tabcycle.providers import Host, ProviderError
from tabcycle.state import MissingStateError, StateError, StateRepository
from tabcycle.state.models import SPECIAL_KINDS, EngineState, ItemRecord, ItemStatus, NamingRecord

from .cycle import CycleReport, EvaluationCycle
from .events import (
    Event,
    FocusChanged,
    GroupRemoved,
    GroupUpdated,
    Navigated,
    SettingsChanged,
    TabAttached,
    TabCreated,
    TabRemoved,
    TabUpdated,
    WindowRemoved,
)
from .guard import CycleGuard
from .reconcile import ReconcileReport, StateReconciler

LOGGER = logging.getLogger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog handler that reports changes to a single configuration file."""

    def __init__(self, path: Path, notify: Callable[[], None]) -> None:
        super().__init__()
        self._path = path.resolve()
        self._notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in {"modified", "created", "moved"}:
            return
        candidates = [event.src_path, getattr(event, "dest_path", "")]
        for candidate in candidates:
            if candidate and Path(os.fsdecode(candidate)).resolve() == self._path:
                self._notify()
                return


class EngineService:
    """Own the engine model and serialize every mutation of it.

    Periodic cycles and event handlers both take the :class:`CycleGuard`
    before touching the model. Events that arrive while the guard is held are
    queued and replayed once it is released. Cycles work on a deep copy that
    replaces the live model only when the cycle completes in time, and each
    commit is persisted as a single document.
    """

    def __init__(
        self,
        host: Host,
        config: TabCycleConfig,
        *,
        config_manager: Optional[ConfigManager] = None,
        repository: Optional[StateRepository] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the service.

        Args:
            host: Providers for the host runtime.
            config: Initial settings.
            config_manager: Manager used to reload settings from disk.
            repository: State repository; defaults to ``engine.state_dir``.
            clock: Callable returning the current epoch time in seconds.
        """
        self._host = host
        self._config = config
        self._config_manager = config_manager
        self._repository = repository or StateRepository(Path(config.engine.state_dir))
        self._clock = clock
        self._state = self._load_state()
        self._accumulator = ActiveTimeAccumulator(self._state.active_time, clock=clock)
        self._ledger = WriteLedger(clock=clock)
        self._guard = CycleGuard(config.engine.cycle_timeout_seconds, clock=clock)
        self._zones = ZoneManager(host, self._ledger)
        self._placer = TabPlacer(host, self._ledger)
        self._cycle = EvaluationCycle(
            host,
            self._accumulator,
            self._zones,
            ArchiveCoordinator(host.archive, host.tabs),
            clock=clock,
        )
        self._reconciler = StateReconciler(host)
        self._deferred: deque[Event] = deque()
        self._draining = False
        self._starting = False
        self._cycle_requested = False
        self._last_navigation: dict[int, float] = {}
        self._restored_at: dict[int, float] = {}
        self._background: set[asyncio.Future[Any]] = set()
        self._handlers: dict[type, Callable[[Any], Awaitable[None]]] = {
            TabCreated: self._on_tab_created,
            TabRemoved: self._on_tab_removed,
            TabUpdated: self._on_tab_updated,
            Navigated: self._on_navigated,
            WindowRemoved: self._on_window_removed,
            GroupUpdated: self._on_group_updated,
            GroupRemoved: self._on_group_removed,
            TabAttached: self._on_tab_attached,
            SettingsChanged: self._on_settings_changed,
        }

    # Accessors --------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def settings(self) -> TabCycleConfig:
        return self._config

    @property
    def guard(self) -> CycleGuard:
        return self._guard

    @property
    def accumulator(self) -> ActiveTimeAccumulator:
        return self._accumulator

    @property
    def ledger(self) -> WriteLedger:
        return self._ledger

    @property
    def pending_events(self) -> int:
        return len(self._deferred)

    # Lifecycle --------------------------------------------------------

    async def startup(self, *, reconcile: bool = True) -> Optional[CycleReport]:
        """Recover active time, reconcile against the live world and run a first cycle.

        Returns:
            Optional[CycleReport]: Report of the first cycle, if it ran.
        """
        self._starting = True
        try:
            self._accumulator.recover()
            try:
                windows = await self._host.windows.list_windows()
            except ProviderError as exc:
                LOGGER.warning("Unable to read window focus: %s", exc)
            else:
                self._accumulator.on_focus_changed(next((w.id for w in windows if w.focused), None))
            if reconcile:
                await self.reconcile()
            # Events queued behind reconciliation keep startup semantics.
            await self.process_deferred()
        finally:
            self._starting = False
        return await self.run_cycle()

    async def reconcile(self) -> Optional[ReconcileReport]:
        """Converge the model to the live world without resetting known ages."""
        ticket = self._guard.try_enter()
        if ticket is None:
            LOGGER.info("Reconciliation skipped; engine busy")
            return None
        try:
            working = self._state.model_copy(deep=True)
            report = await self._reconciler.reconcile(
                working,
                active_time=self._accumulator.current_total(),
                now=self._clock(),
            )
        except ProviderError as exc:
            LOGGER.warning("Reconciliation failed: %s", exc)
            return None
        finally:
            self._guard.leave(ticket)
        self._state = working
        self._save()
        return report

    async def run_cycle(self) -> Optional[CycleReport]:
        """Run one evaluation cycle now.

        Returns:
            Optional[CycleReport]: Cycle report, or ``None`` when the cycle was
            skipped because another holder owns the guard or it timed out.
        """
        ticket = self._guard.try_enter()
        if ticket is None:
            LOGGER.debug("Evaluation cycle already in progress; skipping tick")
            return None
        report: Optional[CycleReport] = None
        timeout = self._config.engine.cycle_timeout_seconds
        try:
            working = self._state.model_copy(deep=True)
            report = await asyncio.wait_for(self._cycle.run(working, self._config), timeout=timeout)
        except asyncio.TimeoutError:
            self._guard.expire(ticket)
            LOGGER.warning("Evaluation cycle exceeded %.0fs; discarding its changes", timeout)
        else:
            self._state = working
            self._save()
            if report.archive_folder_renamed:
                self._adopt_setting("archive", "folder_name", report.archive_folder_renamed)
        finally:
            self._guard.leave(ticket)
        await self.process_deferred()
        return report

    async def run_forever(self, stop: Optional[asyncio.Event] = None, *, watch_config: bool = True) -> None:
        """Run cycles every ``engine.tick_seconds`` until ``stop`` is set.

        Args:
            stop: Event ending the loop; runs until cancelled when omitted.
            watch_config: Reload settings when the configuration file changes.
        """
        stop = stop or asyncio.Event()
        observer = self._start_config_watch(asyncio.get_running_loop()) if watch_config else None
        try:
            while not stop.is_set():
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self._config.engine.tick_seconds)
                except asyncio.TimeoutError:
                    try:
                        await self.run_cycle()
                    except Exception:  # noqa: BLE001
                        LOGGER.exception("Evaluation cycle failed; continuing on the next tick")
        finally:
            if observer is not None:
                observer.stop()
                observer.join()

    # Events -----------------------------------------------------------

    async def dispatch(self, event: Event) -> None:
        """Handle ``event`` now, or queue it while the guard is held."""
        if isinstance(event, FocusChanged):
            self._accumulator.on_focus_changed(event.window_id)
            self._save()
            return

        ticket = None if self._guard.placement_in_progress else self._guard.try_enter()
        if ticket is None:
            self._deferred.append(event)
            LOGGER.debug("Deferred %s until the engine is idle", type(event).__name__)
            return
        try:
            await self._handlers[type(event)](event)
        except ProviderError as exc:
            LOGGER.warning("Handling %s failed: %s", type(event).__name__, exc)
        finally:
            self._guard.leave(ticket)
        self._save()

        if self._cycle_requested:
            self._cycle_requested = False
            await self.run_cycle()
        else:
            await self.process_deferred()

    async def process_deferred(self) -> int:
        """Replay queued events in arrival order.

        Returns:
            int: Number of events replayed.
        """
        if self._draining:
            return 0
        self._draining = True
        replayed = 0
        try:
            while self._deferred and not self._guard.busy:
                await self.dispatch(self._deferred.popleft())
                replayed += 1
        finally:
            self._draining = False
        return replayed

    async def reload_settings(self) -> bool:
        """Reload settings from disk, keeping the current ones when invalid.

        Returns:
            bool: ``True`` when new settings were applied.
        """
        if self._config_manager is None:
            return False
        if not self._config_manager.changed_on_disk():
            LOGGER.debug("Configuration file unchanged since last read; nothing to reload")
            return False
        try:
            updated = self._config_manager.load(ensure_file=False)
        except ConfigError as exc:
            LOGGER.warning("Rejected configuration update: %s", exc)
            return False
        return await self.update_settings(updated)

    async def update_settings(self, config: TabCycleConfig) -> bool:
        if config == self._config:
            return False
        await self.dispatch(SettingsChanged(previous=self._config, current=config))
        return True

    # Handlers ---------------------------------------------------------

    def _fresh_item(
        self, tab_id: int, window_id: int, *, group_id: Optional[int], url: str, title: str
    ) -> ItemRecord:
        return ItemRecord(
            item_id=tab_id,
            window_id=window_id,
            group_id=group_id,
            refresh_active_time=self._accumulator.current_total(),
            refresh_wall_time=self._clock(),
            url=url,
            title=title,
        )

    async def _on_tab_created(self, event: TabCreated) -> None:
        tab = event.tab
        if tab.pinned:
            return
        if tab.id in self._state.items:
            LOGGER.debug("Tab %s already tracked; keeping its age", tab.id)
            return
        window = self._state.ensure_window(tab.window_id)
        item = self._fresh_item(tab.id, tab.window_id, group_id=tab.group_id, url=tab.url, title=tab.title)
        item.in_special_group = window.is_special(tab.group_id)
        self._state.items[tab.id] = item
        if self._starting:
            return
        self._guard.placement_in_progress = True
        try:
            await self._placer.place(tab, self._state, self._config.placement)
        finally:
            self._guard.placement_in_progress = False

    async def _on_tab_removed(self, event: TabRemoved) -> None:
        self._state.items.pop(event.tab_id, None)
        self._last_navigation.pop(event.tab_id, None)
        self._restored_at.pop(event.tab_id, None)

    async def _on_tab_updated(self, event: TabUpdated) -> None:
        tab = event.tab
        if "discarded" in event.changed and not tab.discarded:
            self._restored_at[tab.id] = self._clock()
        if "pinned" in event.changed:
            if tab.pinned:
                self._state.items.pop(tab.id, None)
                LOGGER.debug("Tab %s pinned; no longer tracked", tab.id)
            else:
                self._state.items[tab.id] = self._fresh_item(
                    tab.id, tab.window_id, group_id=tab.group_id, url=tab.url, title=tab.title
                )
                LOGGER.debug("Tab %s unpinned; tracked as fresh", tab.id)
            return
        item = self._state.items.get(tab.id)
        if item is None:
            return
        if "group_id" in event.changed:
            window = self._state.ensure_window(tab.window_id)
            item.group_id = tab.group_id
            item.in_special_group = window.is_special(tab.group_id)
        if "title" in event.changed:
            item.title = tab.title

    async def _on_navigated(self, event: Navigated) -> None:
        if self._starting:
            LOGGER.debug("Ignoring navigation of tab %s during startup", event.tab_id)
            return
        now = self._clock()
        engine = self._config.engine
        last = self._last_navigation.get(event.tab_id)
        if last is not None and now - last < engine.navigation_debounce_seconds:
            LOGGER.debug("Navigation of tab %s debounced", event.tab_id)
            return
        self._last_navigation[event.tab_id] = now

        restored = self._restored_at.pop(event.tab_id, None)
        if restored is not None and now - restored <= engine.restore_suppression_seconds:
            LOGGER.debug("Ignoring navigation right after tab %s was restored", event.tab_id)
            return

        tab = await self._host.tabs.get_tab(event.tab_id)
        if tab is None or tab.discarded:
            return
        item = self._state.items.get(tab.id)
        if item is None:
            return
        url = event.url or tab.url
        if url and item.url and url == item.url:
            LOGGER.debug("Navigation of tab %s kept the stored URL; age unchanged", tab.id)
            return

        item.refresh(active_time=self._accumulator.current_total(), now=now)
        item.url = url or item.url
        window = self._state.ensure_window(tab.window_id)
        kind = window.special_groups.kind_of(tab.group_id)
        if kind is not None:
            special_id = tab.group_id
            await self._host.tabs.ungroup_tab(tab.id)
            item.group_id = None
            item.in_special_group = False
            try:
                await self._host.tabs.move_tab(tab.id, 0)
            except ProviderError as exc:
                LOGGER.warning("Failed to move refreshed tab %s leftmost: %s", tab.id, exc)
            if special_id is not None and await self._host.groups.get_group(special_id) is None:
                window.special_groups.set(kind, None)
            return

        aging = self._config.aging
        if tab.group_id is not None and aging.enabled and aging.group_coloring_enabled:
            zone = group_zone(self._state.group_members(tab.group_id))
            color = ZONE_COLORS.get(zone) if zone is not None else None
            group = await self._host.groups.get_group(tab.group_id)
            if color is not None and group is not None and group.color != color:
                self._ledger.record(group.id, color=color)
                await self._host.groups.update_group(group.id, color=color)

    async def _on_window_removed(self, event: WindowRemoved) -> None:
        self._state.drop_window(event.window_id)
        LOGGER.info("Window %s closed; dropped its state", event.window_id)

    async def _on_group_updated(self, event: GroupUpdated) -> None:
        group = event.group
        window = self._state.ensure_window(group.window_id)
        title_echo = self._ledger.consume(group.id, "title", group.title)
        color_echo = self._ledger.consume(group.id, "color", group.color)

        kind = window.special_groups.kind_of(group.id)
        if kind is not None:
            if not title_echo:
                self._adopt_special_name(kind, group.title)
            return
        if title_echo or color_echo:
            LOGGER.debug("Group %s update is an echo of an engine write", group.id)
            return

        naming = window.group_naming.setdefault(group.id, NamingRecord())
        naming.user_edit_lock_until = self._clock() + self._config.naming.user_edit_lock_seconds
        if parse(group.title).base_name:
            naming.first_unnamed_seen_at = None
        LOGGER.debug("User edited group %s; auto-naming locked", group.id)

    def _adopt_special_name(self, kind: ItemStatus, title: str) -> None:
        self._adopt_setting("aging", f"{kind.value}_group_name", title)

    def _adopt_setting(self, section: str, field_name: str, value: str) -> None:
        """Take a name the user gave an engine-owned object as the configured one."""
        if getattr(getattr(self._config, section), field_name) == value:
            return
        updated = self._config.model_copy(deep=True)
        setattr(getattr(updated, section), field_name, value)
        self._config = updated
        LOGGER.info("Adopted user rename: %s.%s = %r", section, field_name, value)
        if self._config_manager is None:
            return
        try:
            self._config_manager.update({f"{section}.{field_name}": value})
        except (ConfigError, OSError) as exc:
            LOGGER.warning("Unable to persist %s.%s: %s", section, field_name, exc)

    async def _on_group_removed(self, event: GroupRemoved) -> None:
        window = self._state.windows.get(event.window_id)
        if window is not None:
            window.forget_group(event.group_id)
        self._ledger.forget(event.group_id)
        for item in self._state.items.values():
            if item.group_id == event.group_id:
                item.group_id = None
                item.in_special_group = False

    async def _on_tab_attached(self, event: TabAttached) -> None:
        item = self._state.items.get(event.tab_id)
        if item is None:
            return
        self._state.ensure_window(event.window_id)
        item.window_id = event.window_id
        item.group_id = None
        item.in_special_group = False

    async def _on_settings_changed(self, event: SettingsChanged) -> None:
        previous, current = event.previous, event.current
        self._config = current
        self._guard.timeout = current.engine.cycle_timeout_seconds

        if not previous.aging.enabled and current.aging.enabled:
            self._apply_age_cap(current)
        if previous.aging.tab_sorting_enabled and not current.aging.tab_sorting_enabled:
            await self._dissolve_special_groups()
        elif (
            previous.aging.yellow_group_name != current.aging.yellow_group_name
            or previous.aging.red_group_name != current.aging.red_group_name
        ):
            await self._rename_special_groups(current)
        LOGGER.info("Settings changed; re-evaluating")
        self._cycle_requested = True

    def _apply_age_cap(self, config: TabCycleConfig) -> None:
        """Clamp anchors so no tab is older than the gone threshold plus one minute."""
        cap = config.aging.thresholds.red_to_gone_minutes * 60.0 + 60.0
        wall_floor = self._clock() - cap
        active_floor = self._accumulator.current_total() - cap
        capped = 0
        for item in self._state.items.values():
            changed = False
            if item.refresh_wall_time < wall_floor:
                item.refresh_wall_time = wall_floor
                changed = True
            if item.refresh_active_time < active_floor:
                item.refresh_active_time = active_floor
                changed = True
            capped += int(changed)
        if capped:
            LOGGER.info("Capped the age of %d tabs after aging was re-enabled", capped)

    async def _dissolve_special_groups(self) -> None:
        for window_id, window in self._state.windows.items():
            for kind in SPECIAL_KINDS:
                group_id = window.special_groups.get(kind)
                if group_id is None:
                    continue
                try:
                    for tab in await self._host.tabs.list_tabs(window_id):
                        if tab.group_id == group_id:
                            await self._host.tabs.ungroup_tab(tab.id)
                except ProviderError as exc:
                    LOGGER.warning("Failed to dissolve special group %s: %s", group_id, exc)
                    continue
                window.special_groups.set(kind, None)
                for item in self._state.items.values():
                    if item.group_id == group_id:
                        item.group_id = None
                        item.in_special_group = False
                LOGGER.info("Dissolved special %s group %s", kind.value, group_id)

    async def _rename_special_groups(self, config: TabCycleConfig) -> None:
        for window in self._state.windows.values():
            for kind in SPECIAL_KINDS:
                group_id = window.special_groups.get(kind)
                if group_id is None:
                    continue
                title = special_group_title(kind, config)
                self._ledger.record(group_id, title=title)
                try:
                    await self._host.groups.update_group(group_id, title=title)
                except ProviderError as exc:
                    LOGGER.warning("Failed to rename special group %s: %s", group_id, exc)

    # Internal helpers -------------------------------------------------

    def _load_state(self) -> EngineState:
        try:
            return self._repository.load()
        except MissingStateError:
            LOGGER.info("No persisted state; starting fresh")
        except StateError as exc:
            LOGGER.warning("Discarding unreadable engine state: %s", exc)
        return EngineState()

    def _save(self) -> None:
        self._state.active_time = self._accumulator.snapshot()
        try:
            self._repository.save(self._state)
        except OSError as exc:
            LOGGER.error("Failed to persist engine state: %s", exc)

    def _start_config_watch(self, loop: asyncio.AbstractEventLoop) -> Optional[BaseObserver]:
        if self._config_manager is None:
            return None
        path = self._config_manager.config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = ConfigFileHandler(path, lambda: loop.call_soon_threadsafe(self._schedule_reload))
        observer = Observer()
        observer.schedule(handler, str(path.parent), recursive=False)
        observer.start()
        return observer

    def _schedule_reload(self) -> None:
        task = asyncio.ensure_future(self.reload_settings())
        self._background.add(task)
        task.add_done_callback(self._background.discard)


__all__ = ["EngineService", "ConfigFileHandler"]
