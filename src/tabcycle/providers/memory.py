"""In-memory host used for simulation runs and tests."""

from __future__ import annotations

import itertools
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Mapping, Optional, Sequence

from . import FolderInfo, GroupInfo, Host, ProviderError, TabInfo, WindowInfo


@dataclass(slots=True)
class ArchiveEntry:
    """Archived reference to a closed tab."""

    id: str
    folder_id: str
    title: str
    url: str


class InMemoryHost:
    """Host runtime that keeps windows, tab strips, groups and archive folders in memory.

    Tabs are stored per window as an ordered strip; a tab's ``index`` is its
    position in that strip. Groups disappear once their last member leaves,
    mirroring how browsers drop empty tab groups. Calls named in ``fail_on``
    raise :class:`ProviderError`, and callables registered in ``hooks`` run
    before the matching call so tests can interleave "user" actions with the
    engine's awaits.
    """

    def __init__(self) -> None:
        self._windows: dict[int, WindowInfo] = {}
        self._strips: dict[int, list[int]] = {}
        self._tabs: dict[int, TabInfo] = {}
        self._groups: dict[int, GroupInfo] = {}
        self.folders: dict[str, FolderInfo] = {}
        self.entries: list[ArchiveEntry] = []
        self.group_updates: list[GroupInfo] = []
        self.fail_on: set[str] = set()
        self.hooks: dict[str, Callable[[], None]] = {}
        self._tab_ids = itertools.count(1000)
        self._group_ids = itertools.count(500)
        self._node_ids = itertools.count(1)

    # Construction helpers ---------------------------------------------

    def as_host(self) -> Host:
        """Return this object bundled as a :class:`Host`."""
        return Host(tabs=self, groups=self, windows=self, archive=self)

    def add_window(self, window_id: int, *, focused: bool = False) -> WindowInfo:
        window = WindowInfo(id=window_id, focused=focused)
        self._windows[window_id] = window
        self._strips.setdefault(window_id, [])
        return replace(window)

    def add_tab(
        self,
        window_id: int,
        *,
        url: str = "",
        title: str = "",
        tab_id: Optional[int] = None,
        pinned: bool = False,
        group_id: Optional[int] = None,
        discarded: bool = False,
        opener_id: Optional[int] = None,
        index: Optional[int] = None,
    ) -> TabInfo:
        """Open a tab in ``window_id`` and return a copy of it."""
        if window_id not in self._windows:
            self.add_window(window_id)
        new_id = tab_id if tab_id is not None else next(self._tab_ids)
        if new_id in self._tabs:
            raise ValueError(f"Tab {new_id} already exists")
        tab = TabInfo(
            id=new_id,
            window_id=window_id,
            pinned=pinned,
            url=url,
            title=title,
            discarded=discarded,
            opener_id=opener_id,
        )
        self._tabs[new_id] = tab
        strip = self._strips[window_id]
        if pinned:
            strip.insert(self._pinned_count(window_id), new_id)
        elif index is None:
            strip.append(new_id)
        else:
            strip.insert(self._clamp(window_id, index, pinned=False), new_id)
        self._reindex(window_id)
        if group_id is not None:
            self._join_group([new_id], group_id)
        return replace(tab)

    def add_group(
        self,
        window_id: int,
        tab_ids: Sequence[int],
        *,
        title: str = "",
        color: str = "grey",
        group_id: Optional[int] = None,
    ) -> GroupInfo:
        """Create a group from existing tabs, as a user would."""
        new_id = group_id if group_id is not None else next(self._group_ids)
        self._groups[new_id] = GroupInfo(id=new_id, window_id=window_id, title=title, color=color)
        self._join_group(list(tab_ids), new_id)
        return replace(self._groups[new_id])

    def rename_group(self, group_id: int, title: str) -> None:
        """Apply a user title edit without recording it as an engine write."""
        self._require_group(group_id).title = title

    def close_tab(self, tab_id: int) -> None:
        """Close a tab as a user would."""
        self._drop_tab(tab_id)

    # TabProvider ------------------------------------------------------

    async def list_tabs(self, window_id: Optional[int] = None) -> list[TabInfo]:
        self._enter("list_tabs")
        window_ids = [window_id] if window_id is not None else list(self._strips)
        tabs: list[TabInfo] = []
        for wid in window_ids:
            tabs.extend(replace(self._tabs[tab_id]) for tab_id in self._strips.get(wid, []))
        return tabs

    async def get_tab(self, tab_id: int) -> Optional[TabInfo]:
        self._enter("get_tab")
        tab = self._tabs.get(tab_id)
        return replace(tab) if tab is not None else None

    async def move_tab(self, tab_id: int, index: int) -> None:
        self._enter("move_tab")
        tab = self._require_tab(tab_id)
        strip = self._strips[tab.window_id]
        strip.remove(tab_id)
        if index < 0:
            strip.append(tab_id)
        else:
            strip.insert(self._clamp(tab.window_id, index, pinned=tab.pinned), tab_id)
        self._reindex(tab.window_id)

    async def group_tabs(
        self,
        tab_ids: Sequence[int],
        *,
        group_id: Optional[int] = None,
        window_id: Optional[int] = None,
    ) -> int:
        self._enter("group_tabs")
        if not tab_ids:
            raise ProviderError("group_tabs requires at least one tab")
        tabs = [self._require_tab(tab_id) for tab_id in tab_ids]
        if group_id is None:
            owner = window_id if window_id is not None else tabs[0].window_id
            group_id = next(self._group_ids)
            self._groups[group_id] = GroupInfo(id=group_id, window_id=owner)
        else:
            self._require_group(group_id)
        self._join_group(list(tab_ids), group_id)
        return group_id

    async def ungroup_tab(self, tab_id: int) -> None:
        self._enter("ungroup_tab")
        tab = self._require_tab(tab_id)
        group_id = tab.group_id
        if group_id is None:
            return
        tab.group_id = None
        strip = self._strips[tab.window_id]
        remaining = [idx for idx, tid in enumerate(strip) if self._tabs[tid].group_id == group_id]
        if remaining and strip.index(tab_id) < remaining[-1]:
            strip.remove(tab_id)
            strip.insert(remaining[-1], tab_id)
        self._reindex(tab.window_id)
        self._collect_group(group_id)

    async def remove_tab(self, tab_id: int) -> None:
        self._enter("remove_tab")
        self._require_tab(tab_id)
        self._drop_tab(tab_id)

    # GroupProvider ----------------------------------------------------

    async def list_groups(self, window_id: int) -> list[GroupInfo]:
        self._enter("list_groups")
        first_index: dict[int, int] = {}
        for position, tab_id in enumerate(self._strips.get(window_id, [])):
            group_id = self._tabs[tab_id].group_id
            if group_id is not None and group_id not in first_index:
                first_index[group_id] = position
        ordered = sorted(first_index, key=first_index.__getitem__)
        return [replace(self._groups[group_id]) for group_id in ordered]

    async def get_group(self, group_id: int) -> Optional[GroupInfo]:
        self._enter("get_group")
        group = self._groups.get(group_id)
        return replace(group) if group is not None else None

    async def update_group(
        self,
        group_id: int,
        *,
        title: Optional[str] = None,
        color: Optional[str] = None,
    ) -> GroupInfo:
        self._enter("update_group")
        group = self._require_group(group_id)
        if title is not None:
            group.title = title
        if color is not None:
            group.color = color
        self.group_updates.append(replace(group))
        return replace(group)

    async def move_group(self, group_id: int, index: int = -1) -> None:
        self._enter("move_group")
        group = self._require_group(group_id)
        strip = self._strips[group.window_id]
        members = [tab_id for tab_id in strip if self._tabs[tab_id].group_id == group_id]
        for tab_id in members:
            strip.remove(tab_id)
        floor = self._pinned_count(group.window_id)
        position = len(strip) if index < 0 else max(floor, min(index, len(strip)))
        strip[position:position] = members
        self._reindex(group.window_id)

    # WindowProvider ---------------------------------------------------

    async def list_windows(self) -> list[WindowInfo]:
        self._enter("list_windows")
        return [replace(window) for window in self._windows.values()]

    # ArchiveProvider --------------------------------------------------

    async def get_folder(self, folder_id: str) -> Optional[FolderInfo]:
        self._enter("get_folder")
        folder = self.folders.get(folder_id)
        return replace(folder) if folder is not None else None

    async def find_folder(self, title: str, parent_id: Optional[str] = None) -> Optional[FolderInfo]:
        self._enter("find_folder")
        for folder in self.folders.values():
            if folder.title == title and folder.parent_id == parent_id:
                return replace(folder)
        return None

    async def create_folder(self, title: str, parent_id: Optional[str] = None) -> FolderInfo:
        self._enter("create_folder")
        folder = FolderInfo(id=str(next(self._node_ids)), title=title, parent_id=parent_id)
        self.folders[folder.id] = folder
        return replace(folder)

    async def add_entry(self, folder_id: str, title: str, url: str) -> str:
        self._enter("add_entry")
        if folder_id not in self.folders:
            raise ProviderError(f"Unknown archive folder {folder_id}")
        entry = ArchiveEntry(id=str(next(self._node_ids)), folder_id=folder_id, title=title, url=url)
        self.entries.append(entry)
        return entry.id

    def entries_in(self, folder_id: str) -> list[ArchiveEntry]:
        return [entry for entry in self.entries if entry.folder_id == folder_id]

    # Snapshots --------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        """Return a JSON-ready description of the whole world."""
        return {
            "windows": [
                {
                    "id": window.id,
                    "focused": window.focused,
                    "tabs": [self._tab_payload(self._tabs[tab_id]) for tab_id in self._strips[window.id]],
                }
                for window in self._windows.values()
            ],
            "groups": [asdict(group) for group in self._groups.values()],
            "folders": [asdict(folder) for folder in self.folders.values()],
            "entries": [asdict(entry) for entry in self.entries],
        }

    @classmethod
    def from_snapshot(cls, payload: Mapping[str, Any]) -> "InMemoryHost":
        """Build a host from a snapshot produced by :meth:`to_snapshot` or written by hand.

        Raises:
            ValueError: If the payload references unknown groups or is malformed.
        """
        host = cls()
        groups = {int(item["id"]): item for item in payload.get("groups", [])}
        for window_payload in payload.get("windows", []):
            window_id = int(window_payload["id"])
            host.add_window(window_id, focused=bool(window_payload.get("focused", False)))
            for tab_payload in window_payload.get("tabs", []):
                group_id = tab_payload.get("group_id")
                if group_id is not None:
                    group_id = int(group_id)
                    if group_id not in groups:
                        raise ValueError(f"Tab {tab_payload.get('id')} references unknown group {group_id}")
                    if group_id not in host._groups:
                        spec = groups[group_id]
                        host._groups[group_id] = GroupInfo(
                            id=group_id,
                            window_id=window_id,
                            title=str(spec.get("title", "")),
                            color=str(spec.get("color", "grey")),
                        )
                host.add_tab(
                    window_id,
                    tab_id=int(tab_payload["id"]) if "id" in tab_payload else None,
                    url=str(tab_payload.get("url", "")),
                    title=str(tab_payload.get("title", "")),
                    pinned=bool(tab_payload.get("pinned", False)),
                    discarded=bool(tab_payload.get("discarded", False)),
                    opener_id=tab_payload.get("opener_id"),
                    group_id=group_id,
                )
        for folder_payload in payload.get("folders", []):
            folder = FolderInfo(
                id=str(folder_payload["id"]),
                title=str(folder_payload["title"]),
                parent_id=folder_payload.get("parent_id"),
            )
            host.folders[folder.id] = folder
        for entry_payload in payload.get("entries", []):
            host.entries.append(ArchiveEntry(**entry_payload))
        host._advance_counters()
        return host

    # Internal helpers -------------------------------------------------

    def _enter(self, name: str) -> None:
        hook = self.hooks.pop(name, None)
        if hook is not None:
            hook()
        if name in self.fail_on:
            raise ProviderError(f"{name} failed")

    def _require_tab(self, tab_id: int) -> TabInfo:
        tab = self._tabs.get(tab_id)
        if tab is None:
            raise ProviderError(f"No tab with id {tab_id}")
        return tab

    def _require_group(self, group_id: int) -> GroupInfo:
        group = self._groups.get(group_id)
        if group is None:
            raise ProviderError(f"No group with id {group_id}")
        return group

    def _pinned_count(self, window_id: int) -> int:
        return sum(1 for tab_id in self._strips[window_id] if self._tabs[tab_id].pinned)

    def _clamp(self, window_id: int, index: int, *, pinned: bool) -> int:
        strip = self._strips[window_id]
        floor = 0 if pinned else self._pinned_count(window_id)
        return max(floor, min(index, len(strip)))

    def _reindex(self, window_id: int) -> None:
        for position, tab_id in enumerate(self._strips[window_id]):
            self._tabs[tab_id].index = position

    def _join_group(self, tab_ids: list[int], group_id: int) -> None:
        group = self._groups[group_id]
        strip = self._strips[group.window_id]
        previous: set[Optional[int]] = set()
        for tab_id in tab_ids:
            tab = self._tabs[tab_id]
            if tab.window_id != group.window_id:
                raise ProviderError(f"Tab {tab_id} is not in window {group.window_id}")
            previous.add(tab.group_id)
        members = [tid for tid in strip if self._tabs[tid].group_id == group_id and tid not in tab_ids]
        if members:
            anchor = strip.index(members[-1]) + 1
        else:
            anchor = min(strip.index(tab_id) for tab_id in tab_ids)
        moving = [tid for tid in strip if tid in tab_ids]
        anchor -= sum(1 for tid in moving if strip.index(tid) < anchor)
        for tab_id in moving:
            strip.remove(tab_id)
            self._tabs[tab_id].group_id = group_id
            self._tabs[tab_id].pinned = False
        strip[anchor:anchor] = moving
        self._reindex(group.window_id)
        for old_group in previous:
            if old_group is not None and old_group != group_id:
                self._collect_group(old_group)

    def _drop_tab(self, tab_id: int) -> None:
        tab = self._tabs.pop(tab_id, None)
        if tab is None:
            return
        self._strips[tab.window_id].remove(tab_id)
        self._reindex(tab.window_id)
        if tab.group_id is not None:
            self._collect_group(tab.group_id)

    def _collect_group(self, group_id: int) -> None:
        if not any(tab.group_id == group_id for tab in self._tabs.values()):
            self._groups.pop(group_id, None)

    def _advance_counters(self) -> None:
        self._tab_ids = itertools.count(max(self._tabs, default=999) + 1)
        self._group_ids = itertools.count(max(self._groups, default=499) + 1)
        keys = itertools.chain(self.folders, (entry.id for entry in self.entries))
        used = [int(key) for key in keys if key.isdigit()]
        self._node_ids = itertools.count(max(used, default=0) + 1)

    @staticmethod
    def _tab_payload(tab: TabInfo) -> dict[str, Any]:
        payload = asdict(tab)
        payload.pop("index", None)
        payload.pop("window_id", None)
        return payload


__all__ = ["InMemoryHost", "ArchiveEntry"]
