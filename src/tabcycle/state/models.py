"""State data models for the tab aging engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional

from pydantic import BaseModel, Field

SCHEMA_VERSION = 1


class ItemStatus(str, Enum):
    """Aging stage of a tab: fresh, aging1, aging2, terminal."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    GONE = "gone"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @classmethod
    def freshest(cls, statuses: "Iterator[ItemStatus] | List[ItemStatus]") -> Optional["ItemStatus"]:
        """Return the least-aged status among ``statuses`` or ``None`` when empty."""
        return min(statuses, key=lambda status: status.rank, default=None)


_STATUS_RANK = {
    ItemStatus.GREEN: 0,
    ItemStatus.YELLOW: 1,
    ItemStatus.RED: 2,
    ItemStatus.GONE: 3,
}

# Aging stages that own a special group.
SPECIAL_KINDS = (ItemStatus.YELLOW, ItemStatus.RED)


class ItemRecord(BaseModel):
    """Tracked metadata for a single tab.

    Attributes:
        item_id: Host identifier of the tab.
        window_id: Window that currently owns the tab.
        group_id: Group the tab belongs to, if any.
        status: Last evaluated aging status.
        refresh_active_time: Accumulated active time when the tab was last refreshed.
        refresh_wall_time: Epoch seconds when the tab was last refreshed.
        in_special_group: Whether the tab sits in a system-managed special group.
        pinned: Pinned tabs are excluded from processing.
        url: Last known URL.
        title: Last known title.
    """

    item_id: int
    window_id: int
    group_id: Optional[int] = None
    status: ItemStatus = ItemStatus.GREEN
    refresh_active_time: float = 0.0
    refresh_wall_time: float = 0.0
    in_special_group: bool = False
    pinned: bool = False
    url: str = ""
    title: str = ""

    def refresh(self, *, active_time: float, now: float) -> None:
        """Reset both age anchors and return the tab to the fresh stage."""
        self.refresh_active_time = active_time
        self.refresh_wall_time = now
        self.status = ItemStatus.GREEN


class NamingRecord(BaseModel):
    """Auto-naming progress for one group."""

    first_unnamed_seen_at: Optional[float] = None
    last_auto_named_at: Optional[float] = None
    last_candidate: Optional[str] = None
    user_edit_lock_until: float = 0.0

    def is_locked(self, now: float) -> bool:
        return now < self.user_edit_lock_until


class SpecialGroups(BaseModel):
    """References to the special groups of a window, one per aging stage."""

    yellow: Optional[int] = None
    red: Optional[int] = None

    def get(self, kind: ItemStatus) -> Optional[int]:
        if kind not in SPECIAL_KINDS:
            return None
        return getattr(self, kind.value)

    def set(self, kind: ItemStatus, group_id: Optional[int]) -> None:
        if kind not in SPECIAL_KINDS:
            raise ValueError(f"No special group exists for status {kind.value!r}")
        setattr(self, kind.value, group_id)

    def kind_of(self, group_id: Optional[int]) -> Optional[ItemStatus]:
        """Return the aging stage owning ``group_id`` or ``None`` for non-special groups."""
        if group_id is None:
            return None
        for kind in SPECIAL_KINDS:
            if self.get(kind) == group_id:
                return kind
        return None

    def ids(self) -> set[int]:
        return {group_id for group_id in (self.yellow, self.red) if group_id is not None}


class WindowState(BaseModel):
    """Per-window runtime state.

    Attributes:
        special_groups: Special group references per aging stage.
        group_zones: Current zone of each user group.
        group_naming: Auto-naming metadata per group.
        extension_groups: Groups created by the engine rather than the user.
    """

    special_groups: SpecialGroups = Field(default_factory=SpecialGroups)
    group_zones: Dict[int, ItemStatus] = Field(default_factory=dict)
    group_naming: Dict[int, NamingRecord] = Field(default_factory=dict)
    extension_groups: List[int] = Field(default_factory=list)

    def is_special(self, group_id: Optional[int]) -> bool:
        return self.special_groups.kind_of(group_id) is not None

    def mark_extension_group(self, group_id: int) -> None:
        if group_id not in self.extension_groups:
            self.extension_groups.append(group_id)

    def forget_group(self, group_id: int) -> None:
        """Drop every reference this window holds to ``group_id``."""
        kind = self.special_groups.kind_of(group_id)
        if kind is not None:
            self.special_groups.set(kind, None)
        self.group_zones.pop(group_id, None)
        self.group_naming.pop(group_id, None)
        if group_id in self.extension_groups:
            self.extension_groups.remove(group_id)


class ActiveTimeState(BaseModel):
    """Persisted accumulator for focused browser time.

    Attributes:
        accumulated: Total focused seconds; never decreases.
        focus_started_at: Epoch seconds since when time is accumulating, or ``None``
            while no window has focus.
        last_persisted_at: Epoch seconds of the last checkpoint.
    """

    accumulated: float = Field(default=0.0, ge=0)
    focus_started_at: Optional[float] = None
    last_persisted_at: float = 0.0


class ArchiveState(BaseModel):
    """Cached archive destination."""

    folder_id: Optional[str] = None


class EngineState(BaseModel):
    """Aggregate model owned by the evaluation engine."""

    schema_version: int = SCHEMA_VERSION
    items: Dict[int, ItemRecord] = Field(default_factory=dict)
    windows: Dict[int, WindowState] = Field(default_factory=dict)
    active_time: ActiveTimeState = Field(default_factory=ActiveTimeState)
    archive: ArchiveState = Field(default_factory=ArchiveState)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def ensure_window(self, window_id: int) -> WindowState:
        window = self.windows.get(window_id)
        if window is None:
            window = WindowState()
            self.windows[window_id] = window
        return window

    def items_in_window(self, window_id: int) -> list[ItemRecord]:
        return [item for item in self.items.values() if item.window_id == window_id]

    def group_members(self, group_id: int) -> list[ItemRecord]:
        return [
            item
            for item in self.items.values()
            if item.group_id == group_id and not item.pinned
        ]

    def window_ids(self) -> set[int]:
        return {item.window_id for item in self.items.values()} | set(self.windows)

    def drop_window(self, window_id: int) -> None:
        for item_id in [item.item_id for item in self.items_in_window(window_id)]:
            del self.items[item_id]
        self.windows.pop(window_id, None)


__all__ = [
    "SCHEMA_VERSION",
    "ItemStatus",
    "SPECIAL_KINDS",
    "ItemRecord",
    "NamingRecord",
    "SpecialGroups",
    "WindowState",
    "ActiveTimeState",
    "ArchiveState",
    "EngineState",
]
