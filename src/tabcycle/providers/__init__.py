"""Boundary between the engine and the host browser runtime.

The engine never talks to a browser directly. It consumes the async protocols
below; an adapter translates host-specific calls and payloads into these
shapes. Every call is a suspension point and may raise :class:`ProviderError`,
which the engine treats as transient.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence


class ProviderError(Exception):
    """Raised when a host call (query, move, create, remove) fails."""


@dataclass(slots=True)
class TabInfo:
    """Live view of a tab.

    Attributes:
        id: Host tab identifier.
        window_id: Owning window.
        index: Position in the window's tab strip (0 is leftmost).
        group_id: Owning group or ``None`` when ungrouped.
        pinned: Whether the tab is pinned.
        url: Current URL.
        title: Current title.
        discarded: Whether the host unloaded the tab to save memory.
        opener_id: Tab that was active when this tab was opened.
    """

    id: int
    window_id: int
    index: int = 0
    group_id: Optional[int] = None
    pinned: bool = False
    url: str = ""
    title: str = ""
    discarded: bool = False
    opener_id: Optional[int] = None


@dataclass(slots=True)
class GroupInfo:
    """Live view of a tab group."""

    id: int
    window_id: int
    title: str = ""
    color: str = "grey"


@dataclass(slots=True)
class WindowInfo:
    """Live view of a browser window."""

    id: int
    focused: bool = False


@dataclass(slots=True)
class FolderInfo:
    """Archive folder descriptor."""

    id: str
    title: str
    parent_id: Optional[str] = None


class TabProvider(Protocol):
    async def list_tabs(self, window_id: Optional[int] = None) -> list[TabInfo]: ...

    async def get_tab(self, tab_id: int) -> Optional[TabInfo]: ...

    async def move_tab(self, tab_id: int, index: int) -> None: ...

    async def group_tabs(
        self,
        tab_ids: Sequence[int],
        *,
        group_id: Optional[int] = None,
        window_id: Optional[int] = None,
    ) -> int: ...

    async def ungroup_tab(self, tab_id: int) -> None: ...

    async def remove_tab(self, tab_id: int) -> None: ...


class GroupProvider(Protocol):
    async def list_groups(self, window_id: int) -> list[GroupInfo]:
        """Return groups in visual order, left to right."""
        ...

    async def get_group(self, group_id: int) -> Optional[GroupInfo]: ...

    async def update_group(
        self,
        group_id: int,
        *,
        title: Optional[str] = None,
        color: Optional[str] = None,
    ) -> GroupInfo: ...

    async def move_group(self, group_id: int, index: int = -1) -> None: ...


class WindowProvider(Protocol):
    async def list_windows(self) -> list[WindowInfo]: ...


class ArchiveProvider(Protocol):
    async def get_folder(self, folder_id: str) -> Optional[FolderInfo]: ...

    async def find_folder(self, title: str, parent_id: Optional[str] = None) -> Optional[FolderInfo]: ...

    async def create_folder(self, title: str, parent_id: Optional[str] = None) -> FolderInfo: ...

    async def add_entry(self, folder_id: str, title: str, url: str) -> str: ...


@dataclass(slots=True)
class Host:
    """Bundle of the providers a host runtime supplies."""

    tabs: TabProvider
    groups: GroupProvider
    windows: WindowProvider
    archive: ArchiveProvider


__all__ = [
    "ProviderError",
    "TabInfo",
    "GroupInfo",
    "WindowInfo",
    "FolderInfo",
    "TabProvider",
    "GroupProvider",
    "WindowProvider",
    "ArchiveProvider",
    "Host",
]
