"""Typed events delivered to the engine by a host adapter.

The adapter translates whatever the browser reports into exactly one of the
variants below; the engine never inspects raw host payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Union

from tabcycle.config.models import TabCycleConfig
from tabcycle.providers import GroupInfo, TabInfo


@dataclass(frozen=True, slots=True)
class TabCreated:
    tab: TabInfo


@dataclass(frozen=True, slots=True)
class TabRemoved:
    tab_id: int
    window_id: int
    window_closing: bool = False


@dataclass(frozen=True, slots=True)
class TabUpdated:
    """A tab property changed.

    Attributes:
        tab: Tab state after the change.
        changed: Names of the changed properties, e.g. ``{"group_id", "pinned"}``.
    """

    tab: TabInfo
    changed: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class Navigated:
    """A top-level navigation committed in a tab."""

    tab_id: int
    url: str = ""


@dataclass(frozen=True, slots=True)
class FocusChanged:
    """Window focus moved; ``window_id`` is ``None`` when no browser window has focus."""

    window_id: Optional[int]


@dataclass(frozen=True, slots=True)
class WindowRemoved:
    window_id: int


@dataclass(frozen=True, slots=True)
class GroupUpdated:
    group: GroupInfo


@dataclass(frozen=True, slots=True)
class GroupRemoved:
    group_id: int
    window_id: int


@dataclass(frozen=True, slots=True)
class TabAttached:
    """A tab was dragged into another window."""

    tab_id: int
    window_id: int


@dataclass(frozen=True, slots=True)
class SettingsChanged:
    previous: TabCycleConfig
    current: TabCycleConfig


Event = Union[
    TabCreated,
    TabRemoved,
    TabUpdated,
    Navigated,
    FocusChanged,
    WindowRemoved,
    GroupUpdated,
    GroupRemoved,
    TabAttached,
    SettingsChanged,
]


__all__ = [
    "Event",
    "TabCreated",
    "TabRemoved",
    "TabUpdated",
    "Navigated",
    "FocusChanged",
    "WindowRemoved",
    "GroupUpdated",
    "GroupRemoved",
    "TabAttached",
    "SettingsChanged",
]
