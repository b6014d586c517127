"""Shared fixtures for the tabcycle test suite."""

from __future__ import annotations

from typing import Any

import pytest

from tabcycle.config import TabCycleConfig, resolve_with_precedence
from tabcycle.organization.ledger import WriteLedger
from tabcycle.providers import Host
from tabcycle.providers.memory import InMemoryHost
from tabcycle.state.models import EngineState, ItemRecord, ItemStatus


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory() -> InMemoryHost:
    world = InMemoryHost()
    world.add_window(1, focused=True)
    return world


@pytest.fixture
def host(memory: InMemoryHost) -> Host:
    return memory.as_host()


@pytest.fixture
def ledger(clock: FakeClock) -> WriteLedger:
    return WriteLedger(clock=clock)


def make_config(**overrides: Any) -> TabCycleConfig:
    """Return defaults merged with nested ``section={...}`` overrides."""
    return resolve_with_precedence(defaults=TabCycleConfig(), file_overrides=overrides)


def track(
    state: EngineState,
    tab_id: int,
    *,
    window_id: int = 1,
    status: ItemStatus = ItemStatus.GREEN,
    group_id: int | None = None,
    url: str = "",
    title: str = "",
    active_anchor: float = 0.0,
    wall_anchor: float = 0.0,
) -> ItemRecord:
    """Add a tracked item for ``tab_id`` to ``state`` and return it."""
    item = ItemRecord(
        item_id=tab_id,
        window_id=window_id,
        group_id=group_id,
        status=status,
        url=url,
        title=title,
        refresh_active_time=active_anchor,
        refresh_wall_time=wall_anchor,
    )
    state.items[tab_id] = item
    state.ensure_window(window_id)
    return item
