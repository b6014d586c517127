"""Tests for cold-start reconciliation."""

from __future__ import annotations

import pytest

from conftest import track
from tabcycle.engine import StateReconciler
from tabcycle.providers.memory import InMemoryHost
from tabcycle.state.models import EngineState, ItemStatus, NamingRecord


@pytest.mark.asyncio
async def test_known_tabs_keep_their_age(memory: InMemoryHost) -> None:
    tab = memory.add_tab(1, url="https://a.test/", title="A")
    state = EngineState()
    track(state, tab.id, status=ItemStatus.RED, url=tab.url, active_anchor=5.0, wall_anchor=10.0)

    report = await StateReconciler(memory.as_host()).reconcile(state, active_time=999.0, now=999.0)

    item = state.items[tab.id]
    assert (item.status, item.refresh_active_time, item.refresh_wall_time) == (ItemStatus.RED, 5.0, 10.0)
    assert report.kept == 1 and report.created == 0


@pytest.mark.asyncio
async def test_restarted_tabs_are_matched_by_url() -> None:
    memory = InMemoryHost()
    memory.add_window(9)
    a = memory.add_tab(9, url="https://a.test/", title="A")
    b = memory.add_tab(9, url="https://b.test/", title="B")
    blank = memory.add_tab(9, url="about:blank")
    special = memory.add_group(9, [b.id], color="yellow").id

    # The persisted model uses ids from before the restart.
    state = EngineState()
    track(state, 1, window_id=2, status=ItemStatus.RED, url="https://a.test/", active_anchor=1.0)
    track(
        state, 3, window_id=2, status=ItemStatus.YELLOW, group_id=40, url="https://b.test/", active_anchor=2.0
    )
    track(state, 4, window_id=2, url="about:blank", active_anchor=3.0)
    track(state, 5, window_id=2, url="https://closed.test/")
    old_window = state.windows[2]
    old_window.special_groups.set(ItemStatus.YELLOW, 40)
    old_window.group_naming[40] = NamingRecord(last_candidate="x")

    report = await StateReconciler(memory.as_host()).reconcile(state, active_time=50.0, now=60.0)

    assert report.url_matched == 2
    assert report.created == 1
    assert report.dropped == 2
    assert state.items[a.id].status == ItemStatus.RED
    assert state.items[a.id].refresh_active_time == 1.0
    assert state.items[b.id].refresh_active_time == 2.0
    # Blank pages are never matched by URL.
    assert state.items[blank.id].refresh_active_time == 50.0
    assert set(state.windows) == {9}
    window = state.windows[9]
    assert window.special_groups.yellow == special
    assert window.group_naming[special].last_candidate == "x"
    assert state.items[b.id].in_special_group


@pytest.mark.asyncio
async def test_dead_group_references_are_dropped(memory: InMemoryHost) -> None:
    tab = memory.add_tab(1, url="https://a.test/")
    state = EngineState()
    track(state, tab.id)
    window = state.windows[1]
    window.special_groups.set(ItemStatus.RED, 77)
    window.group_zones[78] = ItemStatus.YELLOW
    window.mark_extension_group(79)

    await StateReconciler(memory.as_host()).reconcile(state, active_time=0.0, now=0.0)

    window = state.windows[1]
    assert window.special_groups.red is None
    assert window.group_zones == {}
    assert window.extension_groups == []


@pytest.mark.asyncio
async def test_pinned_tabs_are_not_tracked(memory: InMemoryHost) -> None:
    pinned = memory.add_tab(1, url="https://mail.test/", pinned=True)
    state = EngineState()

    await StateReconciler(memory.as_host()).reconcile(state, active_time=0.0, now=0.0)

    assert pinned.id not in state.items
    assert state.windows.keys() == {1}
