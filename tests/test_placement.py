"""Tests for new-tab placement relative to the opener."""

from __future__ import annotations

import pytest

from conftest import make_config, track
from tabcycle.organization import Placement, TabPlacer, WriteLedger
from tabcycle.providers.memory import InMemoryHost
from tabcycle.state.models import EngineState, ItemStatus


async def _place(memory: InMemoryHost, ledger: WriteLedger, state: EngineState, tab_id: int, **placement):
    tab = await memory.get_tab(tab_id)
    assert tab is not None
    settings = make_config(placement=placement).placement if placement else make_config().placement
    return await TabPlacer(memory.as_host(), ledger).place(tab, state, settings)


@pytest.mark.asyncio
async def test_tab_without_opener_moves_leftmost(memory: InMemoryHost, ledger: WriteLedger) -> None:
    memory.add_tab(1, url="https://a.test/")
    new = memory.add_tab(1, url="https://b.test/")
    state = EngineState()

    result = await _place(memory, ledger, state, new.id)

    assert result == Placement.LEFTMOST
    live = await memory.get_tab(new.id)
    assert live is not None and live.index == 0


@pytest.mark.asyncio
async def test_leftmost_respects_pinned_tabs(memory: InMemoryHost, ledger: WriteLedger) -> None:
    memory.add_tab(1, url="https://pinned.test/", pinned=True)
    memory.add_tab(1, url="https://a.test/")
    new = memory.add_tab(1, url="https://b.test/")

    await _place(memory, ledger, EngineState(), new.id)

    live = await memory.get_tab(new.id)
    assert live is not None and live.index == 1


@pytest.mark.asyncio
async def test_ungrouped_opener_forms_engine_group(memory: InMemoryHost, ledger: WriteLedger) -> None:
    opener = memory.add_tab(1, url="https://a.test/")
    memory.add_tab(1, url="https://other.test/")
    new = memory.add_tab(1, url="https://a.test/next", opener_id=opener.id)
    state = EngineState()
    track(state, opener.id)
    track(state, new.id)

    result = await _place(memory, ledger, state, new.id)

    assert result == Placement.GROUPED
    live_opener = await memory.get_tab(opener.id)
    assert live_opener is not None and live_opener.group_id is not None
    group = await memory.get_group(live_opener.group_id)
    assert group is not None and (group.title, group.color) == ("", "green")
    assert state.windows[1].extension_groups == [group.id]
    assert state.items[new.id].group_id == group.id
    assert state.items[opener.id].group_id == group.id
    assert ledger.consume(group.id, "color", "green")


@pytest.mark.asyncio
async def test_opener_in_user_group_is_joined_next_to_opener(
    memory: InMemoryHost, ledger: WriteLedger
) -> None:
    opener = memory.add_tab(1, url="https://a.test/")
    sibling = memory.add_tab(1, url="https://b.test/")
    group = memory.add_group(1, [opener.id, sibling.id], title="Work").id
    memory.add_tab(1, url="https://c.test/")
    new = memory.add_tab(1, url="https://a.test/child", opener_id=opener.id)
    state = EngineState()
    track(state, new.id)

    result = await _place(memory, ledger, state, new.id)

    assert result == Placement.JOINED
    live = await memory.get_tab(new.id)
    assert live is not None
    assert live.group_id == group
    assert live.index == 1
    assert state.items[new.id].group_id == group


@pytest.mark.asyncio
async def test_opener_in_special_group_moves_new_tab_leftmost(
    memory: InMemoryHost, ledger: WriteLedger
) -> None:
    memory.add_tab(1, url="https://first.test/")
    opener = memory.add_tab(1, url="https://a.test/")
    special = memory.add_group(1, [opener.id], color="red").id
    new = memory.add_tab(1, url="https://a.test/child", opener_id=opener.id)
    state = EngineState()
    state.ensure_window(1).special_groups.set(ItemStatus.RED, special)

    result = await _place(memory, ledger, state, new.id)

    assert result == Placement.LEFTMOST
    live = await memory.get_tab(new.id)
    assert live is not None and live.group_id is None and live.index == 0


@pytest.mark.asyncio
async def test_failed_join_falls_back_to_leftmost(memory: InMemoryHost, ledger: WriteLedger) -> None:
    opener = memory.add_tab(1, url="https://a.test/")
    memory.add_group(1, [opener.id], title="Work")
    new = memory.add_tab(1, url="https://a.test/child", opener_id=opener.id)
    memory.fail_on.add("group_tabs")

    result = await _place(memory, ledger, EngineState(), new.id)

    assert result == Placement.LEFTMOST
    live = await memory.get_tab(new.id)
    assert live is not None and live.index == 0 and live.group_id is None


@pytest.mark.asyncio
async def test_auto_grouping_can_be_disabled(memory: InMemoryHost, ledger: WriteLedger) -> None:
    opener = memory.add_tab(1, url="https://a.test/")
    new = memory.add_tab(1, url="https://a.test/child", opener_id=opener.id)

    result = await _place(memory, ledger, EngineState(), new.id, auto_group_enabled=False)

    assert result == Placement.SKIPPED
    live = await memory.get_tab(new.id)
    assert live is not None and live.group_id is None and live.index == 1
