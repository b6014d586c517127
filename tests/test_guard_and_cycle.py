"""Tests for the cycle guard and the evaluation cycle."""

from __future__ import annotations

import pytest

from conftest import FakeClock, make_config, track
from tabcycle.aging import ActiveTimeAccumulator
from tabcycle.engine import CycleGuard, CyclePhase, EvaluationCycle
from tabcycle.organization import ArchiveCoordinator, WriteLedger, ZoneManager
from tabcycle.providers.memory import InMemoryHost
from tabcycle.state.models import EngineState, ItemStatus

HOUR = 3600.0


def test_guard_is_exclusive_until_released(clock: FakeClock) -> None:
    guard = CycleGuard(60, clock=clock)

    ticket = guard.try_enter()
    assert ticket is not None
    assert guard.phase == CyclePhase.RUNNING and guard.busy
    assert guard.try_enter() is None

    guard.leave(ticket)
    assert guard.phase == CyclePhase.IDLE
    assert guard.try_enter() is not None


def test_stuck_holder_is_cleared_after_timeout(clock: FakeClock, caplog: pytest.LogCaptureFixture) -> None:
    guard = CycleGuard(60, clock=clock)
    stuck = guard.try_enter()
    assert stuck is not None

    clock.advance(61)
    with caplog.at_level("WARNING", logger="tabcycle.engine.guard"):
        fresh = guard.try_enter()

    assert fresh is not None and fresh != stuck
    assert "clearing stuck cycle" in caplog.text
    # The stale holder can no longer release the new owner.
    guard.leave(stuck)
    assert guard.phase == CyclePhase.RUNNING
    guard.leave(fresh)
    assert guard.phase == CyclePhase.IDLE


def test_expired_holder_resets_on_leave(clock: FakeClock) -> None:
    guard = CycleGuard(60, clock=clock)
    ticket = guard.try_enter()
    assert ticket is not None

    guard.expire(ticket)
    assert guard.phase == CyclePhase.TIMED_OUT
    assert not guard.busy
    guard.leave(ticket)
    assert guard.phase == CyclePhase.IDLE


def test_invalid_transition_raises(clock: FakeClock) -> None:
    guard = CycleGuard(60, clock=clock)

    with pytest.raises(RuntimeError):
        guard._transition("finish")


def test_placement_flag_marks_guard_busy(clock: FakeClock) -> None:
    guard = CycleGuard(60, clock=clock)
    guard.placement_in_progress = True

    assert guard.busy


def _cycle(memory: InMemoryHost, clock: FakeClock, accumulator: ActiveTimeAccumulator) -> EvaluationCycle:
    host = memory.as_host()
    return EvaluationCycle(
        host,
        accumulator,
        ZoneManager(host, WriteLedger(clock=clock)),
        ArchiveCoordinator(host.archive, host.tabs),
        clock=clock,
    )


@pytest.mark.asyncio
async def test_cycle_ages_tabs_by_active_time(memory: InMemoryHost, clock: FakeClock) -> None:
    tab = memory.add_tab(1, url="https://a.test/")
    state = EngineState()
    track(state, tab.id)
    accumulator = ActiveTimeAccumulator(state.active_time, clock=clock)
    accumulator.on_focus_gained()
    clock.advance(5 * HOUR)

    report = await _cycle(memory, clock, accumulator).run(state, make_config())

    assert report.active_time == pytest.approx(5 * HOUR)
    assert [(t.item_id, t.new_status) for t in report.transitions] == [(tab.id, ItemStatus.YELLOW)]
    assert state.items[tab.id].status == ItemStatus.YELLOW
    assert state.items[tab.id].in_special_group
    assert state.active_time.accumulated == pytest.approx(5 * HOUR)


@pytest.mark.asyncio
async def test_unfocused_time_does_not_age_tabs(memory: InMemoryHost, clock: FakeClock) -> None:
    tab = memory.add_tab(1, url="https://a.test/")
    state = EngineState()
    track(state, tab.id)
    accumulator = ActiveTimeAccumulator(state.active_time, clock=clock)
    clock.advance(30 * HOUR)

    report = await _cycle(memory, clock, accumulator).run(state, make_config())

    assert report.transitions == []
    assert state.items[tab.id].status == ItemStatus.GREEN


@pytest.mark.asyncio
async def test_disabling_terminal_stage_caps_gone_tab_without_archiving(
    memory: InMemoryHost, clock: FakeClock
) -> None:
    tab = memory.add_tab(1, url="https://a.test/", title="A")
    state = EngineState()
    track(state, tab.id, status=ItemStatus.GONE, url=tab.url, active_anchor=0.0)
    accumulator = ActiveTimeAccumulator(state.active_time, clock=clock)
    accumulator.on_focus_gained()
    clock.advance(30 * HOUR)

    config = make_config(aging={"transitions": {"red_to_gone": False}})
    report = await _cycle(memory, clock, accumulator).run(state, config)

    assert state.items[tab.id].status == ItemStatus.RED
    assert await memory.get_tab(tab.id) is not None
    assert memory.entries == []
    assert report.removed == 0
    assert state.items[tab.id].group_id == state.windows[1].special_groups.red


@pytest.mark.asyncio
async def test_gone_tabs_are_archived_by_the_cycle(memory: InMemoryHost, clock: FakeClock) -> None:
    tab = memory.add_tab(1, url="https://a.test/", title="A")
    state = EngineState()
    track(state, tab.id, url=tab.url)
    accumulator = ActiveTimeAccumulator(state.active_time, clock=clock)
    accumulator.on_focus_gained()
    clock.advance(25 * HOUR)

    report = await _cycle(memory, clock, accumulator).run(state, make_config())

    assert (report.archived, report.removed) == (1, 1)
    assert tab.id not in state.items
    assert report.to_payload()["removed"] == 1


@pytest.mark.asyncio
async def test_disabled_aging_only_advances_active_time(memory: InMemoryHost, clock: FakeClock) -> None:
    tab = memory.add_tab(1, url="https://a.test/")
    state = EngineState()
    track(state, tab.id)
    accumulator = ActiveTimeAccumulator(state.active_time, clock=clock)
    accumulator.on_focus_gained()
    clock.advance(30 * HOUR)

    report = await _cycle(memory, clock, accumulator).run(state, make_config(aging={"enabled": False}))

    assert report.skipped
    assert state.items[tab.id].status == ItemStatus.GREEN
    assert state.active_time.accumulated == pytest.approx(30 * HOUR)


@pytest.mark.asyncio
async def test_cycle_corrects_drift(memory: InMemoryHost, clock: FakeClock) -> None:
    memory.add_window(2)
    tab = memory.add_tab(2, url="https://moved.test/")
    state = EngineState()
    track(state, tab.id, window_id=1)
    track(state, 4242, window_id=1)
    state.ensure_window(3)

    await _cycle(memory, clock, ActiveTimeAccumulator(clock=clock)).run(state, make_config())

    assert set(state.items) == {tab.id}
    assert state.items[tab.id].window_id == 2
    assert 3 not in state.windows
