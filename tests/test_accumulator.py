"""Tests for focused-time accounting."""

from __future__ import annotations

import pytest

from conftest import FakeClock
from tabcycle.aging import ActiveTimeAccumulator
from tabcycle.state.models import ActiveTimeState


def test_time_accumulates_only_while_focused(clock: FakeClock) -> None:
    accumulator = ActiveTimeAccumulator(clock=clock)

    clock.advance(100)
    assert accumulator.current_total() == 0.0

    accumulator.on_focus_changed(1)
    clock.advance(30)
    assert accumulator.current_total() == pytest.approx(30.0)

    accumulator.on_focus_changed(None)
    clock.advance(500)
    assert accumulator.current_total() == pytest.approx(30.0)
    assert not accumulator.focused


def test_switching_between_windows_does_not_restart_span(clock: FakeClock) -> None:
    accumulator = ActiveTimeAccumulator(clock=clock)
    accumulator.on_focus_changed(1)
    clock.advance(10)
    accumulator.on_focus_changed(2)
    clock.advance(10)

    assert accumulator.current_total() == pytest.approx(20.0)


def test_tick_folds_running_span(clock: FakeClock) -> None:
    accumulator = ActiveTimeAccumulator(clock=clock)
    accumulator.on_focus_gained()
    clock.advance(45)

    assert accumulator.tick() == pytest.approx(45.0)
    snapshot = accumulator.snapshot()
    assert snapshot.accumulated == pytest.approx(45.0)
    assert snapshot.focus_started_at == clock.now
    assert snapshot.last_persisted_at == clock.now


def test_total_never_decreases_when_clock_steps_back(clock: FakeClock) -> None:
    accumulator = ActiveTimeAccumulator(clock=clock)
    accumulator.on_focus_gained()
    clock.advance(60)
    accumulator.tick()

    clock.advance(-300)
    assert accumulator.current_total() == pytest.approx(60.0)
    assert accumulator.tick() == pytest.approx(60.0)
    accumulator.on_focus_lost()
    assert accumulator.current_total() == pytest.approx(60.0)


def test_recover_adds_gap_once_when_focus_was_persisted(clock: FakeClock) -> None:
    persisted = ActiveTimeState(accumulated=100.0, focus_started_at=clock.now, last_persisted_at=clock.now)
    clock.advance(40)
    accumulator = ActiveTimeAccumulator(persisted, clock=clock)

    assert accumulator.recover() == pytest.approx(140.0)
    assert accumulator.recover() == pytest.approx(140.0)
    clock.advance(5)
    assert accumulator.current_total() == pytest.approx(145.0)


def test_recover_ignores_gap_when_unfocused(clock: FakeClock) -> None:
    persisted = ActiveTimeState(accumulated=100.0, focus_started_at=None, last_persisted_at=clock.now)
    clock.advance(4000)
    accumulator = ActiveTimeAccumulator(persisted, clock=clock)

    assert accumulator.recover() == pytest.approx(100.0)
    assert not accumulator.focused


def test_accumulator_owns_a_copy_of_its_state(clock: FakeClock) -> None:
    persisted = ActiveTimeState(accumulated=5.0)
    accumulator = ActiveTimeAccumulator(persisted, clock=clock)
    accumulator.on_focus_gained()
    clock.advance(10)
    accumulator.tick()

    assert persisted.accumulated == 5.0
