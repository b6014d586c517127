"""Tests for age computation and status evaluation."""

from __future__ import annotations

import pytest

from tabcycle.aging import compute_age, compute_status, evaluate_items
from tabcycle.config.models import AgingSettings, Thresholds, TransitionToggles
from tabcycle.state.models import ItemRecord, ItemStatus

HOUR = 3600.0
THRESHOLDS = Thresholds(green_to_yellow_minutes=240, yellow_to_red_minutes=480, red_to_gone_minutes=1440)


def test_five_hours_of_active_time_is_yellow() -> None:
    status = compute_status(5 * HOUR, THRESHOLDS, TransitionToggles())

    assert status == ItemStatus.YELLOW


@pytest.mark.parametrize(
    ("age", "expected"),
    [
        (0.0, ItemStatus.GREEN),
        (4 * HOUR, ItemStatus.YELLOW),
        (8 * HOUR, ItemStatus.RED),
        (24 * HOUR, ItemStatus.GONE),
        (1000 * HOUR, ItemStatus.GONE),
    ],
)
def test_thresholds_are_inclusive(age: float, expected: ItemStatus) -> None:
    assert compute_status(age, THRESHOLDS, TransitionToggles()) == expected


def test_status_is_monotonic_in_age() -> None:
    ages = [minutes * 60.0 for minutes in range(0, 2000, 7)]
    ranks = [compute_status(age, THRESHOLDS, TransitionToggles()).rank for age in ages]

    assert ranks == sorted(ranks)


@pytest.mark.parametrize(
    ("toggles", "cap"),
    [
        (TransitionToggles(green_to_yellow=False), ItemStatus.GREEN),
        (TransitionToggles(yellow_to_red=False), ItemStatus.YELLOW),
        (TransitionToggles(red_to_gone=False), ItemStatus.RED),
        # A disabled earlier stage blocks every later one.
        (TransitionToggles(yellow_to_red=False, red_to_gone=True), ItemStatus.YELLOW),
    ],
)
def test_disabled_stage_caps_status(toggles: TransitionToggles, cap: ItemStatus) -> None:
    for hours in (0, 5, 9, 30, 500):
        status = compute_status(hours * HOUR, THRESHOLDS, toggles)
        assert status.rank <= cap.rank
    assert compute_status(500 * HOUR, THRESHOLDS, toggles) == cap


def test_compute_age_uses_selected_anchor() -> None:
    item = ItemRecord(item_id=1, window_id=1, refresh_active_time=100.0, refresh_wall_time=1_000.0)

    assert compute_age(item, active_time=400.0, now=5_000.0, time_mode="active") == pytest.approx(300.0)
    assert compute_age(item, active_time=400.0, now=5_000.0, time_mode="wallclock") == pytest.approx(4_000.0)


def test_compute_age_never_negative() -> None:
    item = ItemRecord(item_id=1, window_id=1, refresh_active_time=500.0, refresh_wall_time=9_000.0)

    assert compute_age(item, active_time=100.0, now=1_000.0, time_mode="active") == 0.0
    assert compute_age(item, active_time=100.0, now=1_000.0, time_mode="wallclock") == 0.0


def test_evaluate_items_reports_only_changes_and_skips_pinned() -> None:
    settings = AgingSettings()
    items = [
        ItemRecord(item_id=1, window_id=1, refresh_active_time=0.0),
        ItemRecord(item_id=2, window_id=1, refresh_active_time=0.0, pinned=True),
        ItemRecord(item_id=3, window_id=1, refresh_active_time=9 * HOUR - 60),
    ]

    transitions = evaluate_items(items, active_time=9 * HOUR, now=0.0, settings=settings)

    assert [(t.item_id, t.old_status, t.new_status) for t in transitions] == [
        (1, ItemStatus.GREEN, ItemStatus.RED)
    ]
