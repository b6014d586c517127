"""Status evaluation derived from item age and configured thresholds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from tabcycle.config.models import AgingSettings, Thresholds, TimeMode, TransitionToggles
from tabcycle.state.models import ItemRecord, ItemStatus


@dataclass(slots=True, frozen=True)
class StatusTransition:
    """Status change detected for a single item."""

    item_id: int
    old_status: ItemStatus
    new_status: ItemStatus


def compute_age(item: ItemRecord, *, active_time: float, now: float, time_mode: TimeMode) -> float:
    """Return the item's age in seconds using the anchor selected by ``time_mode``.

    Args:
        item: Tracked item.
        active_time: Current accumulated active time.
        now: Current epoch time.
        time_mode: ``"active"`` or ``"wallclock"``.

    Returns:
        float: Non-negative age in seconds.
    """
    if time_mode == "wallclock":
        age = now - item.refresh_wall_time
    else:
        age = active_time - item.refresh_active_time
    return max(0.0, age)


def compute_status(age: float, thresholds: Thresholds, transitions: TransitionToggles) -> ItemStatus:
    """Map an age onto the highest reachable aging stage.

    A disabled transition stops progression: with stage *k* disabled, the
    result never goes past stage *k-1*, whatever the age.

    Args:
        age: Age in seconds.
        thresholds: Ordered stage thresholds.
        transitions: Per-stage enable flags.

    Returns:
        ItemStatus: Derived status.
    """
    to_yellow, to_red, to_gone = thresholds.as_seconds()
    stages = (
        (ItemStatus.YELLOW, to_yellow, transitions.green_to_yellow),
        (ItemStatus.RED, to_red, transitions.yellow_to_red),
        (ItemStatus.GONE, to_gone, transitions.red_to_gone),
    )
    status = ItemStatus.GREEN
    for stage, threshold, enabled in stages:
        if not enabled or age < threshold:
            break
        status = stage
    return status


def evaluate_items(
    items: Iterable[ItemRecord],
    *,
    active_time: float,
    now: float,
    settings: AgingSettings,
) -> list[StatusTransition]:
    """Re-derive the status of every non-pinned item.

    Returns:
        list[StatusTransition]: Items whose derived status differs from the stored one.
    """
    transitions: list[StatusTransition] = []
    for item in items:
        if item.pinned:
            continue
        age = compute_age(item, active_time=active_time, now=now, time_mode=settings.time_mode)
        status = compute_status(age, settings.thresholds, settings.transitions)
        if status != item.status:
            transitions.append(StatusTransition(item.item_id, item.status, status))
    return transitions


__all__ = ["StatusTransition", "compute_age", "compute_status", "evaluate_items"]
