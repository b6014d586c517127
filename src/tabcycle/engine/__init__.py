"""Evaluation engine: guard, cycle, reconciliation and the event-driven service."""

from .cycle import CycleReport, EvaluationCycle
from .events import (
    Event,
    FocusChanged,
    GroupRemoved,
    GroupUpdated,
    Navigated,
    SettingsChanged,
    TabAttached,
    TabCreated,
    TabRemoved,
    TabUpdated,
    WindowRemoved,
)
from .guard import CycleGuard, CyclePhase
from .reconcile import ReconcileReport, StateReconciler
from .service import EngineService

__all__ = [
    "CycleGuard",
    "CyclePhase",
    "CycleReport",
    "EvaluationCycle",
    "ReconcileReport",
    "StateReconciler",
    "EngineService",
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
