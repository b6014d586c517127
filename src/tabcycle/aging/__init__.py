"""Active-time accounting and status evaluation."""

from .accumulator import ActiveTimeAccumulator
from .evaluator import StatusTransition, compute_age, compute_status, evaluate_items

__all__ = [
    "ActiveTimeAccumulator",
    "StatusTransition",
    "compute_age",
    "compute_status",
    "evaluate_items",
]
