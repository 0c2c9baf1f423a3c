"""Rule-based classification and move execution."""

from .engine import ClassificationEngine
from .executor import MoveExecutor, split_name
from .models import ClassificationDecision, ClassificationOutcome, OutcomeStatus

__all__ = [
    "ClassificationEngine",
    "MoveExecutor",
    "split_name",
    "ClassificationDecision",
    "ClassificationOutcome",
    "OutcomeStatus",
]
