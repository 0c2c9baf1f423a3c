"""Classification decision and outcome models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel


class OutcomeStatus(str, Enum):
    """Terminal state of a classification attempt."""

    MOVED = "moved"
    MISSING = "missing"
    SKIPPED_NO_SUFFIX = "skipped_no_suffix"
    SKIPPED_IGNORED = "skipped_ignored"


class ClassificationDecision(BaseModel):
    """Where a file should go, computed without touching the filesystem.

    Attributes:
        source: File being classified.
        extension: Lower-cased extension, empty when the name has no dot.
        skip: Reason the file is left in place, or ``None`` when it should move.
        category: Effective category after dynamic substitution.
        origin: Origin label used for nesting, when one matched.
        target_directory: Directory the file should be moved into.
    """

    source: Path
    extension: str = ""
    skip: Optional[OutcomeStatus] = None
    category: Optional[str] = None
    origin: Optional[str] = None
    target_directory: Optional[Path] = None

    @property
    def should_move(self) -> bool:
        return self.skip is None and self.target_directory is not None


class ClassificationOutcome(BaseModel):
    """Result of classifying a single file.

    Attributes:
        source: Original file path.
        status: Terminal state of the attempt.
        category: Effective category when one was resolved.
        destination: Final path of the moved file.
        renamed: Whether a ``_<n>`` suffix was added to avoid a collision.
    """

    source: Path
    status: OutcomeStatus
    category: Optional[str] = None
    destination: Optional[Path] = None
    renamed: bool = False


__all__ = ["OutcomeStatus", "ClassificationDecision", "ClassificationOutcome"]
