"""Rule-based classification of files by extension.

The engine resolves a category from the ordered suffix rules of a configuration
snapshot, derives the target directory (optionally nested under the origin label of
the listen directory the file came from) and moves the file there. Resolution never
raises; only directory creation and the move itself can fail, and those failures
surface as :class:`~dropsort.errors.StorageError` for the single file involved.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional

from dropsort.config.models import DYNAMIC_NAME_TOKEN, TransferConfig
from dropsort.config.placeholders import iter_listen_targets

from .executor import MoveExecutor, split_name
from .models import ClassificationDecision, ClassificationOutcome, OutcomeStatus

LOGGER = logging.getLogger(__name__)


class ClassificationEngine:
    """Decide where a file belongs and move it there.

    Args:
        placeholders: Token lookup table used to expand listen directory templates.
        executor: Filesystem executor performing directory creation and moves.
    """

    def __init__(
        self,
        placeholders: Mapping[str, str] | None = None,
        executor: MoveExecutor | None = None,
    ) -> None:
        self._placeholders = dict(placeholders or {})
        self._executor = executor or MoveExecutor()

    def decide(self, source: Path, config: TransferConfig) -> ClassificationDecision:
        """Compute the decision for ``source`` without modifying the filesystem."""
        if not source.is_file():
            return ClassificationDecision(source=source, skip=OutcomeStatus.MISSING)

        filename = source.name
        base_name, raw_extension = split_name(filename)
        extension = raw_extension.lower()

        if not extension and config.ignore_no_suffix:
            return ClassificationDecision(
                source=source, extension=extension, skip=OutcomeStatus.SKIPPED_NO_SUFFIX
            )

        if self._is_ignored(filename, extension, config):
            return ClassificationDecision(
                source=source, extension=extension, skip=OutcomeStatus.SKIPPED_IGNORED
            )

        category = self._resolve_category(extension, base_name, config)
        origin = self._resolve_origin(source, config) if config.sub_app else None
        target = Path(config.classify_directory)
        if origin is not None:
            target = target / origin
        target = target / category

        return ClassificationDecision(
            source=source,
            extension=extension,
            category=category,
            origin=origin,
            target_directory=target,
        )

    def classify(self, source: Path, config: TransferConfig) -> ClassificationOutcome:
        """Classify and move ``source`` according to ``config``.

        Returns:
            ClassificationOutcome: The move result, or the reason it was skipped.

        Raises:
            StorageError: If the target directory cannot be prepared or the move fails.
        """
        decision = self.decide(source, config)
        if not decision.should_move or decision.target_directory is None:
            LOGGER.debug("Leaving %s in place (%s)", source, decision.skip.value if decision.skip else "")
            return ClassificationOutcome(
                source=source, status=decision.skip or OutcomeStatus.MISSING
            )

        directory = self._executor.ensure_directory(decision.target_directory)
        destination = self._executor.reserve_destination(directory, source.name)
        self._executor.move(source, destination)
        return ClassificationOutcome(
            source=source,
            status=OutcomeStatus.MOVED,
            category=decision.category,
            destination=destination,
            renamed=destination.name != source.name,
        )

    # ------------------------------------------------------------------ #
    # Rule helpers                                                       #
    # ------------------------------------------------------------------ #

    def _is_ignored(self, filename: str, extension: str, config: TransferConfig) -> bool:
        lowered_name = filename.lower()
        for token in config.ignore_list:
            if not token:
                continue
            if extension == token or token.lower() in lowered_name:
                return True
        return False

    def _resolve_category(self, extension: str, base_name: str, config: TransferConfig) -> str:
        for label, suffixes in config.suffix_rules.items():
            if extension in suffixes:
                if DYNAMIC_NAME_TOKEN in label:
                    return label.replace(DYNAMIC_NAME_TOKEN, base_name)
                return label
        return config.default_type

    def _resolve_origin(self, source: Path, config: TransferConfig) -> Optional[str]:
        source_text = str(source.expanduser().absolute())
        for target in iter_listen_targets(config, self._placeholders):
            if source_text.startswith(str(target.path)):
                return target.label
        return None


__all__ = ["ClassificationEngine"]
