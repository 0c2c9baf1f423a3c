"""Status callbacks emitted toward the presentation layer."""

from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger(__name__)


class StatusListener:
    """Receiver for monitoring and organize status; every hook is a no-op by default."""

    def monitoring_started(self) -> None:
        """Called once watchers for all usable roots are installed."""

    def monitoring_stopped(self) -> None:
        """Called after every watcher has been torn down."""

    def organize_started(self) -> None:
        """Called before a manual sweep begins."""

    def organize_progress(self, count: int) -> None:
        """Called after each file submitted by a manual sweep."""

    def organize_complete(self, count: int) -> None:
        """Called when a manual sweep has submitted every file."""

    def organize_failed(self, reason: str) -> None:
        """Called when a manual sweep aborts."""

    def classification_failed(self, path: Path, reason: str) -> None:
        """Called when a single classification job fails."""


class LoggingStatusListener(StatusListener):
    """Status listener that records every callback in the log."""

    def monitoring_started(self) -> None:
        LOGGER.info("Monitoring started")

    def monitoring_stopped(self) -> None:
        LOGGER.info("Monitoring stopped")

    def organize_started(self) -> None:
        LOGGER.info("Organizing files")

    def organize_progress(self, count: int) -> None:
        LOGGER.debug("Organize submitted %d file(s)", count)

    def organize_complete(self, count: int) -> None:
        LOGGER.info("Organize complete: %d file(s) submitted", count)

    def organize_failed(self, reason: str) -> None:
        LOGGER.error("Organize failed: %s", reason)

    def classification_failed(self, path: Path, reason: str) -> None:
        LOGGER.error("Classification failed for %s: %s", path, reason)


__all__ = ["StatusListener", "LoggingStatusListener"]
