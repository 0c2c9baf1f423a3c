"""Directory watching, debounced dispatch and monitoring orchestration."""

from .dispatcher import (
    ORGANIZE_PACING_SECONDS,
    ClassificationJob,
    Dispatcher,
    JobRunner,
    PendingClassification,
)
from .service import TransferService
from .status import LoggingStatusListener, StatusListener
from .watcher import COOLDOWN_SECONDS, DirectoryWatcher, WatchEventKind, WatchRegistration

__all__ = [
    "ORGANIZE_PACING_SECONDS",
    "ClassificationJob",
    "Dispatcher",
    "JobRunner",
    "PendingClassification",
    "TransferService",
    "LoggingStatusListener",
    "StatusListener",
    "COOLDOWN_SECONDS",
    "DirectoryWatcher",
    "WatchEventKind",
    "WatchRegistration",
]
