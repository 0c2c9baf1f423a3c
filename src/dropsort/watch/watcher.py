"""Recursive, self-extending directory watcher built on watchdog.

Each watched directory gets its own non-recursive watchdog handle. A recursive
watcher walks the existing subtree at start and installs a handle for every
directory created (or moved in) afterwards, so nested content is observed without a
restart. Repeated raw events for one path are coalesced inside a fixed cool-down
window.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from dropsort.errors import WatchSetupError

LOGGER = logging.getLogger(__name__)

COOLDOWN_SECONDS = 5.0


class WatchEventKind(str, Enum):
    """Kinds of raw events forwarded by the watcher."""

    CREATED = "created"
    MOVED_IN = "moved_in"


EventCallback = Callable[[WatchEventKind, Path], None]


@dataclass(slots=True)
class WatchRegistration:
    """An installed watch handle for one directory.

    Attributes:
        path: Absolute directory path.
        recursive: Whether the owning watcher extends into new subdirectories.
        handle: Watchdog handle returned by ``Observer.schedule``; ``None`` while
            the directory is reserved but not yet scheduled.
    """

    path: Path
    recursive: bool
    handle: Any = None


class DirectoryWatcher:
    """Observe one root directory and emit deduplicated creation events.

    Args:
        root: Directory to observe. When it does not exist (or is not a directory)
            at construction time the watcher stays inert.
        callback: Receives ``(kind, absolute_path)`` for every forwarded event.
        recursive: Whether subdirectories are observed, including new ones.
        observer_factory: Callable creating the watchdog observer.
        cooldown_seconds: Dedup window for repeated events on one path.
        clock: Monotonic time source used for the dedup window.
    """

    def __init__(
        self,
        root: Path,
        callback: EventCallback,
        *,
        recursive: bool = False,
        observer_factory: Callable[[], Any] = Observer,
        cooldown_seconds: float = COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._root = Path(root).expanduser().absolute()
        self._callback = callback
        self._recursive = recursive
        self._observer_factory = observer_factory
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._enabled = self._root.is_dir()
        # Never held across observer calls: watchdog invokes the handler while
        # holding its own lock, and schedule()/unschedule() take that lock too.
        self._lock = threading.Lock()
        self._dedup_lock = threading.Lock()
        self._observer: Optional[Any] = None
        self._registrations: dict[Path, WatchRegistration] = {}
        self._recent: dict[str, float] = {}
        self._handler = _WatchEventHandler(self)
        if not self._enabled:
            LOGGER.debug("Watch root %s is not a directory; watcher is inert", self._root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def recursive(self) -> bool:
        return self._recursive

    @property
    def is_watching(self) -> bool:
        with self._lock:
            return self._observer is not None

    @property
    def watched_paths(self) -> list[Path]:
        """Return the directories that currently hold a watch handle."""
        with self._lock:
            return sorted(self._registrations)

    def start_watching(self) -> None:
        """Install the root handle (and subtree handles when recursive).

        Raises:
            WatchSetupError: If the root handle cannot be installed.
        """
        if not self._enabled:
            return

        with self._lock:
            if self._observer is not None:
                return
            observer = self._observer_factory()
            self._observer = observer
        observer.start()
        try:
            self._install(observer, self._root)
        except OSError as exc:
            with self._lock:
                if self._observer is observer:
                    self._observer = None
                    self._registrations.clear()
            self._shutdown(observer, [])
            raise WatchSetupError(f"Cannot watch {self._root}: {exc}", path=self._root) from exc
        if self._recursive:
            self._install_subtree(observer, self._root)
        LOGGER.info(
            "Watching %s (%s, %d handle(s))",
            self._root,
            "recursive" if self._recursive else "flat",
            len(self.watched_paths),
        )

    def stop_watching(self) -> None:
        """Remove every handle and clear the dedup window. Safe to call repeatedly."""
        with self._lock:
            observer = self._observer
            registrations = list(self._registrations.values())
            self._observer = None
            self._registrations.clear()
        with self._dedup_lock:
            self._recent.clear()
        if observer is None:
            return
        self._shutdown(observer, registrations)
        LOGGER.info("Stopped watching %s", self._root)

    def process_event(self, kind: WatchEventKind, path: Path, *, is_directory: bool = False) -> bool:
        """Handle a raw event: extend the watch set, then forward unless deduplicated.

        Returns:
            bool: ``True`` when the event was forwarded to the callback.
        """
        path = Path(path).absolute()
        if is_directory and self._recursive:
            self._extend(path)

        if not self._remember(str(path)):
            LOGGER.debug("Dropping repeated %s event for %s", kind.value, path)
            return False

        try:
            self._callback(kind, path)
        except Exception:  # pragma: no cover - keep the observer thread alive
            LOGGER.exception("Watch callback failed for %s", path)
        return True

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _remember(self, key: str) -> bool:
        with self._dedup_lock:
            now = self._clock()
            expired = [entry for entry, deadline in self._recent.items() if deadline <= now]
            for entry in expired:
                del self._recent[entry]
            if key in self._recent:
                return False
            self._recent[key] = now + self._cooldown
            return True

    def _extend(self, directory: Path) -> None:
        with self._lock:
            observer = self._observer
        if observer is None or not directory.is_dir():
            return
        try:
            self._install(observer, directory)
        except OSError as exc:
            LOGGER.warning("Cannot watch new directory %s: %s", directory, exc)
            return
        self._install_subtree(observer, directory)

    def _install_subtree(self, observer: Any, directory: Path) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
        except OSError as exc:
            LOGGER.warning("Cannot list %s: %s", directory, exc)
            return
        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            if not is_dir:
                continue
            child = Path(entry.path)
            try:
                self._install(observer, child)
            except OSError as exc:
                LOGGER.warning("Cannot watch %s: %s", child, exc)
                continue
            self._install_subtree(observer, child)

    def _install(self, observer: Any, directory: Path) -> bool:
        """Reserve ``directory`` in the handle table, then schedule it outside the lock.

        Returns:
            bool: ``False`` when the directory was already registered or the
            observer has since been stopped.
        """
        with self._lock:
            if self._observer is not observer or directory in self._registrations:
                return False
            registration = WatchRegistration(path=directory, recursive=self._recursive)
            self._registrations[directory] = registration
        try:
            registration.handle = observer.schedule(self._handler, str(directory), recursive=False)
        except OSError:
            with self._lock:
                if self._registrations.get(directory) is registration:
                    del self._registrations[directory]
            raise
        LOGGER.debug("Installed watch handle for %s", directory)
        return True

    def _shutdown(self, observer: Any, registrations: list[WatchRegistration]) -> None:
        for registration in registrations:
            if registration.handle is None:
                continue
            try:
                observer.unschedule(registration.handle)
            except (KeyError, ValueError, OSError):
                LOGGER.debug("Handle for %s already removed", registration.path)
        observer.stop()
        if observer is not threading.current_thread():
            observer.join(timeout=5)


class _WatchEventHandler(FileSystemEventHandler):
    """Translate watchdog events into watcher events."""

    def __init__(self, watcher: DirectoryWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        self._watcher.process_event(
            WatchEventKind.CREATED, Path(os.fsdecode(event.src_path)), is_directory=event.is_directory
        )

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a filesystem move event; the destination is what arrived."""
        destination = getattr(event, "dest_path", "") or event.src_path
        self._watcher.process_event(
            WatchEventKind.MOVED_IN, Path(os.fsdecode(destination)), is_directory=event.is_directory
        )


__all__ = [
    "COOLDOWN_SECONDS",
    "WatchEventKind",
    "WatchRegistration",
    "DirectoryWatcher",
]
