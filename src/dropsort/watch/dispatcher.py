"""Debounced dispatch of classification work."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Mapping, Optional

from dropsort.config.models import TransferConfig
from dropsort.config.placeholders import iter_listen_targets
from dropsort.errors import StorageError
from dropsort.organization import ClassificationEngine, ClassificationOutcome

from .status import StatusListener
from .watcher import WatchEventKind

LOGGER = logging.getLogger(__name__)

ORGANIZE_PACING_SECONDS = 0.1


class ClassificationJob:
    """Classify one path with the configuration snapshot it was created with.

    Storage failures are reported to the status listener and swallowed so that one
    file never affects sibling jobs; jobs are never retried.
    """

    def __init__(
        self,
        path: Path,
        config: TransferConfig,
        engine: ClassificationEngine,
        listener: StatusListener,
    ) -> None:
        self.path = path
        self.config = config
        self._engine = engine
        self._listener = listener

    def run(self) -> Optional[ClassificationOutcome]:
        try:
            outcome = self._engine.classify(self.path, self.config)
        except (StorageError, OSError) as exc:
            LOGGER.warning("Classification failed for %s: %s", self.path, exc)
            self._listener.classification_failed(self.path, str(exc))
            return None
        LOGGER.debug("Classified %s: %s", self.path, outcome.status.value)
        return outcome


class JobRunner:
    """Thread-pool substrate that runs each submitted job exactly once."""

    def __init__(self, max_workers: int = 2) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dropsort-job")
        self._futures: set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, job: ClassificationJob) -> Future:
        future = self._executor.submit(job.run)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._finished)
        return future

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted job has finished; ``False`` on timeout."""
        with self._lock:
            outstanding = set(self._futures)
        if not outstanding:
            return True
        _, not_done = wait(outstanding, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_jobs)

    def _finished(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)
        if not future.cancelled() and future.exception() is not None:
            LOGGER.error("Classification job crashed", exc_info=future.exception())


class PendingClassification:
    """A cancellable timer that hands one path to the dispatcher after a delay.

    Attributes:
        path: File to classify.
        config: Snapshot captured when the event arrived.
        deadline: Monotonic time at which the timer fires.
    """

    def __init__(
        self,
        path: Path,
        config: TransferConfig,
        delay: float,
        on_fire: Callable[["PendingClassification"], None],
    ) -> None:
        self.path = path
        self.config = config
        self.deadline = time.monotonic() + delay
        self._on_fire = on_fire
        self._state = "scheduled"
        self._lock = threading.Lock()
        self._timer = threading.Timer(delay, self._fire)
        self._timer.daemon = True

    @property
    def fired(self) -> bool:
        return self._state == "fired"

    @property
    def cancelled(self) -> bool:
        return self._state == "cancelled"

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> bool:
        """Cancel the timer; returns ``False`` when it already fired."""
        with self._lock:
            if self._state != "scheduled":
                return False
            self._state = "cancelled"
        self._timer.cancel()
        return True

    def _fire(self) -> None:
        with self._lock:
            if self._state != "scheduled":
                return
            self._state = "fired"
        self._on_fire(self)


class Dispatcher:
    """Turn watcher events into delayed classification jobs and run manual sweeps.

    Args:
        engine: Engine executing classifications.
        runner: Job substrate receiving classification jobs.
        listener: Receiver for progress and failure callbacks.
        placeholders: Token lookup table used to expand listen directories.
        pacing_seconds: Pause between submissions during a manual sweep.
        sleep: Sleep function used for pacing.
    """

    def __init__(
        self,
        engine: ClassificationEngine,
        runner: JobRunner,
        *,
        listener: StatusListener | None = None,
        placeholders: Mapping[str, str] | None = None,
        pacing_seconds: float = ORGANIZE_PACING_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._engine = engine
        self._runner = runner
        self._listener = listener or StatusListener()
        self._placeholders = dict(placeholders or {})
        self._pacing = pacing_seconds
        self._sleep = sleep
        self._pending: set[PendingClassification] = set()
        self._condition = threading.Condition()

    @property
    def pending(self) -> list[PendingClassification]:
        with self._condition:
            return list(self._pending)

    def handle_event(
        self, kind: WatchEventKind, path: Path, config: TransferConfig
    ) -> Optional[PendingClassification]:
        """Schedule classification of ``path`` when it is a regular file."""
        if not path.is_file():
            LOGGER.debug("Ignoring %s event for non-file %s", kind.value, path)
            return None
        return self.schedule(path, config)

    def schedule(self, path: Path, config: TransferConfig) -> PendingClassification:
        """Schedule ``path`` to be classified after ``config.delay`` seconds."""
        pending = PendingClassification(path, config, float(config.delay), self._fire)
        with self._condition:
            self._pending.add(pending)
        pending.start()
        LOGGER.debug("Scheduled %s in %ss", path, config.delay)
        return pending

    def organize_now(self, config: TransferConfig) -> int:
        """Submit every regular file directly inside the listen directories.

        Returns:
            int: Number of submitted jobs.
        """
        submitted = 0
        for target in iter_listen_targets(config, self._placeholders):
            directory = target.path
            if not directory.is_dir():
                LOGGER.debug("Skipping missing listen directory %s", directory)
                continue
            try:
                children = sorted(directory.iterdir())
            except OSError as exc:
                raise StorageError(f"Cannot list {directory}: {exc}", path=directory, cause=exc) from exc
            for child in children:
                if not child.is_file():
                    continue
                self.submit(child, config)
                submitted += 1
                self._listener.organize_progress(submitted)
                self._sleep(self._pacing)
        return submitted

    def submit(self, path: Path, config: TransferConfig) -> Future:
        """Hand ``path`` to the job runner immediately."""
        job = ClassificationJob(path, config, self._engine, self._listener)
        return self._runner.submit(job)

    def cancel_pending(self) -> int:
        """Cancel every outstanding timer; returns how many were cancelled."""
        with self._condition:
            pending = list(self._pending)
        cancelled = sum(1 for item in pending if item.cancel())
        with self._condition:
            for item in pending:
                if item.cancelled:
                    self._pending.discard(item)
            self._condition.notify_all()
        return cancelled

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for pending timers to fire and submitted jobs to finish."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._condition:
            while self._pending:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._condition.wait(remaining)
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        return self._runner.wait_idle(remaining)

    def _fire(self, pending: PendingClassification) -> None:
        try:
            self.submit(pending.path, pending.config)
        except RuntimeError as exc:
            # The runner was shut down while the timer was waiting.
            LOGGER.debug("Dropping %s after runner shutdown: %s", pending.path, exc)
        finally:
            with self._condition:
                self._pending.discard(pending)
                self._condition.notify_all()


__all__ = [
    "ORGANIZE_PACING_SECONDS",
    "ClassificationJob",
    "JobRunner",
    "PendingClassification",
    "Dispatcher",
]
