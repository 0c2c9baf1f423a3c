"""Coordinator owning the directory watchers and the dispatcher."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.observers import Observer

from dropsort.config import (
    ConfigStore,
    HostSettings,
    SettingsManager,
    TransferConfig,
    iter_listen_targets,
    placeholder_table,
)
from dropsort.errors import DropsortError, WatchSetupError
from dropsort.organization import ClassificationEngine

from .dispatcher import Dispatcher, JobRunner
from .status import StatusListener
from .watcher import DirectoryWatcher

LOGGER = logging.getLogger(__name__)


class TransferService:
    """Control surface for monitoring, manual organizing and configuration.

    One :class:`DirectoryWatcher` is created per expanded listen directory when
    monitoring starts. All watchers of a monitoring session share the configuration
    snapshot loaded at start; changing the configuration takes effect on the next
    ``stop_monitoring()`` / ``start_monitoring()`` cycle.
    """

    def __init__(
        self,
        store: ConfigStore,
        settings: HostSettings,
        *,
        settings_manager: SettingsManager | None = None,
        listener: StatusListener | None = None,
        runner: JobRunner | None = None,
        observer_factory: Callable[[], Any] = Observer,
        pacing_seconds: Optional[float] = None,
    ) -> None:
        """Initialize the service.

        Args:
            store: Store holding the persisted transfer configuration.
            settings: Host settings (toggles and placeholder values).
            settings_manager: Manager used to persist toggle changes, if any.
            listener: Receiver for status callbacks.
            runner: Job substrate; a default thread pool is created when omitted.
            observer_factory: Callable creating watchdog observers for watchers.
            pacing_seconds: Optional override of the manual organize pacing.
        """
        self._store = store
        self._settings = settings
        self._settings_manager = settings_manager
        self._listener = listener or StatusListener()
        self._observer_factory = observer_factory
        self._placeholders = placeholder_table(settings.placeholders)
        self._runner = runner or JobRunner()
        self._engine = ClassificationEngine(self._placeholders)
        dispatcher_options: dict[str, Any] = {}
        if pacing_seconds is not None:
            dispatcher_options["pacing_seconds"] = pacing_seconds
        self._dispatcher = Dispatcher(
            self._engine,
            self._runner,
            listener=self._listener,
            placeholders=self._placeholders,
            **dispatcher_options,
        )
        self._watchers: dict[Path, DirectoryWatcher] = {}

    @classmethod
    def from_settings(
        cls,
        manager: SettingsManager,
        *,
        settings: HostSettings | None = None,
        listener: StatusListener | None = None,
    ) -> "TransferService":
        """Build a service from the settings file managed by ``manager``.

        Args:
            manager: Settings manager used to load and persist toggles.
            settings: Already resolved settings; loaded from ``manager`` when omitted.
            listener: Receiver for status callbacks.

        Raises:
            ConfigError: If the settings are invalid or ``config_path`` has an
                unsupported extension.
        """
        if settings is None:
            settings = manager.load()
        store = ConfigStore(Path(settings.config_path))
        return cls(store, settings, settings_manager=manager, listener=listener)

    # ------------------------------------------------------------------ #
    # Properties                                                         #
    # ------------------------------------------------------------------ #

    @property
    def settings(self) -> HostSettings:
        return self._settings

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def engine(self) -> ClassificationEngine:
        return self._engine

    @property
    def is_monitoring(self) -> bool:
        return bool(self._watchers)

    @property
    def watchers(self) -> list[DirectoryWatcher]:
        return list(self._watchers.values())

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    def initialize(self) -> None:
        """Load configuration and apply the startup toggles."""
        self._store.load()
        if self._settings.transfer_enabled and self._settings.background_monitor:
            self.start_monitoring()
        if self._settings.transfer_enabled and self._settings.auto_organize_on_startup:
            self.organize_now()

    def start_monitoring(self) -> int:
        """Load configuration and start one watcher per usable listen directory.

        Returns:
            int: Number of watchers started.
        """
        config = self._store.load()
        self._stop_watchers()

        def _on_event(kind, path):
            self._dispatcher.handle_event(kind, path, config)

        for target in iter_listen_targets(config, self._placeholders):
            root = target.path
            if root in self._watchers:
                continue
            if not root.is_dir():
                LOGGER.debug("Listen directory %s (%s) does not exist", root, target.label)
                continue
            watcher = DirectoryWatcher(
                root,
                _on_event,
                recursive=target.recursive,
                observer_factory=self._observer_factory,
            )
            try:
                watcher.start_watching()
            except WatchSetupError as exc:
                LOGGER.warning("Skipping %s: %s", root, exc)
                continue
            self._watchers[root] = watcher

        self._listener.monitoring_started()
        return len(self._watchers)

    def stop_monitoring(self) -> None:
        """Stop every watcher; already scheduled classifications still run."""
        self._stop_watchers()
        self._listener.monitoring_stopped()

    def organize_now(self) -> int:
        """Sweep the listen directories and submit their files for classification.

        Returns:
            int: Number of submitted files.

        Raises:
            DropsortError: When loading configuration or preparing the output fails.
        """
        try:
            config = self._store.load()
            self._store.ensure_classify_directory()
            self._listener.organize_started()
            count = self._dispatcher.organize_now(config)
        except DropsortError as exc:
            self._listener.organize_failed(str(exc))
            raise
        self._listener.organize_complete(count)
        return count

    def start_if_enabled(self) -> bool:
        """Start monitoring when transfers and background monitoring are enabled."""
        if self._settings.transfer_enabled and self._settings.background_monitor:
            self.start_monitoring()
            return True
        return False

    def organize_if_enabled(self) -> Optional[int]:
        """Run a manual sweep when transfers are enabled."""
        if self._settings.transfer_enabled:
            return self.organize_now()
        return None

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for scheduled and submitted classifications to finish."""
        return self._dispatcher.wait_idle(timeout)

    def close(self) -> None:
        """Stop monitoring and release the job runner."""
        if self._watchers:
            self.stop_monitoring()
        self._runner.shutdown(wait_for_jobs=True)

    # ------------------------------------------------------------------ #
    # Toggles                                                            #
    # ------------------------------------------------------------------ #

    def set_transfer_enabled(self, enabled: bool) -> None:
        self._persist("transfer_enabled", enabled)
        if enabled and self._settings.background_monitor:
            self.start_monitoring()
        elif not enabled and self._watchers:
            self.stop_monitoring()

    def set_background_monitor_enabled(self, enabled: bool) -> None:
        self._persist("background_monitor", enabled)
        if not self._settings.transfer_enabled:
            return
        if enabled:
            self.start_monitoring()
        elif self._watchers:
            self.stop_monitoring()

    def set_auto_organize_on_startup(self, enabled: bool) -> None:
        self._persist("auto_organize_on_startup", enabled)

    # ------------------------------------------------------------------ #
    # Configuration                                                      #
    # ------------------------------------------------------------------ #

    def import_config(self, path: Path) -> TransferConfig:
        return self._store.import_config(path)

    def export_config(self, path: Path) -> None:
        self._store.export_config(path)

    def reset_to_default(self) -> TransferConfig:
        return self._store.reset_to_default()

    def get_current_config(self) -> TransferConfig:
        """Return the current (immutable) configuration snapshot."""
        return self._store.current

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _stop_watchers(self) -> None:
        watchers = list(self._watchers.values())
        self._watchers.clear()
        for watcher in watchers:
            watcher.stop_watching()

    def _persist(self, key: str, value: bool) -> None:
        self._settings = self._settings.model_copy(update={key: value})
        if self._settings_manager is not None:
            self._settings_manager.update({key: value})


__all__ = ["TransferService"]
