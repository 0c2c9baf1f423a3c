"""Integration tests for the transfer service control surface."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Iterator

import pytest
from watchdog.observers.polling import PollingObserver

from dropsort.config import (
    ConfigStore,
    HostSettings,
    PlaceholderSettings,
    SettingsManager,
    TransferConfig,
)
from dropsort.errors import StorageError
from dropsort.watch import StatusListener, TransferService


class _RecordingListener(StatusListener):
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def monitoring_started(self) -> None:
        self.events.append(("monitoring_started",))

    def monitoring_stopped(self) -> None:
        self.events.append(("monitoring_stopped",))

    def organize_started(self) -> None:
        self.events.append(("organize_started",))

    def organize_complete(self, count: int) -> None:
        self.events.append(("organize_complete", count))

    def organize_failed(self, reason: str) -> None:
        self.events.append(("organize_failed", reason))

    def names(self) -> list[str]:
        return [event[0] for event in self.events]


class _BrokenObserver:
    """Observer stand-in whose handles can never be installed."""

    def start(self) -> None:
        pass

    def schedule(self, handler, path, recursive=False):
        raise OSError("watch limit reached")

    def unschedule(self, handle) -> None:
        pass

    def stop(self) -> None:
        pass

    def join(self, timeout=None) -> None:
        pass


def _polling_observer() -> PollingObserver:
    return PollingObserver(timeout=0.1)


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


@pytest.fixture
def listener() -> _RecordingListener:
    return _RecordingListener()


@pytest.fixture
def manager(tmp_path: Path) -> SettingsManager:
    return SettingsManager(tmp_path / "settings.yaml", env={})


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    config_store = ConfigStore(tmp_path / "config.json")
    config_store.update(
        TransferConfig(
            classify_directory=str(tmp_path / "out"),
            delay=0,
            sub_app=True,
            suffix_rules={"docs": ["txt"], "pictures": ["png"]},
            listen_directories={
                "downloads": ["{storage}/Download"],
                "absent": ["{storage}/Nowhere"],
            },
            rec_list=["{storage}/Download"],
            ignore_list=[],
        )
    )
    (tmp_path / "sd" / "Download").mkdir(parents=True)
    return config_store


@pytest.fixture
def service(
    tmp_path: Path,
    store: ConfigStore,
    manager: SettingsManager,
    listener: _RecordingListener,
) -> Iterator[TransferService]:
    settings = HostSettings(placeholders=PlaceholderSettings(storage=str(tmp_path / "sd")))
    transfer = TransferService(
        store,
        settings,
        settings_manager=manager,
        listener=listener,
        observer_factory=_polling_observer,
        pacing_seconds=0,
    )
    yield transfer
    transfer.close()


def test_start_monitoring_watches_existing_directories(
    tmp_path: Path, service: TransferService, listener: _RecordingListener
) -> None:
    started = service.start_monitoring()

    assert started == 1
    assert service.is_monitoring
    [watcher] = service.watchers
    assert watcher.root == tmp_path / "sd" / "Download"
    assert watcher.recursive is True
    assert listener.names() == ["monitoring_started"]

    service.stop_monitoring()

    assert not service.is_monitoring
    assert watcher.is_watching is False
    assert listener.names() == ["monitoring_started", "monitoring_stopped"]


def test_monitored_file_is_classified(tmp_path: Path, service: TransferService) -> None:
    service.start_monitoring()
    nested = tmp_path / "sd" / "Download" / "album"
    nested.mkdir()
    assert _wait_for(lambda: any(nested in w.watched_paths for w in service.watchers))

    (nested / "cover.png").write_text("png", encoding="utf-8")

    destination = tmp_path / "out" / "downloads" / "pictures" / "cover.png"
    assert _wait_for(destination.exists)


def test_watch_setup_failures_are_skipped(
    store: ConfigStore, manager: SettingsManager, listener: _RecordingListener, tmp_path: Path
) -> None:
    settings = HostSettings(placeholders=PlaceholderSettings(storage=str(tmp_path / "sd")))
    service = TransferService(
        store, settings, settings_manager=manager, listener=listener, observer_factory=_BrokenObserver
    )
    try:
        assert service.start_monitoring() == 0
        assert not service.is_monitoring
        assert listener.names() == ["monitoring_started"]
    finally:
        service.close()


def test_organize_now_sweeps_existing_files(
    tmp_path: Path, service: TransferService, listener: _RecordingListener
) -> None:
    inbox = tmp_path / "sd" / "Download"
    (inbox / "a.txt").write_text("a", encoding="utf-8")
    (inbox / "b.png").write_text("b", encoding="utf-8")

    assert service.organize_now() == 2
    assert service.wait_idle(timeout=5)

    assert (tmp_path / "out" / "downloads" / "docs" / "a.txt").exists()
    assert (tmp_path / "out" / "downloads" / "pictures" / "b.png").exists()
    assert listener.events == [("organize_started",), ("organize_complete", 2)]


def test_organize_failure_is_reported_and_raised(
    tmp_path: Path, service: TransferService, store: ConfigStore, listener: _RecordingListener
) -> None:
    blocker = tmp_path / "blocked"
    blocker.write_text("x", encoding="utf-8")
    store.update(store.current.model_copy(update={"classify_directory": str(blocker)}))

    with pytest.raises(StorageError):
        service.organize_now()

    assert listener.names() == ["organize_failed"]


def test_toggles_persist_and_drive_monitoring(
    service: TransferService, manager: SettingsManager
) -> None:
    service.set_transfer_enabled(True)

    assert service.is_monitoring
    assert manager.load().transfer_enabled is True

    service.set_background_monitor_enabled(False)
    assert not service.is_monitoring
    assert manager.load().background_monitor is False

    service.set_background_monitor_enabled(True)
    assert service.is_monitoring

    service.set_transfer_enabled(False)
    assert not service.is_monitoring

    service.set_auto_organize_on_startup(True)
    assert service.settings.auto_organize_on_startup is True
    assert manager.load().auto_organize_on_startup is True


def test_initialize_applies_startup_toggles(
    tmp_path: Path, store: ConfigStore, manager: SettingsManager, listener: _RecordingListener
) -> None:
    (tmp_path / "sd" / "Download" / "early.txt").write_text("x", encoding="utf-8")
    settings = HostSettings(
        transfer_enabled=True,
        background_monitor=False,
        auto_organize_on_startup=True,
        placeholders=PlaceholderSettings(storage=str(tmp_path / "sd")),
    )
    service = TransferService(
        store, settings, listener=listener, observer_factory=_polling_observer, pacing_seconds=0
    )
    try:
        service.initialize()
        assert service.wait_idle(timeout=5)
    finally:
        service.close()

    assert not service.is_monitoring
    assert (tmp_path / "out" / "downloads" / "docs" / "early.txt").exists()
    assert listener.names() == ["organize_started", "organize_complete"]


def test_disabled_service_does_nothing_on_startup(service: TransferService) -> None:
    assert service.start_if_enabled() is False
    assert service.organize_if_enabled() is None
    assert not service.is_monitoring


def test_configuration_passthrough(tmp_path: Path, service: TransferService) -> None:
    exported = tmp_path / "export.fvv"
    service.export_config(exported)

    reset = service.reset_to_default()
    assert reset == TransferConfig.create_default()
    assert service.get_current_config() == reset

    imported = service.import_config(exported)
    assert imported.classify_directory == str(tmp_path / "out")
    assert service.get_current_config() == imported
