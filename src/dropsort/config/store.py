"""Persisted holder of the current transfer configuration snapshot."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from dropsort.errors import StorageError

from .codec import format_for_path, read_config, write_config
from .models import TransferConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.dropsort/transfer_config.fvv")


class ConfigStore:
    """Load, persist, import and export the transfer configuration.

    The snapshot exposed by :attr:`current` is immutable and replaced wholesale on
    every update. Saves are serialized; reads are not guarded against concurrent
    external writers, so the last write wins.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        format_for_path(self._config_path)
        self._current = TransferConfig.create_default()
        self._save_lock = threading.Lock()

    @property
    def config_path(self) -> Path:
        """Return the resolved persisted configuration path."""
        return self._config_path

    @property
    def current(self) -> TransferConfig:
        """Return the current configuration snapshot."""
        return self._current

    def load(self) -> TransferConfig:
        """Read the persisted configuration, creating it with defaults when absent.

        Raises:
            ParseError: If the persisted file is malformed.
            StorageError: If the file cannot be read or the defaults cannot be written.
        """
        if self._config_path.exists():
            self._current = read_config(self._config_path)
            LOGGER.debug("Loaded configuration from %s", self._config_path)
        else:
            LOGGER.info("No configuration at %s; writing defaults", self._config_path)
            self._current = TransferConfig.create_default()
            self.save()
        return self._current

    def save(self) -> None:
        """Write the current snapshot to the persisted path."""
        with self._save_lock:
            try:
                self._config_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageError(
                    f"Failed to create {self._config_path.parent}: {exc}",
                    path=self._config_path.parent,
                    cause=exc,
                ) from exc
            write_config(self._current, self._config_path)

    def update(self, config: TransferConfig) -> None:
        """Replace the snapshot and persist it."""
        self._current = config
        self.save()

    def reset_to_default(self) -> TransferConfig:
        """Replace the snapshot with built-in defaults and persist it."""
        self.update(TransferConfig.create_default())
        return self._current

    def import_config(self, path: Path) -> TransferConfig:
        """Read a configuration from ``path``, adopt it, and persist it."""
        config = read_config(path)
        self.update(config)
        LOGGER.info("Imported configuration from %s", path)
        return config

    def export_config(self, path: Path) -> None:
        """Write the current snapshot to ``path``; its extension selects the format."""
        write_config(self._current, path)
        LOGGER.info("Exported configuration to %s", path)

    def ensure_classify_directory(self) -> Path:
        """Create the classify directory when missing.

        Raises:
            StorageError: If the path exists but is not a directory, or creation fails.
        """
        directory = Path(self._current.classify_directory)
        if directory.exists() and not directory.is_dir():
            raise StorageError(
                f"Classify path exists but is not a directory: {directory}", path=directory
            )
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create {directory}: {exc}", path=directory, cause=exc) from exc
        return directory


__all__ = ["ConfigStore", "DEFAULT_CONFIG_PATH"]
