"""Persistence of host settings in a YAML file."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from dropsort.errors import ConfigError

from .models import HostSettings
from .resolver import ENV_PREFIX, assign_path, parse_env_overrides, resolve_with_precedence

DEFAULT_SETTINGS_PATH = Path("~/.dropsort/settings.yaml")
_SETTINGS_HEADER = textwrap.dedent(
    """\
    # dropsort settings file
    # Generated automatically; manage via `dropsort settings set` or the enable/disable commands.
    # Transfer rules live in the file referenced by config_path.
    """
)


class SettingsManager:
    """Load and persist host settings, applying precedence rules."""

    def __init__(
        self,
        settings_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._settings_path = (settings_path or DEFAULT_SETTINGS_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def settings_path(self) -> Path:
        """Return the resolved settings path."""
        return self._settings_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
    ) -> HostSettings:
        """Load settings from disk, applying environment and CLI overrides."""
        if ensure_file:
            self.ensure_exists()

        return resolve_with_precedence(
            defaults=HostSettings(),
            file_overrides=self._read_file(),
            env_overrides=parse_env_overrides(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw overrides stored on disk."""
        return self._read_file()

    def save(self, settings: HostSettings | Mapping[str, Any]) -> None:
        """Persist settings to disk."""
        if isinstance(settings, HostSettings):
            data = settings.model_dump(mode="python")
        else:
            data = dict(settings)
        self._write_file(data)

    def update(self, changes: Mapping[str, Any]) -> HostSettings:
        """Apply dotted-key ``changes`` to the file, validate, and persist them.

        Returns:
            HostSettings: Settings resolved from the updated file (without environment).

        Raises:
            ConfigError: If the resulting settings are invalid.
        """
        file_data = self._read_file()
        for key, value in changes.items():
            assign_path(file_data, [part for part in key.split(".") if part], value)
        resolved = resolve_with_precedence(defaults=HostSettings(), file_overrides=file_data)
        self._write_file(file_data)
        return resolved

    def ensure_exists(self) -> Path:
        """Create a settings file with defaults if one does not exist."""
        path = self._settings_path
        if not path.exists():
            self._write_file(HostSettings().model_dump(mode="python"))
        return path

    def read_text(self) -> str:
        """Return the current settings file contents."""
        if not self._settings_path.exists():
            return ""
        return self._settings_path.read_text(encoding="utf-8")

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if not self._settings_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._settings_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse settings file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Settings file must contain a mapping at the top level.")

        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._settings_path.parent.mkdir(parents=True, exist_ok=True)
        serialized = yaml.safe_dump(dict(data), sort_keys=False, allow_unicode=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        self._settings_path.write_text(
            _SETTINGS_HEADER + f"# Last updated: {stamp}\n" + serialized,
            encoding="utf-8",
        )


__all__ = ["SettingsManager", "DEFAULT_SETTINGS_PATH", "ENV_PREFIX"]
