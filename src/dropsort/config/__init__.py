"""Configuration management for dropsort."""

from dropsort.errors import ConfigError, ParseError, UnsupportedFormatError

from .codec import ConfigFormat, format_for_path, parse, read_config, serialize, write_config
from .models import HostSettings, LoggingSettings, PlaceholderSettings, TransferConfig
from .placeholders import (
    ListenTarget,
    expand_template,
    iter_listen_targets,
    placeholder_table,
    resolve_listen_path,
)
from .resolver import flatten_for_env, resolve_with_precedence
from .settings import DEFAULT_SETTINGS_PATH, SettingsManager
from .store import DEFAULT_CONFIG_PATH, ConfigStore

__all__ = [
    "ConfigError",
    "ParseError",
    "UnsupportedFormatError",
    "ConfigFormat",
    "format_for_path",
    "parse",
    "serialize",
    "read_config",
    "write_config",
    "HostSettings",
    "LoggingSettings",
    "PlaceholderSettings",
    "TransferConfig",
    "ListenTarget",
    "expand_template",
    "resolve_listen_path",
    "iter_listen_targets",
    "placeholder_table",
    "flatten_for_env",
    "resolve_with_precedence",
    "DEFAULT_SETTINGS_PATH",
    "SettingsManager",
    "DEFAULT_CONFIG_PATH",
    "ConfigStore",
]
