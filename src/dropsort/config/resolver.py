"""Layering of host settings sources.

Settings are resolved from four layers, lowest first: model defaults, the YAML
settings file, ``DROPSORT__`` environment variables and CLI overrides. Keys in
every layer may be nested mappings or dotted paths (``placeholders.storage``).
"""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Iterable, Mapping

import yaml
from pydantic import ValidationError

from dropsort.errors import ConfigError

from .models import HostSettings

ENV_PREFIX = "DROPSORT__"


def resolve_with_precedence(
    *,
    defaults: HostSettings,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> HostSettings:
    """Validate the merge of every settings layer.

    Args:
        defaults: Baseline settings.
        file_overrides: Values read from the settings file.
        env_overrides: Values parsed from the environment.
        cli_overrides: Values supplied on the command line.

    Returns:
        HostSettings: The validated result; later layers win.

    Raises:
        ConfigError: If a layer is malformed or the merged values are invalid.
    """
    layers = [
        expand_dotted(source, source_name=name)
        for name, source in (
            ("file", file_overrides),
            ("environment", env_overrides),
            ("cli", cli_overrides),
        )
        if source is not None
    ]
    merged = merge_layers(defaults.model_dump(mode="python"), layers)
    try:
        return HostSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings values: {exc}") from exc


def parse_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``DROPSORT__SECTION__KEY`` variables into a nested mapping.

    Values are parsed as YAML scalars so ``true`` and ``10`` keep their types.
    """
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not path:
            continue
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        assign_path(overrides, path, value)
    return overrides


def flatten_for_env(settings: HostSettings) -> Dict[str, str]:
    """Render settings as the environment variables that would reproduce them."""
    flat: Dict[str, str] = {}
    pending: list[tuple[list[str], Any]] = [
        ([key], value) for key, value in settings.model_dump(mode="python").items()
    ]
    while pending:
        path, value = pending.pop(0)
        if isinstance(value, dict):
            pending.extend((path + [str(key)], child) for key, child in value.items())
            continue
        flat[ENV_PREFIX + "__".join(part.upper() for part in path)] = _render_env_value(value)
    return flat


def expand_dotted(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    """Turn dotted keys (at any depth) into nested mappings."""
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")
    result: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted(value, source_name=source_name)
        path = [part for part in key.split(".") if part]
        try:
            assign_path(result, path, value)
        except ConfigError as exc:
            raise ConfigError(f"{source_name.capitalize()} override for {key}: {exc}") from exc
    return result


def assign_path(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Set ``value`` at ``path`` inside ``target``, creating intermediate mappings.

    Mapping values are merged into an existing mapping at the same location.

    Raises:
        ConfigError: If the path is empty or crosses a non-mapping value.
    """
    if not path:
        raise ConfigError("Setting keys must not be empty.")
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(f"'{segment}' already holds a value and cannot be nested into.")
        node = child
    leaf = path[-1]
    if isinstance(value, MappingABC) and isinstance(node.get(leaf), MappingABC):
        node[leaf] = merge_layers(node[leaf], [value])
    else:
        node[leaf] = value


def merge_layers(base: Mapping[str, Any], layers: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Deep-merge ``layers`` over ``base`` without mutating either."""
    merged: dict[str, Any] = deepcopy(dict(base))
    for layer in layers:
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(value, MappingABC) and isinstance(current, MappingABC):
                merged[key] = merge_layers(current, [value])
            else:
                merged[key] = deepcopy(value)
    return merged


def _render_env_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return yaml.safe_dump(value, default_flow_style=True).strip()
    return str(value)


__all__ = [
    "ENV_PREFIX",
    "resolve_with_precedence",
    "parse_env_overrides",
    "flatten_for_env",
    "expand_dotted",
    "assign_path",
    "merge_layers",
]
