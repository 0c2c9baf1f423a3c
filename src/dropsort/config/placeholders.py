"""Expansion of path template tokens such as ``{storage}``."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Optional

from .models import PlaceholderSettings, TransferConfig

STORAGE_TOKEN = "{storage}"
ANDROID_DATA_TOKEN = "{androidData}"


def placeholder_table(settings: PlaceholderSettings) -> dict[str, str]:
    """Return the token lookup table for the given placeholder settings."""
    return {
        STORAGE_TOKEN: settings.storage,
        ANDROID_DATA_TOKEN: settings.android_data,
    }


def expand_template(template: str, table: Mapping[str, str]) -> str:
    """Replace every known token in ``template``; unknown tokens are left untouched."""
    expanded = template
    for token, replacement in table.items():
        expanded = expanded.replace(token, replacement)
    return expanded


def resolve_listen_path(template: str, table: Mapping[str, str]) -> Optional[Path]:
    """Expand ``template`` into an absolute path with ``~`` resolved.

    Returns ``None`` when the expansion is blank. Watching, sweeping and origin
    matching all go through this function so they agree on what a listen path is.
    """
    expanded = expand_template(template, table)
    if not expanded.strip():
        return None
    return Path(expanded).expanduser().absolute()


@dataclass(frozen=True, slots=True)
class ListenTarget:
    """A configured listen path after template expansion.

    Attributes:
        label: Origin label the template belongs to.
        template: Raw template as written in the configuration.
        path: Expanded, user-resolved absolute path.
        recursive: Whether the raw template appears in ``rec_list``.
    """

    label: str
    template: str
    path: Path
    recursive: bool


def iter_listen_targets(
    config: TransferConfig, table: Mapping[str, str]
) -> Iterator[ListenTarget]:
    """Yield expanded listen targets in configuration order, skipping blank templates."""
    recursive_templates = set(config.rec_list)
    for label, templates in config.listen_directories.items():
        for template in templates:
            path = resolve_listen_path(template, table)
            if path is None:
                continue
            yield ListenTarget(
                label=label,
                template=template,
                path=path,
                recursive=template in recursive_templates,
            )


__all__ = [
    "STORAGE_TOKEN",
    "ANDROID_DATA_TOKEN",
    "ListenTarget",
    "placeholder_table",
    "expand_template",
    "resolve_listen_path",
    "iter_listen_targets",
]
