"""Parsing and serialization of transfer configurations.

Two textual formats are supported:

* FVV, the flat ``Key = value`` grammar used by legacy tooling. Values are quoted
  strings, bare tokens, lists (``[ "a", "b" ]``) or one-level maps of lists
  (``{ label = [ "a" ] }``). String literals have no escape sequences and maps do
  not nest; both limits are enforced rather than generalized.
* JSON, a direct mapping of the model using camelCase keys.

Both serializers preserve the order of ``listen_directories`` and ``suffix_rules``
because rule order is classification priority.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Union

from pydantic import ValidationError

from dropsort.errors import ConfigError, ParseError, StorageError, UnsupportedFormatError

from .models import TransferConfig

LOGGER = logging.getLogger(__name__)

FvvValue = Union[str, List[str], Dict[str, List[str]]]


class ConfigFormat(str, Enum):
    """Textual configuration formats."""

    FVV = "fvv"
    JSON = "json"


_SCALAR_KEYS = {
    "Name": "name",
    "Author": "author",
    "Version": "version",
    "Classify": "classify_directory",
    "Delay": "delay",
    "MultiUser": "multi_user",
    "SubApp": "sub_app",
    "SubTime": "sub_time",
    "DefaultType": "default_type",
    "IgnoreNoSuffix": "ignore_no_suffix",
}
_MAP_KEYS = {
    "ListenList": "listen_directories",
    "SuffixList": "suffix_rules",
}
_LIST_KEYS = {
    "RecList": "rec_list",
}
_IGNORE_KEYS = ("IgnoreSuffixList", "IgnoreNameList")

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<string>"[^"]*")
    |(?P<unterminated>"[^"]*\Z)
    |(?P<lbracket>\[)
    |(?P<rbracket>\])
    |(?P<lbrace>\{)
    |(?P<rbrace>\})
    |(?P<equals>=)
    |(?P<comma>,)
    |(?P<bare>[^\s=\[\]{}",]+)
    """,
    re.VERBOSE,
)
_BARE_TOKEN = re.compile(r'[^\s=\[\]{}",]+')


class _Token(NamedTuple):
    kind: str
    value: str
    offset: int


def _tokenize(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:  # pragma: no cover - every character matches some branch
            raise ParseError(f"Unexpected character at offset {position}.")
        kind = match.lastgroup or ""
        if kind == "unterminated":
            raise ParseError(f"Unterminated string literal at offset {position}.")
        if kind == "string":
            tokens.append(_Token(kind, match.group()[1:-1], position))
        elif kind != "space":
            tokens.append(_Token(kind, match.group(), position))
        position = match.end()
    return tokens


class _FvvParser:
    """Recursive-descent parser over the FVV token stream."""

    def __init__(self, text: str) -> None:
        self._tokens = _tokenize(text)
        self._index = 0

    def parse(self) -> Dict[str, FvvValue]:
        assignments: Dict[str, FvvValue] = {}
        while not self._at_end():
            key = self._expect_text("assignment key")
            self._expect("equals")
            value = self._value()
            # The first assignment of a key wins.
            assignments.setdefault(key, value)
        return assignments

    def _value(self) -> FvvValue:
        token = self._next("value")
        if token.kind in ("string", "bare"):
            return token.value
        if token.kind == "lbracket":
            return self._list_body()
        if token.kind == "lbrace":
            return self._map_body()
        raise ParseError(f"Unexpected {token.value!r} at offset {token.offset}.")

    def _list_body(self) -> List[str]:
        items: List[str] = []
        while True:
            token = self._next("list item or ']'")
            if token.kind == "rbracket":
                return items
            if token.kind == "comma":
                continue
            if token.kind in ("string", "bare"):
                items.append(token.value)
                continue
            raise ParseError(f"Unexpected {token.value!r} inside list at offset {token.offset}.")

    def _map_body(self) -> Dict[str, List[str]]:
        entries: Dict[str, List[str]] = {}
        while True:
            token = self._next("map entry or '}'")
            if token.kind == "rbrace":
                return entries
            if token.kind == "comma":
                continue
            if token.kind not in ("string", "bare"):
                raise ParseError(f"Unexpected {token.value!r} inside map at offset {token.offset}.")
            self._expect("equals")
            opener = self._next("list")
            if opener.kind == "lbrace":
                raise ParseError(f"Nested maps are not supported (offset {opener.offset}).")
            if opener.kind != "lbracket":
                raise ParseError(f"Map entry {token.value!r} must hold a list (offset {opener.offset}).")
            entries.setdefault(token.value, self._list_body())

    def _expect_text(self, description: str) -> str:
        token = self._next(description)
        if token.kind not in ("string", "bare"):
            raise ParseError(f"Expected {description} at offset {token.offset}, found {token.value!r}.")
        return token.value

    def _expect(self, kind: str) -> _Token:
        token = self._next(kind)
        if token.kind != kind:
            raise ParseError(f"Expected '{kind}' at offset {token.offset}, found {token.value!r}.")
        return token

    def _next(self, description: str) -> _Token:
        if self._at_end():
            raise ParseError(f"Unexpected end of input while reading {description}.")
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _at_end(self) -> bool:
        return self._index >= len(self._tokens)


def parse_fvv(text: str) -> TransferConfig:
    """Parse FVV text into a configuration.

    Raises:
        ParseError: If the text does not follow the grammar.
    """
    assignments = _FvvParser(text).parse()
    data: Dict[str, Any] = {}

    for key, field in _SCALAR_KEYS.items():
        value = assignments.get(key)
        if isinstance(value, str):
            data[field] = value
    for key, field in _LIST_KEYS.items():
        value = assignments.get(key)
        if isinstance(value, list):
            data[field] = value
    for key, field in _MAP_KEYS.items():
        value = assignments.get(key)
        if isinstance(value, dict):
            data[field] = value

    ignore_sources = [assignments.get(key) for key in _IGNORE_KEYS]
    if any(isinstance(source, list) for source in ignore_sources):
        merged: List[str] = []
        for source in ignore_sources:
            if isinstance(source, list):
                merged.extend(source)
        data["ignore_list"] = merged

    return _validate(data, ConfigFormat.FVV)


def serialize_fvv(config: TransferConfig) -> str:
    """Render a configuration as FVV text.

    Raises:
        ConfigError: If a value contains a double quote, which FVV cannot express.
    """
    lines = [
        f"Name = {_quote(config.name)}",
        f"Author = {_quote(config.author)}",
        f"Version = {_quote(config.version)}",
        f"Classify = {_quote(config.classify_directory)}",
        f"Delay = {config.delay}",
        f"MultiUser = {_bool(config.multi_user)}",
        f"SubApp = {_bool(config.sub_app)}",
        f"SubTime = {_bool(config.sub_time)}",
        f"DefaultType = {_quote(config.default_type)}",
        f"IgnoreNoSuffix = {_bool(config.ignore_no_suffix)}",
        "ListenList = {",
    ]
    for label, paths in config.listen_directories.items():
        lines.append(f"  {_map_key(label)} = [")
        lines.extend(f"    {_quote(path)}" for path in paths)
        lines.append("  ]")
    lines.append("}")
    lines.append("RecList = [")
    lines.extend(f"  {_quote(path)}" for path in config.rec_list)
    lines.append("]")
    lines.append("SuffixList = {")
    for label, suffixes in config.suffix_rules.items():
        lines.append(f"  {_map_key(label)} = [{_inline_list(suffixes)}]")
    lines.append("}")
    lines.append(f"IgnoreSuffixList = [{_inline_list(config.ignore_list)}]")
    lines.append("IgnoreNameList = []")
    return "\n".join(lines) + "\n"


def parse_json(text: str) -> TransferConfig:
    """Parse JSON text into a configuration.

    Raises:
        ParseError: If the text is not a JSON object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON configuration: {exc}", cause=exc) from exc
    if not isinstance(data, dict):
        raise ParseError("JSON configuration must contain an object at the top level.")
    return _validate(data, ConfigFormat.JSON)


def serialize_json(config: TransferConfig) -> str:
    """Render a configuration as indented JSON with camelCase keys."""
    payload = config.model_dump(mode="json", by_alias=True)
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def parse(text: str, fmt: ConfigFormat) -> TransferConfig:
    """Parse ``text`` in the given format."""
    if fmt is ConfigFormat.FVV:
        return parse_fvv(text)
    return parse_json(text)


def serialize(config: TransferConfig, fmt: ConfigFormat) -> str:
    """Serialize ``config`` in the given format."""
    if fmt is ConfigFormat.FVV:
        return serialize_fvv(config)
    return serialize_json(config)


def format_for_path(path: Path) -> ConfigFormat:
    """Select the codec for ``path`` based on its extension.

    Raises:
        UnsupportedFormatError: If the extension is neither ``.fvv`` nor ``.json``.
    """
    suffix = path.suffix.lower()
    if suffix == ".fvv":
        return ConfigFormat.FVV
    if suffix == ".json":
        return ConfigFormat.JSON
    raise UnsupportedFormatError(f"Unsupported configuration format: {path.name}")


def read_config(path: Path) -> TransferConfig:
    """Read and parse a configuration file.

    Raises:
        UnsupportedFormatError: If the extension is not recognized.
        StorageError: If the file cannot be read.
        ParseError: If the content is malformed.
    """
    fmt = format_for_path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise StorageError(f"Failed to read configuration {path}: {exc}", path=path, cause=exc) from exc
    return parse(text, fmt)


def write_config(config: TransferConfig, path: Path) -> None:
    """Serialize and write a configuration file.

    Raises:
        UnsupportedFormatError: If the extension is not recognized.
        StorageError: If the file cannot be written.
    """
    text = serialize(config, format_for_path(path))
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Failed to write configuration {path}: {exc}", path=path, cause=exc) from exc
    LOGGER.debug("Wrote configuration to %s", path)


def _validate(data: Dict[str, Any], fmt: ConfigFormat) -> TransferConfig:
    try:
        return TransferConfig.model_validate(data)
    except ValidationError as exc:
        raise ParseError(f"Invalid {fmt.value} configuration: {exc}", cause=exc) from exc


def _quote(value: str) -> str:
    if '"' in value:
        raise ConfigError(f"Value {value!r} contains a double quote and cannot be written as FVV.")
    return f'"{value}"'


def _map_key(value: str) -> str:
    if _BARE_TOKEN.fullmatch(value):
        return value
    return _quote(value)


def _inline_list(values: List[str]) -> str:
    return ", ".join(_quote(value) for value in values)


def _bool(value: bool) -> str:
    return "true" if value else "false"


__all__ = [
    "ConfigFormat",
    "parse",
    "serialize",
    "parse_fvv",
    "serialize_fvv",
    "parse_json",
    "serialize_json",
    "format_for_path",
    "read_config",
    "write_config",
]
