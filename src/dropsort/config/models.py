"""Configuration models describing transfer rules and host settings."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

DYNAMIC_NAME_TOKEN = "[name]"

_DEFAULT_LISTEN_DIRECTORIES: Dict[str, List[str]] = {
    "下载": ["{storage}/Download"],
    "QQ": ["{androidData}/com.tencent.mobileqq/Tencent/QQfile_recv"],
    "微信": ["{androidData}/com.tencent.mm/MicroMsg/Download"],
}

_DEFAULT_SUFFIX_RULES: Dict[str, List[str]] = {
    "压缩包": ["zip", "rar", "7z", "tar", "gz"],
    "程序": ["exe", "msi", "bat", "sh", "cmd", "jar"],
    "视频": ["mp4", "mkv", "avi", "mov", "wmv", "flv"],
    "文档": ["doc", "docx", "pdf", "txt", "xls", "xlsx", "ppt", "pptx"],
    "安装包": ["apk", "apks", "xapk", "ipa"],
    "音频": ["mp3", "wav", "flac", "aac", "ogg"],
    "图片": ["jpg", "jpeg", "png", "gif", "bmp", "webp"],
    "代码": ["java", "py", "js", "html", "css", "json", "xml", "kt"],
    "其他": ["bin", "dat"],
}


def _field_default(cls: type[BaseModel], info: ValidationInfo) -> Any:
    return cls.model_fields[info.field_name].get_default(call_default_factory=True)


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def _string_list(values: Any) -> Optional[List[str]]:
    if isinstance(values, str):
        return [values]
    if not isinstance(values, (list, tuple)):
        return None
    return [str(item) for item in values if item is not None]


class TransferConfig(BaseModel):
    """Immutable snapshot of the transfer rules.

    Field names map to camelCase JSON keys (``classifyDirectory``, ``suffixRules``...).
    Scalar values that cannot be interpreted fall back to their defaults instead of
    failing validation, mirroring the lenient legacy format.

    Attributes:
        name: Descriptive configuration name.
        author: Descriptive author string.
        version: Descriptive version string.
        classify_directory: Root directory receiving categorized files.
        delay: Settle delay in seconds before a new file is classified.
        multi_user: Legacy flag retained for format compatibility.
        sub_app: Whether output nests under the origin label directory.
        sub_time: Legacy flag retained for format compatibility.
        default_type: Category used when no suffix rule matches.
        ignore_no_suffix: Whether files without an extension are skipped.
        listen_directories: Ordered origin label to path templates mapping.
        rec_list: Path templates that are watched recursively.
        suffix_rules: Ordered category label to extensions mapping; order is priority.
        ignore_list: Tokens matched against extensions and filenames.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    name: str = "默认配置"
    author: str = "MaterialFiles"
    version: str = "1.0.0"
    classify_directory: str = "/storage/emulated/0/文件分类"
    delay: int = 60
    multi_user: bool = False
    sub_app: bool = True
    sub_time: bool = False
    default_type: str = "其他"
    ignore_no_suffix: bool = True
    listen_directories: Dict[str, List[str]] = Field(default_factory=dict)
    rec_list: List[str] = Field(default_factory=list)
    suffix_rules: Dict[str, List[str]] = Field(default_factory=dict)
    ignore_list: List[str] = Field(
        default_factory=lambda: ["bak", "aria", "tmp", "cache", "log"]
    )

    @classmethod
    def create_default(cls) -> "TransferConfig":
        """Return the built-in default configuration with sample sources and rules."""
        return cls(
            listen_directories={key: list(value) for key, value in _DEFAULT_LISTEN_DIRECTORIES.items()},
            suffix_rules={key: list(value) for key, value in _DEFAULT_SUFFIX_RULES.items()},
        )

    @field_validator("name", "author", "version", "default_type", mode="before")
    @classmethod
    def _text_or_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or isinstance(value, (dict, list, bool)):
            return _field_default(cls, info)
        return str(value)

    @field_validator("classify_directory", mode="before")
    @classmethod
    def _directory_not_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or isinstance(value, (dict, list, bool)):
            return _field_default(cls, info)
        text = str(value)
        if not text.strip():
            return _field_default(cls, info)
        return text

    @field_validator("delay", mode="before")
    @classmethod
    def _delay_or_default(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, bool):
            return _field_default(cls, info)
        try:
            parsed = int(str(value).strip()) if isinstance(value, str) else int(value)
        except (TypeError, ValueError):
            return _field_default(cls, info)
        if parsed < 0:
            return _field_default(cls, info)
        return parsed

    @field_validator("multi_user", "sub_app", "sub_time", "ignore_no_suffix", mode="before")
    @classmethod
    def _bool_or_default(cls, value: Any, info: ValidationInfo) -> Any:
        parsed = _coerce_bool(value)
        if parsed is None:
            return _field_default(cls, info)
        return parsed

    @field_validator("listen_directories", "suffix_rules", mode="before")
    @classmethod
    def _ordered_mapping(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, Mapping):
            return _field_default(cls, info)
        result: Dict[str, List[str]] = {}
        for key, entries in value.items():
            items = _string_list(entries)
            if items is None:
                continue
            if info.field_name == "suffix_rules":
                items = [item.strip().lstrip(".").lower() for item in items]
            result[str(key)] = items
        return result

    @field_validator("rec_list", "ignore_list", mode="before")
    @classmethod
    def _ordered_list(cls, value: Any, info: ValidationInfo) -> Any:
        items = _string_list(value)
        if items is None:
            return _field_default(cls, info)
        if info.field_name == "ignore_list":
            return list(dict.fromkeys(items))
        return items


class PlaceholderSettings(BaseModel):
    """Lookup table for path template tokens supplied by the host.

    Attributes:
        storage: Replacement for ``{storage}`` (primary storage root).
        android_data: Replacement for ``{androidData}`` (per-app external data root).
    """

    model_config = ConfigDict(extra="forbid")

    storage: str = "/storage/emulated/0"
    android_data: str = "/storage/emulated/0/Android/data"


class LoggingSettings(BaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; rotation applies when set.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    model_config = ConfigDict(extra="forbid")

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 3


class HostSettings(BaseModel):
    """Host-level preferences surrounding the transfer rules.

    Attributes:
        transfer_enabled: Master switch for automatic transfers.
        background_monitor: Whether monitoring runs while transfers are enabled.
        auto_organize_on_startup: Whether existing files are swept on startup.
        config_path: Location of the persisted transfer configuration.
        placeholders: Path template token values.
        logging: Logging configuration.
    """

    model_config = ConfigDict(extra="forbid")

    transfer_enabled: bool = False
    background_monitor: bool = True
    auto_organize_on_startup: bool = False
    config_path: str = "~/.dropsort/transfer_config.fvv"
    placeholders: PlaceholderSettings = Field(default_factory=PlaceholderSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "DYNAMIC_NAME_TOKEN",
    "TransferConfig",
    "PlaceholderSettings",
    "LoggingSettings",
    "HostSettings",
]
