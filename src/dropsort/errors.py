"""Exception taxonomy shared across dropsort components."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class DropsortError(Exception):
    """Base exception for dropsort failures."""


class ConfigError(DropsortError):
    """Raised when configuration data cannot be processed."""


class ParseError(ConfigError):
    """Raised when configuration text is malformed.

    Attributes:
        cause: Underlying exception, when one triggered the failure.
    """

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class UnsupportedFormatError(ConfigError):
    """Raised when a configuration path has an unrecognized extension."""


class StorageError(DropsortError):
    """Raised when a filesystem operation fails.

    Attributes:
        path: Path involved in the failed operation.
        cause: Underlying exception, when one triggered the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[Path] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.cause = cause


class WatchSetupError(DropsortError):
    """Raised when a watch handle cannot be installed for a root."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


__all__ = [
    "DropsortError",
    "ConfigError",
    "ParseError",
    "UnsupportedFormatError",
    "StorageError",
    "WatchSetupError",
]
