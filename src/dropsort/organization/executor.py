"""Filesystem side of classification: directory creation and collision-safe moves."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dropsort.errors import StorageError

LOGGER = logging.getLogger(__name__)


def split_name(filename: str) -> tuple[str, str]:
    """Split ``filename`` at its last dot into base name and extension.

    The extension is returned without the dot and is empty when the name has none.
    """
    if "." not in filename:
        return filename, ""
    base, extension = filename.rsplit(".", 1)
    return base, extension


class MoveExecutor:
    """Move files into category directories without overwriting existing files."""

    def ensure_directory(self, directory: Path) -> Path:
        """Create ``directory`` (and parents) when missing.

        Raises:
            StorageError: If the path exists as a non-directory or cannot be created.
        """
        if directory.exists() and not directory.is_dir():
            raise StorageError(
                f"Target path exists but is not a directory: {directory}", path=directory
            )
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Failed to create target directory {directory}: {exc}", path=directory, cause=exc
            ) from exc
        return directory

    def reserve_destination(self, directory: Path, filename: str) -> Path:
        """Claim a free path in ``directory`` for ``filename``.

        The name is claimed by creating an empty placeholder with ``O_EXCL``, so
        concurrent moves into one directory never pick the same name. Collisions
        insert ``_<n>`` before the final extension, counting up from 1.

        Raises:
            StorageError: If the placeholder cannot be created.
        """
        base, extension = split_name(filename)
        counter = 0
        while True:
            if counter == 0:
                name = filename
            elif extension:
                name = f"{base}_{counter}.{extension}"
            else:
                name = f"{base}_{counter}"
            candidate = directory / name
            try:
                descriptor = os.open(candidate, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                counter += 1
                continue
            except OSError as exc:
                raise StorageError(
                    f"Failed to reserve {candidate}: {exc}", path=candidate, cause=exc
                ) from exc
            os.close(descriptor)
            return candidate

    def move(self, source: Path, destination: Path) -> Path:
        """Replace the reserved ``destination`` placeholder with ``source``.

        The placeholder is removed again when the move fails.

        Raises:
            StorageError: If the rename fails.
        """
        try:
            source.replace(destination)
        except OSError as exc:
            destination.unlink(missing_ok=True)
            raise StorageError(
                f"Failed to move {source} to {destination}: {exc}", path=source, cause=exc
            ) from exc
        LOGGER.info("Moved %s -> %s", source, destination)
        return destination


__all__ = ["MoveExecutor", "split_name"]
