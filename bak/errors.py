"""Errors raised while building a backup."""

from __future__ import annotations

from pathlib import Path


class BackupError(Exception):
    """Base class for every failure reported by the backup engine."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class PathNotFoundError(BackupError, FileNotFoundError):
    """A source path is missing or points at a broken link."""


class PermissionDeniedError(BackupError, PermissionError):
    """A source or destination could not be accessed."""


class BackupIOError(BackupError, OSError):
    """Reading a source or writing the destination failed."""


class ArchiveWriteError(BackupError):
    """The container format rejected a header or could not be finalized."""


def from_os_error(exc: OSError, path: Path | str | None = None) -> BackupError:
    """Translate *exc* into the matching :class:`BackupError` subclass."""

    if isinstance(exc, BackupError):
        return exc
    target = path if path is not None else exc.filename
    reason = exc.strerror or str(exc)
    if isinstance(exc, FileNotFoundError):
        return PathNotFoundError(f"Cannot find: {target} ({reason})", target)
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(f"Permission denied: {target}", target)
    return BackupIOError(f"I/O error on {target}: {reason}", target)


__all__ = [
    "ArchiveWriteError",
    "BackupError",
    "BackupIOError",
    "PathNotFoundError",
    "PermissionDeniedError",
    "from_os_error",
]
