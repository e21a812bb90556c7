"""Work out what a path is and what it should be called inside an archive."""

from __future__ import annotations

import enum
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from .errors import from_os_error


class EntryKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ArchiveEntryHeader:
    """Describes one record inside a tar or zip container.

    ``size`` is the stat size at resolution time and is informational only;
    the writers record the number of bytes actually streamed.
    """

    name: str
    kind: EntryKind
    mode: int = 0o644
    mtime: float = 0.0
    size: int = 0

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


def _stat(path: Path | str) -> os.stat_result:
    # os.stat follows symlinks, so a broken link surfaces as a missing path.
    try:
        return os.stat(path)
    except OSError as exc:
        raise from_os_error(exc, path) from exc


def classify(path: Path | str) -> EntryKind:
    """Return the kind of *path*, read fresh from the filesystem.

    Anything that is not a directory (devices, sockets, links to files) is
    treated as a file as long as ``stat`` succeeds.
    """

    if stat.S_ISDIR(_stat(path).st_mode):
        return EntryKind.DIRECTORY
    return EntryKind.FILE


def read_header(path: Path | str, name: str) -> ArchiveEntryHeader:
    """Build the header for *path*, stored under *name*."""

    info = _stat(path)
    if stat.S_ISDIR(info.st_mode):
        return ArchiveEntryHeader(
            name=name,
            kind=EntryKind.DIRECTORY,
            mode=stat.S_IMODE(info.st_mode),
            mtime=info.st_mtime,
        )
    return ArchiveEntryHeader(
        name=name,
        kind=EntryKind.FILE,
        mode=stat.S_IMODE(info.st_mode),
        mtime=info.st_mtime,
        size=info.st_size,
    )


def to_archive_name(raw: str) -> str:
    """Normalize *raw* to a forward-slash archive name without a leading ``./`` or ``/``."""

    name = raw.replace(os.sep, "/")
    if os.altsep:
        name = name.replace(os.altsep, "/")
    parts = [part for part in name.split("/") if part not in ("", ".")]
    return "/".join(parts) or "."


def join_archive_name(base: str, name: str) -> str:
    """Append *name* to the basename chain *base*."""

    if not base:
        return to_archive_name(name)
    return f"{to_archive_name(base)}/{to_archive_name(name)}"


def base_name(path: Path | str) -> str:
    """Return the last component of *path*, ignoring trailing separators."""

    name = Path(os.path.abspath(path)).name
    return name or str(path)


def relative_archive_name(root: Path | str, path: Path | str) -> str:
    """Name *path* relative to the walked *root*; the root itself is ``.``."""

    return to_archive_name(os.path.relpath(path, root))


__all__ = [
    "ArchiveEntryHeader",
    "EntryKind",
    "base_name",
    "classify",
    "join_archive_name",
    "read_header",
    "relative_archive_name",
    "to_archive_name",
]
