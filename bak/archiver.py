"""Core functionality for copying files and building tar+gzip or zip backups."""

from __future__ import annotations

import enum
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

from .errors import BackupError, from_os_error
from .resolver import (
    EntryKind,
    base_name,
    classify,
    join_archive_name,
    read_header,
    relative_archive_name,
)
from .writers import CHUNK_SIZE, ArchiveWriter, writer_for

log = logging.getLogger(__name__)

COPY_SUFFIX = ".BAK"


class Container(enum.Enum):
    TAR_GZ = "tar.gz"
    ZIP = "zip"


@dataclass(frozen=True)
class ArchiveResult:
    """Where an archive was written and how many entries it holds."""

    destination: Path
    entry_count: int


def _list_children(directory: Path) -> List[Path]:
    try:
        names = sorted(os.listdir(directory))
    except OSError as exc:
        raise from_os_error(exc, directory) from exc
    return [directory / name for name in names]


def copy_file(source: Path | str) -> Path:
    """Copy *source* byte for byte to ``<source>.BAK`` and return the copy's path."""

    src = Path(source)
    destination = src.with_name(src.name + COPY_SUFFIX)
    log.info(f"Copying {src} to {destination}")
    try:
        with open(src, "rb") as reader, open(destination, "wb") as writer:
            shutil.copyfileobj(reader, writer, CHUNK_SIZE)
    except OSError as exc:
        raise from_os_error(exc) from exc
    return destination


def compress_single_file(source: Path | str) -> Path:
    """Write *source* as the only entry of ``<source>.BAK.zip``.

    The entry is named by the file's base name. Returns the archive path.
    """

    src = Path(source)
    destination = src.with_name(src.name + COPY_SUFFIX + ".zip")
    log.info(f"Compressing {src} into {destination}")
    header = read_header(src, base_name(src))
    with writer_for(destination, use_zip=True) as writer:
        writer.write_entry(header, src)
    return destination


def _walk(root: Path) -> Iterator[Tuple[Path, EntryKind]]:
    """Yield *root* and then every descendant, depth first, in sorted order."""

    kind = classify(root)
    yield root, kind
    if kind is EntryKind.DIRECTORY:
        for child in _list_children(root):
            yield from _walk(child)


def _is_destination(writer: ArchiveWriter, path: Path) -> bool:
    if os.path.abspath(path) == os.path.abspath(writer.destination):
        log.debug(f"Skipping {path}: it is the archive being written")
        return True
    return False


def _write_tree(writer: ArchiveWriter, root: Path) -> None:
    for path, _ in _walk(root):
        if _is_destination(writer, path):
            continue
        header = read_header(path, relative_archive_name(root, path))
        writer.write_entry(header, path)


def archive_directory(root: Path | str, destination: Path | str, container: Container) -> ArchiveResult:
    """Archive every node under *root*, including directories, into *destination*.

    Entry names are the node paths with the root prefix stripped; the root
    itself is stored as ``.``. Any failure aborts the whole archive.
    """

    src = Path(root)
    if classify(src) is not EntryKind.DIRECTORY:
        raise BackupError(f"Not a directory: {src}", src)
    log.info(f"Archiving directory {src} into {destination} ({container.value})")
    with writer_for(destination, use_zip=container is Container.ZIP) as writer:
        _write_tree(writer, src)
    return ArchiveResult(Path(destination), writer.entry_count)


def _add_root(writer: ArchiveWriter, path: Path, base: str = "") -> None:
    if _is_destination(writer, path):
        return
    name = join_archive_name(base, base_name(path))
    if classify(path) is EntryKind.DIRECTORY:
        for child in _list_children(path):
            _add_root(writer, child, name)
        return
    writer.write_entry(read_header(path, name), path)


def archive_roots(roots: Sequence[Path | str], destination: Path | str, container: Container) -> ArchiveResult:
    """Archive each root under its own base name, files only.

    Files nested in a directory root are named by the chain of directory base
    names leading to them, so equal file names in different roots do not
    collide. Directories get no entry of their own.
    """

    if not roots:
        raise ValueError("At least one source path must be provided.")
    log.info(f"Archiving {len(roots)} roots into {destination} ({container.value})")
    with writer_for(destination, use_zip=container is Container.ZIP) as writer:
        for root in roots:
            _add_root(writer, Path(root))
    return ArchiveResult(Path(destination), writer.entry_count)


def estimate_node_count(roots: Sequence[Path | str]) -> int:
    """Count every file and directory that a backup of *roots* would visit."""

    return sum(1 for root in roots for _ in _walk(Path(root)))


__all__ = [
    "ArchiveResult",
    "COPY_SUFFIX",
    "Container",
    "archive_directory",
    "archive_roots",
    "compress_single_file",
    "copy_file",
    "estimate_node_count",
]
