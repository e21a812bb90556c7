"""Pick the right archiver for a backup request and run it."""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from .archiver import archive_directory, archive_roots, compress_single_file, copy_file
from .config import BackupConfig, OutputMode
from .errors import BackupError
from .resolver import EntryKind, classify

log = logging.getLogger(__name__)

DEFAULT_NAME = "backup"


class Action(enum.Enum):
    COPY = "copy"
    COMPRESS_FILE = "compress-file"
    DIRECTORY = "directory"
    MULTI_ROOT = "multi-root"


@dataclass(frozen=True)
class BackupResult:
    action: Action
    sources: Tuple[Path, ...]
    destination: Path
    entry_count: int


def default_destination(mode: OutputMode, cwd: Path | None = None) -> Path:
    """Return ``backup.tar.gz`` or ``backup.zip`` inside *cwd*."""

    folder = cwd if cwd is not None else Path.cwd()
    return folder / f"{DEFAULT_NAME}.{mode.container.value}"


def resolve_destination(config: BackupConfig) -> Path:
    if config.output is not None:
        return config.output
    return default_destination(config.mode)


def _check_destination(config: BackupConfig, destination: Path) -> None:
    """Refuse a destination that is one of the sources, before it gets truncated."""

    target = os.path.realpath(destination)
    for source in config.sources:
        if os.path.realpath(source) == target:
            raise BackupError(f"Output path {destination} is one of the sources being backed up", destination)


def run_backup(config: BackupConfig) -> BackupResult:
    """Run the backup described by *config*.

    Errors from the archivers propagate unchanged; a partially written
    destination is left in place.
    """

    sources = config.sources
    if len(sources) == 1:
        source = sources[0]
        kind = classify(source)
        if kind is EntryKind.FILE:
            if config.output is not None:
                log.warning(f"Ignoring output path {config.output}: single files are backed up next to the original")
            if config.mode is OutputMode.ZIP:
                return BackupResult(Action.COMPRESS_FILE, sources, compress_single_file(source), 1)
            return BackupResult(Action.COPY, sources, copy_file(source), 1)
        if not config.single:
            destination = resolve_destination(config)
            _check_destination(config, destination)
            result = archive_directory(source, destination, config.mode.container)
            return BackupResult(Action.DIRECTORY, sources, result.destination, result.entry_count)

    destination = resolve_destination(config)
    _check_destination(config, destination)
    result = archive_roots(sources, destination, config.mode.container)
    return BackupResult(Action.MULTI_ROOT, sources, result.destination, result.entry_count)


__all__ = ["Action", "BackupResult", "default_destination", "run_backup"]
