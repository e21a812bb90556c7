"""Back up files and folders as plain copies, tar.gz archives or ZIP files."""

from .archiver import (
    ArchiveResult,
    Container,
    archive_directory,
    archive_roots,
    compress_single_file,
    copy_file,
    estimate_node_count,
)
from .config import BackupConfig, OutputMode
from .errors import (
    ArchiveWriteError,
    BackupError,
    BackupIOError,
    PathNotFoundError,
    PermissionDeniedError,
)
from .orchestrator import Action, BackupResult, run_backup
from .resolver import ArchiveEntryHeader, EntryKind, classify
from .writers import TarGzWriter, ZipArchiveWriter

__all__ = [
    "Action",
    "ArchiveEntryHeader",
    "ArchiveResult",
    "ArchiveWriteError",
    "BackupConfig",
    "BackupError",
    "BackupIOError",
    "BackupResult",
    "Container",
    "EntryKind",
    "OutputMode",
    "PathNotFoundError",
    "PermissionDeniedError",
    "TarGzWriter",
    "ZipArchiveWriter",
    "archive_directory",
    "archive_roots",
    "classify",
    "compress_single_file",
    "copy_file",
    "estimate_node_count",
    "run_backup",
]
