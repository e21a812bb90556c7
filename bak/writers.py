"""Sequential entry writers for the tar+gzip and zip containers.

Both writers share one contract: :meth:`ArchiveWriter.begin_entry` hands back a
sink for the entry's bytes and :meth:`ArchiveWriter.finalize` completes it. Only
one entry may be open at a time.
"""

from __future__ import annotations

import contextlib
import gzip
import logging
import os
import shutil
import tarfile
import tempfile
import time
import zipfile
import zlib
from pathlib import Path
from typing import BinaryIO, Optional

from .errors import ArchiveWriteError, BackupError, from_os_error
from .resolver import ArchiveEntryHeader, EntryKind

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
SPOOL_LIMIT = 1024 * 1024

_FORMAT_ERRORS = (tarfile.TarError, zipfile.BadZipFile, zlib.error, ValueError, RuntimeError)


class _DirectorySink:
    """Sink for a directory entry, which never carries a payload."""

    def __init__(self, name: str) -> None:
        self.name = name

    def write(self, data: bytes) -> int:
        if data:
            raise ArchiveWriteError(f"Directory entry {self.name!r} cannot hold data")
        return 0


def _zip_safe_name(name: str) -> str:
    """Return *name* as valid UTF-8, replacing bytes the filesystem name could not decode."""

    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        safe = os.fsencode(name).decode("utf-8", "replace")
        log.warning(f"File name {safe!r} is not valid UTF-8; undecodable bytes were replaced in the zip entry")
        return safe
    return name


class ArchiveWriter:
    """Owns one destination file and the container layers stacked on it.

    Use as a context manager. Layers are opened in nesting order and closed in
    reverse on every exit path, so the container trailer is always written.
    A writer builds exactly one archive and cannot be reopened.
    """

    def __init__(self, destination: Path | str) -> None:
        self.destination = Path(destination)
        self.entry_count = 0
        self._stack: Optional[contextlib.ExitStack] = None
        self._used = False
        self._current: Optional[ArchiveEntryHeader] = None

    def __enter__(self) -> "ArchiveWriter":
        if self._used:
            raise ArchiveWriteError(f"Writer for {self.destination} was already used", self.destination)
        self._used = True
        stack = contextlib.ExitStack()
        try:
            raw = stack.enter_context(open(self.destination, "wb"))
            self._open_layers(stack, raw)
        except OSError as exc:
            stack.close()
            raise from_os_error(exc, self.destination) from exc
        except _FORMAT_ERRORS as exc:
            stack.close()
            raise ArchiveWriteError(f"Cannot start archive {self.destination}: {exc}", self.destination) from exc
        self._stack = stack
        log.debug(f"Opened {type(self).__name__} at {self.destination}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        stack, self._stack = self._stack, None
        if stack is None:
            return
        try:
            self._discard_current()
            stack.close()
        except OSError as exc:
            raise from_os_error(exc, self.destination) from exc
        except _FORMAT_ERRORS as exc:
            raise ArchiveWriteError(f"Cannot finish archive {self.destination}: {exc}", self.destination) from exc
        log.debug(f"Closed {self.destination} after {self.entry_count} entries")

    def begin_entry(self, header: ArchiveEntryHeader):
        """Start *header* and return a writable sink for its bytes."""

        if self._stack is None:
            raise ArchiveWriteError(f"Archive {self.destination} is not open", self.destination)
        if self._current is not None:
            raise ArchiveWriteError(
                f"Entry {self._current.name!r} must be finalized before {header.name!r} can start",
                self.destination,
            )
        try:
            sink = self._begin(header)
        except OSError as exc:
            raise from_os_error(exc, self.destination) from exc
        except _FORMAT_ERRORS as exc:
            raise ArchiveWriteError(f"Cannot write header {header.name!r}: {exc}", self.destination) from exc
        self._current = header
        return sink

    def finalize(self) -> None:
        """Complete the entry started by the last :meth:`begin_entry` call."""

        header = self._current
        if header is None:
            raise ArchiveWriteError("No entry is open", self.destination)
        try:
            self._finalize(header)
        except OSError as exc:
            raise from_os_error(exc, self.destination) from exc
        except _FORMAT_ERRORS as exc:
            raise ArchiveWriteError(f"Cannot finish entry {header.name!r}: {exc}", self.destination) from exc
        finally:
            self._current = None
        self.entry_count += 1
        log.debug(f"Wrote {header.kind.value} entry {header.name!r}")

    def write_entry(self, header: ArchiveEntryHeader, source: Path | str | None = None) -> None:
        """Write *header* and, for files, stream the contents of *source* into it.

        The source is opened before the entry starts, so an unreadable file
        leaves no entry behind.
        """

        if header.kind is not EntryKind.FILE or source is None:
            self.begin_entry(header)
            self.finalize()
            return
        try:
            handle = open(source, "rb")
        except OSError as exc:
            raise from_os_error(exc, source) from exc
        with handle:
            sink = self.begin_entry(header)
            try:
                shutil.copyfileobj(handle, sink, CHUNK_SIZE)
            except BackupError:
                raise
            except OSError as exc:
                raise from_os_error(exc, source) from exc
            except _FORMAT_ERRORS as exc:
                raise ArchiveWriteError(f"Cannot write {header.name!r}: {exc}", self.destination) from exc
        self.finalize()

    def _discard_current(self) -> None:
        self._current = None

    def _open_layers(self, stack: contextlib.ExitStack, raw: BinaryIO) -> None:
        raise NotImplementedError

    def _begin(self, header: ArchiveEntryHeader):
        raise NotImplementedError

    def _finalize(self, header: ArchiveEntryHeader) -> None:
        raise NotImplementedError


class TarGzWriter(ArchiveWriter):
    """Raw file, wrapped by gzip, wrapped by tar framing."""

    def __init__(self, destination: Path | str) -> None:
        super().__init__(destination)
        self._tar: Optional[tarfile.TarFile] = None
        self._spool: Optional[tempfile.SpooledTemporaryFile] = None

    def _open_layers(self, stack: contextlib.ExitStack, raw: BinaryIO) -> None:
        compressed = stack.enter_context(gzip.GzipFile(fileobj=raw, mode="wb"))
        self._tar = stack.enter_context(tarfile.open(fileobj=compressed, mode="w", format=tarfile.PAX_FORMAT))

    def _tarinfo(self, header: ArchiveEntryHeader, size: int = 0) -> tarfile.TarInfo:
        info = tarfile.TarInfo(header.name)
        info.mode = header.mode
        info.mtime = int(header.mtime)
        if header.is_dir:
            info.type = tarfile.DIRTYPE
        else:
            info.type = tarfile.REGTYPE
            info.size = size
        return info

    def _begin(self, header: ArchiveEntryHeader):
        if header.is_dir:
            return _DirectorySink(header.name)
        # The tar header states the size up front, so the body is spooled first.
        self._spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_LIMIT)
        return self._spool

    def _finalize(self, header: ArchiveEntryHeader) -> None:
        if header.is_dir:
            self._tar.addfile(self._tarinfo(header))
            return
        spool, self._spool = self._spool, None
        with spool:
            size = spool.tell()
            spool.seek(0)
            self._tar.addfile(self._tarinfo(header, size), spool)

    def _discard_current(self) -> None:
        super()._discard_current()
        if self._spool is not None:
            self._spool.close()
            self._spool = None


class ZipArchiveWriter(ArchiveWriter):
    """Raw file wrapped by zip framing; files are deflated per entry."""

    def __init__(self, destination: Path | str) -> None:
        super().__init__(destination)
        self._zip: Optional[zipfile.ZipFile] = None
        self._handle = None

    def _open_layers(self, stack: contextlib.ExitStack, raw: BinaryIO) -> None:
        self._zip = stack.enter_context(zipfile.ZipFile(raw, "w", compression=zipfile.ZIP_DEFLATED))

    def _zipinfo(self, header: ArchiveEntryHeader) -> zipfile.ZipInfo:
        name = _zip_safe_name(header.name)
        if header.is_dir and not name.endswith("/"):
            name += "/"
        date_time = time.localtime(header.mtime)[:6]
        if date_time[0] < 1980:
            date_time = (1980, 1, 1, 0, 0, 0)
        info = zipfile.ZipInfo(name, date_time=date_time)
        info.external_attr = (header.mode & 0xFFFF) << 16
        if header.is_dir:
            info.external_attr |= 0x10
            info.compress_type = zipfile.ZIP_STORED
        else:
            info.compress_type = zipfile.ZIP_DEFLATED
        return info

    def _begin(self, header: ArchiveEntryHeader):
        info = self._zipinfo(header)
        if header.is_dir:
            self._zip.writestr(info, b"")
            return _DirectorySink(header.name)
        self._handle = self._zip.open(info, "w", force_zip64=True)
        return self._handle

    def _finalize(self, header: ArchiveEntryHeader) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()

    def _discard_current(self) -> None:
        super()._discard_current()
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()


def writer_for(destination: Path | str, use_zip: bool) -> ArchiveWriter:
    """Return a fresh writer for *destination* in the requested container."""

    if use_zip:
        return ZipArchiveWriter(destination)
    return TarGzWriter(destination)


__all__ = ["ArchiveWriter", "TarGzWriter", "ZipArchiveWriter", "writer_for", "CHUNK_SIZE"]
