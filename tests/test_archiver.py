from __future__ import annotations

import builtins
import os
import sys
import tarfile
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest import mock

from bak.archiver import (
    Container,
    archive_directory,
    archive_roots,
    compress_single_file,
    copy_file,
    estimate_node_count,
)
from bak.errors import BackupError, PathNotFoundError, PermissionDeniedError


def _tar_contents(archive: Path) -> dict:
    with tarfile.open(archive, "r:gz") as tar:
        return {
            m.name: (tar.extractfile(m).read() if m.isfile() else None)
            for m in tar.getmembers()
        }


class SingleEntityTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)

    def test_copy_file_is_byte_identical(self) -> None:
        source = self.root / "a.txt"
        source.write_text("hi", encoding="utf-8")

        copy = copy_file(source)

        self.assertEqual(copy, self.root / "a.txt.BAK")
        self.assertEqual(copy.read_text(encoding="utf-8"), "hi")

    def test_copy_file_binary_payload(self) -> None:
        source = self.root / "blob.bin"
        payload = bytes(range(256)) * 1000
        source.write_bytes(payload)

        self.assertEqual(copy_file(source).read_bytes(), payload)

    def test_copy_file_overwrites_existing_copy(self) -> None:
        source = self.root / "a.txt"
        (self.root / "a.txt.BAK").write_text("stale and much longer")
        source.write_text("new")

        self.assertEqual(copy_file(source).read_text(), "new")

    def test_compress_single_file(self) -> None:
        source = self.root / "a.txt"
        source.write_text("hi", encoding="utf-8")

        archive = compress_single_file(source)

        self.assertEqual(archive, self.root / "a.txt.BAK.zip")
        with zipfile.ZipFile(archive) as zf:
            self.assertEqual(zf.namelist(), ["a.txt"])
            self.assertEqual(zf.read("a.txt").decode("utf-8"), "hi")
            self.assertEqual(zf.getinfo("a.txt").compress_type, zipfile.ZIP_DEFLATED)

    def test_missing_source_raises(self) -> None:
        with self.assertRaises(PathNotFoundError):
            copy_file(self.root / "nope.txt")
        with self.assertRaises(FileNotFoundError):
            compress_single_file(self.root / "nope.txt")


class DirectoryArchiverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)
        self.source = self.root / "project"

    def _create_structure(self) -> None:
        (self.source / "sub" / "deep").mkdir(parents=True)
        (self.source / "readme.md").write_text("# Project")
        (self.source / "sub" / "notes.txt").write_text("meeting notes")
        (self.source / "sub" / "deep" / "data.bin").write_bytes(b"\x00\x01\x02")
        (self.source / ".hidden").write_text("kept")

    def test_tar_contains_every_node(self) -> None:
        self._create_structure()
        archive = self.root / "out.tar.gz"

        result = archive_directory(self.source, archive, Container.TAR_GZ)

        self.assertEqual(result.entry_count, 7)
        self.assertEqual(result.entry_count, estimate_node_count([self.source]))
        with tarfile.open(archive, "r:gz") as tar:
            self.assertEqual(
                tar.getnames(),
                [".", ".hidden", "readme.md", "sub", "sub/deep", "sub/deep/data.bin", "sub/notes.txt"],
            )
            self.assertTrue(tar.getmember("sub").isdir())
            self.assertTrue(tar.getmember(".").isdir())
        contents = _tar_contents(archive)
        self.assertEqual(contents["sub/deep/data.bin"], b"\x00\x01\x02")
        self.assertEqual(contents["readme.md"], b"# Project")

    def test_zip_contains_every_node(self) -> None:
        self._create_structure()
        archive = self.root / "out.zip"

        result = archive_directory(self.source, archive, Container.ZIP)

        self.assertEqual(result.entry_count, 7)
        with zipfile.ZipFile(archive) as zf:
            self.assertEqual(
                zf.namelist(),
                ["./", ".hidden", "readme.md", "sub/", "sub/deep/", "sub/deep/data.bin", "sub/notes.txt"],
            )
            self.assertEqual(zf.read("sub/notes.txt"), b"meeting notes")
            self.assertTrue(zf.getinfo("sub/").is_dir())

    def test_zip_round_trip(self) -> None:
        self._create_structure()
        archive = self.root / "out.zip"
        archive_directory(self.source, archive, Container.ZIP)

        restored = self.root / "restored"
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(restored)

        for original in self.source.rglob("*"):
            copy = restored / original.relative_to(self.source)
            self.assertEqual(copy.is_dir(), original.is_dir())
            if original.is_file():
                self.assertEqual(copy.read_bytes(), original.read_bytes())

    def test_empty_directory_has_one_entry(self) -> None:
        self.source.mkdir()
        archive = self.root / "out.tar.gz"

        result = archive_directory(self.source, archive, Container.TAR_GZ)

        self.assertEqual(result.entry_count, 1)
        with tarfile.open(archive, "r:gz") as tar:
            members = tar.getmembers()
        self.assertEqual(len(members), 1)
        self.assertTrue(members[0].isdir())

    def test_rerun_overwrites_archive(self) -> None:
        self._create_structure()
        archive = self.root / "out.tar.gz"
        archive_directory(self.source, archive, Container.TAR_GZ)

        (self.source / "readme.md").unlink()
        archive_directory(self.source, archive, Container.TAR_GZ)

        self.assertNotIn("readme.md", _tar_contents(archive))

    def test_archive_inside_source_is_skipped(self) -> None:
        self._create_structure()
        archive = self.source / "backup.zip"

        result = archive_directory(self.source, archive, Container.ZIP)

        self.assertEqual(result.entry_count, 7)
        with zipfile.ZipFile(archive) as zf:
            self.assertNotIn("backup.zip", zf.namelist())

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks not supported")
    def test_broken_link_aborts_walk(self) -> None:
        self._create_structure()
        os.symlink(self.source / "gone", self.source / "sub" / "dangling")

        with self.assertRaises(PathNotFoundError):
            archive_directory(self.source, self.root / "out.tar.gz", Container.TAR_GZ)

    def test_file_root_is_rejected(self) -> None:
        (self.root / "a.txt").write_text("hi")

        with self.assertRaises(BackupError):
            archive_directory(self.root / "a.txt", self.root / "out.zip", Container.ZIP)


class MultiRootArchiverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)

    def test_file_and_directory_roots(self) -> None:
        file_a = self.root / "fileA"
        file_a.write_text("alpha")
        dir_b = self.root / "dirB"
        dir_b.mkdir()
        (dir_b / "child.txt").write_text("child")
        archive = self.root / "out.tar.gz"

        result = archive_roots([file_a, dir_b], archive, Container.TAR_GZ)

        self.assertEqual(result.entry_count, 2)
        self.assertEqual(_tar_contents(archive), {"fileA": b"alpha", "dirB/child.txt": b"child"})

    def test_basename_chain_keeps_same_names_apart(self) -> None:
        for name in ("left", "right"):
            nested = self.root / name / "inner"
            nested.mkdir(parents=True)
            (nested / "same.txt").write_text(name)
        archive = self.root / "out.zip"

        archive_roots([self.root / "left", self.root / "right"], archive, Container.ZIP)

        with zipfile.ZipFile(archive) as zf:
            self.assertEqual(zf.namelist(), ["left/inner/same.txt", "right/inner/same.txt"])
            self.assertEqual(zf.read("right/inner/same.txt"), b"right")
            self.assertEqual(zf.getinfo("left/inner/same.txt").compress_type, zipfile.ZIP_DEFLATED)

    def test_roots_keep_input_order(self) -> None:
        for name in ("b.txt", "a.txt"):
            (self.root / name).write_text(name)
        archive = self.root / "out.zip"

        archive_roots([self.root / "b.txt", self.root / "a.txt"], archive, Container.ZIP)

        with zipfile.ZipFile(archive) as zf:
            self.assertEqual(zf.namelist(), ["b.txt", "a.txt"])

    def test_empty_directory_root_has_no_entries(self) -> None:
        empty = self.root / "empty"
        empty.mkdir()
        archive = self.root / "out.tar.gz"

        result = archive_roots([empty], archive, Container.TAR_GZ)

        self.assertEqual(result.entry_count, 0)
        self.assertEqual(_tar_contents(archive), {})

    def test_missing_root_fails_whole_archive(self) -> None:
        (self.root / "a.txt").write_text("hi")

        with self.assertRaises(PathNotFoundError):
            archive_roots([self.root / "a.txt", self.root / "missing"], self.root / "out.zip", Container.ZIP)

    def test_requires_a_root(self) -> None:
        with self.assertRaises(ValueError):
            archive_roots([], self.root / "out.zip", Container.ZIP)


class EstimateNodeCountTests(unittest.TestCase):
    def test_counts_files_and_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            root = Path(tmp_dir)
            (root / "dir" / "sub").mkdir(parents=True)
            (root / "dir" / "sub" / "x.txt").write_text("x")
            (root / "single.txt").write_text("y")

            self.assertEqual(estimate_node_count([root / "dir", root / "single.txt"]), 4)


class WalkFailureTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)
        self.source = self.root / "project"
        (self.source / "locked").mkdir(parents=True)
        (self.source / "a.txt").write_text("first")
        (self.source / "locked" / "secret.txt").write_text("secret")
        (self.source / "z.txt").write_text("last")

    def _deny_listing(self, blocked: Path):
        real_listdir = os.listdir

        def listdir(path):
            if Path(path) == blocked:
                raise PermissionError(13, "Permission denied", str(path))
            return real_listdir(path)

        return mock.patch("bak.archiver.os.listdir", side_effect=listdir)

    def _deny_reading(self, blocked: Path):
        real_open = builtins.open

        def fake_open(file, mode="r", *args, **kwargs):
            if isinstance(file, (str, os.PathLike)) and Path(file) == blocked and "r" in mode:
                raise PermissionError(13, "Permission denied", str(file))
            return real_open(file, mode, *args, **kwargs)

        return mock.patch("builtins.open", side_effect=fake_open)

    def test_unlistable_directory_aborts_directory_walk(self) -> None:
        archive = self.root / "out.tar.gz"

        with self._deny_listing(self.source / "locked"):
            with self.assertRaises(PermissionDeniedError) as cm:
                archive_directory(self.source, archive, Container.TAR_GZ)

        self.assertEqual(cm.exception.path, self.source / "locked")
        self.assertNotIn("z.txt", _tar_contents(archive))

    def test_unreadable_file_aborts_directory_walk(self) -> None:
        archive = self.root / "out.zip"

        with self._deny_reading(self.source / "locked" / "secret.txt"):
            with self.assertRaises(PermissionDeniedError):
                archive_directory(self.source, archive, Container.ZIP)

        with zipfile.ZipFile(archive) as zf:
            self.assertEqual(zf.namelist(), ["./", "a.txt", "locked/"])

    def test_unreadable_file_aborts_multi_root(self) -> None:
        other = self.root / "other.txt"
        other.write_text("other")
        archive = self.root / "out.tar.gz"

        with self._deny_reading(self.source / "a.txt"):
            with self.assertRaises(PermissionError):
                archive_roots([self.source, other], archive, Container.TAR_GZ)

        self.assertEqual(_tar_contents(archive), {})

    def test_unlistable_directory_aborts_multi_root(self) -> None:
        archive = self.root / "out.zip"

        with self._deny_listing(self.source / "locked"):
            with self.assertRaises(PermissionDeniedError):
                archive_roots([self.source], archive, Container.ZIP)

        with zipfile.ZipFile(archive) as zf:
            self.assertEqual(zf.namelist(), ["project/a.txt"])


@unittest.skipUnless(sys.platform.startswith("linux"), "needs byte file names")
class UndecodableNameTests(unittest.TestCase):
    def test_zip_keeps_files_with_undecodable_names(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            root = Path(tmp_dir)
            source = root / "src"
            source.mkdir()
            with open(os.path.join(os.fsencode(source), b"caf\xe9.txt"), "wb") as handle:
                handle.write(b"coffee")
            archive = root / "out.zip"

            with self.assertLogs("bak.writers", level="WARNING"):
                result = archive_directory(source, archive, Container.ZIP)

            self.assertEqual(result.entry_count, 2)
            with zipfile.ZipFile(archive) as zf:
                self.assertEqual(zf.namelist(), ["./", "caf\ufffd.txt"])
                self.assertEqual(zf.read("caf\ufffd.txt"), b"coffee")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
