"""Command line interface for the bak backup utility."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

if __package__ in {None, ""}:  # pragma: no cover - exercised via script execution
    sys.path.append(str(Path(__file__).resolve().parent.parent))

from bak.archiver import estimate_node_count
from bak.config import BackupConfig
from bak.errors import BackupError
from bak.orchestrator import Action, BackupResult, run_backup

log = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="bak", description="A simple CLI tool for backing up files.")
    parser.add_argument("sources", nargs="+", help="Files or directories to back up.")
    parser.add_argument(
        "-p",
        "--path",
        help="Output path for directory and multi-file backups. Defaults to backup.tar.gz or backup.zip.",
    )
    parser.add_argument("-z", "--zip", action="store_true", help="Compress the backup to a ZIP file.")
    parser.add_argument(
        "-s",
        "--single",
        action="store_true",
        help="Keep a single directory under its own name instead of storing its contents at the top level.",
    )
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Ask for confirmation before walking large directory trees.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every entry as it is written.")
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _confirm(config: BackupConfig) -> bool:
    """Warn about the size of the walk and wait for Enter; ``False`` means cancelled."""

    nodes = estimate_node_count(config.sources)
    print(
        f"Warning: this backup will walk {nodes} files and folders, which may be heavy for many nested files."
        " Press 'Enter' to continue or 'Ctrl+C' to cancel."
    )
    try:
        input()
    except EOFError:
        # Closed stdin (for example in a pipeline) counts as confirmation.
        pass
    except KeyboardInterrupt:
        return False
    return True


def _describe(result: BackupResult) -> str:
    if result.action in (Action.COPY, Action.COMPRESS_FILE):
        return f"File {result.sources[0]} backed up to {result.destination}"
    if result.action is Action.DIRECTORY:
        return f"Directory {result.sources[0]} backed up to {result.destination}"
    return f"Files backed up to {result.destination}"


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    config = BackupConfig.from_args(args)
    log.debug(f"Running backup with {config}")

    try:
        if config.recursive and not _confirm(config):
            print("Backup cancelled.")
            return 1
        result = run_backup(config)
    except BackupError as exc:
        log.debug("Backup failed", exc_info=True)
        print(f"Error: {exc}")
        return 1

    print(_describe(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
