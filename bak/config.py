"""Settings for one backup run, built once from the command line."""

from __future__ import annotations

import argparse
import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

from .archiver import Container


class OutputMode(enum.Enum):
    PLAIN = "plain"
    ZIP = "zip"

    @property
    def container(self) -> Container:
        return Container.ZIP if self is OutputMode.ZIP else Container.TAR_GZ


@dataclass(frozen=True)
class BackupConfig:
    """Everything the orchestrator needs to know about a backup request."""

    sources: Tuple[Path, ...]
    output: Optional[Path] = None
    mode: OutputMode = OutputMode.PLAIN
    single: bool = False
    recursive: bool = False

    def __post_init__(self) -> None:
        if not self.sources:
            raise ValueError("At least one source path must be provided.")

    @classmethod
    def create(
        cls,
        sources: Sequence[Path | str],
        output: Path | str | None = None,
        use_zip: bool = False,
        single: bool = False,
        recursive: bool = False,
    ) -> "BackupConfig":
        return cls(
            sources=tuple(Path(src).expanduser() for src in sources),
            output=Path(output).expanduser() if output else None,
            mode=OutputMode.ZIP if use_zip else OutputMode.PLAIN,
            single=single,
            recursive=recursive,
        )

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "BackupConfig":
        return cls.create(
            sources=args.sources,
            output=args.path,
            use_zip=args.zip,
            single=args.single,
            recursive=args.recursive,
        )


__all__ = ["BackupConfig", "OutputMode"]
