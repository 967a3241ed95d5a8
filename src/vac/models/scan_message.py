"""Scan requests and the messages a scan job emits."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from vac.models.entry import CleanableEntry


class ScanKind(Enum):
    PRESET = "preset"
    LISTING = "listing"
    DISK = "disk"


@dataclass(frozen=True, slots=True)
class ScanRequest:
    """Parameters of one scan job."""

    job_id: int
    kind: ScanKind
    path: Path | None = None
    extra_targets: tuple[Path, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class Progress:
    job_id: int
    percent: int
    path: str


@dataclass(frozen=True, slots=True)
class RootItem:
    """Top-level entry of a preset or disk scan."""

    job_id: int
    entry: CleanableEntry


@dataclass(frozen=True, slots=True)
class DirEntry:
    """Entry of a single-level directory listing."""

    job_id: int
    entry: CleanableEntry


@dataclass(frozen=True, slots=True)
class DirEntrySize:
    """Back-filled size of a previously reported directory."""

    job_id: int
    path: Path
    size: int


@dataclass(frozen=True, slots=True)
class Done:
    job_id: int


@dataclass(frozen=True, slots=True)
class Error:
    job_id: int
    message: str


ScanMessage = Union[Progress, RootItem, DirEntry, DirEntrySize, Done, Error]


def is_terminal(message: ScanMessage) -> bool:
    """Whether *message* ends its job's stream."""
    return isinstance(message, (Done, Error))
