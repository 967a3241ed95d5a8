"""Cleaning and dry-run result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class CleanResult:
    """Result of a cleaning operation."""

    freed_bytes: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(slots=True)
class DryRunItem:
    """What removing a single item would delete."""

    path: Path
    file_count: int = 0
    dir_count: int = 0
    bytes: int = 0


@dataclass(slots=True)
class DryRunResult:
    """Aggregate preview of a clean operation."""

    total_files: int = 0
    total_dirs: int = 0
    total_bytes: int = 0
    items: list[DryRunItem] = field(default_factory=list)

    def add(self, item: DryRunItem) -> None:
        self.items.append(item)
        self.total_files += item.file_count
        self.total_dirs += item.dir_count
        self.total_bytes += item.bytes
