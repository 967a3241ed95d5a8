"""Filesystem entry dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class EntryKind(Enum):
    DIRECTORY = "directory"
    FILE = "file"


class ItemCategory(Enum):
    """Why an entry was surfaced by a preset scan."""

    SYSTEM_CACHE = ("system_cache", "System Cache", "Operating system and application caches")
    APP_CACHE = ("app_cache", "App Cache", "Caches produced by applications")
    LOGS = ("logs", "Logs", "System and application log files")
    TEMP = ("temp", "Temporary Files", "Temporary files and directories")
    IDE_BUILD_CACHE = ("ide_build_cache", "IDE Build Cache", "IDE build products and indexes")
    HOMEBREW_CACHE = ("homebrew_cache", "Homebrew Cache", "Homebrew download cache")
    COCOAPODS = ("cocoapods", "CocoaPods Cache", "CocoaPods cache directory")
    NPM_CACHE = ("npm_cache", "npm Cache", "npm package download cache")
    PIP_CACHE = ("pip_cache", "pip Cache", "pip package download cache")
    CARGO_CACHE = ("cargo_cache", "Cargo Cache", "Cargo registry download cache")
    DOCKER_DATA = ("docker_data", "Docker Data", "Docker container and image data")
    DOWNLOADS = ("downloads", "Downloads", "Files in the downloads folder")
    TRASH = ("trash", "Trash", "Files already moved to the trash")
    CUSTOM = ("custom", "Custom Target", "User-configured extra scan target")

    def __init__(self, key: str, label: str, description: str) -> None:
        self.key = key
        self.label = label
        self.description = description


@dataclass(slots=True)
class CleanableEntry:
    """Single file or directory discovered by a scan.

    ``size`` stays ``None`` until it is known. Directories from listings
    are reported unsized and back-filled once their subtree is summed.
    """

    kind: EntryKind
    path: Path
    name: str
    size: int | None = None
    category: ItemCategory | None = None
    modified_at: float | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(slots=True)
class SelectedEntry:
    """What a selection remembers about an entry, keyed by its path."""

    kind: EntryKind
    size: int | None = None
