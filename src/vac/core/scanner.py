"""Directory scanning: preset targets, single-level listings and disk scans.

Every scan runs inside a worker thread and reports through a
:class:`~vac.core.jobs.ScanContext`. A scan emits any number of
``Progress``/``RootItem``/``DirEntry``/``DirEntrySize`` messages and then
exactly one ``Done`` or ``Error``, unless the job is superseded first, in
which case it stops without a terminal message.
"""

from __future__ import annotations

import logging
import os
import stat
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from vac.core.jobs import ScanContext
from vac.models.entry import CleanableEntry, EntryKind, ItemCategory
from vac.models.scan_message import (
    DirEntry,
    DirEntrySize,
    Done,
    Error,
    Progress,
    RootItem,
    ScanKind,
    ScanRequest,
)
from vac.utils import (
    home_dir,
    is_macos,
    percent,
    trash_dir,
    xdg_cache_home,
    xdg_data_home,
    xdg_state_home,
)

log = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]

SIZING_LABEL = "Computing directory sizes..."


@dataclass(slots=True)
class TreeStats:
    """Counts below a path. The root itself is never counted as a directory."""

    files: int = 0
    dirs: int = 0
    bytes: int = 0


def walk_tree(path: Path | str, is_cancelled: CancelCheck | None = None) -> TreeStats:
    """Sum the regular files below *path* without following symlinks.

    Uses an explicit stack so deep trees cannot exhaust the call stack.
    Entries that fail to stat are skipped. When *is_cancelled* returns
    True the walk stops and returns what it has counted so far.
    """
    stats = TreeStats()
    try:
        st = os.lstat(path)
    except OSError:
        return stats

    if stat.S_ISREG(st.st_mode):
        stats.files = 1
        stats.bytes = st.st_size
        return stats
    if not stat.S_ISDIR(st.st_mode):
        return stats

    stack: list[str] = [os.fspath(path)]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                for entry in it:
                    if is_cancelled is not None and is_cancelled():
                        return stats
                    try:
                        if entry.is_file(follow_symlinks=False):
                            stats.bytes += entry.stat(follow_symlinks=False).st_size
                            stats.files += 1
                        elif entry.is_dir(follow_symlinks=False):
                            stats.dirs += 1
                            stack.append(entry.path)
                    except OSError:
                        log.debug("Cannot stat: %s", entry.path)
        except OSError:
            log.debug("Cannot read directory: %s", current)
    return stats


def dir_size(path: Path | str, is_cancelled: CancelCheck | None = None) -> int:
    """Apparent size in bytes of every regular file below *path*."""
    return walk_tree(path, is_cancelled).bytes


def _modified_at(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def _entry_from_dirent(item: os.DirEntry) -> CleanableEntry | None:
    """Build an entry for one listing child; symlinks and specials yield None."""
    path = Path(item.path)
    if item.is_dir(follow_symlinks=False):
        try:
            modified_at = item.stat(follow_symlinks=False).st_mtime
        except OSError:
            modified_at = None
        return CleanableEntry(kind=EntryKind.DIRECTORY, path=path, name=item.name, modified_at=modified_at)
    if item.is_file(follow_symlinks=False):
        try:
            st = item.stat(follow_symlinks=False)
            size, modified_at = st.st_size, st.st_mtime
        except OSError:
            size = modified_at = None
        return CleanableEntry(kind=EntryKind.FILE, path=path, name=item.name, size=size, modified_at=modified_at)
    return None


class Scanner:
    """Discovers reclaimable entries and computes their sizes."""

    def __init__(self, home: Path | None = None, max_workers: int | None = None) -> None:
        self.home = home if home is not None else home_dir()
        self.max_workers = max_workers or os.cpu_count() or 1

    # -- Targets --

    def get_scan_targets(self, extra_targets: Iterable[Path] = ()) -> list[tuple[ItemCategory, Path]]:
        """Return the preset catalog in scan order.

        Fixed locations come first, then the conditional ones that exist
        on disk, then any existing user-configured extra targets.
        """
        targets: list[tuple[ItemCategory, Path]] = []
        if self.home is not None:
            targets.extend(self._fixed_targets(self.home))
            for category, path in self._conditional_targets(self.home):
                if path.exists():
                    targets.append((category, path))
        else:
            targets.extend([(ItemCategory.TEMP, Path("/tmp")), (ItemCategory.TEMP, Path("/var/tmp"))])

        for extra in extra_targets:
            if extra.exists():
                targets.append((ItemCategory.CUSTOM, extra))
            else:
                log.info("Skipping missing extra target: %s", extra)
        return targets

    @staticmethod
    def _fixed_targets(home: Path) -> list[tuple[ItemCategory, Path]]:
        if is_macos():
            cache_dir = home / "Library" / "Caches"
            log_dir = home / "Library" / "Logs"
        else:
            cache_dir = xdg_cache_home()
            log_dir = xdg_state_home()
        return [
            (ItemCategory.SYSTEM_CACHE, cache_dir),
            (ItemCategory.LOGS, log_dir),
            (ItemCategory.TEMP, Path("/tmp")),
            (ItemCategory.TEMP, Path("/var/tmp")),
            (ItemCategory.DOWNLOADS, home / "Downloads"),
            (ItemCategory.TRASH, trash_dir(home)),
        ]

    @staticmethod
    def _conditional_targets(home: Path) -> list[tuple[ItemCategory, Path]]:
        if is_macos():
            platform_targets = [
                (ItemCategory.IDE_BUILD_CACHE, home / "Library" / "Developer" / "Xcode" / "DerivedData"),
                (ItemCategory.HOMEBREW_CACHE, home / "Library" / "Caches" / "Homebrew"),
                (ItemCategory.COCOAPODS, home / "Library" / "Caches" / "CocoaPods"),
                (ItemCategory.PIP_CACHE, home / "Library" / "Caches" / "pip"),
                (ItemCategory.DOCKER_DATA, home / "Library" / "Containers" / "com.docker.docker" / "Data"),
            ]
        else:
            platform_targets = [
                (ItemCategory.IDE_BUILD_CACHE, xdg_cache_home() / "JetBrains"),
                (ItemCategory.HOMEBREW_CACHE, xdg_cache_home() / "Homebrew"),
                (ItemCategory.PIP_CACHE, xdg_cache_home() / "pip"),
                (ItemCategory.DOCKER_DATA, xdg_data_home() / "docker"),
            ]
        return platform_targets + [
            (ItemCategory.NPM_CACHE, home / ".npm" / "_cacache"),
            (ItemCategory.CARGO_CACHE, home / ".cargo" / "registry" / "cache"),
        ]

    # -- Dispatch --

    def run(self, request: ScanRequest, ctx: ScanContext) -> None:
        """Execute *request*, reporting through *ctx*."""
        if request.kind is not ScanKind.PRESET and request.path is None:
            ctx.emit(Error(ctx.job_id, f"{request.kind.value} scan needs a path"))
            return

        match request.kind:
            case ScanKind.PRESET:
                self.scan_preset(ctx, request.extra_targets)
            case ScanKind.LISTING:
                self.scan_listing(ctx, request.path)
            case ScanKind.DISK:
                self.scan_disk(ctx, request.path)

    # -- Scan modes --

    def scan_preset(self, ctx: ScanContext, extra_targets: Iterable[Path] = ()) -> None:
        """Size every preset target and report the non-empty ones."""
        if ctx.is_cancelled():
            return

        targets = self.get_scan_targets(extra_targets)
        total = len(targets)

        for index, (category, path) in enumerate(targets):
            if ctx.is_cancelled():
                return
            ctx.emit(Progress(ctx.job_id, percent(index, total), str(path)))

            if not path.exists():
                continue
            size = dir_size(path, ctx.is_cancelled)
            if ctx.is_cancelled():
                return
            if size > 0:
                entry = CleanableEntry(
                    kind=EntryKind.DIRECTORY,
                    path=path,
                    name=category.label,
                    size=size,
                    category=category,
                    modified_at=_modified_at(path),
                )
                ctx.emit(RootItem(ctx.job_id, entry))

        ctx.emit(Done(ctx.job_id))

    def scan_listing(self, ctx: ScanContext, path: Path) -> None:
        """List one directory, then back-fill the sizes of its subdirectories."""
        if ctx.is_cancelled():
            return

        try:
            with os.scandir(path) as it:
                children = list(it)
        except OSError as e:
            ctx.emit(Error(ctx.job_id, f"Cannot read directory {path}: {e}"))
            return

        dir_paths: list[Path] = []
        for child in children:
            if ctx.is_cancelled():
                return
            try:
                entry = _entry_from_dirent(child)
            except OSError:
                log.debug("Cannot access: %s", child.path)
                continue
            if entry is None:
                continue
            if entry.is_dir:
                dir_paths.append(entry.path)
            ctx.emit(DirEntry(ctx.job_id, entry))

        self.backfill_sizes(ctx, dir_paths)
        ctx.emit(Done(ctx.job_id))

    def scan_disk(self, ctx: ScanContext, path: Path) -> None:
        """Report the children of *path* as the new top level.

        Progress runs 0-50% while listing and 50-100% while sizing.
        """
        if ctx.is_cancelled():
            return

        if not path.exists():
            ctx.emit(Error(ctx.job_id, f"Path does not exist: {path}"))
            return
        if not path.is_dir():
            ctx.emit(Error(ctx.job_id, f"Not a directory: {path}"))
            return

        ctx.emit(Progress(ctx.job_id, 0, str(path)))

        try:
            with os.scandir(path) as it:
                children = list(it)
        except OSError as e:
            ctx.emit(Error(ctx.job_id, f"Cannot read directory {path}: {e}"))
            return

        total = len(children)
        dir_paths: list[Path] = []
        for index, child in enumerate(children):
            if ctx.is_cancelled():
                return
            ctx.emit(Progress(ctx.job_id, percent(index, total, 50), child.path))
            try:
                entry = _entry_from_dirent(child)
            except OSError:
                log.debug("Cannot access: %s", child.path)
                continue
            if entry is None:
                continue
            if entry.is_dir:
                dir_paths.append(entry.path)
            ctx.emit(RootItem(ctx.job_id, entry))

        ctx.emit(Progress(ctx.job_id, 50, SIZING_LABEL))
        self.backfill_sizes(ctx, dir_paths, progress_from=50)
        ctx.emit(Done(ctx.job_id))

    # -- Size back-fill --

    def backfill_sizes(self, ctx: ScanContext, dir_paths: list[Path], progress_from: int | None = None) -> None:
        """Sum each directory and emit one ``DirEntrySize`` per directory.

        Subtrees are independent, so they are summed on a pool bounded by
        the available CPUs. A single directory, or a single-core machine,
        is handled in the calling thread.
        """
        if not dir_paths or ctx.is_cancelled():
            return

        def _size_one(dir_path: Path) -> None:
            if ctx.is_cancelled():
                return
            size = dir_size(dir_path, ctx.is_cancelled)
            if ctx.is_cancelled():
                return
            ctx.emit(DirEntrySize(ctx.job_id, dir_path, size))

        total = len(dir_paths)

        def _report(done: int) -> None:
            if progress_from is not None:
                ctx.emit(Progress(ctx.job_id, progress_from + percent(done, total, 100 - progress_from), SIZING_LABEL))

        workers = min(self.max_workers, total)
        if workers <= 1:
            for done, dir_path in enumerate(dir_paths, 1):
                _size_one(dir_path)
                _report(done)
            return

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(_size_one, dir_path) for dir_path in dir_paths]
            for done, future in enumerate(futures, 1):
                future.result()
                _report(done)

