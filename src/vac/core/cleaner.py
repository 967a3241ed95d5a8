"""Safe deletion: permanent removal, trash relocation and dry runs.

Nothing here deletes a path unless :meth:`Cleaner.is_safe_to_delete`
accepts it at the moment of deletion. The check resolves symlinks and is
default-deny: only strict descendants of the home directory and paths
under one of the fixed ``TEMP_ROOTS`` are accepted. The environment
(``TMPDIR`` and friends) never widens that set.
"""

from __future__ import annotations

import logging
import os
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable

from send2trash import send2trash

from vac.core.scanner import walk_tree
from vac.models.clean_result import CleanResult, DryRunItem, DryRunResult
from vac.models.entry import CleanableEntry
from vac.utils import home_dir, trash_dir

log = logging.getLogger(__name__)

FORBIDDEN_PATHS = frozenset(
    {
        "/",
        "/System",
        "/Library",
        "/Applications",
        "/Users",
        "/bin",
        "/sbin",
        "/usr",
        "/var",
        "/etc",
        "/private",
    }
)

TEMP_ROOTS = ("/tmp", "/private/tmp", "/var/tmp")


class TrashUnavailableError(Exception):
    """Raised when the trash directory cannot be located."""


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def _remove(path: Path) -> None:
    """Remove a file, a symlink or a whole directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _children(path: Path) -> list[Path]:
    with os.scandir(path) as it:
        return [Path(entry.path) for entry in it]


class Cleaner:
    """Performs destructive filesystem operations on selected entries."""

    @staticmethod
    def is_safe_to_delete(path: Path | str) -> bool:
        """Whether *path* may be deleted.

        Resolves symlinks first, so a link cannot smuggle a protected
        directory past the check. Missing paths are never safe.
        """
        try:
            canonical = Path(path).resolve(strict=True)
        except (OSError, RuntimeError):
            return False

        if str(canonical) in FORBIDDEN_PATHS:
            return False

        home = home_dir()
        if home is not None:
            try:
                home = home.resolve()
            except OSError:
                pass
            if canonical == home:
                return False
            if home in canonical.parents:
                return True

        return any(_is_within(canonical, root) for root in map(Path, TEMP_ROOTS))

    @classmethod
    def unsafe_paths(cls, items: Iterable[CleanableEntry]) -> list[Path]:
        """Paths among *items* that fail the safety check."""
        return [item.path for item in items if not cls.is_safe_to_delete(item.path)]

    @classmethod
    def execute(cls, items: list[CleanableEntry], use_trash: bool = False) -> CleanResult:
        """Validate every item, then clean or trash them.

        If any item is unsafe the whole operation is refused before
        anything is touched.
        """
        unsafe = cls.unsafe_paths(items)
        if unsafe:
            for path in unsafe:
                log.warning("Refusing to clean unsafe path: %s", path)
            return CleanResult(errors=[f"{path}: unsafe path, nothing was deleted" for path in unsafe])
        return cls.trash_items(items) if use_trash else cls.clean(items)

    @classmethod
    def clean(cls, items: Iterable[CleanableEntry]) -> CleanResult:
        """Permanently delete *items*.

        Files are unlinked. Directories are emptied but kept, so cache
        directories survive as empty folders.
        """
        result = CleanResult()
        for item in items:
            path = item.path
            if not path.exists() and not path.is_symlink():
                log.debug("Already gone: %s", path)
                continue
            if not cls.is_safe_to_delete(path):
                result.errors.append(f"{path}: unsafe path, skipped")
                continue
            try:
                if path.is_dir() and not path.is_symlink():
                    for child in _children(path):
                        _remove(child)
                else:
                    path.unlink()
            except OSError as e:
                log.warning("Failed to clean %s: %s", path, e)
                result.errors.append(f"{path}: {e}")
                continue
            result.freed_bytes += item.size or 0
        return result

    @classmethod
    def trash_items(cls, items: Iterable[CleanableEntry]) -> CleanResult:
        """Move *items* to the system trash instead of deleting them.

        For a directory each immediate child is trashed on its own and
        the directory itself is kept.
        """
        result = CleanResult()
        for item in items:
            path = item.path
            if not path.exists() and not path.is_symlink():
                log.debug("Already gone: %s", path)
                continue
            if not cls.is_safe_to_delete(path):
                result.errors.append(f"{path}: unsafe path, skipped")
                continue
            try:
                if path.is_dir() and not path.is_symlink():
                    for child in _children(path):
                        send2trash(str(child))
                else:
                    send2trash(str(path))
            except OSError as e:
                log.warning("Failed to trash %s: %s", path, e)
                result.errors.append(f"{path}: {e}")
                continue
            result.freed_bytes += item.size or 0
        return result

    @staticmethod
    def dry_run(items: list[CleanableEntry], max_workers: int | None = None) -> DryRunResult:
        """Count what cleaning *items* would remove, without touching anything."""

        def _count(item: CleanableEntry) -> DryRunItem:
            stats = walk_tree(item.path)
            return DryRunItem(path=item.path, file_count=stats.files, dir_count=stats.dirs, bytes=stats.bytes)

        workers = min(max_workers or os.cpu_count() or 1, len(items))
        if workers <= 1:
            counted = [_count(item) for item in items]
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                counted = list(executor.map(_count, items))

        result = DryRunResult()
        for item in counted:
            result.add(item)
        return result

    @staticmethod
    def empty_trash() -> int:
        """Permanently delete everything in the trash and return the bytes freed.

        Raises:
            TrashUnavailableError: if the home directory cannot be resolved.
            OSError: if an item in the trash cannot be removed.
        """
        home = home_dir()
        if home is None:
            raise TrashUnavailableError("Cannot locate the trash: home directory is unknown")

        trash = trash_dir(home)
        if not trash.is_dir():
            log.info("No trash directory at %s", trash)
            return 0

        # XDG trash keeps payloads in files/ and metadata in info/
        roots = [d for d in (trash / "files", trash / "info") if d.is_dir()] or [trash]

        freed = 0
        for root in roots:
            for child in _children(root):
                freed += walk_tree(child).bytes
                _remove(child)
        log.info("Emptied trash at %s: %d bytes", trash, freed)
        return freed
