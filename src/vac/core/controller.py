"""Event-loop core: drives scan jobs and the clean workflow for a front end.

A front end calls :meth:`Controller.poll` in its loop and renders
``Controller.view``; it never waits on a worker directly.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from vac.core.cleaner import Cleaner
from vac.core.engine import ScanEngine, ScanJob
from vac.core.tracker import Tracker
from vac.core.view import SortOrder, ViewState
from vac.models.clean_result import CleanResult, DryRunResult
from vac.models.entry import EntryKind
from vac.models.scan_message import (
    DirEntry,
    DirEntrySize,
    Done,
    Error,
    Progress,
    RootItem,
    ScanKind,
    ScanMessage,
)
from vac.settings import AppConfig
from vac.utils import home_dir

log = logging.getLogger(__name__)

ACTIVE_POLL_TIMEOUT = 0.016
IDLE_POLL_TIMEOUT = 0.1


class CleanPhase(Enum):
    IDLE = "idle"
    CONFIRMING = "confirming"
    DRY_RUN_PREVIEW = "dry_run_preview"
    EXECUTING = "executing"


class Controller:
    """Owns the live scan job, the view and the clean state machine."""

    def __init__(
        self,
        config: AppConfig | None = None,
        engine: ScanEngine | None = None,
        tracker: Tracker | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.engine = engine or ScanEngine()
        self.tracker = tracker
        self.view = ViewState(self.config.sort_order(SortOrder.NAME))
        self.clean_phase = CleanPhase.IDLE
        self.dry_run_result: DryRunResult | None = None
        self.last_clean_result: tuple[int, int] | None = None  # (freed_bytes, item_count)
        self.error_message: str | None = None
        self.scan_progress = 0
        self.current_scan_path = ""
        self._job: ScanJob | None = None
        self._root_scan: tuple[ScanKind, Path | None] = (ScanKind.PRESET, None)

    @property
    def scan_in_progress(self) -> bool:
        return self._job is not None

    @property
    def scan_kind(self) -> ScanKind | None:
        return self._job.kind if self._job else None

    @property
    def poll_timeout(self) -> float:
        return ACTIVE_POLL_TIMEOUT if self._job is not None else IDLE_POLL_TIMEOUT

    # -- Starting and stopping scans --

    def start_preset_scan(self) -> ScanJob:
        """Scan the preset catalog into a fresh root view."""
        self._root_scan = (ScanKind.PRESET, None)
        self._reset_root_view()
        self.current_scan_path = "Preparing scan..."
        return self._start(ScanKind.PRESET, extra_targets=self.config.expanded_extra_targets())

    def start_disk_scan(self, path: Path) -> ScanJob:
        """Scan *path* so that its children become the root view."""
        self._root_scan = (ScanKind.DISK, path)
        self._reset_root_view()
        self.current_scan_path = str(path)
        return self._start(ScanKind.DISK, path)

    def start_home_scan(self) -> ScanJob | None:
        home = home_dir()
        if home is None:
            self.error_message = "Cannot determine the home directory"
            return None
        return self.start_disk_scan(home)

    def enter_directory(self) -> ScanJob | None:
        """Descend into the highlighted directory and list it."""
        entry = self.view.current_entry()
        if entry is None or entry.kind is not EntryKind.DIRECTORY:
            return None
        self.view.navigation.enter(entry.path, self.view.entries, self.view.cursor)
        return self._start_listing(entry.path)

    def go_back(self) -> None:
        """Return to the parent directory, restoring its cached entries."""
        if self.view.at_root:
            return
        if self._job is not None:
            self.cancel_scan()
        cached = self.view.navigation.back()
        if cached is not None:
            self.view.restore_cached_dir_entries(*cached)
        else:
            self.view.restore_root_entries()

    def cancel_scan(self) -> None:
        self.engine.cancel()
        self._job = None
        self.scan_progress = 0

    def _start_listing(self, path: Path) -> ScanJob:
        self.view.clear_entries()
        self.current_scan_path = str(path)
        return self._start(ScanKind.LISTING, path)

    def _reset_root_view(self) -> None:
        self.view.navigation.reset_root()
        self.view.clear_entries()
        self.view.clear_root_entries()

    def _start(self, kind: ScanKind, path: Path | None = None, extra_targets=()) -> ScanJob:
        self.scan_progress = 0
        self._job = self.engine.start(kind, path, extra_targets)
        return self._job

    # -- Message handling --

    def poll(self, timeout: float | None = None) -> int:
        """Apply queued scan messages to the view.

        Waits up to *timeout* (default :attr:`poll_timeout`) for the first
        message, then drains whatever else is queued. Returns how many
        messages were applied.
        """
        job = self._job
        if job is None:
            return 0

        first = job.channel.recv(timeout=self.poll_timeout if timeout is None else timeout)
        if first is None:
            return 0

        applied = 0
        for message in [first, *job.channel.drain()]:
            if self._job is None:
                break
            if self.handle_message(message):
                applied += 1
        return applied

    def handle_message(self, message: ScanMessage) -> bool:
        """Apply one message; messages from any job but the live one are dropped."""
        job = self._job
        if job is None or message.job_id != job.job_id:
            log.debug("Dropping stale message from job %d", message.job_id)
            return False

        match message:
            case Progress(percent=pct, path=current):
                self.scan_progress = pct
                self.current_scan_path = current
            case RootItem(entry=entry):
                self.view.apply_root_entry(entry)
            case DirEntry(entry=entry):
                self.view.apply_dir_entry(entry)
            case DirEntrySize(path=path, size=size):
                self.view.apply_entry_size(path, size)
            case Done():
                if job.kind is ScanKind.LISTING:
                    self.view.sort_dir_entries()
                else:
                    self.view.sort_root_entries()
                self._finish(job)
            case Error(message=text):
                log.warning("Scan job %d failed: %s", job.job_id, text)
                self.error_message = text
                self._finish(job)
        return True

    def _finish(self, job: ScanJob) -> None:
        self.engine.finish(job.job_id)
        self._job = None
        self.scan_progress = 100

    # -- Clean workflow --

    def request_clean(self) -> bool:
        """Move to confirmation if anything is selected."""
        if self.clean_phase is not CleanPhase.IDLE or not self.view.selections:
            return False
        self.clean_phase = CleanPhase.CONFIRMING
        self.dry_run_result = None
        return True

    def toggle_dry_run(self) -> DryRunResult | None:
        """Switch between the confirmation and a dry-run preview of it."""
        if self.clean_phase is CleanPhase.CONFIRMING:
            self.dry_run_result = Cleaner.dry_run(self.view.get_selected_items())
            self.clean_phase = CleanPhase.DRY_RUN_PREVIEW
        elif self.clean_phase is CleanPhase.DRY_RUN_PREVIEW:
            self.clean_phase = CleanPhase.CONFIRMING
        return self.dry_run_result

    def cancel_clean(self) -> None:
        if self.clean_phase in (CleanPhase.CONFIRMING, CleanPhase.DRY_RUN_PREVIEW):
            self.clean_phase = CleanPhase.IDLE
            self.dry_run_result = None

    def confirm_clean(self) -> CleanResult | None:
        """Clean the selection, then rescan the current view on success."""
        if self.clean_phase not in (CleanPhase.CONFIRMING, CleanPhase.DRY_RUN_PREVIEW):
            return None

        items = self.view.get_selected_items()
        if not items:
            self.clean_phase = CleanPhase.IDLE
            return None

        self.clean_phase = CleanPhase.EXECUTING
        use_trash = self.config.move_to_trash
        try:
            result = Cleaner.execute(items, use_trash=use_trash)
        finally:
            self.clean_phase = CleanPhase.IDLE
            self.dry_run_result = None

        if self.tracker is not None:
            self.tracker.record(result, len(items), use_trash)

        if not result.success:
            self.error_message = "Clean partially failed:\n" + "\n".join(result.errors)
            return result

        self.last_clean_result = (result.freed_bytes, len(items))
        self.view.clear_selections()
        current = self.view.navigation.current_path
        if current is not None:
            self._start_listing(current)
        else:
            kind, path = self._root_scan
            if kind is ScanKind.DISK and path is not None:
                self.start_disk_scan(path)
            else:
                self.start_preset_scan()
        return result

    def clear_error(self) -> None:
        self.error_message = None
