"""Scan job orchestration engine."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from vac.core.jobs import Channel, JobToken, ScanContext
from vac.core.scanner import Scanner
from vac.models.entry import CleanableEntry
from vac.models.scan_message import (
    DirEntry,
    DirEntrySize,
    Done,
    Error,
    Progress,
    RootItem,
    ScanKind,
    ScanMessage,
    ScanRequest,
)

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]  # (percent, current_path)


class ScanError(Exception):
    """Raised by :meth:`ScanEngine.run` when a job ends with an ``Error``."""


@dataclass(frozen=True)
class ScanJob:
    """Handle on a running scan: its id, kind and private channel."""

    job_id: int
    kind: ScanKind
    channel: Channel


class ScanEngine:
    """Starts scan jobs on background threads.

    Only the most recently started job is live. Starting another job, or
    calling :meth:`cancel`, invalidates the previous one; its worker may
    keep running briefly but nothing it produces is accepted.
    """

    def __init__(self, scanner: Scanner | None = None, token: JobToken | None = None) -> None:
        self.scanner = scanner or Scanner()
        self.token = token or JobToken()
        self._job: ScanJob | None = None

    @property
    def job(self) -> ScanJob | None:
        return self._job

    def is_live(self, job_id: int) -> bool:
        return self._job is not None and self._job.job_id == job_id and self.token.is_current(job_id)

    def start(
        self,
        kind: ScanKind,
        path: Path | None = None,
        extra_targets: Iterable[Path] = (),
    ) -> ScanJob:
        """Start a scan of *kind* and return its handle."""
        if self._job is not None:
            self._job.channel.close()

        job_id = self.token.new_job()
        request = ScanRequest(job_id=job_id, kind=kind, path=path, extra_targets=tuple(extra_targets))
        job = ScanJob(job_id=job_id, kind=kind, channel=Channel())
        ctx = ScanContext(job_id=job_id, token=self.token, channel=job.channel)

        worker = threading.Thread(
            target=self._run_worker,
            args=(request, ctx),
            name=f"vac-scan-{job_id}",
            daemon=True,
        )
        self._job = job
        worker.start()
        log.info("Started %s scan job %d%s", kind.value, job_id, f" for {path}" if path else "")
        return job

    def cancel(self) -> None:
        """Abandon the live job, if any."""
        self.token.cancel()
        if self._job is not None:
            self._job.channel.close()
            log.info("Cancelled scan job %d", self._job.job_id)
            self._job = None

    def finish(self, job_id: int) -> None:
        """Forget the live job once its terminal message has been consumed."""
        if self._job is not None and self._job.job_id == job_id:
            self._job.channel.close()
            self._job = None

    def _run_worker(self, request: ScanRequest, ctx: ScanContext) -> None:
        try:
            self.scanner.run(request, ctx)
        except Exception as exc:
            log.exception("Scan job %d crashed", request.job_id)
            ctx.emit(Error(request.job_id, f"Scan failed: {exc}"))

    def run(
        self,
        kind: ScanKind,
        path: Path | None = None,
        extra_targets: Iterable[Path] = (),
        on_progress: ProgressCallback | None = None,
    ) -> list[CleanableEntry]:
        """Run a scan to completion and return the discovered entries.

        Directory sizes that arrive after their entry are written back
        into the returned entries.

        Raises:
            ScanError: if the job ends with an ``Error`` message.
        """
        job = self.start(kind, path, extra_targets)
        entries: list[CleanableEntry] = []
        by_path: dict[Path, CleanableEntry] = {}

        while True:
            message = job.channel.recv(timeout=0.1)
            if message is None:
                if not self.is_live(job.job_id):
                    raise ScanError(f"Scan job {job.job_id} was cancelled")
                continue
            if message.job_id != job.job_id:
                continue
            try:
                finished = _collect(message, entries, by_path, on_progress)
            except ScanError:
                self.finish(job.job_id)
                raise
            if finished:
                self.finish(job.job_id)
                return entries


def _collect(
    message: ScanMessage,
    entries: list[CleanableEntry],
    by_path: dict[Path, CleanableEntry],
    on_progress: ProgressCallback | None,
) -> bool:
    """Fold one message into *entries*; True once the job has finished."""
    match message:
        case Progress(percent=pct, path=current):
            if on_progress:
                on_progress(pct, current)
        case RootItem(entry=entry) | DirEntry(entry=entry):
            entries.append(entry)
            by_path[entry.path] = entry
        case DirEntrySize(path=path, size=size):
            entry = by_path.get(path)
            if entry is not None and entry.size is None:
                entry.size = size
        case Done():
            return True
        case Error(message=text):
            raise ScanError(text)
    return False
