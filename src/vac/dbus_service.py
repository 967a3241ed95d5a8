"""D-Bus service exposing the scan engine and the cleaner.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "s" and "tys" are D-Bus protocol types, not Python syntax.

Scans run on the engine's worker threads. A pump task on the event loop
drains the live job's channel and re-emits its messages as signals, each
tagged with the job id returned by ``StartScan``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal
from dbus_next import BusType

from vac.core.cleaner import Cleaner, TrashUnavailableError
from vac.core.controller import ACTIVE_POLL_TIMEOUT, IDLE_POLL_TIMEOUT
from vac.core.engine import ScanEngine
from vac.core.tracker import Tracker
from vac.models.entry import CleanableEntry, EntryKind
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
from vac.report import clean_result_to_dict, dry_run_to_dict, entry_to_dict
from vac.settings import AppConfig
from vac.utils import expand_tilde

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.vac"
_OBJECT_PATH = "/io/github/vac"
_INTERFACE = "io.github.vac.Manager"


def entries_from_json(raw: str) -> list[CleanableEntry]:
    """Decode a JSON list of paths or ``{"path", "size"}`` objects.

    Raises:
        ValueError: on malformed input.
    """
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("expected a JSON list")

    entries = []
    for item in data:
        if isinstance(item, str):
            path, size = item, None
        elif isinstance(item, dict) and isinstance(item.get("path"), str):
            path, size = item["path"], item.get("size")
            if size is not None and not isinstance(size, int):
                raise ValueError(f"invalid size for {path!r}")
        else:
            raise ValueError(f"invalid item: {item!r}")
        p = Path(expand_tilde(path))
        kind = EntryKind.DIRECTORY if p.is_dir() and not p.is_symlink() else EntryKind.FILE
        entries.append(CleanableEntry(kind=kind, path=p, name=p.name or str(p), size=size))
    return entries


def message_to_signal(message: ScanMessage) -> tuple[str, list[Any]] | None:
    """Map a scan message to ``(signal_name, args)``."""
    match message:
        case Progress(job_id=job_id, percent=pct, path=current):
            return "ScanProgress", [job_id, max(0, min(pct, 100)), current]
        case RootItem(job_id=job_id, entry=entry):
            return "ScanEntry", [job_id, "root", json.dumps(entry_to_dict(entry))]
        case DirEntry(job_id=job_id, entry=entry):
            return "ScanEntry", [job_id, "dir", json.dumps(entry_to_dict(entry))]
        case DirEntrySize(job_id=job_id, path=path, size=size):
            return "ScanEntrySize", [job_id, str(path), size]
        case Done(job_id=job_id):
            return "ScanFinished", [job_id, ""]
        case Error(job_id=job_id, message=text):
            return "ScanFinished", [job_id, text]
    return None


# noinspection PyPep8Naming
class VacDBusService(ServiceInterface):
    """D-Bus service interface for VAC."""

    def __init__(self, engine: ScanEngine | None = None, tracker: Tracker | None = None) -> None:
        super().__init__(_INTERFACE)
        self._engine = engine or ScanEngine()
        self._tracker = tracker or Tracker()

    @method()
    def StartScan(self, kind: "s", path: "s") -> "t":  # type: ignore[override]
        """Start a scan ('preset', 'disk' or 'listing') and return its job id."""
        scan_kind = ScanKind(kind)
        target = Path(expand_tilde(path)) if path else None
        extra = AppConfig.load().expanded_extra_targets() if scan_kind is ScanKind.PRESET else ()
        return self._engine.start(scan_kind, target, extra).job_id

    @method()
    def CancelScan(self):  # type: ignore[override]
        self._engine.cancel()

    @method()
    def DryRun(self, paths_json: "s") -> "s":  # type: ignore[override]
        """Preview what cleaning the given paths would remove."""
        return self.dry_run(paths_json)

    @method()
    def Clean(self, items_json: "s", use_trash: "b") -> "s":  # type: ignore[override]
        """Delete (or trash) the given items."""
        return self.clean(items_json, use_trash)

    @method()
    def EmptyTrash(self) -> "s":  # type: ignore[override]
        return self.empty_trash()

    @method()
    def GetStats(self, period: "s") -> "s":  # type: ignore[override]
        """Get statistics for a time period."""
        return json.dumps(self._tracker.get_stats(period))

    @signal()
    def ScanProgress(self, job_id: int, percent: int, path: str) -> "tys":  # type: ignore[override]
        return [job_id, percent, path]

    @signal()
    def ScanEntry(self, job_id: int, level: str, entry_json: str) -> "tss":  # type: ignore[override]
        return [job_id, level, entry_json]

    @signal()
    def ScanEntrySize(self, job_id: int, path: str, size: int) -> "tst":  # type: ignore[override]
        return [job_id, path, size]

    @signal()
    def ScanFinished(self, job_id: int, error: str) -> "ts":  # type: ignore[override]
        return [job_id, error]

    # -- Method bodies, callable without a bus --

    def dry_run(self, paths_json: str) -> str:
        try:
            entries = entries_from_json(paths_json)
        except ValueError as e:
            return json.dumps({"error": str(e)})
        return json.dumps(dry_run_to_dict(Cleaner.dry_run(entries)))

    def clean(self, items_json: str, use_trash: bool) -> str:
        """Run a clean and record it; bad input yields ``{"error": ...}``."""
        try:
            entries = entries_from_json(items_json)
        except ValueError as e:
            return json.dumps({"error": str(e)})
        result = Cleaner.execute(entries, use_trash=use_trash)
        self._tracker.record(result, len(entries), use_trash)
        return json.dumps(clean_result_to_dict(result, len(entries), use_trash))

    def empty_trash(self) -> str:
        try:
            freed = Cleaner.empty_trash()
        except (TrashUnavailableError, OSError) as e:
            return json.dumps({"error": str(e)})
        return json.dumps({"freed_bytes": freed})

    def pump_once(self) -> int:
        """Emit signals for everything queued on the live job; returns how many."""
        job = self._engine.job
        if job is None:
            return 0
        emitted = 0
        for message in job.channel.drain():
            if not self._engine.is_live(message.job_id):
                log.debug("Dropping stale message from job %d", message.job_id)
                continue
            mapped = message_to_signal(message)
            if mapped is None:
                continue
            name, args = mapped
            getattr(self, name)(*args)
            emitted += 1
            if isinstance(message, (Done, Error)):
                self._engine.finish(message.job_id)
                break
        return emitted

    async def pump(self) -> None:
        """Forward scan messages to signals until cancelled."""
        while True:
            self.pump_once()
            busy = self._engine.job is not None
            await asyncio.sleep(ACTIVE_POLL_TIMEOUT if busy else IDLE_POLL_TIMEOUT)


async def run_service() -> None:
    """Start the D-Bus service."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    service = VacDBusService()
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    log.info("D-Bus service started on %s", _BUS_NAME)
    pump = asyncio.create_task(service.pump())
    try:
        await bus.wait_for_disconnect()
    finally:
        pump.cancel()


def start_service() -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service())
