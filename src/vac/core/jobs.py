"""Job identifiers, cancellation and the scan message channel.

A scan never gets stopped directly. Starting a new job (or cancelling)
bumps the generation held by :class:`JobToken`; workers compare their own
job id against it and stop producing as soon as the two diverge. The
consumer drops any message whose job id is not the live one, so nothing
has to be joined before the next job starts.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass

from vac.models.scan_message import ScanMessage

log = logging.getLogger(__name__)


class JobToken:
    """Monotonic job generation shared between controller and workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0

    @property
    def current(self) -> int:
        with self._lock:
            return self._generation

    def new_job(self) -> int:
        """Mint a new job id and make it the only accepted one."""
        with self._lock:
            self._generation += 1
            job_id = self._generation
        log.debug("Started job %d", job_id)
        return job_id

    def cancel(self) -> int:
        """Invalidate the live job without starting another one."""
        with self._lock:
            self._generation += 1
            generation = self._generation
        log.debug("Cancelled jobs before generation %d", generation)
        return generation

    def is_current(self, job_id: int) -> bool:
        with self._lock:
            return self._generation == job_id


class Channel:
    """Unbounded message queue from one scan worker to its consumer.

    ``send`` never blocks and reports whether the receiver is still
    listening. Producers ignore that result: a closed channel only means
    the job was abandoned.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[ScanMessage] = queue.SimpleQueue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, message: ScanMessage) -> bool:
        if self._closed.is_set():
            return False
        self._queue.put(message)
        return True

    def close(self) -> None:
        self._closed.set()

    def recv(self, timeout: float | None = None) -> ScanMessage | None:
        """Wait up to *timeout* seconds for the next message."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ScanMessage]:
        """Return every message that is already queued."""
        messages: list[ScanMessage] = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                return messages


@dataclass(frozen=True)
class ScanContext:
    """Everything a worker needs to produce output for one job."""

    job_id: int
    token: JobToken
    channel: Channel

    def is_current(self) -> bool:
        return self.token.is_current(self.job_id)

    def is_cancelled(self) -> bool:
        return not self.token.is_current(self.job_id)

    def emit(self, message: ScanMessage) -> bool:
        """Send *message* unless the job has been superseded."""
        if not self.is_current():
            return False
        self.channel.send(message)
        return True
