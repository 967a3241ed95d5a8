"""Tracks freed space across clean operations."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from vac.models.clean_result import CleanResult
from vac.storage import append_session, load_history

log = logging.getLogger(__name__)


class Tracker:
    """Records executed cleans and aggregates them per period."""

    def record(self, result: CleanResult, item_count: int, use_trash: bool = False) -> None:
        """Append one executed clean to the persisted history."""
        append_session(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "freed_bytes": result.freed_bytes,
                "item_count": item_count,
                "use_trash": use_trash,
                "error_count": len(result.errors),
            }
        )
        log.info("Recorded clean: %d bytes freed from %d items", result.freed_bytes, item_count)

    def get_last_clean_time(self) -> str | None:
        """Return ISO timestamp of the most recent clean, or None."""
        sessions = load_history().get("sessions", [])
        return sessions[-1]["timestamp"] if sessions else None

    def get_stats(self, period: str = "all") -> dict[str, Any]:
        """Get aggregated statistics for a time period.

        Args:
            period: One of 'today', 'week', 'month', 'all'.
        """
        all_sessions = load_history().get("sessions", [])

        match period:
            case "today":
                cutoff = _start_of_today()
            case "week":
                cutoff = _start_of_today() - timedelta(days=7)
            case "month":
                cutoff = _start_of_today() - timedelta(days=30)
            case _:
                cutoff = None

        if cutoff is not None:
            sessions = [s for s in all_sessions if datetime.fromisoformat(s["timestamp"]) >= cutoff]
        else:
            sessions = all_sessions

        return {
            "period": period,
            "bytes_freed": sum(s.get("freed_bytes", 0) for s in sessions),
            "items_cleaned": sum(s.get("item_count", 0) for s in sessions),
            "trashed_sessions": sum(1 for s in sessions if s.get("use_trash")),
            "session_count": len(sessions),
            "lifetime_bytes_freed": sum(s.get("freed_bytes", 0) for s in all_sessions),
        }


def _start_of_today() -> datetime:
    """Return the start of the current UTC day."""
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
