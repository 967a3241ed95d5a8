"""Tests for the tracker module."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from vac.core.tracker import Tracker
from vac.models.clean_result import CleanResult
from vac.storage import HISTORY_VERSION, append_session, load_history

pytestmark = pytest.mark.usefixtures("isolate_storage")


class TestTracker:
    def test_record_persists_session(self, isolate_storage):
        Tracker().record(CleanResult(freed_bytes=5000, errors=["x: denied"]), item_count=3, use_trash=True)

        history = json.loads(isolate_storage.read_text())
        assert len(history["sessions"]) == 1
        session = history["sessions"][0]
        assert session["freed_bytes"] == 5000
        assert session["item_count"] == 3
        assert session["use_trash"] is True
        assert session["error_count"] == 1

    def test_multiple_sessions(self):
        Tracker().record(CleanResult(freed_bytes=100), 1)
        Tracker().record(CleanResult(freed_bytes=200), 2, use_trash=True)

        stats = Tracker().get_stats("all")
        assert stats["bytes_freed"] == 300
        assert stats["items_cleaned"] == 3
        assert stats["session_count"] == 2
        assert stats["trashed_sessions"] == 1
        assert stats["lifetime_bytes_freed"] == 300

    def test_period_filters_old_sessions(self, isolate_storage):
        old = (datetime.now(timezone.utc) - timedelta(days=60)).isoformat()
        isolate_storage.write_text(
            json.dumps({"sessions": [{"timestamp": old, "freed_bytes": 1000, "item_count": 4}]})
        )
        Tracker().record(CleanResult(freed_bytes=10), 1)

        week = Tracker().get_stats("week")
        assert week["bytes_freed"] == 10
        assert week["session_count"] == 1
        assert week["lifetime_bytes_freed"] == 1010
        assert Tracker().get_stats("today")["bytes_freed"] == 10

    def test_last_clean_time(self):
        tracker = Tracker()
        assert tracker.get_last_clean_time() is None

        tracker.record(CleanResult(), 0)
        assert datetime.fromisoformat(tracker.get_last_clean_time()).tzinfo is not None

    def test_empty_stats(self):
        stats = Tracker().get_stats("month")
        assert stats["period"] == "month"
        assert stats["bytes_freed"] == 0
        assert stats["session_count"] == 0


class TestStorage:
    EMPTY = {"version": HISTORY_VERSION, "sessions": []}

    def test_missing_history_is_empty(self):
        assert load_history() == self.EMPTY

    def test_corrupt_history_is_ignored(self, isolate_storage):
        isolate_storage.write_text("{not json")
        assert load_history() == self.EMPTY

    def test_malformed_history_is_ignored(self, isolate_storage):
        isolate_storage.write_text(json.dumps({"sessions": "nope"}))
        assert load_history() == self.EMPTY

    def test_malformed_sessions_are_skipped(self, isolate_storage):
        good = {"timestamp": "2024-01-01T00:00:00+00:00", "freed_bytes": 1}
        isolate_storage.write_text(json.dumps({"sessions": [good, "junk", {"freed_bytes": 2}]}))

        assert load_history()["sessions"] == [good]

    def test_append_session_creates_versioned_file(self, isolate_storage):
        isolate_storage.parent.rmdir()

        append_session({"timestamp": "2024-01-01T00:00:00+00:00"})
        append_session({"timestamp": "2024-01-02T00:00:00+00:00"})

        history = json.loads(isolate_storage.read_text())
        assert history["version"] == HISTORY_VERSION
        assert [s["timestamp"][:10] for s in history["sessions"]] == ["2024-01-01", "2024-01-02"]
        assert [p.name for p in isolate_storage.parent.iterdir()] == ["history.json"]

    def test_history_is_kept_out_of_the_test_directory(self, tmp_path):
        assert list(tmp_path.iterdir()) == []
