"""Persistent clean history.

The history is one JSON document, ``{"version": 1, "sessions": [...]}``,
where each session is a dict written by :class:`vac.core.tracker.Tracker`.
Writes go to a sibling temp file that replaces the history in one step,
so an interrupted write leaves the previous history intact.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any

from vac.utils import xdg_data_home

log = logging.getLogger(__name__)

HISTORY_VERSION = 1

_DATA_DIR = xdg_data_home() / "vac"

HISTORY_FILE = _DATA_DIR / "history.json"


def _empty_history() -> dict[str, Any]:
    return {"version": HISTORY_VERSION, "sessions": []}


def load_history() -> dict[str, Any]:
    """Read the history, or an empty one if it is missing or unreadable."""
    try:
        raw = HISTORY_FILE.read_text()
    except FileNotFoundError:
        return _empty_history()
    except OSError:
        log.exception("Failed to read history file: %s", HISTORY_FILE)
        return _empty_history()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        log.warning("Ignoring corrupt history file: %s", HISTORY_FILE)
        return _empty_history()

    if not isinstance(data, dict) or not isinstance(data.get("sessions"), list):
        log.warning("Ignoring malformed history file: %s", HISTORY_FILE)
        return _empty_history()

    sessions = [s for s in data["sessions"] if isinstance(s, dict) and isinstance(s.get("timestamp"), str)]
    if len(sessions) != len(data["sessions"]):
        log.warning("Skipped %d malformed history entries", len(data["sessions"]) - len(sessions))
    return {"version": data.get("version", HISTORY_VERSION), "sessions": sessions}


def save_history(data: dict[str, Any]) -> None:
    """Replace the history file with *data*."""
    _DATA_DIR.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=_DATA_DIR, prefix=".history-", suffix=".json")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, HISTORY_FILE)
    except OSError:
        log.exception("Failed to save history file: %s", HISTORY_FILE)
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass


def append_session(session: dict[str, Any]) -> None:
    """Add one clean session to the end of the history."""
    history = load_history()
    history["version"] = HISTORY_VERSION
    history["sessions"].append(session)
    save_history(history)
