"""Shared utility functions."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

log = logging.getLogger(__name__)


def is_macos() -> bool:
    return sys.platform == "darwin"


def home_dir() -> Path | None:
    """Return the user's home directory, or None if it cannot be determined."""
    try:
        return Path.home()
    except RuntimeError:
        log.warning("Cannot determine home directory")
        return None


def expand_tilde(raw_path: str) -> str:
    """Expand a leading ``~`` to the home directory."""
    if raw_path.startswith("~"):
        home = home_dir()
        if home is not None:
            return raw_path.replace("~", str(home), 1)
    return raw_path


def xdg_cache_home() -> Path:
    """Return XDG_CACHE_HOME, defaulting to ~/.cache."""
    return Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def xdg_data_home() -> Path:
    """Return XDG_DATA_HOME, defaulting to ~/.local/share."""
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def xdg_state_home() -> Path:
    """Return XDG_STATE_HOME, defaulting to ~/.local/state."""
    return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))


def trash_dir(home: Path) -> Path:
    """Return the platform trash directory for *home*."""
    if is_macos():
        return home / ".Trash"
    if "XDG_DATA_HOME" in os.environ:
        return Path(os.environ["XDG_DATA_HOME"]) / "Trash"
    return home / ".local" / "share" / "Trash"


def bytes_to_human(size_bytes: int) -> str:
    """Convert byte count to a human-readable string."""
    if size_bytes < 0:
        return f"-{bytes_to_human(-size_bytes)}"
    if size_bytes == 0:
        return "0 B"

    units = ("B", "KB", "MB", "GB", "TB")
    value = float(size_bytes)
    for unit in units[:-1]:
        if abs(value) < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} {units[-1]}"


def format_time(timestamp: float, include_time: bool = True) -> str:
    """Format a POSIX timestamp as ``YYYY-MM-DD[ HH:MM:SS]`` in local time."""
    dt = datetime.fromtimestamp(timestamp)
    return dt.strftime("%Y-%m-%d %H:%M:%S" if include_time else "%Y-%m-%d")


def percent(index: int, total: int, scale: int = 100) -> int:
    """Integer progress ``floor(index / total * scale)``; a zero total counts as one."""
    return index * scale // max(total, 1)
