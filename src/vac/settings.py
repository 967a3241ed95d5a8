"""JSON-backed settings store and the engine's configuration snapshot."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vac.core.view import SortOrder
from vac.utils import expand_tilde, xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "vac"
_SETTINGS_FILE = "settings.json"

DEFAULTS: dict[str, Any] = {
    "scan": {"extra_targets": []},
    "ui": {"default_sort": None},
    "safety": {"move_to_trash": False},
}


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("scan.extra_targets")  # reads data["scan"]["extra_targets"]
        settings.set("safety.move_to_trash", True)  # writes + saves
    """

    _instance: Settings | None = None

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @classmethod
    def instance(cls) -> Settings:
        """Return the singleton settings instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def as_dict(self) -> dict[str, Any]:
        """Effective settings: defaults overlaid with the stored values."""
        merged: dict[str, Any] = {}
        for section, values in DEFAULTS.items():
            merged[section] = {key: self.get(f"{section}.{key}", default) for key, default in values.items()}
        return merged

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            return
        if not isinstance(data, dict):
            log.warning("Ignoring settings file %s: top level is not an object", self._path)
            return
        self._data = data

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)


@dataclass
class AppConfig:
    """Configuration consumed by the scan engine and the cleaner."""

    extra_targets: list[str] = field(default_factory=list)
    move_to_trash: bool = False
    default_sort: str | None = None

    @classmethod
    def load(cls, settings: Settings | None = None) -> AppConfig:
        settings = settings or Settings.instance()
        extra = settings.get("scan.extra_targets", [])
        if not isinstance(extra, list):
            log.warning("scan.extra_targets must be a list, ignoring %r", extra)
            extra = []
        sort = settings.get("ui.default_sort")
        return cls(
            extra_targets=[str(p) for p in extra],
            move_to_trash=bool(settings.get("safety.move_to_trash", False)),
            default_sort=sort if isinstance(sort, str) else None,
        )

    def expanded_extra_targets(self) -> list[Path]:
        """Extra targets with ``~`` expanded, keeping only paths that exist."""
        paths = []
        for raw in self.extra_targets:
            path = Path(expand_tilde(raw))
            if path.exists():
                paths.append(path)
            else:
                log.debug("Extra target does not exist: %s", path)
        return paths

    def sort_order(self, default: SortOrder = SortOrder.SIZE) -> SortOrder:
        """``default_sort`` as a :class:`SortOrder`, *default* when unset or unknown."""
        return SortOrder.parse(self.default_sort, default)
