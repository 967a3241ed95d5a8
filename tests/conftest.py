"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

import vac.storage as storage
from vac.settings import Settings


@pytest.fixture
def isolate_storage(tmp_path_factory, monkeypatch):
    """Redirect storage to a temp directory outside the test's ``tmp_path``."""
    data_dir = tmp_path_factory.mktemp("vac_data")
    history_file = data_dir / "history.json"
    monkeypatch.setattr(storage, "HISTORY_FILE", history_file)
    monkeypatch.setattr(storage, "_DATA_DIR", data_dir)
    return history_file


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """A throwaway home directory with XDG dirs pointing inside it."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", staticmethod(lambda: home))
    monkeypatch.setenv("XDG_CACHE_HOME", str(home / ".cache"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    monkeypatch.setenv("XDG_STATE_HOME", str(home / ".local" / "state"))
    return home


@pytest.fixture
def isolate_settings(tmp_path_factory, monkeypatch):
    """Use a fresh settings file instead of the user's."""
    settings = Settings(tmp_path_factory.mktemp("vac_config") / "settings.json")
    monkeypatch.setattr(Settings, "_instance", settings)
    return settings


@pytest.fixture
def make_tree():
    """Return a helper that creates files (relative path -> content) below a root."""

    def _make(root: Path, files: dict[str, bytes]) -> Path:
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return root

    return _make
