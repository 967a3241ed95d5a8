"""Tests for the command line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from vac.cli import main

pytestmark = pytest.mark.usefixtures("isolate_storage", "isolate_settings")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def target(fake_home, make_tree):
    return make_tree(fake_home / "target", {"cache/a": b"x" * 30, "cache/b": b"x" * 10, "notes.txt": b"x" * 5})


class TestScan:
    def test_json_report_sorted_by_size(self, runner, target):
        result = runner.invoke(main, ["scan", str(target), "--json"])

        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert report["scan_target"] == str(target)
        assert report["sort_order"] == "size"
        assert report["total_items"] == 2
        assert report["total_size"] == 45
        assert [e["name"] for e in report["entries"]] == ["cache", "notes.txt"]
        assert "dry_run" not in report

    def test_sort_by_name(self, runner, target):
        result = runner.invoke(main, ["scan", str(target), "--sort", "name", "--json"])

        report = json.loads(result.output)
        assert report["sort_order"] == "name"
        assert [e["kind"] for e in report["entries"]] == ["directory", "file"]

    def test_dry_run_does_not_delete(self, runner, target):
        result = runner.invoke(main, ["scan", str(target), "--dry-run", "--clean", "--json"])

        report = json.loads(result.output)
        assert report["dry_run"]["total_files"] == 3
        assert report["dry_run"]["total_size"] == 45
        assert "clean_result" not in report
        assert (target / "notes.txt").exists()

    def test_clean_with_yes(self, runner, target, isolate_storage):
        result = runner.invoke(main, ["scan", str(target), "--clean", "--yes", "--json"])

        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert report["clean_result"]["success"] is True
        assert report["clean_result"]["freed_space"] == 45
        assert not (target / "notes.txt").exists()
        assert list((target / "cache").iterdir()) == []
        assert json.loads(isolate_storage.read_text())["sessions"][0]["freed_bytes"] == 45

    def test_clean_aborted_at_prompt(self, runner, target):
        result = runner.invoke(main, ["scan", str(target), "--clean"], input="n\n")

        assert result.exit_code == 1
        assert (target / "notes.txt").exists()

    def test_output_file(self, runner, target, tmp_path):
        out = tmp_path / "report.json"
        result = runner.invoke(main, ["scan", str(target), "--output", str(out)])

        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text())["total_items"] == 2

    def test_human_output(self, runner, target):
        result = runner.invoke(main, ["scan", str(target)])

        assert result.exit_code == 0, result.output
        assert "notes.txt" in result.output

    def test_missing_path_fails(self, runner, tmp_path):
        result = runner.invoke(main, ["scan", str(tmp_path / "missing")])

        assert result.exit_code == 1
        assert "Path does not exist" in result.output

    def test_sort_falls_back_to_settings(self, runner, target, isolate_settings):
        isolate_settings.set("ui.default_sort", "name")

        result = runner.invoke(main, ["scan", str(target), "--json"])
        assert json.loads(result.output)["sort_order"] == "name"


class TestOtherCommands:
    def test_stats_json(self, runner):
        result = runner.invoke(main, ["stats", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output)["session_count"] == 0

    def test_stats_human(self, runner):
        result = runner.invoke(main, ["stats", "--period", "week"])

        assert result.exit_code == 0
        assert "Statistics (week)" in result.output

    def test_config_set_and_show(self, runner, isolate_settings):
        result = runner.invoke(main, ["config", "set", "safety.move_to_trash", "true"])
        assert result.exit_code == 0
        assert isolate_settings.get("safety.move_to_trash") is True

        result = runner.invoke(main, ["config", "show"])
        shown = json.loads(result.output.split("\n", 1)[1])
        assert shown["safety"]["move_to_trash"] is True

    def test_config_set_plain_string(self, runner, isolate_settings):
        runner.invoke(main, ["config", "set", "ui.default_sort", "time"])
        assert isolate_settings.get("ui.default_sort") == "time"

    def test_empty_trash(self, runner, fake_home, make_tree, monkeypatch):
        monkeypatch.setattr("vac.utils.is_macos", lambda: False)
        make_tree(fake_home / ".local" / "share" / "Trash", {"files/junk": b"x" * 2048})

        result = runner.invoke(main, ["empty-trash", "--yes"])

        assert result.exit_code == 0, result.output
        assert "2.0 KB" in result.output

    def test_empty_trash_declined(self, runner, fake_home, make_tree, monkeypatch):
        monkeypatch.setattr("vac.utils.is_macos", lambda: False)
        junk = make_tree(fake_home / ".local" / "share" / "Trash", {"files/junk": b"x"}) / "files" / "junk"

        result = runner.invoke(main, ["empty-trash"], input="n\n")

        assert "Aborted" in result.output
        assert junk.exists()
