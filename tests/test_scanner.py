"""Tests for traversal and the three scan modes."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from vac.core.jobs import Channel, JobToken, ScanContext
from vac.core.scanner import SIZING_LABEL, Scanner, dir_size, walk_tree
from vac.models.entry import EntryKind, ItemCategory
from vac.models.scan_message import (
    DirEntry,
    DirEntrySize,
    Done,
    Error,
    Progress,
    RootItem,
    ScanKind,
    ScanRequest,
    is_terminal,
)


def _context() -> ScanContext:
    token = JobToken()
    return ScanContext(job_id=token.new_job(), token=token, channel=Channel())


def _run(scanner: Scanner, kind: ScanKind, path: Path | None = None, extra=()) -> list:
    ctx = _context()
    scanner.run(ScanRequest(ctx.job_id, kind, path, tuple(extra)), ctx)
    return ctx.channel.drain()


class TestWalkTree:
    def test_counts_files_dirs_and_bytes(self, tmp_path, make_tree):
        make_tree(tmp_path, {"a": b"12345", "d/b": b"123", "d/e/c": b"1"})

        stats = walk_tree(tmp_path)
        assert (stats.files, stats.dirs, stats.bytes) == (3, 2, 9)

    def test_does_not_follow_symlinks(self, tmp_path, make_tree):
        make_tree(tmp_path / "outside", {"big": b"x" * 1000})
        root = make_tree(tmp_path / "root", {"small": b"xy"})
        os.symlink(tmp_path / "outside", root / "link_dir")
        os.symlink(tmp_path / "outside" / "big", root / "link_file")

        assert dir_size(root) == 2

    def test_regular_file_root(self, tmp_path):
        f = tmp_path / "f"
        f.write_bytes(b"abc")

        stats = walk_tree(f)
        assert (stats.files, stats.dirs, stats.bytes) == (1, 0, 3)

    def test_missing_path_is_zero(self, tmp_path):
        assert dir_size(tmp_path / "missing") == 0

    def test_symlink_root_is_zero(self, tmp_path, make_tree):
        make_tree(tmp_path / "real", {"x": b"123"})
        os.symlink(tmp_path / "real", tmp_path / "link")

        assert dir_size(tmp_path / "link") == 0

    def test_cancel_stops_early(self, tmp_path, make_tree):
        make_tree(tmp_path, {f"f{i}": b"x" for i in range(10)})

        assert walk_tree(tmp_path, is_cancelled=lambda: True).files == 0


class TestListingScan:
    def test_lists_children_and_backfills_sizes(self, tmp_path, make_tree):
        make_tree(tmp_path, {"a.txt": b"12345", "sub/b": b"1234567", "sub/c/d": b"12"})

        messages = _run(Scanner(max_workers=1), ScanKind.LISTING, tmp_path)

        entries = {m.entry.name: m.entry for m in messages if isinstance(m, DirEntry)}
        assert entries["a.txt"].kind is EntryKind.FILE
        assert entries["a.txt"].size == 5
        assert entries["sub"].kind is EntryKind.DIRECTORY
        assert entries["sub"].size is None

        sizes = [m for m in messages if isinstance(m, DirEntrySize)]
        assert sizes == [DirEntrySize(sizes[0].job_id, tmp_path / "sub", 9)]
        assert isinstance(messages[-1], Done)

    def test_parallel_backfill_emits_one_size_per_directory(self, tmp_path, make_tree):
        make_tree(tmp_path, {f"d{i}/f": b"x" * i for i in range(1, 6)})

        messages = _run(Scanner(max_workers=4), ScanKind.LISTING, tmp_path)

        sizes = {m.path.name: m.size for m in messages if isinstance(m, DirEntrySize)}
        assert sizes == {f"d{i}": i for i in range(1, 6)}
        assert isinstance(messages[-1], Done)

    def test_symlinks_are_omitted(self, tmp_path, make_tree):
        make_tree(tmp_path, {"real": b"1"})
        os.symlink(tmp_path / "real", tmp_path / "link")

        messages = _run(Scanner(), ScanKind.LISTING, tmp_path)
        names = [m.entry.name for m in messages if isinstance(m, DirEntry)]
        assert names == ["real"]

    def test_unreadable_directory_is_an_error(self, tmp_path):
        messages = _run(Scanner(), ScanKind.LISTING, tmp_path / "missing")

        assert len(messages) == 1
        assert isinstance(messages[0], Error)
        assert "Cannot read directory" in messages[0].message

    def test_missing_path_argument_is_an_error(self):
        messages = _run(Scanner(), ScanKind.LISTING, None)
        assert [type(m) for m in messages] == [Error]


class TestDiskScan:
    def test_reports_children_as_root_items(self, tmp_path, make_tree):
        make_tree(tmp_path, {"file": b"123", "dir/x": b"1234"})

        messages = _run(Scanner(max_workers=1), ScanKind.DISK, tmp_path)

        roots = {m.entry.name: m.entry for m in messages if isinstance(m, RootItem)}
        assert set(roots) == {"file", "dir"}
        assert roots["file"].size == 3
        assert [m.size for m in messages if isinstance(m, DirEntrySize)] == [4]

    def test_progress_is_monotonic_and_split_in_halves(self, tmp_path, make_tree):
        make_tree(tmp_path, {f"d{i}/f": b"x" for i in range(4)})

        messages = _run(Scanner(max_workers=1), ScanKind.DISK, tmp_path)
        progress = [m for m in messages if isinstance(m, Progress)]
        percents = [p.percent for p in progress]

        assert percents[0] == 0
        assert percents == sorted(percents)
        assert all(0 <= p <= 100 for p in percents)
        assert Progress(progress[0].job_id, 50, SIZING_LABEL) in progress
        assert percents[-1] == 100

    def test_missing_path(self, tmp_path):
        messages = _run(Scanner(), ScanKind.DISK, tmp_path / "nope")
        assert messages == [Error(messages[0].job_id, f"Path does not exist: {tmp_path / 'nope'}")]

    def test_not_a_directory(self, tmp_path):
        f = tmp_path / "f"
        f.write_text("x")

        messages = _run(Scanner(), ScanKind.DISK, f)
        assert messages == [Error(messages[0].job_id, f"Not a directory: {f}")]

    def test_exactly_one_terminal_message(self, tmp_path, make_tree):
        make_tree(tmp_path, {"a/b": b"1", "c": b"2"})

        messages = _run(Scanner(max_workers=2), ScanKind.DISK, tmp_path)
        assert sum(1 for m in messages if is_terminal(m)) == 1
        assert is_terminal(messages[-1])


class TestPresetScan:
    @pytest.fixture
    def linux(self, monkeypatch):
        monkeypatch.setattr("vac.core.scanner.is_macos", lambda: False)
        monkeypatch.setattr("vac.utils.is_macos", lambda: False)

    def test_targets_use_xdg_locations(self, fake_home, linux):
        (fake_home / ".npm" / "_cacache").mkdir(parents=True)

        targets = Scanner(home=fake_home).get_scan_targets()
        by_category = {}
        for category, path in targets:
            by_category.setdefault(category, path)

        assert by_category[ItemCategory.SYSTEM_CACHE] == fake_home / ".cache"
        assert by_category[ItemCategory.TRASH] == fake_home / ".local" / "share" / "Trash"
        assert by_category[ItemCategory.NPM_CACHE] == fake_home / ".npm" / "_cacache"
        assert ItemCategory.CARGO_CACHE not in by_category

    def test_macos_targets(self, fake_home, monkeypatch):
        monkeypatch.setattr("vac.core.scanner.is_macos", lambda: True)
        monkeypatch.setattr("vac.utils.is_macos", lambda: True)

        paths = [p for _, p in Scanner(home=fake_home).get_scan_targets()]
        assert fake_home / "Library" / "Caches" in paths
        assert fake_home / ".Trash" in paths

    def test_only_non_empty_targets_are_reported(self, fake_home, linux, make_tree):
        make_tree(fake_home / ".cache", {"app/blob": b"x" * 10})
        (fake_home / "Downloads").mkdir()
        scanner = Scanner(home=fake_home)
        targets = [t for t in scanner.get_scan_targets() if t[0] is not ItemCategory.TEMP]
        scanner.get_scan_targets = lambda extra=(): targets

        messages = _run(scanner, ScanKind.PRESET)
        roots = [m.entry for m in messages if isinstance(m, RootItem)]

        assert [(e.category, e.size, e.name) for e in roots] == [
            (ItemCategory.SYSTEM_CACHE, 10, ItemCategory.SYSTEM_CACHE.label)
        ]
        assert isinstance(messages[-1], Done)

    def test_extra_targets_are_custom(self, fake_home, linux, tmp_path, make_tree):
        extra = make_tree(tmp_path / "extra", {"f": b"123"})

        targets = Scanner(home=fake_home).get_scan_targets([extra, tmp_path / "missing"])
        assert targets[-1] == (ItemCategory.CUSTOM, extra)
        assert (ItemCategory.CUSTOM, tmp_path / "missing") not in targets


class TestCancellation:
    def test_superseded_job_emits_nothing(self, tmp_path, make_tree):
        make_tree(tmp_path, {"a/b": b"1"})
        token = JobToken()
        ctx = ScanContext(job_id=token.new_job(), token=token, channel=Channel())
        token.new_job()

        Scanner().run(ScanRequest(ctx.job_id, ScanKind.DISK, tmp_path), ctx)
        assert ctx.channel.drain() == []

    def test_cancel_during_listing_stops_the_scan(self, tmp_path, make_tree, monkeypatch):
        make_tree(tmp_path, {f"d{i}/f": b"x" * 100 for i in range(6)})
        token = JobToken()
        channel = Channel()
        ctx = ScanContext(job_id=token.new_job(), token=token, channel=channel)
        send = channel.send

        def send_then_cancel(message):
            sent = send(message)
            if isinstance(message, DirEntry):
                token.cancel()
            return sent

        monkeypatch.setattr(channel, "send", send_then_cancel)

        Scanner(max_workers=4).run(ScanRequest(ctx.job_id, ScanKind.LISTING, tmp_path), ctx)
        messages = channel.drain()

        assert len(messages) == 1
        assert isinstance(messages[0], DirEntry)
        assert not any(isinstance(m, DirEntrySize) or is_terminal(m) for m in messages)
