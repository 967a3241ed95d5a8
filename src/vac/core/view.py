"""Browsable view state built from scan output.

Selections are kept in a map keyed by path, separate from the entries on
screen, so they survive navigating into and out of directories.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from vac.models.entry import CleanableEntry, EntryKind, SelectedEntry

log = logging.getLogger(__name__)


class SortOrder(Enum):
    NAME = "name"
    SIZE = "size"
    TIME = "time"

    def toggle(self) -> SortOrder:
        order = list(SortOrder)
        return order[(order.index(self) + 1) % len(order)]

    @classmethod
    def parse(cls, value: str | None, default: SortOrder) -> SortOrder:
        try:
            return cls(value)
        except ValueError:
            return default


def sort_entries(entries: list[CleanableEntry], order: SortOrder) -> None:
    """Sort *entries* in place."""
    match order:
        case SortOrder.NAME:
            entries.sort(key=lambda e: (e.kind is not EntryKind.DIRECTORY, e.name))
        case SortOrder.SIZE:
            entries.sort(key=lambda e: e.size or 0, reverse=True)
        case SortOrder.TIME:
            entries.sort(key=lambda e: e.modified_at or 0.0, reverse=True)


@dataclass
class _NavFrame:
    path: Path
    entries: list[CleanableEntry]
    cursor: int | None


@dataclass
class NavigationState:
    """Stack of directories entered below the root view."""

    current_path: Path | None = None
    _stack: list[_NavFrame] = field(default_factory=list)

    def reset_root(self) -> None:
        self._stack.clear()
        self.current_path = None

    def enter(self, path: Path, current_entries: list[CleanableEntry], cursor: int | None) -> None:
        """Descend into *path*, caching the entries being left."""
        self._stack.append(_NavFrame(path, current_entries, cursor))
        self.current_path = path

    def back(self) -> tuple[list[CleanableEntry], int | None] | None:
        """Ascend one level.

        Returns the cached entries and cursor of the parent directory, or
        None when the parent is the root view.
        """
        if not self._stack:
            return None
        popped = self._stack.pop()
        self.current_path = self._stack[-1].path if self._stack else None
        if self.current_path is None:
            return None
        return popped.entries, popped.cursor

    def breadcrumb(self) -> str:
        return str(self.current_path) if self.current_path is not None else "/"


class ViewState:
    """Entries on display plus the cross-directory selection."""

    def __init__(self, sort_order: SortOrder = SortOrder.NAME) -> None:
        self.entries: list[CleanableEntry] = []
        self.root_entries: list[CleanableEntry] = []
        self.cursor: int | None = None
        self.total_size = 0
        self.selections: dict[Path, SelectedEntry] = {}
        self.selected_size = 0
        self.navigation = NavigationState()
        self.sort_order = sort_order
        self.search_query = ""
        self._pre_search_entries: list[CleanableEntry] = []

    @property
    def at_root(self) -> bool:
        return self.navigation.current_path is None

    def current_entry(self) -> CleanableEntry | None:
        if self.cursor is None or not 0 <= self.cursor < len(self.entries):
            return None
        return self.entries[self.cursor]

    # -- Entries --

    def set_entries(self, entries: list[CleanableEntry]) -> None:
        self.entries = entries
        self.total_size = sum(e.size for e in entries if e.size is not None)
        self.cursor = 0 if entries else None

    def clear_entries(self) -> None:
        self.entries = []
        self.total_size = 0
        self.cursor = None

    def clear_root_entries(self) -> None:
        self.root_entries = []

    def _append(self, entry: CleanableEntry) -> None:
        if entry.size is not None:
            self.total_size += entry.size
        self.entries.append(entry)
        if len(self.entries) == 1:
            self.cursor = 0

    def apply_root_entry(self, entry: CleanableEntry) -> None:
        """Record a top-level entry; it is shown only while at the root."""
        self.root_entries.append(entry)
        if self.at_root:
            self._append(entry)

    def apply_dir_entry(self, entry: CleanableEntry) -> None:
        self._append(entry)

    def apply_entry_size(self, path: Path, size: int) -> None:
        """Back-fill a directory size. Sizes already known are never overwritten."""
        for entry in self.entries:
            if entry.path == path:
                if entry.size is None:
                    entry.size = size
                    self.total_size += size
                break

        for entry in self.root_entries:
            if entry.path == path and entry.size is None:
                entry.size = size
                break

        selected = self.selections.get(path)
        if selected is not None and selected.size is None:
            selected.size = size
            self.selected_size += size

    # -- Sorting --

    def sort_root_entries(self) -> None:
        sort_entries(self.root_entries, self.sort_order)
        if self.at_root:
            self.set_entries(list(self.root_entries))

    def sort_dir_entries(self) -> None:
        sort_entries(self.entries, self.sort_order)
        if self.entries:
            self.cursor = 0

    def toggle_sort_order(self) -> None:
        self.sort_order = self.sort_order.toggle()
        if self.at_root:
            self.sort_root_entries()
        else:
            self.sort_dir_entries()

    def restore_root_entries(self) -> None:
        self.sort_root_entries()

    def restore_cached_dir_entries(self, cached: list[CleanableEntry], cursor: int | None) -> None:
        """Show a parent directory again, keeping the previously highlighted entry."""
        highlighted = cached[cursor].path if cursor is not None and 0 <= cursor < len(cached) else None
        self.set_entries(cached)
        self.sort_dir_entries()
        if highlighted is not None:
            for index, entry in enumerate(self.entries):
                if entry.path == highlighted:
                    self.cursor = index
                    break

    # -- Selection --

    def is_selected(self, path: Path) -> bool:
        return path in self.selections

    def set_selected(self, entry: CleanableEntry, selected: bool) -> None:
        if selected:
            if entry.path not in self.selections:
                self.selections[entry.path] = SelectedEntry(kind=entry.kind, size=entry.size)
                self.selected_size += entry.size or 0
        else:
            previous = self.selections.pop(entry.path, None)
            if previous is not None and previous.size is not None:
                self.selected_size -= previous.size

    def toggle_selected(self) -> None:
        entry = self.current_entry()
        if entry is not None:
            self.set_selected(entry, not self.is_selected(entry.path))

    def toggle_all(self) -> None:
        """Select every visible entry, or deselect them all if all are selected."""
        select = not all(self.is_selected(e.path) for e in self.entries)
        for entry in list(self.entries):
            self.set_selected(entry, select)

    def clear_selections(self) -> None:
        self.selections.clear()
        self.selected_size = 0

    def get_selected_items(self) -> list[CleanableEntry]:
        """Rebuild entries from the selection map, independent of what is on screen."""
        return [
            CleanableEntry(kind=selected.kind, path=path, name=path.name or str(path), size=selected.size)
            for path, selected in self.selections.items()
        ]

    # -- Search --

    def start_search(self) -> None:
        self.search_query = ""
        self._pre_search_entries = list(self.entries)

    def search(self, query: str) -> None:
        """Filter the entries shown to names containing *query*, case-insensitively."""
        self.search_query = query
        if not query:
            self.set_entries(list(self._pre_search_entries))
            return
        needle = query.lower()
        self.set_entries([e for e in self._pre_search_entries if needle in e.name.lower()])

    def cancel_search(self) -> None:
        self.search_query = ""
        self.set_entries(list(self._pre_search_entries))
