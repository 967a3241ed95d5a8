"""VAC data models."""

from vac.models.entry import CleanableEntry, EntryKind, ItemCategory, SelectedEntry
from vac.models.clean_result import CleanResult, DryRunItem, DryRunResult
from vac.models.scan_message import (
    DirEntry,
    DirEntrySize,
    Done,
    Error,
    Progress,
    RootItem,
    ScanKind,
    ScanMessage,
    ScanRequest,
    is_terminal,
)

__all__ = [
    "CleanResult",
    "CleanableEntry",
    "DirEntry",
    "DirEntrySize",
    "Done",
    "DryRunItem",
    "DryRunResult",
    "EntryKind",
    "Error",
    "ItemCategory",
    "Progress",
    "RootItem",
    "ScanKind",
    "ScanMessage",
    "ScanRequest",
    "SelectedEntry",
    "is_terminal",
]
