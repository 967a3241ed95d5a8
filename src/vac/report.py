"""Structured scan reports for non-interactive runs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from vac.models.clean_result import CleanResult, DryRunResult
from vac.models.entry import CleanableEntry, EntryKind
from vac.utils import bytes_to_human, format_time

UNKNOWN_SIZE = "unknown"


def entry_to_dict(entry: CleanableEntry) -> dict[str, Any]:
    return {
        "path": str(entry.path),
        "name": entry.name,
        "kind": entry.kind.value,
        "category": entry.category.key if entry.category else None,
        "size": entry.size,
        "size_display": bytes_to_human(entry.size) if entry.size is not None else UNKNOWN_SIZE,
        "modified_at": format_time(entry.modified_at) if entry.modified_at is not None else None,
    }


def dry_run_to_dict(result: DryRunResult) -> dict[str, Any]:
    return {
        "total_files": result.total_files,
        "total_dirs": result.total_dirs,
        "total_size": result.total_bytes,
        "total_size_display": bytes_to_human(result.total_bytes),
        "items": [
            {
                "path": str(item.path),
                "file_count": item.file_count,
                "dir_count": item.dir_count,
                "size": item.bytes,
                "size_display": bytes_to_human(item.bytes),
            }
            for item in result.items
        ],
    }


def clean_result_to_dict(result: CleanResult, item_count: int, use_trash: bool) -> dict[str, Any]:
    return {
        "success": result.success,
        "freed_space": result.freed_bytes,
        "freed_space_display": bytes_to_human(result.freed_bytes),
        "item_count": item_count,
        "use_trash": use_trash,
        "errors": list(result.errors),
    }


def build_report(
    scan_target: str,
    sort_order: str,
    entries: list[CleanableEntry],
    dry_run: DryRunResult | None = None,
    clean_result: CleanResult | None = None,
    use_trash: bool = False,
) -> dict[str, Any]:
    """Assemble the full report; optional sections are omitted when absent."""
    total = sum(e.size for e in entries if e.size is not None)
    report: dict[str, Any] = {
        "scan_target": scan_target,
        "sort_order": sort_order,
        "total_items": len(entries),
        "total_size": total,
        "total_size_display": bytes_to_human(total),
        "entries": [entry_to_dict(e) for e in entries],
    }
    if dry_run is not None:
        report["dry_run"] = dry_run_to_dict(dry_run)
    if clean_result is not None:
        report["clean_result"] = clean_result_to_dict(clean_result, len(entries), use_trash)
    return report


def write_report(report: dict[str, Any], output: Path) -> None:
    output.write_text(json.dumps(report, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def print_report(report: dict[str, Any]) -> None:
    """Print *report* for humans."""
    rule = "─" * 70
    click.echo(
        f"\nScan results: {report['total_items']:,} items | "
        f"total {click.style(report['total_size_display'], fg='green', bold=True)}"
    )
    click.echo(rule)
    for entry in report["entries"]:
        icon = "📁" if entry["kind"] == EntryKind.DIRECTORY.value else "📄"
        when = f"  {entry['modified_at']}" if entry["modified_at"] else ""
        click.echo(f"  {icon} {entry['size_display']:>10s}  {entry['name']}{when}")
    click.echo(rule)

    dry_run = report.get("dry_run")
    if dry_run:
        click.echo(f"\n{click.style('Dry run', bold=True)} (nothing was deleted):")
        click.echo(
            f"  Total: {dry_run['total_files']:,} files / {dry_run['total_dirs']:,} directories / "
            f"{dry_run['total_size_display']}"
        )
        for item in dry_run["items"]:
            click.echo(
                f"  • {item['path']}: {item['file_count']:,} files / "
                f"{item['dir_count']:,} directories / {item['size_display']}"
            )

    clean = report.get("clean_result")
    if clean:
        click.echo()
        action = "Moved to trash" if clean["use_trash"] else "Deleted"
        if clean["success"]:
            click.echo(
                f"{click.style('✓', fg='green')} {action}: "
                f"{click.style(clean['freed_space_display'], fg='green', bold=True)} "
                f"({clean['item_count']:,} items)"
            )
        else:
            click.echo(
                f"{click.style('!', fg='yellow')} Clean partially failed, "
                f"freed {clean['freed_space_display']}:"
            )
            for error in clean["errors"]:
                click.echo(f"  {click.style('✗', fg='red')} {error}")
    click.echo()
