"""CLI interface for VAC."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import click

from vac.core.cleaner import Cleaner, TrashUnavailableError
from vac.core.engine import ScanEngine, ScanError
from vac.core.tracker import Tracker
from vac.core.view import SortOrder, sort_entries
from vac.models.scan_message import ScanKind
from vac.report import build_report, print_report, write_report
from vac.settings import AppConfig, Settings
from vac.utils import bytes_to_human, expand_tilde, home_dir


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@dataclass(frozen=True)
class ScanTarget:
    """What ``vac scan`` should look at: the preset catalog, home, or a path."""

    name: str
    path: Path | None = None

    @property
    def kind(self) -> ScanKind:
        return ScanKind.PRESET if self.name == "preset" else ScanKind.DISK


class ScanTargetType(click.ParamType):
    name = "target"

    def convert(self, value, param, ctx) -> ScanTarget:
        if isinstance(value, ScanTarget):
            return value
        if value == "preset":
            return ScanTarget("preset")
        if value == "home":
            home = home_dir()
            if home is None:
                self.fail("cannot determine the home directory", param, ctx)
            return ScanTarget("home", home)
        path = Path(expand_tilde(value))
        return ScanTarget(str(path), path)


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """VAC: find reclaimable disk space and clean it safely."""
    _setup_logging(verbose)


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@click.argument("target", type=ScanTargetType())
@click.option("--sort", "sort_name", type=click.Choice([o.value for o in SortOrder]), default=None,
              help="Sort order (default: from settings, else size)")
@click.option("--dry-run", is_flag=True, help="Preview what cleaning would remove")
@click.option("--clean", "do_clean", is_flag=True, help="Clean every scanned item")
@click.option("--trash", is_flag=True, help="Move to trash instead of deleting (overrides settings)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write the JSON report to FILE")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(
    target: ScanTarget,
    sort_name: str | None,
    dry_run: bool,
    do_clean: bool,
    trash: bool,
    yes: bool,
    output: Path | None,
    as_json: bool,
) -> None:
    """Scan TARGET ('preset', 'home' or a path) and optionally clean it."""
    config = AppConfig.load()
    order = SortOrder(sort_name) if sort_name else config.sort_order()
    quiet = as_json or output is not None

    if not quiet:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning {target.name}...\n", err=True)

    def on_progress(pct: int, current: str) -> None:
        if not quiet:
            click.echo(f"\r  {pct:3d}%", nl=False, err=True)

    engine = ScanEngine()
    try:
        entries = engine.run(
            target.kind,
            target.path,
            extra_targets=config.expanded_extra_targets() if target.kind is ScanKind.PRESET else (),
            on_progress=on_progress,
        )
    except ScanError as exc:
        click.echo(f"\nScan failed: {exc}", err=True)
        sys.exit(1)
    if not quiet:
        click.echo("\r  done.", err=True)

    sort_entries(entries, order)

    dry_run_result = Cleaner.dry_run(entries) if dry_run else None

    use_trash = trash or config.move_to_trash
    clean_result = None
    if do_clean and not dry_run and entries:
        unsafe = Cleaner.unsafe_paths(entries)
        if unsafe:
            for path in unsafe:
                click.echo(f"Unsafe path, refusing to clean: {path}", err=True)
            sys.exit(1)

        if not yes:
            total = sum(e.size or 0 for e in entries)
            action = "Move to trash" if use_trash else "Permanently delete"
            if not click.confirm(f"{action} {len(entries):,} items ({bytes_to_human(total)})?", err=True):
                click.echo("Aborted.", err=True)
                sys.exit(1)

        clean_result = Cleaner.execute(entries, use_trash=use_trash)
        Tracker().record(clean_result, len(entries), use_trash)

    report = build_report(target.name, order.value, entries, dry_run_result, clean_result, use_trash)

    if output is not None:
        write_report(report, output)
        click.echo(f"Report written to {output}", err=True)
    elif as_json:
        click.echo(json.dumps(report, indent=2, ensure_ascii=False))
    else:
        print_report(report)

    if clean_result is not None and not clean_result.success:
        sys.exit(2)


# ── empty-trash ──────────────────────────────────────────────────────────

@main.command("empty-trash")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def empty_trash(yes: bool) -> None:
    """Permanently delete everything in the trash."""
    if not yes and not click.confirm("Permanently delete everything in the trash?"):
        click.echo("Aborted.")
        return
    try:
        freed = Cleaner.empty_trash()
    except (TrashUnavailableError, OSError) as exc:
        click.echo(f"Could not empty trash: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Freed {click.style(bytes_to_human(freed), fg='green', bold=True)}")


# ── stats ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--period", "-p", default="all", type=click.Choice(["today", "week", "month", "all"]))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(period: str, as_json: bool) -> None:
    """Show space freed statistics."""
    data = Tracker().get_stats(period)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"\n{click.style('📊', bold=True)} Statistics ({period})\n")
    click.echo(f"  Bytes freed:    {click.style(bytes_to_human(data['bytes_freed']), fg='green', bold=True)}")
    click.echo(f"  Items cleaned:  {data['items_cleaned']:,}")
    click.echo(f"  Cleans:         {data['session_count']} ({data['trashed_sessions']} via trash)")
    click.echo(f"  Lifetime total: {click.style(bytes_to_human(data['lifetime_bytes_freed']), fg='cyan', bold=True)}")
    click.echo()


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Settings management commands."""


@config.command("show")
def config_show() -> None:
    """Print the effective settings."""
    settings = Settings.instance()
    click.echo(f"# {settings.path}")
    click.echo(json.dumps(settings.as_dict(), indent=2))


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set KEY (e.g. safety.move_to_trash) to VALUE, parsed as JSON when possible."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    Settings.instance().set(key, parsed)
    click.echo(f"{key} = {json.dumps(parsed)}")


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
def service_start() -> None:
    """Start the D-Bus service in foreground."""
    from vac.dbus_service import start_service

    click.echo("Starting VAC D-Bus service...")
    start_service()
