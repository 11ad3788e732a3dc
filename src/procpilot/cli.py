"""CLI commands for procpilot."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from rich.table import Table

    from procpilot.config import Config
    from procpilot.models import ProcessGroup, ProcessRecord
    from procpilot.monitor import ProcessMonitor


@click.group()
@click.version_option(package_name="procpilot")
def main() -> None:
    """Inspect running macOS processes and what they are."""
    from procpilot import logging as pp_logging

    pp_logging.configure_quiet()


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _build_monitor(config: Config) -> ProcessMonitor:
    from procpilot.monitor import ProcessMonitor

    return ProcessMonitor(config)


async def _take_snapshot(monitor: ProcessMonitor, settle: bool = True) -> None:
    """Refresh once; with settle, wait for warmup so CPU figures are real deltas."""
    await monitor.refresh()
    if settle:
        await monitor.wait_for_warmup()
    monitor.cancel_warmup()


def _process_table(records: list[ProcessRecord]) -> Table:
    from rich import box
    from rich.table import Table

    from procpilot.formatting import LEVEL_STYLES, cpu_level, cpu_text, memory_level, memory_text

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("PID", justify="right")
    table.add_column("Name", overflow="fold")
    table.add_column("CPU", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column("User")
    table.add_column("Source")
    table.add_column("Description", overflow="fold")

    for r in records:
        name = f"[bold red]{r.display_name}[/]" if r.is_critical else r.display_name
        table.add_row(
            str(r.pid),
            name,
            f"[{LEVEL_STYLES[cpu_level(r.cpu)]}]{cpu_text(r.cpu)}[/]",
            f"[{LEVEL_STYLES[memory_level(r.memory_mb)]}]{memory_text(r.memory_mb)}[/]",
            r.user,
            r.source.value,
            r.description,
        )
    return table


def _group_table(groups: list[ProcessGroup]) -> Table:
    from rich import box
    from rich.table import Table

    from procpilot.formatting import LEVEL_STYLES, cpu_level, cpu_text, memory_level, memory_text

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Group", overflow="fold")
    table.add_column("Procs", justify="right")
    table.add_column("CPU", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column("System")

    for g in groups:
        table.add_row(
            g.app_name,
            str(g.process_count),
            f"[{LEVEL_STYLES[cpu_level(g.total_cpu)]}]{cpu_text(g.total_cpu)}[/]",
            f"[{LEVEL_STYLES[memory_level(g.total_memory)]}]{memory_text(g.total_memory)}[/]",
            "yes" if g.is_system_group else "",
        )
    return table


def _metrics_line(monitor: ProcessMonitor) -> str | None:
    from procpilot.formatting import memory_text

    metrics = monitor.metrics
    if metrics is None:
        return None
    cpu, mem = metrics.cpu, metrics.memory
    return (
        f"CPU user {cpu.user_percent:.1f}% system {cpu.system_percent:.1f}% "
        f"idle {cpu.idle_percent:.1f}%  |  Memory pressure {mem.pressure_percent:.0f}% "
        f"used {memory_text(mem.used_mb)} of {memory_text(mem.physical_mb)}"
    )


# ─────────────────────────────────────────────────────────────────────────────
# Snapshot commands
# ─────────────────────────────────────────────────────────────────────────────


@main.command("list")
@click.option("--sort", "sort_by", type=click.Choice(["cpu", "memory"]), default="cpu")
@click.option("--desc/--asc", "descending", default=True, help="High usage first (default)")
@click.option("--filter", "filter_text", default="", help="Substring of name or description")
@click.option("--grouped", "-g", is_flag=True, help="Group by parent application")
@click.option("--limit", "-n", default=25, help="Number of rows to show (0 for all)")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def list_processes(
    sort_by: str,
    descending: bool,
    filter_text: str,
    grouped: bool,
    limit: int,
    as_json: bool,
) -> None:
    """Show one snapshot of running processes."""
    import asyncio
    import json

    from rich.console import Console

    from procpilot.config import Config
    from procpilot.models import SortKey

    config = Config.load()
    monitor = _build_monitor(config)
    monitor.sort_key = SortKey(sort_by)
    monitor.descending = descending
    monitor.filter_text = filter_text

    asyncio.run(_take_snapshot(monitor))

    rows = monitor.groups if grouped else monitor.processes
    if limit > 0:
        rows = rows[:limit]

    if as_json:
        click.echo(json.dumps([row.to_dict() for row in rows], indent=2))
        return

    if not rows:
        click.echo("No matching processes.")
        return

    console = Console(highlight=False)
    console.print(_group_table(rows) if grouped else _process_table(rows))
    line = _metrics_line(monitor)
    if line:
        console.print(f"[dim]{line}[/]")


@main.command()
@click.option("--interval", "-i", type=float, default=None, help="Seconds between refreshes")
@click.option("--count", "-c", type=int, default=None, help="Stop after this many refreshes")
@click.option("--sort", "sort_by", type=click.Choice(["cpu", "memory"]), default="cpu")
@click.option("--limit", "-n", default=15, help="Number of rows per refresh")
def watch(interval: float | None, count: int | None, sort_by: str, limit: int) -> None:
    """Refresh the process list periodically."""
    import asyncio
    from datetime import datetime

    from rich.console import Console

    from procpilot import logging as pp_logging
    from procpilot.config import Config
    from procpilot.models import SortKey

    config = Config.load()
    pp_logging.configure(config)
    interval = interval or config.sampling.refresh_interval

    monitor = _build_monitor(config)
    monitor.sort_key = SortKey(sort_by)
    console = Console(highlight=False)

    def render(m: ProcessMonitor) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        console.rule(f"[dim]{stamp}[/]")
        console.print(_process_table(m.processes[:limit]))
        line = _metrics_line(m)
        if line:
            console.print(f"[dim]{line}[/]")

    pp_logging.monitor_started(interval)
    refreshes = 0
    try:
        refreshes = asyncio.run(monitor.run(interval, on_refresh=render, max_refreshes=count))
    except KeyboardInterrupt:
        refreshes = monitor.fetch_count
    pp_logging.monitor_stopped(refreshes)


@main.command()
@click.argument("name")
@click.option("--path", "executable_path", default=None, help="Executable path of the process")
def describe(name: str, executable_path: str | None) -> None:
    """Classify a process name without sampling."""
    from procpilot.acquirer import extract_parent_app
    from procpilot.cache import BoundedCache
    from procpilot.classifier import ProcessClassifier
    from procpilot.config import Config
    from procpilot.icons import IconProvider

    config = Config.load()
    classifier = ProcessClassifier(
        bundle_cache=BoundedCache(config.cache.bundle_description_capacity),
        app_aliases=config.classifier.app_aliases,
        app_bundle_name=config.classifier.app_bundle_name,
    )
    parent_app = extract_parent_app(executable_path) if executable_path else None
    result = classifier.classify(name, executable_path, parent_app)

    click.echo(f"Name:        {name}")
    click.echo(f"Description: {result.description}")
    click.echo(f"Source:      {result.source.value}")
    click.echo(f"System:      {'yes' if result.is_system else 'no'}")
    click.echo(f"Critical:    {'yes' if result.is_critical else 'no'}")
    if parent_app:
        click.echo(f"Parent app:  {parent_app}")
    if executable_path:
        icon = IconProvider(config.cache.icon_capacity).icon(executable_path)
        if icon:
            click.echo(f"Icon:        {icon}")


@main.command()
@click.argument("pid", type=int)
@click.option("--force", "-f", is_flag=True, help="Send SIGKILL instead of SIGTERM")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def kill(pid: int, force: bool, yes: bool) -> None:
    """Terminate a process by PID.

    Critical macOS processes are refused. System processes need an extra
    confirmation.
    """
    import asyncio

    from procpilot import logging as pp_logging
    from procpilot.config import Config

    config = Config.load()
    monitor = _build_monitor(config)
    asyncio.run(_take_snapshot(monitor, settle=False))

    record = monitor.find(pid)
    if record is None:
        pp_logging.process_not_found(pid)
        raise SystemExit(1)

    if record.is_critical:
        pp_logging.critical_refused(record.name, pid)
        raise SystemExit(1)

    if not yes:
        if record.is_system:
            pp_logging.system_warning(record.name, pid)
        verb = "Force kill" if force else "Terminate"
        click.confirm(f"{verb} {record.display_name} ({pid})?", abort=True)

    result = asyncio.run(monitor.terminate(pid, force=force))
    pp_logging.terminated(record.name, pid, result)
    if not result.ok:
        raise SystemExit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from dataclasses import fields

    from procpilot.config import Config

    cfg = Config.load()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    for section in fields(cfg):
        click.echo()
        click.echo(f"[{section.name}]")
        values = getattr(cfg, section.name)
        for f in fields(values):
            click.echo(f"  {f.name} = {getattr(values, f.name)!r}")


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def config_init(force: bool) -> None:
    """Write a config file with default values."""
    from procpilot import logging as pp_logging
    from procpilot.config import Config

    cfg = Config()
    if cfg.config_path.exists() and not force:
        click.echo(f"Config already exists at {cfg.config_path} (use --force to overwrite)")
        return
    cfg.save()
    pp_logging.config_created(str(cfg.config_path))
