"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain-specific helpers (monitor_started, refresh_failed, terminated, etc.)
5. Structlog configuration (configure, configure_quiet)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from procpilot.config import Config
    from procpilot.termination import TerminationResult

# Rich console for colorful human-readable output
_console = Console(highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    REFRESH = "[cyan]↻[/]"
    SIGNAL = "⚡"
    SHIELD = "[yellow]⛨[/]"
    LOCK = "[red]⛔[/]"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def monitor_started(interval: float) -> None:
    """Log watch loop startup."""
    info(f"Monitoring every [cyan]{interval:g}s[/] [dim](Ctrl+C to stop)[/]", Icon.REFRESH)


def monitor_stopped(refreshes: int) -> None:
    """Log watch loop shutdown."""
    info(f"Stopped after [cyan]{refreshes}[/] refreshes", Icon.OK)


def refresh_failed(error_msg: str) -> None:
    """Log a refresh that produced no update."""
    error(f"Refresh failed: {error_msg}", Icon.FAIL)


def critical_refused(name: str, pid: int) -> None:
    """Log refusal to signal a critical process."""
    error(
        f"[cyan]{name}[/] [dim]({pid})[/] is a critical macOS process and cannot be terminated",
        Icon.LOCK,
    )


def system_warning(name: str, pid: int) -> None:
    """Log warning before signalling a system process."""
    warn(
        f"[cyan]{name}[/] [dim]({pid})[/] is a system process; "
        "terminating it may destabilize macOS",
        Icon.SHIELD,
    )


def terminated(name: str, pid: int, result: TerminationResult) -> None:
    """Log the outcome of a termination attempt."""
    if result.ok:
        info(f"Terminated [cyan]{name}[/] [dim]({pid})[/]", Icon.SIGNAL)
    else:
        detail = f": {result.detail}" if result.detail else ""
        error(
            f"Could not terminate [cyan]{name}[/] [dim]({pid})[/] "
            f"[dim]({result.status.value}{detail})[/]",
            Icon.FAIL,
        )


def process_not_found(pid: int) -> None:
    """Log a PID missing from the snapshot."""
    error(f"No process with PID [cyan]{pid}[/]", Icon.FAIL)


def config_created(path: str) -> None:
    """Log config file created."""
    info(f"Created config at [cyan]{path}[/]")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure_quiet() -> None:
    """Route structlog to stderr at warning level until configure() runs.

    structlog's defaults print every level to stdout, which would corrupt
    machine-readable command output such as ``list --json``.
    """
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            _add_source("procpilot"),
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


def configure(config: Config, *, console: bool = False) -> None:
    """Configure structlog with a JSON file and an optional console stream.

    File output uses JSON Lines format for machine parsing. Console output,
    when enabled, uses structlog's dev renderer on stderr.

    Args:
        config: Application config with paths and log settings
        console: Also render structured events to the terminal
    """
    level = _LOG_LEVELS[config.logging.level]

    # Ensure state directory exists for log file
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.logging.log_max_bytes,
        backupCount=config.logging.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    stdlib_root.handlers.clear()

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
        structlog.processors.add_log_level,
        _add_source("procpilot"),
        structlog.processors.format_exc_info,
    ]

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=pre_chain,
        )
    )
    stdlib_root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=True),
                foreign_pre_chain=pre_chain,
            )
        )
        stdlib_root.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            _add_source("procpilot"),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

