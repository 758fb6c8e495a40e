"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain-specific helpers (connected, reconnect_scheduled, seats_update, etc.)
5. Structlog configuration (configure)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors). The TUI owns the terminal,
so it configures with console=False and only the file output remains.
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from seat_monitor.config import Config

# Rich console for colorful human-readable output
_console = Console(highlight=False)

# Disabled while a full-screen app owns the terminal (set by configure())
_console_enabled = True


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output.

    Use via autocomplete: Icon.<TAB> to see all available icons.
    """

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    RETRY = "🔄"
    HEARTBEAT = "[magenta]♡[/]"
    SEATS_ADDED = "🎫"
    SEATS_REMOVED = "[bright_red]✗[/]"
    CONNECTED = "[green]⬤[/]"
    DISCONNECTED = "[red]⬤[/]"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
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
    if not _console_enabled:
        return
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


def connected() -> None:
    """Log stream connection established."""
    info("Connected to backend", Icon.CONNECTED)


def disconnected(reason: str) -> None:
    """Log stream connection dropped."""
    warn(f"Disconnected from backend [dim]({reason})[/]", Icon.DISCONNECTED)


def reconnect_scheduled(attempt: int, max_attempts: int, delay: float) -> None:
    """Log a scheduled reconnection attempt."""
    info(f"Reconnecting [dim]({attempt}/{max_attempts})[/] in [cyan]{delay:g}s[/]", Icon.RETRY)


def connection_lost() -> None:
    """Log reconnection attempts exhausted."""
    error("Connection lost, restart the session to reconnect", Icon.FAIL)


def heartbeat_probe(silence: float) -> None:
    """Log liveness probe sent after a silent period."""
    warn(f"No message in {silence:.0f}s, sending ping", Icon.HEARTBEAT)


def event_confirmed(name: str) -> None:
    """Log backend accepted an event."""
    info(f"Monitoring [cyan]{name}[/]", Icon.OK)


def seats_update(name: str, kind: str, count: int) -> None:
    """Log seats appearing or disappearing."""
    suffix = "s" if count != 1 else ""
    if kind == "added":
        info(f"[cyan]{name}[/] [green]{count} seat{suffix} available[/]", Icon.SEATS_ADDED)
    else:
        info(f"[cyan]{name}[/] [dim]{count} seat{suffix} gone[/]", Icon.SEATS_REMOVED)


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


def configure(config: Config, *, console: bool = True, source: str = "client") -> None:
    """Configure structlog with JSON-lines file output.

    Console output uses human-readable format with colors (unless console
    is False). File output uses JSON Lines format for machine parsing.

    Args:
        config: Application config with paths
        console: Whether the Rich console helpers print anything
        source: Value of the ``source`` field in every file record
    """
    global _console_enabled
    _console_enabled = console

    # Ensure state directory exists for log file
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)
    stdlib_root.handlers.clear()

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source(source),
                structlog.processors.format_exc_info,
            ],
        )
    )
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
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

