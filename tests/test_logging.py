# tests/test_logging.py
"""Tests for console helpers and structlog file output."""

import json
import logging
import logging.handlers
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from seat_monitor import logging as console
from seat_monitor.config import Config


def _make_path_prop(path: Path):
    """Create a property that returns a fixed path."""
    return property(lambda self: path)


@pytest.fixture
def restore_logging():
    """Undo configure() side effects after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    structlog.reset_defaults()
    console._console_enabled = True


@pytest.fixture
def state_dir(tmp_path: Path):
    with patch.object(Config, "state_dir", new_callable=lambda: _make_path_prop(tmp_path / "state")):
        yield tmp_path / "state"


class TestConsole:
    """Rich console helpers."""

    def test_info_prints_level_and_message(self, capsys) -> None:
        console.info("hello there")
        out = capsys.readouterr().out
        assert "[info]" in out
        assert "hello there" in out

    def test_markup_is_rendered(self, capsys) -> None:
        """Rich markup does not leak into the output."""
        console.seats_update("The Show", "added", 3)
        out = capsys.readouterr().out
        assert "The Show 3 seats available" in out
        assert "[cyan]" not in out

    def test_removed_singular(self, capsys) -> None:
        console.seats_update("The Show", "removed", 1)
        assert "1 seat gone" in capsys.readouterr().out

    def test_reconnect_scheduled(self, capsys) -> None:
        console.reconnect_scheduled(2, 10, 2.0)
        assert "Reconnecting (2/10) in 2s" in capsys.readouterr().out

    def test_disabled_console_is_silent(self, capsys, restore_logging) -> None:
        console._console_enabled = False
        console.connection_lost()
        console.error("nope")
        assert capsys.readouterr().out == ""


class TestConfigure:
    """File logging via structlog."""

    def test_writes_json_lines(self, state_dir: Path, restore_logging) -> None:
        """Structured events land in the log file as JSON."""
        config = Config()
        console.configure(config, console=False, source="tui")

        structlog.get_logger().info("stream_opened", url="ws://x/ws")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = config.log_path.read_text().splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "stream_opened"
        assert record["url"] == "ws://x/ws"
        assert record["level"] == "info"

    def test_stdlib_records_get_source(self, state_dir: Path, restore_logging) -> None:
        """Foreign stdlib records carry the configured source."""
        config = Config()
        console.configure(config, console=False, source="tui")

        logging.getLogger("websockets.client").warning("frame dropped")
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(config.log_path.read_text().splitlines()[-1])
        assert record["event"] == "frame dropped"
        assert record["source"] == "tui"

    def test_debug_is_filtered(self, state_dir: Path, restore_logging) -> None:
        config = Config()
        console.configure(config, console=False)

        structlog.get_logger().debug("noisy")
        assert "noisy" not in config.log_path.read_text()

    def test_console_flag(self, state_dir: Path, restore_logging) -> None:
        """console=False silences the Rich helpers."""
        console.configure(Config(), console=False)
        assert console._console_enabled is False
