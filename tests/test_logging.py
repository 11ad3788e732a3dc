"""Tests for console helpers and structlog configuration."""

import json
import logging
import logging.handlers

import pytest
import structlog

from procpilot import logging as pp_logging
from procpilot.config import Config
from procpilot.termination import TerminationResult, TerminationStatus


@pytest.fixture
def restore_logging():
    """Undo global logging configuration after a test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def config_in(tmp_path, monkeypatch) -> Config:
    """Config whose state directory lives under tmp_path."""
    monkeypatch.setattr(Config, "state_dir", property(lambda self: tmp_path / "state"))
    return Config()


class TestConsoleHelpers:
    """Tests for the rich console output helpers."""

    def test_log_includes_level_and_message(self, capsys):
        """log() prints a timestamp, the level tag and the message."""
        pp_logging.info("hello there")
        out = capsys.readouterr().out
        assert "[info]" in out
        assert "hello there" in out

    def test_error_tag(self, capsys):
        """error() uses the err tag."""
        pp_logging.error("broken")
        assert "[err]" in capsys.readouterr().out

    def test_critical_refused(self, capsys):
        """Critical refusals name the process and PID."""
        pp_logging.critical_refused("launchd", 1)
        out = capsys.readouterr().out
        assert "launchd" in out
        assert "critical" in out

    def test_terminated_success_and_failure(self, capsys):
        """terminated() reports success or the failure status."""
        pp_logging.terminated("node", 42, TerminationResult(TerminationStatus.SUCCESS))
        assert "Terminated" in capsys.readouterr().out

        failed = TerminationResult(TerminationStatus.PERMISSION_DENIED, "Operation not permitted")
        pp_logging.terminated("node", 42, failed)
        out = capsys.readouterr().out
        assert "permission_denied" in out
        assert "Could not terminate" in out

    def test_monitor_lifecycle(self, capsys):
        """Start and stop messages include interval and count."""
        pp_logging.monitor_started(2.5)
        pp_logging.monitor_stopped(7)
        out = capsys.readouterr().out
        assert "2.5s" in out
        assert "7" in out


class TestConfigure:
    """Tests for structlog configuration."""

    def test_writes_json_lines(self, config_in, restore_logging):
        """Events land in the log file as JSON with level and source."""
        pp_logging.configure(config_in)

        structlog.get_logger().info("refresh_failed", error="ps exited with status 1")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = config_in.log_path.read_text().splitlines()
        event = json.loads(lines[-1])
        assert event["event"] == "refresh_failed"
        assert event["error"] == "ps exited with status 1"
        assert event["level"] == "info"
        assert event["source"] == "procpilot"

    def test_level_filters(self, config_in, restore_logging):
        """Events below the configured level are dropped."""
        config_in.logging.level = "warning"
        pp_logging.configure(config_in)

        log = structlog.get_logger()
        log.info("quiet")
        log.warning("loud")
        for handler in logging.getLogger().handlers:
            handler.flush()

        events = [json.loads(line)["event"] for line in config_in.log_path.read_text().splitlines()]
        assert events == ["loud"]

    def test_console_handler_optional(self, config_in, restore_logging):
        """console=True adds a stream handler next to the file."""
        pp_logging.configure(config_in, console=True)

        kinds = {type(h) for h in logging.getLogger().handlers}
        assert logging.handlers.RotatingFileHandler in kinds
        assert logging.StreamHandler in kinds

    def test_quiet_keeps_stdout_clean(self, capsys, restore_logging):
        """configure_quiet() drops debug events and writes warnings to stderr."""
        pp_logging.configure_quiet()

        log = structlog.get_logger()
        log.debug("warmup_started", passes=3)
        log.warning("helper_timeout", pid=42)

        out, err = capsys.readouterr()
        assert out == ""
        assert "helper_timeout" in err
        assert "warmup_started" not in err
