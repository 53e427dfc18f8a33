"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging

import pytest

from paintrack.core.logging import (
    _NOISE_LOGGERS,
    _user_context,
    add_otel_context,
    add_user_context,
    configure_logging,
    get_user_context,
    set_user_context,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset logging and user context between tests."""
    token = _user_context.set(None)
    yield
    _user_context.reset(token)
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


class TestUserContext:
    def test_set_and_get(self):
        set_user_context(12)
        assert get_user_context() == 12

    def test_default_is_none(self):
        assert get_user_context() is None

    def test_processor_injects_user_id(self):
        set_user_context(3)
        assert add_user_context(None, "info", {"event": "x"})["user_id"] == 3

    def test_processor_handles_unset_context(self):
        assert add_user_context(None, "info", {"event": "x"})["user_id"] is None


class TestAddOtelContext:
    def test_no_active_span_gives_zero_ids(self):
        result = add_otel_context(None, "info", {"event": "x"})
        assert result["trace_id"] == "0" * 32
        assert result["span_id"] == "0" * 16


class TestConfigureLogging:
    def test_installs_single_console_handler(self):
        configure_logging(level="DEBUG")
        configure_logging(level="DEBUG")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_noise_loggers_quieted(self):
        configure_logging(level="DEBUG")
        for name in _NOISE_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_json_console_output(self, capsys):
        configure_logging(level="INFO", fmt="json")
        set_user_context(42)
        logging.getLogger("paintrack.test").info("storage degraded")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "storage degraded"
        assert record["level"] == "info"
        assert record["logger"] == "paintrack.test"
        assert record["user_id"] == 42

    def test_log_file_receives_json_lines(self, tmp_path):
        log_file = tmp_path / "logs" / "paintrack.log"
        configure_logging(level="INFO", fmt="text", log_file=log_file)
        logging.getLogger("paintrack.test").warning("fallback write")
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert record["event"] == "fallback write"
        assert record["level"] == "warning"
