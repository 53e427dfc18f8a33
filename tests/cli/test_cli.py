"""Tests for the CLI commands."""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from paintrack.cli import cli
from paintrack.storage.base import StorageState

pytestmark = pytest.mark.unit


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("PAINTRACK_CONFIG", raising=False)
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    for handler in root.handlers:
        if handler not in original_handlers:
            handler.close()
    root.handlers[:] = original_handlers
    root.setLevel(original_level)


class TestVersion:
    def test_version_flag(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "serve" in result.output
        assert "check-db" in result.output


class TestCheckDb:
    def test_no_database_url(self, runner):
        result = runner.invoke(cli, ["check-db"])
        assert result.exit_code == 1
        assert "No database URL configured" in result.output

    def test_unusable_url_reports_unreachable(self, runner, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "mysql://db/paintrack")
        result = runner.invoke(cli, ["check-db"])
        assert result.exit_code == 1
        assert "unreachable" in result.output

    def test_healthy(self, runner, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://db/paintrack")
        probe = AsyncMock(return_value=StorageState.HEALTHY)
        with patch("paintrack.cli._probe", probe):
            result = runner.invoke(cli, ["check-db"])
        assert result.exit_code == 0
        assert "healthy" in result.output
        config = probe.await_args.args[0]
        assert config.storage.reconnect.max_attempts == 0

    def test_invalid_config_exits_2(self, runner, tmp_path):
        path = tmp_path / "paintrack.toml"
        path.write_text('[logging]\nformat = "xml"\n')
        result = runner.invoke(cli, ["check-db", "--config", str(path)])
        assert result.exit_code == 2
        assert "Configuration error" in result.output


class TestServe:
    def test_runs_uvicorn_with_config(self, runner, tmp_path):
        path = tmp_path / "paintrack.toml"
        path.write_text('[server]\nhost = "0.0.0.0"\nport = 8080\n')
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--config", str(path)])
        assert result.exit_code == 0, result.output
        kwargs = run.call_args.kwargs
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 8080
        assert kwargs["log_config"] is None

    def test_cli_options_override_config(self, runner):
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--host", "127.0.0.2", "--port", "9999"])
        assert result.exit_code == 0, result.output
        assert run.call_args.kwargs["host"] == "127.0.0.2"
        assert run.call_args.kwargs["port"] == 9999
