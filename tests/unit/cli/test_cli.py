# tests/unit/cli/test_cli.py
"""Tests for the phasetrace CLI."""

import logging
from collections.abc import Iterator
from pathlib import Path

import httpx
import pytest
import respx
import structlog
from typer.testing import CliRunner

from phasetrace.cli import app

runner = CliRunner()

INGESTION_URL = "https://langfuse.test/api/public/ingestion"


@pytest.fixture(autouse=True)
def isolate(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear LANGFUSE_* variables and undo the logging setup ping performs."""
    for var in (
        "LANGFUSE_ENABLED",
        "LANGFUSE_BACKEND",
        "LANGFUSE_PUBLIC_KEY",
        "LANGFUSE_SECRET_KEY",
        "LANGFUSE_PUBLIC_KEY_SECRET",
        "LANGFUSE_SECRET_KEY_SECRET",
        "LANGFUSE_BASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LANGFUSE_PUBLIC_KEY", "pk-test")
    monkeypatch.setenv("LANGFUSE_SECRET_KEY", "sk-test")
    monkeypatch.setenv("LANGFUSE_BASE_URL", "https://langfuse.test")


class TestCLIBasics:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "phasetrace version" in result.output

    def test_help_lists_ping(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "ping" in result.output


class TestPingCommand:
    @respx.mock
    def test_ping_success(self, credentials: None) -> None:
        route = respx.post(INGESTION_URL).mock(return_value=httpx.Response(200, json={"successes": [], "errors": []}))

        result = runner.invoke(app, ["ping"])

        assert result.exit_code == 0, result.output
        assert "Ping succeeded (https://langfuse.test)" in result.output
        assert route.call_count == 1

    @respx.mock
    def test_ping_rejected(self, credentials: None) -> None:
        respx.post(INGESTION_URL).mock(
            return_value=httpx.Response(
                207,
                json={"successes": [], "errors": [{"id": "e", "status": 401, "message": "Invalid credentials"}]},
            )
        )

        result = runner.invoke(app, ["ping"])

        assert result.exit_code == 1
        assert "Ping failed" in result.output
        assert "Invalid credentials" in result.output

    @respx.mock
    def test_ping_unreachable(self, credentials: None) -> None:
        respx.post(INGESTION_URL).mock(side_effect=httpx.ConnectError)

        result = runner.invoke(app, ["ping"])

        assert result.exit_code == 1
        assert "Ping failed" in result.output

    def test_ping_without_credentials_is_noop(self) -> None:
        result = runner.invoke(app, ["ping"])

        assert result.exit_code == 0
        assert "nothing to ping" in result.output

    def test_ping_disabled(self, credentials: None, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LANGFUSE_ENABLED", "false")

        result = runner.invoke(app, ["ping"])

        assert result.exit_code == 0
        assert "nothing to ping" in result.output

    def test_missing_settings_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["ping", "--settings", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_invalid_settings_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("max_batch_size: 0\n")

        result = runner.invoke(app, ["ping", "--settings", str(config_file)])

        assert result.exit_code == 1
        assert "max_batch_size" in result.output

    @respx.mock
    def test_settings_file_credentials(self, tmp_path: Path) -> None:
        respx.post(INGESTION_URL).mock(return_value=httpx.Response(200, json={"successes": [], "errors": []}))
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("public_key: pk-file\nsecret_key: sk-file\nbase_url: https://langfuse.test\n")

        result = runner.invoke(app, ["ping", "-s", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Ping succeeded" in result.output
