"""Tests for CLI commands - status, sync."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from influxion.client.cli import cli, format_bytes, mask_api_key
from influxion.client.sync.engine import SyncEngine

SESSIONS_URL = "http://test/v1/openclaw/ingest/sessions"

PLUGIN_CONFIG: dict[str, Any] = {
    "apiKey": "sk-live-1234567890abcd",
    "deploymentId": "dep-1",
    "projectId": "proj-1",
    "apiUrl": "http://test",
    "upload": {"retryAttempts": 0, "every": "30m"},
    "filter": {"minMessages": 1, "minBytes": 1},
}


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def configured_state(state_dir: Path) -> Path:
    """State directory whose openclaw.json enables the plugin."""
    host_config = {"plugins": {"entries": {"influxion": {"config": PLUGIN_CONFIG}}}}
    (state_dir / "openclaw.json").write_text(json.dumps(host_config), encoding="utf-8")
    return state_dir


class TestHelpers:
    """Tests for display helpers."""

    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("short", "***"),
            ("exactly12chr", "***"),
            ("sk-live-1234567890abcd", "sk-live-...abcd"),
        ],
    )
    def test_mask_api_key(self, key: str, expected: str) -> None:
        assert mask_api_key(key) == expected

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, "0 B"),
            (1023, "1023 B"),
            (1536, "1.5 KB"),
            (10 * 1024 * 1024, "10.0 MB"),
        ],
    )
    def test_format_bytes(self, size: int, expected: str) -> None:
        assert format_bytes(size) == expected


class TestStatusCommand:
    """Tests for 'influxion status' command."""

    def test_not_configured(self, runner: CliRunner, state_dir: Path) -> None:
        """Should fail with a helpful message when config is missing."""
        result = runner.invoke(cli, ["--state-dir", str(state_dir), "status"])
        assert result.exit_code == 1
        assert "not configured" in result.output

    def test_shows_status(self, runner: CliRunner, configured_state: Path, write_session) -> None:  # type: ignore[no-untyped-def]
        write_session("main", "abc")

        result = runner.invoke(cli, ["--state-dir", str(configured_state), "status"])

        assert result.exit_code == 0, result.output
        assert "sk-live-...abcd" in result.output
        assert "dep-1" in result.output
        assert "http://test" in result.output
        assert "30m" in result.output
        assert "Last run:       never" in result.output
        assert "Pending files:  1" in result.output
        assert "main/abc" in result.output

    def test_config_file_option(self, runner: CliRunner, state_dir: Path, tmp_path: Path) -> None:
        """--config should replace the host configuration lookup."""
        config_file = tmp_path / "influxion.json"
        config_file.write_text(json.dumps(PLUGIN_CONFIG), encoding="utf-8")

        result = runner.invoke(cli, ["--state-dir", str(state_dir), "--config", str(config_file), "status"])

        assert result.exit_code == 0, result.output
        assert "Pending files:  0" in result.output


class TestSyncCommand:
    """Tests for 'influxion sync' command."""

    def test_sync_uploads(  # type: ignore[no-untyped-def]
        self, runner: CliRunner, configured_state: Path, write_session, httpx_mock
    ) -> None:
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        write_session("main", "abc")

        result = runner.invoke(cli, ["--state-dir", str(configured_state), "sync"])

        assert result.exit_code == 0, result.output
        assert "uploaded 1, failed 0" in result.output
        assert (configured_state / "extensions" / "influxion" / "state.json").is_file()

    def test_sync_reports_upload_errors(  # type: ignore[no-untyped-def]
        self, runner: CliRunner, configured_state: Path, write_session, httpx_mock
    ) -> None:
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", status_code=500, text="boom")
        write_session("main", "abc")

        result = runner.invoke(cli, ["--state-dir", str(configured_state), "sync"])

        assert result.exit_code == 0
        assert "Errors:" in result.output
        assert "HTTP 500: boom" in result.output

    def test_sync_unexpected_error(
        self, runner: CliRunner, configured_state: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def _broken(self):  # type: ignore[no-untyped-def]
            raise OSError("read-only file system")

        monkeypatch.setattr(SyncEngine, "run_cycle", _broken)

        result = runner.invoke(cli, ["--state-dir", str(configured_state), "sync"])

        assert result.exit_code == 1
        assert "Sync failed: read-only file system" in result.output

    def test_sync_not_configured(self, runner: CliRunner, state_dir: Path) -> None:
        result = runner.invoke(cli, ["--state-dir", str(state_dir), "sync"])
        assert result.exit_code == 1
