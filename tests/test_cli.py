"""Tests for the bookmark-mailer command line."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bookmark_mailer.cli import main as cli
from bookmark_mailer.domain.exceptions import ErrorKind, UpstreamError
from bookmark_mailer.domain.models.digest import DigestDocument


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch.object(cli, "setup_json_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def configured_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RAINDROP_API_TOKEN", "cli-token")
    monkeypatch.setenv("EMAIL_FROM", "sender@example.com")
    monkeypatch.setenv("EMAIL_TO", "reader@example.com")


def _result(*, dry_run: bool) -> SimpleNamespace:
    stats = SimpleNamespace(to_dict=lambda: {"bookmark_count": 1, "email_sent": not dry_run})
    digest = DigestDocument(subject="週次ブックマークダイジェスト - 2024/03/05", body="本文", record_count=1)
    return SimpleNamespace(dry_run=dry_run, digest=digest, stats=stats)


def test_parse_run_options():
    args = cli.parse_args(["run", "--dry-run", "--days", "3"])
    assert args.command == "run"
    assert args.dry_run is True
    assert args.days == 3


@pytest.mark.parametrize("days", ["0", "367", "soon"])
def test_parse_rejects_bad_days(days: str):
    with pytest.raises(SystemExit):
        cli.parse_args(["run", "--days", days])


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.parse_args([])


def test_dry_run_prints_digest(configured_env, capsys: pytest.CaptureFixture[str]):
    run_digest = AsyncMock(return_value=_result(dry_run=True))
    with patch.object(cli, "run_digest", run_digest):
        assert cli.main(["run", "--dry-run", "--days", "2"]) == 0

    out = capsys.readouterr().out
    assert "Subject: 週次ブックマークダイジェスト - 2024/03/05" in out
    assert "本文" in out
    kwargs = run_digest.await_args.kwargs
    assert kwargs["dry_run"] is True
    assert kwargs["lookback_days"] == 2


def test_run_prints_stats(configured_env, capsys: pytest.CaptureFixture[str]):
    with patch.object(cli, "run_digest", AsyncMock(return_value=_result(dry_run=False))):
        assert cli.main(["run"]) == 0

    assert '"email_sent": true' in capsys.readouterr().out


def test_digest_error_exits_one(configured_env, capsys: pytest.CaptureFixture[str]):
    error = UpstreamError("Raindrop.io server error", kind=ErrorKind.UPSTREAM_UNAVAILABLE)
    with patch.object(cli, "run_digest", AsyncMock(side_effect=error)):
        assert cli.main(["run"]) == 1

    assert "Raindrop.io server error" in capsys.readouterr().err


def test_invalid_configuration_exits_one(monkeypatch: pytest.MonkeyPatch, capsys):
    monkeypatch.setenv("DIGEST_LOOKBACK_DAYS", "forever")
    assert cli.main(["run"]) == 1
    assert "Configuration validation failed" in capsys.readouterr().err


def test_log_level_flag_overrides_config(configured_env, _no_logging_setup):
    with patch.object(cli, "run_digest", AsyncMock(return_value=_result(dry_run=True))):
        cli.main(["--log-level", "DEBUG", "run", "--dry-run"])

    assert _no_logging_setup.call_args.args[0] == "DEBUG"


def test_check_uses_test_connection(configured_env, capsys: pytest.CaptureFixture[str]):
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    client.test_connection = AsyncMock(return_value=True)

    with patch.object(cli, "default_client_factory", return_value=client) as factory:
        assert cli.main(["check"]) == 0

    client.test_connection.assert_awaited_once()
    assert factory.call_args.args[0].api_token == "cli-token"
    assert "connection OK" in capsys.readouterr().out


def test_test_email(configured_env, capsys: pytest.CaptureFixture[str]):
    mailer = MagicMock()
    mailer.asend_test_email = AsyncMock(return_value=SimpleNamespace(message_id="ses-42"))

    with patch.object(cli, "default_mailer_factory", return_value=mailer):
        assert cli.main(["test-email"]) == 0

    assert "ses-42" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_serve_starts_and_stops_scheduler(app_config):
    scheduler = MagicMock()
    scheduler.start = AsyncMock()
    scheduler.stop = AsyncMock()
    scheduler.get_next_run_time.return_value = datetime(2024, 3, 11, 9, 0, tzinfo=UTC)
    stop_event = asyncio.Event()

    with patch.object(cli, "SchedulerService", return_value=scheduler):
        task = asyncio.create_task(cli.serve(app_config, stop_event=stop_event))
        await asyncio.sleep(0)
        scheduler.start.assert_awaited_once()
        stop_event.set()
        await task

    scheduler.stop.assert_awaited_once()
