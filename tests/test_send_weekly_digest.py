"""Tests for the SendWeeklyDigest use case."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from bookmark_mailer.adapters.aws.ses_mailer import SendResult
from bookmark_mailer.application.use_cases import SendWeeklyDigest
from bookmark_mailer.config import load_config
from bookmark_mailer.domain.exceptions import ErrorKind, MailDeliveryError, UpstreamError
from tests.conftest import make_record

NOW = datetime(2024, 3, 5, 9, 0, tzinfo=UTC)


def _mailer(message_id: str = "msg-1") -> AsyncMock:
    mailer = AsyncMock()
    mailer.asend_digest.return_value = SendResult(
        success=True,
        message_id=message_id,
        from_addr="sender@example.com",
        to_addr="reader@example.com",
        subject="s",
    )
    return mailer


def _fetcher(records: list | None = None) -> AsyncMock:
    fetcher = AsyncMock()
    fetcher.fetch_recent.return_value = records or []
    return fetcher


def _use_case(fetcher, mailer, **config_overrides) -> SendWeeklyDigest:
    return SendWeeklyDigest(
        fetcher=fetcher,
        mailer=mailer,
        digest_config=load_config(**config_overrides).digest,
        from_addr="sender@example.com",
        to_addr="reader@example.com",
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_fetches_last_week_and_sends():
    fetcher = _fetcher([make_record(id=1), make_record(id=2, is_favorite=True)])
    mailer = _mailer()

    result = await _use_case(fetcher, mailer).execute(correlation_id="cid-1")

    fetcher.fetch_recent.assert_awaited_once_with(NOW - timedelta(days=7), NOW)
    mailer.asend_digest.assert_awaited_once()
    digest = mailer.asend_digest.await_args.args[0]
    assert digest is result.digest
    assert digest.subject == "週次ブックマークダイジェスト - 2024/03/05"
    assert digest.date_range_label == "2024/02/27 - 2024/03/05"
    assert digest.to_addr == "reader@example.com"
    assert result.stats.bookmark_count == 2
    assert result.stats.email_sent is True
    assert result.stats.message_id == "msg-1"
    assert result.stats.correlation_id == "cid-1"
    assert result.stats.finished_at == NOW
    assert result.stats.duration_ms >= 0


@pytest.mark.asyncio
async def test_empty_week_still_sends_digest():
    mailer = _mailer()
    result = await _use_case(_fetcher([]), mailer).execute()

    assert result.digest.is_empty
    assert "今週は新しいブックマークがありませんでした。" in result.digest.body
    mailer.asend_digest.assert_awaited_once()


@pytest.mark.asyncio
async def test_dry_run_does_not_send():
    mailer = _mailer()
    result = await _use_case(_fetcher([make_record()]), mailer).execute(dry_run=True)

    mailer.asend_digest.assert_not_awaited()
    assert result.dry_run is True
    assert result.stats.email_sent is False
    assert result.stats.message_id is None


@pytest.mark.asyncio
async def test_dry_run_without_mailer():
    result = await _use_case(_fetcher([make_record()]), None).execute(dry_run=True)
    assert result.digest.record_count == 1


@pytest.mark.asyncio
async def test_lookback_override_and_config():
    fetcher = _fetcher()
    await _use_case(fetcher, _mailer(), DIGEST_LOOKBACK_DAYS="14").execute(dry_run=True)
    fetcher.fetch_recent.assert_awaited_once_with(NOW - timedelta(days=14), NOW)

    fetcher = _fetcher()
    await _use_case(fetcher, _mailer()).execute(dry_run=True, lookback_days=3)
    fetcher.fetch_recent.assert_awaited_once_with(NOW - timedelta(days=3), NOW)


@pytest.mark.asyncio
async def test_timezone_and_collation_from_config():
    records = [
        make_record(id=1, folder="apple", created_at=NOW - timedelta(hours=1)),
        make_record(id=2, folder="Banana", created_at=NOW - timedelta(hours=2)),
    ]
    use_case = _use_case(
        _fetcher(records),
        _mailer(),
        DIGEST_TIMEZONE="Pacific/Honolulu",
        FOLDER_COLLATION="codepoint",
    )

    result = await use_case.execute(dry_run=True)

    assert result.digest.subject.endswith("2024/03/04")
    assert result.digest.body.index("h4. [Banana]") < result.digest.body.index("h4. [apple]")


@pytest.mark.asyncio
async def test_fetch_failure_propagates_with_stats():
    fetcher = AsyncMock()
    fetcher.fetch_recent.side_effect = UpstreamError("down", kind=ErrorKind.UPSTREAM_UNAVAILABLE)
    mailer = _mailer()

    with pytest.raises(UpstreamError) as ctx:
        await _use_case(fetcher, mailer).execute()

    mailer.asend_digest.assert_not_awaited()
    stats = ctx.value.digest_stats
    assert stats.bookmark_count == 0
    assert stats.email_sent is False


@pytest.mark.asyncio
async def test_mail_failure_keeps_bookmark_count():
    mailer = AsyncMock()
    mailer.asend_digest.side_effect = MailDeliveryError("rejected")

    with pytest.raises(MailDeliveryError) as ctx:
        await _use_case(_fetcher([make_record()]), mailer).execute()

    assert ctx.value.digest_stats.bookmark_count == 1


@pytest.mark.asyncio
async def test_metrics_are_logged(caplog: pytest.LogCaptureFixture):
    with caplog.at_level(logging.INFO, logger="bookmark_mailer.application.use_cases.send_weekly_digest"):
        await _use_case(_fetcher([make_record()]), _mailer()).execute()

    metrics = {
        record.metric["name"]: record.metric["value"]
        for record in caplog.records
        if record.getMessage() == "digest_run_metric"
    }
    assert metrics["BookmarkCount"] == 1
    assert metrics["EmailSent"] == 1
    assert "ExecutionDuration" in metrics


class _DriverError(Exception):
    pass


@pytest.mark.asyncio
async def test_foreign_exception_propagates_untouched():
    fetcher = AsyncMock()
    error = _DriverError("driver failure")
    fetcher.fetch_recent.side_effect = error

    with pytest.raises(_DriverError) as ctx:
        await _use_case(fetcher, _mailer()).execute()

    assert ctx.value is error
    assert not hasattr(ctx.value, "digest_stats")


def test_digest_error_has_no_stats_until_a_run_fails():
    assert UpstreamError("down").digest_stats is None
