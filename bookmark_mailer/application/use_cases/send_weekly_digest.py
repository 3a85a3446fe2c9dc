"""Use case: fetch the past week's bookmarks and mail them as a digest."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol

from bookmark_mailer.core.logging_utils import generate_correlation_id
from bookmark_mailer.core.time_utils import utc_now
from bookmark_mailer.domain.exceptions import DigestError
from bookmark_mailer.domain.services.digest_formatter import build_digest

if TYPE_CHECKING:
    from bookmark_mailer.adapters.aws.ses_mailer import SendResult
    from bookmark_mailer.config import DigestConfig
    from bookmark_mailer.domain.models.bookmark import BookmarkRecord
    from bookmark_mailer.domain.models.digest import DigestDocument

logger = logging.getLogger(__name__)


class BookmarkFetcher(Protocol):
    async def fetch_recent(
        self, from_date: datetime | None = None, to_date: datetime | None = None
    ) -> list[BookmarkRecord]: ...


class DigestMailer(Protocol):
    async def asend_digest(self, digest: DigestDocument) -> SendResult: ...


@dataclass
class DigestRunStats:
    correlation_id: str
    started_at: datetime
    finished_at: datetime | None = None
    duration_ms: int = 0
    bookmark_count: int = 0
    email_sent: bool = False
    message_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data


@dataclass
class DigestRunResult:
    digest: DigestDocument
    stats: DigestRunStats
    period_start: datetime
    period_end: datetime
    dry_run: bool = False
    records: list[BookmarkRecord] = field(default_factory=list)


class SendWeeklyDigest:
    """Run one fetch-format-send cycle."""

    def __init__(
        self,
        *,
        fetcher: BookmarkFetcher,
        mailer: DigestMailer | None,
        digest_config: DigestConfig,
        from_addr: str | None = None,
        to_addr: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._fetcher = fetcher
        self._mailer = mailer
        self._digest_config = digest_config
        self._from_addr = from_addr
        self._to_addr = to_addr
        self._clock = clock

    async def execute(
        self,
        *,
        dry_run: bool = False,
        lookback_days: int | None = None,
        correlation_id: str | None = None,
    ) -> DigestRunResult:
        """Fetch, format and (unless ``dry_run``) send the digest.

        Errors from the fetcher or mailer propagate; a ``DigestError`` carries
        the partially filled stats as ``digest_stats``, other exceptions are
        left untouched.
        """
        started = time.perf_counter()
        stats = DigestRunStats(
            correlation_id=correlation_id or generate_correlation_id(),
            started_at=self._clock(),
        )
        days = lookback_days or self._digest_config.lookback_days
        period_end = stats.started_at
        period_start = period_end - timedelta(days=days)

        logger.info(
            "digest_run_started",
            extra={
                "correlation_id": stats.correlation_id,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "dry_run": dry_run,
            },
        )

        try:
            records = await self._fetcher.fetch_recent(period_start, period_end)
            stats.bookmark_count = len(records)

            digest = build_digest(
                records,
                start=period_start,
                end=period_end,
                from_addr=self._from_addr,
                to_addr=self._to_addr,
                tz=self._digest_config.tzinfo,
                collation=self._digest_config.collation,
            )

            if not dry_run:
                if self._mailer is None:
                    msg = "A mailer is required unless running in dry-run mode"
                    raise RuntimeError(msg)
                sent = await self._mailer.asend_digest(digest)
                stats.email_sent = sent.success
                stats.message_id = sent.message_id
        except Exception as exc:
            self._finish(stats, started)
            if isinstance(exc, DigestError):
                exc.digest_stats = stats
            logger.error(
                "digest_run_failed",
                extra={"correlation_id": stats.correlation_id, "stats": stats.to_dict()},
            )
            raise

        self._finish(stats, started)
        logger.info(
            "digest_run_completed",
            extra={"correlation_id": stats.correlation_id, "stats": stats.to_dict()},
        )
        return DigestRunResult(
            digest=digest,
            stats=stats,
            period_start=period_start,
            period_end=period_end,
            dry_run=dry_run,
            records=records,
        )

    def _finish(self, stats: DigestRunStats, started: float) -> None:
        stats.finished_at = self._clock()
        stats.duration_ms = int((time.perf_counter() - started) * 1000)
        for name, value, unit in (
            ("ExecutionDuration", stats.duration_ms, "Milliseconds"),
            ("BookmarkCount", stats.bookmark_count, "Count"),
            ("EmailSent", 1 if stats.email_sent else 0, "Count"),
        ):
            logger.info(
                "digest_run_metric",
                extra={
                    "correlation_id": stats.correlation_id,
                    "metric": {"name": name, "value": value, "unit": unit},
                },
            )
