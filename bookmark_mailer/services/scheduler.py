"""Background scheduler for the weekly digest."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from bookmark_mailer.application.digest_runner import run_digest
from bookmark_mailer.core.time_utils import utc_now
from bookmark_mailer.domain.exceptions import DigestError

if TYPE_CHECKING:
    from bookmark_mailer.application.use_cases.send_weekly_digest import DigestRunResult
    from bookmark_mailer.config import AppConfig

logger = logging.getLogger(__name__)

DIGEST_JOB_ID = "weekly_digest"

DigestJob = Callable[..., Awaitable["DigestRunResult"]]


class SchedulerService:
    """Runs the digest on the configured cron schedule."""

    def __init__(self, cfg: AppConfig, runner: DigestJob = run_digest) -> None:
        """Initialize scheduler service.

        Args:
            cfg: Application configuration
            runner: Coroutine function executing one digest run for ``cfg``
        """
        self.cfg = cfg
        self._runner = runner
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False

    def build_trigger(self) -> CronTrigger:
        return CronTrigger.from_crontab(self.cfg.scheduler.cron, timezone=self.cfg.digest.tzinfo)

    async def start(self) -> None:
        """Start the scheduler with the digest job."""
        if self._started:
            logger.warning("scheduler_already_started")
            return

        self._scheduler = AsyncIOScheduler(timezone=self.cfg.digest.tzinfo)
        self._scheduler.add_job(
            self._run_digest,
            trigger=self.build_trigger(),
            id=DIGEST_JOB_ID,
            name="Weekly Bookmark Digest",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(
            "scheduler_digest_job_added",
            extra={
                "job_id": DIGEST_JOB_ID,
                "cron": self.cfg.scheduler.cron,
                "timezone": self.cfg.digest.timezone,
            },
        )

        self._scheduler.start()
        self._started = True
        logger.info("scheduler_started")

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=True)
            self._scheduler = None
            self._started = False
            logger.info("scheduler_stopped")

    async def _run_digest(self) -> None:
        """Execute a scheduled digest run; failures are logged, never raised."""
        correlation_id = f"scheduled_{utc_now().strftime('%Y%m%d_%H%M%S')}"
        logger.info("scheduled_digest_starting", extra={"correlation_id": correlation_id})

        try:
            result = await self._runner(self.cfg, correlation_id=correlation_id)
        except DigestError as e:
            logger.error(
                "scheduled_digest_failed",
                extra={"correlation_id": correlation_id, "kind": e.kind.value, "error": e.message},
            )
            return
        except Exception as e:
            logger.exception(
                "scheduled_digest_failed",
                extra={"correlation_id": correlation_id, "error": str(e)},
            )
            return

        logger.info(
            "scheduled_digest_complete",
            extra={"correlation_id": correlation_id, "stats": result.stats.to_dict()},
        )

    def get_next_run_time(self, job_id: str = DIGEST_JOB_ID) -> datetime | None:
        """Get next scheduled run time for a job.

        Returns:
            Next run time or None if job doesn't exist or scheduler not started
        """
        if not self._scheduler or not self._started:
            return None
        job = self._scheduler.get_job(job_id)
        return job.next_run_time if job else None

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self._scheduler is not None
