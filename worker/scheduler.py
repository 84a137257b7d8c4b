"""Nightly visibility rollup scheduling using rq-scheduler."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog
from rq_scheduler import Scheduler

from api.config import get_settings
from worker.queue import ROLLUP_JOB_TIMEOUT
from worker.redis import QUEUE_ROLLUPS, get_redis_connection_bytes
from worker.tasks.rollup import run_daily_rollup_sync

if TYPE_CHECKING:
    from rq.job import Job

logger = structlog.get_logger(__name__)


def get_scheduler() -> Scheduler:
    """Get a scheduler instance connected to Redis."""
    conn = get_redis_connection_bytes()
    return Scheduler(queue_name=QUEUE_ROLLUPS, connection=conn)


def next_daily_run(hour: int, minute: int = 0, from_time: datetime | None = None) -> datetime:
    """
    Next occurrence of ``hour:minute`` UTC.

    Args:
        hour: Hour of day (UTC)
        minute: Minute of hour
        from_time: Calculate from this time (defaults to now)

    Returns:
        Today's slot if it is still ahead, otherwise tomorrow's
    """
    now = from_time or datetime.now(UTC)
    next_run = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return next_run


class RollupScheduler:
    """Service for managing the nightly rollup job."""

    ROLLUP_JOB_ID = "visibility_rollup_daily"

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self._scheduler = scheduler or get_scheduler()
        self._settings = get_settings()

    @property
    def scheduler(self) -> Scheduler:
        """Get the underlying rq-scheduler instance."""
        return self._scheduler

    def schedule_nightly_rollup(self, hour: int | None = None, minute: int = 0) -> Job | None:
        """
        Schedule the rollup of the previous day, repeating every 24 hours.

        Returns:
            The scheduled job, or None if scheduling is disabled
        """
        if not self._settings.rollup_schedule_enabled:
            logger.info("rollup_scheduling_skipped_disabled")
            return None

        self.cancel_nightly_rollup()

        hour = self._settings.rollup_hour_utc if hour is None else hour
        next_run = next_daily_run(hour, minute)
        job = self._scheduler.schedule(
            scheduled_time=next_run,
            func=run_daily_rollup_sync,
            args=["yesterday"],
            interval=86400,
            repeat=None,
            id=self.ROLLUP_JOB_ID,
            job_timeout=ROLLUP_JOB_TIMEOUT,
            meta={
                "type": "visibility_rollup",
                "scheduled_at": datetime.now(UTC).isoformat(),
                "interval": "daily",
            },
        )

        logger.info("rollup_scheduled", job_id=job.id, next_run=next_run.isoformat())
        return job

    def cancel_nightly_rollup(self) -> bool:
        """
        Cancel the scheduled rollup job.

        Returns:
            True if cancelled, False if not found
        """
        for job in self._scheduler.get_jobs():
            if job.id == self.ROLLUP_JOB_ID:
                self._scheduler.cancel(job)
                logger.info("rollup_cancelled", job_id=job.id)
                return True
        return False

    def is_scheduled(self) -> bool:
        return any(job.id == self.ROLLUP_JOB_ID for job in self._scheduler.get_jobs())


def ensure_rollup_schedule(scheduler: RollupScheduler | None = None) -> dict:
    """
    Make sure the nightly rollup is scheduled. Call at worker startup.

    Returns:
        Dict with schedule status
    """
    scheduler = scheduler or RollupScheduler()
    settings = get_settings()
    result = {"enabled": settings.rollup_schedule_enabled, "scheduled": False}

    if settings.rollup_schedule_enabled:
        if scheduler.is_scheduled():
            result["scheduled"] = True
        else:
            result["scheduled"] = scheduler.schedule_nightly_rollup() is not None

    logger.info("rollup_schedule_ensured", **result)
    return result
