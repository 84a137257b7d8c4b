"""Queues for background audit scoring and visibility rollups."""

import uuid
from datetime import date
from typing import Any

import structlog
from redis import Redis
from rq import Callback, Queue
from rq.job import Job

from worker.redis import (
    JOB_RESULT_TTL,
    QUEUE_AUDITS,
    QUEUE_ROLLUPS,
    get_redis_connection_bytes,
)
from worker.tasks.audit import run_audit_scoring_sync
from worker.tasks.rollup import run_daily_rollup_sync

logger = structlog.get_logger(__name__)

AUDIT_JOB_TIMEOUT = 15 * 60
ROLLUP_JOB_TIMEOUT = 30 * 60


def on_job_success(job: Job, _connection: object, result: object) -> None:
    logger.info(
        "job_completed", job_id=job.id, kind=job.meta.get("type"), result=str(result)[:100]
    )


def on_job_failure(
    job: Job,
    _connection: object,
    _exc_type: type,
    exc_value: BaseException,
    _traceback: object,
) -> None:
    """Failed audits record their own failure code; nothing is retried."""
    logger.error("job_failed", job_id=job.id, kind=job.meta.get("type"), error=str(exc_value))


class JobQueue:
    """
    Enqueues audit and rollup jobs, each on its own queue.

    Workers listen to the audit queue first since callers poll for audits.
    """

    def __init__(self, connection: Redis | None = None) -> None:
        self._conn = connection or get_redis_connection_bytes()
        self.audits = Queue(QUEUE_AUDITS, connection=self._conn)
        self.rollups = Queue(QUEUE_ROLLUPS, connection=self._conn)

    def _enqueue(
        self,
        queue: Queue,
        func: Any,
        *args: Any,
        job_id: str,
        job_timeout: int,
        meta: dict[str, Any],
    ) -> Job:
        job = queue.enqueue(
            func,
            *args,
            job_id=job_id,
            job_timeout=job_timeout,
            result_ttl=JOB_RESULT_TTL,
            meta=meta,
            on_success=Callback(on_job_success),
            on_failure=Callback(on_job_failure),
        )
        logger.info("job_enqueued", job_id=job.id, queue=queue.name, kind=meta["type"])
        return job

    def enqueue_audit(
        self,
        audit_id: uuid.UUID | str,
        domain: str,
        pages: list[dict[str, Any]],
        site: dict[str, Any] | None = None,
        include_preview: bool = False,
        criteria_overrides: dict[str, dict[str, Any]] | None = None,
    ) -> Job:
        """Queue scoring for an audit row that is already committed."""
        return self._enqueue(
            self.audits,
            run_audit_scoring_sync,
            str(audit_id),
            domain,
            pages,
            site,
            include_preview,
            criteria_overrides,
            job_id=f"audit-{audit_id}",
            job_timeout=AUDIT_JOB_TIMEOUT,
            meta={"type": "audit", "audit_id": str(audit_id), "domain": domain},
        )

    def enqueue_rollup(self, day: date) -> Job:
        """Queue the daily rollup for ``day``. The worker takes a per-day lock."""
        return self._enqueue(
            self.rollups,
            run_daily_rollup_sync,
            day.isoformat(),
            job_id=f"rollup-{day.isoformat()}-{uuid.uuid4().hex[:8]}",
            job_timeout=ROLLUP_JOB_TIMEOUT,
            meta={"type": "visibility_rollup", "day": day.isoformat()},
        )


_job_queue: JobQueue | None = None


def get_job_queue() -> JobQueue:
    """Get the process-wide job queue."""
    global _job_queue
    if _job_queue is None:
        _job_queue = JobQueue()
    return _job_queue
