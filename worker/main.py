"""RQ Worker entrypoint."""

import os
import platform
import sys

import structlog
from rq import SimpleWorker, Worker

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.config import get_settings  # noqa: E402
from api.logging import setup_logging  # noqa: E402
from worker.redis import WORKER_QUEUES, get_redis_connection_bytes  # noqa: E402

logger = structlog.get_logger(__name__)


def run_worker() -> None:
    """Start the RQ worker."""
    settings = get_settings()
    setup_logging(service="worker")

    queues = list(WORKER_QUEUES)
    logger.info("worker_starting", env=settings.env, queues=queues)

    redis_conn = get_redis_connection_bytes()

    try:
        from worker.scheduler import ensure_rollup_schedule

        ensure_rollup_schedule()
    except Exception as e:
        logger.warning("rollup_schedule_failed", error=str(e))

    # Use SimpleWorker on Windows (no os.fork() support)
    WorkerClass = SimpleWorker if platform.system() == "Windows" else Worker

    worker = WorkerClass(
        queues,
        connection=redis_conn,
        name=f"geolens-worker-{os.getpid()}",
    )

    worker.work(
        with_scheduler=True,
        logging_level=settings.log_level,
    )


if __name__ == "__main__":
    run_worker()
