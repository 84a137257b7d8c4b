"""Visibility rollup background task."""

import uuid
from datetime import date

import structlog
from redis import Redis

from api.config import get_settings
from api.exceptions import ConflictError
from worker.visibility.rollup import RollupEngine, parse_day
from worker.visibility.store import SqlVisibilityStore, VisibilityStore

logger = structlog.get_logger(__name__)

LOCK_PREFIX = "geolens:rollup-lock:"

# Delete the lock only while it still holds our token
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def lock_key(day: date) -> str:
    return f"{LOCK_PREFIX}{day.isoformat()}"


async def run_daily_rollup(
    day: str = "today",
    store: VisibilityStore | None = None,
    redis: Redis | None = None,
    lock_ttl_seconds: int | None = None,
) -> dict:
    """
    Run the daily rollup for ``day`` under a Redis lock.

    Overlapping runs for the same day are rejected rather than allowed to
    race, since the rollup replaces the stored rows for its key.

    Raises:
        RollupError: If ``day`` is invalid
        ConflictError: If a rollup for the same day is already running
    """
    from worker.redis import get_redis_connection

    settings = get_settings()
    target = parse_day(day)
    redis = redis or get_redis_connection()
    ttl = lock_ttl_seconds or settings.rollup_lock_ttl_seconds
    key = lock_key(target)
    token = uuid.uuid4().hex

    if not redis.set(key, token, nx=True, ex=ttl):
        logger.warning("rollup_locked", day=target.isoformat())
        raise ConflictError(f"Rollup for {target.isoformat()} is already running")

    try:
        engine = RollupEngine(store or SqlVisibilityStore())
        result = await engine.rollup_daily(target)
    finally:
        if not redis.eval(RELEASE_LOCK_SCRIPT, 1, key, token):
            logger.warning("rollup_lock_expired", day=target.isoformat(), ttl_seconds=ttl)

    return result.to_dict()


def run_daily_rollup_sync(day: str = "today") -> dict:
    """
    Synchronous wrapper for the rollup task.

    This is the entry point for RQ and the scheduler.
    """
    import asyncio

    from api.database import reset_engine

    reset_engine()
    return asyncio.run(run_daily_rollup(day))
