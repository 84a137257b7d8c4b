"""Redis connections and the queue names audits and rollups run on."""

from functools import lru_cache

from redis import ConnectionPool, Redis

from api.config import get_settings

# Audits are polled by callers so their queue is listened to first
QUEUE_AUDITS = "geolens-audits"
QUEUE_ROLLUPS = "geolens-rollups"
WORKER_QUEUES = (QUEUE_AUDITS, QUEUE_ROLLUPS)

JOB_RESULT_TTL = 60 * 60 * 24 * 7


@lru_cache
def _pool(decode_responses: bool) -> ConnectionPool:
    settings = get_settings()
    return ConnectionPool.from_url(
        str(settings.redis_url),
        decode_responses=decode_responses,
        max_connections=settings.redis_max_connections,
    )


def get_redis_connection() -> Redis:
    """Text-mode client for the citation cache and rollup locks."""
    return Redis(connection_pool=_pool(True))


def get_redis_connection_bytes() -> Redis:
    """Byte-mode client for RQ, which stores pickled job payloads."""
    return Redis(connection_pool=_pool(False))
