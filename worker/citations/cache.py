"""Citation result caching."""

import asyncio
import hashlib
import json
import re
import time
from collections.abc import Callable
from typing import Any, Protocol

import structlog
from redis import Redis

logger = structlog.get_logger(__name__)

# Default cache TTL: 24 hours
DEFAULT_CACHE_TTL_SECONDS = 86400

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Lower-case and collapse whitespace."""
    return _WHITESPACE.sub(" ", query).strip().lower()


def cache_key(namespace: str, query: str, domain: str | None = None) -> str:
    """
    Build a cache key from a normalized query.

    Args:
        namespace: Key family, e.g. ``answer`` or ``brave``
        query: Raw query text
        domain: Optional domain the answer is scoped to

    Returns:
        Key string safe for Redis
    """
    parts = [normalize_query(query)]
    if domain:
        parts.append(domain.strip().lower())
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:32]
    return f"citations:{namespace}:{digest}"


class CitationCache(Protocol):
    """Key-value store with TTL semantics."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool: ...

    async def invalidate(self, key: str) -> bool: ...


class RedisCitationCache:
    """
    Cache backed by Redis.

    Values are stored as JSON with ``SETEX`` so writes from concurrent
    audits are atomic per key. Redis errors are logged and treated as misses.
    """

    def __init__(
        self,
        redis: Redis | None = None,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ):
        self._redis = redis
        self.ttl_seconds = ttl_seconds

    def _client(self) -> Redis:
        if self._redis is None:
            from worker.redis import get_redis_connection

            self._redis = get_redis_connection()
        return self._redis

    async def get(self, key: str) -> Any | None:
        try:
            data = self._client().get(key)
            if not data:
                logger.debug("cache_miss", key=key)
                return None
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        except Exception as e:
            logger.warning("cache_get_error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        try:
            self._client().setex(key, ttl_seconds or self.ttl_seconds, json.dumps(value))
            return True
        except Exception as e:
            logger.warning("cache_set_error", key=key, error=str(e))
            return False

    async def invalidate(self, key: str) -> bool:
        try:
            return bool(self._client().delete(key))
        except Exception as e:
            logger.warning("cache_invalidate_error", key=key, error=str(e))
            return False


class MemoryCitationCache:
    """In-process TTL cache with an injectable clock."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        async with self._lock:
            ttl = ttl_seconds or self.ttl_seconds
            self._entries[key] = (self._clock() + ttl, json.dumps(value))
            return True

    async def invalidate(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._entries)


def cache_from_settings() -> CitationCache | None:
    """Build the shared Redis cache from settings, or None when disabled."""
    from api.config import get_settings

    settings = get_settings()
    if not settings.citation_cache_enabled:
        return None
    return RedisCitationCache(ttl_seconds=settings.citation_cache_ttl_seconds)
