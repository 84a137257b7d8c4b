"""Token-bucket rate limiting for outbound provider calls."""

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class TokenBucket:
    """
    Token bucket with busy-poll acquisition.

    ``acquire`` checks for a token, and when none is available sleeps for a
    fixed poll interval before checking again. It never blocks indefinitely
    inside one await, so an outer ``asyncio.wait_for`` can cancel it.
    """

    def __init__(
        self,
        capacity: int = 5,
        refill_per_second: float = 5.0,
        poll_interval: float = 0.1,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        if capacity <= 0 or refill_per_second <= 0:
            raise ValueError("capacity and refill rate must be positive")
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_per_second)
        self._last_refill = now

    @property
    def available(self) -> float:
        """Tokens currently available."""
        self._refill()
        return self._tokens

    def try_acquire(self) -> bool:
        """Take a token if one is available."""
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    async def acquire(self) -> int:
        """
        Wait until a token is available and take it.

        Returns:
            Number of poll sleeps performed before acquiring
        """
        polls = 0
        while not self.try_acquire():
            polls += 1
            await self._sleep(self.poll_interval)
        if polls:
            logger.debug("rate_limit_waited", polls=polls)
        return polls


class RateLimiterRegistry:
    """One token bucket per provider, created on first use."""

    def __init__(
        self,
        capacity: int = 5,
        refill_per_second: float = 5.0,
        poll_interval: float = 0.1,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._buckets: dict[str, TokenBucket] = {}

    def get(self, provider: str) -> TokenBucket:
        """Get the bucket for a provider."""
        bucket = self._buckets.get(provider)
        if bucket is None:
            bucket = TokenBucket(
                capacity=self.capacity,
                refill_per_second=self.refill_per_second,
                poll_interval=self.poll_interval,
                clock=self._clock,
                sleep=self._sleep,
            )
            self._buckets[provider] = bucket
        return bucket

    async def acquire(self, provider: str) -> int:
        """Acquire a token from a provider's bucket."""
        return await self.get(provider).acquire()


def registry_from_settings() -> RateLimiterRegistry:
    """Build the per-provider limiter registry from settings."""
    from api.config import get_settings

    settings = get_settings()
    return RateLimiterRegistry(
        capacity=settings.rate_limit_capacity,
        refill_per_second=settings.rate_limit_refill_per_second,
        poll_interval=settings.rate_limit_poll_seconds,
    )
