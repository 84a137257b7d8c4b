"""Tests for the token-bucket rate limiter."""

import asyncio

import pytest

from worker.citations.rate_limit import RateLimiterRegistry, TokenBucket


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestTokenBucket:
    """Tests for TokenBucket."""

    def test_starts_full(self) -> None:
        """Test a new bucket allows capacity calls at once."""
        clock = FakeClock()
        bucket = TokenBucket(capacity=5, refill_per_second=5, clock=clock)

        assert [bucket.try_acquire() for _ in range(6)] == [True] * 5 + [False]

    def test_refills_over_time(self) -> None:
        """Test tokens refill at the configured rate."""
        clock = FakeClock()
        bucket = TokenBucket(capacity=2, refill_per_second=2, clock=clock)
        bucket.try_acquire()
        bucket.try_acquire()

        clock.now += 0.5

        assert bucket.try_acquire() is True
        assert bucket.try_acquire() is False

    def test_never_exceeds_capacity(self) -> None:
        """Test refill is capped at capacity."""
        clock = FakeClock()
        bucket = TokenBucket(capacity=3, refill_per_second=10, clock=clock)
        clock.now += 100

        assert bucket.available == 3

    def test_rejects_invalid_configuration(self) -> None:
        """Test capacity and rate must be positive."""
        with pytest.raises(ValueError):
            TokenBucket(capacity=0)
        with pytest.raises(ValueError):
            TokenBucket(refill_per_second=0)

    @pytest.mark.asyncio
    async def test_acquire_polls_until_token(self) -> None:
        """Test acquire sleeps the poll interval until a token refills."""
        clock = FakeClock()
        bucket = TokenBucket(
            capacity=1,
            refill_per_second=2,
            poll_interval=0.25,
            clock=clock,
            sleep=clock.sleep,
        )
        assert await bucket.acquire() == 0

        polls = await bucket.acquire()

        assert polls == 2
        assert clock.sleeps == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_acquire_is_cancellable(self) -> None:
        """Test an outer timeout cancels a waiting acquire."""
        bucket = TokenBucket(capacity=1, refill_per_second=0.001, poll_interval=0.01)
        bucket.try_acquire()

        with pytest.raises(TimeoutError):
            await asyncio.wait_for(bucket.acquire(), timeout=0.05)


class TestRateLimiterRegistry:
    """Tests for RateLimiterRegistry."""

    def test_one_bucket_per_provider(self) -> None:
        """Test buckets are created once per provider."""
        registry = RateLimiterRegistry(capacity=1)

        assert registry.get("brave") is registry.get("brave")
        assert registry.get("brave") is not registry.get("bing")

    @pytest.mark.asyncio
    async def test_providers_are_independent(self) -> None:
        """Test draining one provider does not affect another."""
        clock = FakeClock()
        registry = RateLimiterRegistry(capacity=1, refill_per_second=1, clock=clock, sleep=clock.sleep)

        await registry.acquire("brave")
        assert await registry.acquire("bing") == 0
        assert registry.get("brave").try_acquire() is False
