"""Tests for the token bucket rate limiter."""

import asyncio
import time

import pytest

from camflow.rate_limiter import RateLimiter


class TestRateLimiterInit:
    def test_rejects_non_positive_rate(self) -> None:
        with pytest.raises(ValueError, match="Rate"):
            RateLimiter(rate=0)

    def test_rejects_non_positive_burst(self) -> None:
        with pytest.raises(ValueError, match="Burst"):
            RateLimiter(burst=0)


@pytest.mark.asyncio
class TestRateLimiterWait:
    """Test token consumption and refill."""

    async def test_burst_is_immediate(self) -> None:
        limiter = RateLimiter(rate=1, burst=3)

        start = time.monotonic()
        for _ in range(3):
            await limiter.wait()

        assert time.monotonic() - start < 0.5
        assert limiter.tokens < 1

    async def test_waits_for_refill(self) -> None:
        limiter = RateLimiter(rate=20, burst=1)
        await limiter.wait()

        start = time.monotonic()
        await limiter.wait()

        # One token takes 1/20 s to refill.
        assert time.monotonic() - start >= 0.04

    async def test_cancellation_propagates(self) -> None:
        limiter = RateLimiter(rate=0.1, burst=1)
        await limiter.wait()

        task = asyncio.create_task(limiter.wait())
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_tokens_capped_at_burst(self) -> None:
        limiter = RateLimiter(rate=1000, burst=2)
        await asyncio.sleep(0.05)

        assert limiter.tokens == 2
