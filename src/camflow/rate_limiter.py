"""Token bucket rate limiter shared by all Google Photos calls."""

import asyncio
import time

# Limit to 5 operations per second, allowing bursts of up to 10.
DEFAULT_RATE = 5.0
DEFAULT_BURST = 10


class RateLimiter:
    """Async token bucket.

    Tokens refill continuously at ``rate`` per second up to ``burst``. Each
    call to :meth:`wait` takes one token, sleeping until one is available.
    Cancelling the waiting task raises ``asyncio.CancelledError`` from the
    sleep, aborting the caller.
    """

    def __init__(self, rate: float = DEFAULT_RATE, burst: int = DEFAULT_BURST) -> None:
        """Initialize rate limiter.

        Args:
            rate: Tokens added per second
            burst: Maximum number of tokens that can accumulate

        Raises:
            ValueError: If rate or burst is not positive
        """
        if rate <= 0:
            raise ValueError(f"Rate must be positive: {rate}")
        if burst <= 0:
            raise ValueError(f"Burst must be positive: {burst}")
        self.rate = rate
        self.burst = burst
        self._tokens = float(burst)
        self._updated = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self.burst, self._tokens + (now - self._updated) * self.rate)
        self._updated = now

    @property
    def tokens(self) -> float:
        """Currently available tokens."""
        self._refill()
        return self._tokens

    async def wait(self) -> None:
        """Block until a token is available, then consume it."""
        # The lock keeps waiters in FIFO order.
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                await asyncio.sleep((1 - self._tokens) / self.rate)
