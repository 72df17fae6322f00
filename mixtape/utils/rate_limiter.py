"""
Per-provider request budget.

A token bucket refilled continuously at the provider's per-minute budget. A
provider that answers 429 with a Retry-After can also pause the whole bucket,
so every concurrent caller of that client waits the throttle out together.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

class RateLimiter:
    """Token bucket shared by every request a single provider client sends."""

    def __init__(
        self,
        requests_per_minute: int,
        burst_size: Optional[int] = None,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            requests_per_minute: Budget refilled every minute
            burst_size: Bucket capacity (defaults to requests_per_minute)
            name: Provider label used in log messages
            clock: Monotonic time source
        """
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self.rate = requests_per_minute / 60.0
        self.capacity = float(burst_size or requests_per_minute)
        self.name = name
        self._clock = clock
        self._tokens = self.capacity
        self._stamp = clock()
        self._paused_until = 0.0
        self._lock = asyncio.Lock()

    def _level(self, now: float) -> float:
        return min(self.capacity, self._tokens + (now - self._stamp) * self.rate)

    def available_tokens(self) -> float:
        return self._level(self._clock())

    def paused_for(self) -> float:
        """Seconds left on a provider-imposed pause."""
        return max(0.0, self._paused_until - self._clock())

    def pause(self, seconds: float) -> None:
        """Hold every caller for ``seconds``; a shorter pause never cuts a longer one."""
        until = self._clock() + max(0.0, seconds)
        if until > self._paused_until:
            logger.info(f"{self.name} paused for {seconds:.2f}s")
            self._paused_until = until

    async def acquire(self) -> None:
        """Take one token, sleeping through any pause and any empty bucket."""
        async with self._lock:
            delay = self.paused_for()
            if delay > 0:
                await asyncio.sleep(delay)

            now = self._clock()
            self._tokens = self._level(now)
            self._stamp = now
            if self._tokens < 1:
                wait = (1 - self._tokens) / self.rate
                logger.debug(f"{self.name} budget spent, waiting {wait:.2f}s")
                await asyncio.sleep(wait)
                now = self._clock()
                self._tokens = self._level(now)
                self._stamp = now
            self._tokens = max(0.0, self._tokens - 1)
