"""Client-side pacing for the sports API.

API-Football counts requests per minute per key; a match-data batch
fires a dozen calls at once, so each call takes a token first.
"""

import asyncio
import time

import structlog

logger = structlog.get_logger()


class RateLimiter:
    """Token bucket: `burst_size` calls at once, refilled at
    `requests_per_minute`."""

    def __init__(self, requests_per_minute: int = 30, burst_size: int = 1):
        self.per_second = requests_per_minute / 60.0
        self.burst_size = burst_size
        self.tokens = float(burst_size)
        self._refilled_at = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        gained = (now - self._refilled_at) * self.per_second
        self.tokens = min(float(self.burst_size), self.tokens + gained)
        self._refilled_at = now

    async def acquire(self) -> None:
        # Holding the lock while sleeping queues callers in arrival order.
        async with self._lock:
            self._refill()
            if self.tokens >= 1:
                self.tokens -= 1
                return

            wait = (1 - self.tokens) / self.per_second
            logger.debug("sports_api_throttled", wait_seconds=round(wait, 2))
            await asyncio.sleep(wait)
            self.tokens = 0.0
            self._refilled_at = time.monotonic()
