"""Exponential backoff for flaky async calls.

Used around LLM requests: each failed attempt whose exception is in the
retryable set waits `base * multiplier**n` seconds (or the server's
retry-after hint), jittered and capped, then tries again.
"""

import asyncio
import random
from typing import Awaitable, Callable, Iterable, Optional, Type, TypeVar

import structlog

from matchcast.models.llm import RetryConfig

logger = structlog.get_logger(__name__)

T = TypeVar("T")

OnRetry = Callable[[int, Exception, float], None]


class RetryHandler:
    """Retries an async call with jittered exponential backoff.

    Attempts, delays and jitter come from RetryConfig; `sleep` is injected
    so tests can run without waiting.
    """

    def __init__(
        self,
        config: RetryConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self._sleep = sleep

    def calculate_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Seconds to wait after the zero-based `attempt` failed.

        A positive `retry_after` replaces the exponential base.
        """
        cfg = self.config
        if retry_after and retry_after > 0:
            base = retry_after
        else:
            base = cfg.base_delay_seconds * cfg.backoff_multiplier**attempt

        spread = base * cfg.jitter_factor
        delay = base + random.uniform(-spread, spread)
        return max(0.0, min(delay, cfg.max_delay_seconds))

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        retryable_exceptions: Iterable[Type[Exception]],
        on_retry: Optional[OnRetry] = None,
    ) -> T:
        """Await `func` until it succeeds or attempts run out.

        Exceptions outside `retryable_exceptions` propagate at once; the
        last retryable one propagates when `max_attempts` is reached.
        `on_retry(attempt, error, delay)` runs before each wait.
        """
        retryable = tuple(retryable_exceptions)
        max_attempts = self.config.max_attempts
        attempt = 0

        while True:
            try:
                return await func()
            except retryable as e:
                attempt += 1
                if attempt >= max_attempts:
                    logger.error(
                        "retry_exhausted",
                        attempts=max_attempts,
                        error_type=type(e).__name__,
                        error_message=str(e),
                    )
                    raise

                retry_after = getattr(e, "retry_after", None)
                delay = self.calculate_delay(attempt - 1, retry_after)
                logger.warning(
                    "retry_attempt",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error_type=type(e).__name__,
                    delay_seconds=round(delay, 2),
                    retry_after=retry_after,
                )
                if on_retry is not None:
                    on_retry(attempt, e, delay)
                await self._sleep(delay)
