"""HTTP access to API-Football v3.

Every request takes a token from the shared RateLimiter, then goes out
through aiohttp. Rate limits and transient failures are retried by
tenacity; a 429 waits for the server's Retry-After when it sends one.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from matchcast.models.config import FootballApiConfig
from matchcast.observability.metrics import UPSTREAM_REQUESTS
from matchcast.utils.exceptions import (
    RateLimitError,
    TierRestrictedError,
    UpstreamAPIError,
    UpstreamUnavailableError,
)
from matchcast.utils.rate_limiter import RateLimiter

logger = structlog.get_logger()

RATE_LIMIT_MARKERS = ("ratelimit", "too many requests")


class FootballAPIClient:
    """Thin async client for the API-Football v3 REST API"""

    def __init__(
        self,
        config: FootballApiConfig,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.config = config
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_minute=config.requests_per_minute,
            burst_size=config.burst_size,
        )
        self.request_count = 0

        if not config.api_key:
            logger.warning("football_api_key_missing")

    def _backoff_seconds(self, retry_state: RetryCallState) -> float:
        """Server's Retry-After when the failure carries one, else exponential.

        Both are capped at the policy's max delay.
        """
        policy = self.config.retry
        error = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(error, "retry_after", None)
        if retry_after:
            return min(float(retry_after), policy.max_delay_seconds)
        return wait_exponential(
            multiplier=policy.base_delay_seconds,
            exp_base=policy.backoff_multiplier,
            max=policy.max_delay_seconds,
        )(retry_state)

    def _retrying(self) -> AsyncRetrying:
        policy = self.config.retry
        return AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=self._backoff_seconds,
            retry=retry_if_exception_type((RateLimitError, UpstreamUnavailableError)),
            before_sleep=self._log_retry,
            reraise=True,
        )

    @staticmethod
    def _log_retry(retry_state: Any) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "football_api_retry",
            attempt=retry_state.attempt_number,
            error_type=type(error).__name__ if error else None,
            error=str(error) if error else None,
        )

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Fetch an endpoint and return the body's `response` field.

        Rate limits and transient failures are retried with exponential
        backoff; everything else is raised immediately.

        Raises:
            TierRestrictedError: HTTP 403, endpoint not on the current plan
            RateLimitError: Still rate limited after the last attempt
            UpstreamUnavailableError: 5xx/timeouts after the last attempt
            UpstreamAPIError: Any other rejection
        """
        result: Any = None
        async for attempt in self._retrying():
            with attempt:
                result = await self._request(endpoint, params or {})
        return result

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Any:
        url = f"{self.config.base_url}/{endpoint.lstrip('/')}"

        await self.rate_limiter.acquire()

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    params=params,
                    headers={"x-apisports-key": self.config.api_key},
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
                ) as response:
                    self.request_count += 1

                    if response.status == 429:
                        UPSTREAM_REQUESTS.labels(status="rate_limited").inc()
                        raise RateLimitError(
                            "Football API rate limit exceeded",
                            retry_after=_parse_retry_after(response.headers),
                        )

                    if response.status == 403:
                        UPSTREAM_REQUESTS.labels(status="restricted").inc()
                        logger.warning("football_api_restricted", endpoint=endpoint)
                        raise TierRestrictedError(
                            f"Endpoint '{endpoint}' not available on current plan"
                        )

                    if response.status >= 500:
                        UPSTREAM_REQUESTS.labels(status="unavailable").inc()
                        raise UpstreamUnavailableError(
                            f"Server error: {response.status}"
                        )

                    if response.status != 200:
                        text = await response.text()
                        UPSTREAM_REQUESTS.labels(status="error").inc()
                        logger.error(
                            "football_api_error",
                            endpoint=endpoint,
                            status=response.status,
                            body=text[:200],
                        )
                        raise UpstreamAPIError(
                            f"API request failed: {response.status}",
                            status=response.status,
                        )

                    data = await response.json()

        except asyncio.TimeoutError:
            UPSTREAM_REQUESTS.labels(status="unavailable").inc()
            logger.error("football_api_timeout", endpoint=endpoint)
            raise UpstreamUnavailableError("Request timed out")
        except aiohttp.ClientConnectionError as e:
            UPSTREAM_REQUESTS.labels(status="unavailable").inc()
            raise UpstreamUnavailableError(f"Connection failed: {e}")

        if not isinstance(data, dict):
            UPSTREAM_REQUESTS.labels(status="error").inc()
            raise UpstreamAPIError("API returned no data")

        errors = data.get("errors")
        if errors:
            message = json.dumps(errors)
            if any(marker in message.lower() for marker in RATE_LIMIT_MARKERS):
                UPSTREAM_REQUESTS.labels(status="rate_limited").inc()
                raise RateLimitError(f"Football API rate limit: {message}")
            UPSTREAM_REQUESTS.labels(status="error").inc()
            raise UpstreamAPIError(f"API Error: {message}")

        UPSTREAM_REQUESTS.labels(status="success").inc()
        payload = data.get("response")
        logger.debug(
            "football_api_response",
            endpoint=endpoint,
            results=data.get("results", 0),
        )
        return payload if payload is not None else []


def _parse_retry_after(headers: Any) -> Optional[float]:
    try:
        value = headers.get("Retry-After")
    except AttributeError:
        return None
    if not value:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
