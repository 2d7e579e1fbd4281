"""Custom exceptions for the prediction pipeline

This module defines the exception hierarchy used across the pipeline:
- Base exception for all pipeline errors
- Upstream sports API failures (transient, permanent, tier-restricted)
- Generation failures (validation, single-flight rejection, fixture listing)

All exceptions inherit from MatchcastError to allow catching all
pipeline-related errors in a single except block when needed.
"""


class MatchcastError(Exception):
    """Base exception for all pipeline errors

    Use this to catch any error raised by the pipeline:
    ```python
    try:
        await orchestrator.generate_single_prediction(fixture, league_stats)
    except MatchcastError as e:
        logger.error("prediction_failed", error=str(e))
    ```
    """

    pass


class RetryableError(MatchcastError):
    """Base for retryable errors (timeouts, 5xx, connection errors).

    Errors that inherit from this class indicate transient failures
    that may succeed on retry.
    """

    pass


class RateLimitError(RetryableError):
    """Rate limit exceeded with optional retry-after metadata.

    Raised when:
    - API returns 429 status
    - Response body reports a rate limit ("rateLimit", "Too many requests")
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamUnavailableError(RetryableError):
    """Sports API temporarily unreachable

    Raised when:
    - API returns a 5xx status
    - Request times out
    - Connection cannot be established
    """

    pass


class UpstreamAPIError(MatchcastError):
    """Sports API rejected the request

    Raised when:
    - API returns a 4xx status other than 403/429
    - Response body carries a non-empty `errors` field

    This is a non-retryable error.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class TierRestrictedError(UpstreamAPIError):
    """Endpoint not available on the current API plan (HTTP 403).

    Callers treat this as "no data" rather than a failure.
    """

    def __init__(self, message: str = "Endpoint not available on current plan"):
        super().__init__(message, status=403)


class FixtureListError(MatchcastError):
    """Listing upcoming fixtures failed for every league.

    This is the only error that fails a whole generation run.
    """

    pass


class PredictionValidationError(MatchcastError):
    """Generated prediction rejected

    Raised when:
    - Response is shorter than the configured minimum length
    - One or more required sections are missing
    """

    def __init__(self, message: str, missing_sections: list[str] | None = None):
        super().__init__(message)
        self.missing_sections = missing_sections or []


class GenerationInProgressError(MatchcastError):
    """A generation run is already in progress.

    Second triggers are rejected, never queued.
    """

    def __init__(self, message: str = "Prediction generation already in progress"):
        super().__init__(message)
