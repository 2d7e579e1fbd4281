"""Errors raised while asking a model for a match analysis.

Providers translate their SDK exceptions into these types so the LLM
service can decide what to retry without knowing the SDK. `RETRYABLE`
lists the ones worth another attempt: rate limits, overload and
timeouts. Bad credentials, blocked content and oversized prompts fail
the same way every time.
"""

from typing import Optional, Tuple, Type

from matchcast.utils.exceptions import MatchcastError


class LLMProviderError(MatchcastError):
    """A generation request failed at the provider."""

    default_message = "LLM request failed"

    def __init__(self, message: Optional[str] = None, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message or self.default_message)


class RateLimitError(LLMProviderError):
    """429 from the provider. `retry_after` carries its hint in seconds, if any."""

    default_message = "Rate limit exceeded"

    def __init__(
        self,
        message: Optional[str] = None,
        retry_after: Optional[float] = None,
        provider: Optional[str] = None,
    ):
        self.retry_after = retry_after
        message = message or self.default_message
        if retry_after:
            message = f"{message}. Retry after: {retry_after}s"
        super().__init__(message, provider=provider)


class ProviderUnavailableError(LLMProviderError):
    """Overloaded, 5xx or unreachable."""

    default_message = "Provider temporarily unavailable"


class LLMTimeoutError(ProviderUnavailableError):
    def __init__(self, timeout_seconds: float, provider: Optional[str] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"LLM request timed out after {timeout_seconds}s", provider=provider
        )


class AuthenticationError(LLMProviderError):
    default_message = "API authentication failed"


class ContentFilterError(LLMProviderError):
    default_message = "Content blocked by safety filters"


class ContextLengthExceededError(LLMProviderError):
    """Prompt plus requested output does not fit the model's context window."""

    default_message = "Context length exceeded"


RETRYABLE: Tuple[Type[LLMProviderError], ...] = (RateLimitError, ProviderUnavailableError)
