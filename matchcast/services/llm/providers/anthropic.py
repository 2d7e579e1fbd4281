"""Claude as the match-analysis model."""

import time
from typing import Any, List, Optional, Tuple, Type

import anthropic
import structlog
from anthropic import AsyncAnthropic

from matchcast.services.llm.exceptions import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthExceededError,
    LLMProviderError,
    ProviderUnavailableError,
    RateLimitError,
)
from matchcast.services.llm.providers.base import LLMProvider, LLMResponse, ProviderHealth

logger = structlog.get_logger()

DEFAULT_MODEL = "claude-sonnet-4-20250514"

# Checked in order; APITimeoutError is a subclass of APIConnectionError.
_SDK_ERRORS: List[Tuple[Type[Exception], Type[LLMProviderError]]] = [
    (anthropic.RateLimitError, RateLimitError),
    (anthropic.AuthenticationError, AuthenticationError),
    (anthropic.PermissionDeniedError, AuthenticationError),
    (anthropic.APIConnectionError, ProviderUnavailableError),
    (anthropic.InternalServerError, ProviderUnavailableError),
]

# Fallback for errors that only say what went wrong in their message.
_RATE_LIMIT_HINTS = ("429", "rate limit", "rate_limit", "too many requests")
_UNAVAILABLE_HINTS = (
    "timeout",
    "timed out",
    "connection",
    "internal server",
    "overloaded",
    "502",
    "503",
    "504",
    "529",
)


def _mentions(text: str, hints: Tuple[str, ...]) -> bool:
    return any(hint in text for hint in hints)


class AnthropicProvider(LLMProvider):
    """Sends each match prompt as a single user message.

    The SDK's retry loop is off (max_retries=0); LLMService owns retries.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        client: Optional[Any] = None,
    ):
        self._model = model
        self._health = ProviderHealth(provider=self.name)
        self._client = client or AsyncAnthropic(api_key=api_key, max_retries=0)

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    async def generate(
        self,
        prompt: str,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        started = time.perf_counter()
        try:
            message = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            self._health.record_failure(str(e))
            raise self._classify_error(e) from e

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._health.record_success()

        usage = message.usage
        logger.debug(
            "claude_message_received",
            model=self._model,
            stop_reason=message.stop_reason,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            latency_ms=round(elapsed_ms, 1),
        )
        return LLMResponse(
            content="".join(getattr(block, "text", "") for block in message.content or []),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            model=self._model,
            provider=self.name,
            latency_ms=elapsed_ms,
            finish_reason=message.stop_reason,
        )

    def _classify_error(self, error: Exception) -> LLMProviderError:
        """Translate an SDK (or transport) exception into an LLMProviderError."""
        message = str(error)

        error_cls = next(
            (ours for sdk, ours in _SDK_ERRORS if isinstance(error, sdk)), None
        )
        if error_cls is None:
            text = message.lower()
            if "content" in text and ("filter" in text or "policy" in text):
                error_cls = ContentFilterError
            elif ("context" in text or "prompt is too long" in text) and (
                "length" in text or "too long" in text
            ):
                error_cls = ContextLengthExceededError
            elif _mentions(text, _RATE_LIMIT_HINTS):
                error_cls = RateLimitError
            elif _mentions(text, _UNAVAILABLE_HINTS):
                error_cls = ProviderUnavailableError
            else:
                error_cls = LLMProviderError

        if error_cls is RateLimitError:
            return RateLimitError(
                message, retry_after=_retry_after(error), provider=self.name
            )
        return error_cls(message, provider=self.name)

    def get_health(self) -> ProviderHealth:
        return self._health


def _retry_after(error: Exception) -> Optional[float]:
    headers = getattr(getattr(error, "response", None), "headers", None)
    if headers is None:
        return None
    value = headers.get("retry-after")
    try:
        return float(value) if value else None
    except ValueError:
        return None
