"""LLM Service - Prediction Generator

This service generates match predictions by delegating to:
- LLMProvider implementations (Anthropic)
- PredictionPromptBuilder for prompt construction
- PredictionValidator for acceptance checks
- RetryHandler for retry logic
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from matchcast.models.fixture import Fixture
from matchcast.models.llm import LLMConfig, ValidationConfig
from matchcast.observability.metrics import (
    LLM_REQUEST_DURATION,
    LLM_REQUESTS_TOTAL,
    LLM_TOKENS_TOTAL,
)
from matchcast.services.llm.exceptions import (
    RETRYABLE,
    LLMProviderError,
    LLMTimeoutError,
)
from matchcast.services.llm.prompt_builder import PredictionPromptBuilder
from matchcast.services.llm.providers.anthropic import AnthropicProvider
from matchcast.services.llm.providers.base import LLMProvider, LLMResponse
from matchcast.services.llm.validator import PredictionValidator, assess_data_quality
from matchcast.utils.retry import RetryHandler

logger = structlog.get_logger()


class LLMService:
    """Generates validated match analyses with an LLM.

    Each attempt is bounded by the configured timeout. Timeouts, rate
    limits and provider outages are retried with exponential backoff;
    anything else fails immediately.
    """

    def __init__(
        self,
        config: LLMConfig,
        validation: Optional[ValidationConfig] = None,
        provider: Optional[LLMProvider] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize LLM service.

        Args:
            config: LLM configuration (provider, model, API key, retry)
            validation: Acceptance rules for generated text
            provider: Pre-built provider (default: built from config)
            sleep: Coroutine used to wait between retries
        """
        self.config = config
        self.provider = provider or self._create_provider(config)
        self.retry_handler = RetryHandler(config.retry, sleep=sleep)
        self._prompt_builder = PredictionPromptBuilder()
        self._validator = PredictionValidator(validation)
        self.predictions_generated = 0

        logger.info(
            "llm_service_initialized",
            provider=self.provider.name,
            model=self.provider.model,
            max_tokens=config.max_tokens,
            timeout_seconds=config.timeout_seconds,
            max_attempts=config.retry.max_attempts,
        )

    @staticmethod
    def _create_provider(config: LLMConfig) -> LLMProvider:
        if config.provider == "anthropic":
            return AnthropicProvider(api_key=config.api_key, model=config.model)
        raise LLMProviderError(f"Unknown provider: {config.provider}")

    async def generate(self, prompt: str) -> LLMResponse:
        """Generate text with timeout and retry.

        Raises:
            LLMProviderError: Non-retryable failure or retries exhausted
        """
        provider_name = self.provider.name
        timeout = self.config.timeout_seconds

        async def call_provider() -> LLMResponse:
            try:
                return await asyncio.wait_for(
                    self.provider.generate(
                        prompt=prompt,
                        max_tokens=self.config.max_tokens,
                        temperature=self.config.temperature,
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                LLM_REQUESTS_TOTAL.labels(provider=provider_name, status="timeout").inc()
                raise LLMTimeoutError(timeout, provider=provider_name)

        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            logger.warning(
                "llm_retry_attempt",
                provider=provider_name,
                attempt=attempt,
                error=str(error),
                delay=round(delay, 2),
            )

        start_time = time.time()
        try:
            response = await self.retry_handler.execute(
                call_provider,
                retryable_exceptions=RETRYABLE,
                on_retry=on_retry,
            )
        except Exception as e:
            LLM_REQUESTS_TOTAL.labels(provider=provider_name, status="failed").inc()
            logger.error(
                "llm_api_call_failed",
                provider=provider_name,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        LLM_REQUEST_DURATION.labels(provider=provider_name).observe(
            time.time() - start_time
        )
        LLM_TOKENS_TOTAL.labels(provider=provider_name, type="input").inc(
            response.input_tokens
        )
        LLM_TOKENS_TOTAL.labels(provider=provider_name, type="output").inc(
            response.output_tokens
        )
        LLM_REQUESTS_TOTAL.labels(provider=provider_name, status="success").inc()
        return response

    async def generate_prediction(
        self,
        fixture: Fixture,
        match_data: Dict[str, Any],
        league_stats: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Build the prompt, generate and validate a match analysis.

        Args:
            fixture: Fixture to analyse
            match_data: Aggregated match data
            league_stats: League-wide statistics (optional)

        Returns:
            {"analysis": str, "metadata": {...}}

        Raises:
            PredictionValidationError: Response failed acceptance checks
            LLMProviderError: Generation failed
        """
        prompt = self._prompt_builder.build(fixture, match_data, league_stats)

        logger.info(
            "prediction_generation_started",
            fixture_id=fixture.fixture_id,
            match=fixture.match_name,
            prompt_length=len(prompt),
        )

        response = await self.generate(prompt)
        if response.truncated:
            logger.warning(
                "prediction_truncated",
                fixture_id=fixture.fixture_id,
                output_tokens=response.output_tokens,
            )
        analysis = self._validator.validate(response.content)
        self.predictions_generated += 1

        logger.info(
            "prediction_generation_completed",
            fixture_id=fixture.fixture_id,
            response_length=len(analysis),
            tokens_used=response.total_tokens,
            latency_ms=round(response.latency_ms, 1),
        )

        return {
            "analysis": analysis,
            "metadata": {
                "generated_at": datetime.now(timezone.utc).isoformat(),
                "model": response.model,
                "provider": response.provider,
                "data_quality": assess_data_quality(match_data),
                "tokens": {
                    "input": response.input_tokens,
                    "output": response.output_tokens,
                },
            },
        }

    def get_provider_health(self) -> Dict[str, dict]:
        """Get health status for the configured provider."""
        return {self.provider.name: self.provider.get_health().to_dict()}
