"""Tests for LLMService: timeout, retry and prediction assembly."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from matchcast.models.fixture import Fixture, TeamRef
from matchcast.models.llm import LLMConfig, RetryConfig, ValidationConfig
from matchcast.services.llm.exceptions import (
    AuthenticationError,
    LLMTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
)
from matchcast.services.llm.providers.base import LLMResponse
from matchcast.services.llm.service import LLMService
from matchcast.utils.exceptions import PredictionValidationError

VALID_ANALYSIS = "**1. EXECUTIVE SUMMARY**\nHome win.\n" + "x" * 100 + "\n**11. FINAL VERDICT**\n2-1"


def _response(content=VALID_ANALYSIS):
    return LLMResponse(
        content=content,
        input_tokens=1200,
        output_tokens=800,
        model="claude-test",
        provider="anthropic",
        latency_ms=1500.0,
        finish_reason="end_turn",
    )


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.name = "anthropic"
    provider.model = "claude-test"
    provider.generate = AsyncMock(return_value=_response())
    return provider


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def llm_config():
    return LLMConfig(
        api_key="test-key",
        timeout_seconds=5.0,
        retry=RetryConfig(max_attempts=3, base_delay_seconds=2.0, jitter_factor=0.0),
    )


@pytest.fixture
def service(llm_config, provider, sleep):
    return LLMService(
        llm_config, ValidationConfig(min_length=50), provider=provider, sleep=sleep
    )


@pytest.fixture
def fixture():
    return Fixture(
        fixture_id=1035041,
        league_key="epl",
        league_id=39,
        league_name="Premier League",
        season=2025,
        kickoff=datetime(2025, 10, 4, 14, 0, tzinfo=timezone.utc),
        home_team=TeamRef(id=33, name="Manchester United"),
        away_team=TeamRef(id=40, name="Liverpool"),
    )


class TestGenerate:
    @pytest.mark.asyncio
    async def test_passes_generation_settings(self, service, provider):
        await service.generate("Prompt")

        provider.generate.assert_awaited_once_with(
            prompt="Prompt", max_tokens=8000, temperature=0.7
        )

    @pytest.mark.asyncio
    async def test_rate_limit_retried_with_backoff(self, service, provider, sleep):
        provider.generate.side_effect = [
            RateLimitError(provider="anthropic"),
            ProviderUnavailableError("overloaded", provider="anthropic"),
            _response(),
        ]

        response = await service.generate("Prompt")

        assert response.content == VALID_ANALYSIS
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_fails_immediately(self, service, provider, sleep):
        provider.generate.side_effect = AuthenticationError(provider="anthropic")

        with pytest.raises(AuthenticationError):
            await service.generate("Prompt")

        assert provider.generate.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout_is_retried_then_raised(self, llm_config, provider, sleep):
        llm_config.timeout_seconds = 0.01

        async def hang(**kwargs):
            await asyncio.sleep(1)

        provider.generate = AsyncMock(side_effect=hang)
        service = LLMService(llm_config, provider=provider, sleep=sleep)

        with pytest.raises(LLMTimeoutError):
            await service.generate("Prompt")

        assert provider.generate.await_count == 3


class TestGeneratePrediction:
    @pytest.mark.asyncio
    async def test_returns_analysis_and_metadata(self, service, fixture):
        result = await service.generate_prediction(fixture, {"season": 2025})

        assert result["analysis"] == VALID_ANALYSIS
        metadata = result["metadata"]
        assert metadata["model"] == "claude-test"
        assert metadata["provider"] == "anthropic"
        assert metadata["data_quality"] == "Limited"
        assert metadata["tokens"] == {"input": 1200, "output": 800}
        assert service.predictions_generated == 1

    @pytest.mark.asyncio
    async def test_invalid_response_raises_without_retry(self, service, provider, fixture):
        provider.generate.return_value = _response("Too short")

        with pytest.raises(PredictionValidationError):
            await service.generate_prediction(fixture, {})

        assert provider.generate.await_count == 1
        assert service.predictions_generated == 0

    @pytest.mark.asyncio
    async def test_truncated_response_missing_verdict_rejected(
        self, service, provider, fixture
    ):
        truncated = _response("**1. EXECUTIVE SUMMARY**\n" + "x" * 200)
        truncated.finish_reason = "max_tokens"
        provider.generate.return_value = truncated

        assert truncated.truncated
        with pytest.raises(PredictionValidationError):
            await service.generate_prediction(fixture, {})

    def test_provider_health(self, service, provider):
        provider.get_health.return_value.to_dict.return_value = {"status": "healthy"}

        assert service.get_provider_health() == {"anthropic": {"status": "healthy"}}
