"""Unit tests for the API-Football client"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from matchcast.models.config import FootballApiConfig
from matchcast.models.llm import RetryConfig
from matchcast.services.football.client import FootballAPIClient
from matchcast.utils.exceptions import (
    RateLimitError,
    TierRestrictedError,
    UpstreamAPIError,
    UpstreamUnavailableError,
)


@pytest.fixture
def api_config():
    return FootballApiConfig(
        api_key="test-key",
        retry=RetryConfig(
            max_attempts=2,
            base_delay_seconds=0.001,
            max_delay_seconds=0.002,
        ),
    )


@pytest.fixture
def client(api_config):
    return FootballAPIClient(api_config, rate_limiter=AsyncMock())


def _response(status=200, body=None, headers=None, text=""):
    resp = MagicMock()
    resp.status = status
    resp.headers = headers or {}
    resp.json = AsyncMock(return_value=body)
    resp.text = AsyncMock(return_value=text)
    return resp


class TestSuccessfulRequests:
    @pytest.mark.asyncio
    async def test_returns_response_field(self, client):
        body = {"errors": [], "results": 1, "response": [{"fixture": {"id": 1}}]}

        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = _response(body=body)
            result = await client.get("fixtures", {"league": 39})

        assert result == [{"fixture": {"id": 1}}]
        assert client.request_count == 1
        client.rate_limiter.acquire.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sends_api_key_header_and_params(self, client):
        body = {"errors": [], "response": []}

        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = _response(body=body)
            await client.get("/standings", {"league": 39, "season": 2025})

        args, kwargs = mock_get.call_args
        assert args[0] == "https://v3.football.api-sports.io/standings"
        assert kwargs["params"] == {"league": 39, "season": 2025}
        assert kwargs["headers"] == {"x-apisports-key": "test-key"}

    @pytest.mark.asyncio
    async def test_missing_response_field_is_empty_list(self, client):
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = _response(body={"errors": {}})
            assert await client.get("injuries") == []


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_403_is_tier_restricted_and_not_retried(self, client):
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = _response(status=403)
            with pytest.raises(TierRestrictedError):
                await client.get("predictions")

        assert mock_get.call_count == 1

    @pytest.mark.asyncio
    async def test_429_retried_then_raised(self, client):
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = _response(
                status=429, headers={"Retry-After": "30"}
            )
            with pytest.raises(RateLimitError) as exc_info:
                await client.get("fixtures")

        assert mock_get.call_count == 2
        assert exc_info.value.retry_after == 30.0

    @pytest.mark.asyncio
    async def test_5xx_retried_then_succeeds(self, client):
        ok = _response(body={"errors": [], "response": ["ok"]})
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.side_effect = [_response(status=503), ok]
            result = await client.get("fixtures")

        assert result == ["ok"]
        assert mock_get.call_count == 2

    @pytest.mark.asyncio
    async def test_4xx_is_not_retried(self, client):
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = _response(
                status=400, text="bad"
            )
            with pytest.raises(UpstreamAPIError) as exc_info:
                await client.get("fixtures")

        assert exc_info.value.status == 400
        assert mock_get.call_count == 1

    @pytest.mark.asyncio
    async def test_body_errors_raise(self, client):
        body = {"errors": {"season": "invalid"}, "response": []}
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = _response(body=body)
            with pytest.raises(UpstreamAPIError, match="season"):
                await client.get("fixtures")

    @pytest.mark.asyncio
    async def test_body_rate_limit_error_is_rate_limit(self, client):
        body = {"errors": {"rateLimit": "Too many requests"}, "response": []}
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = _response(body=body)
            with pytest.raises(RateLimitError):
                await client.get("fixtures")

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, client):
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.side_effect = asyncio.TimeoutError()
            with pytest.raises(UpstreamUnavailableError, match="timed out"):
                await client.get("fixtures")

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self, client):
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.side_effect = aiohttp.ClientConnectionError(
                "refused"
            )
            with pytest.raises(UpstreamUnavailableError, match="Connection failed"):
                await client.get("fixtures")


class TestBackoff:
    """Wait between attempts."""

    @pytest.fixture
    def slow_client(self):
        config = FootballApiConfig(
            api_key="test-key",
            retry=RetryConfig(
                max_attempts=3,
                base_delay_seconds=1.0,
                backoff_multiplier=2.0,
                max_delay_seconds=60.0,
            ),
        )
        return FootballAPIClient(config, rate_limiter=AsyncMock())

    @staticmethod
    def _state(error, attempt_number=1):
        state = MagicMock()
        state.attempt_number = attempt_number
        state.outcome.exception.return_value = error
        return state

    def test_retry_after_header_honoured(self, slow_client):
        state = self._state(RateLimitError("429", retry_after=12.0))

        assert slow_client._backoff_seconds(state) == 12.0

    def test_retry_after_capped(self, slow_client):
        state = self._state(RateLimitError("429", retry_after=600.0))

        assert slow_client._backoff_seconds(state) == 60.0

    def test_exponential_without_hint(self, slow_client):
        state = self._state(UpstreamUnavailableError("503"), attempt_number=2)

        assert slow_client._backoff_seconds(state) == 2.0
