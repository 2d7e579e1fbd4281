"""Tests for the Anthropic provider and its error classification."""

from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from matchcast.services.llm.exceptions import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthExceededError,
    LLMProviderError,
    ProviderUnavailableError,
    RateLimitError,
)
from matchcast.services.llm.providers.anthropic import AnthropicProvider

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _status_error(cls, status, headers=None):
    response = httpx.Response(status, headers=headers or {}, request=REQUEST)
    return cls(f"Error code: {status}", response=response, body=None)


def _message(text="Analysis", input_tokens=100, output_tokens=50):
    message = MagicMock()
    message.content = [MagicMock(text=text)]
    message.usage.input_tokens = input_tokens
    message.usage.output_tokens = output_tokens
    message.stop_reason = "end_turn"
    return message


@pytest.fixture
def client():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_message())
    return client


@pytest.fixture
def provider(client):
    return AnthropicProvider(api_key="test-key", model="claude-test", client=client)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generate_success(self, provider, client):
        response = await provider.generate("Prompt", max_tokens=1000, temperature=0.5)

        assert response.content == "Analysis"
        assert response.total_tokens == 150
        assert response.model == "claude-test"
        assert response.provider == "anthropic"
        assert response.finish_reason == "end_turn"
        client.messages.create.assert_awaited_once_with(
            model="claude-test",
            max_tokens=1000,
            temperature=0.5,
            messages=[{"role": "user", "content": "Prompt"}],
        )
        assert provider.get_health().status == "healthy"

    @pytest.mark.asyncio
    async def test_joins_text_blocks(self, provider, client):
        message = _message()
        message.content = [MagicMock(text="Part 1 "), MagicMock(text="Part 2")]
        client.messages.create.return_value = message

        response = await provider.generate("Prompt")

        assert response.content == "Part 1 Part 2"

    @pytest.mark.asyncio
    async def test_failure_classified_and_recorded(self, provider, client):
        client.messages.create.side_effect = _status_error(
            anthropic.RateLimitError, 429, {"retry-after": "20"}
        )

        with pytest.raises(RateLimitError) as exc_info:
            await provider.generate("Prompt")

        assert exc_info.value.retry_after == 20.0
        health = provider.get_health()
        assert health.consecutive_failures == 1
        assert health.total_failures == 1


class TestClassifyError:
    def test_authentication(self, provider):
        error = _status_error(anthropic.AuthenticationError, 401)

        assert isinstance(provider._classify_error(error), AuthenticationError)

    def test_permission_denied_is_authentication(self, provider):
        error = _status_error(anthropic.PermissionDeniedError, 403)

        assert isinstance(provider._classify_error(error), AuthenticationError)

    def test_server_error_is_unavailable(self, provider):
        error = _status_error(anthropic.InternalServerError, 500)

        assert isinstance(provider._classify_error(error), ProviderUnavailableError)

    def test_connection_error_is_unavailable(self, provider):
        error = anthropic.APIConnectionError(request=REQUEST)

        assert isinstance(provider._classify_error(error), ProviderUnavailableError)

    def test_timeout_is_unavailable(self, provider):
        error = anthropic.APITimeoutError(request=REQUEST)

        assert isinstance(provider._classify_error(error), ProviderUnavailableError)

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Content blocked by policy", ContentFilterError),
            ("prompt is too long: context length exceeded", ContextLengthExceededError),
            ("Too many requests, slow down", RateLimitError),
            ("Overloaded", ProviderUnavailableError),
            ("Something odd", LLMProviderError),
        ],
    )
    def test_untyped_errors_by_message(self, provider, message, expected):
        result = provider._classify_error(Exception(message))

        assert type(result) is expected
        assert result.provider == "anthropic"


class TestProviderHealth:
    @pytest.mark.asyncio
    async def test_degrades_after_consecutive_failures(self, provider, client):
        client.messages.create.side_effect = Exception("Something odd")

        for _ in range(3):
            with pytest.raises(LLMProviderError):
                await provider.generate("Prompt")
        assert provider.get_health().status == "degraded"

        for _ in range(2):
            with pytest.raises(LLMProviderError):
                await provider.generate("Prompt")
        assert provider.get_health().status == "unavailable"

        client.messages.create.side_effect = None
        client.messages.create.return_value = _message()
        await provider.generate("Prompt")
        assert provider.get_health().status == "healthy"
