"""LLM Provider Implementations

- LLMProvider: Abstract base class defining the provider contract
- LLMResponse: Standardized response from any provider
- AnthropicProvider: Claude models
"""

from matchcast.services.llm.providers.base import LLMProvider, LLMResponse, ProviderHealth
from matchcast.services.llm.providers.anthropic import AnthropicProvider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "ProviderHealth",
    "AnthropicProvider",
]
