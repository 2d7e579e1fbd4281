"""LLM provider seam.

The prediction service talks to one provider through `LLMProvider`;
each implementation maps its SDK errors onto the provider error
hierarchy and reports its own health.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

HealthState = Literal["healthy", "degraded", "unavailable"]


@dataclass
class LLMResponse:
    """Text and usage of one completed generation."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    latency_ms: float
    finish_reason: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def truncated(self) -> bool:
        """Generation stopped at the token limit rather than finishing."""
        return self.finish_reason == "max_tokens"


@dataclass
class ProviderHealth:
    """Consecutive-failure tracking for a provider.

    Three failures in a row mark it degraded, five unavailable; any
    success resets it to healthy.
    """

    DEGRADED_AFTER = 3
    UNAVAILABLE_AFTER = 5

    provider: str
    status: HealthState = "healthy"
    consecutive_failures: int = 0
    total_requests: int = 0
    total_failures: int = 0
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    failure_reason: Optional[str] = None

    def record_success(self) -> None:
        self.total_requests += 1
        self.consecutive_failures = 0
        self.last_success = datetime.now(timezone.utc)
        self.status = "healthy"

    def record_failure(self, reason: str) -> None:
        self.total_requests += 1
        self.total_failures += 1
        self.consecutive_failures += 1
        self.last_failure = datetime.now(timezone.utc)
        self.failure_reason = reason
        if self.consecutive_failures >= self.UNAVAILABLE_AFTER:
            self.status = "unavailable"
        elif self.consecutive_failures >= self.DEGRADED_AFTER:
            self.status = "degraded"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status,
            "consecutive_failures": self.consecutive_failures,
            "total_requests": self.total_requests,
            "total_failures": self.total_failures,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "last_failure": self.last_failure.isoformat() if self.last_failure else None,
            "failure_reason": self.failure_reason,
        }


class LLMProvider(ABC):
    """A hosted model that turns a match prompt into analysis text."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider id used in metrics and prediction metadata."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier sent with each request."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Run one completion without retrying.

        Raises:
            LLMProviderError: Or one of its subclasses, classified from
                the SDK error
        """

    def get_health(self) -> ProviderHealth:
        return ProviderHealth(provider=self.name)
