"""LLM and retry data models

This module defines the data structures for:
- Retry policy with exponential backoff (shared by the LLM and sports API clients)
- LLM provider configuration
- Response validation rules
"""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RetryConfig(BaseModel):
    """Configuration for retry logic with exponential backoff

    Controls retry behavior for transient failures:
    - Number of attempts before giving up
    - Delay calculation parameters (base * multiplier^attempt)
    - Jitter for request spreading
    """

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts (1 initial + N-1 retries)",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Base delay for exponential backoff",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Growth factor applied per attempt",
    )
    max_delay_seconds: float = Field(
        default=60.0,
        gt=0.0,
        le=600.0,
        description="Maximum delay cap",
    )
    jitter_factor: float = Field(
        default=0.1,
        ge=0.0,
        le=0.5,
        description="Jitter factor for randomization",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "max_attempts": 4,
                "base_delay_seconds": 10.0,
                "backoff_multiplier": 2.0,
                "max_delay_seconds": 120.0,
                "jitter_factor": 0.1,
            }
        }
    )


class LLMConfig(BaseModel):
    """LLM provider configuration"""

    model_config = ConfigDict(protected_namespaces=())

    provider: Literal["anthropic"] = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = Field(default="", description="Provider API key")
    max_tokens: int = Field(default=8000, ge=256, le=64000)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    timeout_seconds: float = Field(
        default=90.0, gt=0.0, le=600.0, description="Per-attempt timeout"
    )
    retry: RetryConfig = Field(
        default_factory=lambda: RetryConfig(
            max_attempts=4,
            base_delay_seconds=10.0,
            backoff_multiplier=2.0,
            max_delay_seconds=120.0,
        )
    )


class ValidationConfig(BaseModel):
    """Acceptance rules for generated predictions"""

    min_length: int = Field(default=1000, ge=0)
    required_sections: List[str] = Field(
        default_factory=lambda: ["EXECUTIVE SUMMARY", "FINAL VERDICT"]
    )

    @field_validator("required_sections")
    @classmethod
    def strip_sections(cls, v: List[str]) -> List[str]:
        """Drop blank section names."""
        return [s.strip() for s in v if s and s.strip()]
