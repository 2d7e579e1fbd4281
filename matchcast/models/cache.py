"""
Data models for the prediction cache.

Defines cache categories, configuration, persisted entries, the
call log record and the statistics snapshot.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class CacheCategory(str, Enum):
    """Namespaces of the cache store. Keys never collide across categories."""

    FIXTURES = "fixtures"
    MATCH_DATA = "match_data"
    PREDICTION = "prediction"
    LEAGUE_STATS = "league_stats"

    @property
    def file_prefix(self) -> str:
        """Prefix used for per-entry files in the JSON backend."""
        return self.value.replace("_", "")


class CacheConfig(BaseModel):
    """Cache configuration"""

    model_config = ConfigDict(protected_namespaces=())

    enabled: bool = True
    backend: Literal["diskcache", "json"] = "diskcache"
    cache_dir: str = "./cache"

    # TTL settings
    ttl_fixtures_hours: int = Field(default=1, ge=1)
    ttl_match_data_hours: int = Field(default=6, ge=1)
    ttl_prediction_days: int = Field(default=7, ge=1)
    ttl_league_stats_hours: int = Field(default=12, ge=1)

    call_log_max_entries: int = Field(default=1000, ge=1)
    sweep_interval_minutes: int = Field(default=60, ge=1)

    @property
    def ttl_fixtures_seconds(self) -> int:
        return self.ttl_fixtures_hours * 3600

    @property
    def ttl_match_data_seconds(self) -> int:
        return self.ttl_match_data_hours * 3600

    @property
    def ttl_prediction_seconds(self) -> int:
        return self.ttl_prediction_days * 86400

    @property
    def ttl_league_stats_seconds(self) -> int:
        return self.ttl_league_stats_hours * 3600

    def ttl_seconds(self, category: CacheCategory) -> int:
        """TTL for a category in seconds."""
        return {
            CacheCategory.FIXTURES: self.ttl_fixtures_seconds,
            CacheCategory.MATCH_DATA: self.ttl_match_data_seconds,
            CacheCategory.PREDICTION: self.ttl_prediction_seconds,
            CacheCategory.LEAGUE_STATS: self.ttl_league_stats_seconds,
        }[CacheCategory(category)]


class CacheEntry(BaseModel):
    """A persisted value with its write and expiry timestamps (epoch seconds)."""

    key: str
    value: Any = None
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Readable iff now <= expires_at."""
        return now > self.expires_at


class ApiCallRecord(BaseModel):
    """Append-only audit record of one cache-backed request."""

    endpoint: str
    success: bool
    cached: bool
    timestamp: float


class CategoryCounts(BaseModel):
    """Currently valid entries per category"""

    fixtures: int = 0
    match_data: int = 0
    predictions: int = 0
    league_stats: int = 0


class ApiCallStats(BaseModel):
    """Call log aggregate over the trailing 24 hours"""

    total: int = 0
    cached: int = 0
    successful: int = 0
    cache_hit_rate: str = "0%"


class CacheStats(BaseModel):
    """Cache statistics"""

    cache: CategoryCounts = Field(default_factory=CategoryCounts)
    api_calls_24h: ApiCallStats = Field(default_factory=ApiCallStats)
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


def format_hit_rate(cached: int, total: int) -> str:
    """Percentage string with one decimal place, "0%" when nothing was logged."""
    if total == 0:
        return "0%"
    return f"{cached / total * 100:.1f}%"
