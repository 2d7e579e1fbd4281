"""
TTL cache store.

Four categories with fixed lifetimes:
1. Fixtures (1 hour, upcoming match lists per league)
2. Match data (6 hours, aggregated upstream statistics per fixture)
3. Predictions (7 days, generated analyses per fixture)
4. League stats (12 hours, season aggregates per league)

An entry is readable iff now <= expires_at. Expired entries are deleted
on the next read (lazy) or by `sweep_expired` (eager); both use
CacheEntry.is_expired. Statistics filter with the same predicate.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

from matchcast.models.cache import (
    ApiCallRecord,
    ApiCallStats,
    CacheCategory,
    CacheConfig,
    CacheEntry,
    CacheStats,
    CategoryCounts,
    format_hit_rate,
)
from matchcast.observability.metrics import CACHE_ENTRIES_SWEPT, CACHE_OPERATIONS
from matchcast.services.storage import CacheBackend, create_backend

logger = structlog.get_logger()

CALL_LOG_WINDOW_SECONDS = 24 * 3600

Key = Union[str, int]


class CacheService:
    """
    Expiration-aware key-value store partitioned into cache categories.

    Values are opaque: whatever is passed to `set` comes back from `get`.
    Write failures are logged and swallowed so a broken cache never
    aborts a generation run.
    """

    def __init__(
        self,
        config: CacheConfig,
        backend: Optional[CacheBackend] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache service.

        Args:
            config: Cache configuration
            backend: Persistence backend (default: built from config)
            clock: Returns the current time in epoch seconds
        """
        self.config = config
        self.clock = clock
        self.enabled = config.enabled

        if not config.enabled:
            logger.info("cache_disabled")
            self.backend = None
            return

        self.backend = backend or create_backend(config)

        logger.info(
            "cache_service_initialized",
            backend=type(self.backend).__name__,
            cache_dir=config.cache_dir,
            fixtures_ttl_hours=config.ttl_fixtures_hours,
            match_data_ttl_hours=config.ttl_match_data_hours,
            prediction_ttl_days=config.ttl_prediction_days,
            league_stats_ttl_hours=config.ttl_league_stats_hours,
        )

    @staticmethod
    def normalize_key(key: Key) -> str:
        """Fixture ids may arrive as int or str; both map to one entry."""
        return str(key).strip()

    # ==================== Generic Operations ====================

    def get_entry(self, category: CacheCategory, key: Key) -> Optional[CacheEntry]:
        """
        Get the valid entry for a key, with its timestamps.

        Expired entries are deleted as a side effect.

        Args:
            category: Cache category
            key: Category-scoped key

        Returns:
            The entry, or None if absent or expired
        """
        if not self.enabled:
            return None

        category = CacheCategory(category)
        cache_key = self.normalize_key(key)

        try:
            entry = self.backend.read(category, cache_key)

            if entry is None:
                CACHE_OPERATIONS.labels(category=category.value, operation="miss").inc()
                logger.debug("cache_miss", category=category.value, key=cache_key)
                return None

            now = self.clock()
            if entry.is_expired(now):
                self.backend.delete_if_expired(category, cache_key, now)
                CACHE_OPERATIONS.labels(category=category.value, operation="expired").inc()
                logger.info(
                    "cache_entry_expired",
                    category=category.value,
                    key=cache_key,
                    expired_seconds_ago=round(now - entry.expires_at, 3),
                )
                return None

            CACHE_OPERATIONS.labels(category=category.value, operation="hit").inc()
            logger.debug("cache_hit", category=category.value, key=cache_key)
            return entry

        except Exception as e:
            CACHE_OPERATIONS.labels(category=category.value, operation="error").inc()
            logger.error(
                "cache_get_error", category=category.value, key=cache_key, error=str(e)
            )
            return None

    def get(self, category: CacheCategory, key: Key) -> Optional[Any]:
        """
        Get a cached value.

        Args:
            category: Cache category
            key: Category-scoped key

        Returns:
            The value passed to the last `set`, or None if absent or expired
        """
        entry = self.get_entry(category, key)
        return entry.value if entry is not None else None

    def set(self, category: CacheCategory, key: Key, value: Any) -> None:
        """
        Store a value, replacing any previous entry for the key.

        Timestamps are computed from the current time and the
        category's TTL.

        Args:
            category: Cache category
            key: Category-scoped key
            value: Payload to cache
        """
        if not self.enabled:
            return

        category = CacheCategory(category)
        cache_key = self.normalize_key(key)

        try:
            now = self.clock()
            entry = CacheEntry(
                key=cache_key,
                value=value,
                created_at=now,
                expires_at=now + self.config.ttl_seconds(category),
            )
            self.backend.write(category, entry)
            CACHE_OPERATIONS.labels(category=category.value, operation="set").inc()
            logger.debug(
                "cache_set",
                category=category.value,
                key=cache_key,
                expires_at=entry.expires_at,
            )
        except Exception as e:
            CACHE_OPERATIONS.labels(category=category.value, operation="error").inc()
            logger.error(
                "cache_set_error", category=category.value, key=cache_key, error=str(e)
            )

    def delete(self, category: CacheCategory, key: Key) -> bool:
        """Remove one entry. Returns True if it existed."""
        if not self.enabled:
            return False

        category = CacheCategory(category)
        try:
            return self.backend.delete(category, self.normalize_key(key))
        except Exception as e:
            logger.error("cache_delete_error", category=category.value, error=str(e))
            return False

    # ==================== Fixtures Cache ====================

    def get_fixtures(self, league_key: str) -> Optional[List[Dict[str, Any]]]:
        return self.get(CacheCategory.FIXTURES, league_key)

    def set_fixtures(self, league_key: str, fixtures: List[Dict[str, Any]]) -> None:
        self.set(CacheCategory.FIXTURES, league_key, fixtures)

    # ==================== Match Data Cache ====================

    def get_match_data(self, fixture_id: Key) -> Optional[Dict[str, Any]]:
        return self.get(CacheCategory.MATCH_DATA, fixture_id)

    def set_match_data(self, fixture_id: Key, data: Dict[str, Any]) -> None:
        self.set(CacheCategory.MATCH_DATA, fixture_id, data)

    # ==================== Prediction Cache ====================

    def get_prediction(self, fixture_id: Key) -> Optional[Dict[str, Any]]:
        return self.get(CacheCategory.PREDICTION, fixture_id)

    def set_prediction(self, fixture_id: Key, prediction: Dict[str, Any]) -> None:
        self.set(CacheCategory.PREDICTION, fixture_id, prediction)

    # ==================== League Stats Cache ====================

    def get_league_stats(self, league_key: str) -> Optional[Dict[str, Any]]:
        return self.get(CacheCategory.LEAGUE_STATS, league_key)

    def set_league_stats(self, league_key: str, stats: Dict[str, Any]) -> None:
        self.set(CacheCategory.LEAGUE_STATS, league_key, stats)

    # ==================== Call Log ====================

    def log_call(self, endpoint: str, success: bool, cached: bool) -> None:
        """
        Append a call log record. Never raises.

        Args:
            endpoint: Label of what was requested
            success: Whether the request produced a value
            cached: True iff served from the cache without an upstream call
        """
        if not self.enabled:
            return

        try:
            self.backend.append_call(
                ApiCallRecord(
                    endpoint=endpoint,
                    success=success,
                    cached=cached,
                    timestamp=self.clock(),
                )
            )
        except Exception as e:
            logger.error("call_log_error", endpoint=endpoint, error=str(e))

    # ==================== Maintenance ====================

    def _count_valid(self, category: CacheCategory, now: float) -> int:
        return sum(
            1
            for _, entry in self.backend.iter_entries(category)
            if not entry.is_expired(now)
        )

    def get_stats(self) -> CacheStats:
        """
        Get cache statistics.

        Counts only entries that are valid right now, and aggregates the
        call log over the trailing 24 hours.

        Returns:
            CacheStats snapshot
        """
        if not self.enabled:
            return CacheStats()

        try:
            now = self.clock()
            counts = CategoryCounts(
                fixtures=self._count_valid(CacheCategory.FIXTURES, now),
                match_data=self._count_valid(CacheCategory.MATCH_DATA, now),
                predictions=self._count_valid(CacheCategory.PREDICTION, now),
                league_stats=self._count_valid(CacheCategory.LEAGUE_STATS, now),
            )

            window_start = now - CALL_LOG_WINDOW_SECONDS
            total = cached = successful = 0
            for record in self.backend.iter_calls():
                if record.timestamp <= window_start:
                    continue
                total += 1
                cached += int(record.cached)
                successful += int(record.success)

            return CacheStats(
                cache=counts,
                api_calls_24h=ApiCallStats(
                    total=total,
                    cached=cached,
                    successful=successful,
                    cache_hit_rate=format_hit_rate(cached, total),
                ),
            )

        except Exception as e:
            logger.error("cache_stats_error", error=str(e))
            return CacheStats()

    def list_entries(self, category: CacheCategory) -> List[Dict[str, Any]]:
        """
        Describe every stored entry of a category without deleting any.

        Returns:
            Dicts with key, created_at, expires_at (ISO 8601) and is_expired,
            newest first
        """
        if not self.enabled:
            return []

        now = self.clock()
        rows = []
        try:
            for key, entry in self.backend.iter_entries(CacheCategory(category)):
                rows.append(
                    {
                        "key": key,
                        "created_at": _iso(entry.created_at),
                        "expires_at": _iso(entry.expires_at),
                        "is_expired": entry.is_expired(now),
                    }
                )
        except Exception as e:
            logger.error("cache_list_error", category=str(category), error=str(e))
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def sweep_expired(self) -> int:
        """
        Delete every expired entry in every category.

        Returns:
            Number of entries deleted
        """
        if not self.enabled:
            return 0

        now = self.clock()
        removed = 0
        for category in CacheCategory:
            try:
                count = self.backend.sweep(category, now)
            except Exception as e:
                logger.error("cache_sweep_error", category=category.value, error=str(e))
                continue
            removed += count
            if count:
                logger.debug("cache_category_swept", category=category.value, removed=count)

        CACHE_ENTRIES_SWEPT.inc(removed)
        logger.info("cache_sweep_completed", removed=removed)
        return removed

    def clear_all(self) -> None:
        """Delete every entry in every category. The call log is kept."""
        if not self.enabled:
            return

        for category in CacheCategory:
            removed = self.backend.clear(category)
            logger.info("cache_cleared", category=category.value, removed=removed)

    def close(self) -> None:
        if self.backend is not None:
            self.backend.close()


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
