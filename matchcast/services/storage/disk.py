"""
diskcache-backed persistence.

One diskcache.Cache (SQLite) per category directory. diskcache is
transactional and safe to share between processes, so a web server
and a CLI run can use the same cache directory concurrently.

Entry expiry is tracked in our own envelope rather than diskcache's
`expire` so lazy reads, stats and sweeps all apply one predicate.
"""

from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

import diskcache
import structlog

from matchcast.models.cache import ApiCallRecord, CacheCategory, CacheEntry
from matchcast.services.storage.base import CacheBackend

logger = structlog.get_logger()


class DiskCacheBackend(CacheBackend):
    """SQLite persistence via diskcache"""

    def __init__(
        self,
        cache_dir: Path,
        call_log_max_entries: int = 1000,
        timeout: float = 60.0,
    ):
        """
        Initialize diskcache backend.

        Args:
            cache_dir: Root directory; one subdirectory per category
            call_log_max_entries: Size of the call log ring
            timeout: SQLite lock timeout in seconds
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self._caches: Dict[CacheCategory, diskcache.Cache] = {
            category: diskcache.Cache(
                str(self.cache_dir / category.value), timeout=timeout
            )
            for category in CacheCategory
        }
        self._call_log = diskcache.Deque(
            directory=str(self.cache_dir / "api_call_log"),
            maxlen=call_log_max_entries,
        )

        logger.debug(
            "diskcache_backend_initialized",
            cache_dir=str(self.cache_dir),
            call_log_max_entries=call_log_max_entries,
        )

    def _cache(self, category: CacheCategory) -> diskcache.Cache:
        return self._caches[CacheCategory(category)]

    def read(self, category: CacheCategory, key: str) -> Optional[CacheEntry]:
        data = self._cache(category).get(key)
        if data is None:
            return None
        return CacheEntry.model_validate(data)

    def write(self, category: CacheCategory, entry: CacheEntry) -> None:
        self._cache(category).set(entry.key, entry.model_dump())

    def delete(self, category: CacheCategory, key: str) -> bool:
        return bool(self._cache(category).delete(key))

    def delete_if_expired(self, category: CacheCategory, key: str, now: float) -> bool:
        cache = self._cache(category)
        with cache.transact():
            data = cache.get(key)
            if data is None:
                return False
            if not CacheEntry.model_validate(data).is_expired(now):
                return False
            return bool(cache.delete(key))

    def iter_entries(self, category: CacheCategory) -> Iterator[Tuple[str, CacheEntry]]:
        cache = self._cache(category)
        for key in list(cache.iterkeys()):
            data = cache.get(key)
            # Deleted since the key listing
            if data is None:
                continue
            yield key, CacheEntry.model_validate(data)

    def clear(self, category: CacheCategory) -> int:
        return self._cache(category).clear()

    def append_call(self, record: ApiCallRecord) -> None:
        self._call_log.append(record.model_dump())

    def iter_calls(self) -> Iterator[ApiCallRecord]:
        for item in list(self._call_log):
            yield ApiCallRecord.model_validate(item)

    def close(self) -> None:
        for cache in self._caches.values():
            cache.close()
