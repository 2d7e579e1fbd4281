"""Abstract persistence interface for the cache store.

A backend stores CacheEntry envelopes per (category, key) and the
append-only call log. Expiry policy lives in CacheService; backends
only need to apply the entry's own `is_expired(now)` predicate when
asked to delete conditionally.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Optional, Tuple

from matchcast.models.cache import ApiCallRecord, CacheCategory, CacheEntry


class CacheBackend(ABC):
    """Durable key-value storage partitioned by cache category.

    Implementations:
        - DiskCacheBackend: SQLite via diskcache, one database per category
        - JsonFileBackend: one JSON file per entry, atomic replace on write
    """

    @abstractmethod
    def read(self, category: CacheCategory, key: str) -> Optional[CacheEntry]:
        """Return the stored entry (expired or not), or None."""
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def write(self, category: CacheCategory, entry: CacheEntry) -> None:
        """Store entry, fully replacing any previous value for its key."""
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def delete(self, category: CacheCategory, key: str) -> bool:
        """Remove an entry unconditionally. Returns True if one existed."""
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def delete_if_expired(self, category: CacheCategory, key: str, now: float) -> bool:
        """Remove the entry only if it is still present and expired at `now`.

        The check and the delete must not let a concurrent fresh write
        be removed.
        """
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def iter_entries(self, category: CacheCategory) -> Iterator[Tuple[str, CacheEntry]]:
        """Iterate over all stored entries of a category."""
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def clear(self, category: CacheCategory) -> int:
        """Remove every entry of a category. Returns the number removed."""
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def append_call(self, record: ApiCallRecord) -> None:
        """Append a call log record."""
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def iter_calls(self) -> Iterator[ApiCallRecord]:
        """Iterate over retained call log records, oldest first."""
        pass  # pragma: no cover - abstract method, always overridden

    def sweep(self, category: CacheCategory, now: float) -> int:
        """Delete every expired entry of a category.

        Returns:
            Number of entries deleted
        """
        expired = [key for key, entry in self.iter_entries(category) if entry.is_expired(now)]
        return sum(1 for key in expired if self.delete_if_expired(category, key, now))

    def close(self) -> None:
        """Release open handles."""
        return None
