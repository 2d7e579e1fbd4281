"""Pluggable persistence for the cache store.

Usage:
    from matchcast.services.storage import create_backend

    backend = create_backend(config.cache)
"""

from pathlib import Path

from matchcast.models.cache import CacheConfig
from matchcast.services.storage.base import CacheBackend
from matchcast.services.storage.disk import DiskCacheBackend
from matchcast.services.storage.json_file import JsonFileBackend


def create_backend(config: CacheConfig) -> CacheBackend:
    """Build the backend selected by `config.backend`."""
    cache_dir = Path(config.cache_dir)
    if config.backend == "json":
        return JsonFileBackend(cache_dir, call_log_max_entries=config.call_log_max_entries)
    return DiskCacheBackend(cache_dir, call_log_max_entries=config.call_log_max_entries)


__all__ = [
    "CacheBackend",
    "DiskCacheBackend",
    "JsonFileBackend",
    "create_backend",
]
