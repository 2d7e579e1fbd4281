"""
Flat-file persistence.

One JSON document per entry, named `<prefix>_<key>.json` inside the
cache directory. Every write goes to a temporary file in the same
directory and is then renamed over the target, so readers in other
processes see either the old or the new entry, never a partial one.

Writes and expiry deletes of a category serialise on a lock file
(`.<prefix>.lock`), so a sweep in `matchcast serve` cannot remove an
entry that `matchcast generate` rewrote after the sweep looked at it.
The call log has its own lock around its read-modify-write.
"""

import hashlib
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

import structlog
from filelock import FileLock

from matchcast.models.cache import ApiCallRecord, CacheCategory, CacheEntry
from matchcast.services.storage.base import CacheBackend

logger = structlog.get_logger()

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


class JsonFileBackend(CacheBackend):
    """JSON file per entry, atomic replace on write"""

    CALL_LOG_FILE = "api_logs.json"
    LOCK_TIMEOUT_SECONDS = 30

    def __init__(self, cache_dir: Path, call_log_max_entries: int = 1000):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.call_log_max_entries = call_log_max_entries
        self.call_log_path = self.cache_dir / self.CALL_LOG_FILE

    # ==================== Paths ====================

    @staticmethod
    def file_key(key: str) -> str:
        """Filesystem-safe form of a key.

        Keys made only of letters, digits, `_` and `-` are used as-is.
        Anything else is sanitised and suffixed with `~` plus a hash of
        the original key; `~` never appears in an as-is key, so two
        distinct keys never map to the same file.
        """
        if _SAFE_KEY.match(key):
            return key
        safe = re.sub(r"[^A-Za-z0-9_-]", "_", key)[:80]
        digest = hashlib.sha256(key.encode()).hexdigest()[:12]
        return f"{safe}~{digest}"

    def entry_path(self, category: CacheCategory, key: str) -> Path:
        category = CacheCategory(category)
        return self.cache_dir / f"{category.file_prefix}_{self.file_key(key)}.json"

    def _category_files(self, category: CacheCategory) -> List[Path]:
        category = CacheCategory(category)
        return sorted(self.cache_dir.glob(f"{category.file_prefix}_*.json"))

    def _lock(self, name: str) -> FileLock:
        return FileLock(
            str(self.cache_dir / f".{name}.lock"), timeout=self.LOCK_TIMEOUT_SECONDS
        )

    def category_lock(self, category: CacheCategory) -> FileLock:
        return self._lock(CacheCategory(category).file_prefix)

    # ==================== Low-level IO ====================

    def _atomic_write(self, path: Path, payload: Any) -> None:
        fd, temp_name = tempfile.mkstemp(
            dir=self.cache_dir, prefix=".tmp-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f)
            os.replace(temp_name, path)
        except Exception:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise

    @staticmethod
    def _load(path: Path) -> Optional[dict]:
        try:
            with open(path) as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    # ==================== Entries ====================

    def read(self, category: CacheCategory, key: str) -> Optional[CacheEntry]:
        data = self._load(self.entry_path(category, key))
        if data is None:
            return None
        return CacheEntry.model_validate(data)

    def write(self, category: CacheCategory, entry: CacheEntry) -> None:
        with self.category_lock(category):
            self._atomic_write(self.entry_path(category, entry.key), entry.model_dump())

    def delete(self, category: CacheCategory, key: str) -> bool:
        path = self.entry_path(category, key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    def delete_if_expired(self, category: CacheCategory, key: str, now: float) -> bool:
        path = self.entry_path(category, key)
        with self.category_lock(category):
            data = self._load(path)
            if data is None or not CacheEntry.model_validate(data).is_expired(now):
                return False
            try:
                path.unlink()
                return True
            except FileNotFoundError:
                return False

    def iter_entries(self, category: CacheCategory) -> Iterator[Tuple[str, CacheEntry]]:
        for path in self._category_files(category):
            try:
                data = self._load(path)
            except json.JSONDecodeError:
                logger.warning("cache_file_corrupt", path=str(path))
                continue
            if data is None:
                continue
            entry = CacheEntry.model_validate(data)
            yield entry.key, entry

    def clear(self, category: CacheCategory) -> int:
        removed = 0
        for path in self._category_files(category):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
        return removed

    # ==================== Call log ====================

    def _read_calls(self) -> List[dict]:
        try:
            data = self._load(self.call_log_path)
        except json.JSONDecodeError:
            logger.warning("call_log_corrupt", path=str(self.call_log_path))
            return []
        return data if isinstance(data, list) else []

    def append_call(self, record: ApiCallRecord) -> None:
        with self._lock("api_logs"):
            calls = self._read_calls()
            calls.append(record.model_dump())
            self._atomic_write(self.call_log_path, calls[-self.call_log_max_entries :])

    def iter_calls(self) -> Iterator[ApiCallRecord]:
        for item in self._read_calls():
            yield ApiCallRecord.model_validate(item)
