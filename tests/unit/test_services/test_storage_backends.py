"""Unit tests for cache persistence backends."""

import json
import shutil
import tempfile
import threading
from pathlib import Path

import pytest

from matchcast.models.cache import ApiCallRecord, CacheCategory, CacheEntry
from matchcast.services.storage import DiskCacheBackend, JsonFileBackend


@pytest.fixture
def temp_cache_dir():
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(params=[DiskCacheBackend, JsonFileBackend])
def backend(request, temp_cache_dir):
    instance = request.param(temp_cache_dir, call_log_max_entries=3)
    yield instance
    instance.close()


def _entry(key: str, created: float = 100.0, ttl: float = 10.0) -> CacheEntry:
    return CacheEntry(key=key, value={"key": key}, created_at=created, expires_at=created + ttl)


def _call(n: int) -> ApiCallRecord:
    return ApiCallRecord(endpoint=f"e{n}", success=True, cached=False, timestamp=float(n))


class TestEntries:
    def test_write_read(self, backend):
        backend.write(CacheCategory.PREDICTION, _entry("1"))

        entry = backend.read(CacheCategory.PREDICTION, "1")
        assert entry.value == {"key": "1"}
        assert entry.expires_at == 110.0

    def test_read_returns_expired_entries(self, backend):
        backend.write(CacheCategory.FIXTURES, _entry("epl", created=0.0, ttl=1.0))

        assert backend.read(CacheCategory.FIXTURES, "epl") is not None

    def test_delete_if_expired_keeps_fresh_entry(self, backend):
        backend.write(CacheCategory.FIXTURES, _entry("epl", created=100.0, ttl=10.0))

        assert backend.delete_if_expired(CacheCategory.FIXTURES, "epl", now=105.0) is False
        assert backend.read(CacheCategory.FIXTURES, "epl") is not None

        assert backend.delete_if_expired(CacheCategory.FIXTURES, "epl", now=111.0) is True
        assert backend.read(CacheCategory.FIXTURES, "epl") is None

    def test_delete_if_expired_missing_key(self, backend):
        assert backend.delete_if_expired(CacheCategory.FIXTURES, "nope", now=0.0) is False

    def test_iter_entries_is_category_scoped(self, backend):
        backend.write(CacheCategory.MATCH_DATA, _entry("1"))
        backend.write(CacheCategory.MATCH_DATA, _entry("2"))
        backend.write(CacheCategory.PREDICTION, _entry("1"))

        keys = sorted(key for key, _ in backend.iter_entries(CacheCategory.MATCH_DATA))
        assert keys == ["1", "2"]

    def test_sweep(self, backend):
        backend.write(CacheCategory.MATCH_DATA, _entry("old", created=0.0, ttl=5.0))
        backend.write(CacheCategory.MATCH_DATA, _entry("new", created=100.0, ttl=5.0))

        assert backend.sweep(CacheCategory.MATCH_DATA, now=50.0) == 1
        assert backend.read(CacheCategory.MATCH_DATA, "new") is not None

    def test_clear_counts_removed(self, backend):
        backend.write(CacheCategory.LEAGUE_STATS, _entry("epl"))
        backend.write(CacheCategory.LEAGUE_STATS, _entry("laliga"))
        backend.write(CacheCategory.FIXTURES, _entry("epl"))

        assert backend.clear(CacheCategory.LEAGUE_STATS) == 2
        assert backend.read(CacheCategory.FIXTURES, "epl") is not None


class TestCallLog:
    def test_call_log_keeps_most_recent(self, backend):
        for n in range(5):
            backend.append_call(_call(n))

        assert [c.endpoint for c in backend.iter_calls()] == ["e2", "e3", "e4"]


class TestJsonFileBackend:
    """File naming and corruption handling specific to the JSON backend."""

    def test_file_named_by_category_prefix(self, temp_cache_dir):
        backend = JsonFileBackend(temp_cache_dir)
        backend.write(CacheCategory.MATCH_DATA, _entry("1035041"))

        assert (temp_cache_dir / "matchdata_1035041.json").exists()

    def test_unsafe_keys_do_not_collide(self, temp_cache_dir):
        backend = JsonFileBackend(temp_cache_dir)

        assert backend.file_key("a/b") != backend.file_key("a_b")
        assert backend.file_key("a_b") == "a_b"

    def test_no_temp_files_left_behind(self, temp_cache_dir):
        backend = JsonFileBackend(temp_cache_dir)
        backend.write(CacheCategory.PREDICTION, _entry("1"))
        backend.append_call(_call(1))

        assert not list(temp_cache_dir.glob(".tmp-*"))

    def test_corrupt_file_skipped_when_iterating(self, temp_cache_dir):
        backend = JsonFileBackend(temp_cache_dir)
        backend.write(CacheCategory.PREDICTION, _entry("1"))
        (temp_cache_dir / "prediction_2.json").write_text("{not json")

        keys = [key for key, _ in backend.iter_entries(CacheCategory.PREDICTION)]
        assert keys == ["1"]

    def test_corrupt_call_log_reads_empty(self, temp_cache_dir):
        backend = JsonFileBackend(temp_cache_dir)
        backend.call_log_path.write_text("[{")

        assert list(backend.iter_calls()) == []

    def test_written_document_is_plain_json(self, temp_cache_dir):
        backend = JsonFileBackend(temp_cache_dir)
        backend.write(CacheCategory.FIXTURES, _entry("epl"))

        data = json.loads((temp_cache_dir / "fixtures_epl.json").read_text())
        assert data["key"] == "epl"
        assert data["value"] == {"key": "epl"}

    def test_rewrite_during_expiry_check_survives(self, temp_cache_dir):
        backend = JsonFileBackend(temp_cache_dir)
        backend.write(CacheCategory.PREDICTION, _entry("1", created=0.0, ttl=10.0))
        fresh = _entry("1", created=90.0, ttl=10_000.0)

        # A second writer (another process in production) stores a fresh
        # entry right after the expired one has been read.
        writer = threading.Thread(
            target=JsonFileBackend(temp_cache_dir).write,
            args=(CacheCategory.PREDICTION, fresh),
        )
        original_load = backend._load

        def load_then_race(path):
            data = original_load(path)
            if not writer.is_alive() and writer.ident is None:
                writer.start()
                writer.join(timeout=0.3)
            return data

        backend._load = load_then_race

        removed = backend.delete_if_expired(CacheCategory.PREDICTION, "1", now=100.0)
        writer.join(timeout=5)

        assert removed is True
        survivor = backend.read(CacheCategory.PREDICTION, "1")
        assert survivor is not None
        assert survivor.expires_at == fresh.expires_at

    def test_lock_files_do_not_look_like_entries(self, temp_cache_dir):
        backend = JsonFileBackend(temp_cache_dir)
        backend.write(CacheCategory.PREDICTION, _entry("1"))

        assert [key for key, _ in backend.iter_entries(CacheCategory.PREDICTION)] == ["1"]
