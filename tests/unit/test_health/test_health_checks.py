"""Tests for health check implementations."""

from unittest.mock import MagicMock, patch

import pytest

from matchcast.health.checks import (
    CheckResult,
    CheckStatus,
    HealthChecker,
    HealthReport,
    HealthStatus,
)
from matchcast.models.cache import CacheConfig
from matchcast.models.config import AppConfig
from matchcast.services.cache_service import CacheService

GB = 1024**3


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        football_api={"api_key": "football-key"},
        llm={"api_key": "llm-key"},
        cache={"cache_dir": str(tmp_path / "cache"), "backend": "json"},
    )


@pytest.fixture
def cache(config):
    service = CacheService(config.cache)
    yield service
    service.close()


class TestCheckResult:
    """Tests for CheckResult dataclass."""

    def test_to_dict(self):
        result = CheckResult(
            name="test",
            status=CheckStatus.PASS,
            message="OK",
            duration_ms=10.0,
            details={"foo": "bar"},
        )

        d = result.to_dict()

        assert d["name"] == "test"
        assert d["status"] == "pass"
        assert d["duration_ms"] == 10.0
        assert d["details"] == {"foo": "bar"}
        assert "timestamp" in d


class TestHealthReport:
    def test_to_dict(self):
        report = HealthReport(
            status=HealthStatus.DEGRADED,
            checks=[CheckResult(name="a", status=CheckStatus.WARN, message="meh")],
        )

        d = report.to_dict()

        assert d["status"] == "degraded"
        assert d["checks"][0]["name"] == "a"


class TestDiskSpace:
    """Tests for check_disk_space."""

    @pytest.mark.asyncio
    async def test_plenty_of_space_passes(self, config):
        checker = HealthChecker(config)
        with patch("shutil.disk_usage", return_value=(100 * GB, 50 * GB, 50 * GB)):
            result = await checker.check_disk_space()

        assert result.status == CheckStatus.PASS
        assert result.details["free_gb"] == 50.0
        assert result.details["used_percent"] == 50.0

    @pytest.mark.asyncio
    async def test_low_space_warns(self, config):
        checker = HealthChecker(config)
        with patch("shutil.disk_usage", return_value=(100 * GB, 97 * GB, 3 * GB)):
            result = await checker.check_disk_space()

        assert result.status == CheckStatus.WARN

    @pytest.mark.asyncio
    async def test_critical_space_fails(self, config):
        checker = HealthChecker(config)
        with patch("shutil.disk_usage", return_value=(100 * GB, 99.5 * GB, 0.5 * GB)):
            result = await checker.check_disk_space()

        assert result.status == CheckStatus.FAIL
        assert "critical" in result.message


class TestCacheStore:
    """Tests for check_cache_store."""

    @pytest.mark.asyncio
    async def test_accessible_store_passes(self, config, cache):
        cache.log_call("prediction/1", True, True)
        checker = HealthChecker(config, cache)

        result = await checker.check_cache_store()

        assert result.status == CheckStatus.PASS
        assert result.details["backend"] == "JsonFileBackend"
        assert result.details["call_log_entries"] == 1

    @pytest.mark.asyncio
    async def test_disabled_cache_warns(self, config):
        checker = HealthChecker(config, CacheService(CacheConfig(enabled=False)))

        result = await checker.check_cache_store()

        assert result.status == CheckStatus.WARN
        assert result.message == "Cache disabled"

    @pytest.mark.asyncio
    async def test_missing_cache_warns(self, config):
        result = await HealthChecker(config).check_cache_store()

        assert result.status == CheckStatus.WARN

    @pytest.mark.asyncio
    async def test_backend_error_fails(self, config):
        broken = MagicMock(enabled=True)
        broken.backend.read.side_effect = OSError("disk I/O error")
        checker = HealthChecker(config, broken)

        result = await checker.check_cache_store()

        assert result.status == CheckStatus.FAIL
        assert "disk I/O error" in result.message


class TestApiKeys:
    @pytest.mark.asyncio
    async def test_configured_keys_pass(self, config):
        result = await HealthChecker(config).check_api_keys()

        assert result.status == CheckStatus.PASS

    @pytest.mark.asyncio
    async def test_unsubstituted_key_warns(self, tmp_path):
        config = AppConfig(
            football_api={"api_key": "${FOOTBALL_API_KEY}"},
            llm={"api_key": "llm-key"},
            cache={"cache_dir": str(tmp_path)},
        )

        result = await HealthChecker(config).check_api_keys()

        assert result.status == CheckStatus.WARN
        assert "football_api.api_key" in result.message


class TestOverallStatus:
    """Tests for check_all and readiness."""

    @pytest.mark.asyncio
    async def test_all_passing_is_healthy(self, config, cache):
        checker = HealthChecker(config, cache)
        with patch("shutil.disk_usage", return_value=(100 * GB, 10 * GB, 90 * GB)):
            report = await checker.check_all()

        assert report.status == HealthStatus.HEALTHY
        assert {c.name for c in report.checks} == {"disk_space", "cache_store", "api_keys"}

    @pytest.mark.asyncio
    async def test_missing_keys_degrade(self, tmp_path, cache):
        config = AppConfig(cache={"cache_dir": str(tmp_path)})
        checker = HealthChecker(config, cache)
        with patch("shutil.disk_usage", return_value=(100 * GB, 10 * GB, 90 * GB)):
            report = await checker.check_all()

        assert report.status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_failed_check_is_unhealthy(self, config, cache):
        checker = HealthChecker(config, cache)
        with patch("shutil.disk_usage", return_value=(100 * GB, 100 * GB, 0)):
            report = await checker.check_all()

        assert report.status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_raising_check_reported_as_failure(self, config, cache):
        checker = HealthChecker(config, cache)

        async def explode():
            raise RuntimeError("boom")

        checker.check_api_keys = explode
        with patch("shutil.disk_usage", return_value=(100 * GB, 10 * GB, 90 * GB)):
            report = await checker.check_all()

        assert report.status == HealthStatus.UNHEALTHY
        failed = {c.name: c.message for c in report.checks if c.status == CheckStatus.FAIL}
        assert failed == {"api_keys": "Check failed: boom"}

    @pytest.mark.asyncio
    async def test_ready_ignores_missing_keys(self, tmp_path, cache):
        checker = HealthChecker(AppConfig(cache={"cache_dir": str(tmp_path)}), cache)
        with patch("shutil.disk_usage", return_value=(100 * GB, 10 * GB, 90 * GB)):
            assert await checker.is_ready() is True

    @pytest.mark.asyncio
    async def test_not_ready_when_store_broken(self, config):
        broken = MagicMock(enabled=True)
        broken.backend.iter_calls.side_effect = OSError("locked")
        checker = HealthChecker(config, broken)

        assert await checker.is_ready() is False

    @pytest.mark.asyncio
    async def test_always_alive(self, config):
        assert await HealthChecker(config).is_alive() is True
