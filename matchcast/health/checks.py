"""Dependency checks behind /health and /ready.

- disk_space: room left on the cache volume
- cache_store: the backend answers a read and a call-log scan
- api_keys: sports API and LLM keys are set (not left as ``${VAR}``)

Missing keys degrade the service (cached reads keep working); an
unusable disk or cache store makes it unhealthy.

Usage:
    checker = HealthChecker(config, cache)
    report = await checker.check_all()
"""

import asyncio
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from matchcast.models.cache import CacheCategory
from matchcast.models.config import AppConfig
from matchcast.services.cache_service import CacheService
from matchcast.services.config_manager import check_environment

logger = structlog.get_logger()

GB = 1024**3

Outcome = Tuple["CheckStatus", str, Dict[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @classmethod
    def worst_of(cls, checks: List["CheckResult"]) -> "HealthStatus":
        statuses = {c.status for c in checks}
        if CheckStatus.FAIL in statuses:
            return cls.UNHEALTHY
        if CheckStatus.WARN in statuses:
            return cls.DEGRADED
        return cls.HEALTHY


@dataclass
class CheckResult:
    name: str
    status: CheckStatus
    message: str
    duration_ms: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "duration_ms": round(self.duration_ms, 2),
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class HealthReport:
    status: HealthStatus
    checks: List[CheckResult]
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "checks": [c.to_dict() for c in self.checks],
            "timestamp": self.timestamp.isoformat(),
        }


def _timed(name: str, probe: Callable[[], Outcome], failure: str) -> CheckResult:
    """Run a probe; an exception from it becomes a FAIL result."""
    started = time.perf_counter()
    try:
        status, message, details = probe()
    except Exception as e:
        logger.error("health_probe_failed", check=name, error=str(e))
        status, message, details = CheckStatus.FAIL, f"{failure}: {e}", {}
    return CheckResult(
        name=name,
        status=status,
        message=message,
        duration_ms=(time.perf_counter() - started) * 1000,
        details=details,
    )


class HealthChecker:
    def __init__(
        self,
        config: AppConfig,
        cache: Optional[CacheService] = None,
        disk_threshold_gb: float = 1.0,
        disk_warning_gb: float = 5.0,
    ):
        self.config = config
        self.cache = cache
        self.cache_dir = Path(config.cache.cache_dir)
        self.disk_threshold_gb = disk_threshold_gb
        self.disk_warning_gb = disk_warning_gb

    async def check_all(self) -> HealthReport:
        """Run every check concurrently.

        A check that raises is reported as a FAIL under its own name.
        """
        names = ["disk_space", "cache_store", "api_keys"]
        results = await asyncio.gather(
            self.check_disk_space(),
            self.check_cache_store(),
            self.check_api_keys(),
            return_exceptions=True,
        )

        checks = [
            result
            if isinstance(result, CheckResult)
            else CheckResult(
                name=name, status=CheckStatus.FAIL, message=f"Check failed: {result}"
            )
            for name, result in zip(names, results)
        ]
        return HealthReport(status=HealthStatus.worst_of(checks), checks=checks)

    async def check_disk_space(self) -> CheckResult:
        return _timed("disk_space", self._probe_disk, "Disk check failed")

    def _probe_disk(self) -> Outcome:
        target = self.cache_dir if self.cache_dir.exists() else Path.cwd()
        total, used, free = shutil.disk_usage(target)
        free_gb = free / GB
        details = {
            "free_gb": round(free_gb, 2),
            "total_gb": round(total / GB, 2),
            "used_percent": round(used / total * 100, 1),
        }

        if free_gb < self.disk_threshold_gb:
            return CheckStatus.FAIL, f"Disk space critical: {free_gb:.1f}GB free", details
        if free_gb < self.disk_warning_gb:
            return CheckStatus.WARN, f"Disk space low: {free_gb:.1f}GB free", details
        return CheckStatus.PASS, f"Disk space OK: {free_gb:.1f}GB free", details

    async def check_cache_store(self) -> CheckResult:
        return _timed("cache_store", self._probe_cache, "Cache store unavailable")

    def _probe_cache(self) -> Outcome:
        if self.cache is None or not self.cache.enabled:
            return CheckStatus.WARN, "Cache disabled", {}

        backend = self.cache.backend
        backend.read(CacheCategory.FIXTURES, "__health_probe__")
        calls = sum(1 for _ in backend.iter_calls())
        return (
            CheckStatus.PASS,
            "Cache store accessible",
            {
                "backend": type(backend).__name__,
                "path": str(self.cache_dir.absolute()),
                "call_log_entries": calls,
            },
        )

    async def check_api_keys(self) -> CheckResult:
        def probe() -> Outcome:
            problems = check_environment(self.config)
            if problems:
                return CheckStatus.WARN, "; ".join(problems), {}
            return CheckStatus.PASS, "API keys configured", {}

        return _timed("api_keys", probe, "Key check failed")

    async def is_ready(self) -> bool:
        """Ready when the disk and cache store are usable; keys don't matter."""
        checks = [await self.check_disk_space(), await self.check_cache_store()]
        return all(c.status != CheckStatus.FAIL for c in checks)

    async def is_alive(self) -> bool:
        return True
