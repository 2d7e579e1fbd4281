"""Health checks for the disk, the cache store and configured API keys.

Usage:
    from matchcast.health import HealthChecker

    checker = HealthChecker(config, cache)
    report = await checker.check_all()
"""

from matchcast.health.checks import (
    CheckResult,
    CheckStatus,
    HealthChecker,
    HealthReport,
    HealthStatus,
)

__all__ = [
    "HealthChecker",
    "HealthReport",
    "HealthStatus",
    "CheckResult",
    "CheckStatus",
]
