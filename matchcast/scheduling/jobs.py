"""Jobs registered with PredictionScheduler.

- DailyPredictionJob: one generation pass, 03:00 by default
- CacheSweepJob: eager removal of expired cache entries, hourly

Usage:
    from matchcast.scheduling.jobs import CacheSweepJob

    job = CacheSweepJob(cache)
    await job()
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import structlog

from matchcast.observability.context import correlation_id_context, new_correlation_id
from matchcast.orchestration.orchestrator import PredictionOrchestrator
from matchcast.orchestration.status import GenerationController
from matchcast.services.cache_service import CacheService
from matchcast.utils.exceptions import GenerationInProgressError

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseJob(ABC):
    """A scheduler callable: `await job()` runs `run()` under a fresh
    correlation ID and keeps run and failure counts. Failures are logged
    and re-raised so APScheduler records them too."""

    def __init__(self, name: str):
        self.name = name
        self.run_count = 0
        self.error_count = 0
        self.last_run: Optional[datetime] = None
        self.last_success: Optional[datetime] = None

    async def __call__(self) -> Any:
        started = time.perf_counter()
        with correlation_id_context(new_correlation_id(self.name)) as corr_id:
            logger.info("job_starting", job_name=self.name, correlation_id=corr_id)
            try:
                result = await self.run()
            except Exception as e:
                self.last_run = _utcnow()
                self.error_count += 1
                logger.error("job_failed", job_name=self.name, error=str(e), exc_info=True)
                raise

            self.last_run = self.last_success = _utcnow()
            self.run_count += 1
            logger.info(
                "job_completed",
                job_name=self.name,
                duration_seconds=round(time.perf_counter() - started, 2),
            )
            return result

    @abstractmethod
    async def run(self) -> Any:
        ...

    def get_status(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "name": self.name,
            "run_count": self.run_count,
            "error_count": self.error_count,
            "last_run": iso(self.last_run),
            "last_success": iso(self.last_success),
        }


class DailyPredictionJob(BaseJob):
    """Runs one generation pass through the shared controller.

    When a run is already active (e.g. started manually) the scheduled
    trigger is rejected like any other; that is reported, not raised.
    """

    def __init__(
        self,
        controller: GenerationController,
        orchestrator_factory: Callable[[], PredictionOrchestrator],
        next_run: Optional[Callable[[], Optional[datetime]]] = None,
    ):
        super().__init__("daily_predictions")
        self.controller = controller
        self.orchestrator_factory = orchestrator_factory
        self.next_run = next_run

    async def run(self) -> Dict[str, Any]:
        try:
            stats = await self.controller.run(self.orchestrator_factory())
        except GenerationInProgressError as e:
            logger.warning("daily_predictions_skipped", reason=str(e))
            return {"skipped": True, "reason": str(e)}
        finally:
            if self.next_run is not None:
                self.controller.next_run = self.next_run()

        return stats.to_dict()


class CacheSweepJob(BaseJob):
    """Eagerly deletes expired entries from every cache category."""

    def __init__(self, cache: CacheService):
        super().__init__("cache_sweep")
        self.cache = cache

    async def run(self) -> Dict[str, Any]:
        removed = await asyncio.to_thread(self.cache.sweep_expired)
        return {"removed": removed}
