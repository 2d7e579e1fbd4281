"""Scheduling of the daily generation run and the cache sweep.

Provides:
- PredictionScheduler: AsyncIOScheduler shared with the API server's loop
- Cron trigger for daily generation, interval trigger for the sweep
- Per-job failure tracking surfaced by `get_jobs`
- Signal-driven shutdown when run standalone

Usage:
    scheduler = PredictionScheduler(timezone="America/New_York")
    scheduler.schedule_daily_generation(DailyPredictionJob(...), hour=3, minute=0)
    scheduler.schedule_cache_sweep(CacheSweepJob(cache), minutes=60)

    await scheduler.start(block=False)
"""

import asyncio
import signal
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import structlog
from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from matchcast.observability.metrics import SCHEDULER_JOBS

logger = structlog.get_logger()

DAILY_GENERATION_JOB_ID = "daily_predictions"
CACHE_SWEEP_JOB_ID = "cache_sweep"


class PredictionScheduler:
    """Runs generation and maintenance jobs on the current event loop.

    Jobs never overlap with themselves (max_instances=1) and missed
    fires are coalesced into one, so a host that slept through 03:00
    runs a single catch-up generation within the grace period.
    """

    def __init__(
        self,
        timezone: str = "UTC",
        misfire_grace_time: int = 300,
    ):
        """Initialize scheduler.

        Args:
            timezone: Timezone the daily trigger is expressed in
            misfire_grace_time: Seconds a late fire is still run
        """
        self.timezone = timezone
        self.scheduler = AsyncIOScheduler(
            timezone=timezone,
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": misfire_grace_time,
            },
        )

        self._running = False
        self._shutdown_event = asyncio.Event()
        self._last_errors: Dict[str, str] = {}

        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

        logger.info("scheduler_initialized", timezone=timezone)

    # ==================== Job registration ====================

    def add_job(
        self,
        func: Callable,
        job_id: str,
        trigger: str = "cron",
        **trigger_args: Any,
    ) -> str:
        """Register (or replace) a job.

        Args:
            func: Async callable to execute
            job_id: Unique job identifier
            trigger: 'cron' (in the scheduler timezone) or 'interval'
            **trigger_args: Passed to the trigger

        Returns:
            Job ID
        """
        if trigger == "cron":
            trigger_obj = CronTrigger(timezone=self.timezone, **trigger_args)
        elif trigger == "interval":
            trigger_obj = IntervalTrigger(**trigger_args)
        else:
            raise ValueError(f"Unsupported trigger: {trigger}")

        self.scheduler.add_job(
            func,
            trigger=trigger_obj,
            id=job_id,
            name=job_id,
            replace_existing=True,
        )
        logger.info("job_added", job_id=job_id, trigger=trigger, **trigger_args)

        self._update_metrics()
        return job_id

    def schedule_daily_generation(
        self, job: Callable, hour: int = 3, minute: int = 0
    ) -> str:
        return self.add_job(
            job, DAILY_GENERATION_JOB_ID, trigger="cron", hour=hour, minute=minute
        )

    def schedule_cache_sweep(self, job: Callable, minutes: int = 60) -> str:
        return self.add_job(job, CACHE_SWEEP_JOB_ID, trigger="interval", minutes=minutes)

    def remove_job(self, job_id: str) -> bool:
        """Remove a job. Returns False if it was not found."""
        return self._apply(self.scheduler.remove_job, job_id, "removed")

    def pause_job(self, job_id: str) -> bool:
        return self._apply(self.scheduler.pause_job, job_id, "paused")

    def resume_job(self, job_id: str) -> bool:
        return self._apply(self.scheduler.resume_job, job_id, "resumed")

    def _apply(self, action: Callable[[str], Any], job_id: str, verb: str) -> bool:
        try:
            action(job_id)
        except Exception as e:
            logger.warning(f"job_{verb}_failed", job_id=job_id, error=str(e))
            return False
        logger.info(f"job_{verb}", job_id=job_id)
        self._update_metrics()
        return True

    # ==================== Introspection ====================

    def next_run_time(self, job_id: str) -> Optional[datetime]:
        """Next fire time of a job, or None if unknown, paused or not started."""
        job = self.scheduler.get_job(job_id)
        return getattr(job, "next_run_time", None) if job else None

    def get_jobs(self) -> List[Dict[str, Any]]:
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": next_run.isoformat() if next_run else None,
                    "paused": self._running and next_run is None,
                    "last_error": self._last_errors.get(job.id),
                }
            )
        return jobs

    @property
    def is_running(self) -> bool:
        return self._running

    # ==================== Lifecycle ====================

    async def start(self, block: bool = True) -> None:
        """Start firing jobs.

        Args:
            block: Wait for SIGTERM/SIGINT before returning
        """
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self._running = True
        self._shutdown_event.clear()
        self.scheduler.start()
        self._update_metrics()
        logger.info("scheduler_started", jobs=[j["id"] for j in self.get_jobs()])

        if not block:
            return

        loop = asyncio.get_running_loop()  # pragma: no cover
        for sig in (signal.SIGTERM, signal.SIGINT):  # pragma: no cover
            loop.add_signal_handler(sig, self._signal_handler)  # pragma: no cover
        await self._shutdown_event.wait()  # pragma: no cover

    async def shutdown(self, wait: bool = True) -> None:
        """Stop firing jobs.

        Args:
            wait: Let a running job finish first
        """
        if not self._running:
            return

        self.scheduler.shutdown(wait=wait)
        self._running = False
        self._shutdown_event.set()
        logger.info("scheduler_stopped")

    def _signal_handler(self) -> None:  # pragma: no cover
        logger.info("shutdown_signal_received")
        asyncio.create_task(self.shutdown())

    # ==================== Event listeners ====================

    def _on_job_executed(self, event: JobExecutionEvent) -> None:
        self._last_errors.pop(event.job_id, None)
        logger.info("job_executed", job_id=event.job_id)

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        self._last_errors[event.job_id] = str(event.exception)
        logger.error(
            "job_errored",
            job_id=event.job_id,
            exception=str(event.exception),
            traceback=event.traceback,
        )

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        logger.warning(
            "job_missed",
            job_id=event.job_id,
            scheduled_run_time=str(event.scheduled_run_time),
        )

    def _update_metrics(self) -> None:
        jobs = self.get_jobs()
        paused = sum(1 for j in jobs if j["paused"])
        SCHEDULER_JOBS.labels(status="scheduled").set(len(jobs) - paused)
        SCHEDULER_JOBS.labels(status="paused").set(paused)
