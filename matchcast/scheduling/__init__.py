"""Scheduling: daily prediction generation and the hourly cache sweep.

Usage:
    from matchcast.scheduling import PredictionScheduler, CacheSweepJob

    scheduler = PredictionScheduler(timezone="America/New_York")
    scheduler.schedule_cache_sweep(CacheSweepJob(cache), minutes=60)
    await scheduler.start(block=False)
"""

from matchcast.scheduling.scheduler import (
    CACHE_SWEEP_JOB_ID,
    DAILY_GENERATION_JOB_ID,
    PredictionScheduler,
)
from matchcast.scheduling.jobs import (
    BaseJob,
    CacheSweepJob,
    DailyPredictionJob,
)

__all__ = [
    "PredictionScheduler",
    "DailyPredictionJob",
    "CacheSweepJob",
    "BaseJob",
    "DAILY_GENERATION_JOB_ID",
    "CACHE_SWEEP_JOB_ID",
]
