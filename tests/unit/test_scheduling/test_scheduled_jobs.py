"""Tests for scheduled job definitions."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from matchcast.observability.context import get_correlation_id
from matchcast.orchestration.result import GenerationStats
from matchcast.scheduling.jobs import BaseJob, CacheSweepJob, DailyPredictionJob
from matchcast.utils.exceptions import GenerationInProgressError


class _FailingJob(BaseJob):
    async def run(self):
        raise RuntimeError("boom")


class _RecordingJob(BaseJob):
    async def run(self):
        return get_correlation_id()


class TestBaseJob:
    @pytest.mark.asyncio
    async def test_success_updates_status(self):
        job = _RecordingJob("recording")

        corr_id = await job()

        assert corr_id.startswith("recording-")
        assert get_correlation_id() is None
        status = job.get_status()
        assert status["run_count"] == 1
        assert status["error_count"] == 0
        assert status["last_success"] is not None

    @pytest.mark.asyncio
    async def test_failure_reraised_and_counted(self):
        job = _FailingJob("failing")

        with pytest.raises(RuntimeError):
            await job()

        assert job.error_count == 1
        assert job.last_success is None


class TestDailyPredictionJob:
    @pytest.mark.asyncio
    async def test_runs_through_controller(self):
        stats = GenerationStats(total=3, success=3)
        controller = MagicMock()
        controller.run = AsyncMock(return_value=stats)
        orchestrator = MagicMock()
        next_run = datetime(2025, 10, 2, 7, 0, tzinfo=timezone.utc)

        job = DailyPredictionJob(controller, lambda: orchestrator, next_run=lambda: next_run)
        result = await job()

        controller.run.assert_awaited_once_with(orchestrator)
        assert result["success"] == 3
        assert controller.next_run == next_run

    @pytest.mark.asyncio
    async def test_reports_skip_when_run_in_progress(self):
        controller = MagicMock()
        controller.run = AsyncMock(side_effect=GenerationInProgressError())

        job = DailyPredictionJob(controller, MagicMock)
        result = await job()

        assert result == {
            "skipped": True,
            "reason": "Prediction generation already in progress",
        }
        assert job.run_count == 1


class TestCacheSweepJob:
    @pytest.mark.asyncio
    async def test_reports_removed_count(self):
        cache = MagicMock()
        cache.sweep_expired.return_value = 4

        result = await CacheSweepJob(cache)()

        assert result == {"removed": 4}
