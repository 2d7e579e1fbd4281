"""Process-wide generation run state.

GenerationController owns the IDLE -> RUNNING -> COMPLETED | FAILED
state machine. The IDLE/finished -> RUNNING transition happens under a
lock, so at most one run is active per process; a second request is
rejected with GenerationInProgressError rather than queued.
"""

import asyncio
import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from matchcast.observability.context import correlation_id_context
from matchcast.observability.metrics import (
    GENERATION_RUN_DURATION,
    GENERATION_RUNNING,
    GENERATION_RUNS,
)
from matchcast.orchestration.orchestrator import PredictionOrchestrator
from matchcast.orchestration.result import GenerationStats
from matchcast.utils.exceptions import GenerationInProgressError

logger = structlog.get_logger()


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationController:
    """Guards generation runs and remembers the outcome of the last one."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.state = RunState.IDLE
        self.current_stats: Optional[GenerationStats] = None
        self.last_stats: Optional[GenerationStats] = None
        self.last_error: Optional[str] = None
        self.last_run_started: Optional[datetime] = None
        self.last_run_finished: Optional[datetime] = None
        self.next_run: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.state == RunState.RUNNING

    def try_start(self) -> bool:
        """Move to RUNNING unless a run is already active."""
        with self._lock:
            if self.state == RunState.RUNNING:
                return False
            self.state = RunState.RUNNING
            self.current_stats = GenerationStats(started_at=_utcnow())
            self.last_run_started = self.current_stats.started_at
            self.last_error = None
        GENERATION_RUNNING.set(1)
        return True

    def _finish(self, state: RunState, error: Optional[str] = None) -> None:
        with self._lock:
            stats = self.current_stats
            if stats is not None and stats.completed_at is None:
                stats.completed_at = _utcnow()
            self.last_stats = stats
            self.last_error = error
            self.last_run_finished = _utcnow()
            self.current_stats = None
            self.state = state
        GENERATION_RUNNING.set(0)

    def abort(self, error: str) -> None:
        """Fail a run claimed with try_start that could not be executed."""
        if self.state == RunState.RUNNING:
            if self.current_stats is not None:
                self.current_stats.fatal_error = error
            self._finish(RunState.FAILED, error=error)
            GENERATION_RUNS.labels(outcome="failed").inc()

    async def run(self, orchestrator: PredictionOrchestrator) -> GenerationStats:
        """
        Execute one generation run under the single-flight guard.

        A run that cannot list fixtures ends FAILED; its stats carry the
        error in `fatal_error`. Per-fixture failures still end COMPLETED.

        Raises:
            GenerationInProgressError: Another run is active
        """
        if not self.try_start():
            GENERATION_RUNS.labels(outcome="rejected").inc()
            logger.warning("generation_rejected_already_running")
            raise GenerationInProgressError()

        return await self.execute(orchestrator)

    async def execute(self, orchestrator: PredictionOrchestrator) -> GenerationStats:
        """Run the generation pass for a run already claimed with try_start."""
        stats = self.current_stats
        if self.state != RunState.RUNNING or stats is None:
            raise RuntimeError("execute() requires a successful try_start()")

        run_id = f"generation-{stats.started_at:%Y%m%d-%H%M%S}"
        start = time.monotonic()

        with correlation_id_context(run_id):
            try:
                await orchestrator.generate_all_predictions(stats)
            except asyncio.CancelledError:
                stats.fatal_error = "cancelled"
                self._finish(RunState.FAILED, error="cancelled")
                GENERATION_RUNS.labels(outcome="failed").inc()
                logger.warning("generation_run_cancelled")
                raise
            except Exception as e:
                stats.fatal_error = str(e)
                stats.errors.append({"critical": True, "error": str(e)})
                self._finish(RunState.FAILED, error=str(e))
                GENERATION_RUNS.labels(outcome="failed").inc()
                logger.error(
                    "generation_run_failed", error_type=type(e).__name__, error=str(e)
                )
            else:
                self._finish(RunState.COMPLETED)
                GENERATION_RUNS.labels(outcome="completed").inc()
                logger.info("generation_run_completed", **stats.to_dict())
            finally:
                GENERATION_RUN_DURATION.observe(time.monotonic() - start)

        return stats

    def get_status(self) -> Dict[str, Any]:
        """JSON-friendly snapshot for status endpoints."""
        current = self.current_stats
        return {
            "state": self.state.value,
            "is_running": self.is_running,
            "current_stats": current.to_dict() if current else None,
            "last_stats": self.last_stats.to_dict() if self.last_stats else None,
            "last_error": self.last_error,
            "last_run_started": _iso(self.last_run_started),
            "last_run_finished": _iso(self.last_run_finished),
            "next_run": _iso(self.next_run),
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


_controller: Optional[GenerationController] = None
_controller_lock = threading.Lock()


def get_generation_controller() -> GenerationController:
    """Process-wide controller, created on first use."""
    global _controller
    with _controller_lock:
        if _controller is None:
            _controller = GenerationController()
        return _controller


def set_generation_controller(controller: Optional[GenerationController]) -> None:
    """Replace (or reset with None) the process-wide controller."""
    global _controller
    with _controller_lock:
        _controller = controller
