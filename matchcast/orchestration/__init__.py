"""Orchestration of prediction generation runs."""

from matchcast.orchestration.orchestrator import (
    PredictionOrchestrator,
    build_orchestrator,
    is_rate_limit_error,
)
from matchcast.orchestration.result import GenerationStats
from matchcast.orchestration.status import (
    GenerationController,
    RunState,
    get_generation_controller,
    set_generation_controller,
)

__all__ = [
    "PredictionOrchestrator",
    "build_orchestrator",
    "is_rate_limit_error",
    "GenerationStats",
    "GenerationController",
    "RunState",
    "get_generation_controller",
    "set_generation_controller",
]
