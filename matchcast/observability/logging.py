"""Structured logging for matchcast and the libraries it runs.

matchcast code logs through structlog. uvicorn, APScheduler, aiohttp and
the anthropic SDK log through the stdlib `logging` module; their records
are rendered by the same processors, so `matchcast serve` writes one
stream of JSON lines, each with the active correlation ID.

Usage:
    from matchcast.observability.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_output=True)

    logger = get_logger("orchestrator")
    logger.info("prediction_generated", fixture_id=1035041)
    # {"event": "prediction_generated", "fixture_id": 1035041,
    #  "component": "orchestrator", "correlation_id": "generation-...", ...}
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from matchcast.observability.context import get_correlation_id

# Library loggers that are chatty at INFO; never logged below these levels.
LIBRARY_LOG_LEVELS: Dict[str, int] = {
    "apscheduler": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "anthropic": logging.WARNING,
}


def add_correlation_id_processor(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Attach the current correlation ID ("none" outside any run or job)."""
    corr_id = get_correlation_id()
    event_dict.setdefault("correlation_id", corr_id if corr_id else "none")
    return event_dict


def _shared_processors(add_timestamp: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id_processor,
        structlog.processors.add_log_level,
    ]
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    return processors


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines if True, coloured console output otherwise
        add_timestamp: Add an ISO timestamp to each entry
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    shared = _shared_processors(add_timestamp)
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    _route_library_logging(shared, renderer, log_level)


def _route_library_logging(
    shared: List[Processor], renderer: Processor, log_level: int
) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[*shared, structlog.stdlib.add_logger_name],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for name, floor in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(max(floor, log_level))


def get_logger(component: Optional[str] = None, **initial_context: Any) -> Any:
    """Structlog logger, optionally bound to a component name and context."""
    logger = structlog.get_logger()

    if component:
        logger = logger.bind(component=component)
    if initial_context:
        logger = logger.bind(**initial_context)

    return logger


def bind_context(**context: Any) -> None:
    """Bind context to all subsequent log entries in the current task."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context. Call at request boundaries."""
    structlog.contextvars.clear_contextvars()
