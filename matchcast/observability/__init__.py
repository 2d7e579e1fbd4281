"""Logging, correlation IDs and Prometheus metrics for matchcast.

Metric objects live in `matchcast.observability.metrics`; import them
from there.
"""

from matchcast.observability.context import (
    clear_correlation_id,
    correlation_id_context,
    get_correlation_id,
    new_correlation_id,
    set_correlation_id,
)
from matchcast.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from matchcast.observability.metrics import (
    REGISTRY,
    get_metrics_content_type,
    get_metrics_text,
)

__all__ = [
    "REGISTRY",
    "bind_context",
    "clear_context",
    "clear_correlation_id",
    "configure_logging",
    "correlation_id_context",
    "get_correlation_id",
    "get_logger",
    "get_metrics_content_type",
    "get_metrics_text",
    "new_correlation_id",
    "set_correlation_id",
]
