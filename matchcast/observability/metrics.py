"""Prometheus metrics definitions for the prediction pipeline.

Defines counters, gauges, and histograms for monitoring:
- Cache performance and sweeps
- Sports API traffic
- LLM usage and latency
- Generation run outcomes
- Scheduler status

Usage:
    from matchcast.observability.metrics import PREDICTIONS_GENERATED

    PREDICTIONS_GENERATED.labels(status="cached").inc()

Metrics are exposed via the /metrics endpoint of the API server.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry to avoid conflicts with the default registry
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS
# =============================================================================

CACHE_OPERATIONS = Counter(
    name="matchcast_cache_operations_total",
    documentation="Cache operations by category and outcome",
    labelnames=["category", "operation"],  # hit, miss, expired, set, error
    registry=REGISTRY,
)

CACHE_ENTRIES_SWEPT = Counter(
    name="matchcast_cache_entries_swept_total",
    documentation="Expired entries removed by the periodic sweep",
    registry=REGISTRY,
)

UPSTREAM_REQUESTS = Counter(
    name="matchcast_upstream_requests_total",
    documentation="Sports API requests by outcome",
    labelnames=["status"],  # success, rate_limited, restricted, unavailable, error
    registry=REGISTRY,
)

LLM_REQUESTS_TOTAL = Counter(
    name="matchcast_llm_requests_total",
    documentation="Total LLM API requests",
    labelnames=["provider", "status"],  # success, failed, timeout
    registry=REGISTRY,
)

LLM_TOKENS_TOTAL = Counter(
    name="matchcast_llm_tokens_total",
    documentation="Total LLM tokens used",
    labelnames=["provider", "type"],  # input, output
    registry=REGISTRY,
)

PREDICTIONS_GENERATED = Counter(
    name="matchcast_predictions_total",
    documentation="Fixtures processed by generation runs",
    labelnames=["status"],  # success, failed, cached, skipped
    registry=REGISTRY,
)

GENERATION_RUNS = Counter(
    name="matchcast_generation_runs_total",
    documentation="Generation runs by outcome",
    labelnames=["outcome"],  # completed, failed, rejected
    registry=REGISTRY,
)

# =============================================================================
# GAUGES
# =============================================================================

GENERATION_RUNNING = Gauge(
    name="matchcast_generation_running",
    documentation="1 while a generation run is active",
    registry=REGISTRY,
)

SCHEDULER_JOBS = Gauge(
    name="matchcast_scheduler_jobs",
    documentation="Number of scheduled jobs",
    labelnames=["status"],  # scheduled, paused
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS
# =============================================================================

LLM_REQUEST_DURATION = Histogram(
    name="matchcast_llm_request_duration_seconds",
    documentation="LLM request latency",
    labelnames=["provider"],
    buckets=(1.0, 5.0, 10.0, 20.0, 30.0, 60.0, 90.0, 120.0, float("inf")),
    registry=REGISTRY,
)

GENERATION_RUN_DURATION = Histogram(
    name="matchcast_generation_run_duration_seconds",
    documentation="Wall time of complete generation runs",
    buckets=(60.0, 300.0, 600.0, 1800.0, 3600.0, 7200.0, float("inf")),
    registry=REGISTRY,
)


def get_metrics_text() -> bytes:
    """Generate Prometheus metrics in text exposition format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Content-Type header value for the metrics response."""
    return CONTENT_TYPE_LATEST
