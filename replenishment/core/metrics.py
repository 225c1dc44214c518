"""Prometheus metrics for monitoring."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Coverage metrics
coverage_calculations_total = Counter(
    "coverage_calculations_total",
    "Total stock coverage calculations",
    ["status"],  # status: success, insufficient_data, failed
)

coverage_cache_requests_total = Counter(
    "coverage_cache_requests_total",
    "Coverage cache lookups",
    ["result"],  # result: hit, miss
)

coverage_calculation_duration_seconds = Histogram(
    "coverage_calculation_duration_seconds",
    "Coverage calculation latency in seconds (fetch + math)",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5],
)

# Purchase requirement metrics
purchase_calculations_total = Counter(
    "purchase_calculations_total",
    "Total purchase requirement calculations",
    ["method", "status"],  # method: RAPID, TIME_PHASED
)

purchase_batch_duration_seconds = Histogram(
    "purchase_batch_duration_seconds",
    "Purchase batch duration in seconds",
    ["method"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

batch_items_in_progress = Gauge(
    "batch_items_in_progress",
    "Number of SKUs currently being calculated by batch workers",
)

# Scheduler Job metrics
scheduler_jobs_total = Counter(
    "scheduler_jobs_total",
    "Total scheduled jobs executed",
    ["job_name", "status"],  # status: success, failed
)

# Error metrics
errors_total = Counter(
    "errors_total",
    "Total errors by type",
    ["error_type", "component"],
)


def record_error(error_type: str, component: str) -> None:
    """Record error occurrence.

    Args:
        error_type: Error code (INSUFFICIENT_DATA, BATCH_TIMEOUT, ...)
        component: Component where error occurred (coverage, purchase, batch, job)

    """
    errors_total.labels(error_type=error_type, component=component).inc()
