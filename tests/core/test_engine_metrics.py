"""Tests for Prometheus metrics emitted by the engine."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY, generate_latest

from replenishment.cache.coverage_cache import InMemoryCoverageCache
from replenishment.core.metrics import record_error
from replenishment.domain.coverage.types import Product
from replenishment.services.batch import run_bounded
from replenishment.services.stock_coverage import StockCoverageService


def sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_metrics_registered():
    """Engine metrics are exposed in the default registry."""
    content = generate_latest().decode()

    assert "coverage_calculations_total" in content
    assert "purchase_batch_duration_seconds" in content
    assert "batch_items_in_progress" in content
    assert "scheduler_jobs_total" in content


def test_record_error_increments():
    before = sample("errors_total", error_type="TEST_ERROR", component="tests")
    record_error("TEST_ERROR", "tests")
    assert sample("errors_total", error_type="TEST_ERROR", component="tests") == before + 1


@pytest.mark.asyncio
async def test_cache_hit_and_miss_counted(fake_repository, clock, today, sales_series):
    fake_repository.add_product(Product(sku="M-1", current_stock=10), sales_series(today, 30, 1.0))
    service = StockCoverageService(fake_repository, InMemoryCoverageCache(), clock=clock)
    hits = sample("coverage_cache_requests_total", result="hit")
    misses = sample("coverage_cache_requests_total", result="miss")
    successes = sample("coverage_calculations_total", status="success")

    await service.calculate_coverage("M-1")
    await service.calculate_coverage("M-1")

    assert sample("coverage_cache_requests_total", result="miss") == misses + 1
    assert sample("coverage_cache_requests_total", result="hit") == hits + 1
    assert sample("coverage_calculations_total", status="success") == successes + 1


@pytest.mark.asyncio
async def test_in_progress_gauge_covers_any_batch():
    """The gauge counts items of every batch kind and drains back afterwards."""
    before = sample("batch_items_in_progress")
    seen = []

    async def worker(sku):
        seen.append(sample("batch_items_in_progress"))
        return sku

    await run_bounded(["A", "B"], worker, max_concurrency=1)

    assert seen == [before + 1, before + 1]
    assert sample("batch_items_in_progress") == before
    assert REGISTRY.get_sample_value("purchase_batch_items_in_progress") is None
