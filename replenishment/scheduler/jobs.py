"""Scheduled jobs for coverage maintenance.

Jobs:
- recalculate_stale_coverage: Recalculate SKUs whose persisted coverage is missing or old
- cleanup_expired_coverage: Delete expired coverage rows

All jobs are idempotent and can be run multiple times safely.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

from replenishment.core.config import get_settings
from replenishment.core.logging import get_logger, set_batch_id, setup_logging
from replenishment.core.metrics import scheduler_jobs_total
from replenishment.db.repository import HistoryRepository
from replenishment.domain.purchase.config import ProductFilters
from replenishment.services.factory import build_services
from replenishment.services.stock_coverage import StockCoverageService, utc_now

log = get_logger("replenishment.scheduler")


async def recalculate_stale_coverage(
    service: StockCoverageService,
    repository: HistoryRepository,
    filters: ProductFilters | None = None,
    max_age_hours: int | None = None,
    max_concurrency: int | None = None,
    now: datetime | None = None,
) -> dict[str, int]:
    """Recalculate coverage older than ``max_age_hours`` (or never calculated).

    Args:
        service: Coverage service used for recalculation
        repository: Source of products and persisted coverage
        filters: Product universe (default: all active products)
        max_age_hours: Staleness cut-off (default from settings)
        max_concurrency: Parallel SKUs (default from settings)
        now: Reference time (default: current UTC time)

    Returns:
        Dict with stats (checked, stale, recalculated, failed)

    """
    settings = get_settings()
    if max_age_hours is None:
        max_age_hours = settings.coverage_stale_after_hours
    max_concurrency = max_concurrency or settings.purchase_max_concurrency
    now = now or utc_now()
    cutoff = now - timedelta(hours=max_age_hours)
    set_batch_id()

    log.info("coverage_recalc_started", extra={"cutoff": cutoff.isoformat()})

    try:
        products = await repository.get_products_by_filter(filters or ProductFilters())
        stale = []
        for product in products:
            latest = await repository.get_latest_coverage(product.sku)
            if latest is None or latest.calculated_at <= cutoff:
                stale.append(product.sku)

        outcome = await service.calculate_batch_coverage(
            stale, max_concurrency=max_concurrency, use_cache=False
        )
    except Exception:
        scheduler_jobs_total.labels(job_name="recalculate_stale_coverage", status="failed").inc()
        log.exception("coverage_recalc_failed")
        raise

    stats = {
        "checked": len(products),
        "stale": len(stale),
        "recalculated": len(outcome.results),
        "failed": len(outcome.errors),
    }
    scheduler_jobs_total.labels(job_name="recalculate_stale_coverage", status="success").inc()
    log.info("coverage_recalc_completed", extra={"stats": stats})
    return stats


async def cleanup_expired_coverage(
    repository: HistoryRepository, now: datetime | None = None
) -> int:
    """Delete persisted coverage rows that have expired.

    Returns:
        Number of rows deleted

    """
    try:
        deleted = await repository.delete_expired_coverages(now or utc_now())
    except Exception:
        scheduler_jobs_total.labels(job_name="cleanup_expired_coverage", status="failed").inc()
        log.exception("coverage_cleanup_failed")
        raise

    scheduler_jobs_total.labels(job_name="cleanup_expired_coverage", status="success").inc()
    return deleted


async def run_maintenance() -> dict[str, int]:
    """Recalculate stale coverage, then clean up, using settings-wired services."""
    services = build_services()
    stats = await recalculate_stale_coverage(services.coverage, services.repository)
    stats["deleted"] = await cleanup_expired_coverage(services.repository)
    return stats


def main() -> None:
    settings = get_settings()
    setup_logging(level=settings.log_level, file_path=settings.log_file_path)
    asyncio.run(run_maintenance())


if __name__ == "__main__":
    main()
