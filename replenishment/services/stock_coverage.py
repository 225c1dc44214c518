"""Stock coverage service: cache-first coverage calculation per SKU.

Flow for calculate_coverage:
1. Serve from cache when allowed and not expired
2. Load product + history window from the repository
3. Calculate, persist the result, then cache it with the configured TTL
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from replenishment.cache.coverage_cache import CoverageCache
from replenishment.core.logging import get_logger
from replenishment.core.metrics import (
    coverage_cache_requests_total,
    coverage_calculation_duration_seconds,
    coverage_calculations_total,
    record_error,
)
from replenishment.db.repository import HistoryRepository
from replenishment.domain.coverage.calculator import StockCoverageCalculator
from replenishment.domain.coverage.config import StockCoverageConfig
from replenishment.domain.coverage.types import (
    CoverageInput,
    RawAvailabilityRecord,
    RawSalesRecord,
    StockCoverageResult,
)
from replenishment.domain.errors import CalculationError, InsufficientDataError
from replenishment.domain.purchase.config import ProductFilters
from replenishment.services.batch import BatchOutcome, run_bounded

log = get_logger("replenishment.services.coverage")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StockCoverageService:
    """Coverage calculation with injected repository and cache."""

    def __init__(
        self,
        repository: HistoryRepository,
        cache: CoverageCache,
        config: StockCoverageConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.cache = cache
        self.calculator = StockCoverageCalculator(config)
        self.config = self.calculator.config
        self._clock = clock

    async def calculate_coverage(self, sku: str, use_cache: bool = True) -> StockCoverageResult:
        """Coverage for one SKU, served from cache when fresh.

        Args:
            sku: Product SKU
            use_cache: Skip the cache read when False (result is still cached)

        Returns:
            StockCoverageResult

        Raises:
            InsufficientDataError: Unknown product or too little history
            CalculationFailedError: Non-finite forecast

        """
        now = self._clock()

        if use_cache:
            cached = await self.cache.get(sku)
            if cached is not None and not cached.is_expired(now):
                coverage_cache_requests_total.labels(result="hit").inc()
                return cached
            coverage_cache_requests_total.labels(result="miss").inc()

        started = time.perf_counter()
        try:
            result = await self._calculate(sku, now)
        except InsufficientDataError as e:
            coverage_calculations_total.labels(status="insufficient_data").inc()
            record_error(e.code, "coverage")
            log.info("coverage_insufficient_data", extra={"sku": sku, "details": e.details})
            raise
        except CalculationError as e:
            coverage_calculations_total.labels(status="failed").inc()
            record_error(e.code, "coverage")
            log.warning("coverage_failed", extra={"sku": sku, "code": e.code})
            raise
        finally:
            coverage_calculation_duration_seconds.observe(time.perf_counter() - started)

        coverage_calculations_total.labels(status="success").inc()
        await self.repository.save_coverage(result)
        await self.cache.set(sku, result, self.config.cache_ttl_seconds)
        return result

    async def _calculate(self, sku: str, now: datetime) -> StockCoverageResult:
        product = await self.repository.get_product(sku)
        if product is None:
            raise InsufficientDataError(
                f"Product {sku} not found", details={"sku": sku, "reason": "no_product"}
            )

        history = await self.repository.get_history(sku, self.config.historical_days, now.date())
        return self.calculator.calculate(
            CoverageInput(
                product=product,
                sales_history=history.sales,
                stock_availability=history.availability,
                current_date=now.date(),
                calculated_at=now,
            )
        )

    async def calculate_batch_coverage(
        self,
        skus: Sequence[str],
        max_concurrency: int = 5,
        use_cache: bool = True,
    ) -> BatchOutcome[StockCoverageResult]:
        """Coverage for many SKUs with bounded concurrency and per-SKU errors."""
        return await run_bounded(
            list(dict.fromkeys(skus)),
            lambda sku: self.calculate_coverage(sku, use_cache=use_cache),
            max_concurrency=max_concurrency,
        )

    async def record_sales(
        self,
        sku: str,
        sales: RawSalesRecord | None = None,
        availability: RawAvailabilityRecord | None = None,
        recalculate: bool = True,
    ) -> StockCoverageResult | None:
        """Record new daily facts, invalidate the cached result and optionally recalculate."""
        if sales is not None:
            await self.repository.upsert_sales(sku, sales)
        if availability is not None:
            await self.repository.upsert_availability(sku, availability)

        await self.cache.invalidate(sku)
        log.info(
            "coverage_facts_recorded",
            extra={
                "sku": sku,
                "sales": sales is not None,
                "availability": availability is not None,
            },
        )

        if not recalculate:
            return None
        return await self.calculate_coverage(sku, use_cache=False)

    async def invalidate(self, sku: str | None = None) -> None:
        """Drop one SKU (or every SKU) from the cache."""
        if sku is None:
            await self.cache.invalidate_all()
        else:
            await self.cache.invalidate(sku)

    async def get_stockout_risk_products(
        self,
        filters: ProductFilters | None = None,
        threshold: float = 0.5,
        max_concurrency: int = 5,
    ) -> list[StockCoverageResult]:
        """Coverage results with stockout_risk >= threshold, riskiest first.

        SKUs whose coverage cannot be calculated are skipped and logged.
        """
        products = await self.repository.get_products_by_filter(filters or ProductFilters())
        outcome = await self.calculate_batch_coverage(
            [p.sku for p in products], max_concurrency=max_concurrency
        )
        if outcome.errors:
            log.info(
                "stockout_risk_scan_skipped",
                extra={"skus": sorted(outcome.errors), "count": len(outcome.errors)},
            )
        at_risk = [r for r in outcome.results.values() if r.stockout_risk >= threshold]
        return sorted(at_risk, key=lambda r: (-r.stockout_risk, r.coverage_days, r.sku))
