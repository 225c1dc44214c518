"""Purchase requirement service: single-SKU, batch and scenario runs.

Per SKU: coverage (cache-first) + open orders -> PurchaseRequirementCalculator.
Batches resolve the product universe from filters, fan out with bounded
concurrency, isolate per-SKU failures and roll results up by supplier and
warehouse. Output order is by SKU regardless of completion order.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from datetime import datetime

from replenishment.core.logging import get_logger, set_batch_id
from replenishment.core.metrics import (
    purchase_batch_duration_seconds,
    purchase_calculations_total,
    record_error,
)
from replenishment.db.repository import HistoryRepository
from replenishment.domain.coverage.types import Product, StockCoverageResult
from replenishment.domain.errors import CalculationError, NoProductsFoundError
from replenishment.domain.purchase.aggregation import (
    aggregate_by_supplier,
    aggregate_by_warehouse,
)
from replenishment.domain.purchase.calculator import PurchaseRequirementCalculator
from replenishment.domain.purchase.config import (
    ProductFilters,
    PurchaseRequirementConfig,
    PurchaseScenario,
)
from replenishment.domain.purchase.types import (
    BatchError,
    PurchaseBatchResult,
    PurchaseRequirementInput,
    PurchaseRequirementResult,
)
from replenishment.services.batch import run_bounded
from replenishment.services.stock_coverage import StockCoverageService, utc_now

log = get_logger("replenishment.services.purchase")


def baseline_std_dev(coverage: StockCoverageResult) -> float:
    """Demand std dev with trend and weekday scaling removed."""
    scale = coverage.trend_factor * coverage.seasonality_index
    return coverage.demand_std_dev / scale if scale > 0 else coverage.demand_std_dev


class PurchaseRequirementService:
    """Turns coverage forecasts into purchase recommendations."""

    def __init__(
        self,
        repository: HistoryRepository,
        coverage_service: StockCoverageService,
        config: PurchaseRequirementConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.coverage_service = coverage_service
        self.config = config or PurchaseRequirementConfig()
        self._clock = clock

    async def calculate_purchase_requirement(
        self, sku: str, config: PurchaseRequirementConfig | None = None
    ) -> PurchaseRequirementResult:
        """Recommendation for one SKU.

        Raises:
            NoProductsFoundError: SKU is not in the catalogue
            InsufficientDataError: Coverage cannot be forecast

        """
        cfg = config or self.config
        product = await self.repository.get_product(sku)
        if product is None:
            raise NoProductsFoundError(f"Product {sku} not found", details={"sku": sku})
        return await self._calculate_for_product(product, PurchaseRequirementCalculator(cfg))

    async def _calculate_for_product(
        self, product: Product, calculator: PurchaseRequirementCalculator
    ) -> PurchaseRequirementResult:
        method = calculator.config.method
        try:
            coverage = await self.coverage_service.calculate_coverage(product.sku)
            open_orders = await self.repository.get_open_orders(product.sku)
            result = calculator.calculate(
                PurchaseRequirementInput(
                    product=product,
                    daily_demand=coverage.adjusted_demand,
                    demand_std_dev=baseline_std_dev(coverage),
                    trend_factor=coverage.trend_factor,
                    seasonality_index=coverage.seasonality_index,
                    open_orders=open_orders,
                    coverage_confidence=coverage.confidence,
                    today=self._clock().date(),
                )
            )
        except CalculationError as e:
            purchase_calculations_total.labels(method=method, status="failed").inc()
            record_error(e.code, "purchase")
            raise
        purchase_calculations_total.labels(method=method, status="success").inc()
        return result

    async def calculate_batch(
        self,
        filters: ProductFilters | None = None,
        config: PurchaseRequirementConfig | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PurchaseBatchResult:
        """Recommendations for every product matching ``filters``.

        Args:
            filters: Product universe (default: config.filters)
            config: Run configuration (default: service config)
            cancel_event: Set to stop dispatching and abandon in-flight SKUs

        Returns:
            PurchaseBatchResult; an empty universe gives an empty result

        """
        cfg = config or self.config
        scope = filters if filters is not None else cfg.filters
        calculator = PurchaseRequirementCalculator(cfg)
        set_batch_id()
        started = time.perf_counter()

        products = await self.repository.get_products_by_filter(scope)
        log.info(
            "purchase_batch_started",
            extra={"products": len(products), "method": cfg.method},
        )
        if not products:
            log.info("purchase_batch_empty", extra={"filters": scope.model_dump()})
            return self._build_batch_result(cfg, [], {}, 0, started)

        by_sku = {p.sku: p for p in products}
        outcome = await run_bounded(
            sorted(by_sku),
            lambda sku: self._calculate_for_product(by_sku[sku], calculator),
            max_concurrency=cfg.max_concurrency if cfg.enable_parallel else 1,
            timeout=cfg.timeout_seconds,
            cancel_event=cancel_event,
        )

        result = self._build_batch_result(
            cfg,
            [outcome.results[sku] for sku in sorted(outcome.results)],
            outcome.errors,
            len(by_sku),
            started,
            timed_out=outcome.timed_out,
            cancelled=outcome.cancelled,
        )
        purchase_batch_duration_seconds.labels(method=cfg.method).observe(
            time.perf_counter() - started
        )
        log.info(
            "purchase_batch_completed",
            extra={
                "total": result.total_products,
                "needing_order": result.products_needing_order,
                "errors": len(result.errors),
                "investment": round(result.total_investment, 2),
                "elapsed_ms": round(result.calculation_time_ms, 1),
            },
        )
        return result

    def _build_batch_result(
        self,
        cfg: PurchaseRequirementConfig,
        results: list[PurchaseRequirementResult],
        errors: dict[str, CalculationError],
        total_products: int,
        started: float,
        timed_out: bool = False,
        cancelled: bool = False,
    ) -> PurchaseBatchResult:
        needing = [r for r in results if r.suggested_quantity > 0]
        shown = needing if cfg.show_only_needed else results

        return PurchaseBatchResult(
            total_products=total_products,
            products_needing_order=len(needing),
            total_investment=sum(r.estimated_investment for r in needing),
            method=cfg.method,
            products=shown,
            by_supplier=aggregate_by_supplier(shown),
            by_warehouse=aggregate_by_warehouse(shown),
            errors=[
                BatchError(sku=sku, error=errors[sku].message, code=errors[sku].code)
                for sku in sorted(errors)
            ],
            calculation_time_ms=(time.perf_counter() - started) * 1000,
            timed_out=timed_out,
            cancelled=cancelled,
            config=cfg,
            timestamp=self._clock(),
        )

    async def simulate_scenarios(
        self,
        scenarios: Iterable[PurchaseScenario],
        filters: ProductFilters | None = None,
    ) -> dict[str, PurchaseBatchResult]:
        """Run one batch per scenario, each a variant of the service config.

        Scenarios run one after another; coverage comes from the cache after
        the first run.
        """
        results: dict[str, PurchaseBatchResult] = {}
        for scenario in scenarios:
            cfg = self.config.with_overrides(**scenario.overrides())
            log.info("purchase_scenario_started", extra={"scenario": scenario.name})
            results[scenario.name] = await self.calculate_batch(filters=filters, config=cfg)
        return results
