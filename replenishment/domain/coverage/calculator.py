"""Stock coverage calculator.

Orchestrates preprocessing, seasonality, trend and EWMA into a single
StockCoverageResult:

    demand_forecast = ewma_mean(deseasonalised) * trend_factor * seasonality[today]
    coverage_days   = available_stock / demand_forecast      (inf if no demand)
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from replenishment.core.logging import get_logger
from replenishment.domain.coverage.config import StockCoverageConfig
from replenishment.domain.coverage.preprocessor import DataPreprocessor
from replenishment.domain.coverage.seasonality import SeasonalityAdjuster
from replenishment.domain.coverage.trend import TrendAnalyzer
from replenishment.domain.coverage.types import (
    ALGORITHM_VERSION,
    CoverageInput,
    SeasonalityFactors,
    StockCoverageResult,
)
from replenishment.domain.coverage.weighted_average import WeightedMovingAverage
from replenishment.domain.errors import (
    CalculationError,
    CalculationFailedError,
    InsufficientDataError,
)
from replenishment.domain.risk import (
    coverage_days,
    stability_confidence,
    stockout_risk_for_coverage,
)

log = get_logger("replenishment.coverage.calculator")

# Trend corrections below this fit confidence are ignored
MIN_TREND_CONFIDENCE = 0.3


class StockCoverageCalculator:
    """Pure coverage forecasting for one SKU at a time."""

    def __init__(self, config: StockCoverageConfig | Mapping[str, Any] | None = None):
        """Validate configuration eagerly.

        Raises:
            InvalidConfigurationError: If ``config`` values are out of bounds.

        """
        if isinstance(config, StockCoverageConfig):
            self.config = config
        else:
            self.config = StockCoverageConfig.build(config)

        cfg = self.config
        self.preprocessor = DataPreprocessor(cfg)
        self.weighted_average = WeightedMovingAverage(cfg)
        self.seasonality = SeasonalityAdjuster(
            max_deviation=cfg.max_seasonal_deviation, enabled=cfg.enable_seasonality
        )
        self.trend = TrendAnalyzer(forecast_horizon=cfg.forecast_horizon)

    def calculate(self, data: CoverageInput) -> StockCoverageResult:
        """Forecast demand and coverage for one product.

        Args:
            data: Product, raw history and the date to forecast from

        Returns:
            StockCoverageResult valid for cache_ttl_seconds

        Raises:
            InsufficientDataError: Product missing or history too short
            CalculationFailedError: Forecast arithmetic produced a non-finite value

        """
        cfg = self.config
        product = data.product
        if product is None:
            raise InsufficientDataError("Product not found", details={"reason": "no_product"})

        points = self.preprocessor.preprocess(
            data.sales_history, data.stock_availability, data.current_date
        )
        quality = self.preprocessor.calculate_data_quality(points)

        if cfg.holidays:
            points = self.seasonality.adjust_for_holidays(points, cfg.holidays)

        factors = (
            self.seasonality.calculate_factors(points)
            if cfg.enable_seasonality
            else SeasonalityFactors.neutral()
        )
        baseline = self.seasonality.deseasonalize(points, factors)
        trend = self.trend.analyze(baseline)

        if cfg.enable_adaptive_weighting:
            average = self.weighted_average.calculate_adaptive(baseline)
        else:
            average = self.weighted_average.calculate(baseline)

        trend_factor = (
            trend.trend_factor
            if cfg.enable_trend_correction and trend.confidence > MIN_TREND_CONFIDENCE
            else 1.0
        )
        seasonality_index = factors.for_date(data.current_date)

        demand_forecast = average.mean * trend_factor * seasonality_index
        demand_std_dev = average.standard_deviation * trend_factor * seasonality_index
        _require_finite(product.sku, demand_forecast=demand_forecast, demand_std_dev=demand_std_dev)

        available = product.available_stock
        days = coverage_days(available, demand_forecast)
        infinite = math.isinf(days)
        # High demand tail gives the pessimistic (P10) coverage
        p10 = coverage_days(available, demand_forecast + demand_std_dev)
        p90 = coverage_days(available, demand_forecast - demand_std_dev)

        confidence = stability_confidence(
            quality.overall_score, average.coefficient_of_variation, trend_factor
        )

        calculated_at = data.calculated_at or datetime.now(timezone.utc)
        result = StockCoverageResult(
            sku=product.sku,
            coverage_days=days,
            coverage_days_p10=p10,
            coverage_days_p90=p90,
            infinite_coverage=infinite,
            available_stock=available,
            demand_forecast=demand_forecast,
            demand_std_dev=demand_std_dev,
            adjusted_demand=average.mean,
            trend_factor=trend_factor,
            trend_direction=trend.direction if trend_factor != 1.0 else "FLAT",
            seasonality_index=seasonality_index,
            availability_adjustment=sum(p.availability_factor for p in points) / len(points),
            confidence=confidence,
            data_quality=quality,
            reorder_point=demand_forecast * product.lead_time_days,
            reorder_quantity=demand_forecast * cfg.target_coverage_days,
            stockout_risk=stockout_risk_for_coverage(days),
            historical_days_used=len(points),
            algorithm=ALGORITHM_VERSION,
            calculated_at=calculated_at,
            expires_at=calculated_at + timedelta(seconds=cfg.cache_ttl_seconds),
        )

        log.debug(
            "coverage_calculated",
            extra={
                "sku": product.sku,
                "coverage_days": None if infinite else round(days, 2),
                "demand_forecast": round(demand_forecast, 4),
                "confidence": round(confidence, 3),
            },
        )
        return result

    def calculate_many(
        self, inputs: Iterable[CoverageInput]
    ) -> tuple[dict[str, StockCoverageResult], dict[str, CalculationError]]:
        """Calculate several products, isolating per-product failures."""
        results: dict[str, StockCoverageResult] = {}
        errors: dict[str, CalculationError] = {}
        for data in inputs:
            sku = data.product.sku if data.product else "<unknown>"
            try:
                results[sku] = self.calculate(data)
            except CalculationError as e:
                log.warning("coverage_failed", extra={"sku": sku, "code": e.code})
                errors[sku] = e
        return results, errors


def _require_finite(sku: str, **values: float) -> None:
    bad = {name: value for name, value in values.items() if not math.isfinite(value)}
    if bad:
        raise CalculationFailedError(
            "Demand forecast is not a finite number",
            details={"sku": sku, **{k: str(v) for k, v in bad.items()}},
        )
