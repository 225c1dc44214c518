"""Turn raw sales and availability facts into a clean daily demand series.

Pipeline per SKU:
1. Expand the window to one point per calendar day (missing day = zero sales,
   full availability)
2. Scale sales up for partial-day availability, bounded by a floor
3. Optionally impute days with severe stockouts from the same weekday
4. Flag outliers against a trailing robust band (median, MAD)
5. Attach exponential time-decay weights
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable
from datetime import date, timedelta

from replenishment.core.logging import get_logger
from replenishment.domain.coverage.config import StockCoverageConfig
from replenishment.domain.coverage.types import (
    MINUTES_PER_DAY,
    DataQualityScore,
    ProcessedDataPoint,
    RawAvailabilityRecord,
    RawSalesRecord,
    day_of_week,
)
from replenishment.domain.errors import InsufficientDataError

log = get_logger("replenishment.coverage.preprocessor")

# Points needed in a trailing window before outlier bands are trusted
MIN_OUTLIER_SAMPLE = 7
IMPUTATION_LOOKBACK_DAYS = 28


def availability_factor(minutes_in_stock: float) -> float:
    """Share of the day the SKU was in stock, clamped to [0, 1]."""
    return min(max(minutes_in_stock / MINUTES_PER_DAY, 0.0), 1.0)


def decay_weight(days_ago: int, half_life: float) -> float:
    """Exponential decay: a point half_life days old counts half."""
    return 0.5 ** (days_ago / half_life)


def robust_spread(values: list[float]) -> tuple[float, float]:
    """Return (median, spread) where spread is the MAD or mean absolute deviation.

    The mean absolute deviation is used when more than half the values sit
    exactly on the median, which would otherwise yield a zero MAD.
    """
    median = statistics.median(values)
    deviations = [abs(v - median) for v in values]
    mad = statistics.median(deviations)
    if mad > 0:
        return median, mad
    return median, sum(deviations) / len(deviations)


class DataPreprocessor:
    """Normalizes raw history into ProcessedDataPoint series."""

    def __init__(self, config: StockCoverageConfig):
        self.config = config

    def preprocess(
        self,
        sales: Iterable[RawSalesRecord],
        availability: Iterable[RawAvailabilityRecord],
        current_date: date,
    ) -> list[ProcessedDataPoint]:
        """Build one processed point per day of the history window.

        Args:
            sales: Sales facts (days outside the window are ignored)
            availability: Availability facts (missing day = fully in stock)
            current_date: Last day of the window, inclusive

        Returns:
            Points ordered by date, oldest first

        Raises:
            InsufficientDataError: Fewer than min_history_days days carry a sales record

        """
        cfg = self.config
        start = current_date - timedelta(days=cfg.historical_days - 1)

        units_by_day: dict[date, float] = {}
        promo_days: set[date] = set()
        for rec in sales:
            if not start <= rec.date <= current_date:
                continue
            units_by_day[rec.date] = units_by_day.get(rec.date, 0.0) + max(rec.units_sold, 0.0)
            if rec.promotion_flag:
                promo_days.add(rec.date)

        if len(units_by_day) < cfg.min_history_days:
            raise InsufficientDataError(
                "Not enough sales history to forecast demand",
                details={
                    "days_with_sales": len(units_by_day),
                    "required": cfg.min_history_days,
                    "window_days": cfg.historical_days,
                },
            )

        minutes_by_day: dict[date, float] = {}
        for rec in availability:
            if start <= rec.date <= current_date:
                minutes_by_day[rec.date] = rec.minutes_in_stock

        days = [start + timedelta(days=i) for i in range(cfg.historical_days)]
        raw = [units_by_day.get(d, 0.0) for d in days]
        factors = [availability_factor(minutes_by_day.get(d, MINUTES_PER_DAY)) for d in days]
        adjusted = [
            r / max(af, cfg.min_availability_factor) for r, af in zip(raw, factors, strict=True)
        ]

        if cfg.impute_severe_stockouts:
            adjusted = self._impute_stockouts(days, adjusted, factors)

        outliers = self._flag_outliers(raw)

        points = [
            ProcessedDataPoint(
                date=d,
                day_of_week=day_of_week(d),
                raw_demand=raw[i],
                adjusted_demand=adjusted[i],
                availability_factor=factors[i],
                is_outlier=outliers[i],
                is_promotion=d in promo_days,
                weight=decay_weight((current_date - d).days, cfg.half_life),
            )
            for i, d in enumerate(days)
        ]

        log.debug(
            "history_preprocessed",
            extra={
                "days": len(points),
                "days_with_sales": len(units_by_day),
                "outliers": sum(outliers),
            },
        )
        return points

    def _impute_stockouts(
        self, days: list[date], adjusted: list[float], factors: list[float]
    ) -> list[float]:
        """Replace demand on severe-stockout days with same-weekday history."""
        floor = self.config.min_availability_factor
        result = list(adjusted)
        for i, af in enumerate(factors):
            if af >= floor:
                continue
            same_weekday = [
                result[j]
                for j in range(i - 7, max(i - IMPUTATION_LOOKBACK_DAYS, 0) - 1, -7)
                if j >= 0 and factors[j] >= floor
            ]
            if same_weekday:
                result[i] = sum(same_weekday) / len(same_weekday)
                continue
            trailing = [
                result[j]
                for j in range(max(i - IMPUTATION_LOOKBACK_DAYS, 0), i)
                if factors[j] >= floor
            ]
            if trailing:
                result[i] = statistics.median(trailing)
        return result

    def _flag_outliers(self, raw: list[float]) -> list[bool]:
        """Flag sales days outside median +/- k * spread of the trailing window.

        Zero-sales days are never flagged. Band statistics come from the
        positive-sales days in the window so sparse sellers are not flagged
        on every sale.
        """
        k = self.config.outlier_cap_multiplier
        flags = [False] * len(raw)
        if k == 0:
            return flags

        window = self.config.outlier_window_days
        for i, value in enumerate(raw):
            if value <= 0:
                continue
            sample = [v for v in raw[max(0, i - window + 1) : i + 1] if v > 0]
            if len(sample) < MIN_OUTLIER_SAMPLE:
                continue
            median, spread = robust_spread(sample)
            if spread > 0 and abs(value - median) > k * spread:
                flags[i] = True
        return flags

    def calculate_data_quality(self, points: list[ProcessedDataPoint]) -> DataQualityScore:
        """Score completeness, consistency, availability and outliers of a series."""
        n = len(points)
        if n == 0:
            return DataQualityScore(
                completeness=0.0,
                consistency=0.0,
                availability_issues=0.0,
                outlier_percentage=0.0,
                overall_score=0.0,
            )

        completeness = sum(1 for p in points if p.raw_demand > 0) / n

        clean = [p.adjusted_demand for p in points if not p.is_outlier]
        consistency = 0.0
        if clean:
            mean = sum(clean) / len(clean)
            if mean > 0:
                cv = statistics.pstdev(clean) / mean
                consistency = max(0.0, 1.0 - cv)

        floor = self.config.min_availability_factor
        availability_issues = sum(1 for p in points if p.availability_factor < floor) / n
        outlier_percentage = sum(1 for p in points if p.is_outlier) / n

        overall = (
            0.3 * completeness
            + 0.3 * consistency
            + 0.2 * (1 - availability_issues)
            + 0.2 * (1 - outlier_percentage)
        )

        return DataQualityScore(
            completeness=completeness,
            consistency=consistency,
            availability_issues=availability_issues,
            outlier_percentage=outlier_percentage,
            overall_score=min(max(overall, 0.0), 1.0),
        )
