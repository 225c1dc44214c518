"""Day-of-week (and optional monthly/holiday) seasonality.

Factors are multiplicative: 1.2 on Friday means Fridays sell 20% above the
weekly average. Factors are computed from weighted, outlier-free adjusted
demand and tapered logarithmically beyond +/- max_deviation.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date

from replenishment.domain.coverage.types import (
    ProcessedDataPoint,
    SeasonalityFactors,
    WeeklyPattern,
)

MIN_POINTS_WEEKLY = 14
MIN_POINTS_MONTHLY = 90
WEEKLY_PATTERN_CV = 0.15
PEAK_THRESHOLD = 0.10
HOLIDAY_RATIO_THRESHOLD = 1.2
TAPER_RATE = 0.1
MIN_FACTOR = 0.01


class SeasonalityAdjuster:
    """Computes, applies and removes seasonal factors."""

    def __init__(self, max_deviation: float = 0.5, enabled: bool = True):
        self.max_deviation = max_deviation
        self.enabled = enabled

    def calculate_factors(
        self, points: Sequence[ProcessedDataPoint], smooth: bool = True
    ) -> SeasonalityFactors:
        """Weekday factors normalized so that their mean is 1.0 before smoothing.

        Returns neutral factors when disabled, when fewer than 14 points are
        available, or when there is no demand at all.
        """
        if not self.enabled or len(points) < MIN_POINTS_WEEKLY:
            return SeasonalityFactors.neutral()

        means = _weighted_group_means(points, key=lambda p: p.day_of_week)
        if not means:
            return SeasonalityFactors.neutral()

        overall = sum(means.values()) / len(means)
        if overall <= 0:
            return SeasonalityFactors.neutral()

        factors = tuple(means[dow] / overall if dow in means else 1.0 for dow in range(7))
        if smooth:
            factors = tuple(self.smooth_factor(f) for f in factors)
        return SeasonalityFactors(factors)

    def smooth_factor(self, factor: float) -> float:
        """Log taper beyond [1 - d, 1 + d]; values inside the band are untouched."""
        upper = 1 + self.max_deviation
        lower = 1 - self.max_deviation
        if lower <= factor <= upper:
            return factor
        if factor <= 0:
            return MIN_FACTOR
        bound = upper if factor > upper else lower
        return max(bound * (1 + math.log(factor / bound) * TAPER_RATE), MIN_FACTOR)

    def apply(self, base_demand: float, d: date, factors: SeasonalityFactors) -> float:
        return base_demand * factors.for_date(d)

    def deseasonalize(
        self, points: Sequence[ProcessedDataPoint], factors: SeasonalityFactors
    ) -> list[ProcessedDataPoint]:
        """Divide adjusted demand by its weekday factor."""
        result = []
        for p in points:
            f = factors.for_day(p.day_of_week)
            result.append(replace(p, adjusted_demand=p.adjusted_demand / f) if f > 0 else p)
        return result

    def detect_weekly_pattern(self, factors: SeasonalityFactors) -> WeeklyPattern:
        """Weekly pattern exists when factor CV > 0.15; peaks/lows beyond +/-10%."""
        mean = factors.mean
        cv = statistics.pstdev(factors.factors) / mean if mean > 0 else 0.0
        return WeeklyPattern(
            has_weekly_pattern=cv > WEEKLY_PATTERN_CV,
            strength=cv,
            peak_days=tuple(
                dow for dow, f in enumerate(factors.factors) if f > 1 + PEAK_THRESHOLD
            ),
            low_days=tuple(dow for dow, f in enumerate(factors.factors) if f < 1 - PEAK_THRESHOLD),
        )

    def adjust_for_holidays(
        self, points: Sequence[ProcessedDataPoint], holidays: Iterable[date]
    ) -> list[ProcessedDataPoint]:
        """Scale holiday spikes down so they do not leak into weekday factors."""
        holiday_set = set(holidays)
        if not holiday_set:
            return list(points)

        on_holiday = [p.adjusted_demand for p in points if p.date in holiday_set]
        regular = [p.adjusted_demand for p in points if p.date not in holiday_set]
        if not on_holiday or not regular:
            return list(points)

        regular_mean = sum(regular) / len(regular)
        if regular_mean <= 0:
            return list(points)

        ratio = (sum(on_holiday) / len(on_holiday)) / regular_mean
        if ratio <= HOLIDAY_RATIO_THRESHOLD:
            return list(points)

        return [
            replace(p, adjusted_demand=p.adjusted_demand / ratio) if p.date in holiday_set else p
            for p in points
        ]

    def calculate_monthly_factors(self, points: Sequence[ProcessedDataPoint]) -> dict[int, float]:
        """Month-of-year factors (1..12); neutral below 90 points."""
        neutral = {month: 1.0 for month in range(1, 13)}
        if not self.enabled or len(points) < MIN_POINTS_MONTHLY:
            return neutral

        means = _weighted_group_means(points, key=lambda p: p.date.month)
        if not means:
            return neutral
        overall = sum(means.values()) / len(means)
        if overall <= 0:
            return neutral
        return {month: means[month] / overall if month in means else 1.0 for month in neutral}


def _weighted_group_means(points, key) -> dict[int, float]:
    sums: dict[int, float] = {}
    weights: dict[int, float] = {}
    for p in points:
        if p.adjusted_demand <= 0 or p.is_outlier or p.weight <= 0:
            continue
        k = key(p)
        sums[k] = sums.get(k, 0.0) + p.adjusted_demand * p.weight
        weights[k] = weights.get(k, 0.0) + p.weight
    return {k: sums[k] / weights[k] for k in sums if weights[k] > 0}
