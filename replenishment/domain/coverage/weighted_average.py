"""Exponentially weighted demand statistics."""

from __future__ import annotations

import math
import statistics
from collections.abc import Sequence
from datetime import date

from replenishment.domain.coverage.config import StockCoverageConfig
from replenishment.domain.coverage.types import ProcessedDataPoint, WeightedAverageResult

Z_SCORES = {0.90: 1.645, 0.95: 1.96, 0.99: 2.576}
PROMOTION_DISCOUNT = 0.8
MIN_AVAILABILITY_WEIGHT = 0.5
ADAPTIVE_RECENT_DAYS = 14
ADAPTIVE_BOOST = 1.3
ADAPTIVE_DAMPEN = 0.7


class WeightedMovingAverage:
    """EWMA mean/variance of adjusted demand with effective sample size."""

    def __init__(self, config: StockCoverageConfig):
        self.config = config

    @property
    def excludes_outliers(self) -> bool:
        return self.config.outlier_cap_multiplier > 0

    def point_weight(self, point: ProcessedDataPoint, latest: date) -> float:
        """Decay x availability x promotion weight relative to ``latest``."""
        days_ago = (latest - point.date).days
        weight = 0.5 ** (days_ago / self.config.half_life)
        weight *= max(MIN_AVAILABILITY_WEIGHT, point.availability_factor)
        if self.config.enable_promotion_adjustment and point.is_promotion:
            weight *= PROMOTION_DISCOUNT
        return weight

    def compute_weights(self, points: Sequence[ProcessedDataPoint]) -> list[float]:
        if not points:
            return []
        latest = max(p.date for p in points)
        return [self.point_weight(p, latest) for p in points]

    def calculate(
        self,
        points: Sequence[ProcessedDataPoint],
        weights: Sequence[float] | None = None,
    ) -> WeightedAverageResult:
        """Weighted mean, variance and effective sample count of adjusted demand.

        Args:
            points: Processed series
            weights: Optional weights aligned with ``points`` (default: point_weight)

        Returns:
            WeightedAverageResult (all zeros when nothing is usable)

        """
        if weights is None:
            weights = self.compute_weights(points)

        pairs = [
            (p.adjusted_demand, w)
            for p, w in zip(points, weights, strict=True)
            if w > 0 and not (self.excludes_outliers and p.is_outlier)
        ]
        return _weighted_stats(pairs)

    def confidence_interval(
        self, result: WeightedAverageResult, level: float | None = None
    ) -> tuple[float, float]:
        """Interval for the mean sized by effective (not nominal) samples."""
        z = Z_SCORES.get(level if level is not None else self.config.confidence_level, 1.96)
        if result.effective_samples <= 0:
            return (result.mean, result.mean)
        margin = z * result.standard_deviation / math.sqrt(result.effective_samples)
        return (max(0.0, result.mean - margin), result.mean + margin)

    def calculate_by_day_of_week(
        self, points: Sequence[ProcessedDataPoint]
    ) -> dict[int, WeightedAverageResult]:
        """Per-weekday statistics; weekdays without data get the overall result."""
        weights = self.compute_weights(points)
        overall = self.calculate(points, weights)

        groups: dict[int, list[tuple[ProcessedDataPoint, float]]] = {}
        for p, w in zip(points, weights, strict=True):
            groups.setdefault(p.day_of_week, []).append((p, w))

        by_day: dict[int, WeightedAverageResult] = {}
        for dow in range(7):
            group = groups.get(dow)
            if not group:
                by_day[dow] = overall
                continue
            result = self.calculate([p for p, _ in group], [w for _, w in group])
            by_day[dow] = result if result.sum_weights > 0 else overall
        return by_day

    def calculate_rolling(
        self, points: Sequence[ProcessedDataPoint], window_days: int = 7
    ) -> list[tuple[date, WeightedAverageResult]]:
        """Statistics over each trailing window of ``window_days`` points."""
        if window_days <= 0:
            raise ValueError("window_days must be positive")
        return [
            (points[end - 1].date, self.calculate(points[end - window_days : end]))
            for end in range(window_days, len(points) + 1)
        ]

    def calculate_adaptive_weights(self, points: Sequence[ProcessedDataPoint]) -> list[float]:
        """Boost the most recent 14 days when they are steadier than older data.

        Recent weights are multiplied by 1.3 when their coefficient of
        variation is lower than the older window's, else by 0.7.
        """
        weights = self.compute_weights(points)
        if len(points) < 2 * ADAPTIVE_RECENT_DAYS:
            return weights

        split = len(points) - ADAPTIVE_RECENT_DAYS
        recent_cv = _coefficient_of_variation(points[split:])
        older_cv = _coefficient_of_variation(points[:split])
        multiplier = ADAPTIVE_BOOST if recent_cv < older_cv else ADAPTIVE_DAMPEN
        return [w * multiplier if i >= split else w for i, w in enumerate(weights)]

    def calculate_adaptive(self, points: Sequence[ProcessedDataPoint]) -> WeightedAverageResult:
        return self.calculate(points, self.calculate_adaptive_weights(points))


def _weighted_stats(pairs: list[tuple[float, float]]) -> WeightedAverageResult:
    sum_w = sum(w for _, w in pairs)
    if sum_w <= 0:
        return WeightedAverageResult.empty()

    mean = sum(x * w for x, w in pairs) / sum_w
    variance = sum(w * (x - mean) ** 2 for x, w in pairs) / sum_w
    sum_w_sq = sum(w * w for _, w in pairs)

    return WeightedAverageResult(
        mean=mean,
        variance=variance,
        standard_deviation=math.sqrt(variance),
        sum_weights=sum_w,
        effective_samples=sum_w**2 / sum_w_sq,
    )


def _coefficient_of_variation(points: Sequence[ProcessedDataPoint]) -> float:
    values = [p.adjusted_demand for p in points if not p.is_outlier]
    if len(values) < 2:
        return math.inf
    mean = sum(values) / len(values)
    if mean <= 0:
        return math.inf
    return statistics.pstdev(values) / mean
