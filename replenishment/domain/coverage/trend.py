"""Trend estimation via weighted log-linear regression.

Fits ln(demand + 0.1) = a + b*x over positive non-outlier points, x = 1..n.
The daily growth rate is exp(b); the trend factor projects it over half the
forecast horizon.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import date

from replenishment.domain.coverage.types import ProcessedDataPoint, TrendAnalysis

LOG_OFFSET = 0.1
FLAT_TOLERANCE = 0.02
MIN_TREND_POINTS = 7
FULL_CONFIDENCE_POINTS = 14
DAMPING_START_DAY = 7
DAMPING_RATE = 0.01


class TrendAnalyzer:
    """Fits and projects demand trend."""

    def __init__(self, forecast_horizon: int = 7, min_points: int = MIN_TREND_POINTS):
        self.forecast_horizon = forecast_horizon
        self.min_points = min_points

    def analyze(self, points: Sequence[ProcessedDataPoint]) -> TrendAnalysis:
        """Fit the trend. Too few valid points yield a flat analysis."""
        valid = [p for p in points if p.adjusted_demand > 0 and not p.is_outlier and p.weight > 0]
        n = len(valid)
        if n < self.min_points:
            return TrendAnalysis()

        xs = [float(i + 1) for i in range(n)]
        ys = [math.log(p.adjusted_demand + LOG_OFFSET) for p in valid]
        ws = [p.weight for p in valid]

        sum_w = sum(ws)
        mean_x = sum(w * x for w, x in zip(ws, xs)) / sum_w
        mean_y = sum(w * y for w, y in zip(ws, ys)) / sum_w
        sxx = sum(w * (x - mean_x) ** 2 for w, x in zip(ws, xs))
        if sxx <= 0:
            return TrendAnalysis()
        sxy = sum(w * (x - mean_x) * (y - mean_y) for w, x, y in zip(ws, xs, ys))

        slope = sxy / sxx
        intercept = mean_y - slope * mean_x

        ss_tot = sum(w * (y - mean_y) ** 2 for w, y in zip(ws, ys))
        ss_res = sum(w * (y - (intercept + slope * x)) ** 2 for w, x, y in zip(ws, xs, ys))
        r_squared = min(max(1 - ss_res / ss_tot, 0.0), 1.0) if ss_tot > 0 else 0.0

        daily_growth = math.exp(slope)
        trend_factor = daily_growth ** (self.forecast_horizon / 2)
        current_level = max(math.exp(intercept + slope * n) - LOG_OFFSET, 0.0)

        completeness = n / len(points)
        confidence = (
            0.5 * r_squared + 0.3 * completeness + 0.2 * min(1.0, n / FULL_CONFIDENCE_POINTS)
        )

        if abs(trend_factor - 1) < FLAT_TOLERANCE:
            direction = "FLAT"
        elif trend_factor > 1:
            direction = "UP"
        else:
            direction = "DOWN"

        return TrendAnalysis(
            trend_factor=trend_factor,
            direction=direction,
            strength=r_squared,
            slope=slope,
            intercept=intercept,
            r_squared=r_squared,
            daily_growth=daily_growth,
            current_level=current_level,
            confidence=confidence,
        )

    def detect_change_points(
        self,
        points: Sequence[ProcessedDataPoint],
        window: int = 14,
        threshold: float = 0.3,
    ) -> list[date]:
        """Dates where mean demand shifts by more than ``threshold`` (relative).

        Compares the ``window`` days before each candidate with the ``window``
        days from it onward; after a hit the scan skips one window ahead.
        """
        values = [p.adjusted_demand for p in points]
        change_points: list[date] = []
        i = window
        while i <= len(values) - window:
            before = sum(values[i - window : i]) / window
            after = sum(values[i : i + window]) / window
            if before > 0 and abs(after - before) / before > threshold:
                change_points.append(points[i].date)
                i += window
            else:
                i += 1
        return change_points

    def project(self, trend: TrendAnalysis, days: int) -> list[float]:
        """Project demand level forward, damping growth after the first week."""
        projections = []
        for day in range(1, days + 1):
            growth = trend.daily_growth**day
            if day > DAMPING_START_DAY:
                growth = 1 + (growth - 1) / (1 + DAMPING_RATE * day)
            projections.append(max(trend.current_level * growth, 0.0))
        return projections
