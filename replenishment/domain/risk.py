"""Risk and confidence rules shared by coverage and purchase calculations."""

from __future__ import annotations

import math
from typing import Literal

RiskLevel = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]

# (max coverage days, risk): first bound the coverage fits under wins
STOCKOUT_RISK_STEPS: tuple[tuple[float, float], ...] = (
    (0, 1.0),
    (3, 0.9),
    (7, 0.7),
    (14, 0.5),
    (30, 0.3),
    (60, 0.1),
)
MIN_STOCKOUT_RISK = 0.05

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0

HIGH_RISK_LEVELS: frozenset[str] = frozenset({"HIGH", "CRITICAL"})


def coverage_days(available_stock: float, daily_demand: float) -> float:
    """Days stock lasts at ``daily_demand``.

    No available stock covers zero days whatever the demand; otherwise no
    demand means infinite coverage.
    """
    if available_stock <= 0:
        return 0.0
    if daily_demand <= 0:
        return math.inf
    return available_stock / daily_demand


def stockout_risk_for_coverage(days: float) -> float:
    """Step function of coverage days, non-increasing in ``days``."""
    for bound, risk in STOCKOUT_RISK_STEPS:
        if days <= bound:
            return risk
    return MIN_STOCKOUT_RISK


def stability_confidence(
    base_score: float,
    coefficient_of_variation: float,
    trend_factor: float,
) -> float:
    """Discount a base score for volatile demand and extreme trends.

    CV > 0.5 multiplies by 0.8, CV > 1.0 additionally by 0.6, a trend factor
    outside [0.5, 2.0] by 0.85. Result is clamped to [0.1, 1.0].
    """
    confidence = base_score
    if coefficient_of_variation > 0.5:
        confidence *= 0.8
    if coefficient_of_variation > 1.0:
        confidence *= 0.6
    if trend_factor < 0.5 or trend_factor > 2.0:
        confidence *= 0.85
    if math.isnan(confidence):
        return MIN_CONFIDENCE
    return min(max(confidence, MIN_CONFIDENCE), MAX_CONFIDENCE)


def risk_level_for_lead_time(days: float, lead_time_days: int) -> RiskLevel:
    """Classify coverage against lead time: >2x LOW, >1x MEDIUM, >0.5x HIGH."""
    ratio = days / max(lead_time_days, 1)
    if ratio > 2:
        return "LOW"
    if ratio > 1:
        return "MEDIUM"
    if ratio > 0.5:
        return "HIGH"
    return "CRITICAL"
