"""Tests for weekday, holiday and monthly seasonality."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from replenishment.domain.coverage.seasonality import SeasonalityAdjuster
from replenishment.domain.coverage.types import (
    ProcessedDataPoint,
    SeasonalityFactors,
    day_of_week,
)

FRIDAY = 5


def series(end, values):
    n = len(values)
    points = []
    for i, v in enumerate(values):
        d = end - timedelta(days=n - 1 - i)
        points.append(
            ProcessedDataPoint(
                date=d,
                day_of_week=day_of_week(d),
                raw_demand=v,
                adjusted_demand=v,
                availability_factor=1.0,
                is_outlier=False,
                is_promotion=False,
                weight=1.0,
            )
        )
    return points


def friday_peak(end, days=28):
    dates = [end - timedelta(days=days - 1 - i) for i in range(days)]
    return series(end, [20.0 if d.weekday() == 4 else 10.0 for d in dates])


def test_day_of_week_starts_on_sunday():
    assert day_of_week(date(2025, 3, 9)) == 0  # Sunday
    assert day_of_week(date(2025, 3, 14)) == FRIDAY
    assert day_of_week(date(2025, 3, 15)) == 6


def test_factors_normalized(today):
    """Raw factors average to 1.0 and reflect the weekday ratio."""
    factors = SeasonalityAdjuster().calculate_factors(friday_peak(today), smooth=False)

    assert factors.mean == pytest.approx(1.0)
    assert factors.for_day(FRIDAY) == pytest.approx(1.75)
    assert factors.for_day(1) == pytest.approx(0.875)


def test_extreme_factors_tapered(today):
    """Factors beyond 1 + max_deviation are pulled in but stay above the bound."""
    factors = SeasonalityAdjuster(max_deviation=0.5).calculate_factors(friday_peak(today))

    assert 1.5 < factors.for_day(FRIDAY) < 1.75
    assert factors.for_day(1) == pytest.approx(0.875)


def test_neutral_when_disabled_or_short(today):
    assert SeasonalityAdjuster(enabled=False).calculate_factors(friday_peak(today)) == (
        SeasonalityFactors.neutral()
    )
    assert SeasonalityAdjuster().calculate_factors(friday_peak(today, days=10)) == (
        SeasonalityFactors.neutral()
    )
    assert SeasonalityAdjuster().calculate_factors(series(today, [0.0] * 28)) == (
        SeasonalityFactors.neutral()
    )


def test_smooth_factor():
    adjuster = SeasonalityAdjuster(max_deviation=0.5)

    assert adjuster.smooth_factor(1.2) == 1.2
    assert adjuster.smooth_factor(0.0) == 0.01
    assert adjuster.smooth_factor(3.0) < adjuster.smooth_factor(6.0) < 3.0
    assert 0.01 <= adjuster.smooth_factor(0.2) < 0.5


def test_factors_require_seven_values():
    with pytest.raises(ValueError):
        SeasonalityFactors((1.0,) * 6)


def test_apply_and_deseasonalize(today):
    adjuster = SeasonalityAdjuster()
    points = friday_peak(today)
    factors = adjuster.calculate_factors(points, smooth=False)

    flat = adjuster.deseasonalize(points, factors)

    assert all(p.adjusted_demand == pytest.approx(80 / 7) for p in flat)
    friday = next(p.date for p in points if p.day_of_week == FRIDAY)
    assert adjuster.apply(80 / 7, friday, factors) == pytest.approx(20.0)


def test_weekly_pattern_detection(today):
    adjuster = SeasonalityAdjuster()
    pattern = adjuster.detect_weekly_pattern(
        adjuster.calculate_factors(friday_peak(today), smooth=False)
    )

    assert pattern.has_weekly_pattern
    assert pattern.peak_days == (FRIDAY,)
    assert pattern.low_days == (0, 1, 2, 3, 4, 6)

    flat = adjuster.detect_weekly_pattern(SeasonalityFactors.neutral())
    assert not flat.has_weekly_pattern
    assert flat.peak_days == ()


def test_holiday_spikes_scaled_down(today):
    holiday = today - timedelta(days=3)
    points = series(today, [30.0 if i == 24 else 10.0 for i in range(28)])
    assert points[24].date == holiday

    adjusted = SeasonalityAdjuster().adjust_for_holidays(points, [holiday])

    assert adjusted[24].adjusted_demand == pytest.approx(10.0)
    assert adjusted[0].adjusted_demand == 10.0


def test_holiday_without_spike_untouched(today):
    points = series(today, [10.0] * 28)
    adjusted = SeasonalityAdjuster().adjust_for_holidays(points, [today])
    assert adjusted == points


def test_monthly_factors(today):
    adjuster = SeasonalityAdjuster()
    assert adjuster.calculate_monthly_factors(series(today, [10.0] * 60)) == {
        m: 1.0 for m in range(1, 13)
    }

    end = date(2025, 3, 31)
    values = [20.0 if (end - timedelta(days=119 - i)).month == 3 else 10.0 for i in range(120)]
    monthly = adjuster.calculate_monthly_factors(series(end, values))

    assert monthly[3] > 1.0 > monthly[1]
    assert monthly[7] == 1.0


def test_zero_days_do_not_skew_weekday_factors(today):
    """Leading zero days fall unevenly on weekdays but leave factors neutral."""
    factors = SeasonalityAdjuster().calculate_factors(series(today, [0.0] * 30 + [6.0] * 60))

    assert factors.factors == pytest.approx((1.0,) * 7)
