"""Tests for exponentially weighted demand statistics."""

from __future__ import annotations

import math
from datetime import timedelta

import pytest

from replenishment.domain.coverage.config import StockCoverageConfig
from replenishment.domain.coverage.types import ProcessedDataPoint, day_of_week
from replenishment.domain.coverage.weighted_average import WeightedMovingAverage


def make_points(today, values, outliers=(), promos=(), availability=None):
    """Processed series ending today; indexes in outliers/promos are flagged."""
    n = len(values)
    points = []
    for i, v in enumerate(values):
        d = today - timedelta(days=n - 1 - i)
        points.append(
            ProcessedDataPoint(
                date=d,
                day_of_week=day_of_week(d),
                raw_demand=v,
                adjusted_demand=v,
                availability_factor=availability[i] if availability else 1.0,
                is_outlier=i in outliers,
                is_promotion=i in promos,
                weight=1.0,
            )
        )
    return points


@pytest.fixture
def wma():
    return WeightedMovingAverage(StockCoverageConfig(half_life=7))


def test_constant_series(wma, today):
    """Constant demand has that mean and no variance."""
    result = wma.calculate(make_points(today, [10.0] * 28))

    assert result.mean == pytest.approx(10.0)
    assert result.variance == pytest.approx(0.0)
    assert result.coefficient_of_variation == pytest.approx(0.0)


def test_recent_days_weigh_more(wma, today):
    """A level shift pulls the mean towards the newer level."""
    result = wma.calculate(make_points(today, [0.0] * 14 + [10.0] * 14))
    assert result.mean > 5.0


def test_effective_samples_below_nominal(wma, today):
    """Decayed weights give fewer effective than nominal samples."""
    result = wma.calculate(make_points(today, [10.0, 12.0] * 14))
    assert 0 < result.effective_samples < 28


def test_effective_samples_equal_nominal_for_equal_weights(wma, today):
    """Equal weights count every point in full."""
    points = make_points(today, [10.0, 12.0] * 14)

    assert wma.calculate(points, [1.0] * 28).effective_samples == pytest.approx(28)
    assert wma.calculate(points, [0.3] * 28).effective_samples == pytest.approx(28)


def test_outliers_excluded(wma, today):
    points = make_points(today, [10.0] * 27 + [500.0], outliers={27})
    assert wma.calculate(points).mean == pytest.approx(10.0)


def test_outliers_included_when_detection_disabled(today):
    wma = WeightedMovingAverage(StockCoverageConfig(half_life=7, outlier_cap_multiplier=0))
    points = make_points(today, [10.0] * 27 + [500.0], outliers={27})
    assert wma.calculate(points).mean > 10.0


def test_point_weight_components(wma, today):
    """Weight = decay x max(0.5, availability) x promotion discount."""
    points = make_points(
        today, [10.0, 10.0, 10.0], promos={2}, availability=[1.0, 0.2, 1.0]
    )

    assert wma.point_weight(points[2], today) == pytest.approx(0.8)
    assert wma.point_weight(points[1], today) == pytest.approx(0.5 ** (1 / 7) * 0.5)
    assert wma.point_weight(points[0], today) == pytest.approx(0.5 ** (2 / 7))


def test_empty_series(wma):
    result = wma.calculate([])
    assert result.mean == 0.0
    assert result.effective_samples == 0.0


def test_confidence_interval(wma, today):
    """Interval is centred on the mean and widens with confidence level."""
    result = wma.calculate(make_points(today, [8.0, 12.0] * 14))

    low95, high95 = wma.confidence_interval(result)
    low99, high99 = wma.confidence_interval(result, level=0.99)

    assert low95 < result.mean < high95
    assert low99 < low95 and high99 > high95
    assert (low95 + high95) / 2 == pytest.approx(result.mean)


def test_by_day_of_week(wma, today):
    """Each weekday gets its own statistics."""
    days = [today - timedelta(days=27 - i) for i in range(28)]
    points = make_points(today, [20.0 if d.weekday() == 4 else 10.0 for d in days])

    by_day = wma.calculate_by_day_of_week(points)

    assert set(by_day) == set(range(7))
    assert by_day[5].mean == pytest.approx(20.0)  # Friday
    assert by_day[1].mean == pytest.approx(10.0)  # Monday


def test_rolling(wma, today):
    points = make_points(today, [float(i) for i in range(10)])

    rolling = wma.calculate_rolling(points, window_days=7)

    assert len(rolling) == 4
    assert rolling[-1][0] == today
    assert rolling[0][1].mean < rolling[-1][1].mean

    with pytest.raises(ValueError):
        wma.calculate_rolling(points, window_days=0)


def test_adaptive_weights_boost_steady_recent_window(wma, today):
    """Recent weights grow by 1.3 when recent data is steadier than older data."""
    volatile_then_steady = [2.0, 18.0] * 7 + [10.0] * 14
    points = make_points(today, volatile_then_steady)

    base = wma.compute_weights(points)
    adaptive = wma.calculate_adaptive_weights(points)

    assert adaptive[-1] == pytest.approx(base[-1] * 1.3)
    assert adaptive[0] == pytest.approx(base[0])


def test_adaptive_weights_dampen_volatile_recent_window(wma, today):
    steady_then_volatile = [10.0] * 14 + [2.0, 18.0] * 7
    points = make_points(today, steady_then_volatile)

    adaptive = wma.calculate_adaptive_weights(points)

    assert adaptive[-1] == pytest.approx(wma.compute_weights(points)[-1] * 0.7)


def test_adaptive_needs_two_windows(wma, today):
    points = make_points(today, [10.0] * 20)
    assert wma.calculate_adaptive_weights(points) == wma.compute_weights(points)
    assert math.isclose(wma.calculate_adaptive(points).mean, 10.0)
