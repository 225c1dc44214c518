"""Value objects for stock coverage forecasting.

Raw facts and intermediate series are frozen dataclasses; anything that is
cached, persisted or returned to callers is a frozen pydantic model so it
round-trips through JSON unchanged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

MINUTES_PER_DAY = 1440
ALGORITHM_VERSION = "EWMA_TREND_SEASONALITY_V1"

TrendDirection = Literal["UP", "DOWN", "FLAT"]


def day_of_week(d: date) -> int:
    """Weekday index with Sunday = 0 ... Saturday = 6."""
    return (d.weekday() + 1) % 7


class Product(BaseModel):
    """Catalogue entry with its current inventory position."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    sku: str
    name: str = ""
    brand: str | None = None
    supplier: str | None = None
    warehouse: str | None = None
    category: str | None = None
    current_stock: float = Field(0.0, ge=0)
    allocated_stock: float = Field(0.0, ge=0)
    minimum_stock: float = Field(0.0, ge=0)
    lead_time_days: int = Field(7, ge=0)
    pack_size: int = Field(1, ge=1)
    cost_price: float = Field(0.0, ge=0)
    is_active: bool = True

    @property
    def available_stock(self) -> float:
        """Stock that is on hand and not reserved for open customer orders."""
        return self.current_stock - self.allocated_stock


@dataclass(frozen=True)
class RawSalesRecord:
    """Units sold for one SKU-day."""

    date: date
    units_sold: float
    price: float = 0.0
    revenue: float = 0.0
    promotion_flag: bool = False


@dataclass(frozen=True)
class RawAvailabilityRecord:
    """How long a SKU was in stock on one day."""

    date: date
    minutes_in_stock: int = MINUTES_PER_DAY
    stockout_events: int = 0


@dataclass(frozen=True)
class HistoryBundle:
    """Sales and availability facts for one SKU over a window."""

    sales: list[RawSalesRecord] = field(default_factory=list)
    availability: list[RawAvailabilityRecord] = field(default_factory=list)


@dataclass(frozen=True)
class ProcessedDataPoint:
    """One calendar day of cleaned demand."""

    date: date
    day_of_week: int
    raw_demand: float
    adjusted_demand: float
    availability_factor: float
    is_outlier: bool
    is_promotion: bool
    weight: float


@dataclass(frozen=True)
class SeasonalityFactors:
    """Multiplicative demand factor per weekday, Sunday first."""

    factors: tuple[float, ...] = (1.0,) * 7

    def __post_init__(self):
        if len(self.factors) != 7:
            raise ValueError(f"expected 7 weekday factors, got {len(self.factors)}")

    @classmethod
    def neutral(cls) -> SeasonalityFactors:
        return cls()

    def for_day(self, dow: int) -> float:
        return self.factors[dow]

    def for_date(self, d: date) -> float:
        return self.factors[day_of_week(d)]

    @property
    def mean(self) -> float:
        return sum(self.factors) / 7


@dataclass(frozen=True)
class WeeklyPattern:
    """Result of weekly pattern detection."""

    has_weekly_pattern: bool
    strength: float
    peak_days: tuple[int, ...] = ()
    low_days: tuple[int, ...] = ()


@dataclass(frozen=True)
class WeightedAverageResult:
    """Exponentially weighted demand statistics."""

    mean: float
    variance: float
    standard_deviation: float
    sum_weights: float
    effective_samples: float

    @classmethod
    def empty(cls) -> WeightedAverageResult:
        return cls(0.0, 0.0, 0.0, 0.0, 0.0)

    @property
    def coefficient_of_variation(self) -> float:
        return self.standard_deviation / self.mean if self.mean > 0 else 0.0


@dataclass(frozen=True)
class TrendAnalysis:
    """Log-linear trend fit over a demand series."""

    trend_factor: float = 1.0
    direction: TrendDirection = "FLAT"
    strength: float = 0.0
    slope: float = 0.0
    intercept: float = 0.0
    r_squared: float = 0.0
    daily_growth: float = 1.0
    current_level: float = 0.0
    confidence: float = 0.5


class DataQualityScore(BaseModel):
    """Quality of the history a forecast was built from."""

    model_config = ConfigDict(frozen=True)

    completeness: float = Field(..., ge=0, le=1)
    consistency: float = Field(..., ge=0, le=1)
    availability_issues: float = Field(..., ge=0, le=1)
    outlier_percentage: float = Field(..., ge=0, le=1)
    overall_score: float = Field(..., ge=0, le=1)


class StockCoverageResult(BaseModel):
    """Coverage forecast for one SKU. Replaced wholesale on recalculation."""

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    sku: str
    coverage_days: float = Field(..., description="Days available stock lasts (inf = no demand)")
    coverage_days_p10: float = Field(..., description="Pessimistic coverage (high demand tail)")
    coverage_days_p90: float = Field(..., description="Optimistic coverage (low demand tail)")
    infinite_coverage: bool = False
    available_stock: float
    demand_forecast: float
    demand_std_dev: float
    adjusted_demand: float = Field(..., description="Deseasonalised baseline daily demand")
    trend_factor: float
    trend_direction: TrendDirection = "FLAT"
    seasonality_index: float
    availability_adjustment: float
    confidence: float = Field(..., ge=0.1, le=1.0)
    data_quality: DataQualityScore
    reorder_point: float
    reorder_quantity: float
    stockout_risk: float = Field(..., ge=0, le=1)
    historical_days_used: int
    algorithm: str = ALGORITHM_VERSION
    calculated_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def _check_expiry(self) -> StockCoverageResult:
        if self.expires_at <= self.calculated_at:
            raise ValueError("expires_at must be later than calculated_at")
        return self

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def coverage_is_finite(self) -> bool:
        return not self.infinite_coverage and math.isfinite(self.coverage_days)


@dataclass(frozen=True)
class CoverageInput:
    """Everything one coverage calculation needs."""

    product: Product | None
    sales_history: list[RawSalesRecord]
    stock_availability: list[RawAvailabilityRecord]
    current_date: date
    calculated_at: datetime | None = None
