"""Stock coverage configuration, bounds and presets."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from replenishment.core.config import Settings
from replenishment.domain.errors import InvalidConfigurationError

SUPPORTED_CONFIDENCE_LEVELS = (0.90, 0.95, 0.99)


class StockCoverageConfig(BaseModel):
    """Immutable configuration for one coverage run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    historical_days: int = Field(90, ge=7, le=730, description="History window in days")
    half_life: float = Field(14.0, gt=0, le=365, description="EWMA half-life in days")
    min_availability_factor: float = Field(
        0.3, gt=0, le=1, description="Floor for availability when scaling demand up"
    )
    outlier_cap_multiplier: float = Field(
        3.0, ge=0, le=10, description="Spread multiplier for outliers (0 = disabled)"
    )
    outlier_window_days: int = Field(28, ge=7, le=365)
    min_history_days: int = Field(7, ge=1, description="Minimum days with a sales record")
    impute_severe_stockouts: bool = False
    enable_seasonality: bool = True
    max_seasonal_deviation: float = Field(0.5, gt=0, lt=1)
    enable_trend_correction: bool = True
    enable_promotion_adjustment: bool = True
    enable_adaptive_weighting: bool = False
    holidays: tuple[date, ...] = ()
    forecast_horizon: int = Field(7, ge=1, le=90, description="Days the trend is projected over")
    target_coverage_days: int = Field(30, gt=0, le=365, description="Days of reorder quantity")
    confidence_level: float = Field(0.95)
    cache_ttl_seconds: int = Field(3600, gt=0, le=7 * 24 * 3600)

    @field_validator("confidence_level")
    @classmethod
    def _known_confidence_level(cls, v: float) -> float:
        if v not in SUPPORTED_CONFIDENCE_LEVELS:
            raise ValueError(f"confidence_level must be one of {SUPPORTED_CONFIDENCE_LEVELS}")
        return v

    @classmethod
    def build(cls, overrides: Mapping[str, Any] | None = None, **kwargs: Any) -> StockCoverageConfig:
        """Validate config values, raising InvalidConfigurationError on failure."""
        values = {**(overrides or {}), **kwargs}
        try:
            return cls(**values)
        except ValidationError as e:
            raise InvalidConfigurationError(
                "Invalid stock coverage configuration",
                details={"errors": _error_summary(e)},
            ) from e

    @classmethod
    def from_settings(cls, settings: Settings) -> StockCoverageConfig:
        return cls.build(
            historical_days=settings.coverage_historical_days,
            half_life=settings.coverage_half_life_days,
            min_availability_factor=settings.coverage_min_availability_factor,
            outlier_cap_multiplier=settings.coverage_outlier_cap_multiplier,
            forecast_horizon=settings.coverage_forecast_horizon_days,
            target_coverage_days=settings.coverage_target_days,
            cache_ttl_seconds=settings.coverage_cache_ttl_seconds,
        )

    @classmethod
    def preset(cls, name: str) -> StockCoverageConfig:
        """Named preset: conservative, balanced, aggressive or minimal."""
        try:
            values = COVERAGE_PRESETS[name]
        except KeyError:
            raise InvalidConfigurationError(
                f"Unknown coverage preset '{name}'",
                details={"available": sorted(COVERAGE_PRESETS)},
            ) from None
        return cls.build(values)

    def with_overrides(self, **overrides: Any) -> StockCoverageConfig:
        return self.build(self.model_dump(), **overrides)


def _error_summary(e: ValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "error": err["msg"]} for err in e.errors()
    ]


COVERAGE_PRESETS: dict[str, dict[str, Any]] = {
    # Long memory, wide safety margins
    "conservative": {
        "historical_days": 120,
        "forecast_horizon": 14,
        "half_life": 21,
        "min_availability_factor": 0.7,
        "outlier_cap_multiplier": 2.5,
        "confidence_level": 0.99,
    },
    "balanced": {
        "historical_days": 90,
        "forecast_horizon": 7,
        "half_life": 14,
        "min_availability_factor": 0.6,
        "outlier_cap_multiplier": 3.0,
        "confidence_level": 0.95,
    },
    # Reacts quickly to recent sales
    "aggressive": {
        "historical_days": 60,
        "forecast_horizon": 5,
        "half_life": 7,
        "min_availability_factor": 0.5,
        "outlier_cap_multiplier": 4.0,
        "confidence_level": 0.90,
        "enable_adaptive_weighting": True,
    },
    "minimal": {
        "historical_days": 14,
        "forecast_horizon": 3,
        "half_life": 3,
        "min_availability_factor": 0.4,
        "outlier_cap_multiplier": 5.0,
        "confidence_level": 0.90,
        "enable_seasonality": False,
        "enable_trend_correction": False,
    },
}
