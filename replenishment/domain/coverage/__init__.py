"""Demand forecasting and stock coverage."""

from replenishment.domain.coverage.calculator import StockCoverageCalculator
from replenishment.domain.coverage.config import COVERAGE_PRESETS, StockCoverageConfig
from replenishment.domain.coverage.preprocessor import DataPreprocessor
from replenishment.domain.coverage.seasonality import SeasonalityAdjuster
from replenishment.domain.coverage.trend import TrendAnalyzer
from replenishment.domain.coverage.types import (
    CoverageInput,
    Product,
    RawAvailabilityRecord,
    RawSalesRecord,
    StockCoverageResult,
)
from replenishment.domain.coverage.weighted_average import WeightedMovingAverage

__all__ = [
    "COVERAGE_PRESETS",
    "CoverageInput",
    "DataPreprocessor",
    "Product",
    "RawAvailabilityRecord",
    "RawSalesRecord",
    "SeasonalityAdjuster",
    "StockCoverageCalculator",
    "StockCoverageConfig",
    "StockCoverageResult",
    "TrendAnalyzer",
    "WeightedMovingAverage",
]
