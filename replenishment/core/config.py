"""Engine settings loaded from the environment or a .env file.

The defaults declared here seed the per-run coverage and purchase configs
(see ``StockCoverageConfig.from_settings`` and
``PurchaseRequirementConfig.from_settings``).
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Storage, engine defaults and logging options."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Storage ===
    database_url: str = Field(
        "sqlite:///./replenishment.db",
        description="Database URL (SQLite for local runs, Postgres in production)",
    )
    redis_url: str | None = Field(
        None, description="Redis URL for the coverage cache (None = in-process cache)"
    )

    # === Stock coverage ===
    coverage_cache_ttl_seconds: int = Field(3600, description="Coverage result TTL in seconds")
    coverage_historical_days: int = Field(90, description="History window for forecasting")
    coverage_half_life_days: float = Field(14.0, description="EWMA half-life in days")
    coverage_min_availability_factor: float = Field(
        0.3, description="Floor for availability when scaling demand up"
    )
    coverage_outlier_cap_multiplier: float = Field(
        3.0, description="Robust spread multiplier for outliers (0 = disabled)"
    )
    coverage_forecast_horizon_days: int = Field(7, description="Horizon for trend projection")
    coverage_target_days: int = Field(30, description="Target coverage for reorder quantity")
    coverage_stale_after_hours: int = Field(
        24, description="Persisted coverage older than this is recalculated by the job"
    )

    # === Purchase requirement ===
    purchase_coverage_days: int = Field(30, description="Days of demand an order should cover")
    purchase_lead_time_days: int = Field(7, description="Default supplier lead time in days")
    purchase_stock_reserve_days: int = Field(7, description="Safety stock in days of demand")
    purchase_max_concurrency: int = Field(5, description="Max SKUs calculated concurrently")
    purchase_batch_timeout_seconds: float | None = Field(
        None, description="Overall batch deadline in seconds (None = no deadline)"
    )

    # === Logging ===
    log_level: str = Field("INFO", description="Root log level")
    log_file_path: str | None = Field(None, description="JSON log file (None = stdout only)")


@lru_cache
def get_settings() -> Settings:
    """Settings for this process, built once.

    Raises:
        RuntimeError: If environment variables fail validation.

    """
    try:
        return Settings()
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]).upper() for err in e.errors() if err["loc"]})
        raise RuntimeError(
            f"Invalid engine settings: {', '.join(fields)} (check the environment or .env)"
        ) from e
