"""Purchase requirement configuration and product filters."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from replenishment.core.config import Settings
from replenishment.domain.errors import InvalidConfigurationError

PurchaseMethod = Literal["RAPID", "TIME_PHASED"]
LeadTimeStrategy = Literal["P50", "P90"]

P90_LEAD_TIME_MULTIPLIER = 1.5


class ProductFilters(BaseModel):
    """Product universe selection. Empty lists mean no restriction."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    brands: tuple[str, ...] = ()
    suppliers: tuple[str, ...] = ()
    warehouses: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    skus: tuple[str, ...] = ()
    only_active: bool = True
    only_below_minimum: bool = False


class PurchaseRequirementConfig(BaseModel):
    """Immutable configuration for purchase calculations and batches."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    coverage_days: int = Field(30, gt=0, le=365, description="Days of demand to cover")
    lead_time_days: int = Field(7, ge=1, le=365, description="Supplier lead time (P50)")
    method: PurchaseMethod = "RAPID"
    lead_time_strategy: LeadTimeStrategy = "P50"
    include_stock_reserve: bool = True
    stock_reserve_days: int = Field(7, ge=0, le=90)
    respect_pack_size: bool = True
    include_delivery_buffer: bool = False
    delivery_buffer_days: int = Field(0, ge=0, le=90)
    enable_parallel: bool = True
    max_concurrency: int = Field(5, gt=0, le=100)
    show_only_needed: bool = True
    timeout_seconds: float | None = Field(None, gt=0)
    filters: ProductFilters = Field(default_factory=ProductFilters)

    @classmethod
    def build(
        cls, overrides: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> PurchaseRequirementConfig:
        """Validate config values, raising InvalidConfigurationError on failure."""
        values = {**(overrides or {}), **kwargs}
        try:
            return cls(**values)
        except ValidationError as e:
            raise InvalidConfigurationError(
                "Invalid purchase requirement configuration",
                details={
                    "errors": [
                        {"field": ".".join(str(p) for p in err["loc"]), "error": err["msg"]}
                        for err in e.errors()
                    ]
                },
            ) from e

    @classmethod
    def from_settings(cls, settings: Settings) -> PurchaseRequirementConfig:
        return cls.build(
            coverage_days=settings.purchase_coverage_days,
            lead_time_days=settings.purchase_lead_time_days,
            stock_reserve_days=settings.purchase_stock_reserve_days,
            max_concurrency=settings.purchase_max_concurrency,
            timeout_seconds=settings.purchase_batch_timeout_seconds,
        )

    def with_overrides(self, **overrides: Any) -> PurchaseRequirementConfig:
        return self.build(self.model_dump(), **overrides)

    @property
    def effective_lead_time_days(self) -> int:
        """Lead time after strategy: P90 inflates by 1.5, rounded up, at least 1."""
        if self.lead_time_strategy == "P90":
            return max(math.ceil(self.lead_time_days * P90_LEAD_TIME_MULTIPLIER), 1)
        return self.lead_time_days

    @property
    def buffer_days(self) -> int:
        return self.delivery_buffer_days if self.include_delivery_buffer else 0

    @property
    def effective_coverage_days(self) -> int:
        return self.coverage_days + self.buffer_days


class PurchaseScenario(BaseModel):
    """Named what-if variant of the base purchase config."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    coverage_days: int | None = None
    lead_time_days: int | None = None
    lead_time_strategy: LeadTimeStrategy | None = None
    include_stock_reserve: bool | None = None
    method: PurchaseMethod | None = None

    def overrides(self) -> dict[str, Any]:
        return self.model_dump(exclude={"name"}, exclude_none=True)
