"""Purchase requirement value objects."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from replenishment.domain.coverage.types import Product
from replenishment.domain.purchase.config import PurchaseMethod, PurchaseRequirementConfig
from replenishment.domain.risk import HIGH_RISK_LEVELS, RiskLevel

OrderStatus = Literal["PENDING", "PARTIAL", "TRANSIT", "DELAYED"]
AlertType = Literal["ERROR", "WARNING", "INFO"]
AlertSeverity = Literal["HIGH", "MEDIUM", "LOW"]


class OpenPurchaseOrder(BaseModel):
    """Supplier order that has not been fully received."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str | None = None
    order_number: str | None = None
    sku: str
    quantity: float = Field(..., ge=0)
    received_quantity: float = Field(0.0, ge=0)
    eta: dt.date
    supplier: str | None = None
    status: OrderStatus = "PENDING"

    @computed_field
    @property
    def pending_quantity(self) -> float:
        return max(0.0, self.quantity - self.received_quantity)


class PurchaseAlert(BaseModel):
    """Actionable warning attached to a recommendation."""

    model_config = ConfigDict(frozen=True)

    type: AlertType
    code: str
    message: str
    severity: AlertSeverity


class TimePhaseProjection(BaseModel):
    """One simulated day of the TIME_PHASED ledger."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    day_offset: int
    demand: float
    receipts: float
    projected_stock: float
    cumulative_demand: float
    cumulative_receipts: float
    net_position: float
    below_safety: bool


@dataclass(frozen=True)
class PurchaseRequirementInput:
    """Inputs for one SKU recommendation.

    ``daily_demand`` is the baseline (deseasonalised, trend-free) rate;
    ``trend_factor`` and ``seasonality_index`` scale it.
    """

    product: Product
    daily_demand: float
    today: dt.date
    demand_std_dev: float = 0.0
    trend_factor: float = 1.0
    seasonality_index: float = 1.0
    open_orders: list[OpenPurchaseOrder] = field(default_factory=list)
    pack_size: int | None = None
    coverage_confidence: float | None = None


class PurchaseRequirementResult(BaseModel):
    """Replenishment recommendation for one SKU."""

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    # Identification
    sku: str
    name: str = ""
    brand: str | None = None
    supplier: str | None = None
    warehouse: str | None = None
    category: str | None = None

    # Inventory position
    current_stock: float
    allocated_stock: float
    available_stock: float
    open_order_quantity: float
    inventory_position: float

    # Demand and coverage
    daily_demand: float
    adjusted_daily_demand: float
    demand_std_dev: float
    current_coverage_days: float
    target_coverage_days: int
    target_coverage_days_base: int
    target_coverage_buffer_days: int
    lead_time_days: int
    demand_during_lead_time: float
    safety_stock: float

    # Outputs
    target_inventory: float
    required_quantity: int
    suggested_quantity: int
    pack_size: int

    # Gap analysis
    gap_before_lead_time: float
    needs_expediting: bool

    # Dates
    stockout_date: dt.date | None = None
    suggested_order_date: dt.date
    expected_arrival_date: dt.date

    # Risk
    stockout_risk: RiskLevel
    confidence: float = Field(..., ge=0.1, le=1.0)

    # Financials
    unit_cost: float
    estimated_cost: float
    estimated_investment: float

    alerts: list[PurchaseAlert] = Field(default_factory=list)
    method: PurchaseMethod
    projections: list[TimePhaseProjection] = Field(default_factory=list)

    @property
    def is_high_risk(self) -> bool:
        return self.stockout_risk in HIGH_RISK_LEVELS

    def alert_codes(self) -> set[str]:
        return {a.code for a in self.alerts}


class BatchError(BaseModel):
    """Per-SKU failure recorded by a batch run."""

    model_config = ConfigDict(frozen=True)

    sku: str
    error: str
    code: str


class SupplierAggregation(BaseModel):
    """Totals for one supplier, accumulated result by result."""

    supplier: str
    product_count: int = 0
    total_quantity: int = 0
    total_investment: float = 0.0
    critical_products: int = 0
    products: list[PurchaseRequirementResult] = Field(default_factory=list)


class WarehouseAggregation(BaseModel):
    """Totals for one warehouse, accumulated result by result."""

    warehouse: str
    product_count: int = 0
    total_quantity: int = 0
    total_investment: float = 0.0
    critical_products: int = 0
    products: list[PurchaseRequirementResult] = Field(default_factory=list)


class PurchaseBatchResult(BaseModel):
    """Outcome of a batch run over a filtered product universe."""

    model_config = ConfigDict(ser_json_inf_nan="constants")

    total_products: int
    products_needing_order: int
    total_investment: float
    method: PurchaseMethod
    products: list[PurchaseRequirementResult] = Field(default_factory=list)
    by_supplier: dict[str, SupplierAggregation] = Field(default_factory=dict)
    by_warehouse: dict[str, WarehouseAggregation] = Field(default_factory=dict)
    errors: list[BatchError] = Field(default_factory=list)
    calculation_time_ms: float = 0.0
    timed_out: bool = False
    cancelled: bool = False
    config: PurchaseRequirementConfig
    timestamp: dt.datetime
