"""Purchase requirement calculator (RAPID and TIME_PHASED).

RAPID is a closed-form order-up-to heuristic:

    target   = demand * (lead_time + coverage) + safety
    required = max(0, target - (available + open orders))

TIME_PHASED simulates the stock ledger day by day over lead_time + coverage,
receiving open orders on their ETA, so it sees dips that aggregate math hides.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, timedelta
from typing import Any

from replenishment.core.logging import get_logger
from replenishment.domain.coverage.types import day_of_week
from replenishment.domain.errors import CalculationFailedError, InvalidConfigurationError
from replenishment.domain.purchase.config import PurchaseRequirementConfig
from replenishment.domain.purchase.types import (
    OpenPurchaseOrder,
    PurchaseAlert,
    PurchaseRequirementInput,
    PurchaseRequirementResult,
    TimePhaseProjection,
)
from replenishment.domain.risk import (
    coverage_days,
    risk_level_for_lead_time,
    stability_confidence,
)

log = get_logger("replenishment.purchase.calculator")

# Sunday..Saturday demand shape used by the daily simulation
WEEKLY_DEMAND_PATTERN = (0.8, 1.0, 1.1, 1.1, 1.2, 1.3, 0.9)
HIGH_VARIABILITY_RATIO = 0.5
OVERSTOCK_MULTIPLIER = 2
# Absorbs float noise before rounding quantities up to whole units
QUANTITY_EPSILON = 1e-9


def round_to_pack(quantity: int, pack_size: int) -> int:
    """Round up to the next multiple of ``pack_size``."""
    if pack_size <= 1 or quantity <= 0:
        return quantity
    return math.ceil(quantity / pack_size) * pack_size


def whole_units(quantity: float) -> int:
    return max(0, math.ceil(quantity - QUANTITY_EPSILON))


class PurchaseRequirementCalculator:
    """Per-SKU replenishment recommendation."""

    def __init__(self, config: PurchaseRequirementConfig | Mapping[str, Any] | None = None):
        """Validate configuration eagerly.

        Raises:
            InvalidConfigurationError: If ``config`` values are out of bounds.

        """
        if isinstance(config, PurchaseRequirementConfig):
            self.config = config
        else:
            self.config = PurchaseRequirementConfig.build(config)

    def calculate(self, data: PurchaseRequirementInput) -> PurchaseRequirementResult:
        """Dispatch on config.method.

        Raises:
            InvalidConfigurationError: Negative or non-finite demand inputs
            CalculationFailedError: A quantity came out non-finite

        """
        if not math.isfinite(data.daily_demand) or data.daily_demand < 0:
            raise InvalidConfigurationError(
                "daily_demand must be a finite non-negative number",
                details={"sku": data.product.sku, "daily_demand": str(data.daily_demand)},
            )

        if self.config.method == "TIME_PHASED":
            return self._calculate_time_phased(data)
        return self._calculate_rapid(data)

    def _calculate_rapid(self, data: PurchaseRequirementInput) -> PurchaseRequirementResult:
        cfg = self.config
        ctx = _Context.build(cfg, data)

        demand_during_lead_time = ctx.adjusted_daily_demand * ctx.lead_time_days
        demand_during_coverage = ctx.adjusted_daily_demand * ctx.coverage_days
        target_inventory = demand_during_lead_time + demand_during_coverage + ctx.safety_stock
        required = whole_units(target_inventory - ctx.inventory_position)
        gap = max(0.0, demand_during_lead_time - ctx.available_stock)

        stockout_date = None
        if math.isfinite(ctx.current_coverage_days):
            stockout_offset = math.floor(ctx.current_coverage_days)
            if stockout_offset < ctx.horizon_days:
                stockout_date = data.today + timedelta(days=stockout_offset)

        return self._build_result(
            ctx,
            data,
            demand_during_lead_time=demand_during_lead_time,
            target_inventory=target_inventory,
            required=required,
            gap=gap,
            stockout_date=stockout_date,
            projections=[],
        )

    def _calculate_time_phased(self, data: PurchaseRequirementInput) -> PurchaseRequirementResult:
        ctx = _Context.build(self.config, data)
        projections = self._simulate(ctx, data)

        lead = ctx.lead_time_days
        before_arrival = [p.net_position for p in projections if p.day_offset <= lead]
        after_arrival = [p.net_position for p in projections if p.day_offset > lead]

        demand_during_lead_time = sum(p.demand for p in projections if p.day_offset <= lead)
        target_inventory = (projections[-1].cumulative_demand if projections else 0.0) + (
            ctx.safety_stock
        )

        # Quantity an order landing at lead time must bring to keep stock at safety after it
        lowest_after = min(after_arrival) if after_arrival else ctx.available_stock
        required = whole_units(ctx.safety_stock - lowest_after)

        lowest_before = min(before_arrival) if before_arrival else ctx.available_stock
        gap = max(0.0, ctx.safety_stock - lowest_before)

        stockout_date = next((p.date for p in projections if p.below_safety), None)

        return self._build_result(
            ctx,
            data,
            demand_during_lead_time=demand_during_lead_time,
            target_inventory=target_inventory,
            required=required,
            gap=gap,
            stockout_date=stockout_date,
            projections=projections,
        )

    def _simulate(self, ctx: _Context, data: PurchaseRequirementInput) -> list[TimePhaseProjection]:
        """Daily ledger for days 1..lead_time + coverage (day 1 = tomorrow)."""
        horizon = ctx.horizon_days
        receipts = _receipts_by_offset(data.open_orders, data.today, horizon)
        base_demand = data.daily_demand * data.trend_factor * data.seasonality_index

        projections: list[TimePhaseProjection] = []
        stock = ctx.available_stock
        cumulative_demand = 0.0
        cumulative_receipts = 0.0
        for offset in range(1, horizon + 1):
            d = data.today + timedelta(days=offset)
            demand = base_demand * WEEKLY_DEMAND_PATTERN[day_of_week(d)]
            received = receipts.get(offset, 0.0)
            stock = stock - demand + received
            cumulative_demand += demand
            cumulative_receipts += received
            projections.append(
                TimePhaseProjection(
                    date=d,
                    day_offset=offset,
                    demand=demand,
                    receipts=received,
                    projected_stock=stock,
                    cumulative_demand=cumulative_demand,
                    cumulative_receipts=cumulative_receipts,
                    net_position=stock,
                    below_safety=stock < ctx.safety_stock,
                )
            )
        return projections

    def _build_result(
        self,
        ctx: _Context,
        data: PurchaseRequirementInput,
        *,
        demand_during_lead_time: float,
        target_inventory: float,
        required: int,
        gap: float,
        stockout_date: date | None,
        projections: list[TimePhaseProjection],
    ) -> PurchaseRequirementResult:
        cfg = self.config
        product = data.product

        for name, value in (
            ("target_inventory", target_inventory),
            ("demand_during_lead_time", demand_during_lead_time),
            ("gap_before_lead_time", gap),
        ):
            if not math.isfinite(value):
                raise CalculationFailedError(
                    f"{name} is not a finite number",
                    details={"sku": product.sku, name: str(value)},
                )

        if cfg.respect_pack_size:
            suggested = round_to_pack(required, ctx.pack_size)
        else:
            suggested = required

        if stockout_date is not None:
            order_date = max(data.today, stockout_date - timedelta(days=ctx.lead_time_days))
        else:
            order_date = data.today

        cv = data.demand_std_dev / data.daily_demand if data.daily_demand > 0 else 0.0
        confidence = stability_confidence(
            data.coverage_confidence if data.coverage_confidence is not None else 1.0,
            cv,
            data.trend_factor,
        )

        needs_expediting = gap > 0
        alerts = self._build_alerts(
            ctx,
            data,
            required=required,
            gap=gap,
            needs_expediting=needs_expediting,
        )

        result = PurchaseRequirementResult(
            sku=product.sku,
            name=product.name,
            brand=product.brand,
            supplier=product.supplier,
            warehouse=product.warehouse,
            category=product.category,
            current_stock=product.current_stock,
            allocated_stock=product.allocated_stock,
            available_stock=ctx.available_stock,
            open_order_quantity=ctx.open_order_quantity,
            inventory_position=ctx.inventory_position,
            daily_demand=data.daily_demand,
            adjusted_daily_demand=ctx.adjusted_daily_demand,
            demand_std_dev=data.demand_std_dev,
            current_coverage_days=ctx.current_coverage_days,
            target_coverage_days=ctx.coverage_days,
            target_coverage_days_base=cfg.coverage_days,
            target_coverage_buffer_days=cfg.buffer_days,
            lead_time_days=ctx.lead_time_days,
            demand_during_lead_time=demand_during_lead_time,
            safety_stock=ctx.safety_stock,
            target_inventory=target_inventory,
            required_quantity=required,
            suggested_quantity=suggested,
            pack_size=ctx.pack_size,
            gap_before_lead_time=gap,
            needs_expediting=needs_expediting,
            stockout_date=stockout_date,
            suggested_order_date=order_date,
            expected_arrival_date=order_date + timedelta(days=ctx.lead_time_days),
            stockout_risk=risk_level_for_lead_time(ctx.current_coverage_days, ctx.lead_time_days),
            confidence=confidence,
            unit_cost=product.cost_price,
            estimated_cost=suggested * product.cost_price,
            estimated_investment=suggested * product.cost_price,
            alerts=alerts,
            method=cfg.method,
            projections=projections,
        )

        log.debug(
            "purchase_requirement_calculated",
            extra={
                "sku": product.sku,
                "method": cfg.method,
                "required": required,
                "suggested": suggested,
                "risk": result.stockout_risk,
            },
        )
        return result

    def _build_alerts(
        self,
        ctx: _Context,
        data: PurchaseRequirementInput,
        *,
        required: int,
        gap: float,
        needs_expediting: bool,
    ) -> list[PurchaseAlert]:
        alerts: list[PurchaseAlert] = []
        coverage = ctx.current_coverage_days

        if coverage < ctx.lead_time_days:
            alerts.append(
                PurchaseAlert(
                    type="ERROR",
                    code="STOCKOUT_IMMINENT",
                    message=(
                        f"Stock covers {coverage:.1f} days, less than the "
                        f"{ctx.lead_time_days}-day lead time"
                    ),
                    severity="HIGH",
                )
            )

        if needs_expediting:
            alerts.append(
                PurchaseAlert(
                    type="WARNING",
                    code="EXPEDITE_REQUIRED",
                    message=f"Expedite delivery: {gap:.0f} units short before the order arrives",
                    severity="HIGH",
                )
            )

        variability = data.demand_std_dev / max(data.daily_demand, 1.0)
        if variability > HIGH_VARIABILITY_RATIO:
            alerts.append(
                PurchaseAlert(
                    type="WARNING",
                    code="HIGH_VARIABILITY",
                    message=f"Demand is volatile (std/mean = {variability:.2f})",
                    severity="MEDIUM",
                )
            )

        if required == 0 and coverage > OVERSTOCK_MULTIPLIER * ctx.coverage_days:
            shown = "unlimited" if math.isinf(coverage) else f"{coverage:.0f}"
            alerts.append(
                PurchaseAlert(
                    type="INFO",
                    code="OVERSTOCK",
                    message=(
                        f"Stock covers {shown} days, over twice the "
                        f"{ctx.coverage_days}-day target"
                    ),
                    severity="LOW",
                )
            )

        return alerts


class _Context:
    """Inventory position and horizon shared by both methods."""

    __slots__ = (
        "available_stock",
        "open_order_quantity",
        "inventory_position",
        "lead_time_days",
        "coverage_days",
        "pack_size",
        "adjusted_daily_demand",
        "safety_stock",
        "current_coverage_days",
    )

    @classmethod
    def build(cls, cfg: PurchaseRequirementConfig, data: PurchaseRequirementInput) -> _Context:
        ctx = cls()
        product = data.product
        ctx.available_stock = product.current_stock - product.allocated_stock
        ctx.open_order_quantity = sum(o.pending_quantity for o in data.open_orders)
        ctx.inventory_position = ctx.available_stock + ctx.open_order_quantity
        ctx.lead_time_days = cfg.effective_lead_time_days
        ctx.coverage_days = cfg.effective_coverage_days
        ctx.pack_size = max(data.pack_size or product.pack_size or 1, 1)
        ctx.adjusted_daily_demand = data.daily_demand * data.trend_factor * data.seasonality_index
        ctx.safety_stock = (
            ctx.adjusted_daily_demand * cfg.stock_reserve_days if cfg.include_stock_reserve else 0.0
        )
        ctx.current_coverage_days = coverage_days(ctx.available_stock, ctx.adjusted_daily_demand)
        return ctx

    @property
    def horizon_days(self) -> int:
        return self.lead_time_days + self.coverage_days


def _receipts_by_offset(
    orders: list[OpenPurchaseOrder], today: date, horizon: int
) -> dict[int, float]:
    """Pending quantity per simulation day; overdue orders land on day 1."""
    receipts: dict[int, float] = {}
    for order in orders:
        if order.pending_quantity <= 0:
            continue
        offset = max((order.eta - today).days, 1)
        if offset > horizon:
            continue
        receipts[offset] = receipts.get(offset, 0.0) + order.pending_quantity
    return receipts
