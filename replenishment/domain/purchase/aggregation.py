"""Supplier and warehouse roll-ups of purchase recommendations."""

from __future__ import annotations

from collections.abc import Iterable

from replenishment.domain.purchase.types import (
    PurchaseRequirementResult,
    SupplierAggregation,
    WarehouseAggregation,
)

UNASSIGNED = "UNASSIGNED"


def aggregate_by_supplier(
    results: Iterable[PurchaseRequirementResult],
) -> dict[str, SupplierAggregation]:
    """Group results by supplier (create-if-absent, then accumulate)."""
    groups: dict[str, SupplierAggregation] = {}
    for r in results:
        key = r.supplier or UNASSIGNED
        agg = groups.get(key)
        if agg is None:
            agg = groups[key] = SupplierAggregation(supplier=key)
        agg.product_count += 1
        agg.total_quantity += r.suggested_quantity
        agg.total_investment += r.estimated_investment
        if r.is_high_risk:
            agg.critical_products += 1
        agg.products.append(r)
    return dict(sorted(groups.items()))


def aggregate_by_warehouse(
    results: Iterable[PurchaseRequirementResult],
) -> dict[str, WarehouseAggregation]:
    """Group results by warehouse (create-if-absent, then accumulate)."""
    groups: dict[str, WarehouseAggregation] = {}
    for r in results:
        key = r.warehouse or UNASSIGNED
        agg = groups.get(key)
        if agg is None:
            agg = groups[key] = WarehouseAggregation(warehouse=key)
        agg.product_count += 1
        agg.total_quantity += r.suggested_quantity
        agg.total_investment += r.estimated_investment
        if r.is_high_risk:
            agg.critical_products += 1
        agg.products.append(r)
    return dict(sorted(groups.items()))
