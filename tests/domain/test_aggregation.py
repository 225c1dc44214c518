"""Tests for supplier and warehouse roll-ups."""

from __future__ import annotations

import pytest

from replenishment.domain.coverage.types import Product
from replenishment.domain.purchase.aggregation import (
    UNASSIGNED,
    aggregate_by_supplier,
    aggregate_by_warehouse,
)
from replenishment.domain.purchase.calculator import PurchaseRequirementCalculator
from replenishment.domain.purchase.types import PurchaseRequirementInput


@pytest.fixture
def results(today):
    calculator = PurchaseRequirementCalculator()
    specs = [
        # sku, supplier, warehouse, stock, cost
        ("A", "acme", "north", 20, 2.0),
        ("B", "acme", "south", 500, 1.0),
        ("C", "globex", "north", 100, 4.0),
        ("D", None, None, 10, 1.0),
    ]
    return [
        calculator.calculate(
            PurchaseRequirementInput(
                product=Product(
                    sku=sku,
                    supplier=supplier,
                    warehouse=warehouse,
                    current_stock=stock,
                    cost_price=cost,
                ),
                daily_demand=10.0,
                today=today,
            )
        )
        for sku, supplier, warehouse, stock, cost in specs
    ]


def test_by_supplier(results):
    groups = aggregate_by_supplier(results)

    assert list(groups) == sorted(["acme", "globex", UNASSIGNED])
    acme = groups["acme"]
    assert acme.product_count == 2
    assert [r.sku for r in acme.products] == ["A", "B"]
    assert acme.total_quantity == sum(r.suggested_quantity for r in results[:2])
    assert acme.total_investment == pytest.approx(
        sum(r.estimated_investment for r in results[:2])
    )
    assert acme.critical_products == 1


def test_by_warehouse(results):
    groups = aggregate_by_warehouse(results)

    assert set(groups) == {"north", "south", UNASSIGNED}
    assert groups["north"].product_count == 2
    assert groups[UNASSIGNED].products[0].sku == "D"
    assert groups[UNASSIGNED].critical_products == 1


def test_totals_match_inputs(results):
    """Every result lands in exactly one group."""
    by_supplier = aggregate_by_supplier(results)
    by_warehouse = aggregate_by_warehouse(results)

    total = sum(r.suggested_quantity for r in results)
    assert sum(g.total_quantity for g in by_supplier.values()) == total
    assert sum(g.total_quantity for g in by_warehouse.values()) == total
    assert sum(g.product_count for g in by_supplier.values()) == len(results)


def test_empty():
    assert aggregate_by_supplier([]) == {}
    assert aggregate_by_warehouse([]) == {}
