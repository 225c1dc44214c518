"""Shared pytest fixtures: fake repository, history builders, SQL sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from replenishment.db.models import Base
from replenishment.domain.coverage.types import (
    HistoryBundle,
    Product,
    RawAvailabilityRecord,
    RawSalesRecord,
    StockCoverageResult,
)
from replenishment.domain.purchase.config import ProductFilters
from replenishment.domain.purchase.types import OpenPurchaseOrder

TODAY = date(2025, 3, 12)  # Wednesday
NOW = datetime(2025, 3, 12, 9, 30, tzinfo=timezone.utc)


def build_sales(
    end_date: date,
    days: int,
    units: float | Callable[[date], float],
    promo_days: set[date] | None = None,
) -> list[RawSalesRecord]:
    """One sales record per day ending on ``end_date`` (inclusive)."""
    promo_days = promo_days or set()
    records = []
    for i in range(days):
        d = end_date - timedelta(days=days - 1 - i)
        qty = units(d) if callable(units) else units
        records.append(RawSalesRecord(date=d, units_sold=qty, promotion_flag=d in promo_days))
    return records


class FakeRepository:
    """In-memory HistoryRepository with per-SKU induced delays and failures."""

    def __init__(self):
        self.products: dict[str, Product] = {}
        self.sales: dict[str, dict[date, RawSalesRecord]] = {}
        self.availability: dict[str, dict[date, RawAvailabilityRecord]] = {}
        self.orders: dict[str, list[OpenPurchaseOrder]] = {}
        self.coverages: list[StockCoverageResult] = []
        self.delays: dict[str, float] = {}
        self.failures: dict[str, Exception] = {}
        self.history_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    def add_product(
        self,
        product: Product,
        sales: list[RawSalesRecord] | None = None,
        availability: list[RawAvailabilityRecord] | None = None,
        orders: list[OpenPurchaseOrder] | None = None,
    ) -> None:
        self.products[product.sku] = product
        self.sales[product.sku] = {r.date: r for r in sales or []}
        self.availability[product.sku] = {r.date: r for r in availability or []}
        self.orders[product.sku] = list(orders or [])

    async def get_product(self, sku: str) -> Product | None:
        await asyncio.sleep(0)
        return self.products.get(sku)

    async def get_history(self, sku: str, days: int, end_date: date) -> HistoryBundle:
        self.history_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(sku, 0))
            if sku in self.failures:
                raise self.failures[sku]
            start = end_date - timedelta(days=days - 1)
            return HistoryBundle(
                sales=[r for d, r in sorted(self.sales.get(sku, {}).items()) if start <= d <= end_date],
                availability=[
                    r
                    for d, r in sorted(self.availability.get(sku, {}).items())
                    if start <= d <= end_date
                ],
            )
        finally:
            self.in_flight -= 1

    async def get_open_orders(self, sku: str) -> list[OpenPurchaseOrder]:
        await asyncio.sleep(0)
        return [o for o in self.orders.get(sku, []) if o.pending_quantity > 0]

    async def get_products_by_filter(self, filters: ProductFilters) -> list[Product]:
        await asyncio.sleep(0)
        selected = []
        for p in self.products.values():
            if filters.skus and p.sku not in filters.skus:
                continue
            if filters.brands and p.brand not in filters.brands:
                continue
            if filters.suppliers and p.supplier not in filters.suppliers:
                continue
            if filters.warehouses and p.warehouse not in filters.warehouses:
                continue
            if filters.categories and p.category not in filters.categories:
                continue
            if filters.only_active and not p.is_active:
                continue
            if filters.only_below_minimum and p.current_stock >= p.minimum_stock:
                continue
            selected.append(p)
        return sorted(selected, key=lambda p: p.sku)

    async def save_coverage(self, result: StockCoverageResult) -> None:
        self.coverages.append(result)

    async def get_latest_coverage(self, sku: str) -> StockCoverageResult | None:
        mine = [c for c in self.coverages if c.sku == sku]
        return max(mine, key=lambda c: c.calculated_at) if mine else None

    async def delete_expired_coverages(self, now: datetime) -> int:
        before = len(self.coverages)
        self.coverages = [c for c in self.coverages if c.expires_at > now]
        return before - len(self.coverages)

    async def upsert_sales(self, sku: str, record: RawSalesRecord) -> None:
        self.sales.setdefault(sku, {})[record.date] = record

    async def upsert_availability(self, sku: str, record: RawAvailabilityRecord) -> None:
        self.availability.setdefault(sku, {})[record.date] = record


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Fixed UTC clock for services."""
    return lambda: NOW


@pytest.fixture
def sales_series():
    """Builder for daily sales records (see build_sales)."""
    return build_sales


@pytest.fixture
def fake_repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def session_factory():
    """Session factory over a shared in-memory SQLite connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        engine.dispose()
