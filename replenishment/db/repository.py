"""History repository: the engine's view of persisted facts.

``HistoryRepository`` is the async interface the services consume;
``SqlHistoryRepository`` implements it on SQLAlchemy, running each blocking
query in a worker thread with its own session.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from typing import Protocol, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from replenishment.core.logging import get_logger
from replenishment.db import models
from replenishment.domain.coverage.types import (
    HistoryBundle,
    Product,
    RawAvailabilityRecord,
    RawSalesRecord,
    StockCoverageResult,
)
from replenishment.domain.purchase.config import ProductFilters
from replenishment.domain.purchase.types import OpenPurchaseOrder

log = get_logger("replenishment.db.repository")

OPEN_ORDER_STATUSES = ("PENDING", "PARTIAL", "TRANSIT", "DELAYED")

T = TypeVar("T")


class HistoryRepository(Protocol):
    """Async persistence interface consumed by the services."""

    async def get_product(self, sku: str) -> Product | None: ...

    async def get_history(self, sku: str, days: int, end_date: date) -> HistoryBundle: ...

    async def get_open_orders(self, sku: str) -> list[OpenPurchaseOrder]: ...

    async def get_products_by_filter(self, filters: ProductFilters) -> list[Product]: ...

    async def save_coverage(self, result: StockCoverageResult) -> None: ...

    async def get_latest_coverage(self, sku: str) -> StockCoverageResult | None: ...

    async def delete_expired_coverages(self, now: datetime) -> int: ...

    async def upsert_sales(self, sku: str, record: RawSalesRecord) -> None: ...

    async def upsert_availability(self, sku: str, record: RawAvailabilityRecord) -> None: ...


def to_naive_utc(value: datetime) -> datetime:
    """Convert aware datetimes to naive UTC for storage."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SqlHistoryRepository:
    """HistoryRepository backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def _run(self, fn: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._in_session, fn)

    def _in_session(self, fn: Callable[[Session], T]) -> T:
        with self._session_factory() as db:
            return fn(db)

    # --- Reads -----------------------------------------------------------

    async def get_product(self, sku: str) -> Product | None:
        def query(db: Session) -> Product | None:
            row = db.execute(select(models.Product).where(models.Product.sku == sku)).scalar()
            return Product.model_validate(row) if row else None

        return await self._run(query)

    async def get_history(self, sku: str, days: int, end_date: date) -> HistoryBundle:
        """Sales and availability facts for ``days`` days ending on ``end_date``."""
        start = end_date - timedelta(days=days - 1)

        def query(db: Session) -> HistoryBundle:
            sales = db.execute(
                select(models.SalesHistory)
                .where(models.SalesHistory.sku == sku)
                .where(models.SalesHistory.d >= start)
                .where(models.SalesHistory.d <= end_date)
                .order_by(models.SalesHistory.d)
            ).scalars()
            availability = db.execute(
                select(models.StockAvailability)
                .where(models.StockAvailability.sku == sku)
                .where(models.StockAvailability.d >= start)
                .where(models.StockAvailability.d <= end_date)
                .order_by(models.StockAvailability.d)
            ).scalars()
            return HistoryBundle(
                sales=[
                    RawSalesRecord(
                        date=s.d,
                        units_sold=s.units_sold,
                        price=s.price,
                        revenue=s.revenue,
                        promotion_flag=s.promotion_flag,
                    )
                    for s in sales
                ],
                availability=[
                    RawAvailabilityRecord(
                        date=a.d,
                        minutes_in_stock=a.minutes_in_stock,
                        stockout_events=a.stockout_events,
                    )
                    for a in availability
                ],
            )

        return await self._run(query)

    async def get_open_orders(self, sku: str) -> list[OpenPurchaseOrder]:
        def query(db: Session) -> list[OpenPurchaseOrder]:
            rows = db.execute(
                select(models.PurchaseOrder)
                .where(models.PurchaseOrder.sku == sku)
                .where(models.PurchaseOrder.status.in_(OPEN_ORDER_STATUSES))
                .order_by(models.PurchaseOrder.eta)
            ).scalars()
            orders = [
                OpenPurchaseOrder(
                    id=str(row.id),
                    order_number=row.order_number,
                    sku=row.sku,
                    quantity=row.quantity,
                    received_quantity=row.received_quantity,
                    eta=row.eta,
                    supplier=row.supplier,
                    status=row.status,
                )
                for row in rows
            ]
            return [o for o in orders if o.pending_quantity > 0]

        return await self._run(query)

    async def get_products_by_filter(self, filters: ProductFilters) -> list[Product]:
        """Products matching every non-empty filter, ordered by SKU."""

        def query(db: Session) -> list[Product]:
            stmt = select(models.Product)
            if filters.skus:
                stmt = stmt.where(models.Product.sku.in_(filters.skus))
            if filters.brands:
                stmt = stmt.where(models.Product.brand.in_(filters.brands))
            if filters.suppliers:
                stmt = stmt.where(models.Product.supplier.in_(filters.suppliers))
            if filters.warehouses:
                stmt = stmt.where(models.Product.warehouse.in_(filters.warehouses))
            if filters.categories:
                stmt = stmt.where(models.Product.category.in_(filters.categories))
            if filters.only_active:
                stmt = stmt.where(models.Product.is_active.is_(True))
            if filters.only_below_minimum:
                stmt = stmt.where(models.Product.current_stock < models.Product.minimum_stock)
            rows = db.execute(stmt.order_by(models.Product.sku)).scalars()
            return [Product.model_validate(row) for row in rows]

        return await self._run(query)

    async def get_latest_coverage(self, sku: str) -> StockCoverageResult | None:
        def query(db: Session) -> StockCoverageResult | None:
            payload = db.execute(
                select(models.StockCoverage.payload)
                .where(models.StockCoverage.sku == sku)
                .order_by(models.StockCoverage.calculated_at.desc(), models.StockCoverage.id.desc())
                .limit(1)
            ).scalar()
            return StockCoverageResult.model_validate_json(payload) if payload else None

        return await self._run(query)

    # --- Writes ----------------------------------------------------------

    async def save_coverage(self, result: StockCoverageResult) -> None:
        def write(db: Session) -> None:
            db.add(
                models.StockCoverage(
                    sku=result.sku,
                    coverage_days=None if result.infinite_coverage else result.coverage_days,
                    infinite_coverage=result.infinite_coverage,
                    demand_forecast=result.demand_forecast,
                    confidence=result.confidence,
                    stockout_risk=result.stockout_risk,
                    algorithm=result.algorithm,
                    payload=result.model_dump_json(),
                    calculated_at=to_naive_utc(result.calculated_at),
                    expires_at=to_naive_utc(result.expires_at),
                )
            )
            db.commit()

        await self._run(write)

    async def delete_expired_coverages(self, now: datetime) -> int:
        """Delete coverage rows whose expires_at is not after ``now``."""

        def write(db: Session) -> int:
            result = db.execute(
                delete(models.StockCoverage).where(
                    models.StockCoverage.expires_at <= to_naive_utc(now)
                )
            )
            db.commit()
            return result.rowcount or 0

        deleted = await self._run(write)
        log.info("expired_coverages_deleted", extra={"deleted": deleted})
        return deleted

    async def upsert_sales(self, sku: str, record: RawSalesRecord) -> None:
        def write(db: Session) -> None:
            row = db.execute(
                select(models.SalesHistory)
                .where(models.SalesHistory.sku == sku)
                .where(models.SalesHistory.d == record.date)
            ).scalar()
            if row is None:
                row = models.SalesHistory(sku=sku, d=record.date)
                db.add(row)
            row.units_sold = record.units_sold
            row.price = record.price
            row.revenue = record.revenue
            row.promotion_flag = record.promotion_flag
            db.commit()

        await self._run(write)

    async def upsert_availability(self, sku: str, record: RawAvailabilityRecord) -> None:
        def write(db: Session) -> None:
            row = db.execute(
                select(models.StockAvailability)
                .where(models.StockAvailability.sku == sku)
                .where(models.StockAvailability.d == record.date)
            ).scalar()
            if row is None:
                row = models.StockAvailability(sku=sku, d=record.date)
                db.add(row)
            row.minutes_in_stock = record.minutes_in_stock
            row.stockout_events = record.stockout_events
            db.commit()

        await self._run(write)
