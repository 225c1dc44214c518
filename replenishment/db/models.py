"""SQLAlchemy ORM models for the replenishment engine.

Tables:
- Reference data (Products)
- Fact tables (Sales History, Stock Availability, Purchase Orders)
- Derived tables (Stock Coverage results)

All timestamps are stored as naive UTC.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base shared by all engine tables."""

    pass


# =============================================================================
# Reference Tables
# =============================================================================


class Product(Base):
    """Catalogue entry with current stock position and supply parameters."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    supplier: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    warehouse: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    current_stock: Mapped[float] = mapped_column(Float, default=0.0)
    allocated_stock: Mapped[float] = mapped_column(Float, default=0.0)  # Reserved for customers
    minimum_stock: Mapped[float] = mapped_column(Float, default=0.0)
    lead_time_days: Mapped[int] = mapped_column(Integer, default=7)
    pack_size: Mapped[int] = mapped_column(Integer, default=1)  # Orderable multiple
    cost_price: Mapped[float] = mapped_column(Float, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# =============================================================================
# Fact Tables
# =============================================================================


class SalesHistory(Base):
    """Units sold per SKU per day."""

    __tablename__ = "sales_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(ForeignKey("products.sku", ondelete="CASCADE"))
    d: Mapped[date] = mapped_column(Date)
    units_sold: Mapped[float] = mapped_column(Float, default=0.0)
    price: Mapped[float] = mapped_column(Float, default=0.0)
    revenue: Mapped[float] = mapped_column(Float, default=0.0)
    promotion_flag: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("sku", "d", name="uq_sales_history_sku_d"),
        Index("ix_sales_history_sku_d", "sku", "d"),
    )


class StockAvailability(Base):
    """Minutes in stock per SKU per day (1440 = whole day)."""

    __tablename__ = "stock_availability"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(ForeignKey("products.sku", ondelete="CASCADE"))
    d: Mapped[date] = mapped_column(Date)
    minutes_in_stock: Mapped[int] = mapped_column(Integer, default=1440)
    stockout_events: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("sku", "d", name="uq_stock_availability_sku_d"),
        Index("ix_stock_availability_sku_d", "sku", "d"),
    )


class PurchaseOrder(Base):
    """Supplier purchase order line."""

    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sku: Mapped[str] = mapped_column(ForeignKey("products.sku", ondelete="CASCADE"), index=True)
    quantity: Mapped[float] = mapped_column(Float)
    received_quantity: Mapped[float] = mapped_column(Float, default=0.0)
    eta: Mapped[date] = mapped_column(Date)
    supplier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # PENDING | PARTIAL | TRANSIT | DELAYED | RECEIVED | CANCELLED
    status: Mapped[str] = mapped_column(String(16), default="PENDING", index=True)


# =============================================================================
# Derived Tables
# =============================================================================


class StockCoverage(Base):
    """Persisted coverage result; payload holds the full serialized result."""

    __tablename__ = "stock_coverage"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(64))
    coverage_days: Mapped[float | None] = mapped_column(Float, nullable=True)  # NULL = infinite
    infinite_coverage: Mapped[bool] = mapped_column(Boolean, default=False)
    demand_forecast: Mapped[float] = mapped_column(Float)
    confidence: Mapped[float] = mapped_column(Float)
    stockout_risk: Mapped[float] = mapped_column(Float)
    algorithm: Mapped[str] = mapped_column(String(64))
    payload: Mapped[str] = mapped_column(Text)
    calculated_at: Mapped[datetime] = mapped_column(DateTime)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)

    __table_args__ = (Index("ix_stock_coverage_sku_calculated", "sku", "calculated_at"),)
