"""
Database Models - Order Store

Read models for the tables owned by the order/catalog store. The analytics
engine only ever reads them:

Orders:
- Order: one placed order with its totals and loosely shaped descriptors
- OrderItem: line items of an order

Catalog:
- Product / ProductVariant: optional join targets for display names and brands
- Customer: customer records, used for catalog counts only

JSON columns use JSONB on PostgreSQL and the generic JSON type elsewhere.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
import uuid

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# CATALOG
# =============================================================================

class Product(Base):
    """
    Catalog Product

    Display attributes resolved for analytics joins.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shop_id: Mapped[int] = mapped_column(Integer, nullable=False)
    guid: Mapped[Optional[str]] = mapped_column(String(64))
    name: Mapped[Optional[str]] = mapped_column(String(255))
    brand: Mapped[Optional[str]] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    variants: Mapped[List["ProductVariant"]] = relationship(back_populates="product")

    __table_args__ = (
        Index("ix_products_shop", "shop_id"),
        Index("ix_products_created", "created_at"),
    )


class ProductVariant(Base):
    """
    Catalog Variant

    Joined to order items by variant code.
    """
    __tablename__ = "product_variants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id"), nullable=False)
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    brand: Mapped[Optional[str]] = mapped_column(String(255))
    ean: Mapped[Optional[str]] = mapped_column(String(50))

    product: Mapped["Product"] = relationship(back_populates="variants")

    __table_args__ = (
        Index("ix_product_variants_code", "code"),
    )


class Customer(Base):
    """Customer record of one shop"""
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shop_id: Mapped[int] = mapped_column(Integer, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_customers_shop", "shop_id"),
        Index("ix_customers_created", "created_at"),
    )


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Order

    Grain: one placed order. Totals are kept in the order currency
    (total_with_vat) and, when the importer could compute it, in the base
    currency (total_with_vat_base).
    """
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shop_id: Mapped[int] = mapped_column(Integer, nullable=False)
    code: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[Optional[str]] = mapped_column(String(100))
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    ordered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Totals
    currency_code: Mapped[Optional[str]] = mapped_column(String(3))
    total_with_vat: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    total_with_vat_base: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))

    # Loosely structured descriptors
    payment: Mapped[Optional[Any]] = mapped_column(JSONType)
    shipping: Mapped[Optional[Any]] = mapped_column(JSONType)
    billing_address: Mapped[Optional[Any]] = mapped_column(JSONType)
    delivery_address: Mapped[Optional[Any]] = mapped_column(JSONType)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    items: Mapped[List["OrderItem"]] = relationship(back_populates="order")

    __table_args__ = (
        Index("ix_orders_shop", "shop_id"),
        Index("ix_orders_ordered_at", "ordered_at"),
        Index("ix_orders_status", "status"),
        Index("ix_orders_customer_email", "customer_email"),
    )


class OrderItem(Base):
    """
    Order Line Item

    Grain: one line of an order. Revenue (price_with_vat) is in the parent
    order's currency.
    """
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("orders.id"), nullable=False)

    product_guid: Mapped[Optional[str]] = mapped_column(String(64))
    item_type: Mapped[Optional[str]] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_name: Mapped[Optional[str]] = mapped_column(String(255))
    code: Mapped[Optional[str]] = mapped_column(String(100))
    ean: Mapped[Optional[str]] = mapped_column(String(50))

    # Measures
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3))
    price_with_vat: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
        Index("ix_order_items_code", "code"),
    )
