"""
Database models (SQLAlchemy).

Table names match the original relational schema so existing data can be used
as-is:

- lead_details       the lead pool; order_number NULL/'' means free
- lead_orders        the order ledger
- lead_order_states  per (order, state) threshold and progress
- order_info         storefront order records, with their order_customers,
                     order_shipping and order_items rows

Persistence-only: row classes never leave the repositories package; callers get
domain entities back.
"""

from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase

from domain.time import utc_now


class Base(DeclarativeBase):
    pass


class LeadRow(Base):
    __tablename__ = "lead_details"

    # Insertion order; allocation takes the lowest ids first.
    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(String(32), nullable=False)
    state = Column(String(2), nullable=False)
    order_number = Column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_lead_details_state_order_number", "state", "order_number"),
        Index("ix_lead_details_order_number", "order_number"),
    )


class OrderRow(Base):
    __tablename__ = "lead_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(255), nullable=False, unique=True)
    states = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    fulfilled_count = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")
    product_name = Column(String(255), nullable=True)
    actual_order_number = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_lead_orders_quantity_positive"),
        CheckConstraint(
            "fulfilled_count >= 0 AND fulfilled_count <= quantity",
            name="ck_lead_orders_fulfilled_within_quantity",
        ),
        Index("ix_lead_orders_created_at", "created_at"),
    )


class OrderStateRow(Base):
    __tablename__ = "lead_order_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("lead_orders.id", ondelete="CASCADE"), nullable=False)
    state = Column(String(2), nullable=False)
    threshold = Column(Integer, nullable=False)
    fulfilled_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("order_id", "state", name="uq_lead_order_states_order_state"),
        CheckConstraint("threshold > 0", name="ck_lead_order_states_threshold_positive"),
        CheckConstraint("fulfilled_count >= 0", name="ck_lead_order_states_fulfilled_non_negative"),
    )


class OrderInfoRow(Base):
    """Storefront order record; parent of the customer, shipping and item rows."""

    __tablename__ = "order_info"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), nullable=False)
    order_number = Column(String(255), nullable=False, unique=True)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False)
    payment_method = Column(String(100), nullable=False)
    payment_method_title = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False)
    date_created = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class OrderCustomerRow(Base):
    __tablename__ = "order_customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("order_info.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    address_1 = Column(String(255), nullable=False)
    address_2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postcode = Column(String(20), nullable=False)
    country = Column(String(2), nullable=False)
    company = Column(String(255), nullable=True)

    __table_args__ = (Index("ix_order_customers_order_id", "order_id"),)


class OrderShippingRow(Base):
    __tablename__ = "order_shipping"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("order_info.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    address_1 = Column(String(255), nullable=False)
    address_2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postcode = Column(String(20), nullable=False)
    country = Column(String(2), nullable=False)
    company = Column(String(255), nullable=True)

    __table_args__ = (Index("ix_order_shipping_order_id", "order_id"),)


class OrderItemRow(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("order_info.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(64), nullable=False)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    sku = Column(String(100), nullable=True)
    price = Column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        Index("ix_order_items_order_id", "order_id"),
    )


__all__ = [
    "Base",
    "LeadRow",
    "OrderCustomerRow",
    "OrderInfoRow",
    "OrderItemRow",
    "OrderRow",
    "OrderShippingRow",
    "OrderStateRow",
]
