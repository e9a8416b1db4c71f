"""
Order info repository (persistence).

Stores storefront order records: one order_info row plus its customer,
shipping and item rows. Every function works inside the caller's session and
never commits.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from domain.order_info import OrderAddress, OrderInfo, OrderLineItem
from domain.time import as_utc
from repositories.schema import OrderCustomerRow, OrderInfoRow, OrderItemRow, OrderShippingRow


def _decimal(value: Any) -> Decimal:
    # Drivers without a native decimal type may hand back floats.
    return value if isinstance(value, Decimal) else Decimal(str(value)).quantize(Decimal("0.01"))


def _address(row: Any, *, with_contact: bool) -> OrderAddress:
    return OrderAddress(
        first_name=row.first_name,
        last_name=row.last_name,
        address_1=row.address_1,
        city=row.city,
        state=row.state,
        postcode=row.postcode,
        country=row.country,
        address_2=row.address_2,
        company=row.company,
        email=row.email if with_contact else None,
        phone=row.phone if with_contact else None,
    )


def insert_order_info(session: Session, info: OrderInfo) -> int:
    """
    Insert an order record with its customer, shipping and item rows.

    The parent insert is flushed so a duplicate order number surfaces here as
    an IntegrityError rather than at commit.

    Returns:
        The new order_info id.
    """

    row = OrderInfoRow(
        order_id=info.order_id,
        order_number=info.order_number,
        total=info.total,
        currency=info.currency,
        payment_method=info.payment_method,
        payment_method_title=info.payment_method_title,
        status=info.status,
        date_created=info.date_created,
    )
    session.add(row)
    session.flush()

    customer, shipping = info.customer, info.shipping
    session.add(OrderCustomerRow(
        order_id=row.id,
        first_name=customer.first_name,
        last_name=customer.last_name,
        email=customer.email,
        phone=customer.phone,
        address_1=customer.address_1,
        address_2=customer.address_2,
        city=customer.city,
        state=customer.state,
        postcode=customer.postcode,
        country=customer.country,
        company=customer.company,
    ))
    session.add(OrderShippingRow(
        order_id=row.id,
        first_name=shipping.first_name,
        last_name=shipping.last_name,
        address_1=shipping.address_1,
        address_2=shipping.address_2,
        city=shipping.city,
        state=shipping.state,
        postcode=shipping.postcode,
        country=shipping.country,
        company=shipping.company,
    ))
    session.add_all([
        OrderItemRow(
            order_id=row.id,
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            subtotal=item.subtotal,
            total=item.total,
            sku=item.sku,
            price=item.price,
        )
        for item in info.items
    ])
    session.flush()
    return row.id


def order_info_number_exists(session: Session, order_number: str) -> bool:
    return session.scalar(
        select(OrderInfoRow.id).where(OrderInfoRow.order_number == order_number).limit(1)
    ) is not None


def get_order_info(session: Session, order_info_id: int) -> Optional[OrderInfo]:
    """Fetch a stored order record with its addresses and items, or None."""

    row = session.get(OrderInfoRow, order_info_id)
    if row is None:
        return None

    customer = session.scalars(
        select(OrderCustomerRow).where(OrderCustomerRow.order_id == row.id)
    ).first()
    shipping = session.scalars(
        select(OrderShippingRow).where(OrderShippingRow.order_id == row.id)
    ).first()
    items = session.scalars(
        select(OrderItemRow).where(OrderItemRow.order_id == row.id).order_by(OrderItemRow.id)
    )
    if customer is None or shipping is None:
        raise RuntimeError(f"Order info {row.id} is missing its address rows")

    return OrderInfo(
        order_id=row.order_id,
        order_number=row.order_number,
        total=_decimal(row.total),
        currency=row.currency,
        payment_method=row.payment_method,
        payment_method_title=row.payment_method_title,
        status=row.status,
        date_created=as_utc(row.date_created),
        customer=_address(customer, with_contact=True),
        shipping=_address(shipping, with_contact=False),
        items=tuple(
            OrderLineItem(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                subtotal=_decimal(item.subtotal),
                total=_decimal(item.total),
                price=_decimal(item.price),
                sku=item.sku,
            )
            for item in items
        ),
        order_info_id=row.id,
    )


def count_order_info_rows(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(OrderInfoRow)) or 0


__all__ = [
    "count_order_info_rows",
    "get_order_info",
    "insert_order_info",
    "order_info_number_exists",
]
