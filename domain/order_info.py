"""
Domain: Storefront order information.

The storefront posts the full record of a checkout (totals, payment, customer,
shipping address and line items) so it can be kept next to the lead orders it
produced. Records are validated once here and stored as-is; nothing in the
allocation flow reads them.

Contract excerpts implemented here:
- Every top-level field is required; customer, shipping and each item have
  their own required fields, checked in that order.
- order_number is unique across stored records.
- Money values are Decimals; date_created is normalized to UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence, Tuple

from .errors import ValidationError
from .order import MAX_ORDER_QUANTITY
from .time import as_utc

_CUSTOMER_REQUIRED = (
    "first_name", "last_name", "email", "address_1", "city", "state", "postcode", "country",
)
_SHIPPING_REQUIRED = (
    "first_name", "last_name", "address_1", "city", "state", "postcode", "country",
)
_ITEM_REQUIRED = ("product_id", "product_name", "quantity", "subtotal", "total", "price")
_ORDER_REQUIRED = (
    "order_id", "order_number", "total", "currency", "payment_method",
    "payment_method_title", "status", "date_created", "customer", "shipping", "items",
)

# Largest amount the NUMERIC(12, 2) money columns hold.
_MAX_MONEY = Decimal("9999999999.99")


def _present(value: Any) -> bool:
    """None, blank strings and zero count as missing; containers never do."""

    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (Mapping, list, tuple)):
        return True
    return bool(value)


def _missing(data: Mapping[str, Any], fields: Sequence[str]) -> bool:
    return any(not _present(data.get(name)) for name in fields)


def _text(value: Any) -> Optional[str]:
    if not _present(value):
        return None
    return str(value).strip()


def _money(value: Any, field_name: str) -> Decimal:
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid numeric value for {field_name}") from None
    if not amount.is_finite() or abs(amount) > _MAX_MONEY:
        raise ValidationError(f"Invalid numeric value for {field_name}")
    return amount


def _whole_number(value: Any, field_name: str) -> int:
    amount = _money(value, field_name)
    if amount != amount.to_integral_value() or not 0 < amount <= MAX_ORDER_QUANTITY:
        raise ValidationError(f"Invalid numeric value for {field_name}")
    return int(amount)


def _timestamp(value: Any) -> datetime:
    try:
        return as_utc(str(value).strip())
    except ValueError:
        raise ValidationError("Invalid date_created") from None


@dataclass(frozen=True, slots=True)
class OrderAddress:
    """Customer (billing) or shipping address. email/phone are customer-only."""

    first_name: str
    last_name: str
    address_1: str
    city: str
    state: str
    postcode: str
    country: str
    address_2: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, with_contact: bool) -> "OrderAddress":
        return cls(
            first_name=_text(data["first_name"]),
            last_name=_text(data["last_name"]),
            address_1=_text(data["address_1"]),
            city=_text(data["city"]),
            state=_text(data["state"]),
            postcode=_text(data["postcode"]),
            country=_text(data["country"]),
            address_2=_text(data.get("address_2")),
            company=_text(data.get("company")),
            email=_text(data.get("email")) if with_contact else None,
            phone=_text(data.get("phone")) if with_contact else None,
        )


@dataclass(frozen=True, slots=True)
class OrderLineItem:
    product_id: str
    product_name: str
    quantity: int
    subtotal: Decimal
    total: Decimal
    price: Decimal
    sku: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OrderInfo:
    """
    A storefront order record.

    order_info_id is None until the record has been stored.
    """

    order_id: str
    order_number: str
    total: Decimal
    currency: str
    payment_method: str
    payment_method_title: str
    status: str
    date_created: datetime
    customer: OrderAddress
    shipping: OrderAddress
    items: Tuple[OrderLineItem, ...]
    order_info_id: Optional[int] = None

    @classmethod
    def parse(cls, payload: Mapping[str, Any]) -> "OrderInfo":
        """
        Validate a storefront payload.

        Raises:
            ValidationError: with the first problem found, e.g.
                "Missing required fields", "Missing required customer fields",
                "Missing required shipping fields",
                "Items array is required and must not be empty",
                "Missing required item fields", or an invalid number or date.
        """

        if _missing(payload, _ORDER_REQUIRED):
            raise ValidationError("Missing required fields")

        customer = payload["customer"]
        if not isinstance(customer, Mapping) or _missing(customer, _CUSTOMER_REQUIRED):
            raise ValidationError("Missing required customer fields")

        shipping = payload["shipping"]
        if not isinstance(shipping, Mapping) or _missing(shipping, _SHIPPING_REQUIRED):
            raise ValidationError("Missing required shipping fields")

        items = payload["items"]
        if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Sequence) or not items:
            raise ValidationError("Items array is required and must not be empty")
        for item in items:
            if not isinstance(item, Mapping) or _missing(item, _ITEM_REQUIRED):
                raise ValidationError("Missing required item fields")

        return cls(
            order_id=_text(payload["order_id"]),
            order_number=_text(payload["order_number"]),
            total=_money(payload["total"], "total"),
            currency=_text(payload["currency"]),
            payment_method=_text(payload["payment_method"]),
            payment_method_title=_text(payload["payment_method_title"]),
            status=_text(payload["status"]),
            date_created=_timestamp(payload["date_created"]),
            customer=OrderAddress.from_mapping(customer, with_contact=True),
            shipping=OrderAddress.from_mapping(shipping, with_contact=False),
            items=tuple(
                OrderLineItem(
                    product_id=_text(item["product_id"]),
                    product_name=_text(item["product_name"]),
                    quantity=_whole_number(item["quantity"], "item quantity"),
                    subtotal=_money(item["subtotal"], "item subtotal"),
                    total=_money(item["total"], "item total"),
                    price=_money(item["price"], "item price"),
                    sku=_text(item.get("sku")),
                )
                for item in items
            ),
        )


__all__ = ["OrderAddress", "OrderInfo", "OrderLineItem"]
