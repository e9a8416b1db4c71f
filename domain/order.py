"""
Domain: Orders and per-state fulfillment progress.

Contract excerpts implemented here:
- An Order requests `quantity` leads drawn from an ordered list of states.
- fulfilled_count <= quantity, always.
- status == FULFILLED iff fulfilled_count >= quantity; completed_at is stamped
  once, when the order first reaches its target.
- OrderStateProgress tracks, per (order, state), the cap for that state and the
  number of leads drawn from it. The threshold caps each allocation pass; the
  sum of fulfilled counts over an order's states equals the order's
  fulfilled_count.

Entities are frozen; transitions return new instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from .errors import InvalidStateTransitionError, ValidationError
from .states import (
    StateCode,
    format_states,
    is_one_time_product,
    parse_states,
    parse_thresholds,
    threshold_for,
)
from .time import require_utc_timestamp


class OrderStatus(str, Enum):
    ACTIVE = "active"
    FULFILLED = "fulfilled"


# Largest value the quantity columns hold (32-bit signed INTEGER).
MAX_ORDER_QUANTITY: int = 2_147_483_647


def _parse_quantity(quantity: Any) -> Optional[int]:
    """Whole-number quantity from an int, float or numeric string ("3", "3.0")."""

    if quantity is None or isinstance(quantity, bool):
        return None
    try:
        value = Decimal(str(quantity).strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or value != value.to_integral_value():
        return None
    return int(value)


@dataclass(frozen=True, slots=True)
class NewOrder:
    """
    A validated order creation request, parsed from its wire form.

    Use `NewOrder.parse(...)`; the constructor assumes already-typed values.
    """

    order_number: str
    states: Tuple[StateCode, ...]
    quantity: int
    thresholds: Mapping[StateCode, int] = field(default_factory=dict)
    product_name: Optional[str] = None
    external_reference: Optional[str] = None

    @classmethod
    def parse(
        cls,
        *,
        order_number: Optional[str],
        states: Optional[str],
        quantity: Any,
        thresholds: Optional[str] = None,
        product_name: Optional[str] = None,
        external_reference: Optional[str] = None,
    ) -> "NewOrder":
        """
        Parse raw request fields.

        Raises:
            ValidationError: missing order number/states, a quantity that is not
                a whole number in [1, MAX_ORDER_QUANTITY],
                or a state list with no valid 2-letter codes.
        """

        parsed_quantity = _parse_quantity(quantity)
        order_number = (order_number or "").strip()
        valid_quantity = parsed_quantity is not None and 0 < parsed_quantity <= MAX_ORDER_QUANTITY
        if not order_number or not states or not valid_quantity:
            raise ValidationError("Missing required fields or invalid quantity")

        state_list = parse_states(states)
        if not state_list:
            raise ValidationError("Invalid states format")

        return cls(
            order_number=order_number,
            states=state_list,
            quantity=parsed_quantity,
            thresholds=parse_thresholds(thresholds),
            product_name=product_name or None,
            external_reference=external_reference or None,
        )

    @property
    def is_one_time(self) -> bool:
        """One-time products are guarded by their external reference."""

        return is_one_time_product(self.product_name) and bool(self.external_reference)

    @property
    def states_text(self) -> str:
        return format_states(self.states)

    def threshold_for(self, state: StateCode) -> int:
        return threshold_for(state, self.thresholds)


@dataclass(frozen=True, slots=True)
class Order:
    """Persisted order with its cumulative fulfillment state."""

    order_id: int
    order_number: str
    states: Tuple[StateCode, ...]
    quantity: int
    fulfilled_count: int
    status: OrderStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    product_name: Optional[str] = None
    external_reference: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.completed_at is not None:
            require_utc_timestamp("completed_at", self.completed_at)
        if self.quantity <= 0:
            raise ValueError("quantity must be positive")
        if not 0 <= self.fulfilled_count <= self.quantity:
            raise ValueError(
                f"fulfilled_count must be within [0, {self.quantity}], got {self.fulfilled_count}"
            )
        reached = self.fulfilled_count >= self.quantity
        if reached != (self.status == OrderStatus.FULFILLED):
            raise ValueError(
                f"status {self.status.value!r} inconsistent with "
                f"{self.fulfilled_count}/{self.quantity} fulfilled"
            )

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - self.fulfilled_count

    @property
    def is_fulfilled(self) -> bool:
        return self.status == OrderStatus.FULFILLED

    def ensure_can_fulfill(self) -> None:
        """
        Raise unless another allocation pass is allowed.

        Raises:
            InvalidStateTransitionError: order already fulfilled or nothing left.
        """

        if self.is_fulfilled:
            raise InvalidStateTransitionError("Order already fulfilled")
        if self.remaining_quantity <= 0:
            raise InvalidStateTransitionError("No remaining quantity to fulfill")

    def record_allocation(self, assigned: int, now: datetime) -> "Order":
        """
        Return a new Order with `assigned` more leads counted.

        Reaching the target transitions to FULFILLED and stamps completed_at,
        unless it was already stamped.
        """

        if assigned < 0:
            raise ValueError("assigned must be non-negative")
        if assigned > self.remaining_quantity:
            raise ValueError(
                f"Cannot record {assigned} leads; only {self.remaining_quantity} remaining"
            )

        fulfilled_count = self.fulfilled_count + assigned
        if fulfilled_count < self.quantity:
            return replace(self, fulfilled_count=fulfilled_count)

        return replace(
            self,
            fulfilled_count=fulfilled_count,
            status=OrderStatus.FULFILLED,
            completed_at=self.completed_at or now,
        )


@dataclass(frozen=True, slots=True)
class OrderStateProgress:
    """
    Per-state cap and fulfilled count for one order.

    threshold bounds how many leads a single allocation pass may draw from the
    state; fulfilled_count accumulates across passes.
    """

    order_id: int
    state: StateCode
    threshold: int
    fulfilled_count: int = 0

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError(f"threshold for {self.state} must be positive")
        if self.fulfilled_count < 0:
            raise ValueError(f"fulfilled_count for {self.state} cannot be negative")

    def record(self, assigned: int) -> "OrderStateProgress":
        return replace(self, fulfilled_count=self.fulfilled_count + assigned)


@dataclass(frozen=True, slots=True)
class OrderDetails:
    """An order together with its per-state progress rows, in state-list order."""

    order: Order
    progress: Tuple[OrderStateProgress, ...]


__all__ = [
    "MAX_ORDER_QUANTITY",
    "NewOrder",
    "Order",
    "OrderDetails",
    "OrderStateProgress",
    "OrderStatus",
]
