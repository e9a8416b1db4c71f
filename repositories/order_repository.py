"""
Order repository (persistence).

This module provides *only* persistence operations for the order ledger: the
lead_orders rows and their per-state lead_order_states rows. Lifecycle rules
(when an order may be fulfilled, when it completes) live in the domain model
and the lifecycle service. Every function works inside the caller's session and
never commits.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from domain.order import NewOrder, Order, OrderStateProgress, OrderStatus
from domain.states import parse_states
from domain.time import as_utc
from repositories.schema import OrderRow, OrderStateRow


def _row_to_order(row: OrderRow) -> Order:
    """Convert a lead_orders row into a domain Order."""

    return Order(
        order_id=row.id,
        order_number=row.order_number,
        states=parse_states(row.states),
        quantity=row.quantity,
        fulfilled_count=row.fulfilled_count,
        status=OrderStatus(row.status),
        created_at=as_utc(row.created_at),
        completed_at=as_utc(row.completed_at) if row.completed_at is not None else None,
        product_name=row.product_name,
        external_reference=row.actual_order_number,
    )


def _row_to_progress(row: OrderStateRow) -> OrderStateProgress:
    return OrderStateProgress(
        order_id=row.order_id,
        state=row.state,
        threshold=row.threshold,
        fulfilled_count=row.fulfilled_count,
    )


def insert_order(session: Session, new_order: NewOrder, created_at: datetime) -> Order:
    """
    Insert an active order with one progress row per state.

    The insert is flushed so a duplicate order number surfaces here as an
    IntegrityError rather than at commit.
    """

    row = OrderRow(
        order_number=new_order.order_number,
        states=new_order.states_text,
        quantity=new_order.quantity,
        fulfilled_count=0,
        status=OrderStatus.ACTIVE.value,
        product_name=new_order.product_name,
        actual_order_number=new_order.external_reference,
        created_at=created_at,
    )
    session.add(row)
    session.flush()

    session.add_all([
        OrderStateRow(
            order_id=row.id,
            state=state,
            threshold=new_order.threshold_for(state),
            fulfilled_count=0,
        )
        for state in new_order.states
    ])
    session.flush()

    return _row_to_order(row)


def get_order(session: Session, order_id: int, *, for_update: bool = False) -> Optional[Order]:
    """
    Fetch an order by id.

    With for_update=True the row stays locked until the caller's transaction
    ends, serializing concurrent passes over the same order.
    """

    stmt = select(OrderRow).where(OrderRow.id == order_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = session.scalars(stmt).first()
    return _row_to_order(row) if row is not None else None


def order_number_exists(session: Session, order_number: str) -> bool:
    return session.scalar(
        select(OrderRow.id).where(OrderRow.order_number == order_number).limit(1)
    ) is not None


def list_state_progress(session: Session, order: Order) -> List[OrderStateProgress]:
    """Progress rows of an order, in the order's state-list order."""

    rows = session.scalars(select(OrderStateRow).where(OrderStateRow.order_id == order.order_id))
    by_state: Dict[str, OrderStateProgress] = {row.state: _row_to_progress(row) for row in rows}
    ordered = [by_state.pop(state) for state in order.states if state in by_state]
    # Rows for states no longer in the list still count toward the total.
    ordered.extend(by_state[state] for state in sorted(by_state))
    return ordered


def save_order_progress(session: Session, order: Order) -> None:
    """Persist fulfilled_count, status and completed_at of an order."""

    row = session.get(OrderRow, order.order_id)
    if row is None:
        raise RuntimeError(f"Order row disappeared mid-transaction: {order.order_id}")
    row.fulfilled_count = order.fulfilled_count
    row.status = order.status.value
    row.completed_at = order.completed_at
    session.flush()


def save_state_progress(session: Session, progress: OrderStateProgress) -> None:
    row = session.scalars(
        select(OrderStateRow).where(
            OrderStateRow.order_id == progress.order_id,
            OrderStateRow.state == progress.state,
        )
    ).first()
    if row is None:
        raise RuntimeError(
            f"Progress row missing for order {progress.order_id} state {progress.state}"
        )
    row.fulfilled_count = progress.fulfilled_count
    session.flush()


def delete_order(session: Session, order_id: int) -> int:
    """
    Delete an order and its progress rows.

    Returns:
        Number of progress rows removed.
    """

    result = session.execute(delete(OrderStateRow).where(OrderStateRow.order_id == order_id))
    session.execute(delete(OrderRow).where(OrderRow.id == order_id))
    return result.rowcount


def count_state_progress_rows(session: Session, order_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(OrderStateRow).where(OrderStateRow.order_id == order_id)
    ) or 0


def list_orders(session: Session, *, limit: int, offset: int) -> Tuple[List[Order], int]:
    """
    A page of orders, newest first, plus the total order count.
    """

    rows = session.scalars(
        select(OrderRow)
        .order_by(OrderRow.created_at.desc(), OrderRow.id.desc())
        .limit(limit)
        .offset(offset)
    )
    orders = [_row_to_order(row) for row in rows]
    total = session.scalar(select(func.count()).select_from(OrderRow)) or 0
    return orders, total


__all__ = [
    "count_state_progress_rows",
    "delete_order",
    "get_order",
    "insert_order",
    "list_orders",
    "list_state_progress",
    "order_number_exists",
    "save_order_progress",
    "save_state_progress",
]
