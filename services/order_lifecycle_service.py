"""
Order lifecycle service.

Drives an order through its lifecycle:

    create --> active --(fulfill ...)--> fulfilled
       \          \                          \
        `----------`------- delete ----------`--> (gone, leads released)

Handles:
- Validation and the one-time product guard before any write
- Create / fulfill / delete, each as a single transaction (UnitOfWork)
- Allocation through the AllocationEngine inside that transaction
- The guard ledger entry as a post-commit, best-effort side write
- Storing storefront order records (order info) in one transaction
- Read paths for the request layer (order details, paginated list, export)

Public operations return result objects. Expected failures (bad input,
duplicates, unknown orders, invalid transitions, store failures) come back as
`success=False` with the typed error attached; they are not raised.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, List, Mapping, Optional, Tuple, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from domain.errors import (
    AlreadyProcessedError,
    DuplicateOrderError,
    InvalidStateTransitionError,
    NotFoundError,
    OrderError,
    PersistenceError,
)
from domain.lead import ExportRecord, LeadPoolStateSummary
from domain.order import NewOrder, Order, OrderDetails, OrderStateProgress, OrderStatus
from domain.order_info import OrderInfo
from domain.time import utc_now
from repositories import lead_repository, order_info_repository, order_repository
from repositories.guard_ledger_repository import GuardLedger
from repositories.unit_of_work import UnitOfWork
from services.allocation_engine import AllocationEngine, AllocationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

ORDERS_PAGE_SIZE: int = 25


@dataclass(frozen=True, slots=True)
class OrderOperationResult:
    """
    Result of a create, fulfill or delete request.

    success: True if the operation committed
    message: user-facing summary (or the error message on failure)
    order_id: order the operation applied to, when known
    assigned_count: leads bound during this operation
    released_count: leads returned to the pool (delete only)
    status: order status after the operation (None after delete or failure)
    error: typed error when success is False
    """
    success: bool
    message: str
    order_id: Optional[int] = None
    assigned_count: int = 0
    released_count: int = 0
    status: Optional[OrderStatus] = None
    error: Optional[OrderError] = None


@dataclass(frozen=True, slots=True)
class OrderExportResult:
    """Export rows of a fulfilled order, ascending lead id."""
    success: bool
    order_number: Optional[str] = None
    records: List[ExportRecord] = field(default_factory=list)
    error: Optional[OrderError] = None


@dataclass(frozen=True, slots=True)
class OrderPage:
    orders: List[Order]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.total_count else 0


@dataclass(frozen=True, slots=True)
class OrderInfoResult:
    """Result of storing a storefront order record."""
    success: bool
    message: str
    order_info_id: Optional[int] = None
    order_number: Optional[str] = None
    error: Optional[OrderError] = None


class OrderLifecycleController:
    """
    Entry point for order operations.

    Args:
        session_factory: builds sessions against the order store
        guard_ledger: one-time product guard ledger
        clock: returns the current UTC time (created_at / completed_at)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        guard_ledger: GuardLedger,
        clock: Callable[[], Any] = utc_now,
    ):
        self._session_factory = session_factory
        self._guard_ledger = guard_ledger
        self._clock = clock

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _in_transaction(self, operation: str, work: Callable[[UnitOfWork], T]) -> T:
        """
        Run `work` in its own unit of work.

        Any exception rolls the whole operation back. Store failures are
        reported as PersistenceError; domain errors pass through unchanged.
        """
        try:
            with UnitOfWork(self._session_factory) as uow:
                return work(uow)
        except SQLAlchemyError as e:
            logger.exception(
                f"Failed to {operation}; transaction rolled back",
                extra={"operation": operation},
            )
            raise PersistenceError(f"Failed to {operation}: {e}") from e

    def _failed(self, operation: str, error: OrderError, order_id: Optional[int] = None) -> OrderOperationResult:
        if not isinstance(error, PersistenceError):
            logger.info(
                f"Rejected {operation}: {error.message}",
                extra={"operation": operation, "error_type": type(error).__name__, "order_id": order_id},
            )
        return OrderOperationResult(success=False, message=error.message, order_id=order_id, error=error)

    def _apply_allocation(
        self,
        session: Session,
        order: Order,
        progress: List[OrderStateProgress],
        allocation: AllocationResult,
    ) -> Order:
        """Add an allocation's counts onto the order and its state rows."""

        updated = order.record_allocation(allocation.total_assigned, self._clock())
        order_repository.save_order_progress(session, updated)

        for row in progress:
            assigned = allocation.per_state.get(row.state, 0)
            if assigned:
                order_repository.save_state_progress(session, row.record(assigned))

        return updated

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _check_one_time_guard(self, new_order: NewOrder) -> None:
        if not new_order.is_one_time:
            return

        try:
            already_processed = self._guard_ledger.exists(new_order.external_reference)
        except Exception as e:
            logger.exception(
                "One-time guard lookup failed",
                extra={"external_reference": new_order.external_reference},
            )
            raise PersistenceError(f"Failed to check one-time order ledger: {e}") from e

        if already_processed:
            raise AlreadyProcessedError("Order already processed (One Time).")

    def _record_guard_entry(self, order_number: str, external_reference: str) -> None:
        self._guard_ledger.record(order_number, external_reference)
        logger.debug(
            f"Recorded guard ledger entry for order {order_number}",
            extra={"order_number": order_number, "external_reference": external_reference},
        )

    def _create(self, uow: UnitOfWork, new_order: NewOrder) -> Tuple[Order, AllocationResult]:
        session = uow.session

        if order_repository.order_number_exists(session, new_order.order_number):
            raise DuplicateOrderError("Order number already exists")
        try:
            order = order_repository.insert_order(session, new_order, created_at=self._clock())
        except IntegrityError as e:
            # Lost a race with a concurrent create of the same order number.
            raise DuplicateOrderError("Order number already exists") from e

        progress = order_repository.list_state_progress(session, order)
        allocation = AllocationEngine(session).allocate(
            order.order_number,
            order.states,
            {row.state: row.threshold for row in progress},
            order.quantity,
        )
        order = self._apply_allocation(session, order, progress, allocation)

        if new_order.external_reference:
            uow.add_post_commit_hook(
                "guard_ledger",
                partial(self._record_guard_entry, order.order_number, new_order.external_reference),
            )

        return order, allocation

    def create_order(
        self,
        *,
        order_number: Optional[str],
        states: Optional[str],
        quantity: Any,
        thresholds: Optional[str] = None,
        product_name: Optional[str] = None,
        external_reference: Optional[str] = None,
    ) -> OrderOperationResult:
        """
        Create an order and allocate as many leads as the pool allows.

        Process:
        1. Parse and validate the request (states, thresholds, quantity)
        2. Reject one-time products whose external reference was already used
        3. In one transaction: insert the order and its per-state rows, run the
           allocation engine for the full quantity, apply the counts, and mark
           the order fulfilled if the target was reached
        4. After commit: record the external reference in the guard ledger
           (best effort; failures are only logged)

        Example:
            result = controller.create_order(
                order_number="WP-1001",
                states="FL,TX",
                quantity=10,
                thresholds="FL=3,TX=4",
            )
            if result.success:
                print(result.message)  # Order created successfully. Assigned 7 leads.
        """
        try:
            new_order = NewOrder.parse(
                order_number=order_number,
                states=states,
                quantity=quantity,
                thresholds=thresholds,
                product_name=product_name,
                external_reference=external_reference,
            )
            self._check_one_time_guard(new_order)
            order, allocation = self._in_transaction(
                "create order", lambda uow: self._create(uow, new_order)
            )
        except OrderError as e:
            return self._failed("create order", e)

        logger.info(
            f"Created order {order.order_number}: assigned {allocation.total_assigned}/{order.quantity}",
            extra={
                "order_id": order.order_id,
                "order_number": order.order_number,
                "per_state": dict(allocation.per_state),
                "status": order.status.value,
            },
        )
        return OrderOperationResult(
            success=True,
            message=f"Order created successfully. Assigned {allocation.total_assigned} leads.",
            order_id=order.order_id,
            assigned_count=allocation.total_assigned,
            status=order.status,
        )

    # ------------------------------------------------------------------
    # Fulfill
    # ------------------------------------------------------------------

    def _fulfill(self, uow: UnitOfWork, order_id: int) -> Tuple[Order, AllocationResult]:
        session = uow.session

        order = order_repository.get_order(session, order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order not found")
        order.ensure_can_fulfill()

        progress = order_repository.list_state_progress(session, order)
        allocation = AllocationEngine(session).allocate(
            order.order_number,
            order.states,
            {row.state: row.threshold for row in progress},
            order.remaining_quantity,
        )
        return self._apply_allocation(session, order, progress, allocation), allocation

    def fulfill_order(self, order_id: int) -> OrderOperationResult:
        """
        Allocate leads toward an active order's outstanding quantity.

        The pass uses the order's original state order and per-state
        thresholds. Fulfilled orders are rejected without changes.
        """
        try:
            order, allocation = self._in_transaction(
                "fulfill order", lambda uow: self._fulfill(uow, order_id)
            )
        except OrderError as e:
            return self._failed("fulfill order", e, order_id)

        logger.info(
            f"Fulfilled order {order.order_number}: +{allocation.total_assigned}, "
            f"{order.fulfilled_count}/{order.quantity}",
            extra={
                "order_id": order.order_id,
                "order_number": order.order_number,
                "per_state": dict(allocation.per_state),
                "status": order.status.value,
            },
        )
        return OrderOperationResult(
            success=True,
            message=f"Order fulfilled. Assigned {allocation.total_assigned} additional leads.",
            order_id=order.order_id,
            assigned_count=allocation.total_assigned,
            status=order.status,
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def _delete(self, uow: UnitOfWork, order_id: int) -> Tuple[Order, int]:
        session = uow.session

        order = order_repository.get_order(session, order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order not found")

        released = lead_repository.release_leads(session, order.order_number)
        order_repository.delete_order(session, order.order_id)
        return order, released

    def delete_order(self, order_id: int) -> OrderOperationResult:
        """Delete an order from any status and return its leads to the pool."""
        try:
            order, released = self._in_transaction(
                "delete order", lambda uow: self._delete(uow, order_id)
            )
        except OrderError as e:
            return self._failed("delete order", e, order_id)

        logger.info(
            f"Deleted order {order.order_number}; released {released} leads",
            extra={"order_id": order.order_id, "order_number": order.order_number},
        )
        return OrderOperationResult(
            success=True,
            message="Order deleted successfully. Leads returned to stock.",
            order_id=order.order_id,
            released_count=released,
        )

    # ------------------------------------------------------------------
    # Order info
    # ------------------------------------------------------------------

    def _store_order_info(self, uow: UnitOfWork, info: OrderInfo) -> int:
        session = uow.session

        if order_info_repository.order_info_number_exists(session, info.order_number):
            raise DuplicateOrderError("Order number already exists")
        try:
            return order_info_repository.insert_order_info(session, info)
        except IntegrityError as e:
            raise DuplicateOrderError("Order number already exists") from e

    def store_order_info(self, payload: Mapping[str, Any]) -> OrderInfoResult:
        """
        Validate and store a storefront order record in one transaction.

        The record, its customer and shipping addresses and every line item
        are written together or not at all. Duplicate order numbers are
        rejected.
        """
        try:
            info = OrderInfo.parse(payload)
            order_info_id = self._in_transaction(
                "store order information", lambda uow: self._store_order_info(uow, info)
            )
        except OrderError as e:
            self._failed("store order information", e)
            return OrderInfoResult(success=False, message=e.message, error=e)

        logger.info(
            f"Stored order information {info.order_number} with {len(info.items)} items",
            extra={"order_info_id": order_info_id, "order_number": info.order_number},
        )
        return OrderInfoResult(
            success=True,
            message=f"Order information stored successfully. Order ID: {order_info_id}",
            order_info_id=order_info_id,
            order_number=info.order_number,
        )

    def get_order_info(self, order_info_id: int) -> Optional[OrderInfo]:
        """
        Stored order record, or None if unknown.

        Raises:
            PersistenceError: if the store cannot be read
        """
        return self._in_transaction(
            "read order information",
            lambda uow: order_info_repository.get_order_info(uow.session, order_info_id),
        )

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def _export(self, uow: UnitOfWork, order_id: int) -> Tuple[Order, List[ExportRecord]]:
        order = order_repository.get_order(uow.session, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if not order.is_fulfilled:
            raise InvalidStateTransitionError("CSV export only available for fulfilled orders")
        return order, lead_repository.list_export_records(uow.session, order.order_number)

    def export_fulfilled(self, order_id: int) -> OrderExportResult:
        """Leads bound to a fulfilled order, as flat export records."""
        try:
            order, records = self._in_transaction(
                "export order", lambda uow: self._export(uow, order_id)
            )
        except OrderError as e:
            self._failed("export order", e, order_id)
            return OrderExportResult(success=False, error=e)

        return OrderExportResult(success=True, order_number=order.order_number, records=records)

    def get_order(self, order_id: int) -> Optional[OrderDetails]:
        """
        Order with its per-state progress, or None if unknown.

        Raises:
            PersistenceError: if the store cannot be read
        """

        def read(uow: UnitOfWork) -> Optional[OrderDetails]:
            order = order_repository.get_order(uow.session, order_id)
            if order is None:
                return None
            progress = order_repository.list_state_progress(uow.session, order)
            return OrderDetails(order=order, progress=tuple(progress))

        return self._in_transaction("read order", read)

    def list_orders(self, page: int = 1, page_size: int = ORDERS_PAGE_SIZE) -> OrderPage:
        """
        Orders newest first, one page at a time (pages start at 1).

        Raises:
            PersistenceError: if the store cannot be read
        """
        page = max(page, 1)
        page_size = max(page_size, 1)

        orders, total = self._in_transaction(
            "list orders",
            lambda uow: order_repository.list_orders(
                uow.session, limit=page_size, offset=(page - 1) * page_size
            ),
        )
        return OrderPage(orders=orders, page=page, page_size=page_size, total_count=total)

    def lead_pool_summary(self) -> List[LeadPoolStateSummary]:
        """
        Free and bound lead counts per state.

        Raises:
            PersistenceError: if the store cannot be read
        """
        return self._in_transaction(
            "summarize lead pool",
            lambda uow: lead_repository.summarize_lead_pool(uow.session),
        )


__all__ = [
    "ORDERS_PAGE_SIZE",
    "OrderExportResult",
    "OrderInfoResult",
    "OrderLifecycleController",
    "OrderOperationResult",
    "OrderPage",
]
