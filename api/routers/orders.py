"""
Orders API Endpoints.

Endpoints for creating orders, fulfilling them from the lead pool, deleting
them (returning their leads to stock) and exporting fulfilled orders as CSV.
Storefront order records (totals, addresses, items) are stored alongside.

Plain-text clients (storefront webhooks) send `Accept: text/plain` and always
receive HTTP 200 with a body of `SUCCESS: <message>` or `ERROR: <message>`.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import PlainTextResponse

from api.dependencies import get_order_controller
from api.models import (
    CreateOrderRequest,
    OrderInfoRequest,
    OrderInfoResponse,
    OrderListResponse,
    OrderOperationResponse,
    OrderResponse,
    StateProgressResponse,
)
from domain.errors import (
    AlreadyProcessedError,
    DuplicateOrderError,
    InvalidStateTransitionError,
    NotFoundError,
    OrderError,
    PersistenceError,
    ValidationError,
)
from domain.order import Order, OrderStateProgress
from services.csv_export_service import export_filename, generate_order_export_csv
from services.order_lifecycle_service import (
    ORDERS_PAGE_SIZE,
    OrderLifecycleController,
    OrderOperationResult,
)

router = APIRouter()

_ERROR_STATUS = (
    (NotFoundError, 404),
    (PersistenceError, 500),
    (ValidationError, 400),
    (DuplicateOrderError, 400),
    (AlreadyProcessedError, 400),
    (InvalidStateTransitionError, 400),
)


def _status_for(error: OrderError | None) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


def _wants_plain_text(request: Request) -> bool:
    return request.headers.get("accept", "").strip().lower() == "text/plain"


def _plain_text(success: bool, message: str) -> PlainTextResponse:
    prefix = "SUCCESS" if success else "ERROR"
    return PlainTextResponse(f"{prefix}: {message}")


def _respond(request: Request, result: OrderOperationResult):
    if _wants_plain_text(request):
        return _plain_text(result.success, result.message)

    if not result.success:
        raise HTTPException(status_code=_status_for(result.error), detail=result.message)

    return OrderOperationResponse(
        success=True,
        message=result.message,
        order_id=result.order_id,
        assigned=result.assigned_count,
        released=result.released_count,
        status=result.status.value if result.status else None,
    )


def _order_response(order: Order, progress: tuple[OrderStateProgress, ...] = ()) -> OrderResponse:
    return OrderResponse(
        order_id=order.order_id,
        order_number=order.order_number,
        states=list(order.states),
        quantity=order.quantity,
        fulfilled_count=order.fulfilled_count,
        status=order.status.value,
        product_name=order.product_name,
        actual_order_number=order.external_reference,
        created_at=order.created_at,
        completed_at=order.completed_at,
        progress=[
            StateProgressResponse(
                state=row.state,
                threshold=row.threshold,
                fulfilled_count=row.fulfilled_count,
            )
            for row in progress
        ],
    )


@router.post(
    "/orders",
    response_model=OrderOperationResponse,
    summary="Create Order",
    description="Create an order and immediately allocate as many leads as the pool allows."
)
def create_order(
    body: CreateOrderRequest,
    request: Request,
    controller: OrderLifecycleController = Depends(get_order_controller),
):
    """
    Create an order.

    **Process:**
    1. Parses `states` (2-letter codes, deduplicated) and `thresholds` (`STATE=N`)
    2. Rejects one-time products whose `actual_order_number` was already processed
    3. Allocates leads state by state, oldest leads first, capped per state
       (999 when no threshold is given) and by the order quantity
    4. Marks the order fulfilled if the full quantity was assigned

    **Example request:**
    ```json
    {
      "order_number": "WP-1001",
      "states": "FL,TX",
      "quantity": 10,
      "thresholds": "FL=3,TX=4"
    }
    ```

    **Success response:**
    ```json
    {
      "success": true,
      "message": "Order created successfully. Assigned 7 leads.",
      "order_id": 42,
      "assigned": 7,
      "released": 0,
      "status": "active"
    }
    ```
    """
    result = controller.create_order(
        order_number=body.order_number,
        states=body.states,
        quantity=body.quantity,
        thresholds=body.thresholds,
        product_name=body.product_name,
        external_reference=body.actual_order_number,
    )
    return _respond(request, result)


@router.post(
    "/orders/info",
    response_model=OrderInfoResponse,
    summary="Store Order Information",
    description="Store the full storefront record of an order: totals, payment, addresses and items."
)
def store_order_info(
    body: OrderInfoRequest,
    request: Request,
    controller: OrderLifecycleController = Depends(get_order_controller),
):
    """
    Store a storefront order record.

    The record, its customer and shipping addresses and its line items are
    written in one transaction. `order_number` must be unique.

    **Success response:**
    ```json
    {
      "success": true,
      "message": "Order information stored successfully. Order ID: 7",
      "order_info_id": 7,
      "order_number": "1234"
    }
    ```
    """
    result = controller.store_order_info(body.model_dump())
    if _wants_plain_text(request):
        return _plain_text(result.success, result.message)

    if not result.success:
        raise HTTPException(status_code=_status_for(result.error), detail=result.message)

    return OrderInfoResponse(
        success=True,
        message=result.message,
        order_info_id=result.order_info_id,
        order_number=result.order_number,
    )


@router.get(
    "/orders",
    response_model=OrderListResponse,
    summary="List Orders",
    description="Orders newest first, 25 per page."
)
def list_orders(
    page: int = Query(1, ge=1, description="Page number, starting at 1"),
    controller: OrderLifecycleController = Depends(get_order_controller),
):
    try:
        order_page = controller.list_orders(page=page, page_size=ORDERS_PAGE_SIZE)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return OrderListResponse(
        items=[_order_response(order) for order in order_page.orders],
        page=order_page.page,
        page_size=order_page.page_size,
        total_count=order_page.total_count,
        total_pages=order_page.total_pages,
    )


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get Order",
    description="Order details with per-state threshold and progress."
)
def get_order(
    order_id: int,
    controller: OrderLifecycleController = Depends(get_order_controller),
):
    try:
        details = controller.get_order(order_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=e.message)

    if details is None:
        raise HTTPException(status_code=404, detail="Order not found")

    return _order_response(details.order, details.progress)


@router.post(
    "/orders/{order_id}/fulfill",
    response_model=OrderOperationResponse,
    summary="Fulfill Order",
    description="Assign additional leads toward an active order's remaining quantity."
)
def fulfill_order(
    order_id: int,
    request: Request,
    controller: OrderLifecycleController = Depends(get_order_controller),
):
    """
    Fulfill the remaining quantity of an active order.

    Rejected with 400 when the order is already fulfilled, 404 when unknown.
    """
    return _respond(request, controller.fulfill_order(order_id))


@router.delete(
    "/orders/{order_id}",
    response_model=OrderOperationResponse,
    summary="Delete Order",
    description="Delete an order and return all of its leads to the pool."
)
def delete_order(
    order_id: int,
    request: Request,
    controller: OrderLifecycleController = Depends(get_order_controller),
):
    return _respond(request, controller.delete_order(order_id))


@router.get(
    "/orders/{order_id}/csv",
    summary="Download Fulfilled Order CSV",
    description="CSV of the leads assigned to a fulfilled order.",
    response_class=Response
)
def download_order_csv(
    order_id: int,
    controller: OrderLifecycleController = Depends(get_order_controller),
):
    """
    Download the leads of a fulfilled order.

    **CSV Contents:** `Phone Number, State, Order Number`, one row per lead in
    the order the leads entered the pool.

    **Response:** CSV file download named `order_{order_number}_export.csv`.
    """
    result = controller.export_fulfilled(order_id)
    if not result.success:
        raise HTTPException(status_code=_status_for(result.error), detail=result.error.message)

    return Response(
        content=generate_order_export_csv(result.records),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={export_filename(result.order_number)}"
        }
    )
