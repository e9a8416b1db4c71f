"""
FastAPI dependencies.

The lifecycle controller is built once by the app factory and stored on
`app.state`; endpoints receive it through `Depends(get_order_controller)`.
"""

from fastapi import Request

from services.order_lifecycle_service import OrderLifecycleController


def get_order_controller(request: Request) -> OrderLifecycleController:
    return request.app.state.order_controller
