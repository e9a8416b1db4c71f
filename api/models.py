"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.

Create requests are deliberately loose (all fields optional, quantity may be a
string): field rules live in the domain so that JSON and plain-text clients get
the same messages.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel


# ============================================================================
# Order Models
# ============================================================================

class CreateOrderRequest(BaseModel):
    """Request to create an order and allocate leads to it."""
    order_number: Optional[str] = None
    states: Optional[str] = None  # "FL,TX"
    quantity: Optional[Union[int, str]] = None
    thresholds: Optional[str] = None  # "FL=3,TX=4"
    product_name: Optional[str] = None
    actual_order_number: Optional[str] = None  # External reference (one-time guard)

    class Config:
        json_schema_extra = {
            "example": {
                "order_number": "WP-1001",
                "states": "FL,TX",
                "quantity": 10,
                "thresholds": "FL=3,TX=4",
                "product_name": "Final Expense Leads - One Time",
                "actual_order_number": "58213"
            }
        }


class OrderOperationResponse(BaseModel):
    """Response for create, fulfill and delete."""
    success: bool
    message: str
    order_id: Optional[int] = None
    assigned: int = 0
    released: int = 0
    status: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Order created successfully. Assigned 7 leads.",
                "order_id": 42,
                "assigned": 7,
                "released": 0,
                "status": "active"
            }
        }


class StateProgressResponse(BaseModel):
    state: str
    threshold: int
    fulfilled_count: int


class OrderResponse(BaseModel):
    """Single order with its cumulative and per-state progress."""
    order_id: int
    order_number: str
    states: List[str]
    quantity: int
    fulfilled_count: int
    status: str
    product_name: Optional[str] = None
    actual_order_number: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    progress: List[StateProgressResponse] = []


class OrderListResponse(BaseModel):
    """Paginated order listing, newest first."""
    items: List[OrderResponse]
    page: int
    page_size: int
    total_count: int
    total_pages: int


# ============================================================================
# Order Info Models
# ============================================================================

class OrderInfoCustomerRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[Union[int, str]] = None
    address_1: Optional[str] = None
    address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[Union[int, str]] = None
    country: Optional[str] = None
    company: Optional[str] = None


class OrderInfoShippingRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address_1: Optional[str] = None
    address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[Union[int, str]] = None
    country: Optional[str] = None
    company: Optional[str] = None


class OrderInfoItemRequest(BaseModel):
    product_id: Optional[Union[int, str]] = None
    product_name: Optional[str] = None
    quantity: Optional[Union[int, float, str]] = None
    subtotal: Optional[Union[int, float, str]] = None
    total: Optional[Union[int, float, str]] = None
    sku: Optional[str] = None
    price: Optional[Union[int, float, str]] = None


class OrderInfoRequest(BaseModel):
    """Full storefront order record, as posted after checkout."""
    order_id: Optional[Union[int, str]] = None
    order_number: Optional[Union[int, str]] = None
    total: Optional[Union[int, float, str]] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    payment_method_title: Optional[str] = None
    status: Optional[str] = None
    date_created: Optional[str] = None  # "2024-01-15 14:30:00"
    customer: Optional[OrderInfoCustomerRequest] = None
    shipping: Optional[OrderInfoShippingRequest] = None
    items: Optional[List[OrderInfoItemRequest]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": 1234,
                "order_number": "1234",
                "total": "99.98",
                "currency": "USD",
                "payment_method": "stripe",
                "payment_method_title": "Credit Card (Stripe)",
                "status": "processing",
                "date_created": "2024-01-15 14:30:00",
                "customer": {
                    "first_name": "John",
                    "last_name": "Doe",
                    "email": "john.doe@example.com",
                    "phone": "555-123-4567",
                    "address_1": "123 Main St",
                    "city": "New York",
                    "state": "NY",
                    "postcode": "10001",
                    "country": "US"
                },
                "shipping": {
                    "first_name": "John",
                    "last_name": "Doe",
                    "address_1": "123 Main St",
                    "city": "New York",
                    "state": "NY",
                    "postcode": "10001",
                    "country": "US"
                },
                "items": [
                    {
                        "product_id": 21,
                        "product_name": "Premium Product",
                        "quantity": 2,
                        "subtotal": "49.99",
                        "total": "49.99",
                        "sku": "PREMIUM-001",
                        "price": "24.99"
                    }
                ]
            }
        }


class OrderInfoResponse(BaseModel):
    success: bool
    message: str
    order_info_id: Optional[int] = None
    order_number: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Order information stored successfully. Order ID: 7",
                "order_info_id": 7,
                "order_number": "1234"
            }
        }


# ============================================================================
# Lead Pool Models
# ============================================================================

class LeadPoolStateResponse(BaseModel):
    state: str
    free_count: int
    bound_count: int
    total_count: int


class LeadPoolSummaryResponse(BaseModel):
    states: List[LeadPoolStateResponse]
    free_count: int
    bound_count: int

    class Config:
        json_schema_extra = {
            "example": {
                "states": [
                    {"state": "FL", "free_count": 120, "bound_count": 30, "total_count": 150}
                ],
                "free_count": 120,
                "bound_count": 30
            }
        }
