"""
Domain: order lifecycle errors.

Every error carries a short, user-facing message. The request layer decides how
each kind is presented (client error, not found, server error); the domain only
names what went wrong.
"""

from __future__ import annotations


class OrderError(Exception):
    """Base class for expected failures of an order operation."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(OrderError):
    """Request input is missing or malformed. Nothing was written."""
    pass


class DuplicateOrderError(OrderError):
    """An order with the same order number already exists."""
    pass


class AlreadyProcessedError(OrderError):
    """The one-time guard ledger already holds the external reference."""
    pass


class NotFoundError(OrderError):
    """No order exists for the requested identifier."""
    pass


class InvalidStateTransitionError(OrderError):
    """The order's lifecycle status does not allow the requested operation."""
    pass


class PersistenceError(OrderError):
    """The store failed or a concurrent writer conflicted; the operation was rolled back."""
    pass


__all__ = [
    "OrderError",
    "ValidationError",
    "DuplicateOrderError",
    "AlreadyProcessedError",
    "NotFoundError",
    "InvalidStateTransitionError",
    "PersistenceError",
]
