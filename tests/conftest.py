"""
Pytest configuration and shared fixtures.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services, and api modules.

Database-backed tests run against a file-based SQLite store in a temporary
directory, built with the same engine setup the application uses.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.lead import Lead  # noqa: E402
from repositories import lead_repository  # noqa: E402
from repositories.client import create_db_engine, create_session_factory  # noqa: E402
from repositories.schema import Base  # noqa: E402
from repositories.unit_of_work import UnitOfWork  # noqa: E402
from services.order_lifecycle_service import OrderLifecycleController  # noqa: E402

FIXED_NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def order_info_payload(**overrides) -> dict:
    """A complete storefront order record; top-level keys can be overridden."""

    payload = {
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
            "address_2": "Apt 4B",
            "city": "New York",
            "state": "NY",
            "postcode": "10001",
            "country": "US",
            "company": "Acme Corp",
        },
        "shipping": {
            "first_name": "John",
            "last_name": "Doe",
            "address_1": "456 Oak Ave",
            "city": "Brooklyn",
            "state": "NY",
            "postcode": "11201",
            "country": "US",
        },
        "items": [
            {
                "product_id": 21,
                "product_name": "Premium Product",
                "quantity": 2,
                "subtotal": "49.99",
                "total": "49.99",
                "sku": "PREMIUM-001",
                "price": "24.99",
            },
        ],
    }
    payload.update(overrides)
    return payload


class FakeGuardLedger:
    """In-memory guard ledger with switchable failures."""

    def __init__(
        self,
        existing: Iterable[str] = (),
        fail_on_record: bool = False,
        fail_on_exists: bool = False,
    ):
        self.entries: List[tuple[str, str]] = [("legacy", ref) for ref in existing]
        self.exists_calls: List[str] = []
        self.fail_on_record = fail_on_record
        self.fail_on_exists = fail_on_exists

    def exists(self, external_reference: str) -> bool:
        self.exists_calls.append(external_reference)
        if self.fail_on_exists:
            raise RuntimeError("guard ledger unavailable")
        return any(ref == external_reference for _, ref in self.entries)

    def record(self, order_name: str, external_reference: str) -> None:
        if self.fail_on_record:
            raise RuntimeError("guard ledger unavailable")
        self.entries.append((order_name, external_reference))


class LeadPool:
    """Seeds and inspects the lead pool of a test store."""

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._next_phone = 0

    def add(self, state: str, count: int, order_number: str | None = None) -> List[int]:
        leads = []
        for _ in range(count):
            self._next_phone += 1
            leads.append(Lead(
                lead_id=None,
                phone_number=f"555{self._next_phone:07d}",
                state=state,
                order_number=order_number,
            ))
        with UnitOfWork(self._session_factory) as uow:
            return lead_repository.insert_leads(uow.session, leads)

    def bound_to(self, order_number: str) -> List[Lead]:
        with UnitOfWork(self._session_factory) as uow:
            return lead_repository.list_leads_by_order(uow.session, order_number)

    def free_count(self, state: str) -> int:
        with UnitOfWork(self._session_factory) as uow:
            return lead_repository.count_free_leads(uow.session, state)


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'lead_orders.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def guard_ledger() -> FakeGuardLedger:
    return FakeGuardLedger()


@pytest.fixture
def controller(session_factory, guard_ledger) -> OrderLifecycleController:
    return OrderLifecycleController(
        session_factory=session_factory,
        guard_ledger=guard_ledger,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def pool(session_factory) -> LeadPool:
    return LeadPool(session_factory)
