"""
Tests for `services/order_lifecycle_service.py`.

Covers lifecycle rules:
- Create allocates immediately; the order stays active below its quantity.
- Fulfill tops the order up and transitions it to fulfilled once complete.
- Fulfilled orders reject further fulfill calls without changes.
- Delete releases every bound lead and removes the progress rows.
- Invalid, duplicate and already-processed one-time requests write nothing.
- Guard ledger writes happen after commit and never fail the operation.
- A store failure mid-operation rolls the whole operation back.
- Order info records are stored whole, once per order number.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from conftest import FIXED_NOW, FakeGuardLedger, order_info_payload
from domain.errors import (
    AlreadyProcessedError,
    DuplicateOrderError,
    InvalidStateTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from domain.order import OrderStatus
from repositories import order_info_repository, order_repository
from repositories.unit_of_work import UnitOfWork
from services.order_lifecycle_service import OrderLifecycleController


def _controller(session_factory, guard_ledger) -> OrderLifecycleController:
    return OrderLifecycleController(
        session_factory=session_factory,
        guard_ledger=guard_ledger,
        clock=lambda: FIXED_NOW,
    )


def _create_fl_tx_order(controller, pool):
    pool.add("FL", 3)
    pool.add("TX", 4)
    return controller.create_order(
        order_number="WP-1001",
        states="FL,TX",
        quantity=10,
        thresholds="FL=3,TX=4",
    )


def _order_count(controller) -> int:
    return controller.list_orders().total_count


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def test_create_assigns_up_to_thresholds_and_stays_active(controller, pool) -> None:
    result = _create_fl_tx_order(controller, pool)

    assert result.success
    assert result.message == "Order created successfully. Assigned 7 leads."
    assert result.assigned_count == 7
    assert result.status == OrderStatus.ACTIVE

    details = controller.get_order(result.order_id)
    assert details.order.fulfilled_count == 7
    assert details.order.status == OrderStatus.ACTIVE
    assert details.order.completed_at is None
    assert details.order.created_at == FIXED_NOW
    assert [(p.state, p.threshold, p.fulfilled_count) for p in details.progress] == [
        ("FL", 3, 3),
        ("TX", 4, 4),
    ]


def test_create_with_enough_leads_is_fulfilled_immediately(controller, pool) -> None:
    pool.add("FL", 8)

    result = controller.create_order(order_number="WP-1", states="FL", quantity=5)

    assert result.success
    assert result.status == OrderStatus.FULFILLED
    details = controller.get_order(result.order_id)
    assert details.order.completed_at == FIXED_NOW
    assert pool.free_count("FL") == 3


def test_create_with_empty_pool_succeeds_with_zero_assigned(controller) -> None:
    result = controller.create_order(order_number="WP-1", states="FL,TX", quantity=5)

    assert result.success
    assert result.assigned_count == 0
    assert result.message == "Order created successfully. Assigned 0 leads."
    assert result.status == OrderStatus.ACTIVE


def test_create_without_threshold_uses_default_cap(controller, pool) -> None:
    pool.add("FL", 1000)

    result = controller.create_order(order_number="WP-1", states="FL", quantity=1000)

    assert result.assigned_count == 999
    assert result.status == OrderStatus.ACTIVE
    assert pool.free_count("FL") == 1


def test_create_invalid_request_writes_nothing(controller, pool) -> None:
    pool.add("FL", 3)

    missing = controller.create_order(order_number="WP-1", states="FL", quantity=0)
    bad_states = controller.create_order(order_number="WP-1", states="Florida", quantity=3)

    assert not missing.success
    assert isinstance(missing.error, ValidationError)
    assert missing.message == "Missing required fields or invalid quantity"
    assert isinstance(bad_states.error, ValidationError)
    assert bad_states.message == "Invalid states format"
    assert _order_count(controller) == 0
    assert pool.free_count("FL") == 3


def test_create_duplicate_order_number_is_rejected(controller, pool) -> None:
    pool.add("FL", 4)
    first = controller.create_order(order_number="WP-1", states="FL", quantity=2)

    second = controller.create_order(order_number="WP-1", states="FL", quantity=2)

    assert first.success
    assert not second.success
    assert isinstance(second.error, DuplicateOrderError)
    assert second.message == "Order number already exists"
    assert _order_count(controller) == 1
    assert len(pool.bound_to("WP-1")) == 2


# ---------------------------------------------------------------------------
# One-time guard
# ---------------------------------------------------------------------------

def test_one_time_product_already_processed_is_rejected(session_factory, pool) -> None:
    ledger = FakeGuardLedger(existing=["58213"])
    controller = _controller(session_factory, ledger)
    pool.add("FL", 3)

    result = controller.create_order(
        order_number="WP-1",
        states="FL",
        quantity=3,
        product_name="Final Expense Leads - One Time",
        external_reference="58213",
    )

    assert not result.success
    assert isinstance(result.error, AlreadyProcessedError)
    assert result.message == "Order already processed (One Time)."
    assert _order_count(controller) == 0
    assert pool.free_count("FL") == 3


def test_one_time_product_new_reference_is_recorded_after_commit(controller, guard_ledger, pool) -> None:
    pool.add("FL", 3)

    result = controller.create_order(
        order_number="WP-1",
        states="FL",
        quantity=3,
        product_name="Final Expense Leads - One Time",
        external_reference="58213",
    )

    assert result.success
    assert guard_ledger.exists_calls == ["58213"]
    assert guard_ledger.entries == [("WP-1", "58213")]


def test_recurring_product_skips_guard_lookup_but_records_reference(controller, guard_ledger) -> None:
    result = controller.create_order(
        order_number="WP-1",
        states="FL",
        quantity=3,
        product_name="Monthly Leads",
        external_reference="58213",
    )

    assert result.success
    assert guard_ledger.exists_calls == []
    assert guard_ledger.entries == [("WP-1", "58213")]


def test_guard_record_failure_does_not_fail_create(session_factory, pool) -> None:
    ledger = FakeGuardLedger(fail_on_record=True)
    controller = _controller(session_factory, ledger)
    pool.add("FL", 2)

    result = controller.create_order(
        order_number="WP-1",
        states="FL",
        quantity=2,
        product_name="Leads - One Time",
        external_reference="58213",
    )

    assert result.success
    assert result.status == OrderStatus.FULFILLED
    assert ledger.entries == []
    assert _order_count(controller) == 1


def test_guard_lookup_failure_rejects_create(session_factory, pool) -> None:
    ledger = FakeGuardLedger(fail_on_exists=True)
    controller = _controller(session_factory, ledger)
    pool.add("FL", 2)

    result = controller.create_order(
        order_number="WP-1",
        states="FL",
        quantity=2,
        product_name="Leads - One Time",
        external_reference="58213",
    )

    assert not result.success
    assert isinstance(result.error, PersistenceError)
    assert _order_count(controller) == 0
    assert pool.free_count("FL") == 2


# ---------------------------------------------------------------------------
# Fulfill
# ---------------------------------------------------------------------------

def test_fulfill_after_restock_completes_order(controller, pool) -> None:
    created = _create_fl_tx_order(controller, pool)
    pool.add("FL", 5)
    pool.add("TX", 5)

    result = controller.fulfill_order(created.order_id)

    assert result.success
    assert result.message == "Order fulfilled. Assigned 3 additional leads."
    assert result.status == OrderStatus.FULFILLED

    details = controller.get_order(created.order_id)
    assert details.order.fulfilled_count == 10
    assert details.order.status == OrderStatus.FULFILLED
    assert details.order.completed_at == FIXED_NOW
    assert sum(p.fulfilled_count for p in details.progress) == 10
    assert len(pool.bound_to("WP-1001")) == 10


def test_fulfill_without_new_leads_assigns_nothing(controller, pool) -> None:
    created = _create_fl_tx_order(controller, pool)

    result = controller.fulfill_order(created.order_id)

    assert result.success
    assert result.assigned_count == 0
    assert result.status == OrderStatus.ACTIVE
    assert controller.get_order(created.order_id).order.fulfilled_count == 7


def test_fulfill_rejects_already_fulfilled_order(controller, pool) -> None:
    pool.add("FL", 5)
    created = controller.create_order(order_number="WP-1", states="FL", quantity=2)

    result = controller.fulfill_order(created.order_id)

    assert not result.success
    assert isinstance(result.error, InvalidStateTransitionError)
    assert result.message == "Order already fulfilled"
    assert controller.get_order(created.order_id).order.fulfilled_count == 2
    assert pool.free_count("FL") == 3


def test_fulfill_unknown_order(controller) -> None:
    result = controller.fulfill_order(999)

    assert not result.success
    assert isinstance(result.error, NotFoundError)
    assert result.message == "Order not found"


def test_fulfill_store_failure_rolls_back_binds(controller, pool, monkeypatch) -> None:
    created = _create_fl_tx_order(controller, pool)
    pool.add("FL", 5)

    def failing_save(session, order):
        raise OperationalError("UPDATE lead_orders", {}, Exception("disk I/O error"))

    monkeypatch.setattr(order_repository, "save_order_progress", failing_save)

    result = controller.fulfill_order(created.order_id)

    assert not result.success
    assert isinstance(result.error, PersistenceError)
    assert pool.free_count("FL") == 5
    assert len(pool.bound_to("WP-1001")) == 7
    assert controller.get_order(created.order_id).order.fulfilled_count == 7


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

def test_delete_fulfilled_order_releases_all_leads(controller, pool, session_factory) -> None:
    created = _create_fl_tx_order(controller, pool)
    pool.add("FL", 5)
    pool.add("TX", 5)
    controller.fulfill_order(created.order_id)

    result = controller.delete_order(created.order_id)

    assert result.success
    assert result.message == "Order deleted successfully. Leads returned to stock."
    assert result.released_count == 10
    assert pool.bound_to("WP-1001") == []
    assert pool.free_count("FL") == 8
    assert pool.free_count("TX") == 9
    assert controller.get_order(created.order_id) is None
    with UnitOfWork(session_factory) as uow:
        assert order_repository.count_state_progress_rows(uow.session, created.order_id) == 0


def test_delete_active_order(controller, pool) -> None:
    created = _create_fl_tx_order(controller, pool)

    result = controller.delete_order(created.order_id)

    assert result.success
    assert result.released_count == 7


def test_delete_unknown_order(controller) -> None:
    result = controller.delete_order(12345)

    assert not result.success
    assert isinstance(result.error, NotFoundError)


def test_order_number_reusable_after_delete(controller, pool) -> None:
    pool.add("FL", 2)
    created = controller.create_order(order_number="WP-1", states="FL", quantity=2)
    controller.delete_order(created.order_id)

    again = controller.create_order(order_number="WP-1", states="FL", quantity=2)

    assert again.success
    assert again.assigned_count == 2


# ---------------------------------------------------------------------------
# Read paths
# ---------------------------------------------------------------------------

def test_export_requires_fulfilled_order(controller, pool) -> None:
    created = _create_fl_tx_order(controller, pool)

    result = controller.export_fulfilled(created.order_id)

    assert not result.success
    assert isinstance(result.error, InvalidStateTransitionError)
    assert result.error.message == "CSV export only available for fulfilled orders"


def test_export_fulfilled_order_in_lead_order(controller, pool) -> None:
    pool.add("FL", 2)
    pool.add("TX", 1)
    created = controller.create_order(order_number="WP-9", states="TX,FL", quantity=3)

    result = controller.export_fulfilled(created.order_id)

    assert result.success
    assert result.order_number == "WP-9"
    assert [r.state for r in result.records] == ["FL", "FL", "TX"]
    assert all(r.order_number == "WP-9" for r in result.records)
    assert [r.phone_number for r in result.records] == ["5550000001", "5550000002", "5550000003"]


def test_export_unknown_order(controller) -> None:
    result = controller.export_fulfilled(42)

    assert not result.success
    assert isinstance(result.error, NotFoundError)


def test_list_orders_paginates_newest_first(controller) -> None:
    for n in range(27):
        controller.create_order(order_number=f"WP-{n:03d}", states="FL", quantity=1)

    first = controller.list_orders(page=1)
    second = controller.list_orders(page=2)

    assert first.total_count == 27
    assert first.total_pages == 2
    assert len(first.orders) == 25
    assert len(second.orders) == 2
    assert first.orders[0].order_number == "WP-026"
    assert second.orders[-1].order_number == "WP-000"


def test_list_orders_clamps_page_number(controller) -> None:
    controller.create_order(order_number="WP-1", states="FL", quantity=1)

    page = controller.list_orders(page=0)

    assert page.page == 1
    assert len(page.orders) == 1


def test_lead_pool_summary(controller, pool) -> None:
    _create_fl_tx_order(controller, pool)
    pool.add("FL", 2)

    summary = {s.state: s for s in controller.lead_pool_summary()}

    assert summary["FL"].free_count == 2
    assert summary["FL"].bound_count == 3
    assert summary["TX"].free_count == 0
    assert summary["TX"].bound_count == 4


def test_read_store_failure_raises_persistence_error(controller, monkeypatch) -> None:
    def failing_list(session, *, limit, offset):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(order_repository, "list_orders", failing_list)

    with pytest.raises(PersistenceError):
        controller.list_orders()


# ---------------------------------------------------------------------------
# Order info
# ---------------------------------------------------------------------------

def _order_info_count(session_factory) -> int:
    with UnitOfWork(session_factory) as uow:
        return order_info_repository.count_order_info_rows(uow.session)


def test_store_order_info_persists_record_with_addresses_and_items(controller) -> None:
    payload = order_info_payload()
    payload["items"].append({
        "product_id": "22",
        "product_name": "Add-on",
        "quantity": "1",
        "subtotal": 49.99,
        "total": 49.99,
        "price": 49.99,
    })

    result = controller.store_order_info(payload)

    assert result.success
    assert result.message == f"Order information stored successfully. Order ID: {result.order_info_id}"
    assert result.order_number == "1234"

    stored = controller.get_order_info(result.order_info_id)
    assert stored.order_info_id == result.order_info_id
    assert stored.total == Decimal("99.98")
    assert stored.date_created == datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)
    assert stored.customer.phone == "555-123-4567"
    assert stored.shipping.address_1 == "456 Oak Ave"
    assert [item.product_id for item in stored.items] == ["21", "22"]
    assert stored.items[1].price == Decimal("49.99")


def test_store_order_info_duplicate_number_is_rejected(controller, session_factory) -> None:
    assert controller.store_order_info(order_info_payload()).success

    result = controller.store_order_info(order_info_payload(order_id=5678))

    assert not result.success
    assert isinstance(result.error, DuplicateOrderError)
    assert result.message == "Order number already exists"
    assert _order_info_count(session_factory) == 1


def test_store_order_info_invalid_record_writes_nothing(controller, session_factory) -> None:
    result = controller.store_order_info(order_info_payload(items=[]))

    assert not result.success
    assert isinstance(result.error, ValidationError)
    assert result.message == "Items array is required and must not be empty"
    assert _order_info_count(session_factory) == 0


def test_store_order_info_failure_after_parent_insert_rolls_back(controller, session_factory, monkeypatch) -> None:
    real_insert = order_info_repository.insert_order_info

    def insert_then_fail(session, info):
        real_insert(session, info)
        raise OperationalError("INSERT INTO order_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(order_info_repository, "insert_order_info", insert_then_fail)

    result = controller.store_order_info(order_info_payload())

    assert not result.success
    assert isinstance(result.error, PersistenceError)
    assert result.message.startswith("Failed to store order information:")
    assert _order_info_count(session_factory) == 0


def test_get_unknown_order_info(controller) -> None:
    assert controller.get_order_info(999) is None
