# lims_core/orders/tests/test_order_services.py
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from lims_core.audit.models import AuditEvent
from lims_core.common.exceptions import AuthorizationDenied, ConcurrencyConflict, NotFoundError, ValidationError
from lims_core.orders.models import Order, OrderItem, OrderStatus, OrderType
from lims_core.orders.records import OrderLineItem, spawn_additional
from lims_core.orders.services import LOCKED_REDIRECT_REASON, OrderService
from lims_core.store import get_store

pytestmark = pytest.mark.django_db

LIPID = {"test_code": "LIPID", "test_name": "Lipid Profile", "price": "800.00"}


def test_pending_order_gets_tests_in_place(order):
    out = OrderService.add_tests(order_id=order.id, items=[LIPID], actor_user_id=7)

    assert out.id == order.id
    assert out.test_codes == ("CBC", "LIPID")
    assert out.total_amount == Decimal("1300.00")
    assert out.version == 2

    order.refresh_from_db()
    assert order.total_amount == Decimal("1300.00")
    assert order.items.count() == 2

    ev = AuditEvent.objects.get(event_code="order.tests_added")
    assert ev.entity_id == order.id
    assert ev.actor_user_id == 7
    assert ev.metadata["test_codes"] == ["LIPID"]


def test_test_already_on_order_is_rejected(order):
    with pytest.raises(ValidationError) as exc:
        OrderService.add_tests(order_id=order.id, items=[{"test_code": "CBC", "price": "500.00"}])
    assert exc.value.reason == "DuplicateTest"
    assert OrderItem.objects.filter(order=order).count() == 1


def test_empty_item_list_is_rejected(order):
    with pytest.raises(ValidationError) as exc:
        OrderService.add_tests(order_id=order.id, items=[])
    assert exc.value.reason == "NoTests"


def test_during_collection_needs_an_approver(make_order):
    parent = make_order(OrderStatus.SAMPLE_COLLECTION)

    with pytest.raises(AuthorizationDenied) as exc:
        OrderService.add_tests(order_id=parent.id, items=[LIPID])

    assert exc.value.reason == "ApprovalRequired"
    assert Order.objects.count() == 1


def test_during_collection_creates_linked_order(make_order):
    parent = make_order(OrderStatus.SAMPLE_COLLECTION)

    child = OrderService.add_tests(order_id=parent.id, items=[LIPID], approved_by=3, actor_user_id=3)

    assert child.id != parent.id
    assert child.parent_order_id == parent.id
    assert child.order_type == OrderType.ADDITIONAL
    assert child.status == OrderStatus.PENDING
    assert child.requires_new_sample is False
    assert child.total_amount == Decimal("800.00")
    assert child.addition_reason == "Limited tests can be added during collection"
    assert child.visit_session_id == f"single-{parent.id}"

    parent.refresh_from_db()
    assert parent.items.count() == 1
    assert parent.total_amount == Decimal("500.00")
    assert AuditEvent.objects.filter(event_code="order.additional_created", entity_id=child.id).exists()


def test_after_collection_linked_order_needs_new_sample(make_order):
    parent = make_order(OrderStatus.PROCESSING, visit_session_id="VISIT-9")

    child = OrderService.add_tests(
        order_id=parent.id, items=[LIPID], approved_by=3, reason="Doctor asked for lipids",
    )

    assert child.requires_new_sample is True
    assert child.addition_reason == "Doctor asked for lipids"
    assert child.visit_session_id == "VISIT-9"


def test_retry_with_same_key_returns_the_first_linked_order(make_order):
    parent = make_order(OrderStatus.PROCESSING)

    first = OrderService.add_tests(order_id=parent.id, items=[LIPID], approved_by=3, idempotency_key="add-7")
    again = OrderService.add_tests(order_id=parent.id, items=[LIPID], approved_by=3, idempotency_key="add-7")
    other = OrderService.add_tests(order_id=parent.id, items=[LIPID], approved_by=3, idempotency_key="add-8")

    assert again.id == first.id
    assert other.id != first.id
    assert first.idempotency_key == "add-7"
    assert Order.objects.filter(parent_order_id=parent.id).count() == 2
    assert AuditEvent.objects.filter(event_code="order.additional_created").count() == 2


def test_second_linked_order_with_same_key_is_a_conflict(make_order):
    store = get_store()
    parent = store.load_order(make_order(OrderStatus.PROCESSING).id)
    items = (OrderLineItem(test_code="LIPID", test_name="Lipid Profile", price=Decimal("800.00")),)

    def spawn():
        return spawn_additional(
            parent, items, reason="retry", requires_new_sample=True,
            order_date=date(2024, 1, 1), idempotency_key="add-7",
        )

    store.create_order(spawn())
    with pytest.raises(ConcurrencyConflict) as exc:
        store.create_order(spawn())
    assert exc.value.reason == "IntegrityConflict"
    assert Order.objects.filter(parent_order_id=parent.id).count() == 1


def test_cancelled_order_refuses_tests(make_order):
    cancelled = make_order(OrderStatus.CANCELLED)

    with pytest.raises(AuthorizationDenied) as exc:
        OrderService.add_tests(order_id=cancelled.id, items=[LIPID], approved_by=1)

    assert exc.value.reason == "OrderStatusForbidsAddition"
    assert exc.value.detail == "Cannot add tests to this order"
    assert Order.objects.count() == 1
    assert not AuditEvent.objects.exists()


def test_locked_order_redirects_to_linked_order(order):
    OrderService.lock_order(order_id=order.id, reason="Invoice printed")

    child = OrderService.add_tests(order_id=order.id, items=[LIPID])

    assert child.parent_order_id == order.id
    assert child.addition_reason == LOCKED_REDIRECT_REASON
    assert child.requires_new_sample is False
    assert get_store().load_order(order.id).test_codes == ("CBC",)


def test_lock_is_idempotent(order):
    first = OrderService.lock_order(order_id=order.id)
    second = OrderService.lock_order(order_id=order.id)

    assert first.is_locked and not first.can_add_tests
    assert second.locked_at == first.locked_at
    assert second.version == first.version
    assert AuditEvent.objects.filter(event_code="order.locked").count() == 1


def test_order_chain_lists_linked_orders(make_order):
    parent = make_order(OrderStatus.COMPLETED)
    a = OrderService.add_tests(order_id=parent.id, items=[LIPID], approved_by=1)
    b = OrderService.add_tests(order_id=parent.id, items=[{"test_code": "TSH", "price": "350"}], approved_by=1)

    chain = OrderService.get_order_chain(parent_order_id=parent.id)

    assert [o.id for o in chain] == [a.id, b.id]


def test_session_summary_includes_linked_orders(make_order):
    root = make_order(OrderStatus.PROCESSING)
    OrderService.add_tests(order_id=root.id, items=[LIPID], approved_by=1)

    session = OrderService.get_session_summary(session_id=f"single-{root.id}")

    assert len(session.orders) == 2
    assert session.total_amount == Decimal("1300.00")
    assert session.total_tests == 2


def test_shared_visit_id_groups_orders(make_order):
    make_order(visit_session_id="VISIT-1")
    make_order(OrderStatus.COMPLETED, [("TSH", "Thyroid", "350.00")], visit_session_id="VISIT-1")
    make_order(visit_session_id="VISIT-2")

    session = OrderService.get_session_summary(session_id="VISIT-1")

    assert session.total_amount == Decimal("850.00")
    assert session.status == "active"


def test_unknown_session_is_not_found(db):
    with pytest.raises(NotFoundError) as exc:
        OrderService.get_session_summary(session_id="VISIT-404")
    assert exc.value.reason == "EmptySession"


def test_stale_write_is_a_conflict(order):
    store = get_store()
    loaded = store.load_order(order.id)
    OrderService.add_tests(order_id=order.id, items=[LIPID])

    with pytest.raises(ConcurrencyConflict) as exc:
        store.save_order(replace(loaded, addition_reason="late writer"))
    assert exc.value.reason == "StaleOrder"
