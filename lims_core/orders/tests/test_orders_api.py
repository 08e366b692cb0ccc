# lims_core/orders/tests/test_orders_api.py
import uuid

import pytest
from rest_framework.test import APIClient

from lims_core.common import idempotency
from lims_core.orders.models import Order, OrderStatus

pytestmark = pytest.mark.django_db

ITEMS = [{"test_code": "LIPID", "test_name": "Lipid Profile", "price": "800.00"}]


def test_retrieve_order(api_client, order):
    r = api_client.get(f"/api/v1/orders/{order.id}/")
    assert r.status_code == 200, r.data
    assert r.data["session_key"] == f"single-{order.id}"
    assert r.data["line_items"][0]["test_code"] == "CBC"
    assert r.data["total_amount"] == "500.00"


def test_unknown_order_is_404_envelope(api_client):
    r = api_client.get(f"/api/v1/orders/{uuid.uuid4()}/")
    assert r.status_code == 404
    assert r.data["error"]["code"] == "not_found"
    assert r.data["error"]["details"]["reason"] == "OrderNotFound"


def test_test_addition_decision_endpoint(api_client, make_order):
    o = make_order(OrderStatus.SAMPLE_COLLECTION)
    r = api_client.get(f"/api/v1/orders/{o.id}/test-addition/")
    assert r.status_code == 200
    assert r.data["allowed"] is True
    assert r.data["requires_approval"] is True
    assert r.data["resulting_order_type"] == "additional"


def test_add_tests_is_idempotent(api_client, order):
    url = f"/api/v1/orders/{order.id}/tests/"
    r1 = api_client.post(url, {"items": ITEMS}, format="json", HTTP_IDEMPOTENCY_KEY="add-1")
    r2 = api_client.post(url, {"items": ITEMS}, format="json", HTTP_IDEMPOTENCY_KEY="add-1")

    assert r1.status_code == 201, r1.data
    assert r2.status_code == 201
    assert r1.data == r2.data
    assert r1.data["total_amount"] == "1300.00"
    assert order.items.count() == 2


def test_add_tests_to_cancelled_order_is_403(api_client, make_order):
    o = make_order(OrderStatus.CANCELLED)
    r = api_client.post(f"/api/v1/orders/{o.id}/tests/", {"items": ITEMS}, format="json")
    assert r.status_code == 403
    assert r.data["error"]["code"] == "authorization_denied"
    assert r.data["error"]["details"]["reason"] == "OrderStatusForbidsAddition"


def test_add_tests_with_approval_returns_linked_order(api_client, make_order):
    o = make_order(OrderStatus.PROCESSING)
    r = api_client.post(
        f"/api/v1/orders/{o.id}/tests/",
        {"items": ITEMS, "approved_by": 12, "reason": "Physician request"},
        format="json",
    )
    assert r.status_code == 201, r.data
    assert r.data["parent_order_id"] == str(o.id)
    assert r.data["requires_new_sample"] is True

    chain = api_client.get(f"/api/v1/orders/{o.id}/chain/")
    assert chain.status_code == 200
    assert [c["id"] for c in chain.data] == [r.data["id"]]
    assert chain.data[0]["test_count"] == 1


def test_retry_missing_the_response_cache_reuses_linked_order(api_client, make_order):
    o = make_order(OrderStatus.SAMPLE_COLLECTION)
    url = f"/api/v1/orders/{o.id}/tests/"
    body = {"items": ITEMS, "approved_by": 12}

    r1 = api_client.post(url, body, format="json", HTTP_IDEMPOTENCY_KEY="add-2")
    idempotency.reset()
    r2 = api_client.post(url, body, format="json", HTTP_IDEMPOTENCY_KEY="add-2")

    assert r1.status_code == r2.status_code == 201
    assert r2.data["id"] == r1.data["id"]
    assert Order.objects.filter(parent_order_id=o.id).count() == 1


def test_lock_then_session(api_client, order):
    r = api_client.post(f"/api/v1/orders/{order.id}/lock/", {"reason": "Billed"}, format="json")
    assert r.status_code == 200
    assert r.data["can_add_tests"] is False
    assert r.data["locked_at"]

    s = api_client.get(f"/api/v1/sessions/single-{order.id}/")
    assert s.status_code == 200
    assert s.data["total_amount"] == "500.00"
    assert s.data["status"] == "active"
    assert Order.objects.get(id=order.id).locked_at is not None


def test_bad_item_payload_is_validation_envelope(api_client, order):
    r = api_client.post(
        f"/api/v1/orders/{order.id}/tests/",
        {"items": [{"test_code": "X", "price": "-1"}]},
        format="json",
    )
    assert r.status_code == 400
    assert r.data["error"]["code"] == "validation_error"


def test_requires_authentication(order):
    r = APIClient().get(f"/api/v1/orders/{order.id}/")
    assert r.status_code == 401
