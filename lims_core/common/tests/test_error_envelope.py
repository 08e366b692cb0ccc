# lims_core/common/tests/test_error_envelope.py
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.test import APIRequestFactory

from lims_core.common.api.exceptions import api_exception_handler
from lims_core.common.exceptions import ConcurrencyConflict, PersistenceError, ValidationError


def _handle(exc):
    request = APIRequestFactory().get("/api/v1/anything/")
    return api_exception_handler(exc, {"request": request})


def test_domain_error_carries_reason_and_details():
    resp = _handle(ValidationError("AmountExceedsRemaining", "Too much.", details={"remaining": "500.00"}))

    assert resp.status_code == 400
    err = resp.data["error"]
    assert err["code"] == "validation_error"
    assert err["message"] == "Too much."
    assert err["details"] == {"reason": "AmountExceedsRemaining", "remaining": "500.00"}
    assert err["request_id"]


def test_message_defaults_to_reason():
    resp = _handle(ConcurrencyConflict("StaleOrder"))
    assert resp.status_code == 409
    assert resp.data["error"]["message"] == "StaleOrder"
    assert resp.data["error"]["code"] == "concurrency_conflict"


def test_persistence_error_is_503():
    resp = _handle(PersistenceError("StoreUnavailable", "Could not load order."))
    assert resp.status_code == 503
    assert resp.data["error"]["details"] == {"reason": "StoreUnavailable"}


def test_drf_field_errors_keep_their_details():
    resp = _handle(DRFValidationError({"amount": ["A valid number is required."]}))
    assert resp.status_code == 400
    assert resp.data["error"]["message"] == "Request failed."
    assert resp.data["error"]["details"] == {"amount": ["A valid number is required."]}


def test_detail_only_errors_become_message():
    resp = _handle(NotFound())
    assert resp.status_code == 404
    assert resp.data["error"]["code"] == "not_found"
    assert resp.data["error"]["details"] is None


def test_unhandled_exception_is_server_error():
    resp = _handle(RuntimeError("boom"))
    assert resp.status_code == 500
    assert resp.data["error"]["code"] == "server_error"
