# conftest.py
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from lims_core.common import idempotency
from lims_core.lab.models import LabResult
from lims_core.orders.models import Order, OrderItem, OrderStatus
from lims_core.patients.models import Patient

DEFAULT_TESTS = [("CBC", "Complete Blood Count", "500.00")]


@pytest.fixture(autouse=True)
def _clear_idempotency_cache():
    idempotency.reset()
    yield
    idempotency.reset()


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(username="labtech", password="pass123")


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def patient(db):
    return Patient.objects.create(full_name="Asha Rao", mrn="MRN-0001", phone="9000000001")


@pytest.fixture
def make_order(db, patient):
    def _make(status=OrderStatus.PENDING, tests=None, *, patient_obj=None, visit_session_id=None, **fields):
        tests = DEFAULT_TESTS if tests is None else tests
        order = Order.objects.create(
            patient=patient_obj or patient,
            status=status,
            visit_session_id=visit_session_id,
            total_amount=sum((Decimal(price) for _, _, price in tests), Decimal("0.00")),
            **fields,
        )
        for pos, (code, name, price) in enumerate(tests):
            OrderItem.objects.create(order=order, test_code=code, test_name=name, price=Decimal(price), position=pos)
        return order

    return _make


@pytest.fixture
def order(make_order):
    return make_order()


@pytest.fixture
def make_result(db, order):
    def _make(*, analytes=None, is_critical=False, test_name="CBC", result_order=None):
        if analytes is None:
            analytes = [
                {"name": "Hemoglobin", "value": "13.5", "unit": "g/dL", "reference_range": "12-16", "is_abnormal": False},
            ]
        return LabResult.objects.create(
            order=result_order or order,
            test_name=test_name,
            analytes=analytes,
            is_critical=is_critical,
        )

    return _make
