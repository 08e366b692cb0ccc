# lims_core/orders/tests/test_records.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from lims_core.common.exceptions import ValidationError
from lims_core.orders.models import OrderStatus, OrderType
from lims_core.orders.records import OrderRecord, coerce_line_items, lock


@pytest.mark.parametrize(
    "items, reason",
    [
        ([], "NoTests"),
        ([{"test_code": "", "price": "10"}], "MissingTestCode"),
        ([{"test_code": "CBC", "price": "-5"}], "NegativePrice"),
        ([{"test_code": "CBC", "price": "10.005"}], "AmountPrecision"),
        ([{"test_code": "CBC", "price": "abc"}], "InvalidNumber"),
        ([{"test_code": "CBC", "price": "1"}, {"test_code": "CBC", "price": "2"}], "DuplicateTest"),
    ],
)
def test_bad_items_are_rejected(items, reason):
    with pytest.raises(ValidationError) as exc:
        coerce_line_items(items)
    assert exc.value.reason == reason


def test_items_are_normalised():
    (item,) = coerce_line_items([{"test_code": " TSH ", "price": 350}])
    assert item.test_code == "TSH"
    assert item.test_name == "TSH"
    assert item.price == Decimal("350.00")


def test_lock_wins_over_can_add_tests():
    o = OrderRecord(id=uuid.uuid4(), patient_id=uuid.uuid4(), status=OrderStatus.PENDING, order_type=OrderType.INITIAL)
    assert o.accepts_items_in_place

    at = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    locked = lock(o, at=at)
    assert locked.is_locked
    assert not locked.accepts_items_in_place
    assert lock(locked, at=datetime.now(timezone.utc)).locked_at == at
