# lims_core/common/tests/test_money.py
from decimal import Decimal

import pytest

from lims_core.common.exceptions import ValidationError
from lims_core.common.money import has_at_most_two_places, quantize, to_decimal


@pytest.mark.parametrize("raw, expected", [("10", Decimal("10")), (12, Decimal("12")), (0.1, Decimal("0.1")), (" 5.50 ", Decimal("5.50"))])
def test_to_decimal(raw, expected):
    assert to_decimal(raw) == expected


@pytest.mark.parametrize("raw", ["abc", None, "Infinity", "NaN", ""])
def test_to_decimal_rejects(raw):
    with pytest.raises(ValidationError) as exc:
        to_decimal(raw, "amount")
    assert exc.value.reason == "InvalidNumber"
    assert exc.value.details == {"field": "amount"}


def test_quantize_half_up():
    assert quantize(Decimal("2.345")) == Decimal("2.35")
    assert quantize(Decimal("-2.345")) == Decimal("-2.35")


def test_two_places():
    assert has_at_most_two_places(Decimal("1.10"))
    assert has_at_most_two_places(Decimal("7"))
    assert not has_at_most_two_places(Decimal("1.001"))
