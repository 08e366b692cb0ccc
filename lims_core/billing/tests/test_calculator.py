# lims_core/billing/tests/test_calculator.py
import itertools
from decimal import Decimal
from types import SimpleNamespace

import pytest

from lims_core.billing.calculator import InvoiceCalculator, compute_invoice_totals, line_total
from lims_core.common.exceptions import ValidationError

D = Decimal


def test_two_tests_with_gst():
    totals = compute_invoice_totals([(D("500"), 1), (D("500"), 1)], D("0"), D("18"))

    assert totals.subtotal == D("1000.00")
    assert totals.discount == D("0.00")
    assert totals.tax_amount == D("180.00")
    assert totals.total == D("1180.00")


def test_discount_reduces_taxable_base():
    totals = compute_invoice_totals([(D("1000"), 1)], D("100"), D("18"))
    assert totals.taxable_base == D("900.00")
    assert totals.tax_amount == D("162.00")
    assert totals.total == D("1062.00")


def test_discount_larger_than_subtotal_gives_negative_total():
    totals = compute_invoice_totals([(D("100"), 1)], D("150"), D("18"))
    assert totals.tax_amount == D("0.00")
    assert totals.total == D("-50.00")


def test_tax_rounds_half_up_to_cents():
    totals = compute_invoice_totals([(D("333.33"), 1)], D("0"), D("18"))
    assert totals.tax_amount == D("60.00")
    assert totals.total == D("393.33")


def test_line_totals_round_before_summing():
    assert line_total(D("0.25"), D("0.5")) == D("0.13")
    totals = compute_invoice_totals([(D("0.25"), D("0.5")), (D("0.25"), D("0.5"))])
    assert totals.subtotal == D("0.26")


def test_item_order_does_not_change_totals():
    items = [(D("199.99"), 3), (D("0.25"), D("0.5")), (D("1250"), 1), (D("75.10"), 2)]
    results = {compute_invoice_totals(p, D("35.50"), D("12")) for p in itertools.permutations(items)}
    assert len(results) == 1


def test_dict_and_line_objects_are_accepted():
    totals = InvoiceCalculator.compute(
        [
            {"unit_price": "200.00", "quantity": "2"},
            {"price": "100.00"},
            SimpleNamespace(unit_price=D("50.00"), quantity=D("1")),
        ],
        "0",
        "0",
    )
    assert totals.subtotal == D("550.00")


def test_empty_basket_is_zero():
    totals = compute_invoice_totals([], D("0"), D("18"))
    assert totals.total == D("0.00")


@pytest.mark.parametrize(
    "items, discount, rate, reason",
    [
        ([(D("10"), -1)], D("0"), D("0"), "NegativeQuantity"),
        ([(D("-10"), 1)], D("0"), D("0"), "NegativePrice"),
        ([(D("10"), 1)], D("-1"), D("0"), "NegativeDiscount"),
        ([(D("10"), 1)], D("0"), D("-5"), "NegativeTaxRate"),
        ([("ten", 1)], D("0"), D("0"), "InvalidNumber"),
        ([(D("10"), 1)], "NaN", D("0"), "InvalidNumber"),
        ([(D("10.005"), 1)], D("0"), D("0"), "AmountPrecision"),
        ([(D("10"), 1)], D("0.125"), D("0"), "AmountPrecision"),
    ],
)
def test_invalid_inputs(items, discount, rate, reason):
    with pytest.raises(ValidationError) as exc:
        compute_invoice_totals(items, discount, rate)
    assert exc.value.reason == reason
