# lims_core/billing/tests/test_reports.py
import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.test import override_settings
from django.utils import timezone

from lims_core.billing.models import PaymentMethod
from lims_core.billing.records import PaymentRecord
from lims_core.billing.reports import reconcile_cash, summarize_payments
from lims_core.billing.services import BillingReportService, InvoiceService, PaymentService
from lims_core.common.exceptions import ValidationError

D = Decimal
DAY = date(2024, 3, 1)


def _pay(amount, method=PaymentMethod.CASH, on=DAY):
    return PaymentRecord(id=uuid.uuid4(), invoice_id=uuid.uuid4(), amount=D(amount), method=method, paid_on=on)


def test_summary_groups_by_method_largest_first():
    payments = [
        _pay("100.00"),
        _pay("250.00", PaymentMethod.UPI),
        _pay("50.00"),
        _pay("600.00", PaymentMethod.CREDIT_CARD),
    ]
    s = summarize_payments(payments, start=DAY, end=DAY)

    assert s.total_collected == D("1000.00")
    assert s.payment_count == 4
    assert [r.method for r in s.by_method] == [PaymentMethod.CREDIT_CARD, PaymentMethod.UPI, PaymentMethod.CASH]
    cash = s.by_method[-1]
    assert (cash.amount, cash.count, cash.share_percent) == (D("150.00"), 2, D("15.00"))
    assert s.by_method[0].label == "Credit Card"


def test_summary_of_nothing_is_zero():
    s = summarize_payments([], start=DAY, end=DAY)
    assert s.total_collected == D("0.00")
    assert s.by_method == ()


def test_summary_rejects_reversed_range():
    with pytest.raises(ValidationError) as exc:
        summarize_payments([], start=DAY, end=DAY - timedelta(days=1))
    assert exc.value.reason == "InvalidDateRange"


def test_cash_within_tolerance_is_reconciled():
    payments = [_pay("500.00"), _pay("200.00"), _pay("999.00", PaymentMethod.UPI), _pay("40.00", on=DAY + timedelta(days=1))]
    r = reconcile_cash(payments, on_date=DAY, counted_amount="699.50", tolerance=D("1.00"))

    assert r.expected_amount == D("700.00")
    assert r.difference == D("-0.50")
    assert r.difference_percent == D("0.07")
    assert r.reconciled is True


def test_cash_short_by_tolerance_is_not_reconciled():
    r = reconcile_cash([_pay("700.00")], on_date=DAY, counted_amount="699.00", tolerance=D("1.00"))
    assert r.difference == D("-1.00")
    assert r.reconciled is False


def test_negative_count_is_rejected():
    with pytest.raises(ValidationError) as exc:
        reconcile_cash([], on_date=DAY, counted_amount="-1", tolerance=D("1.00"))
    assert exc.value.reason == "NegativeAmount"


@pytest.mark.django_db
def test_report_services_read_recorded_payments(order):
    inv = InvoiceService.finalize(invoice_id=InvoiceService.create_from_order(order_id=order.id).id)
    PaymentService.record_payment(invoice_id=inv.id, amount="300", method="CASH")
    PaymentService.record_payment(invoice_id=inv.id, amount="200", method="UPI")
    today = timezone.localdate()

    summary = BillingReportService.payment_summary(start=today, end=today)
    assert summary.total_collected == D("500.00")
    assert summary.payment_count == 2

    with override_settings(LIMS_CASH_RECONCILIATION_TOLERANCE=D("5.00")):
        r = BillingReportService.reconcile_cash(on_date=today, counted_amount="296")
    assert r.expected_amount == D("300.00")
    assert r.reconciled is True
