# lims_core/billing/tests/test_ledger.py
import uuid
from datetime import date
from decimal import Decimal

import pytest

from lims_core.billing.ledger import PaymentLedger, apply_payment, parse_method, remaining_balance
from lims_core.billing.models import InvoiceStatus, PaymentMethod
from lims_core.billing.records import InvoiceRecord, PaymentRecord
from lims_core.common.exceptions import ValidationError

D = Decimal
TODAY = date(2024, 3, 1)


def _invoice(total="1180.00", paid=(), status=InvoiceStatus.UNPAID):
    inv_id = uuid.uuid4()
    payments = tuple(
        PaymentRecord(id=uuid.uuid4(), invoice_id=inv_id, amount=D(a), method=PaymentMethod.CASH, paid_on=TODAY)
        for a in paid
    )
    return InvoiceRecord(id=inv_id, patient_id=uuid.uuid4(), status=status, total=D(total), payments=payments)


def test_overpayment_is_rejected_with_remaining_balance():
    inv = _invoice(paid=["680.00"], status=InvoiceStatus.PARTIALLY_PAID)
    assert remaining_balance(inv) == D("500.00")

    with pytest.raises(ValidationError) as exc:
        apply_payment(inv, D("600"), "CASH", paid_on=TODAY)

    assert exc.value.reason == "AmountExceedsRemaining"
    assert exc.value.details["remaining"] == "500.00"
    assert len(inv.payments) == 1


def test_exact_remaining_marks_paid():
    inv = _invoice(paid=["680.00"], status=InvoiceStatus.PARTIALLY_PAID)
    out = apply_payment(inv, D("500"), "UPI", "UTR-1", paid_on=TODAY, recorded_by=4)

    assert out.status == InvoiceStatus.PAID
    assert out.balance_due == D("0.00")
    last = out.payments[-1]
    assert last.amount == D("500.00")
    assert last.method == PaymentMethod.UPI
    assert last.reference == "UTR-1"
    assert last.recorded_by == 4


def test_partial_payment_marks_partially_paid():
    out = apply_payment(_invoice(), "100.50", "CASH", paid_on=TODAY)
    assert out.status == InvoiceStatus.PARTIALLY_PAID
    assert out.amount_paid == D("100.50")
    assert out.balance_due == D("1079.50")


def test_draft_invoice_takes_no_payments():
    with pytest.raises(ValidationError) as exc:
        apply_payment(_invoice(status=InvoiceStatus.DRAFT), D("10"), "CASH", paid_on=TODAY)
    assert exc.value.reason == "InvoiceNotFinalized"


@pytest.mark.parametrize(
    "amount, reason",
    [
        (D("0"), "AmountNotPositive"),
        (D("-5"), "AmountNotPositive"),
        (D("10.001"), "AmountPrecision"),
        ("ten", "InvalidNumber"),
    ],
)
def test_bad_amounts(amount, reason):
    with pytest.raises(ValidationError) as exc:
        apply_payment(_invoice(), amount, "CASH", paid_on=TODAY)
    assert exc.value.reason == reason


def test_paid_invoice_rejects_further_payment():
    inv = apply_payment(_invoice(total="100.00"), D("100"), "CASH", paid_on=TODAY)
    with pytest.raises(ValidationError) as exc:
        apply_payment(inv, D("0.01"), "CASH", paid_on=TODAY)
    assert exc.value.reason == "AmountExceedsRemaining"


def test_same_idempotency_key_applies_once():
    inv = _invoice()
    once = apply_payment(inv, D("200"), "CASH", paid_on=TODAY, idempotency_key="k-1")
    twice = apply_payment(once, D("200"), "CASH", paid_on=TODAY, idempotency_key="k-1")

    assert twice is once
    assert twice.amount_paid == D("200.00")


def test_payments_never_exceed_total():
    inv = _invoice(total="1000.00")
    for amount in ["300", "300", "300", "300", "100", "0.01"]:
        try:
            inv = PaymentLedger.apply_payment(inv, D(amount), "CASH", paid_on=TODAY)
        except ValidationError:
            pass
        assert inv.amount_paid <= inv.total

    assert inv.status == InvoiceStatus.PAID


def test_method_accepts_values_and_labels():
    assert parse_method("CREDIT_CARD") == PaymentMethod.CREDIT_CARD
    assert parse_method("Credit Card") == PaymentMethod.CREDIT_CARD
    assert parse_method("bank transfer") == PaymentMethod.BANK_TRANSFER

    with pytest.raises(ValidationError) as exc:
        parse_method("BITCOIN")
    assert exc.value.reason == "UnknownPaymentMethod"
