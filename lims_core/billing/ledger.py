# lims_core/billing/ledger.py
"""
Applying payments to a finalized invoice.

The ledger never partially applies: a payment is either recorded in full or
rejected, and `sum(payments) <= total` holds for every invoice it returns.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

from lims_core.billing.models import InvoiceStatus, PaymentMethod
from lims_core.billing.records import InvoiceRecord, PaymentRecord
from lims_core.common.exceptions import ValidationError
from lims_core.common.money import ZERO, has_at_most_two_places, quantize, to_decimal


def parse_method(method) -> PaymentMethod:
    """Accepts enum values ("CREDIT_CARD") or display labels ("Credit Card")."""
    try:
        return PaymentMethod(method)
    except (ValueError, TypeError):
        pass

    text = str(method or "").strip().lower()
    for m in PaymentMethod:
        if text in (m.value.lower(), str(m.label).lower()):
            return m

    raise ValidationError(
        "UnknownPaymentMethod",
        f"Unknown payment method {method!r}.",
        details={"allowed": [m.value for m in PaymentMethod]},
    )


class PaymentLedger:
    @staticmethod
    def remaining_balance(invoice: InvoiceRecord) -> Decimal:
        return invoice.balance_due

    @staticmethod
    def apply_payment(
        invoice: InvoiceRecord,
        amount,
        method,
        reference: str = "",
        *,
        paid_on: date,
        recorded_by: int | None = None,
        idempotency_key: str | None = None,
    ) -> InvoiceRecord:
        if invoice.payment_for_key(idempotency_key) is not None:
            return invoice

        if invoice.status == InvoiceStatus.DRAFT:
            raise ValidationError(
                "InvoiceNotFinalized",
                "Finalize the invoice before recording payments.",
                details={"invoice_id": str(invoice.id)},
            )

        method = parse_method(method)
        amount = to_decimal(amount, "amount")

        if amount <= 0:
            raise ValidationError("AmountNotPositive", "Payment amount must be > 0.", details={"amount": str(amount)})
        if not has_at_most_two_places(amount):
            raise ValidationError(
                "AmountPrecision",
                "Payment amount has more than 2 decimal places.",
                details={"amount": str(amount)},
            )

        remaining = PaymentLedger.remaining_balance(invoice)
        if amount > remaining:
            raise ValidationError(
                "AmountExceedsRemaining",
                f"Payment {quantize(amount)} exceeds remaining balance {remaining}.",
                details={"amount": str(quantize(amount)), "remaining": str(remaining)},
            )

        payment = PaymentRecord(
            id=uuid4(),
            invoice_id=invoice.id,
            amount=quantize(amount),
            method=method,
            paid_on=paid_on,
            reference=(reference or "").strip(),
            recorded_by=recorded_by,
            idempotency_key=idempotency_key or None,
        )

        new_remaining = remaining - payment.amount
        status = InvoiceStatus.PAID if new_remaining == ZERO else InvoiceStatus.PARTIALLY_PAID

        return replace(invoice, payments=invoice.payments + (payment,), status=status)


def apply_payment(invoice: InvoiceRecord, amount, method, reference: str = "", **kwargs) -> InvoiceRecord:
    return PaymentLedger.apply_payment(invoice, amount, method, reference, **kwargs)


def remaining_balance(invoice: InvoiceRecord) -> Decimal:
    return PaymentLedger.remaining_balance(invoice)
