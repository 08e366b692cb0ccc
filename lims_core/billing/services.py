# lims_core/billing/services.py
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID, uuid4

from django.conf import settings
from django.utils import timezone

from lims_core.audit.services import AuditService
from lims_core.billing.calculator import InvoiceCalculator, InvoiceTotals
from lims_core.billing.ledger import PaymentLedger
from lims_core.billing.models import InvoiceStatus, PaymentMethod
from lims_core.billing.records import InvoiceLineRecord, InvoiceRecord
from lims_core.billing.reports import CashReconciliation, PaymentSummary, reconcile_cash, summarize_payments
from lims_core.billing.selectors import payments_between
from lims_core.common.exceptions import ValidationError
from lims_core.common.money import ZERO, has_at_most_two_places, quantize, to_decimal
from lims_core.store import LabStore, get_store

logger = logging.getLogger(__name__)

ONE = Decimal("1.00")


def _with_totals(invoice: InvoiceRecord) -> InvoiceRecord:
    totals = InvoiceCalculator.compute(invoice.lines, invoice.discount, invoice.tax_rate)
    return replace(
        invoice,
        subtotal=totals.subtotal,
        discount=totals.discount,
        tax_amount=totals.tax_amount,
        total=totals.total,
    )


def _ensure_editable(invoice: InvoiceRecord) -> None:
    if invoice.status != InvoiceStatus.DRAFT:
        raise ValidationError(
            "InvoiceNotEditable",
            "Invoice is not editable unless in DRAFT status.",
            details={"invoice_id": str(invoice.id), "status": invoice.status.value},
        )


class InvoiceService:
    @staticmethod
    def compute_invoice_totals(*, items: Iterable, discount=ZERO, tax_rate=ZERO) -> InvoiceTotals:
        return InvoiceCalculator.compute(items, discount, tax_rate)

    @staticmethod
    def create_from_order(
        *,
        order_id: UUID,
        discount=ZERO,
        tax_rate=None,
        actor_user_id: int | None = None,
        store: LabStore | None = None,
    ) -> InvoiceRecord:
        """
        Draft invoice with one line per ordered test (quantity 1).
        Tax rate defaults to settings.LIMS_DEFAULT_TAX_RATE.
        """
        store = store or get_store()
        rate = settings.LIMS_DEFAULT_TAX_RATE if tax_rate is None else tax_rate

        with store.atomic():
            order = store.load_order(order_id)
            if not order.line_items:
                raise ValidationError("NoTests", "Order has no tests to bill.", details={"order_id": str(order.id)})

            lines = tuple(
                InvoiceLineRecord(
                    id=uuid4(),
                    test_code=i.test_code,
                    test_name=i.test_name,
                    unit_price=i.price,
                    quantity=ONE,
                    line_total=InvoiceCalculator.line_total(i.price, ONE),
                )
                for i in order.line_items
            )
            draft = _with_totals(
                InvoiceRecord(
                    id=uuid4(),
                    patient_id=order.patient_id,
                    order_id=order.id,
                    status=InvoiceStatus.DRAFT,
                    lines=lines,
                    discount=to_decimal(discount, "discount"),
                    tax_rate=to_decimal(rate, "tax_rate"),
                    currency=getattr(settings, "LIMS_CURRENCY", "INR"),
                )
            )
            invoice = store.create_invoice(draft)
            AuditService.log(
                event_code="invoice.created",
                entity_type="Invoice",
                entity_id=invoice.id,
                actor_user_id=actor_user_id,
                metadata={"order_id": str(order.id), "total": str(invoice.total)},
            )
        logger.info("Created draft invoice %s for order %s (total=%s)", invoice.id, order.id, invoice.total)
        return invoice

    @staticmethod
    def add_line(
        *,
        invoice_id: UUID,
        test_name: str,
        unit_price,
        quantity=ONE,
        test_code: str = "",
        store: LabStore | None = None,
    ) -> InvoiceRecord:
        store = store or get_store()

        with store.atomic():
            invoice = store.load_invoice(invoice_id, for_update=True)
            _ensure_editable(invoice)

            unit_price = to_decimal(unit_price, "unit_price")
            if not has_at_most_two_places(unit_price):
                raise ValidationError(
                    "AmountPrecision",
                    "unit_price has more than 2 decimal places.",
                    details={"unit_price": str(unit_price)},
                )
            unit_price = quantize(unit_price)
            quantity = quantize(to_decimal(quantity, "quantity"))
            if quantity <= 0:
                raise ValidationError("NegativeQuantity", "Quantity must be > 0.", details={"quantity": str(quantity)})

            line = InvoiceLineRecord(
                id=uuid4(),
                test_code=(test_code or "").strip(),
                test_name=test_name,
                unit_price=unit_price,
                quantity=quantity,
                line_total=InvoiceCalculator.line_total(unit_price, quantity),
            )
            return store.save_invoice(_with_totals(replace(invoice, lines=invoice.lines + (line,))))

    @staticmethod
    def set_discount(
        *,
        invoice_id: UUID,
        discount,
        tax_rate=None,
        store: LabStore | None = None,
    ) -> InvoiceRecord:
        store = store or get_store()

        with store.atomic():
            invoice = store.load_invoice(invoice_id, for_update=True)
            _ensure_editable(invoice)

            changed = replace(
                invoice,
                discount=to_decimal(discount, "discount"),
                tax_rate=invoice.tax_rate if tax_rate is None else to_decimal(tax_rate, "tax_rate"),
            )
            return store.save_invoice(_with_totals(changed))

    @staticmethod
    def finalize(
        *,
        invoice_id: UUID,
        actor_user_id: int | None = None,
        store: LabStore | None = None,
    ) -> InvoiceRecord:
        store = store or get_store()

        with store.atomic():
            invoice = store.load_invoice(invoice_id, for_update=True)
            _ensure_editable(invoice)

            if not invoice.lines:
                raise ValidationError("EmptyInvoice", "Cannot finalize an empty invoice.")

            finalized = replace(
                _with_totals(invoice),
                status=InvoiceStatus.UNPAID,
                invoice_number=invoice.invoice_number or store.next_invoice_number(),
                finalized_at=timezone.now(),
            )
            saved = store.save_invoice(finalized)
            AuditService.log(
                event_code="invoice.finalized",
                entity_type="Invoice",
                entity_id=saved.id,
                actor_user_id=actor_user_id,
                metadata={"invoice_number": saved.invoice_number, "total": str(saved.total)},
            )
        logger.info("Finalized invoice %s as %s", saved.id, saved.invoice_number)
        return saved


class PaymentService:
    @staticmethod
    def record_payment(
        *,
        invoice_id: UUID,
        amount,
        method: str = PaymentMethod.CASH,
        reference: str = "",
        paid_on: date | None = None,
        recorded_by_user_id: int | None = None,
        idempotency_key: str | None = None,
        store: LabStore | None = None,
    ) -> InvoiceRecord:
        """
        Applies one payment under a row lock on the invoice.
        Retrying with the same idempotency key returns the invoice unchanged.
        """
        store = store or get_store()

        with store.atomic():
            invoice = store.load_invoice(invoice_id, for_update=True)
            try:
                updated = PaymentLedger.apply_payment(
                    invoice,
                    amount,
                    method,
                    reference,
                    paid_on=paid_on or timezone.localdate(),
                    recorded_by=recorded_by_user_id,
                    idempotency_key=idempotency_key,
                )
            except ValidationError as exc:
                logger.warning("Payment rejected on invoice %s: %s", invoice.id, exc)
                raise

            if updated is invoice:
                logger.info("Payment replay on invoice %s (key=%s)", invoice.id, idempotency_key)
                return invoice

            payment = updated.payments[-1]
            store.save_payment(payment)

            if updated.status == InvoiceStatus.PAID:
                updated = replace(updated, paid_at=timezone.now())
            saved = store.save_invoice(updated)

            AuditService.log(
                event_code="invoice.payment_recorded",
                entity_type="Invoice",
                entity_id=saved.id,
                actor_user_id=recorded_by_user_id,
                metadata={
                    "payment_id": str(payment.id),
                    "amount": str(payment.amount),
                    "method": payment.method.value,
                    "remaining": str(saved.balance_due),
                    "status": saved.status.value,
                },
            )

        logger.info(
            "Recorded %s payment of %s on invoice %s (remaining=%s)",
            payment.method.value, payment.amount, saved.id, saved.balance_due,
        )
        return saved


class BillingReportService:
    @staticmethod
    def payment_summary(*, start: date, end: date) -> PaymentSummary:
        return summarize_payments(payments_between(start=start, end=end), start=start, end=end)

    @staticmethod
    def reconcile_cash(*, on_date: date, counted_amount) -> CashReconciliation:
        tolerance = to_decimal(getattr(settings, "LIMS_CASH_RECONCILIATION_TOLERANCE", "1.00"), "tolerance")
        result = reconcile_cash(
            payments_between(start=on_date, end=on_date, method=PaymentMethod.CASH),
            on_date=on_date,
            counted_amount=counted_amount,
            tolerance=tolerance,
        )
        if not result.reconciled:
            logger.warning(
                "Cash drawer mismatch on %s: expected %s, counted %s",
                on_date, result.expected_amount, result.counted_amount,
            )
        return result
