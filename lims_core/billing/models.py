# lims_core/billing/models.py
from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from lims_core.common.models import UUIDModel, VersionedModel
from lims_core.orders.models import Order
from lims_core.patients.models import Patient


class InvoiceStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    UNPAID = "UNPAID", "Unpaid"
    PARTIALLY_PAID = "PARTIALLY_PAID", "Partially Paid"
    PAID = "PAID", "Paid"


class Invoice(VersionedModel):
    """
    Editable while DRAFT. Once finalized (UNPAID) only payments move it,
    through the payment ledger.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="invoices")
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="invoices", null=True, blank=True)

    invoice_number = models.CharField(max_length=32, blank=True)  # assigned on finalize
    status = models.CharField(max_length=32, choices=InvoiceStatus.choices, default=InvoiceStatus.DRAFT, db_index=True)

    currency = models.CharField(max_length=8, default="INR")

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    # denormalized for listing and reports; the ledger works from payments
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    balance_due = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    finalized_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "billing_invoice"
        constraints = [
            models.UniqueConstraint(
                fields=["invoice_number"],
                condition=~models.Q(invoice_number=""),
                name="uq_invoice_number",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="billing_inv_status_idx"),
            models.Index(fields=["patient", "created_at"], name="billing_inv_patient_idx"),
        ]

    def __str__(self) -> str:
        return self.invoice_number or f"Invoice({self.id})"


class InvoiceLine(UUIDModel):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="lines")

    test_code = models.SlugField(max_length=64, blank=True)
    test_name = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("1.00"))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    line_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    position = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "billing_invoice_line"


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Cash"
    CREDIT_CARD = "CREDIT_CARD", "Credit Card"
    DEBIT_CARD = "DEBIT_CARD", "Debit Card"
    UPI = "UPI", "UPI"
    BANK_TRANSFER = "BANK_TRANSFER", "Bank Transfer"
    CHEQUE = "CHEQUE", "Cheque"


class Payment(UUIDModel):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=32, choices=PaymentMethod.choices, default=PaymentMethod.CASH)

    reference = models.CharField(max_length=64, blank=True)
    paid_on = models.DateField(default=timezone.localdate, db_index=True)
    recorded_by_user_id = models.IntegerField(null=True, blank=True)

    # client retry token; at most one payment per token per invoice
    idempotency_key = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        db_table = "billing_payment"
        constraints = [
            models.UniqueConstraint(fields=["invoice", "idempotency_key"], name="uq_payment_invoice_idem_key"),
        ]
        indexes = [
            models.Index(fields=["method", "paid_on"], name="billing_pay_method_date_idx"),
        ]
