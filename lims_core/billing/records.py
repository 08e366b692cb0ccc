# lims_core/billing/records.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from lims_core.billing.models import InvoiceStatus, PaymentMethod
from lims_core.common.money import ZERO, quantize


@dataclass(frozen=True)
class InvoiceLineRecord:
    id: UUID
    test_name: str
    unit_price: Decimal
    quantity: Decimal
    line_total: Decimal
    test_code: str = ""


@dataclass(frozen=True)
class PaymentRecord:
    id: UUID
    invoice_id: UUID
    amount: Decimal
    method: PaymentMethod
    paid_on: date
    reference: str = ""
    recorded_by: int | None = None
    idempotency_key: str | None = None
    created_at: datetime | None = field(default=None, compare=False)


@dataclass(frozen=True)
class InvoiceRecord:
    id: UUID
    patient_id: UUID
    status: InvoiceStatus
    order_id: UUID | None = None
    lines: tuple[InvoiceLineRecord, ...] = ()
    payments: tuple[PaymentRecord, ...] = ()
    discount: Decimal = ZERO
    tax_rate: Decimal = ZERO
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    currency: str = "INR"
    invoice_number: str = ""
    finalized_at: datetime | None = None
    paid_at: datetime | None = None
    created_at: datetime | None = field(default=None, compare=False)
    version: int = 1

    @property
    def amount_paid(self) -> Decimal:
        return quantize(sum((p.amount for p in self.payments), ZERO))

    @property
    def balance_due(self) -> Decimal:
        return quantize(self.total - self.amount_paid)

    def payment_for_key(self, idempotency_key: str | None) -> PaymentRecord | None:
        if not idempotency_key:
            return None
        for p in self.payments:
            if p.idempotency_key == idempotency_key:
                return p
        return None
