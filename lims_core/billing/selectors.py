# lims_core/billing/selectors.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from django.db.models import QuerySet

from lims_core.billing.models import Invoice, Payment
from lims_core.billing.records import PaymentRecord
from lims_core.store.orm import payment_record


def invoices_filtered(
    *,
    patient_id: UUID | None = None,
    order_id: UUID | None = None,
    status: str | None = None,
) -> QuerySet[Invoice]:
    qs = Invoice.objects.all().order_by("-created_at")

    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if order_id:
        qs = qs.filter(order_id=order_id)
    if status:
        qs = qs.filter(status=status)

    return qs


def payments_between(*, start: date, end: date, method: str | None = None) -> list[PaymentRecord]:
    qs = Payment.objects.filter(paid_on__gte=start, paid_on__lte=end)
    if method:
        qs = qs.filter(method=method)
    return [payment_record(p) for p in qs.order_by("paid_on", "created_at")]
