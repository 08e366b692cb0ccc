# lims_core/billing/reports.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from lims_core.billing.models import PaymentMethod
from lims_core.billing.records import PaymentRecord
from lims_core.common.exceptions import ValidationError
from lims_core.common.money import ZERO, quantize, to_decimal

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class MethodCollection:
    method: PaymentMethod
    amount: Decimal
    count: int
    share_percent: Decimal

    @property
    def label(self) -> str:
        return str(self.method.label)


@dataclass(frozen=True)
class PaymentSummary:
    start: date
    end: date
    total_collected: Decimal
    payment_count: int
    by_method: tuple[MethodCollection, ...]


@dataclass(frozen=True)
class CashReconciliation:
    on_date: date
    expected_amount: Decimal
    counted_amount: Decimal
    difference: Decimal
    difference_percent: Decimal
    reconciled: bool


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole == ZERO:
        return ZERO
    return quantize(part / whole * HUNDRED)


def summarize_payments(payments: Iterable[PaymentRecord], *, start: date, end: date) -> PaymentSummary:
    """Collections grouped by method, largest first."""
    if end < start:
        raise ValidationError("InvalidDateRange", "end must not be before start.")

    amounts: dict[PaymentMethod, Decimal] = {}
    counts: dict[PaymentMethod, int] = {}
    for p in payments:
        amounts[p.method] = amounts.get(p.method, ZERO) + p.amount
        counts[p.method] = counts.get(p.method, 0) + 1

    total = quantize(sum(amounts.values(), ZERO))
    rows = sorted(
        (
            MethodCollection(method=m, amount=quantize(a), count=counts[m], share_percent=_percent(a, total))
            for m, a in amounts.items()
        ),
        key=lambda r: (-r.amount, r.method.value),
    )
    return PaymentSummary(
        start=start,
        end=end,
        total_collected=total,
        payment_count=sum(counts.values()),
        by_method=tuple(rows),
    )


def reconcile_cash(
    payments: Iterable[PaymentRecord],
    *,
    on_date: date,
    counted_amount,
    tolerance: Decimal,
) -> CashReconciliation:
    """
    Compares the cash counted in the drawer with cash payments recorded on `on_date`.
    `difference` is counted minus expected; reconciled when |difference| < tolerance.
    """
    counted = to_decimal(counted_amount, "counted_amount")
    if counted < 0:
        raise ValidationError("NegativeAmount", "counted_amount must be >= 0.")

    expected = quantize(sum(
        (p.amount for p in payments if p.method == PaymentMethod.CASH and p.paid_on == on_date),
        ZERO,
    ))
    difference = quantize(counted - expected)

    return CashReconciliation(
        on_date=on_date,
        expected_amount=expected,
        counted_amount=quantize(counted),
        difference=difference,
        difference_percent=_percent(abs(difference), expected),
        reconciled=abs(difference) < tolerance,
    )
