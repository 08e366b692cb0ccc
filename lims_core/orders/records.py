# lims_core/orders/records.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID, uuid4

from lims_core.common.exceptions import ValidationError
from lims_core.common.money import ZERO, has_at_most_two_places, quantize, to_decimal
from lims_core.orders.models import OrderStatus, OrderType

SINGLE_SESSION_PREFIX = "single-"


@dataclass(frozen=True)
class OrderLineItem:
    test_code: str
    test_name: str
    price: Decimal


@dataclass(frozen=True)
class OrderRecord:
    id: UUID
    patient_id: UUID
    status: OrderStatus
    order_type: OrderType
    line_items: tuple[OrderLineItem, ...] = ()
    total_amount: Decimal = ZERO
    can_add_tests: bool = True
    locked_at: datetime | None = None
    visit_session_id: str | None = None
    parent_order_id: UUID | None = None
    addition_reason: str = ""
    requires_new_sample: bool = False
    order_date: date | None = None
    idempotency_key: str | None = None
    created_at: datetime | None = field(default=None, compare=False)
    version: int = 1

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None

    @property
    def accepts_items_in_place(self) -> bool:
        # locked_at wins over can_add_tests
        return not self.is_locked and self.can_add_tests

    @property
    def test_count(self) -> int:
        return len(self.line_items)

    @property
    def test_codes(self) -> tuple[str, ...]:
        return tuple(i.test_code for i in self.line_items)

    @property
    def session_key(self) -> str:
        return self.visit_session_id or f"{SINGLE_SESSION_PREFIX}{self.id}"


def coerce_line_items(items: Iterable) -> tuple[OrderLineItem, ...]:
    """
    Accepts OrderLineItem instances or dicts with test_code / test_name / price.
    Rejects empty lists and codes repeated within the request.
    """
    out: list[OrderLineItem] = []
    seen: set[str] = set()

    for raw in items or ():
        if isinstance(raw, OrderLineItem):
            item = raw
        else:
            code = str(raw.get("test_code") or "").strip()
            if not code:
                raise ValidationError("MissingTestCode", "Every test needs a test_code.")
            price = to_decimal(raw.get("price", "0"), "price")
            item = OrderLineItem(
                test_code=code,
                test_name=str(raw.get("test_name") or code).strip(),
                price=price,
            )

        if item.price < 0:
            raise ValidationError("NegativePrice", "price must be >= 0.", details={"test_code": item.test_code})
        if not has_at_most_two_places(item.price):
            raise ValidationError("AmountPrecision", "price has more than 2 decimal places.",
                                  details={"test_code": item.test_code})
        if item.test_code in seen:
            raise ValidationError("DuplicateTest", f"Test {item.test_code} listed twice.",
                                  details={"test_code": item.test_code})
        seen.add(item.test_code)
        out.append(replace(item, price=quantize(item.price)))

    if not out:
        raise ValidationError("NoTests", "At least one test is required.")
    return tuple(out)


def append_items(order: OrderRecord, items: tuple[OrderLineItem, ...]) -> OrderRecord:
    existing = set(order.test_codes)
    for item in items:
        if item.test_code in existing:
            raise ValidationError(
                "DuplicateTest",
                f"Test {item.test_code} is already on this order.",
                details={"test_code": item.test_code, "order_id": str(order.id)},
            )

    added = sum((i.price for i in items), ZERO)
    return replace(
        order,
        line_items=order.line_items + items,
        total_amount=quantize(order.total_amount + added),
    )


def spawn_additional(
    parent: OrderRecord,
    items: tuple[OrderLineItem, ...],
    *,
    reason: str,
    requires_new_sample: bool,
    order_date: date,
    idempotency_key: str | None = None,
) -> OrderRecord:
    """New pending order linked to `parent`, in the parent's visit session."""
    return OrderRecord(
        id=uuid4(),
        patient_id=parent.patient_id,
        status=OrderStatus.PENDING,
        order_type=OrderType.ADDITIONAL,
        line_items=items,
        total_amount=quantize(sum((i.price for i in items), ZERO)),
        visit_session_id=parent.session_key,
        parent_order_id=parent.id,
        addition_reason=reason,
        requires_new_sample=requires_new_sample,
        order_date=order_date,
        idempotency_key=idempotency_key,
    )


def lock(order: OrderRecord, *, at: datetime) -> OrderRecord:
    if order.is_locked:
        return order
    return replace(order, can_add_tests=False, locked_at=at)
