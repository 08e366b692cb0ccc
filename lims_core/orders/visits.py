# lims_core/orders/visits.py
"""
Visit sessions: every order sharing a visit id (or, for orders without one,
the order alone plus anything chained to it) forms one billable visit.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from django.db import models

from lims_core.common.exceptions import NotFoundError, ValidationError
from lims_core.common.money import ZERO, quantize
from lims_core.orders.models import OrderStatus
from lims_core.orders.records import OrderRecord


class SessionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


@dataclass(frozen=True)
class VisitSession:
    session_id: str
    patient_id: UUID
    orders: tuple[OrderRecord, ...]
    total_amount: Decimal
    total_tests: int
    status: SessionStatus
    started_on: date | None = None

    @property
    def order_ids(self) -> tuple[UUID, ...]:
        return tuple(o.id for o in self.orders)


def session_key(order: OrderRecord) -> str:
    return order.session_key


class SessionAggregator:
    @staticmethod
    def derive_status(statuses: Iterable[OrderStatus]) -> SessionStatus:
        parsed = []
        for s in statuses:
            try:
                parsed.append(OrderStatus(s))
            except ValueError:
                raise ValidationError(
                    "UnknownEnumValue",
                    f"Order status {s!r} is not recognized.",
                    details={"field": "status", "value": s},
                )
        statuses = parsed
        if any(s == OrderStatus.CANCELLED for s in statuses):
            return SessionStatus.CANCELLED
        if statuses and all(s == OrderStatus.COMPLETED for s in statuses):
            return SessionStatus.COMPLETED
        return SessionStatus.ACTIVE

    @staticmethod
    def aggregate(orders: Iterable[OrderRecord]) -> VisitSession:
        orders = list(orders)
        if not orders:
            raise NotFoundError("EmptySession", "No orders in this visit session.")

        patients = {o.patient_id for o in orders}
        if len(patients) > 1:
            raise ValidationError(
                "MixedPatients",
                "Orders in one visit session must belong to one patient.",
                details={"patient_ids": sorted(str(p) for p in patients)},
            )

        keys = {o.session_key for o in orders}
        if len(keys) > 1:
            raise ValidationError(
                "MixedSessions",
                "Orders belong to different visit sessions.",
                details={"sessions": sorted(keys)},
            )

        ordered = tuple(sorted(orders, key=lambda o: (o.order_date or date.min, str(o.id))))
        dates = [o.order_date for o in ordered if o.order_date is not None]

        return VisitSession(
            session_id=keys.pop(),
            patient_id=ordered[0].patient_id,
            orders=ordered,
            total_amount=quantize(sum((o.total_amount for o in ordered), ZERO)),
            total_tests=sum(o.test_count for o in ordered),
            status=SessionAggregator.derive_status(o.status for o in ordered),
            started_on=min(dates) if dates else None,
        )

