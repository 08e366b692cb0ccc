# lims_core/orders/authorization.py
"""
Which orders may receive new tests, and how.

`decide` is total over order statuses: anything outside the table (including
strings that are not statuses at all) gets the denied decision.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from django.core.exceptions import ImproperlyConfigured

from lims_core.orders.models import AdditionMode, OrderStatus


@dataclass(frozen=True)
class TestAdditionDecision:
    __test__ = False

    allowed: bool
    requires_approval: bool
    requires_new_sample: bool
    reason: str
    resulting_order_type: AdditionMode | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "requires_approval": self.requires_approval,
            "requires_new_sample": self.requires_new_sample,
            "reason": self.reason,
            "resulting_order_type": self.resulting_order_type.value if self.resulting_order_type else None,
        }


BEFORE_COLLECTION = TestAdditionDecision(
    allowed=True,
    requires_approval=False,
    requires_new_sample=False,
    reason="Tests can be added before sample collection",
    resulting_order_type=AdditionMode.MODIFY,
)
DURING_COLLECTION = TestAdditionDecision(
    allowed=True,
    requires_approval=True,
    requires_new_sample=False,
    reason="Limited tests can be added during collection",
    resulting_order_type=AdditionMode.ADDITIONAL,
)
AFTER_COLLECTION = TestAdditionDecision(
    allowed=True,
    requires_approval=True,
    requires_new_sample=True,
    reason="New tests require separate order and sample",
    resulting_order_type=AdditionMode.ADDITIONAL,
)
DENIED = TestAdditionDecision(
    allowed=False,
    requires_approval=False,
    requires_new_sample=False,
    reason="Cannot add tests to this order",
    resulting_order_type=None,
)

DECISION_TABLE: Mapping[OrderStatus, TestAdditionDecision] = MappingProxyType({
    OrderStatus.PENDING: BEFORE_COLLECTION,
    OrderStatus.CONFIRMED: BEFORE_COLLECTION,
    OrderStatus.SAMPLE_COLLECTION: DURING_COLLECTION,
    OrderStatus.PROCESSING: AFTER_COLLECTION,
    OrderStatus.COMPLETED: AFTER_COLLECTION,
    OrderStatus.CANCELLED: DENIED,
})


def _check_exhaustive(table: Mapping[OrderStatus, TestAdditionDecision]) -> None:
    missing = [s.value for s in OrderStatus if s not in table]
    if missing:
        raise ImproperlyConfigured(f"Test-addition table has no entry for: {', '.join(missing)}")


_check_exhaustive(DECISION_TABLE)


class TestAdditionAuthorizer:
    __test__ = False

    @staticmethod
    def decide(order_status) -> TestAdditionDecision:
        try:
            status = OrderStatus(order_status)
        except (ValueError, TypeError):
            return DENIED
        return DECISION_TABLE[status]


decide = TestAdditionAuthorizer.decide
