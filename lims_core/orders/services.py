# lims_core/orders/services.py
from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from django.utils import timezone

from lims_core.audit.services import AuditService
from lims_core.common.exceptions import AuthorizationDenied
from lims_core.orders.authorization import TestAdditionAuthorizer, TestAdditionDecision
from lims_core.orders.models import AdditionMode
from lims_core.orders.records import OrderRecord, append_items, coerce_line_items, lock, spawn_additional
from lims_core.orders.visits import SessionAggregator, VisitSession
from lims_core.store import LabStore, get_store

logger = logging.getLogger(__name__)

LOCKED_REDIRECT_REASON = "Order is locked; tests added as a linked order"


class OrderService:
    """
    Write-model operations for test addition and locking.
    Each write: lock the order row, decide, persist, log, in one transaction.
    """

    @staticmethod
    def decide_test_addition(*, order_id: UUID, store: LabStore | None = None) -> TestAdditionDecision:
        store = store or get_store()
        order = store.load_order(order_id)
        return TestAdditionAuthorizer.decide(order.status)

    @staticmethod
    def add_tests(
        *,
        order_id: UUID,
        items: Iterable,
        reason: str = "",
        approved_by: int | None = None,
        actor_user_id: int | None = None,
        idempotency_key: str | None = None,
        store: LabStore | None = None,
    ) -> OrderRecord:
        """
        Adds tests to an order, or to a new linked order when the order's
        status (or its lock) forbids changing it in place.

        Returns the order that received the tests.
        A retry carrying the same idempotency key returns the linked order
        created by the first call instead of spawning another.
        """
        store = store or get_store()
        new_items = coerce_line_items(items)
        reason = (reason or "").strip()

        with store.atomic():
            order = store.load_order(order_id, for_update=True)

            if idempotency_key:
                for child in store.load_child_orders(order.id):
                    if child.idempotency_key == idempotency_key:
                        logger.info("Add-tests replay on order %s (key=%s)", order.id, idempotency_key)
                        return child

            decision = TestAdditionAuthorizer.decide(order.status)

            if not decision.allowed:
                logger.warning("Test addition denied for order %s (status=%s)", order.id, order.status)
                raise AuthorizationDenied(
                    "OrderStatusForbidsAddition",
                    decision.reason,
                    details={"order_id": str(order.id), "order_status": order.status.value},
                )

            if decision.requires_approval and approved_by is None:
                logger.warning("Test addition on order %s needs approval", order.id)
                raise AuthorizationDenied(
                    "ApprovalRequired",
                    f"{decision.reason}; an approver is required.",
                    details={"order_id": str(order.id), "order_status": order.status.value},
                )

            codes = [i.test_code for i in new_items]
            added_amount = str(sum(i.price for i in new_items))

            if decision.resulting_order_type == AdditionMode.MODIFY and order.accepts_items_in_place:
                saved = store.save_order(append_items(order, new_items))
                AuditService.log(
                    event_code="order.tests_added",
                    entity_type="Order",
                    entity_id=saved.id,
                    actor_user_id=actor_user_id,
                    metadata={
                        "test_codes": codes,
                        "added_amount": added_amount,
                        "new_total": str(saved.total_amount),
                        "reason": reason,
                    },
                )
                logger.info("Added %d test(s) to order %s", len(codes), saved.id)
                return saved

            if not reason:
                reason = decision.reason if decision.resulting_order_type == AdditionMode.ADDITIONAL else LOCKED_REDIRECT_REASON

            child = store.create_order(
                spawn_additional(
                    order,
                    new_items,
                    reason=reason,
                    requires_new_sample=decision.requires_new_sample,
                    order_date=timezone.localdate(),
                    idempotency_key=idempotency_key or None,
                )
            )
            AuditService.log(
                event_code="order.additional_created",
                entity_type="Order",
                entity_id=child.id,
                actor_user_id=actor_user_id,
                metadata={
                    "parent_order_id": str(order.id),
                    "test_codes": codes,
                    "total_amount": str(child.total_amount),
                    "requires_new_sample": child.requires_new_sample,
                    "approved_by": approved_by,
                    "reason": reason,
                },
            )
            logger.info("Created additional order %s for parent %s (%d test(s))", child.id, order.id, len(codes))
            return child

    @staticmethod
    def lock_order(
        *,
        order_id: UUID,
        reason: str = "",
        actor_user_id: int | None = None,
        store: LabStore | None = None,
    ) -> OrderRecord:
        store = store or get_store()

        with store.atomic():
            order = store.load_order(order_id, for_update=True)
            if order.is_locked:
                return order

            saved = store.save_order(lock(order, at=timezone.now()))
            AuditService.log(
                event_code="order.locked",
                entity_type="Order",
                entity_id=saved.id,
                actor_user_id=actor_user_id,
                metadata={"reason": (reason or "").strip()},
            )
            logger.info("Locked order %s", saved.id)
            return saved

    @staticmethod
    def get_order_chain(*, parent_order_id: UUID, store: LabStore | None = None) -> list[OrderRecord]:
        store = store or get_store()
        parent = store.load_order(parent_order_id)
        return store.load_child_orders(parent.id)

    @staticmethod
    def get_session_summary(*, session_id: str, store: LabStore | None = None) -> VisitSession:
        store = store or get_store()
        orders = store.load_orders_by_session(session_id)
        return SessionAggregator.aggregate(orders)
