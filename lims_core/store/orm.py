# lims_core/store/orm.py
from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import replace
from uuid import UUID

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from lims_core.billing.models import Invoice, InvoiceLine, InvoiceStatus, Payment, PaymentMethod
from lims_core.billing.records import InvoiceLineRecord, InvoiceRecord, PaymentRecord
from lims_core.common.exceptions import ConcurrencyConflict, NotFoundError, PersistenceError, ValidationError
from lims_core.lab import models as lab_models
from lims_core.lab.models import LabResult, ReviewAction, VerificationStatus
from lims_core.lab.records import AnalyteValue, ResultRecord, VerificationAuditEntry
from lims_core.orders.models import Order, OrderItem, OrderStatus, OrderType
from lims_core.orders.records import SINGLE_SESSION_PREFIX, OrderLineItem, OrderRecord
from lims_core.store.base import LabStore

logger = logging.getLogger(__name__)

INVOICE_NUMBER_RE = re.compile(r"INV-(\d{6})$")


@contextmanager
def _db_errors(what: str):
    try:
        yield
    except IntegrityError as exc:
        raise ConcurrencyConflict(
            "IntegrityConflict",
            f"Could not {what}: conflicts with stored data.",
            details={"error": str(exc)},
        )
    except DatabaseError as exc:
        logger.error("Database error while trying to %s: %s", what, exc)
        raise PersistenceError("StoreUnavailable", f"Could not {what}.")


def _uuid(value, what: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        raise NotFoundError(f"{what}NotFound", f"{what} {value} not found.")


def _enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            "UnknownEnumValue",
            f"Stored {field} {value!r} is not recognized.",
            details={"field": field, "value": value},
        )


def _raise_stale(model, pk: UUID, what: str):
    if model.objects.filter(id=pk).exists():
        raise ConcurrencyConflict(
            f"Stale{what}",
            f"{what} {pk} was modified by another request. Reload and retry.",
            details={"id": str(pk)},
        )
    raise NotFoundError(f"{what}NotFound", f"{what} {pk} not found.", details={"id": str(pk)})


# -------------------------------------------------------------------
# Row -> record
# -------------------------------------------------------------------

def order_record(obj: Order) -> OrderRecord:
    items = sorted(obj.items.all(), key=lambda i: (i.position, i.test_code))
    return OrderRecord(
        id=obj.id,
        patient_id=obj.patient_id,
        status=_enum(OrderStatus, obj.status, "order status"),
        order_type=_enum(OrderType, obj.order_type, "order type"),
        line_items=tuple(OrderLineItem(test_code=i.test_code, test_name=i.test_name, price=i.price) for i in items),
        total_amount=obj.total_amount,
        can_add_tests=obj.can_add_tests,
        locked_at=obj.locked_at,
        visit_session_id=obj.visit_session_id or None,
        parent_order_id=obj.parent_order_id,
        addition_reason=obj.addition_reason,
        requires_new_sample=obj.requires_new_sample,
        order_date=obj.order_date,
        idempotency_key=obj.idempotency_key,
        created_at=obj.created_at,
        version=obj.version,
    )


def payment_record(obj: Payment) -> PaymentRecord:
    return PaymentRecord(
        id=obj.id,
        invoice_id=obj.invoice_id,
        amount=obj.amount,
        method=_enum(PaymentMethod, obj.method, "payment method"),
        paid_on=obj.paid_on,
        reference=obj.reference,
        recorded_by=obj.recorded_by_user_id,
        idempotency_key=obj.idempotency_key,
        created_at=obj.created_at,
    )


def invoice_record(obj: Invoice) -> InvoiceRecord:
    lines = sorted(obj.lines.all(), key=lambda l: (l.position, l.created_at))
    payments = sorted(obj.payments.all(), key=lambda p: (p.created_at, str(p.id)))
    return InvoiceRecord(
        id=obj.id,
        patient_id=obj.patient_id,
        order_id=obj.order_id,
        status=_enum(InvoiceStatus, obj.status, "invoice status"),
        lines=tuple(
            InvoiceLineRecord(
                id=l.id,
                test_name=l.test_name,
                unit_price=l.unit_price,
                quantity=l.quantity,
                line_total=l.line_total,
                test_code=l.test_code,
            )
            for l in lines
        ),
        payments=tuple(payment_record(p) for p in payments),
        discount=obj.discount,
        tax_rate=obj.tax_rate,
        subtotal=obj.subtotal,
        tax_amount=obj.tax_amount,
        total=obj.total,
        currency=obj.currency,
        invoice_number=obj.invoice_number,
        finalized_at=obj.finalized_at,
        paid_at=obj.paid_at,
        created_at=obj.created_at,
        version=obj.version,
    )


def _analytes(raw, result_id) -> tuple[AnalyteValue, ...]:
    if not isinstance(raw, list):
        raise ValidationError("MalformedAnalytes", "Stored analytes must be a list.", details={"result_id": str(result_id)})

    out = []
    for a in raw:
        if not isinstance(a, dict) or not a.get("name"):
            raise ValidationError(
                "MalformedAnalytes",
                "Every stored analyte needs a name.",
                details={"result_id": str(result_id)},
            )
        value = a.get("value")
        out.append(
            AnalyteValue(
                name=str(a["name"]),
                value="" if value is None else str(value),
                unit=str(a.get("unit") or ""),
                reference_range=str(a.get("reference_range") or ""),
                is_abnormal=bool(a.get("is_abnormal", False)),
            )
        )
    return tuple(out)


def result_record(obj: LabResult) -> ResultRecord:
    return ResultRecord(
        id=obj.id,
        order_id=obj.order_id,
        test_name=obj.test_name,
        verification_status=_enum(VerificationStatus, obj.verification_status, "verification status"),
        analytes=_analytes(obj.analytes, obj.id),
        technician_notes=obj.technician_notes,
        is_critical=obj.is_critical,
        verification_notes=obj.verification_notes,
        verified_by=obj.verified_by_user_id,
        verified_at=obj.verified_at,
        created_at=obj.created_at,
        version=obj.version,
    )


def audit_entry_record(obj: lab_models.VerificationAuditEntry) -> VerificationAuditEntry:
    return VerificationAuditEntry(
        id=obj.id,
        result_id=obj.result_id,
        action=_enum(ReviewAction, obj.action, "review action"),
        previous_status=_enum(VerificationStatus, obj.previous_status, "verification status"),
        new_status=_enum(VerificationStatus, obj.new_status, "verification status"),
        timestamp=obj.timestamp,
        actor=obj.actor_user_id,
        comment=obj.comment,
        metadata=dict(obj.metadata or {}),
    )


# -------------------------------------------------------------------
# Store
# -------------------------------------------------------------------

class DjangoLabStore(LabStore):
    """
    LabStore over the Django ORM.
    `for_update=True` must be used inside `atomic()`; it maps to SELECT ... FOR UPDATE.
    """

    def atomic(self):
        return transaction.atomic()

    # ----------------------------
    # Orders
    # ----------------------------
    def load_order(self, order_id, *, for_update: bool = False) -> OrderRecord:
        oid = _uuid(order_id, "Order")
        qs = Order.objects.all()
        if for_update:
            qs = qs.select_for_update()

        with _db_errors("load order"):
            try:
                obj = qs.prefetch_related("items").get(id=oid)
            except Order.DoesNotExist:
                raise NotFoundError("OrderNotFound", f"Order {oid} not found.", details={"order_id": str(oid)})
            return order_record(obj)

    def load_orders_by_session(self, session_id: str) -> list[OrderRecord]:
        q = Q(visit_session_id=session_id)
        if session_id.startswith(SINGLE_SESSION_PREFIX):
            try:
                root_id = UUID(session_id[len(SINGLE_SESSION_PREFIX):])
            except ValueError:
                root_id = None
            if root_id is not None:
                q |= Q(id=root_id, visit_session_id__isnull=True)

        with _db_errors("load visit session"):
            qs = Order.objects.filter(q).prefetch_related("items").order_by("order_date", "created_at", "id")
            return [order_record(o) for o in qs]

    def load_child_orders(self, parent_order_id) -> list[OrderRecord]:
        pid = _uuid(parent_order_id, "Order")
        with _db_errors("load child orders"):
            qs = Order.objects.filter(parent_order_id=pid).prefetch_related("items").order_by("created_at", "id")
            return [order_record(o) for o in qs]

    def create_order(self, order: OrderRecord) -> OrderRecord:
        with _db_errors("create order"), transaction.atomic():
            obj = Order.objects.create(
                id=order.id,
                patient_id=order.patient_id,
                visit_session_id=order.visit_session_id,
                status=order.status,
                order_type=order.order_type,
                order_date=order.order_date or timezone.localdate(),
                total_amount=order.total_amount,
                can_add_tests=order.can_add_tests,
                locked_at=order.locked_at,
                parent_order_id=order.parent_order_id,
                addition_reason=order.addition_reason,
                requires_new_sample=order.requires_new_sample,
                idempotency_key=order.idempotency_key,
                version=1,
            )
            OrderItem.objects.bulk_create([
                OrderItem(order=obj, test_code=i.test_code, test_name=i.test_name, price=i.price, position=pos)
                for pos, i in enumerate(order.line_items)
            ])
        return replace(order, version=1, order_date=obj.order_date, created_at=obj.created_at)

    def save_order(self, order: OrderRecord) -> OrderRecord:
        with _db_errors("save order"), transaction.atomic():
            updated = Order.objects.filter(id=order.id, version=order.version).update(
                status=order.status,
                visit_session_id=order.visit_session_id,
                total_amount=order.total_amount,
                can_add_tests=order.can_add_tests,
                locked_at=order.locked_at,
                addition_reason=order.addition_reason,
                requires_new_sample=order.requires_new_sample,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
            if not updated:
                _raise_stale(Order, order.id, "Order")

            # items are append-only
            stored = set(OrderItem.objects.filter(order_id=order.id).values_list("test_code", flat=True))
            OrderItem.objects.bulk_create([
                OrderItem(order_id=order.id, test_code=i.test_code, test_name=i.test_name, price=i.price, position=pos)
                for pos, i in enumerate(order.line_items)
                if i.test_code not in stored
            ])
        return replace(order, version=order.version + 1)

    # ----------------------------
    # Billing
    # ----------------------------
    def load_invoice(self, invoice_id, *, for_update: bool = False) -> InvoiceRecord:
        iid = _uuid(invoice_id, "Invoice")
        qs = Invoice.objects.all()
        if for_update:
            qs = qs.select_for_update()

        with _db_errors("load invoice"):
            try:
                obj = qs.prefetch_related("lines", "payments").get(id=iid)
            except Invoice.DoesNotExist:
                raise NotFoundError("InvoiceNotFound", f"Invoice {iid} not found.", details={"invoice_id": str(iid)})
            return invoice_record(obj)

    def _sync_lines(self, invoice: InvoiceRecord) -> None:
        stored = set(InvoiceLine.objects.filter(invoice_id=invoice.id).values_list("id", flat=True))
        InvoiceLine.objects.bulk_create([
            InvoiceLine(
                id=l.id,
                invoice_id=invoice.id,
                test_code=l.test_code,
                test_name=l.test_name,
                quantity=l.quantity,
                unit_price=l.unit_price,
                line_total=l.line_total,
                position=pos,
            )
            for pos, l in enumerate(invoice.lines)
            if l.id not in stored
        ])

    def create_invoice(self, invoice: InvoiceRecord) -> InvoiceRecord:
        with _db_errors("create invoice"), transaction.atomic():
            obj = Invoice.objects.create(
                id=invoice.id,
                patient_id=invoice.patient_id,
                order_id=invoice.order_id,
                invoice_number=invoice.invoice_number,
                status=invoice.status,
                currency=invoice.currency,
                subtotal=invoice.subtotal,
                discount=invoice.discount,
                tax_rate=invoice.tax_rate,
                tax_amount=invoice.tax_amount,
                total=invoice.total,
                amount_paid=invoice.amount_paid,
                balance_due=invoice.balance_due,
                finalized_at=invoice.finalized_at,
                paid_at=invoice.paid_at,
                version=1,
            )
            self._sync_lines(invoice)
        return replace(invoice, version=1, created_at=obj.created_at)

    def save_invoice(self, invoice: InvoiceRecord) -> InvoiceRecord:
        with _db_errors("save invoice"), transaction.atomic():
            updated = Invoice.objects.filter(id=invoice.id, version=invoice.version).update(
                invoice_number=invoice.invoice_number,
                status=invoice.status,
                subtotal=invoice.subtotal,
                discount=invoice.discount,
                tax_rate=invoice.tax_rate,
                tax_amount=invoice.tax_amount,
                total=invoice.total,
                amount_paid=invoice.amount_paid,
                balance_due=invoice.balance_due,
                finalized_at=invoice.finalized_at,
                paid_at=invoice.paid_at,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
            if not updated:
                _raise_stale(Invoice, invoice.id, "Invoice")
            self._sync_lines(invoice)
        return replace(invoice, version=invoice.version + 1)

    def save_payment(self, payment: PaymentRecord) -> PaymentRecord:
        try:
            with transaction.atomic():
                obj = Payment.objects.create(
                    id=payment.id,
                    invoice_id=payment.invoice_id,
                    amount=payment.amount,
                    method=payment.method,
                    reference=payment.reference,
                    paid_on=payment.paid_on,
                    recorded_by_user_id=payment.recorded_by,
                    idempotency_key=payment.idempotency_key,
                )
        except IntegrityError:
            raise ConcurrencyConflict(
                "DuplicatePayment",
                "A payment with this idempotency key is already recorded.",
                details={"invoice_id": str(payment.invoice_id), "idempotency_key": payment.idempotency_key},
            )
        except DatabaseError as exc:
            logger.error("Database error while trying to save payment: %s", exc)
            raise PersistenceError("StoreUnavailable", "Could not save payment.")
        return replace(payment, created_at=obj.created_at)

    def next_invoice_number(self) -> str:
        with _db_errors("allocate invoice number"):
            latest = (
                Invoice.objects.select_for_update()
                .exclude(invoice_number="")
                .order_by("-invoice_number")
                .first()
            )

        if not latest or not latest.invoice_number:
            return "INV-000001"

        m = INVOICE_NUMBER_RE.match(latest.invoice_number.strip())
        if not m:
            return f"INV-{timezone.now().strftime('%y%m%d%H%M%S')}"

        return f"INV-{int(m.group(1)) + 1:06d}"

    # ----------------------------
    # Verification
    # ----------------------------
    def load_result(self, result_id, *, for_update: bool = False) -> ResultRecord:
        rid = _uuid(result_id, "Result")
        qs = LabResult.objects.all()
        if for_update:
            qs = qs.select_for_update()

        with _db_errors("load result"):
            try:
                obj = qs.get(id=rid)
            except LabResult.DoesNotExist:
                raise NotFoundError("ResultNotFound", f"Result {rid} not found.", details={"result_id": str(rid)})
        return result_record(obj)

    def save_result(self, result: ResultRecord) -> ResultRecord:
        with _db_errors("save result"):
            updated = LabResult.objects.filter(id=result.id, version=result.version).update(
                verification_status=result.verification_status,
                verification_notes=result.verification_notes,
                verified_by_user_id=result.verified_by,
                verified_at=result.verified_at,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
            if not updated:
                _raise_stale(LabResult, result.id, "Result")
        return replace(result, version=result.version + 1)

    def append_audit_entry(self, entry: VerificationAuditEntry) -> VerificationAuditEntry:
        with _db_errors("append audit entry"):
            lab_models.VerificationAuditEntry.objects.create(
                id=entry.id,
                result_id=entry.result_id,
                action=entry.action,
                previous_status=entry.previous_status,
                new_status=entry.new_status,
                actor_user_id=entry.actor,
                timestamp=entry.timestamp,
                comment=entry.comment,
                metadata=entry.metadata,
            )
        return entry
