# lims_core/store/base.py
"""
Persistence boundary for the order, billing and verification services.

Implementations take and return frozen records, never ORM instances.
Writes are optimistic: a record whose `version` no longer matches the stored
row raises ConcurrencyConflict. Backend failures raise PersistenceError.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ContextManager
from uuid import UUID

from lims_core.billing.records import InvoiceRecord, PaymentRecord
from lims_core.lab.records import ResultRecord, VerificationAuditEntry
from lims_core.orders.records import OrderRecord


class LabStore(ABC):
    @abstractmethod
    def atomic(self) -> ContextManager:
        ...

    # orders
    @abstractmethod
    def load_order(self, order_id: UUID, *, for_update: bool = False) -> OrderRecord:
        ...

    @abstractmethod
    def load_orders_by_session(self, session_id: str) -> list[OrderRecord]:
        ...

    @abstractmethod
    def load_child_orders(self, parent_order_id: UUID) -> list[OrderRecord]:
        ...

    @abstractmethod
    def create_order(self, order: OrderRecord) -> OrderRecord:
        ...

    @abstractmethod
    def save_order(self, order: OrderRecord) -> OrderRecord:
        ...

    # billing
    @abstractmethod
    def load_invoice(self, invoice_id: UUID, *, for_update: bool = False) -> InvoiceRecord:
        ...

    @abstractmethod
    def create_invoice(self, invoice: InvoiceRecord) -> InvoiceRecord:
        ...

    @abstractmethod
    def save_invoice(self, invoice: InvoiceRecord) -> InvoiceRecord:
        ...

    @abstractmethod
    def save_payment(self, payment: PaymentRecord) -> PaymentRecord:
        ...

    @abstractmethod
    def next_invoice_number(self) -> str:
        ...

    # verification
    @abstractmethod
    def load_result(self, result_id: UUID, *, for_update: bool = False) -> ResultRecord:
        ...

    @abstractmethod
    def save_result(self, result: ResultRecord) -> ResultRecord:
        ...

    @abstractmethod
    def append_audit_entry(self, entry: VerificationAuditEntry) -> VerificationAuditEntry:
        ...
