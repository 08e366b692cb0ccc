# lims_core/orders/models.py
from decimal import Decimal

from django.db import models
from django.utils import timezone

from lims_core.common.models import UUIDModel, VersionedModel
from lims_core.patients.models import Patient


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    SAMPLE_COLLECTION = "sample_collection", "Sample Collection"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class OrderType(models.TextChoices):
    INITIAL = "initial", "Initial"
    ADDITIONAL = "additional", "Additional"
    FOLLOW_UP = "follow_up", "Follow Up"
    URGENT = "urgent", "Urgent"


class AdditionMode(models.TextChoices):
    """How approved tests land: appended in place, or on a new linked order."""
    MODIFY = "modify", "Modify Existing Order"
    ADDITIONAL = "additional", "Additional Linked Order"


class Order(VersionedModel):
    """
    Lab order. Created by order entry; this service only appends tests,
    spawns linked orders and locks.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="orders")

    # Orders sharing this id form one visit session. NULL => singleton session.
    visit_session_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    status = models.CharField(max_length=32, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True)
    order_type = models.CharField(max_length=16, choices=OrderType.choices, default=OrderType.INITIAL)
    order_date = models.DateField(default=timezone.localdate)

    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    can_add_tests = models.BooleanField(default=True)
    locked_at = models.DateTimeField(null=True, blank=True)

    parent_order = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        related_name="child_orders",
        null=True,
        blank=True,
    )
    addition_reason = models.TextField(blank=True)
    requires_new_sample = models.BooleanField(default=False)
    # client retry token for the add-tests call that spawned this order
    idempotency_key = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        db_table = "orders_order"
        constraints = [
            models.UniqueConstraint(fields=["parent_order", "idempotency_key"], name="uq_order_parent_idem_key"),
        ]
        indexes = [
            models.Index(fields=["patient", "order_date"], name="orders_patient_date_idx"),
            models.Index(fields=["visit_session_id", "created_at"], name="orders_session_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Order({self.id}, {self.status})"


class OrderItem(UUIDModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    test_code = models.SlugField(max_length=64)
    test_name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    position = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "orders_order_item"
        constraints = [
            models.UniqueConstraint(fields=["order", "test_code"], name="uq_order_item_test_code"),
        ]

    def __str__(self) -> str:
        return f"{self.test_code} @ {self.price}"
