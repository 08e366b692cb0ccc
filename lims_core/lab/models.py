# lims_core/lab/models.py
import uuid

from django.core.exceptions import ValidationError
from django.db import models

from lims_core.common.models import VersionedModel
from lims_core.orders.models import Order


class VerificationStatus(models.TextChoices):
    ENTERED = "ENTERED", "Entered"
    VERIFIED = "VERIFIED", "Verified"
    REJECTED = "REJECTED", "Rejected"
    CLARIFICATION_REQUESTED = "CLARIFICATION_REQUESTED", "Clarification Requested"


class ReviewAction(models.TextChoices):
    APPROVE = "approve", "Approve"
    REJECT = "reject", "Reject"
    CLARIFY = "clarify", "Request Clarification"


class LabResult(VersionedModel):
    """
    One entered result for one test on an order.

    `analytes` is a list of {"name", "value", "unit", "reference_range", "is_abnormal"}.
    Review acts on the whole record, never on single analytes.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="results")
    test_name = models.CharField(max_length=255)
    analytes = models.JSONField(default=list, blank=True)

    verification_status = models.CharField(
        max_length=32,
        choices=VerificationStatus.choices,
        default=VerificationStatus.ENTERED,
        db_index=True,
    )
    technician_notes = models.TextField(blank=True)
    is_critical = models.BooleanField(default=False)

    verification_notes = models.TextField(blank=True)
    verified_by_user_id = models.IntegerField(null=True, blank=True)
    verified_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "lab_result"
        indexes = [
            models.Index(fields=["verification_status", "created_at"], name="lab_result_queue_idx"),
            models.Index(fields=["order"], name="lab_result_order_idx"),
        ]

    def __str__(self) -> str:
        return f"LabResult({self.test_name}, {self.verification_status})"


class VerificationAuditEntry(models.Model):
    """
    Immutable review history for a result.
    Written once per transition; never updated or deleted.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    result = models.ForeignKey(LabResult, on_delete=models.PROTECT, related_name="audit_entries")

    action = models.CharField(max_length=16, choices=ReviewAction.choices)
    previous_status = models.CharField(max_length=32, choices=VerificationStatus.choices)
    new_status = models.CharField(max_length=32, choices=VerificationStatus.choices)

    actor_user_id = models.IntegerField(null=True, blank=True, db_index=True)
    timestamp = models.DateTimeField(db_index=True)
    comment = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "lab_verification_audit"
        indexes = [
            models.Index(fields=["result", "timestamp"], name="lab_audit_result_ts_idx"),
        ]

    def __str__(self):
        return f"{self.action} {self.previous_status}->{self.new_status} @ {self.timestamp}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("VerificationAuditEntry is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("VerificationAuditEntry is immutable and cannot be deleted.")
