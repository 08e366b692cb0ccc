# lims_core/audit/models.py
import uuid

from django.db import models


class AuditEvent(models.Model):
    """
    Activity log for orders and billing (test additions, locks, payments).
    Result review history lives in lab.VerificationAuditEntry.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "order.tests_added"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "Order"
    entity_id = models.UUIDField(db_index=True)

    actor_user_id = models.IntegerField(null=True, blank=True, db_index=True)

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.event_code} {self.entity_type}:{self.entity_id}"
