# lims_core/lab/verification.py
"""
Result review state machine.

    ENTERED --approve--> VERIFIED
    ENTERED --reject---> REJECTED                 (notes required)
    ENTERED --clarify--> CLARIFICATION_REQUESTED  (notes required)

Every transition yields exactly one audit entry. Nothing is written here;
the caller persists both records in one transaction.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from types import MappingProxyType
from typing import Any
from uuid import uuid4

from lims_core.common.exceptions import ValidationError
from lims_core.lab.models import ReviewAction, VerificationStatus
from lims_core.lab.records import ResultRecord, VerificationAuditEntry

TARGET_STATUS = MappingProxyType({
    ReviewAction.APPROVE: VerificationStatus.VERIFIED,
    ReviewAction.REJECT: VerificationStatus.REJECTED,
    ReviewAction.CLARIFY: VerificationStatus.CLARIFICATION_REQUESTED,
})

NOTES_REQUIRED = frozenset({ReviewAction.REJECT, ReviewAction.CLARIFY})


def parse_action(action) -> ReviewAction:
    try:
        return ReviewAction(action)
    except (ValueError, TypeError):
        raise ValidationError(
            "UnknownAction",
            f"Unknown review action {action!r}.",
            details={"allowed": [a.value for a in ReviewAction]},
        )


class VerificationWorkflow:
    @staticmethod
    def transition(
        result: ResultRecord,
        action,
        notes: str = "",
        *,
        actor: int | None = None,
        at: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[ResultRecord, VerificationAuditEntry]:
        action = parse_action(action)

        if result.verification_status != VerificationStatus.ENTERED:
            raise ValidationError(
                "InvalidState",
                f"Result is {result.verification_status.label}; only entered results can be reviewed.",
                details={"result_id": str(result.id), "status": result.verification_status.value},
            )

        comment = (notes or "").strip()
        if action in NOTES_REQUIRED and not comment:
            raise ValidationError(
                "ReasonRequired",
                f"A reason is required to {action.label.lower()}.",
                details={"action": action.value},
            )

        new_status = TARGET_STATUS[action]
        updated = replace(
            result,
            verification_status=new_status,
            verification_notes=comment,
            verified_by=actor,
            verified_at=at,
        )
        entry = VerificationAuditEntry(
            id=uuid4(),
            result_id=result.id,
            action=action,
            previous_status=result.verification_status,
            new_status=new_status,
            timestamp=at,
            actor=actor,
            comment=comment,
            metadata=dict(metadata or {}),
        )
        return updated, entry

    @staticmethod
    def approve(result: ResultRecord, notes: str = "", *, actor=None, at: datetime, metadata=None):
        return VerificationWorkflow.transition(result, ReviewAction.APPROVE, notes, actor=actor, at=at, metadata=metadata)

    @staticmethod
    def reject(result: ResultRecord, notes: str, *, actor=None, at: datetime):
        return VerificationWorkflow.transition(result, ReviewAction.REJECT, notes, actor=actor, at=at)

    @staticmethod
    def request_clarification(result: ResultRecord, notes: str, *, actor=None, at: datetime):
        return VerificationWorkflow.transition(result, ReviewAction.CLARIFY, notes, actor=actor, at=at)

    @staticmethod
    def is_auto_approvable(result: ResultRecord) -> bool:
        """Entered, not critical, has values and none flagged abnormal."""
        return (
            result.verification_status == VerificationStatus.ENTERED
            and not result.is_critical
            and bool(result.analytes)
            and not result.has_abnormal_values
        )
