# lims_core/lab/selectors.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from lims_core.lab.models import LabResult, ReviewAction, VerificationAuditEntry, VerificationStatus
from lims_core.lab import records
from lims_core.store.orm import audit_entry_record


@dataclass(frozen=True)
class ReviewerPerformance:
    actor_user_id: int
    approved: int
    rejected: int
    clarification_requested: int
    total: int


def results_queue_qs() -> QuerySet[LabResult]:
    # critical results first, then oldest first
    return LabResult.objects.all().order_by("-is_critical", "created_at", "id")


def auto_approval_candidate_ids() -> list[UUID]:
    return list(
        LabResult.objects.filter(verification_status=VerificationStatus.ENTERED, is_critical=False)
        .order_by("created_at", "id")
        .values_list("id", flat=True)
    )


def audit_entries_for(*, result_id: UUID) -> list[records.VerificationAuditEntry]:
    qs = VerificationAuditEntry.objects.filter(result_id=result_id).order_by("-timestamp", "-created_at")
    return [audit_entry_record(e) for e in qs]


def reviewer_performance(*, start: date, end: date) -> list[ReviewerPerformance]:
    rows = (
        VerificationAuditEntry.objects.filter(
            timestamp__date__gte=start,
            timestamp__date__lte=end,
            actor_user_id__isnull=False,
        )
        .values("actor_user_id")
        .annotate(
            approved=Count("id", filter=Q(action=ReviewAction.APPROVE)),
            rejected=Count("id", filter=Q(action=ReviewAction.REJECT)),
            clarification_requested=Count("id", filter=Q(action=ReviewAction.CLARIFY)),
            total=Count("id"),
        )
        .order_by("-total", "actor_user_id")
    )
    return [ReviewerPerformance(**row) for row in rows]
