# lims_core/lab/services.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable
from uuid import UUID

from django.conf import settings
from django.utils import timezone

from lims_core.common.exceptions import ValidationError
from lims_core.lab.records import ResultRecord, VerificationAuditEntry
from lims_core.lab.selectors import (
    ReviewerPerformance,
    audit_entries_for,
    auto_approval_candidate_ids,
    reviewer_performance,
)
from lims_core.lab.verification import VerificationWorkflow
from lims_core.store import LabStore, get_store

logger = logging.getLogger(__name__)

DEFAULT_AUTO_APPROVE_NOTE = "Auto-approved: Normal range, no flags"


class VerificationService:
    """
    Result review. Every transition locks the result row, persists the new
    state and its audit entry together, then commits.
    """

    @staticmethod
    def _review_locked(
        store: LabStore,
        result_id: UUID,
        action,
        notes: str,
        actor_user_id: int | None,
        metadata: dict[str, Any] | None = None,
    ) -> ResultRecord:
        result = store.load_result(result_id, for_update=True)
        try:
            updated, entry = VerificationWorkflow.transition(
                result,
                action,
                notes,
                actor=actor_user_id,
                at=timezone.now(),
                metadata=metadata,
            )
        except ValidationError as exc:
            logger.warning("Review of result %s refused: %s", result.id, exc)
            raise

        saved = store.save_result(updated)
        store.append_audit_entry(entry)
        logger.info(
            "Result %s %s -> %s by %s",
            saved.id, entry.previous_status.value, entry.new_status.value, actor_user_id,
        )
        return saved

    @staticmethod
    def review_result(
        *,
        result_id: UUID,
        action,
        notes: str = "",
        actor_user_id: int | None = None,
        store: LabStore | None = None,
    ) -> ResultRecord:
        store = store or get_store()
        with store.atomic():
            return VerificationService._review_locked(store, result_id, action, notes, actor_user_id)

    @staticmethod
    def bulk_review(
        *,
        result_ids: Iterable[UUID],
        action,
        notes: str = "",
        actor_user_id: int | None = None,
        store: LabStore | None = None,
    ) -> list[ResultRecord]:
        """All-or-nothing: one refused result rolls back the whole batch."""
        store = store or get_store()
        ids = list(dict.fromkeys(result_ids))
        if not ids:
            raise ValidationError("NoResults", "Select at least one result.")

        with store.atomic():
            reviewed = [
                VerificationService._review_locked(store, rid, action, notes, actor_user_id)
                for rid in ids
            ]
        logger.info("Bulk %s of %d result(s) by %s", action, len(reviewed), actor_user_id)
        return reviewed

    @staticmethod
    def auto_approve_normal(
        *,
        actor_user_id: int | None = None,
        store: LabStore | None = None,
    ) -> list[ResultRecord]:
        """Approves every entered, non-critical result with no abnormal analyte."""
        store = store or get_store()
        note = getattr(settings, "LIMS_AUTO_APPROVE_NOTE", DEFAULT_AUTO_APPROVE_NOTE)
        approved: list[ResultRecord] = []

        with store.atomic():
            for rid in auto_approval_candidate_ids():
                try:
                    result = store.load_result(rid, for_update=True)
                except ValidationError as exc:
                    logger.warning("Skipping result %s in auto-approval: %s", rid, exc)
                    continue

                if not VerificationWorkflow.is_auto_approvable(result):
                    continue

                updated, entry = VerificationWorkflow.approve(
                    result,
                    note,
                    actor=actor_user_id,
                    at=timezone.now(),
                    metadata={"auto_approved": True},
                )
                approved.append(store.save_result(updated))
                store.append_audit_entry(entry)

        logger.info("Auto-approved %d result(s)", len(approved))
        return approved

    @staticmethod
    def verification_history(*, result_id: UUID, store: LabStore | None = None) -> list[VerificationAuditEntry]:
        store = store or get_store()
        result = store.load_result(result_id)
        return audit_entries_for(result_id=result.id)

    @staticmethod
    def reviewer_performance(*, start: date, end: date) -> list[ReviewerPerformance]:
        if end < start:
            raise ValidationError("InvalidDateRange", "end must not be before start.")
        return reviewer_performance(start=start, end=end)
