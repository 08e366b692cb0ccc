# lims_core/lab/tests/test_verification_services.py
from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from lims_core.common.exceptions import NotFoundError, ValidationError
from lims_core.lab.models import LabResult, VerificationAuditEntry, VerificationStatus
from lims_core.lab.services import VerificationService

pytestmark = pytest.mark.django_db

ABNORMAL = [{"name": "Glucose", "value": "310", "unit": "mg/dL", "reference_range": "70-140", "is_abnormal": True}]


def test_review_persists_status_and_audit_entry(make_result):
    row = make_result()

    out = VerificationService.review_result(result_id=row.id, action="approve", actor_user_id=4)

    assert out.verification_status == VerificationStatus.VERIFIED
    assert out.version == 2
    row.refresh_from_db()
    assert row.verification_status == VerificationStatus.VERIFIED
    assert row.verified_by_user_id == 4
    assert row.verified_at is not None

    entry = VerificationAuditEntry.objects.get(result=row)
    assert (entry.previous_status, entry.new_status, entry.actor_user_id) == ("ENTERED", "VERIFIED", 4)


def test_refused_review_writes_nothing(make_result):
    row = make_result()

    with pytest.raises(ValidationError) as exc:
        VerificationService.review_result(result_id=row.id, action="reject", notes="", actor_user_id=4)

    assert exc.value.reason == "ReasonRequired"
    row.refresh_from_db()
    assert row.verification_status == VerificationStatus.ENTERED
    assert not VerificationAuditEntry.objects.exists()


def test_second_review_is_invalid_state(make_result):
    row = make_result()
    VerificationService.review_result(result_id=row.id, action="reject", notes="clotted", actor_user_id=4)

    with pytest.raises(ValidationError) as exc:
        VerificationService.review_result(result_id=row.id, action="approve", actor_user_id=4)
    assert exc.value.reason == "InvalidState"
    assert VerificationAuditEntry.objects.filter(result=row).count() == 1


def test_bulk_review_is_all_or_nothing(make_result):
    a, b = make_result(), make_result(test_name="LFT")
    VerificationService.review_result(result_id=b.id, action="approve", actor_user_id=1)

    with pytest.raises(ValidationError) as exc:
        VerificationService.bulk_review(result_ids=[a.id, b.id], action="approve", actor_user_id=2)

    assert exc.value.reason == "InvalidState"
    a.refresh_from_db()
    assert a.verification_status == VerificationStatus.ENTERED
    assert VerificationAuditEntry.objects.count() == 1


def test_bulk_review_reviews_each_result_once(make_result):
    a, b = make_result(), make_result(test_name="LFT")

    out = VerificationService.bulk_review(
        result_ids=[a.id, b.id, a.id], action="clarify", notes="confirm patient id", actor_user_id=2,
    )

    assert [r.id for r in out] == [a.id, b.id]
    assert set(LabResult.objects.values_list("verification_status", flat=True)) == {"CLARIFICATION_REQUESTED"}


def test_bulk_review_needs_ids(db):
    with pytest.raises(ValidationError) as exc:
        VerificationService.bulk_review(result_ids=[], action="approve")
    assert exc.value.reason == "NoResults"


def test_auto_approve_skips_critical_and_abnormal(make_result):
    normal = make_result()
    critical = make_result(is_critical=True, test_name="K+")
    abnormal = make_result(analytes=ABNORMAL, test_name="FBS")
    empty = make_result(analytes=[], test_name="ESR")

    approved = VerificationService.auto_approve_normal(actor_user_id=3)

    assert [r.id for r in approved] == [normal.id]
    assert approved[0].verification_notes == "Auto-approved: Normal range, no flags"
    for row in (critical, abnormal, empty):
        row.refresh_from_db()
        assert row.verification_status == VerificationStatus.ENTERED

    entry = VerificationAuditEntry.objects.get(result=normal)
    assert entry.metadata == {"auto_approved": True}


def test_auto_approve_skips_unreadable_rows(make_result):
    good = make_result()
    bad = make_result(analytes={"not": "a list"}, test_name="BAD")

    approved = VerificationService.auto_approve_normal(actor_user_id=3)

    assert [r.id for r in approved] == [good.id]
    bad.refresh_from_db()
    assert bad.verification_status == VerificationStatus.ENTERED


def test_history_is_newest_first(make_result):
    a = make_result()
    VerificationService.review_result(result_id=a.id, action="clarify", notes="which tube?", actor_user_id=1)

    history = VerificationService.verification_history(result_id=a.id)

    assert len(history) == 1
    assert history[0].new_status == VerificationStatus.CLARIFICATION_REQUESTED
    assert history[0].comment == "which tube?"


def test_history_of_missing_result(db):
    with pytest.raises(NotFoundError) as exc:
        VerificationService.verification_history(result_id="00000000-0000-0000-0000-000000000000")
    assert exc.value.reason == "ResultNotFound"


def test_reviewer_performance(make_result):
    r1, r2, r3 = make_result(), make_result(test_name="LFT"), make_result(test_name="KFT")
    VerificationService.review_result(result_id=r1.id, action="approve", actor_user_id=1)
    VerificationService.review_result(result_id=r2.id, action="reject", notes="lipemic", actor_user_id=1)
    VerificationService.review_result(result_id=r3.id, action="approve", actor_user_id=2)
    today = timezone.localdate()

    rows = VerificationService.reviewer_performance(start=today, end=today)

    assert [(r.actor_user_id, r.approved, r.rejected, r.total) for r in rows] == [(1, 1, 1, 2), (2, 1, 0, 1)]

    with pytest.raises(ValidationError) as exc:
        VerificationService.reviewer_performance(start=today, end=today - timedelta(days=1))
    assert exc.value.reason == "InvalidDateRange"


def test_immutable_audit_rows(make_result):
    row = make_result()
    VerificationService.review_result(result_id=row.id, action="approve", actor_user_id=1)
    entry = VerificationAuditEntry.objects.get(result=row)

    with pytest.raises(DjangoValidationError):
        entry.delete()
    entry.comment = "edited"
    with pytest.raises(DjangoValidationError):
        entry.save()
