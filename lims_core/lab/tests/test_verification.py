# lims_core/lab/tests/test_verification.py
import uuid
from datetime import datetime, timezone

import pytest

from lims_core.common.exceptions import ValidationError
from lims_core.lab.models import ReviewAction, VerificationStatus
from lims_core.lab.records import AnalyteValue, ResultRecord
from lims_core.lab.verification import VerificationWorkflow

AT = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
NORMAL = (AnalyteValue("Hemoglobin", "13.5", "g/dL", "12-16"),)


def _result(status=VerificationStatus.ENTERED, analytes=NORMAL, **kw):
    return ResultRecord(
        id=uuid.uuid4(),
        order_id=uuid.uuid4(),
        test_name="CBC",
        verification_status=status,
        analytes=analytes,
        **kw,
    )


def test_reject_without_reason_is_refused():
    result = _result()
    with pytest.raises(ValidationError) as exc:
        VerificationWorkflow.transition(result, "reject", "", actor=9, at=AT)
    assert exc.value.reason == "ReasonRequired"
    assert result.verification_status == VerificationStatus.ENTERED


def test_reject_with_reason_writes_one_audit_entry():
    result = _result()
    updated, entry = VerificationWorkflow.transition(result, "reject", "  hemolyzed sample ", actor=9, at=AT)

    assert updated.verification_status == VerificationStatus.REJECTED
    assert updated.verification_notes == "hemolyzed sample"
    assert updated.verified_by == 9
    assert updated.verified_at == AT

    assert entry.result_id == result.id
    assert entry.action == ReviewAction.REJECT
    assert entry.previous_status == VerificationStatus.ENTERED
    assert entry.new_status == VerificationStatus.REJECTED
    assert entry.actor == 9
    assert entry.timestamp == AT
    assert entry.comment == "hemolyzed sample"


def test_approve_needs_no_notes():
    updated, entry = VerificationWorkflow.approve(_result(), actor=1, at=AT)
    assert updated.verification_status == VerificationStatus.VERIFIED
    assert entry.comment == ""


def test_clarification_needs_notes():
    with pytest.raises(ValidationError) as exc:
        VerificationWorkflow.request_clarification(_result(), "   ", at=AT)
    assert exc.value.reason == "ReasonRequired"

    updated, _ = VerificationWorkflow.request_clarification(_result(), "recheck units", at=AT)
    assert updated.verification_status == VerificationStatus.CLARIFICATION_REQUESTED


@pytest.mark.parametrize(
    "status",
    [VerificationStatus.VERIFIED, VerificationStatus.REJECTED, VerificationStatus.CLARIFICATION_REQUESTED],
)
@pytest.mark.parametrize("action", list(ReviewAction))
def test_only_entered_results_transition(status, action):
    with pytest.raises(ValidationError) as exc:
        VerificationWorkflow.transition(_result(status), action, "some reason", at=AT)
    assert exc.value.reason == "InvalidState"


def test_state_is_checked_before_notes():
    with pytest.raises(ValidationError) as exc:
        VerificationWorkflow.reject(_result(VerificationStatus.VERIFIED), "", at=AT)
    assert exc.value.reason == "InvalidState"


def test_unknown_action():
    with pytest.raises(ValidationError) as exc:
        VerificationWorkflow.transition(_result(), "escalate", "x", at=AT)
    assert exc.value.reason == "UnknownAction"


def test_metadata_is_copied_onto_entry():
    meta = {"auto_approved": True}
    _, entry = VerificationWorkflow.approve(_result(), "ok", at=AT, metadata=meta)
    meta["auto_approved"] = False
    assert entry.metadata == {"auto_approved": True}


@pytest.mark.parametrize(
    "result, expected",
    [
        (_result(), True),
        (_result(is_critical=True), False),
        (_result(analytes=(AnalyteValue("Glucose", "310", is_abnormal=True),)), False),
        (_result(analytes=()), False),
        (_result(VerificationStatus.VERIFIED), False),
    ],
)
def test_auto_approvable(result, expected):
    assert VerificationWorkflow.is_auto_approvable(result) is expected
