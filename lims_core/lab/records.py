# lims_core/lab/records.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from lims_core.lab.models import ReviewAction, VerificationStatus


@dataclass(frozen=True)
class AnalyteValue:
    name: str
    value: str = ""
    unit: str = ""
    reference_range: str = ""
    is_abnormal: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "reference_range": self.reference_range,
            "is_abnormal": self.is_abnormal,
        }


@dataclass(frozen=True)
class ResultRecord:
    id: UUID
    order_id: UUID
    test_name: str
    verification_status: VerificationStatus
    analytes: tuple[AnalyteValue, ...] = ()
    technician_notes: str = ""
    is_critical: bool = False
    verification_notes: str = ""
    verified_by: int | None = None
    verified_at: datetime | None = None
    created_at: datetime | None = field(default=None, compare=False)
    version: int = 1

    @property
    def has_abnormal_values(self) -> bool:
        return any(a.is_abnormal for a in self.analytes)


@dataclass(frozen=True)
class VerificationAuditEntry:
    id: UUID
    result_id: UUID
    action: ReviewAction
    previous_status: VerificationStatus
    new_status: VerificationStatus
    timestamp: datetime
    actor: int | None = None
    comment: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
