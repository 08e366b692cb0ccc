# lims_core/common/exceptions.py
"""
Domain error taxonomy for the rules-and-ledger core.

Every error carries a machine-readable ``reason`` (e.g. "AmountExceedsRemaining")
and optional ``details``. They subclass DRF's APIException so that a service
call made from a view flows straight into the global error envelope.
"""
from __future__ import annotations

from typing import Any

from rest_framework import status
from rest_framework.exceptions import APIException


class DomainError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."
    default_code = "error"

    def __init__(self, reason: str, message: str | None = None, *, details: dict[str, Any] | None = None):
        self.reason = reason
        self.details = dict(details or {})
        super().__init__(detail=message or reason, code=self.default_code)

    def __str__(self) -> str:
        return f"{self.reason}: {self.detail}" if str(self.detail) != self.reason else self.reason

    def as_details(self) -> dict[str, Any]:
        return {"reason": self.reason, **self.details}


class ValidationError(DomainError):
    """Malformed or out-of-range input."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"


class AuthorizationDenied(DomainError):
    """A lifecycle rule forbids the requested action."""
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "authorization_denied"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class ConcurrencyConflict(DomainError):
    """State changed between decide and write (stale version)."""
    status_code = status.HTTP_409_CONFLICT
    default_code = "concurrency_conflict"


class PersistenceError(DomainError):
    """The store is unreachable or a write failed. Never retried here."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "persistence_error"
