from __future__ import annotations

from typing import Dict, List, Optional


class ProgressionError(Exception):
    """Base class for errors surfaced by the progression engine."""

    code = "progression_error"
    status = 500

    def __init__(self, message: str = "", *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(ProgressionError):
    """Raised when an attempt or payload is malformed; nothing was written."""

    code = "validation_error"
    status = 400

    def __init__(
        self,
        message: str = "Invalid request payload.",
        *,
        fields: Optional[Dict[str, List[str]]] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code)
        self.fields = fields or {}


class NotFound(ProgressionError):
    """Unknown question, quest or reward (or one owned by another learner)."""

    code = "not_found"
    status = 404


class ConflictError(ProgressionError):
    """Concurrent creation of the same attempt record could not be reconciled."""

    code = "conflict"
    status = 409


class ExternalServiceError(ProgressionError):
    """The text-generation collaborator failed or returned unusable data."""

    code = "external_service_error"
    status = 502


class InvariantViolation(ProgressionError):
    """A ledger or graph invariant would be broken; the operation was refused."""

    code = "invariant_violation"
    status = 500
