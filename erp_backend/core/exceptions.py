# core/exceptions.py

"""
Service error taxonomy.

Every error raised by a service carries:
- kind: machine-readable category the API layer returns verbatim
- status_code: HTTP status the API layer maps it to
- details: optional structured context (e.g. remaining returnable quantity)

Services raise; views catch ServiceError and hand it to core.api.error_response.
Because every multi-step service runs inside transaction.atomic, raising is
enough to undo partial work.
"""

from __future__ import annotations

from typing import Any, Optional


class ServiceError(Exception):
    kind = "error"
    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if kind:
            self.kind = kind
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "detail": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailed(ServiceError):
    """Bad input. Nothing was written."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class ConflictError(ServiceError):
    """Duplicate or racing write. Safe to retry."""

    kind = "conflict"
    status_code = 409


class IntegrityViolation(ServiceError):
    """Stock or cross-transaction rule would be broken. Rolled back."""

    kind = "integrity_error"
    status_code = 422


class AuthorizationError(ServiceError):
    kind = "authorization_error"
    status_code = 403
