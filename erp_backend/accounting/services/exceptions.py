# accounting/services/exceptions.py

"""
ACCOUNTING SERVICE ERRORS

Centralized domain errors for vendor ledger services.
"""

from __future__ import annotations

from core.exceptions import ConflictError, ServiceError


class AccountingServiceError(ServiceError):
    """Base exception for all accounting service failures."""


class LedgerEntryCreationError(AccountingServiceError):
    """Raised when a ledger entry cannot be created (bad amounts, bad type)."""

    kind = "ledger_error"


class IdempotencyError(AccountingServiceError, ConflictError):
    """Raised on duplicate or retried accounting events."""

    kind = "duplicate_ledger_entry"


class DuplicateLedgerEntryError(IdempotencyError):
    """An entry already exists for (reference_id, entry_type)."""

    def __init__(self, message: str, *, existing=None):
        super().__init__(
            message,
            details={"existing_entry_id": str(existing.id)} if existing is not None else None,
        )
        self.existing = existing


class LedgerConflictError(AccountingServiceError, ConflictError):
    """A replay carried different amounts than the entry already on file."""

    kind = "ledger_conflict"
