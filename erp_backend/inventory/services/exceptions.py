# inventory/services/exceptions.py

"""
INVENTORY WORKFLOW ERRORS
"""

from __future__ import annotations

from core.exceptions import AuthorizationError, IntegrityViolation, ValidationFailed


class InventoryTransactionError(ValidationFailed):
    """Bad inventory transaction input. Nothing was written."""


class ReturnQuantityExceededError(IntegrityViolation):
    kind = "return_quantity_exceeded"


class ApprovalPermissionError(AuthorizationError):
    """Actor lacks the privilege for approve / reject / void."""
