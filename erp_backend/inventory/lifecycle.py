"""
INVENTORY TRANSACTION LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed status transitions
for InventoryTransaction entities.

DESIGN PRINCIPLES:
- No database writes
- No stock mutation
- No side effects
- Single source of truth

    creation --(purchase, or privileged actor)--> approved
    creation --(otherwise)----------------------> pending
    pending  --> approved | rejected | voided
    approved --> voided
    rejected, voided: terminal
"""

from core.exceptions import ConflictError
from inventory.models import InventoryTransaction

# ============================================================
# DOMAIN ERRORS
# ============================================================


class InvalidTransitionError(ConflictError):
    kind = "invalid_transition"


# ============================================================
# STATE DEFINITIONS
# ============================================================

PENDING = InventoryTransaction.STATUS_PENDING
APPROVED = InventoryTransaction.STATUS_APPROVED
REJECTED = InventoryTransaction.STATUS_REJECTED
VOIDED = InventoryTransaction.STATUS_VOIDED

TERMINAL_STATES = {
    REJECTED,
    VOIDED,
}

ALLOWED_TRANSITIONS = {
    PENDING: {APPROVED, REJECTED, VOIDED},
    APPROVED: {VOIDED},
    REJECTED: set(),
    VOIDED: set(),
}

# every status must appear in the table, terminal ones with no exits
if set(ALLOWED_TRANSITIONS) != {s for s, _ in InventoryTransaction.STATUSES}:
    raise RuntimeError("Inventory transition table does not cover every status")
if any(ALLOWED_TRANSITIONS[s] for s in TERMINAL_STATES):
    raise RuntimeError("Terminal inventory statuses cannot have outgoing transitions")

AUTO_APPROVED_TYPES = {
    InventoryTransaction.TYPE_PURCHASE,
}


# ============================================================
# DOMAIN RULES
# ============================================================


def initial_status(*, transaction_type: str, privileged: bool) -> str:
    if transaction_type in AUTO_APPROVED_TYPES or privileged:
        return APPROVED
    return PENDING


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, transaction: InventoryTransaction, target_status: str):
    if not can_transition(
        from_status=transaction.status,
        to_status=target_status,
    ):
        raise InvalidTransitionError(
            f"Inventory transaction {transaction.invoice_no} cannot transition from "
            f"'{transaction.status}' to '{target_status}'",
            details={"from_status": transaction.status, "to_status": target_status},
        )
