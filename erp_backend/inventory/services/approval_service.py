# inventory/services/approval_service.py

"""
MAKER-CHECKER: approve / reject / void

approve (pending -> approved), atomic:
- privileged actor only
- purchase_return re-validated against the referenced purchase
  (still approved, quantities still returnable)
- stock moves (any negative pool aborts the whole unit, status stays pending)
- purchase_return posts its ledger credit

reject (pending -> rejected): no stock, no ledger.

void (pending | approved -> voided):
- pending: status change only
- approved: stock effects reversed, ledger reversal posted,
  linked Purchase marked cancelled
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from accounting.services.posting import (
    post_purchase_return_to_ledger,
    post_purchase_reversal,
    post_return_reversal,
)
from core.exceptions import IntegrityViolation, NotFoundError
from inventory.lifecycle import APPROVED, REJECTED, VOIDED, validate_transition
from inventory.models import InventoryTransaction
from inventory.services.exceptions import ApprovalPermissionError, InventoryTransactionError
from inventory.services.returns import OPEN_RETURN_STATUSES, assert_within_returnable
from inventory.services.stock_effects import apply_stock_effects, reverse_stock_effects
from permissions.roles import CAP_INVENTORY_APPROVE, CAP_INVENTORY_VOID, has_capability
from purchases.models import Vendor

logger = logging.getLogger(__name__)


def _require(actor, capability: str, action: str) -> None:
    if not has_capability(actor, capability):
        raise ApprovalPermissionError(
            f"Only an admin can {action} inventory transactions"
        )


def _lock_vendor(vendor_id) -> None:
    if vendor_id:
        Vendor.objects.select_for_update().get(id=vendor_id)


def _lock(transaction_id) -> InventoryTransaction:
    """
    Lock order, shared with the recorders: vendor row, transaction rows,
    then variant rows (inside change_stock).

    vendor_id never changes after creation, so it is safe to read it before
    the transaction row is locked.
    """
    try:
        vendor_id = (
            InventoryTransaction.objects.values_list("vendor_id", flat=True).get(id=transaction_id)
        )
        _lock_vendor(vendor_id)
        return InventoryTransaction.objects.select_for_update().get(id=transaction_id)
    except (InventoryTransaction.DoesNotExist, ValueError, DjangoValidationError) as exc:
        raise NotFoundError("Inventory transaction not found") from exc


def _min_reason_length() -> int:
    return int(getattr(settings, "INVENTORY_REASON_MIN_LENGTH", 5))


def _requested_quantities(txn: InventoryTransaction) -> dict[str, int]:
    requested: dict[str, int] = {}
    for item in txn.items.all():
        key = str(item.variant_id)
        requested[key] = requested.get(key, 0) + int(item.quantity)
    return requested


def apply_approval(txn: InventoryTransaction, *, approver) -> InventoryTransaction:
    """
    Move stock and post the ledger for a transaction being approved.

    Caller holds the row lock and has already validated the transition.
    """
    _lock_vendor(txn.vendor_id)

    if txn.transaction_type == InventoryTransaction.TYPE_PURCHASE_RETURN and txn.reference_transaction_id:
        reference = InventoryTransaction.objects.select_for_update().get(id=txn.reference_transaction_id)
        if reference.status != APPROVED:
            raise IntegrityViolation(
                f"Referenced purchase {reference.invoice_no} is {reference.status}; "
                "returns need an approved purchase",
                details={"reference_transaction_id": str(reference.id)},
            )
        assert_within_returnable(
            reference,
            _requested_quantities(txn),
            exclude_transaction_id=txn.id,
        )

    apply_stock_effects(txn, user=approver)

    txn.status = APPROVED
    txn.approved_by = approver
    txn.approval_date = timezone.now()
    txn.save()

    if txn.transaction_type == InventoryTransaction.TYPE_PURCHASE_RETURN:
        post_purchase_return_to_ledger(inventory_transaction=txn, performed_by=approver)

    logger.info(
        "Inventory transaction approved",
        extra={
            "transaction_id": str(txn.id),
            "invoice_no": txn.invoice_no,
            "transaction_type": txn.transaction_type,
            "approved_by": str(getattr(approver, "id", "")),
        },
    )
    return txn


@transaction.atomic
def approve_inventory_transaction(*, transaction_id, approver) -> InventoryTransaction:
    _require(approver, CAP_INVENTORY_APPROVE, "approve")

    txn = _lock(transaction_id)
    validate_transition(transaction=txn, target_status=APPROVED)

    return apply_approval(txn, approver=approver)


@transaction.atomic
def reject_inventory_transaction(*, transaction_id, approver, rejection_reason: str) -> InventoryTransaction:
    _require(approver, CAP_INVENTORY_APPROVE, "reject")

    rejection_reason = (rejection_reason or "").strip()
    if not rejection_reason:
        raise InventoryTransactionError("rejection_reason is required")

    txn = _lock(transaction_id)
    validate_transition(transaction=txn, target_status=REJECTED)

    txn.status = REJECTED
    txn.rejected_by = approver
    txn.rejected_at = timezone.now()
    txn.rejection_reason = rejection_reason
    txn.save()

    logger.info(
        "Inventory transaction rejected",
        extra={"transaction_id": str(txn.id), "invoice_no": txn.invoice_no},
    )
    return txn


def _reverse_approved(txn: InventoryTransaction, *, actor, reason: str) -> None:
    _lock_vendor(txn.vendor_id)

    if txn.transaction_type == InventoryTransaction.TYPE_PURCHASE:
        open_returns = txn.returns.filter(
            transaction_type=InventoryTransaction.TYPE_PURCHASE_RETURN,
            status__in=OPEN_RETURN_STATUSES,
        )
        if open_returns.exists():
            raise IntegrityViolation(
                f"Purchase {txn.invoice_no} has open returns; void them first",
                details={"return_ids": [str(r) for r in open_returns.values_list("id", flat=True)]},
            )

    reverse_stock_effects(txn, user=actor)

    if txn.transaction_type == InventoryTransaction.TYPE_PURCHASE and txn.purchase_id:
        purchase = txn.purchase
        post_purchase_reversal(purchase=purchase, performed_by=actor, reason=reason)
        purchase.status = purchase.STATUS_CANCELLED
        purchase.save(update_fields=["status"])

    elif txn.transaction_type == InventoryTransaction.TYPE_PURCHASE_RETURN:
        post_return_reversal(inventory_transaction=txn, performed_by=actor, reason=reason)


@transaction.atomic
def void_inventory_transaction(*, transaction_id, actor, reason: str) -> InventoryTransaction:
    _require(actor, CAP_INVENTORY_VOID, "void")

    reason = (reason or "").strip()
    min_len = _min_reason_length()
    if len(reason) < min_len:
        raise InventoryTransactionError(f"Void reason must be at least {min_len} characters")

    txn = _lock(transaction_id)
    validate_transition(transaction=txn, target_status=VOIDED)

    was_approved = txn.status == APPROVED
    if was_approved:
        _reverse_approved(txn, actor=actor, reason=reason)

    txn.status = VOIDED
    txn.voided_by = actor
    txn.voided_at = timezone.now()
    txn.void_reason = reason
    txn.save()

    logger.info(
        "Inventory transaction voided",
        extra={
            "transaction_id": str(txn.id),
            "invoice_no": txn.invoice_no,
            "stock_reversed": was_approved,
        },
    )
    return txn
