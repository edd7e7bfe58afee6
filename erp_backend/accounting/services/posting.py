# accounting/services/posting.py

"""
======================================================
PATH: accounting/services/posting.py
======================================================
POSTING ADAPTER

Map business events -> vendor ledger entries and call append_ledger_entry
(the store).

This module should remain a thin adapter:
- It DOES NOT do workflows (recorders / the inventory workflow do).
- It DOES decide entry_type, side, amount, reference and business date.
- It ALWAYS goes through ledger_service for immutability + idempotency.

Posting rules:
- purchase            -> debit  total_amount           ref = purchase.id
- payment             -> credit amount                 ref = payment.id
- purchase_return     -> credit total_cost             ref = inventory transaction id
- purchase_reversal   -> credit original debit         ref = purchase.id
- return_reversal     -> debit  original credit        ref = inventory transaction id

Replays:
- If the entry already exists with the same vendor and amounts, the existing
  entry is returned (benign retry, nothing is double-posted).
- Any other duplicate is a LedgerConflictError.
"""

from __future__ import annotations

import logging
from typing import Optional

from django.utils import timezone

from accounting.models import VendorLedgerEntry
from accounting.services.exceptions import DuplicateLedgerEntryError, LedgerConflictError
from accounting.services.ledger_service import append_ledger_entry, find_entry
from core.money import ZERO, money

logger = logging.getLogger(__name__)


def _post_idempotent(**kwargs) -> VendorLedgerEntry:
    try:
        return append_ledger_entry(**kwargs)
    except DuplicateLedgerEntryError as exc:
        existing = exc.existing
        same = (
            existing is not None
            and str(existing.vendor_id) == str(kwargs["vendor_id"])
            and money(existing.debit) == money(kwargs.get("debit", ZERO))
            and money(existing.credit) == money(kwargs.get("credit", ZERO))
        )
        if not same:
            raise LedgerConflictError(
                f"Conflicting ledger entry for {kwargs['entry_type']}:{kwargs['reference_id']}",
                details={"existing_entry_id": str(existing.id) if existing else None},
            ) from exc

        logger.info(
            "Ledger posting replayed; existing entry kept",
            extra={"entry_id": str(existing.id), "entry_type": existing.entry_type},
        )
        return existing


def post_purchase_to_ledger(*, purchase, performed_by=None) -> Optional[VendorLedgerEntry]:
    amount = money(purchase.total_amount)
    if amount <= ZERO:
        logger.info("Zero-value purchase; no ledger entry", extra={"purchase_id": str(purchase.id)})
        return None

    return _post_idempotent(
        vendor_id=purchase.vendor_id,
        entry_type=VendorLedgerEntry.PURCHASE,
        reference_id=purchase.id,
        reference_no=purchase.invoice_no,
        debit=amount,
        description=f"Purchase {purchase.invoice_no}",
        performed_by=performed_by or purchase.created_by,
        transaction_date=purchase.invoice_date,
    )


def post_vendor_payment_to_ledger(*, payment) -> VendorLedgerEntry:
    return _post_idempotent(
        vendor_id=payment.vendor_id,
        entry_type=VendorLedgerEntry.PAYMENT,
        reference_id=payment.id,
        reference_no=payment.payment_no,
        credit=money(payment.amount),
        description=f"Payment {payment.payment_no} ({payment.get_payment_method_display()})",
        performed_by=payment.created_by,
        transaction_date=payment.payment_date,
    )


def post_purchase_return_to_ledger(*, inventory_transaction, performed_by=None) -> Optional[VendorLedgerEntry]:
    amount = money(inventory_transaction.total_cost)
    if not inventory_transaction.vendor_id or amount <= ZERO:
        return None

    return _post_idempotent(
        vendor_id=inventory_transaction.vendor_id,
        entry_type=VendorLedgerEntry.PURCHASE_RETURN,
        reference_id=inventory_transaction.id,
        reference_no=inventory_transaction.invoice_no,
        credit=amount,
        description=f"Purchase return {inventory_transaction.invoice_no}",
        performed_by=performed_by,
        transaction_date=inventory_transaction.transaction_date,
    )


def post_purchase_reversal(*, purchase, performed_by=None, reason: str = "") -> Optional[VendorLedgerEntry]:
    original = find_entry(reference_id=purchase.id, entry_type=VendorLedgerEntry.PURCHASE)
    if original is None:
        return None

    return _post_idempotent(
        vendor_id=original.vendor_id,
        entry_type=VendorLedgerEntry.PURCHASE_REVERSAL,
        reference_id=purchase.id,
        reference_no=purchase.invoice_no,
        credit=original.debit,
        description=f"Reversal of purchase {purchase.invoice_no}: {reason}".strip().rstrip(":"),
        performed_by=performed_by,
        transaction_date=timezone.localdate(),
    )


def post_return_reversal(*, inventory_transaction, performed_by=None, reason: str = "") -> Optional[VendorLedgerEntry]:
    original = find_entry(
        reference_id=inventory_transaction.id,
        entry_type=VendorLedgerEntry.PURCHASE_RETURN,
    )
    if original is None:
        return None

    return _post_idempotent(
        vendor_id=original.vendor_id,
        entry_type=VendorLedgerEntry.RETURN_REVERSAL,
        reference_id=inventory_transaction.id,
        reference_no=inventory_transaction.invoice_no,
        debit=original.credit,
        description=f"Reversal of return {inventory_transaction.invoice_no}: {reason}".strip().rstrip(":"),
        performed_by=performed_by,
        transaction_date=timezone.localdate(),
    )
