# accounting/services/ledger_service.py

"""
======================================================
PATH: accounting/services/ledger_service.py
======================================================
VENDOR LEDGER STORE

This module is the ONLY place allowed to:
- Create VendorLedgerEntry rows
- Enforce "one entry per (reference_id, entry_type)"
- Compute an entry's running_balance on append
- Hand the entry to the balance projector in the same transaction

Everything else (purchases, payments, returns, voids, backfills) must pass
through here, usually via accounting.services.posting.

Concurrency:
- The vendor row is locked (select_for_update) before the duplicate check,
  so appends for one vendor are serialized and appends for different vendors
  run in parallel.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from django.db import transaction
from django.utils import timezone

from accounting.models import VendorLedgerEntry
from accounting.services.balance_projector import project_entry
from accounting.services.exceptions import (
    DuplicateLedgerEntryError,
    LedgerEntryCreationError,
)
from core.money import ZERO, money
from purchases.models import Vendor

logger = logging.getLogger(__name__)

MIN_AMOUNT = money("0.01")


def _amount(value, field: str):
    try:
        return money(value)
    except ValueError as exc:
        raise LedgerEntryCreationError(f"Invalid {field}: {value!r}") from exc


def find_entry(*, reference_id, entry_type: str) -> Optional[VendorLedgerEntry]:
    """Earliest entry for a reference (there may be several before dedup)."""
    return (
        VendorLedgerEntry.objects.filter(reference_id=reference_id, entry_type=entry_type)
        .order_by("created_at", "id")
        .first()
    )


@transaction.atomic
def append_ledger_entry(
    *,
    vendor_id,
    entry_type: str,
    reference_id,
    reference_no: str = "",
    debit=ZERO,
    credit=ZERO,
    description: str = "",
    performed_by=None,
    transaction_date: Optional[date] = None,
) -> VendorLedgerEntry:
    if entry_type not in {t for t, _ in VendorLedgerEntry.ENTRY_TYPES}:
        raise LedgerEntryCreationError(f"Unknown ledger entry_type: {entry_type!r}")

    if not reference_id:
        raise LedgerEntryCreationError("reference_id is required")

    debit = _amount(debit, "debit")
    credit = _amount(credit, "credit")

    if debit < 0 or credit < 0:
        raise LedgerEntryCreationError("Debit or credit cannot be negative")
    if debit > 0 and credit > 0:
        raise LedgerEntryCreationError("A ledger entry cannot have both debit and credit")
    if debit == 0 and credit == 0:
        raise LedgerEntryCreationError("A ledger entry must have either debit or credit")
    if max(debit, credit) < MIN_AMOUNT:
        raise LedgerEntryCreationError(f"Amount too small: {max(debit, credit)}")

    if entry_type in VendorLedgerEntry.DEBIT_TYPES and debit == 0:
        raise LedgerEntryCreationError(f"{entry_type} must be posted as a debit")
    if entry_type in VendorLedgerEntry.CREDIT_TYPES and credit == 0:
        raise LedgerEntryCreationError(f"{entry_type} must be posted as a credit")

    try:
        vendor = Vendor.objects.select_for_update().get(pk=vendor_id)
    except Vendor.DoesNotExist:
        raise LedgerEntryCreationError(f"Vendor {vendor_id} not found")

    existing = find_entry(reference_id=reference_id, entry_type=entry_type)
    if existing is not None:
        raise DuplicateLedgerEntryError(
            f"Ledger entry already exists for {entry_type}:{reference_id}",
            existing=existing,
        )

    entry = VendorLedgerEntry.objects.create(
        vendor=vendor,
        entry_type=entry_type,
        reference_id=reference_id,
        reference_no=(reference_no or "")[:64],
        debit=debit,
        credit=credit,
        running_balance=money(vendor.balance) + debit - credit,
        description=(description or "").strip()[:255],
        performed_by=performed_by,
        transaction_date=transaction_date or timezone.localdate(),
    )

    project_entry(entry, vendor=vendor)

    logger.info(
        "Vendor ledger entry appended",
        extra={
            "vendor_id": str(vendor.id),
            "entry_id": str(entry.id),
            "entry_type": entry_type,
            "reference_id": str(reference_id),
            "debit": str(debit),
            "credit": str(credit),
            "running_balance": str(entry.running_balance),
        },
    )
    return entry
