# accounting/services/balance_projector.py

"""
======================================================
PATH: accounting/services/balance_projector.py
======================================================
VENDOR BALANCE PROJECTOR

Owns the denormalized financial snapshot on Vendor:
balance, total_purchases, total_payments, total_returns, counts and
last activity dates.

Two entry points:
- project_entry(entry): incremental O(1) update after one append
  (called by ledger_service inside the append transaction)
- reconcile_vendor(vendor_id): full chronological replay that rewrites every
  entry's running_balance and resets the vendor aggregates. Idempotent.

Both apply entries through VendorTotals.apply so the incremental and the full
path can never disagree.

Chronological order: (transaction_date ASC, created_at ASC, id ASC).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from django.db import transaction

from accounting.models import VendorLedgerEntry
from core.money import ZERO, money
from purchases.models import Vendor

logger = logging.getLogger(__name__)

CHRONOLOGICAL_ORDER = ("transaction_date", "created_at", "id")

AGGREGATE_FIELDS = [
    "balance",
    "total_purchases",
    "total_payments",
    "total_returns",
    "purchase_count",
    "payment_count",
    "return_count",
    "last_purchase_date",
    "last_payment_date",
]


def _later(current: Optional[date], candidate: Optional[date]) -> Optional[date]:
    if current is None:
        return candidate
    if candidate is None:
        return current
    return max(current, candidate)


@dataclass
class VendorTotals:
    balance: Decimal = ZERO
    total_purchases: Decimal = ZERO
    total_payments: Decimal = ZERO
    total_returns: Decimal = ZERO
    purchase_count: int = 0
    payment_count: int = 0
    return_count: int = 0
    last_purchase_date: Optional[date] = None
    last_payment_date: Optional[date] = None

    @classmethod
    def from_vendor(cls, vendor: Vendor) -> "VendorTotals":
        return cls(**{name: getattr(vendor, name) for name in AGGREGATE_FIELDS})

    def apply(self, entry: VendorLedgerEntry) -> None:
        debit = money(entry.debit)
        credit = money(entry.credit)

        self.balance = money(self.balance) + debit - credit

        if entry.entry_type == VendorLedgerEntry.PURCHASE:
            self.total_purchases = money(self.total_purchases) + debit
            self.purchase_count += 1
            self.last_purchase_date = _later(self.last_purchase_date, entry.transaction_date)
        elif entry.entry_type == VendorLedgerEntry.PAYMENT:
            self.total_payments = money(self.total_payments) + credit
            self.payment_count += 1
            self.last_payment_date = _later(self.last_payment_date, entry.transaction_date)
        elif entry.entry_type == VendorLedgerEntry.PURCHASE_RETURN:
            self.total_returns = money(self.total_returns) + credit
            self.return_count += 1
        elif entry.entry_type == VendorLedgerEntry.PURCHASE_REVERSAL:
            self.total_purchases = money(self.total_purchases) - credit
            self.purchase_count -= 1
        elif entry.entry_type == VendorLedgerEntry.RETURN_REVERSAL:
            self.total_returns = money(self.total_returns) - debit
            self.return_count -= 1

    def as_dict(self) -> dict:
        return {name: getattr(self, name) for name in AGGREGATE_FIELDS}

    def write_to(self, vendor: Vendor) -> None:
        for name in AGGREGATE_FIELDS:
            setattr(vendor, name, getattr(self, name))
        vendor.save(update_fields=[*AGGREGATE_FIELDS, "updated_at"])


@dataclass
class ReconcileResult:
    vendor_id: str
    entry_count: int
    entries_corrected: int
    aggregates_changed: bool
    balance_before: Decimal
    balance_after: Decimal
    corrected_entry_ids: list = field(default_factory=list)


def project_entry(entry: VendorLedgerEntry, *, vendor: Optional[Vendor] = None) -> Vendor:
    """
    Apply one freshly appended entry to the vendor aggregates.

    `vendor` should be the instance the caller already locked; when omitted the
    row is locked here.
    """
    if vendor is None:
        vendor = Vendor.objects.select_for_update().get(pk=entry.vendor_id)

    totals = VendorTotals.from_vendor(vendor)
    totals.apply(entry)
    totals.write_to(vendor)

    logger.debug(
        "Vendor aggregates projected",
        extra={"vendor_id": str(vendor.id), "entry_id": str(entry.id), "balance": str(vendor.balance)},
    )
    return vendor


def replay_entries(entries) -> tuple[VendorTotals, list[tuple[VendorLedgerEntry, Decimal]]]:
    """
    Replay entries (already in chronological order) from zero.

    Returns the final totals and, per entry, the running_balance it should carry.
    """
    totals = VendorTotals()
    expected = []
    for entry in entries:
        totals.apply(entry)
        expected.append((entry, totals.balance))
    return totals, expected


@transaction.atomic
def reconcile_vendor(vendor_id, *, dry_run: bool = False) -> ReconcileResult:
    vendor = Vendor.objects.select_for_update().get(pk=vendor_id)
    balance_before = money(vendor.balance)

    entries = list(
        VendorLedgerEntry.objects.filter(vendor_id=vendor.id).order_by(*CHRONOLOGICAL_ORDER)
    )
    totals, expected = replay_entries(entries)

    corrected = []
    for entry, running_balance in expected:
        if money(entry.running_balance) != running_balance:
            corrected.append(entry.id)
            if not dry_run:
                VendorLedgerEntry.objects.filter(pk=entry.pk).update(running_balance=running_balance)

    current = VendorTotals.from_vendor(vendor).as_dict()
    aggregates_changed = current != totals.as_dict()

    if aggregates_changed and not dry_run:
        totals.write_to(vendor)

    result = ReconcileResult(
        vendor_id=str(vendor.id),
        entry_count=len(entries),
        entries_corrected=len(corrected),
        aggregates_changed=aggregates_changed,
        balance_before=balance_before,
        balance_after=totals.balance,
        corrected_entry_ids=[str(pk) for pk in corrected],
    )

    logger.info(
        "Vendor ledger reconciled",
        extra={
            "vendor_id": result.vendor_id,
            "entry_count": result.entry_count,
            "entries_corrected": result.entries_corrected,
            "aggregates_changed": aggregates_changed,
            "dry_run": dry_run,
        },
    )
    return result
