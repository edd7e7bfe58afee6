# accounting/services/reconciliation.py

"""
======================================================
PATH: accounting/services/reconciliation.py
======================================================
VENDOR LEDGER REPAIR JOBS (on demand, never on the write path)

- deduplicate_ledger_entries: keep the earliest entry per
  (reference_id, entry_type), delete the rest, re-project affected vendors
- backfill_vendor_ledger: post entries missing for recorded purchases,
  payments and returns (idempotent: existing entries are left alone)
- verify_vendor_ledger: read-only report (duplicates, running-balance chain
  breaks, aggregate drift)

All three are safe to run repeatedly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import Count

from accounting.models import VendorLedgerEntry
from accounting.services.balance_projector import (
    CHRONOLOGICAL_ORDER,
    VendorTotals,
    reconcile_vendor,
    replay_entries,
)
from accounting.services.posting import (
    post_purchase_return_to_ledger,
    post_purchase_reversal,
    post_purchase_to_ledger,
    post_return_reversal,
    post_vendor_payment_to_ledger,
)
from core.money import ZERO, money
from inventory.models import InventoryTransaction
from purchases.models import Purchase, Vendor, VendorPayment

logger = logging.getLogger(__name__)


# =========================================================
# Deduplication
# =========================================================
@dataclass
class DedupResult:
    groups: int = 0
    deleted: int = 0
    vendor_ids: list = field(default_factory=list)
    deleted_entry_ids: list = field(default_factory=list)


def duplicate_groups(*, vendor_id=None):
    qs = VendorLedgerEntry.objects.all()
    if vendor_id:
        qs = qs.filter(vendor_id=vendor_id)
    # default Meta ordering would leak into GROUP BY
    return (
        qs.order_by()
        .values("reference_id", "entry_type")
        .annotate(n=Count("id"))
        .filter(n__gt=1)
    )


@transaction.atomic
def deduplicate_ledger_entries(*, vendor_id=None, dry_run: bool = False) -> DedupResult:
    result = DedupResult()
    vendors: set[str] = set()

    for group in duplicate_groups(vendor_id=vendor_id):
        entries = list(
            VendorLedgerEntry.objects.filter(
                reference_id=group["reference_id"],
                entry_type=group["entry_type"],
            ).order_by("created_at", "id")
        )
        keep, extras = entries[0], entries[1:]

        result.groups += 1
        result.deleted += len(extras)
        result.deleted_entry_ids.extend(str(e.id) for e in extras)
        vendors.update(str(e.vendor_id) for e in entries)

        logger.warning(
            "Duplicate ledger entries found",
            extra={
                "reference_id": str(group["reference_id"]),
                "entry_type": group["entry_type"],
                "kept_entry_id": str(keep.id),
                "duplicates": len(extras),
                "dry_run": dry_run,
            },
        )

        if not dry_run:
            # queryset delete; instance delete() is blocked on immutable entries
            VendorLedgerEntry.objects.filter(pk__in=[e.pk for e in extras]).delete()

    result.vendor_ids = sorted(vendors)

    if not dry_run:
        for vid in result.vendor_ids:
            reconcile_vendor(vid)

    logger.info(
        "Ledger deduplication finished",
        extra={"groups": result.groups, "deleted": result.deleted, "dry_run": dry_run},
    )
    return result


# =========================================================
# Backfill
# =========================================================
@dataclass
class BackfillResult:
    purchases: int = 0
    purchase_reversals: int = 0
    payments: int = 0
    returns: int = 0
    return_reversals: int = 0
    vendor_ids: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.purchases + self.purchase_reversals + self.payments + self.returns + self.return_reversals


def _has_entry(reference_id, entry_type: str) -> bool:
    return VendorLedgerEntry.objects.filter(reference_id=reference_id, entry_type=entry_type).exists()


@transaction.atomic
def backfill_vendor_ledger(*, vendor_id=None, dry_run: bool = False) -> BackfillResult:
    """
    Post the ledger entries that recorded documents should have produced.

    Zero-value documents are skipped (they never post). Vendors touched are
    reconciled afterwards so running balances follow business dates.
    """
    result = BackfillResult()
    vendors: set[str] = set()

    purchases = Purchase.objects.filter(
        status__in=[Purchase.STATUS_COMPLETED, Purchase.STATUS_CANCELLED],
        total_amount__gt=ZERO,
    ).order_by("invoice_date", "created_at")
    payments = VendorPayment.objects.filter(
        status=VendorPayment.STATUS_COMPLETED,
    ).order_by("payment_date", "created_at")
    returns = InventoryTransaction.objects.filter(
        transaction_type=InventoryTransaction.TYPE_PURCHASE_RETURN,
        vendor__isnull=False,
        total_cost__gt=ZERO,
        approval_date__isnull=False,
        status__in=[InventoryTransaction.STATUS_APPROVED, InventoryTransaction.STATUS_VOIDED],
    ).order_by("transaction_date", "created_at")

    if vendor_id:
        purchases = purchases.filter(vendor_id=vendor_id)
        payments = payments.filter(vendor_id=vendor_id)
        returns = returns.filter(vendor_id=vendor_id)

    for purchase in purchases:
        if not _has_entry(purchase.id, VendorLedgerEntry.PURCHASE):
            result.purchases += 1
            vendors.add(str(purchase.vendor_id))
            if not dry_run:
                post_purchase_to_ledger(purchase=purchase)

        if purchase.status == Purchase.STATUS_CANCELLED and not _has_entry(
            purchase.id, VendorLedgerEntry.PURCHASE_REVERSAL
        ):
            result.purchase_reversals += 1
            vendors.add(str(purchase.vendor_id))
            if not dry_run:
                post_purchase_reversal(purchase=purchase, reason="backfill")

    for payment in payments:
        if _has_entry(payment.id, VendorLedgerEntry.PAYMENT):
            continue
        result.payments += 1
        vendors.add(str(payment.vendor_id))
        if not dry_run:
            post_vendor_payment_to_ledger(payment=payment)

    for txn in returns:
        if not _has_entry(txn.id, VendorLedgerEntry.PURCHASE_RETURN):
            result.returns += 1
            vendors.add(str(txn.vendor_id))
            if not dry_run:
                post_purchase_return_to_ledger(inventory_transaction=txn, performed_by=txn.approved_by)

        if txn.status == InventoryTransaction.STATUS_VOIDED and not _has_entry(
            txn.id, VendorLedgerEntry.RETURN_REVERSAL
        ):
            result.return_reversals += 1
            vendors.add(str(txn.vendor_id))
            if not dry_run:
                post_return_reversal(
                    inventory_transaction=txn,
                    performed_by=txn.voided_by,
                    reason=txn.void_reason,
                )

    result.vendor_ids = sorted(vendors)

    if not dry_run:
        for vid in result.vendor_ids:
            reconcile_vendor(vid)

    logger.info(
        "Vendor ledger backfill finished",
        extra={
            "purchases": result.purchases,
            "purchase_reversals": result.purchase_reversals,
            "payments": result.payments,
            "returns": result.returns,
            "return_reversals": result.return_reversals,
            "dry_run": dry_run,
        },
    )
    return result


# =========================================================
# Verification (read-only)
# =========================================================
@dataclass
class VerificationReport:
    vendor_id: str
    entry_count: int = 0
    duplicate_groups: list = field(default_factory=list)
    chain_breaks: list = field(default_factory=list)
    aggregate_mismatches: dict = field(default_factory=dict)
    balance_identity_holds: bool = True

    @property
    def ok(self) -> bool:
        return (
            not self.duplicate_groups
            and not self.chain_breaks
            and not self.aggregate_mismatches
            and self.balance_identity_holds
        )


def verify_vendor_ledger(vendor_id) -> VerificationReport:
    vendor = Vendor.objects.get(pk=vendor_id)
    entries = list(
        VendorLedgerEntry.objects.filter(vendor_id=vendor.id).order_by(*CHRONOLOGICAL_ORDER)
    )
    report = VerificationReport(vendor_id=str(vendor.id), entry_count=len(entries))

    report.duplicate_groups = [
        {"reference_id": str(g["reference_id"]), "entry_type": g["entry_type"], "count": g["n"]}
        for g in duplicate_groups(vendor_id=vendor.id)
    ]

    previous: Optional[Decimal] = ZERO
    for entry in entries:
        expected = money(previous) + money(entry.debit) - money(entry.credit)
        if money(entry.running_balance) != expected:
            report.chain_breaks.append(
                {
                    "entry_id": str(entry.id),
                    "expected": str(expected),
                    "actual": str(money(entry.running_balance)),
                }
            )
        previous = money(entry.running_balance)

    replayed, _ = replay_entries(entries)
    stored = VendorTotals.from_vendor(vendor).as_dict()
    for name, value in replayed.as_dict().items():
        if stored[name] != value:
            report.aggregate_mismatches[name] = {"stored": str(stored[name]), "replayed": str(value)}

    report.balance_identity_holds = money(vendor.balance) == (
        money(vendor.total_purchases) - money(vendor.total_payments) - money(vendor.total_returns)
    )
    return report
