# accounting/tests/test_vendor_ledger.py

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from accounting.models import VendorLedgerEntry
from accounting.services.balance_projector import reconcile_vendor
from accounting.services.exceptions import (
    DuplicateLedgerEntryError,
    LedgerConflictError,
    LedgerEntryCreationError,
)
from accounting.services.ledger_service import append_ledger_entry
from accounting.services.posting import post_purchase_to_ledger
from core.testing import make_variant, make_vendor
from purchases.models import Purchase, Vendor
from purchases.services.purchase_service import PurchaseLine, create_purchase


def _append(vendor, entry_type, *, debit=Decimal("0.00"), credit=Decimal("0.00"), **extra):
    return append_ledger_entry(
        vendor_id=vendor.id,
        entry_type=entry_type,
        reference_id=extra.pop("reference_id", uuid.uuid4()),
        debit=debit,
        credit=credit,
        **extra,
    )


class VendorLedgerStoreTests(TestCase):
    """
    Ledger store tests.

    GUARANTEES:
    - Exactly one side per entry, on the side its type dictates
    - One entry per (reference_id, entry_type)
    - Entries are immutable once written
    - Every append is projected onto the vendor in the same transaction
    """

    def setUp(self):
        self.vendor = make_vendor()

    def test_append_sets_running_balance_and_projects_vendor(self):
        first = _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("500.00"))
        second = _append(self.vendor, VendorLedgerEntry.PAYMENT, credit=Decimal("200.00"))

        self.assertEqual(first.running_balance, Decimal("500.00"))
        self.assertEqual(second.running_balance, Decimal("300.00"))

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("300.00"))
        self.assertEqual(self.vendor.total_purchases, Decimal("500.00"))
        self.assertEqual(self.vendor.total_payments, Decimal("200.00"))
        self.assertEqual(self.vendor.purchase_count, 1)
        self.assertEqual(self.vendor.payment_count, 1)
        self.assertEqual(self.vendor.last_payment_date, timezone.localdate())

    def test_duplicate_reference_is_refused(self):
        ref = uuid.uuid4()
        _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("10.00"), reference_id=ref)

        with self.assertRaises(DuplicateLedgerEntryError):
            _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("10.00"), reference_id=ref)

        self.assertEqual(VendorLedgerEntry.objects.filter(reference_id=ref).count(), 1)

    def test_same_reference_different_type_is_allowed(self):
        ref = uuid.uuid4()
        _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("40.00"), reference_id=ref)
        _append(self.vendor, VendorLedgerEntry.PURCHASE_REVERSAL, credit=Decimal("40.00"), reference_id=ref)

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("0.00"))
        self.assertEqual(self.vendor.purchase_count, 0)

    def test_bad_amounts_are_refused(self):
        with self.assertRaises(LedgerEntryCreationError):
            _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("1.00"), credit=Decimal("1.00"))
        with self.assertRaises(LedgerEntryCreationError):
            _append(self.vendor, VendorLedgerEntry.PURCHASE)
        with self.assertRaises(LedgerEntryCreationError):
            _append(self.vendor, VendorLedgerEntry.PAYMENT, debit=Decimal("5.00"))
        with self.assertRaises(LedgerEntryCreationError):
            _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("-5.00"))
        with self.assertRaises(LedgerEntryCreationError):
            _append(self.vendor, "refund", debit=Decimal("5.00"))

        self.assertFalse(VendorLedgerEntry.objects.exists())

    def test_entries_are_immutable(self):
        entry = _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("50.00"))

        entry.debit = Decimal("60.00")
        with self.assertRaises(ValidationError):
            entry.save()
        with self.assertRaises(ValidationError):
            entry.delete()

        entry.refresh_from_db()
        self.assertEqual(entry.debit, Decimal("50.00"))


class PostingReplayTests(TestCase):
    """Re-posting the same business event must never double the ledger."""

    def setUp(self):
        self.vendor = make_vendor()
        self.variant = make_variant()
        result = create_purchase(
            vendor_id=self.vendor.id,
            items=[PurchaseLine(variant_id=self.variant.id, quantity=2, cost_price=Decimal("25.00"))],
        )
        self.purchase = Purchase.objects.get(id=result.purchase_id)

    def test_identical_replay_returns_existing_entry(self):
        original = VendorLedgerEntry.objects.get(reference_id=self.purchase.id)

        replayed = post_purchase_to_ledger(purchase=self.purchase)

        self.assertEqual(replayed.id, original.id)
        self.assertEqual(VendorLedgerEntry.objects.filter(reference_id=self.purchase.id).count(), 1)
        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("50.00"))

    def test_replay_with_different_amount_conflicts(self):
        self.purchase.total_amount = Decimal("75.00")

        with self.assertRaises(LedgerConflictError):
            post_purchase_to_ledger(purchase=self.purchase)

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("50.00"))


class BalanceProjectorTests(TestCase):
    """
    Full replay tests.

    GUARANTEES:
    - Running balances follow (transaction_date, created_at, id)
    - Reconcile is idempotent
    - balance == total_purchases - total_payments - total_returns afterwards
    """

    def setUp(self):
        self.vendor = make_vendor()

    def test_backdated_entry_is_reordered_on_reconcile(self):
        today = timezone.localdate()
        purchase = _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("100.00"), transaction_date=today)
        payment = _append(
            self.vendor,
            VendorLedgerEntry.PAYMENT,
            credit=Decimal("30.00"),
            transaction_date=today - timedelta(days=1),
        )
        self.assertEqual(payment.running_balance, Decimal("70.00"))

        result = reconcile_vendor(self.vendor.id)

        self.assertEqual(result.entry_count, 2)
        self.assertEqual(result.entries_corrected, 2)
        self.assertFalse(result.aggregates_changed)

        payment.refresh_from_db()
        purchase.refresh_from_db()
        self.assertEqual(payment.running_balance, Decimal("-30.00"))
        self.assertEqual(purchase.running_balance, Decimal("70.00"))

        again = reconcile_vendor(self.vendor.id)
        self.assertEqual(again.entries_corrected, 0)
        self.assertFalse(again.aggregates_changed)

    def test_reconcile_repairs_drifted_aggregates(self):
        _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("400.00"))
        _append(self.vendor, VendorLedgerEntry.PURCHASE_RETURN, credit=Decimal("100.00"))
        Vendor.objects.filter(pk=self.vendor.pk).update(
            balance=Decimal("999.00"), return_count=7
        )

        result = reconcile_vendor(self.vendor.id)

        self.assertTrue(result.aggregates_changed)
        self.assertEqual(result.balance_before, Decimal("999.00"))
        self.assertEqual(result.balance_after, Decimal("300.00"))

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("300.00"))
        self.assertEqual(self.vendor.total_returns, Decimal("100.00"))
        self.assertEqual(self.vendor.return_count, 1)
        self.assertEqual(
            self.vendor.balance,
            self.vendor.total_purchases - self.vendor.total_payments - self.vendor.total_returns,
        )

    def test_dry_run_reports_without_writing(self):
        entry = _append(self.vendor, VendorLedgerEntry.PURCHASE, debit=Decimal("10.00"))
        VendorLedgerEntry.objects.filter(pk=entry.pk).update(running_balance=Decimal("11.00"))

        result = reconcile_vendor(self.vendor.id, dry_run=True)

        self.assertEqual(result.entries_corrected, 1)
        entry.refresh_from_db()
        self.assertEqual(entry.running_balance, Decimal("11.00"))
