# accounting/tests/test_reconciliation.py

from __future__ import annotations

import uuid
from decimal import Decimal
from io import StringIO

from django.core.management import CommandError, call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from accounting.models import VendorLedgerEntry
from accounting.services.ledger_service import append_ledger_entry
from accounting.services.reconciliation import (
    backfill_vendor_ledger,
    deduplicate_ledger_entries,
    verify_vendor_ledger,
)
from accounting.services.vendor_statements import vendor_financial_summary, vendor_transactions
from core.exceptions import NotFoundError
from core.testing import make_user, make_variant, make_vendor
from purchases.models import Vendor
from purchases.services.payment_service import record_vendor_payment
from purchases.services.purchase_service import PurchaseLine, create_purchase


def _legacy_duplicate(entry: VendorLedgerEntry) -> VendorLedgerEntry:
    """Second row for the same event, as written before the store enforced uniqueness."""
    dup = VendorLedgerEntry.objects.create(
        vendor_id=entry.vendor_id,
        entry_type=entry.entry_type,
        reference_id=entry.reference_id,
        reference_no=entry.reference_no,
        debit=entry.debit,
        credit=entry.credit,
        running_balance=entry.running_balance + entry.debit - entry.credit,
        transaction_date=entry.transaction_date,
    )
    Vendor.objects.filter(pk=entry.vendor_id).update(
        balance=dup.running_balance,
        total_purchases=dup.running_balance,
        purchase_count=2,
    )
    return dup


class DeduplicationTests(TestCase):
    """
    GUARANTEES:
    - Earliest entry per (reference_id, entry_type) survives
    - Vendor aggregates are replayed after cleanup
    - Running again is a no-op
    """

    def setUp(self):
        self.vendor = make_vendor()
        self.entry = append_ledger_entry(
            vendor_id=self.vendor.id,
            entry_type=VendorLedgerEntry.PURCHASE,
            reference_id=uuid.uuid4(),
            debit=Decimal("100.00"),
        )
        self.dup = _legacy_duplicate(self.entry)

    def test_duplicates_are_removed_and_vendor_replayed(self):
        self.assertFalse(verify_vendor_ledger(self.vendor.id).ok)

        result = deduplicate_ledger_entries()

        self.assertEqual(result.groups, 1)
        self.assertEqual(result.deleted, 1)
        self.assertEqual(result.deleted_entry_ids, [str(self.dup.id)])
        self.assertTrue(VendorLedgerEntry.objects.filter(pk=self.entry.pk).exists())
        self.assertFalse(VendorLedgerEntry.objects.filter(pk=self.dup.pk).exists())

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("100.00"))
        self.assertEqual(self.vendor.purchase_count, 1)
        self.assertTrue(verify_vendor_ledger(self.vendor.id).ok)

        again = deduplicate_ledger_entries()
        self.assertEqual(again.deleted, 0)

    def test_dry_run_keeps_rows(self):
        result = deduplicate_ledger_entries(dry_run=True)

        self.assertEqual(result.deleted, 1)
        self.assertEqual(VendorLedgerEntry.objects.filter(reference_id=self.entry.reference_id).count(), 2)

    def test_reconcile_command_dedupes(self):
        out = StringIO()
        call_command("reconcile_vendor_ledger", "--dedupe", stdout=out, stderr=StringIO())

        self.assertIn("1 entr(y/ies) removed", out.getvalue())
        self.assertIn("Reconciliation finished", out.getvalue())
        self.assertEqual(VendorLedgerEntry.objects.filter(reference_id=self.entry.reference_id).count(), 1)

    def test_strict_command_fails_when_problems_remain(self):
        with self.assertRaises(SystemExit):
            call_command("reconcile_vendor_ledger", "--strict", stdout=StringIO(), stderr=StringIO())

    def test_malformed_vendor_id_is_reported_as_not_found(self):
        err = StringIO()
        call_command("reconcile_vendor_ledger", "--vendor", "not-a-uuid", stdout=StringIO(), stderr=err)

        self.assertIn("Vendor not-a-uuid not found", err.getvalue())
        self.assertEqual(VendorLedgerEntry.objects.filter(reference_id=self.entry.reference_id).count(), 2)

        with self.assertRaises(SystemExit):
            call_command(
                "reconcile_vendor_ledger", "--vendor", "not-a-uuid", "--strict",
                stdout=StringIO(), stderr=StringIO(),
            )


class BackfillTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.variant = make_variant()
        self.purchase = create_purchase(
            vendor_id=self.vendor.id,
            items=[PurchaseLine(variant_id=self.variant.id, quantity=4, cost_price=Decimal("25.00"))],
        )
        self.payment = record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("40.00"))

        # lose the ledger, as if the documents were recorded before it existed
        VendorLedgerEntry.objects.all().delete()
        Vendor.objects.filter(pk=self.vendor.pk).update(
            balance=Decimal("0.00"),
            total_purchases=Decimal("0.00"),
            total_payments=Decimal("0.00"),
            purchase_count=0,
            payment_count=0,
        )

    def test_backfill_posts_missing_entries_once(self):
        result = backfill_vendor_ledger()

        self.assertEqual(result.purchases, 1)
        self.assertEqual(result.payments, 1)
        self.assertEqual(result.total, 2)
        self.assertEqual(result.vendor_ids, [str(self.vendor.id)])

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("60.00"))
        self.assertTrue(verify_vendor_ledger(self.vendor.id).ok)

        again = backfill_vendor_ledger()
        self.assertEqual(again.total, 0)
        self.assertEqual(VendorLedgerEntry.objects.count(), 2)

    def test_backfill_command_dry_run(self):
        out = StringIO()
        call_command("backfill_vendor_ledger", "--dry-run", stdout=out)

        self.assertIn("2 entr(y/ies) would be posted", out.getvalue())
        self.assertFalse(VendorLedgerEntry.objects.exists())

    def test_backfill_command_rejects_malformed_vendor_id(self):
        with self.assertRaisesMessage(CommandError, "Vendor not-a-uuid not found"):
            call_command("backfill_vendor_ledger", "--vendor", "not-a-uuid", stdout=StringIO())

        self.assertFalse(VendorLedgerEntry.objects.exists())


class VerificationTests(TestCase):
    def test_chain_break_is_reported(self):
        vendor = make_vendor()
        entry = append_ledger_entry(
            vendor_id=vendor.id,
            entry_type=VendorLedgerEntry.PURCHASE,
            reference_id=uuid.uuid4(),
            debit=Decimal("20.00"),
        )
        VendorLedgerEntry.objects.filter(pk=entry.pk).update(running_balance=Decimal("25.00"))

        report = verify_vendor_ledger(vendor.id)

        self.assertFalse(report.ok)
        self.assertEqual(report.chain_breaks[0]["expected"], "20.00")
        self.assertEqual(report.chain_breaks[0]["actual"], "25.00")
        self.assertEqual(report.aggregate_mismatches, {})


class VendorStatementTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        for _ in range(3):
            append_ledger_entry(
                vendor_id=self.vendor.id,
                entry_type=VendorLedgerEntry.PURCHASE,
                reference_id=uuid.uuid4(),
                debit=Decimal("100.00"),
            )
        append_ledger_entry(
            vendor_id=self.vendor.id,
            entry_type=VendorLedgerEntry.PAYMENT,
            reference_id=uuid.uuid4(),
            credit=Decimal("350.00"),
        )

    def test_summary_reads_projected_aggregates(self):
        summary = vendor_financial_summary(self.vendor.id)

        self.assertEqual(summary["balance"], "-50.00")
        self.assertEqual(summary["total_purchases"], "300.00")
        self.assertEqual(summary["purchase_count"], 3)
        self.assertTrue(summary["has_advance"])

    def test_transactions_are_paginated_newest_first(self):
        page = vendor_transactions(self.vendor.id, limit=3, offset=0)

        self.assertEqual(page["total"], 4)
        self.assertTrue(page["has_more"])
        self.assertEqual(page["results"][0].entry_type, VendorLedgerEntry.PAYMENT)

        rest = vendor_transactions(self.vendor.id, limit=3, offset=3)
        self.assertEqual(len(rest["results"]), 1)
        self.assertFalse(rest["has_more"])

        payments = vendor_transactions(self.vendor.id, entry_type=VendorLedgerEntry.PAYMENT)
        self.assertEqual(payments["total"], 1)

    def test_unknown_vendor(self):
        with self.assertRaises(NotFoundError):
            vendor_financial_summary(uuid.uuid4())


class VendorLedgerApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.vendor = make_vendor()
        self.entry = append_ledger_entry(
            vendor_id=self.vendor.id,
            entry_type=VendorLedgerEntry.PURCHASE,
            reference_id=uuid.uuid4(),
            debit=Decimal("80.00"),
        )

    def test_staff_can_read_summary_and_transactions(self):
        self.client.force_authenticate(make_user("staff"))

        res = self.client.get(f"/api/accounting/vendors/{self.vendor.id}/summary/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["balance"], "80.00")

        res = self.client.get(f"/api/accounting/vendors/{self.vendor.id}/transactions/", {"limit": 10})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["total"], 1)
        self.assertEqual(res.data["results"][0]["running_balance"], "80.00")

    def test_summary_of_unknown_vendor_is_404(self):
        self.client.force_authenticate(make_user("staff"))
        res = self.client.get(f"/api/accounting/vendors/{uuid.uuid4()}/summary/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["kind"], "not_found")

    def test_reconcile_requires_admin(self):
        self.client.force_authenticate(make_user("manager"))
        res = self.client.post(f"/api/accounting/vendors/{self.vendor.id}/reconcile/", {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        _legacy_duplicate(self.entry)
        self.client.force_authenticate(make_user("admin"))
        res = self.client.post(
            f"/api/accounting/vendors/{self.vendor.id}/reconcile/",
            {"dedupe": True},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["deduplicated"]["deleted"], 1)
        self.assertTrue(res.data["verification"]["ok"])
        self.assertEqual(res.data["reconcile"]["balance_after"], "80.00")

    def test_anonymous_is_rejected(self):
        res = self.client.get(f"/api/accounting/vendors/{self.vendor.id}/summary/")
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)
