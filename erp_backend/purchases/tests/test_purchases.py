# purchases/tests/test_purchases.py

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest import mock

from django.test import TestCase

from accounting.models import VendorLedgerEntry
from core.exceptions import ConflictError
from core.testing import make_user, make_variant, make_vendor
from inventory.models import InventoryTransaction
from products.models import ProductVariant, StockMovement
from products.services.stock import InsufficientStockError
from purchases.models import Purchase, Vendor
from purchases.services import purchase_service
from purchases.services.purchase_service import (
    PurchaseLine,
    PurchaseRecordingError,
    cancel_purchase,
    create_purchase,
)


class PurchaseRecorderTests(TestCase):
    """
    Purchase recording tests.

    GUARANTEES:
    - Stock, inventory transaction and ledger debit land together or not at all
    - Exactly one ledger debit per purchase, replays included
    - Bad input is refused before anything is written
    """

    def setUp(self):
        self.user = make_user("staff")
        self.vendor = make_vendor()
        self.variant = make_variant(cost_price=Decimal("45.00"))

    def _lines(self, qty=10, cost="50.00"):
        return [PurchaseLine(variant_id=self.variant.id, quantity=qty, cost_price=Decimal(cost))]

    def test_purchase_moves_stock_and_debits_vendor(self):
        result = create_purchase(vendor_id=self.vendor.id, items=self._lines(), created_by=self.user)

        self.assertEqual(result.total_amount, Decimal("500.00"))
        self.assertEqual(result.items_count, 1)
        self.assertFalse(result.replayed)

        self.variant.refresh_from_db()
        self.assertEqual(self.variant.current_stock, 10)
        self.assertEqual(self.variant.cost_price, Decimal("50.00"))

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("500.00"))
        self.assertEqual(self.vendor.total_purchases, Decimal("500.00"))
        self.assertEqual(self.vendor.purchase_count, 1)

        entry = VendorLedgerEntry.objects.get(reference_id=result.purchase_id)
        self.assertEqual(entry.entry_type, VendorLedgerEntry.PURCHASE)
        self.assertEqual(entry.debit, Decimal("500.00"))
        self.assertEqual(entry.running_balance, Decimal("500.00"))

        txn = InventoryTransaction.objects.get(id=result.inventory_transaction_id)
        self.assertEqual(txn.status, InventoryTransaction.STATUS_APPROVED)
        self.assertEqual(txn.purchase_id, uuid.UUID(result.purchase_id))
        item = txn.items.get()
        self.assertEqual((item.stock_before, item.stock_after), (0, 10))

        movement = StockMovement.objects.get(reference_id=txn.id)
        self.assertEqual(movement.reason, StockMovement.Reason.PURCHASE)
        self.assertEqual(movement.fresh_change, 10)

    def test_discount_and_tax_shape_the_total(self):
        result = create_purchase(
            vendor_id=self.vendor.id,
            items=self._lines(qty=4, cost="25.00"),
            discount=Decimal("10.00"),
            tax=Decimal("5.50"),
        )

        purchase = Purchase.objects.get(id=result.purchase_id)
        self.assertEqual(purchase.subtotal, Decimal("100.00"))
        self.assertEqual(purchase.total_amount, Decimal("95.50"))
        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("95.50"))

    def test_invalid_lines_write_nothing(self):
        bad_batches = [
            [],
            self._lines(qty=0),
            self._lines(qty=-3),
            self._lines(cost="-1.00"),
            [PurchaseLine(variant_id="not-a-uuid", quantity=1, cost_price=Decimal("1.00"))],
            [PurchaseLine(variant_id=uuid.uuid4(), quantity=1, cost_price=Decimal("1.00"))],
        ]
        for items in bad_batches:
            with self.subTest(items=items):
                with self.assertRaises(PurchaseRecordingError):
                    create_purchase(vendor_id=self.vendor.id, items=items)

        self.assertFalse(Purchase.objects.exists())
        self.assertFalse(VendorLedgerEntry.objects.exists())
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.current_stock, 0)

    def test_unknown_or_inactive_vendor(self):
        with self.assertRaises(PurchaseRecordingError):
            create_purchase(vendor_id=uuid.uuid4(), items=self._lines())

        inactive = make_vendor(name="Closed Ltd", is_active=False)
        with self.assertRaises(PurchaseRecordingError):
            create_purchase(vendor_id=inactive.id, items=self._lines())

    def test_discount_larger_than_total_is_refused(self):
        with self.assertRaises(PurchaseRecordingError):
            create_purchase(vendor_id=self.vendor.id, items=self._lines(qty=1, cost="10.00"), discount=Decimal("11.00"))

    def test_idempotency_key_replays_without_second_effect(self):
        first = create_purchase(vendor_id=self.vendor.id, items=self._lines(), idempotency_key="po-1")
        second = create_purchase(vendor_id=self.vendor.id, items=self._lines(), idempotency_key="po-1")

        self.assertTrue(second.replayed)
        self.assertEqual(second.purchase_id, first.purchase_id)
        self.assertEqual(second.ledger_entry_id, first.ledger_entry_id)
        self.assertEqual(Purchase.objects.count(), 1)
        self.assertEqual(VendorLedgerEntry.objects.count(), 1)

        self.variant.refresh_from_db()
        self.assertEqual(self.variant.current_stock, 10)

    def test_idempotency_key_reused_for_other_purchase_conflicts(self):
        create_purchase(vendor_id=self.vendor.id, items=self._lines(), idempotency_key="po-2")

        with self.assertRaises(ConflictError):
            create_purchase(vendor_id=self.vendor.id, items=self._lines(qty=3), idempotency_key="po-2")

        other = make_vendor(name="Other Vendor")
        with self.assertRaises(ConflictError):
            create_purchase(vendor_id=other.id, items=self._lines(), idempotency_key="po-2")
        self.assertEqual(Purchase.objects.count(), 1)

    def test_idempotency_key_is_looked_up_under_vendor_lock(self):
        create_purchase(vendor_id=self.vendor.id, items=self._lines(), idempotency_key="po-3")

        calls = []
        select_for_update = Vendor.objects.select_for_update
        real_replay = purchase_service._replay

        def lock(*args, **kwargs):
            calls.append("vendor")
            return select_for_update(*args, **kwargs)

        def replay(**kwargs):
            calls.append("replay")
            return real_replay(**kwargs)

        with mock.patch.object(Vendor.objects, "select_for_update", side_effect=lock), mock.patch(
            "purchases.services.purchase_service._replay", side_effect=replay
        ):
            result = create_purchase(vendor_id=self.vendor.id, items=self._lines(), idempotency_key="po-3")

        self.assertTrue(result.replayed)
        self.assertEqual(calls[:2], ["vendor", "replay"])

    def test_key_taken_between_lookup_and_insert_conflicts(self):
        create_purchase(vendor_id=self.vendor.id, items=self._lines(), idempotency_key="po-4")

        with mock.patch("purchases.services.purchase_service._replay", return_value=None):
            with self.assertRaises(ConflictError):
                create_purchase(vendor_id=self.vendor.id, items=self._lines(), idempotency_key="po-4")

        self.assertEqual(Purchase.objects.count(), 1)
        self.assertEqual(VendorLedgerEntry.objects.count(), 1)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.current_stock, 10)

    def test_duplicate_vendor_invoice_conflicts(self):
        create_purchase(vendor_id=self.vendor.id, items=self._lines(), invoice_no="INV-77")

        with self.assertRaises(ConflictError):
            create_purchase(vendor_id=self.vendor.id, items=self._lines(), invoice_no="INV-77")

        other = make_vendor(name="Other Vendor")
        create_purchase(vendor_id=other.id, items=self._lines(), invoice_no="INV-77")
        self.assertEqual(Purchase.objects.filter(invoice_no="INV-77").count(), 2)


class PurchaseCancellationTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin")
        self.vendor = make_vendor()
        self.variant = make_variant()
        self.result = create_purchase(
            vendor_id=self.vendor.id,
            items=[PurchaseLine(variant_id=self.variant.id, quantity=10, cost_price=Decimal("50.00"))],
        )

    def test_cancel_reverses_stock_and_ledger(self):
        purchase = cancel_purchase(
            purchase_id=self.result.purchase_id,
            actor=self.admin,
            reason="Delivered to the wrong branch",
        )

        self.assertEqual(purchase.status, Purchase.STATUS_CANCELLED)

        self.variant.refresh_from_db()
        self.assertEqual(self.variant.current_stock, 0)

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("0.00"))
        self.assertEqual(self.vendor.total_purchases, Decimal("0.00"))
        self.assertEqual(self.vendor.purchase_count, 0)

        types = set(
            VendorLedgerEntry.objects.filter(reference_id=purchase.id).values_list("entry_type", flat=True)
        )
        self.assertEqual(types, {VendorLedgerEntry.PURCHASE, VendorLedgerEntry.PURCHASE_REVERSAL})

        txn = InventoryTransaction.objects.get(id=self.result.inventory_transaction_id)
        self.assertEqual(txn.status, InventoryTransaction.STATUS_VOIDED)

    def test_cancel_twice_is_refused(self):
        cancel_purchase(purchase_id=self.result.purchase_id, actor=self.admin, reason="Wrong supplier")

        with self.assertRaises(ConflictError):
            cancel_purchase(purchase_id=self.result.purchase_id, actor=self.admin, reason="Wrong supplier")

        self.assertEqual(
            VendorLedgerEntry.objects.filter(entry_type=VendorLedgerEntry.PURCHASE_REVERSAL).count(), 1
        )

    def test_cancel_after_stock_was_sold_off_is_refused(self):
        ProductVariant.objects.filter(pk=self.variant.pk).update(current_stock=4)

        with self.assertRaises(InsufficientStockError):
            cancel_purchase(purchase_id=self.result.purchase_id, actor=self.admin, reason="Late cancellation")

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("500.00"))
