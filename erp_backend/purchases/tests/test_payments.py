# purchases/tests/test_payments.py

from __future__ import annotations

import re
import uuid
from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings

from accounting.models import VendorLedgerEntry
from core.exceptions import ConflictError
from core.testing import make_user, make_variant, make_vendor
from purchases.models import VendorPayment
from purchases.services.payment_service import (
    VendorPaymentError,
    generate_payment_no,
    record_vendor_payment,
)
from purchases.services.purchase_service import PurchaseLine, create_purchase

PAYMENT_NO_RE = re.compile(r"^PAY-\d{8}-\d{4}$")


class VendorPaymentTests(TestCase):
    """
    Payment recording tests.

    GUARANTEES:
    - One ledger credit per payment
    - balance_after == vendor.balance == ledger running_balance
    - Overpayment turns into an advance (negative balance)
    """

    def setUp(self):
        self.user = make_user("manager")
        self.vendor = make_vendor()
        variant = make_variant()
        create_purchase(
            vendor_id=self.vendor.id,
            items=[PurchaseLine(variant_id=variant.id, quantity=10, cost_price=Decimal("50.00"))],
        )

    def test_payment_credits_vendor(self):
        result = record_vendor_payment(
            vendor_id=self.vendor.id,
            amount=Decimal("200.00"),
            payment_method="bank_transfer",
            transaction_ref="TRX-1",
            created_by=self.user,
        )

        self.assertRegex(result.payment_no, PAYMENT_NO_RE)
        self.assertEqual(result.balance_before, Decimal("500.00"))
        self.assertEqual(result.new_balance, Decimal("300.00"))
        self.assertFalse(result.is_advance)

        payment = VendorPayment.objects.get(id=result.payment_id)
        entry = VendorLedgerEntry.objects.get(reference_id=payment.id)
        self.vendor.refresh_from_db()

        self.assertEqual(entry.entry_type, VendorLedgerEntry.PAYMENT)
        self.assertEqual(entry.credit, Decimal("200.00"))
        self.assertEqual(payment.balance_after, self.vendor.balance)
        self.assertEqual(entry.running_balance, self.vendor.balance)
        self.assertEqual(self.vendor.total_payments, Decimal("200.00"))
        self.assertEqual(self.vendor.payment_count, 1)
        self.assertEqual(payment.reference_number, "TRX-1")

    def test_overpayment_becomes_advance(self):
        result = record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("1200.00"))

        self.assertEqual(result.new_balance, Decimal("-700.00"))
        self.assertTrue(result.is_advance)
        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("-700.00"))

    def test_non_positive_amount_is_refused(self):
        for amount in (Decimal("0.00"), Decimal("-5.00"), "abc"):
            with self.subTest(amount=amount):
                with self.assertRaises(VendorPaymentError):
                    record_vendor_payment(vendor_id=self.vendor.id, amount=amount)

        self.assertFalse(VendorPayment.objects.exists())

    def test_unknown_method_and_vendor_are_refused(self):
        with self.assertRaises(VendorPaymentError):
            record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("10.00"), payment_method="crypto")
        with self.assertRaises(VendorPaymentError):
            record_vendor_payment(vendor_id=uuid.uuid4(), amount=Decimal("10.00"))

    def test_idempotent_replay(self):
        first = record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("50.00"), idempotency_key="pay-1")
        second = record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("50.00"), idempotency_key="pay-1")

        self.assertTrue(second.replayed)
        self.assertEqual(second.payment_id, first.payment_id)
        self.assertEqual(VendorPayment.objects.count(), 1)
        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("450.00"))

        with self.assertRaises(ConflictError):
            record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("60.00"), idempotency_key="pay-1")

    def test_idempotency_key_reused_for_other_vendor_conflicts(self):
        record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("50.00"), idempotency_key="pay-2")
        other = make_vendor(name="Other Vendor")

        with self.assertRaises(ConflictError):
            record_vendor_payment(vendor_id=other.id, amount=Decimal("50.00"), idempotency_key="pay-2")

        self.assertEqual(VendorPayment.objects.count(), 1)
        other.refresh_from_db()
        self.assertEqual(other.total_payments, Decimal("0.00"))

    def test_key_taken_between_lookup_and_insert_conflicts(self):
        record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("50.00"), idempotency_key="pay-3")

        with mock.patch("purchases.services.payment_service._replay", return_value=None):
            with self.assertRaises(ConflictError):
                record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("50.00"), idempotency_key="pay-3")

        self.assertEqual(VendorPayment.objects.count(), 1)
        self.assertEqual(VendorLedgerEntry.objects.filter(entry_type=VendorLedgerEntry.PAYMENT).count(), 1)

    def test_payment_number_collision_is_retried(self):
        taken = record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("1.00"))
        fresh = "PAY-20260101-0001"

        with mock.patch(
            "purchases.services.payment_service.generate_payment_no",
            side_effect=[taken.payment_no, fresh],
        ):
            result = record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("2.00"))

        self.assertEqual(result.payment_no, fresh)

    @override_settings(PAYMENT_NO_MAX_ATTEMPTS=2)
    def test_payment_number_exhaustion_conflicts(self):
        taken = record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("1.00"))

        with mock.patch(
            "purchases.services.payment_service.generate_payment_no",
            return_value=taken.payment_no,
        ):
            with self.assertRaises(ConflictError):
                record_vendor_payment(vendor_id=self.vendor.id, amount=Decimal("2.00"))

        self.assertEqual(VendorPayment.objects.count(), 1)
        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("499.00"))

    def test_generated_number_format(self):
        self.assertRegex(generate_payment_no(), PAYMENT_NO_RE)
