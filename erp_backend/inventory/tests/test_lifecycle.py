# inventory/tests/test_lifecycle.py

from django.test import SimpleTestCase

from inventory.lifecycle import (
    APPROVED,
    PENDING,
    REJECTED,
    VOIDED,
    InvalidTransitionError,
    can_transition,
    initial_status,
    validate_transition,
)
from inventory.models import InventoryTransaction


class LifecycleRuleTests(SimpleTestCase):
    def test_transition_table(self):
        allowed = {
            (PENDING, APPROVED),
            (PENDING, REJECTED),
            (PENDING, VOIDED),
            (APPROVED, VOIDED),
        }
        statuses = [PENDING, APPROVED, REJECTED, VOIDED]
        for src in statuses:
            for dst in statuses:
                with self.subTest(src=src, dst=dst):
                    self.assertEqual(can_transition(from_status=src, to_status=dst), (src, dst) in allowed)

    def test_initial_status(self):
        self.assertEqual(
            initial_status(transaction_type=InventoryTransaction.TYPE_PURCHASE, privileged=False),
            APPROVED,
        )
        self.assertEqual(
            initial_status(transaction_type=InventoryTransaction.TYPE_DAMAGE, privileged=True),
            APPROVED,
        )
        self.assertEqual(
            initial_status(transaction_type=InventoryTransaction.TYPE_PURCHASE_RETURN, privileged=False),
            PENDING,
        )

    def test_validate_transition_raises_with_details(self):
        txn = InventoryTransaction(invoice_no="DMG-000001", status=REJECTED)

        with self.assertRaises(InvalidTransitionError) as ctx:
            validate_transition(transaction=txn, target_status=APPROVED)

        self.assertEqual(ctx.exception.details, {"from_status": REJECTED, "to_status": APPROVED})
        self.assertEqual(ctx.exception.status_code, 409)
