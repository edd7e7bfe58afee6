# inventory/tests/test_api.py

from __future__ import annotations

from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.testing import make_user, make_variant, make_vendor
from inventory.models import InventoryTransaction
from purchases.services.purchase_service import PurchaseLine, create_purchase

BASE = "/api/inventory/transactions/"


class InventoryTransactionApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.staff = make_user("staff")
        self.admin = make_user("admin")
        self.vendor = make_vendor()
        self.variant = make_variant()
        result = create_purchase(
            vendor_id=self.vendor.id,
            items=[PurchaseLine(variant_id=self.variant.id, quantity=10, cost_price=Decimal("50.00"))],
        )
        self.purchase_txn_id = result.inventory_transaction_id

    def _return_payload(self, qty=2):
        return {
            "transaction_type": "purchase_return",
            "vendor_id": str(self.vendor.id),
            "reference_transaction_id": self.purchase_txn_id,
            "reason": "Damaged on arrival",
            "items": [{"variant_id": str(self.variant.id), "quantity": qty}],
        }

    def test_staff_request_then_admin_approves(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(BASE, self._return_payload(), format="json")

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], InventoryTransaction.STATUS_PENDING)
        self.assertTrue(res.data["requires_approval"])
        txn_id = res.data["id"]

        res = self.client.get(f"{BASE}pending/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in res.data["results"]], [txn_id])

        res = self.client.post(f"{BASE}{txn_id}/approve/")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        res = self.client.post(f"{BASE}{txn_id}/approve/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], InventoryTransaction.STATUS_APPROVED)

        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.balance, Decimal("400.00"))

        res = self.client.post(f"{BASE}{txn_id}/approve/")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)

    def test_manager_request_is_pending_and_cannot_approve(self):
        manager = make_user("manager")
        self.client.force_authenticate(manager)

        res = self.client.post(BASE, self._return_payload(), format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], InventoryTransaction.STATUS_PENDING)
        self.assertTrue(res.data["requires_approval"])

        res = self.client.post(f"{BASE}{res.data['id']}/approve/")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.variant.refresh_from_db()
        self.assertEqual(self.variant.current_stock, 10)

    def test_exceeding_return_is_422(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(BASE, self._return_payload(qty=11), format="json")

        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(res.data["kind"], "return_quantity_exceeded")
        self.assertEqual(res.data["details"]["remaining"], 10)

    def test_returnable_endpoint(self):
        self.client.force_authenticate(self.staff)
        self.client.post(BASE, self._return_payload(qty=3), format="json")

        res = self.client.get(f"{BASE}{self.purchase_txn_id}/returnable/")

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        item = res.data["items"][0]
        self.assertEqual((item["purchased"], item["returned"], item["remaining"]), (10, 3, 7))
        self.assertEqual(item["unit_cost"], "50.00")

    def test_reject_and_void(self):
        self.client.force_authenticate(self.staff)
        first = self.client.post(BASE, self._return_payload(), format="json").data["id"]
        second = self.client.post(BASE, self._return_payload(), format="json").data["id"]

        self.client.force_authenticate(self.admin)
        res = self.client.post(f"{BASE}{first}/reject/", {"rejection_reason": "Goods are fine"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], InventoryTransaction.STATUS_REJECTED)

        res = self.client.post(f"{BASE}{second}/void/", {"reason": "no"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.post(f"{BASE}{second}/void/", {"reason": "Entered twice"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], InventoryTransaction.STATUS_VOIDED)

    def test_list_filters_by_type(self):
        self.client.force_authenticate(self.staff)
        self.client.post(BASE, self._return_payload(), format="json")

        res = self.client.get(BASE, {"transaction_type": "purchase"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 1)
        self.assertEqual(res.data["results"][0]["id"], self.purchase_txn_id)

        res = self.client.get(BASE, {"status": "pending"})
        self.assertEqual(res.data["count"], 1)

    def test_unknown_transaction_is_404(self):
        self.client.force_authenticate(self.admin)
        res = self.client.post(f"{BASE}00000000-0000-0000-0000-000000000000/approve/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_anonymous_is_rejected(self):
        res = self.client.get(BASE)
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)
