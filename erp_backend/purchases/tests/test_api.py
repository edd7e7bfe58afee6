# purchases/tests/test_api.py

from __future__ import annotations

from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.testing import make_user, make_variant, make_vendor
from purchases.models import Purchase, Vendor


class PurchaseApiTests(TestCase):
    """
    HTTP surface tests.

    GUARANTEES:
    - Capabilities gate every endpoint
    - Service errors come back as {kind, detail} with their status code
    """

    def setUp(self):
        self.client = APIClient()
        self.staff = make_user("staff")
        self.manager = make_user("manager")
        self.vendor = make_vendor()
        self.variant = make_variant()

    def _purchase_payload(self, **extra):
        payload = {
            "vendor_id": str(self.vendor.id),
            "items": [{"variant_id": str(self.variant.id), "quantity": 10, "cost_price": "50.00"}],
        }
        payload.update(extra)
        return payload

    def test_staff_records_purchase(self):
        self.client.force_authenticate(self.staff)

        res = self.client.post("/api/purchases/", self._purchase_payload(), format="json")

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["total_amount"], "500.00")

        res = self.client.get(f"/api/purchases/{res.data['purchase_id']}/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], Purchase.STATUS_COMPLETED)
        self.assertEqual(len(res.data["items"]), 1)
        self.assertIsNotNone(res.data["inventory_transaction_id"])

    def test_purchase_replay_returns_200(self):
        self.client.force_authenticate(self.staff)
        payload = self._purchase_payload(idempotency_key="po-api-1")

        first = self.client.post("/api/purchases/", payload, format="json")
        second = self.client.post("/api/purchases/", payload, format="json")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertTrue(second.data["replayed"])

    def test_purchase_for_unknown_variant_is_400(self):
        self.client.force_authenticate(self.staff)
        payload = self._purchase_payload()
        payload["items"][0]["variant_id"] = "00000000-0000-0000-0000-000000000000"

        res = self.client.post("/api/purchases/", payload, format="json")

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["kind"], "validation_error")

    def test_vendor_management_requires_manager(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post("/api/purchases/vendors/", {"name": "New Vendor"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        res = self.client.get("/api/purchases/vendors/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)

        self.client.force_authenticate(self.manager)
        res = self.client.post(
            "/api/purchases/vendors/",
            {"name": "New Vendor", "balance": "999.00"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Vendor.objects.get(id=res.data["id"]).balance, Decimal("0.00"))

    def test_payment_requires_pay_capability(self):
        self.client.force_authenticate(self.staff)
        payload = {"vendor_id": str(self.vendor.id), "amount": "100.00"}

        res = self.client.post("/api/purchases/payments/", payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        res = self.client.post("/api/purchases/payments/", payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["new_balance"], "-100.00")
        self.assertTrue(res.data["is_advance"])

    def test_zero_payment_is_400(self):
        self.client.force_authenticate(self.manager)
        res = self.client.post(
            "/api/purchases/payments/",
            {"vendor_id": str(self.vendor.id), "amount": "0.00"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["kind"], "validation_error")

    def test_cancel_purchase(self):
        self.client.force_authenticate(self.staff)
        created = self.client.post("/api/purchases/", self._purchase_payload(), format="json")
        url = f"/api/purchases/{created.data['purchase_id']}/cancel/"

        res = self.client.post(url, {"reason": "Supplier recalled the batch"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        res = self.client.post(url, {"reason": "Supplier recalled the batch"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(make_user("admin"))
        res = self.client.post(url, {"reason": "Supplier recalled the batch"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], Purchase.STATUS_CANCELLED)

        res = self.client.post(url, {"reason": "Supplier recalled the batch"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["kind"], "invalid_transition")
