"""
MIGRATION: CREATE Vendor (projected aggregates), Purchase (+ items), VendorPayment
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def money_field(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=14, **kwargs)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("products", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Vendor",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("contact_person", models.CharField(blank=True, default="", max_length=200)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("address", models.TextField(blank=True, default="")),
                ("is_active", models.BooleanField(default=True)),
                ("balance", money_field(default=Decimal("0.00"), editable=False)),
                ("total_purchases", money_field(default=Decimal("0.00"), editable=False)),
                ("total_payments", money_field(default=Decimal("0.00"), editable=False)),
                ("total_returns", money_field(default=Decimal("0.00"), editable=False)),
                ("purchase_count", models.IntegerField(default=0, editable=False)),
                ("payment_count", models.IntegerField(default=0, editable=False)),
                ("return_count", models.IntegerField(default=0, editable=False)),
                ("last_purchase_date", models.DateField(blank=True, editable=False, null=True)),
                ("last_payment_date", models.DateField(blank=True, editable=False, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["name"], name="vendor_name_idx"),
                    models.Index(fields=["is_active"], name="vendor_is_active_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Purchase",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("invoice_no", models.CharField(max_length=64)),
                ("invoice_date", models.DateField(default=django.utils.timezone.localdate)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("completed", "Completed"), ("cancelled", "Cancelled")],
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("subtotal", money_field(default=Decimal("0.00"))),
                ("discount_amount", money_field(default=Decimal("0.00"))),
                ("tax_amount", money_field(default=Decimal("0.00"))),
                ("total_amount", money_field(default=Decimal("0.00"))),
                ("notes", models.TextField(blank=True, default="")),
                ("idempotency_key", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="purchases_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to="purchases.vendor",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("vendor", "invoice_no"), name="uniq_vendor_invoice_no"),
                    models.CheckConstraint(
                        condition=models.Q(("subtotal__gte", Decimal("0.00"))),
                        name="purchase_subtotal_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("discount_amount__gte", Decimal("0.00"))),
                        name="purchase_discount_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("tax_amount__gte", Decimal("0.00"))),
                        name="purchase_tax_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gte", Decimal("0.00"))),
                        name="purchase_total_nonnegative",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["vendor", "created_at"], name="purchase_vendor_created_idx"),
                    models.Index(fields=["status", "created_at"], name="purchase_status_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PurchaseItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("product_name", models.CharField(max_length=255)),
                ("variant_name", models.CharField(blank=True, default="", max_length=255)),
                ("sku", models.CharField(max_length=128)),
                ("quantity", models.PositiveIntegerField()),
                ("cost_price", money_field(default=Decimal("0.00"))),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "purchase",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="purchases.purchase",
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchase_items",
                        to="products.productvariant",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="purchase_item_quantity_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("cost_price__gte", Decimal("0.00"))),
                        name="purchase_item_cost_nonnegative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="VendorPayment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("payment_no", models.CharField(max_length=32, unique=True)),
                ("payment_date", models.DateField(default=django.utils.timezone.localdate)),
                ("amount", money_field(default=Decimal("0.00"))),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("cash", "Cash"),
                            ("bank_transfer", "Bank Transfer"),
                            ("cheque", "Cheque"),
                            ("mobile_wallet", "Mobile Wallet"),
                        ],
                        default="cash",
                        max_length=20,
                    ),
                ),
                ("reference_number", models.CharField(blank=True, default="", max_length=128)),
                ("bank_name", models.CharField(blank=True, default="", max_length=128)),
                ("remarks", models.CharField(blank=True, default="", max_length=255)),
                ("receipt_url", models.URLField(blank=True, default="", max_length=500)),
                ("balance_before", money_field()),
                ("balance_after", money_field()),
                (
                    "status",
                    models.CharField(
                        choices=[("completed", "Completed"), ("cancelled", "Cancelled")],
                        default="completed",
                        max_length=20,
                    ),
                ),
                ("idempotency_key", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="vendor_payments_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="purchases.vendor",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", Decimal("0.00"))),
                        name="vendor_payment_amount_gt_zero",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["vendor", "created_at"], name="vpayment_vendor_created_idx"),
                ],
            },
        ),
    ]
