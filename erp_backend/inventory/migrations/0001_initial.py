"""
MIGRATION: CREATE InventoryTransaction (+ items)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def user_fk(related_name):
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("products", "0001_initial"),
        ("purchases", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="InventoryTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("purchase", "Purchase"),
                            ("purchase_return", "Purchase Return"),
                            ("damage", "Damage"),
                            ("adjustment", "Adjustment"),
                        ],
                        max_length=20,
                    ),
                ),
                ("invoice_no", models.CharField(max_length=64, unique=True)),
                ("transaction_date", models.DateField(default=django.utils.timezone.localdate)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("voided", "Voided"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("reason", models.TextField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                ("total_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("approval_date", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True, default="")),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("void_reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("approved_by", user_fk("inventory_transactions_approved")),
                ("performed_by", user_fk("inventory_transactions_performed")),
                ("rejected_by", user_fk("inventory_transactions_rejected")),
                ("voided_by", user_fk("inventory_transactions_voided")),
                (
                    "purchase",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inventory_transaction",
                        to="purchases.purchase",
                    ),
                ),
                (
                    "reference_transaction",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="returns",
                        to="inventory.inventorytransaction",
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inventory_transactions",
                        to="purchases.vendor",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_cost__gte", Decimal("0.00"))),
                        name="inventory_txn_total_cost_nonnegative",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="invtxn_status_created_idx"),
                    models.Index(fields=["transaction_type", "status"], name="invtxn_type_status_idx"),
                    models.Index(fields=["vendor", "created_at"], name="invtxn_vendor_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryTransactionItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.IntegerField()),
                ("unit_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                (
                    "source_type",
                    models.CharField(
                        choices=[("fresh", "Fresh"), ("damaged", "Damaged")],
                        default="fresh",
                        max_length=10,
                    ),
                ),
                ("stock_before", models.IntegerField(blank=True, null=True)),
                ("stock_after", models.IntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "transaction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="inventory.inventorytransaction",
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inventory_transaction_items",
                        to="products.productvariant",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity", 0), _negated=True),
                        name="inventory_item_quantity_nonzero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("unit_cost__gte", Decimal("0.00"))),
                        name="inventory_item_unit_cost_nonnegative",
                    ),
                ],
            },
        ),
    ]
