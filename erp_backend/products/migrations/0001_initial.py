"""
MIGRATION: CREATE Product, ProductVariant (stock pools), StockMovement (audit log)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="ProductVariant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sku", models.CharField(db_index=True, max_length=128, unique=True)),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("cost_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("current_stock", models.IntegerField(default=0)),
                ("damaged_stock", models.IntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="variants",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["sku"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("current_stock__gte", 0)),
                        name="variant_current_stock_gte_0",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("damaged_stock__gte", 0)),
                        name="variant_damaged_stock_gte_0",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("cost_price__gte", 0)),
                        name="variant_cost_price_gte_0",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("PURCHASE", "Purchase"),
                            ("PURCHASE_RETURN", "Purchase Return"),
                            ("DAMAGE", "Damage"),
                            ("ADJUSTMENT", "Manual Adjustment"),
                            ("VOID_REVERSAL", "Void Reversal"),
                        ],
                        max_length=20,
                    ),
                ),
                ("fresh_change", models.IntegerField(default=0)),
                ("damaged_change", models.IntegerField(default=0)),
                ("fresh_before", models.IntegerField()),
                ("fresh_after", models.IntegerField()),
                ("damaged_before", models.IntegerField()),
                ("damaged_after", models.IntegerField()),
                ("reference_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("note", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_movements",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stock_movements",
                        to="products.productvariant",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["variant", "created_at"], name="stockmove_variant_created_idx"),
                ],
            },
        ),
    ]
