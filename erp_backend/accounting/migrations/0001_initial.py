"""
MIGRATION: CREATE VendorLedgerEntry (append-only vendor ledger)

(reference_id, entry_type) is indexed but NOT unique at the database level:
legacy duplicates must stay loadable so the dedup job can clean them up.
The ledger service enforces one entry per pair under the vendor row lock.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("purchases", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="VendorLedgerEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "entry_type",
                    models.CharField(
                        choices=[
                            ("purchase", "Purchase"),
                            ("payment", "Payment"),
                            ("purchase_return", "Purchase Return"),
                            ("purchase_reversal", "Purchase Reversal"),
                            ("return_reversal", "Return Reversal"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "reference_id",
                    models.UUIDField(help_text="Id of the originating purchase / payment / return"),
                ),
                ("reference_no", models.CharField(blank=True, default="", max_length=64)),
                ("debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("running_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("transaction_date", models.DateField(default=django.utils.timezone.localdate)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="vendor_ledger_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="purchases.vendor",
                    ),
                ),
            ],
            options={
                "verbose_name": "Vendor Ledger Entry",
                "verbose_name_plural": "Vendor Ledger Entries",
                "ordering": ["transaction_date", "created_at", "id"],
                "indexes": [
                    models.Index(fields=["reference_id", "entry_type"], name="vledger_ref_type_idx"),
                    models.Index(
                        fields=["vendor", "transaction_date", "created_at"],
                        name="vledger_vendor_chrono_idx",
                    ),
                    models.Index(fields=["entry_type"], name="vledger_entry_type_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("debit__gte", Decimal("0.00")), ("credit__gte", Decimal("0.00"))),
                        name="vledger_amounts_nonnegative",
                    ),
                ],
            },
        ),
    ]
