# accounting/models/ledger.py

"""
======================================================
PATH: accounting/models/ledger.py
======================================================
VENDOR LEDGER ENTRY MODEL

One immutable debit or credit fact tied to a source transaction.

Guarantees:
- Immutable once created (no instance updates, no instance deletes)
- Exactly one of debit / credit is non-zero, and its side matches entry_type
- At most one entry per (reference_id, entry_type), enforced by
  accounting.services.ledger_service (the only writer)
- running_balance is the vendor balance right after this entry, in
  (transaction_date, created_at, id) order

Only reconciliation touches existing rows, through queryset update/delete:
- running_balance recompute (balance_projector.reconcile_vendor)
- duplicate cleanup (reconciliation.deduplicate_ledger_entries)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class VendorLedgerEntry(models.Model):
    PURCHASE = "purchase"
    PAYMENT = "payment"
    PURCHASE_RETURN = "purchase_return"
    PURCHASE_REVERSAL = "purchase_reversal"
    RETURN_REVERSAL = "return_reversal"

    ENTRY_TYPES = [
        (PURCHASE, "Purchase"),
        (PAYMENT, "Payment"),
        (PURCHASE_RETURN, "Purchase Return"),
        (PURCHASE_REVERSAL, "Purchase Reversal"),
        (RETURN_REVERSAL, "Return Reversal"),
    ]

    # debit increases what we owe the vendor, credit decreases it
    DEBIT_TYPES = {PURCHASE, RETURN_REVERSAL}
    CREDIT_TYPES = {PAYMENT, PURCHASE_RETURN, PURCHASE_REVERSAL}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    vendor = models.ForeignKey(
        "purchases.Vendor",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )

    entry_type = models.CharField(max_length=20, choices=ENTRY_TYPES)

    reference_id = models.UUIDField(help_text="Id of the originating purchase / payment / return")
    reference_no = models.CharField(max_length=64, blank=True, default="")

    debit = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    running_balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    description = models.CharField(max_length=255, blank=True, default="")

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vendor_ledger_entries",
    )

    transaction_date = models.DateField(default=timezone.localdate)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = "Vendor Ledger Entry"
        verbose_name_plural = "Vendor Ledger Entries"
        ordering = ["transaction_date", "created_at", "id"]
        indexes = [
            models.Index(fields=["reference_id", "entry_type"], name="vledger_ref_type_idx"),
            models.Index(
                fields=["vendor", "transaction_date", "created_at"],
                name="vledger_vendor_chrono_idx",
            ),
            models.Index(fields=["entry_type"], name="vledger_entry_type_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=Decimal("0.00")) & models.Q(credit__gte=Decimal("0.00")),
                name="vledger_amounts_nonnegative",
            ),
        ]

    def __str__(self):
        side = f"DR {self.debit}" if self.debit else f"CR {self.credit}"
        return f"{self.entry_type} {side} ({self.reference_no or self.reference_id})"

    @property
    def amount(self) -> Decimal:
        return self.debit if self.debit else self.credit

    def clean(self):
        if self.entry_type not in {t for t, _ in self.ENTRY_TYPES}:
            raise ValidationError("Invalid entry_type")

        if not self.reference_id:
            raise ValidationError("reference_id is required")

        debit = Decimal(self.debit or 0)
        credit = Decimal(self.credit or 0)

        if debit < 0 or credit < 0:
            raise ValidationError("Debit or credit cannot be negative")
        if (debit > 0) == (credit > 0):
            raise ValidationError("Exactly one of debit / credit must be non-zero")

        if self.entry_type in self.DEBIT_TYPES and debit <= 0:
            raise ValidationError(f"{self.entry_type} entries are debits")
        if self.entry_type in self.CREDIT_TYPES and credit <= 0:
            raise ValidationError(f"{self.entry_type} entries are credits")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("VendorLedgerEntry records are immutable and cannot be modified")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("VendorLedgerEntry records are immutable and cannot be deleted")
