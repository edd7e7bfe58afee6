# products/models/stock_movement.py

"""
STOCK MOVEMENT AUDIT LOG

Immutable record of every change to a variant's stock pools.

GUARANTEES:
- Append-only (no updates, no deletes)
- Created ONCE by products.services.stock.change_stock()
- Stores before/after for both pools so history can be replayed
"""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from .variant import ProductVariant


class StockMovement(models.Model):
    class Reason(models.TextChoices):
        PURCHASE = "PURCHASE", "Purchase"
        PURCHASE_RETURN = "PURCHASE_RETURN", "Purchase Return"
        DAMAGE = "DAMAGE", "Damage"
        ADJUSTMENT = "ADJUSTMENT", "Manual Adjustment"
        VOID_REVERSAL = "VOID_REVERSAL", "Void Reversal"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    variant = models.ForeignKey(
        ProductVariant, on_delete=models.CASCADE, related_name="stock_movements"
    )

    reason = models.CharField(max_length=20, choices=Reason.choices)

    fresh_change = models.IntegerField(default=0)
    damaged_change = models.IntegerField(default=0)

    fresh_before = models.IntegerField()
    fresh_after = models.IntegerField()
    damaged_before = models.IntegerField()
    damaged_after = models.IntegerField()

    # id of the inventory transaction that caused the movement
    reference_id = models.UUIDField(null=True, blank=True, db_index=True)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )

    note = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["variant", "created_at"], name="stockmove_variant_created_idx"),
        ]

    def clean(self):
        if self.fresh_change == 0 and self.damaged_change == 0:
            raise ValidationError("A stock movement must change at least one pool")
        if self.fresh_after != self.fresh_before + self.fresh_change:
            raise ValidationError("fresh_after does not match fresh_before + fresh_change")
        if self.damaged_after != self.damaged_before + self.damaged_change:
            raise ValidationError("damaged_after does not match damaged_before + damaged_change")
        if self.fresh_after < 0 or self.damaged_after < 0:
            raise ValidationError("Stock pools cannot go negative")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("StockMovement records are immutable")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "StockMovement records are immutable and cannot be deleted"
        )

    def __str__(self):
        return f"{self.variant_id} | {self.reason} | {self.fresh_change:+d}/{self.damaged_change:+d}"
