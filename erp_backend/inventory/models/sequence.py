# inventory/models/sequence.py

from django.db import models


class InventorySequence(models.Model):
    """
    Per-type counter for generated invoice numbers (PUR-, RET-, DMG-, ADJ-).

    Read and bumped under select_for_update by
    inventory.services.numbering.next_invoice_number.
    """

    transaction_type = models.CharField(max_length=20, unique=True)
    next_value = models.PositiveBigIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.transaction_type} -> {self.next_value}"
