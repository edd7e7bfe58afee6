# inventory/models/transaction.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from core.money import money
from products.models import ProductVariant

User = settings.AUTH_USER_MODEL


class InventoryTransaction(models.Model):
    """
    Any stock-affecting event: purchase, purchase_return, damage, adjustment.

    GUARANTEES:
    - Stock moves ONLY when the transaction reaches APPROVED
      (inventory.services.approval_service / purchase_service)
    - Status changes follow inventory.lifecycle.ALLOWED_TRANSITIONS
    - Items carry stock_before / stock_after only once stock has moved

    Purchases are created by purchases.services.purchase_service and are linked
    to their Purchase header through `purchase`.
    """

    TYPE_PURCHASE = "purchase"
    TYPE_PURCHASE_RETURN = "purchase_return"
    TYPE_DAMAGE = "damage"
    TYPE_ADJUSTMENT = "adjustment"

    TYPES = [
        (TYPE_PURCHASE, "Purchase"),
        (TYPE_PURCHASE_RETURN, "Purchase Return"),
        (TYPE_DAMAGE, "Damage"),
        (TYPE_ADJUSTMENT, "Adjustment"),
    ]

    INVOICE_PREFIXES = {
        TYPE_PURCHASE: "PUR",
        TYPE_PURCHASE_RETURN: "RET",
        TYPE_DAMAGE: "DMG",
        TYPE_ADJUSTMENT: "ADJ",
    }

    REASON_REQUIRED_TYPES = {TYPE_PURCHASE_RETURN, TYPE_DAMAGE, TYPE_ADJUSTMENT}
    VENDOR_REQUIRED_TYPES = {TYPE_PURCHASE, TYPE_PURCHASE_RETURN}

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_VOIDED = "voided"

    STATUSES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_VOIDED, "Voided"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    transaction_type = models.CharField(max_length=20, choices=TYPES)
    invoice_no = models.CharField(max_length=64, unique=True)
    transaction_date = models.DateField(default=timezone.localdate)

    status = models.CharField(max_length=20, choices=STATUSES, default=STATUS_PENDING)

    vendor = models.ForeignKey(
        "purchases.Vendor",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="inventory_transactions",
    )

    purchase = models.OneToOneField(
        "purchases.Purchase",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="inventory_transaction",
    )

    # purchase_return -> the approved purchase transaction being returned against
    reference_transaction = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="returns",
    )

    reason = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    total_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    performed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_transactions_performed",
    )

    approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_transactions_approved",
    )
    approval_date = models.DateTimeField(null=True, blank=True)

    rejected_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_transactions_rejected",
    )
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, default="")

    voided_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_transactions_voided",
    )
    voided_at = models.DateTimeField(null=True, blank=True)
    void_reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_cost__gte=Decimal("0.00")),
                name="inventory_txn_total_cost_nonnegative",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="invtxn_status_created_idx"),
            models.Index(fields=["transaction_type", "status"], name="invtxn_type_status_idx"),
            models.Index(fields=["vendor", "created_at"], name="invtxn_vendor_created_idx"),
        ]

    def clean(self):
        if self.transaction_type in self.VENDOR_REQUIRED_TYPES and not self.vendor_id:
            raise ValidationError({"vendor": f"vendor is required for {self.transaction_type}"})

        if self.transaction_type in self.REASON_REQUIRED_TYPES and not (self.reason or "").strip():
            raise ValidationError({"reason": f"reason is required for {self.transaction_type}"})

        if self.reference_transaction_id and self.transaction_type != self.TYPE_PURCHASE_RETURN:
            raise ValidationError(
                {"reference_transaction": "only purchase returns reference another transaction"}
            )

        if self.status == self.STATUS_APPROVED and not self.approval_date:
            raise ValidationError({"approval_date": "approval_date is required when approved"})

        if self.status == self.STATUS_REJECTED and not (self.rejection_reason or "").strip():
            raise ValidationError({"rejection_reason": "rejection_reason is required when rejected"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.invoice_no} ({self.transaction_type}, {self.status})"


class InventoryTransactionItem(models.Model):
    """
    One variant line of an inventory transaction.

    quantity:
    - purchase / purchase_return / damage: positive unit count, direction comes
      from the transaction type
    - adjustment: signed, non-zero delta on current_stock

    source_type picks the pool a purchase_return draws from.
    stock_before / stock_after describe that pool at the moment of approval.
    """

    SOURCE_FRESH = "fresh"
    SOURCE_DAMAGED = "damaged"

    SOURCE_TYPES = [
        (SOURCE_FRESH, "Fresh"),
        (SOURCE_DAMAGED, "Damaged"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    transaction = models.ForeignKey(
        InventoryTransaction,
        on_delete=models.CASCADE,
        related_name="items",
    )
    variant = models.ForeignKey(
        ProductVariant,
        on_delete=models.PROTECT,
        related_name="inventory_transaction_items",
    )

    quantity = models.IntegerField()
    unit_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    source_type = models.CharField(max_length=10, choices=SOURCE_TYPES, default=SOURCE_FRESH)

    stock_before = models.IntegerField(null=True, blank=True)
    stock_after = models.IntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(quantity=0),
                name="inventory_item_quantity_nonzero",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_cost__gte=Decimal("0.00")),
                name="inventory_item_unit_cost_nonnegative",
            ),
        ]

    def clean(self):
        if self.quantity == 0:
            raise ValidationError({"quantity": "quantity cannot be 0"})
        if self.unit_cost is not None and self.unit_cost < Decimal("0.00"):
            raise ValidationError({"unit_cost": "unit_cost cannot be negative"})

    @property
    def line_total(self) -> Decimal:
        return money(Decimal(abs(int(self.quantity or 0))) * Decimal(str(self.unit_cost)))

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.variant_id} x {self.quantity} ({self.source_type})"
