# purchases/models.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from core.money import money
from products.models import ProductVariant

User = settings.AUTH_USER_MODEL


class Vendor(models.Model):
    """
    Vendor master + denormalized financial snapshot.

    The financial fields are owned by the balance projector
    (accounting.services.balance_projector). Recorders never write them.

    Invariant (after projection):
        balance == total_purchases - total_payments - total_returns
    positive balance = amount owed to the vendor, negative = advance paid.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=200)
    contact_person = models.CharField(max_length=200, blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    address = models.TextField(blank=True, default="")

    is_active = models.BooleanField(default=True)

    # ---- projector-owned aggregates ----
    balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"), editable=False
    )
    total_purchases = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"), editable=False
    )
    total_payments = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"), editable=False
    )
    total_returns = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"), editable=False
    )
    purchase_count = models.IntegerField(default=0, editable=False)
    payment_count = models.IntegerField(default=0, editable=False)
    return_count = models.IntegerField(default=0, editable=False)
    last_purchase_date = models.DateField(null=True, blank=True, editable=False)
    last_payment_date = models.DateField(null=True, blank=True, editable=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="vendor_name_idx"),
            models.Index(fields=["is_active"], name="vendor_is_active_idx"),
        ]

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})

    def save(self, *args, **kwargs):
        if self.name is not None:
            self.name = self.name.strip()
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class Purchase(models.Model):
    """
    Vendor purchase header.

    Recording is performed by purchases.services.purchase_service:
    - header + items + stock + inventory transaction + ledger debit, one atomic unit
    - status COMPLETED on creation; CANCELLED only through a void of its
      inventory transaction (which reverses stock and ledger)
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    STATUS_DRAFT = "draft"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUSES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.PROTECT,
        related_name="purchases",
    )

    invoice_no = models.CharField(max_length=64)
    invoice_date = models.DateField(default=timezone.localdate)

    status = models.CharField(max_length=20, choices=STATUSES, default=STATUS_DRAFT)

    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    notes = models.TextField(blank=True, default="")

    # client retry key: same key => same purchase, no second effect
    idempotency_key = models.CharField(max_length=128, null=True, blank=True, unique=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="purchases_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["vendor", "invoice_no"],
                name="uniq_vendor_invoice_no",
            ),
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=Decimal("0.00")),
                name="purchase_subtotal_nonnegative",
            ),
            models.CheckConstraint(
                condition=models.Q(discount_amount__gte=Decimal("0.00")),
                name="purchase_discount_nonnegative",
            ),
            models.CheckConstraint(
                condition=models.Q(tax_amount__gte=Decimal("0.00")),
                name="purchase_tax_nonnegative",
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=Decimal("0.00")),
                name="purchase_total_nonnegative",
            ),
        ]
        indexes = [
            models.Index(fields=["vendor", "created_at"], name="purchase_vendor_created_idx"),
            models.Index(fields=["status", "created_at"], name="purchase_status_created_idx"),
        ]

    def clean(self):
        if not (self.invoice_no or "").strip():
            raise ValidationError({"invoice_no": "invoice_no is required"})

        expected = money(self.subtotal) - money(self.discount_amount) + money(self.tax_amount)
        if money(self.total_amount) != expected:
            raise ValidationError(
                {"total_amount": "total_amount must equal subtotal - discount_amount + tax_amount"}
            )

    def save(self, *args, **kwargs):
        if self.invoice_no is not None:
            self.invoice_no = self.invoice_no.strip()
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.invoice_no} ({self.vendor.name})"


class PurchaseItem(models.Model):
    """
    Purchase line.

    product_name / variant_name / sku are snapshots taken at purchase time so
    historical invoices stay stable when the catalog changes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    purchase = models.ForeignKey(
        Purchase,
        on_delete=models.CASCADE,
        related_name="items",
    )
    variant = models.ForeignKey(
        ProductVariant,
        on_delete=models.PROTECT,
        related_name="purchase_items",
    )

    product_name = models.CharField(max_length=255)
    variant_name = models.CharField(max_length=255, blank=True, default="")
    sku = models.CharField(max_length=128)

    quantity = models.PositiveIntegerField()
    cost_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="purchase_item_quantity_gt_zero",
            ),
            models.CheckConstraint(
                condition=models.Q(cost_price__gte=Decimal("0.00")),
                name="purchase_item_cost_nonnegative",
            ),
        ]

    def clean(self):
        if self.cost_price is not None and self.cost_price < Decimal("0.00"):
            raise ValidationError({"cost_price": "cost_price cannot be negative"})

    @property
    def line_total(self) -> Decimal:
        return money(Decimal(str(self.quantity)) * Decimal(str(self.cost_price)))

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.product_name} x {self.quantity} ({self.sku})"


class VendorPayment(models.Model):
    """
    Payment to a vendor.

    balance_before / balance_after are point-in-time snapshots for audit display,
    taken under the vendor row lock. They must agree with the vendor balance the
    projector produces for the payment's ledger credit.

    Overpayment is allowed: balance_after may be negative (advance).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.PROTECT,
        related_name="payments",
    )

    payment_no = models.CharField(max_length=32, unique=True)
    payment_date = models.DateField(default=timezone.localdate)
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    METHOD_CASH = "cash"
    METHOD_BANK = "bank_transfer"
    METHOD_CHEQUE = "cheque"
    METHOD_MOBILE = "mobile_wallet"

    METHODS = [
        (METHOD_CASH, "Cash"),
        (METHOD_BANK, "Bank Transfer"),
        (METHOD_CHEQUE, "Cheque"),
        (METHOD_MOBILE, "Mobile Wallet"),
    ]

    payment_method = models.CharField(max_length=20, choices=METHODS, default=METHOD_CASH)

    reference_number = models.CharField(max_length=128, blank=True, default="")
    bank_name = models.CharField(max_length=128, blank=True, default="")
    remarks = models.CharField(max_length=255, blank=True, default="")
    receipt_url = models.URLField(max_length=500, blank=True, default="")

    balance_before = models.DecimalField(max_digits=14, decimal_places=2)
    balance_after = models.DecimalField(max_digits=14, decimal_places=2)

    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUSES = [
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    status = models.CharField(max_length=20, choices=STATUSES, default=STATUS_COMPLETED)

    idempotency_key = models.CharField(max_length=128, null=True, blank=True, unique=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vendor_payments_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=Decimal("0.00")),
                name="vendor_payment_amount_gt_zero",
            ),
        ]
        indexes = [
            models.Index(fields=["vendor", "created_at"], name="vpayment_vendor_created_idx"),
        ]

    def clean(self):
        if self.payment_method not in {m for m, _ in self.METHODS}:
            raise ValidationError({"payment_method": "Invalid payment_method"})

        if self.amount is not None and self.amount <= Decimal("0.00"):
            raise ValidationError({"amount": "amount must be > 0"})

        if (
            self.balance_before is not None
            and self.balance_after is not None
            and self.amount is not None
            and money(self.balance_after) != money(self.balance_before) - money(self.amount)
        ):
            raise ValidationError({"balance_after": "balance_after must equal balance_before - amount"})

    def save(self, *args, **kwargs):
        if self.remarks is not None:
            self.remarks = self.remarks.strip()
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.payment_no} {self.vendor.name} - {self.amount}"
