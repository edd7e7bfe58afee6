# products/models/variant.py

"""
PRODUCT VARIANT (STOCK-BEARING UNIT)

Stock pools:
- current_stock: fresh, sellable units
- damaged_stock: quarantined units (damage write-offs, returnable to vendor)

Both pools are service-managed only: products.services.stock.change_stock()
is the single write path, under a row lock, and never lets a pool go negative.
cost_price tracks the latest purchased unit cost.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from .product import Product


class ProductVariant(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="variants",
    )

    sku = models.CharField(max_length=128, unique=True, db_index=True)
    name = models.CharField(max_length=255, blank=True, default="")

    cost_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    current_stock = models.IntegerField(default=0)
    damaged_stock = models.IntegerField(default=0)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sku"]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_stock__gte=0),
                name="variant_current_stock_gte_0",
            ),
            models.CheckConstraint(
                condition=Q(damaged_stock__gte=0),
                name="variant_damaged_stock_gte_0",
            ),
            models.CheckConstraint(
                condition=Q(cost_price__gte=0),
                name="variant_cost_price_gte_0",
            ),
        ]

    def clean(self):
        if self.current_stock is not None and self.current_stock < 0:
            raise ValidationError("current_stock cannot be negative")
        if self.damaged_stock is not None and self.damaged_stock < 0:
            raise ValidationError("damaged_stock cannot be negative")
        if self.cost_price is not None and Decimal(self.cost_price) < 0:
            raise ValidationError("cost_price cannot be negative")

    @property
    def display_name(self) -> str:
        product_name = getattr(self.product, "name", "") or ""
        if self.name:
            return f"{product_name} - {self.name}"
        return product_name

    def __str__(self):
        return f"{self.display_name} ({self.sku})"
