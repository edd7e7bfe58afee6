# products/models/product.py

import uuid

from django.db import models


class Product(models.Model):
    """
    Catalog product.

    STOCK MODEL (IMPORTANT):
    - Product itself does NOT store stock
    - Stock lives on ProductVariant (current_stock / damaged_stock)
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255, db_index=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name
