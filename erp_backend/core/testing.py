# core/testing.py

"""
Shared fixtures for the app test suites (users by role, vendors, variants).
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model

from products.models import Product, ProductVariant
from purchases.models import Vendor

User = get_user_model()


def make_user(role: str = "staff", **extra):
    tag = uuid.uuid4().hex[:8]
    return User.objects.create_user(
        email=f"{role}_{tag}@example.com",
        password="password123",
        role=role,
        **extra,
    )


def make_vendor(name: str = "Acme Supplies", **extra) -> Vendor:
    return Vendor.objects.create(name=name, **extra)


def make_variant(
    *,
    sku: str | None = None,
    name: str = "500mg",
    cost_price=Decimal("0.00"),
    current_stock: int = 0,
    damaged_stock: int = 0,
    product_name: str = "Paracetamol",
) -> ProductVariant:
    product = Product.objects.create(name=product_name)
    return ProductVariant.objects.create(
        product=product,
        sku=sku or f"SKU-{uuid.uuid4().hex[:8].upper()}",
        name=name,
        cost_price=cost_price,
        current_stock=current_stock,
        damaged_stock=damaged_stock,
    )
