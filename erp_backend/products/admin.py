# products/admin.py
"""
Admin rules:

- Product / variant master data is editable.
- current_stock / damaged_stock are read-only here: stock only moves through
  products.services.stock.change_stock (purchases, approved inventory
  transactions, voids), which also writes the StockMovement audit row.
- StockMovement rows are immutable.
"""

from __future__ import annotations

from django.contrib import admin

from products.models import Product, ProductVariant, StockMovement


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    fields = ("sku", "name", "cost_price", "current_stock", "damaged_stock", "is_active")
    readonly_fields = ("current_stock", "damaged_stock")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name",)
    ordering = ("name",)
    inlines = [ProductVariantInline]


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ("sku", "product", "name", "cost_price", "current_stock", "damaged_stock", "is_active")
    list_filter = ("is_active",)
    search_fields = ("sku", "name", "product__name")
    ordering = ("sku",)
    readonly_fields = ("current_stock", "damaged_stock", "created_at", "updated_at")


# =====================================================
# STOCK MOVEMENT (STRICTLY IMMUTABLE)
# =====================================================

@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        "variant",
        "reason",
        "fresh_change",
        "damaged_change",
        "fresh_after",
        "damaged_after",
        "reference_id",
        "created_at",
    )
    list_filter = ("reason",)
    search_fields = ("variant__sku", "note")
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
