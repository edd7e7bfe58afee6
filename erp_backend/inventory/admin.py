# inventory/admin.py

"""
Inventory transactions are read-only in admin: status changes must go
through the approval service so stock and ledger move together.
"""

from django.contrib import admin

from inventory.models import InventoryTransaction, InventoryTransactionItem


class InventoryTransactionItemInline(admin.TabularInline):
    model = InventoryTransactionItem
    extra = 0
    can_delete = False
    readonly_fields = ("variant", "quantity", "unit_cost", "source_type", "stock_before", "stock_after")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_no",
        "transaction_type",
        "status",
        "vendor",
        "total_cost",
        "performed_by",
        "approved_by",
        "created_at",
    )
    list_filter = ("transaction_type", "status")
    search_fields = ("invoice_no", "vendor__name", "reason")
    ordering = ("-created_at",)
    inlines = [InventoryTransactionItemInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
