# purchases/admin.py

"""
Vendor financial fields are projector-owned and shown read-only.
Purchases and payments are recorded through the services (ledger + stock in
one atomic unit), so admin does not create or edit them.
"""

from django.contrib import admin

from purchases.models import Purchase, PurchaseItem, Vendor, VendorPayment

VENDOR_AGGREGATES = (
    "balance",
    "total_purchases",
    "total_payments",
    "total_returns",
    "purchase_count",
    "payment_count",
    "return_count",
    "last_purchase_date",
    "last_payment_date",
)


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("name", "contact_person", "phone", "balance", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "contact_person", "phone", "email")
    ordering = ("name",)
    readonly_fields = VENDOR_AGGREGATES + ("created_at", "updated_at")


class PurchaseItemInline(admin.TabularInline):
    model = PurchaseItem
    extra = 0
    can_delete = False
    readonly_fields = ("variant", "product_name", "variant_name", "sku", "quantity", "cost_price")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ("invoice_no", "vendor", "invoice_date", "status", "total_amount", "created_at")
    list_filter = ("status", "invoice_date")
    search_fields = ("invoice_no", "vendor__name")
    ordering = ("-created_at",)
    inlines = [PurchaseItemInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(VendorPayment)
class VendorPaymentAdmin(admin.ModelAdmin):
    list_display = ("payment_no", "vendor", "payment_date", "amount", "payment_method", "balance_after", "status")
    list_filter = ("payment_method", "status", "payment_date")
    search_fields = ("payment_no", "vendor__name", "reference_number")
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
