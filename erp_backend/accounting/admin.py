# accounting/admin.py

from django.contrib import admin

from accounting.models import VendorLedgerEntry

# ============================================================
# VENDOR LEDGER ENTRY (STRICTLY IMMUTABLE)
# ============================================================


@admin.register(VendorLedgerEntry)
class VendorLedgerEntryAdmin(admin.ModelAdmin):
    list_display = (
        "transaction_date",
        "vendor",
        "entry_type",
        "reference_no",
        "debit",
        "credit",
        "running_balance",
        "created_at",
    )
    list_filter = ("entry_type", "transaction_date")
    search_fields = ("reference_no", "vendor__name", "description")
    ordering = ("vendor", "transaction_date", "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
