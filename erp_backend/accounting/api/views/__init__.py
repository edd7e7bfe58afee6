# accounting/api/views/__init__.py

from accounting.api.views.vendor_ledger import (
    VendorReconcileView,
    VendorSummaryView,
    VendorTransactionsView,
)

__all__ = [
    "VendorReconcileView",
    "VendorSummaryView",
    "VendorTransactionsView",
]
