# accounting/api/urls.py

from django.urls import path

from accounting.api.views.vendor_ledger import (
    VendorReconcileView,
    VendorSummaryView,
    VendorTransactionsView,
)

urlpatterns = [
    path(
        "vendors/<uuid:vendor_id>/summary/",
        VendorSummaryView.as_view(),
        name="vendor-ledger-summary",
    ),
    path(
        "vendors/<uuid:vendor_id>/transactions/",
        VendorTransactionsView.as_view(),
        name="vendor-ledger-transactions",
    ),
    path(
        "vendors/<uuid:vendor_id>/reconcile/",
        VendorReconcileView.as_view(),
        name="vendor-ledger-reconcile",
    ),
]
