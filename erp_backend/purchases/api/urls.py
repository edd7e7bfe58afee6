# purchases/api/urls.py

from django.urls import path

from purchases.api.views import (
    PurchaseCancelView,
    PurchaseDetailView,
    PurchaseListCreateView,
    VendorDetailView,
    VendorListCreateView,
    VendorPaymentListCreateView,
)

urlpatterns = [
    path("", PurchaseListCreateView.as_view(), name="purchases"),
    path("vendors/", VendorListCreateView.as_view(), name="purchase-vendors"),
    path("vendors/<uuid:vendor_id>/", VendorDetailView.as_view(), name="purchase-vendor-detail"),
    path("payments/", VendorPaymentListCreateView.as_view(), name="vendor-payments"),
    path("<uuid:purchase_id>/", PurchaseDetailView.as_view(), name="purchase-detail"),
    path("<uuid:purchase_id>/cancel/", PurchaseCancelView.as_view(), name="purchase-cancel"),
]
