# inventory/api/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from inventory.api.viewsets import InventoryTransactionViewSet

router = DefaultRouter()
router.register(r"transactions", InventoryTransactionViewSet, basename="inventory-transactions")

urlpatterns = [
    path("", include(router.urls)),
]
