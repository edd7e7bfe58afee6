# inventory/api/filters.py

import django_filters

from inventory.models import InventoryTransaction


class InventoryTransactionFilter(django_filters.FilterSet):
    transaction_type = django_filters.ChoiceFilter(choices=InventoryTransaction.TYPES)
    status = django_filters.ChoiceFilter(choices=InventoryTransaction.STATUSES)
    vendor = django_filters.UUIDFilter(field_name="vendor_id")
    date_from = django_filters.DateFilter(field_name="transaction_date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="transaction_date", lookup_expr="lte")

    class Meta:
        model = InventoryTransaction
        fields = ["transaction_type", "status", "vendor", "date_from", "date_to"]
