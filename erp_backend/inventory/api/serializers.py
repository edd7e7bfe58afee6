# inventory/api/serializers.py

from rest_framework import serializers

from inventory.models import InventoryTransaction, InventoryTransactionItem


class InventoryTransactionItemSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="variant.sku", read_only=True)
    variant_name = serializers.CharField(source="variant.display_name", read_only=True)
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = InventoryTransactionItem
        fields = [
            "id",
            "variant",
            "sku",
            "variant_name",
            "quantity",
            "unit_cost",
            "source_type",
            "stock_before",
            "stock_after",
            "line_total",
        ]


class InventoryTransactionSerializer(serializers.ModelSerializer):
    vendor_name = serializers.SerializerMethodField()
    items = InventoryTransactionItemSerializer(many=True, read_only=True)
    requires_approval = serializers.SerializerMethodField()

    class Meta:
        model = InventoryTransaction
        fields = [
            "id",
            "transaction_type",
            "invoice_no",
            "transaction_date",
            "status",
            "requires_approval",
            "vendor",
            "vendor_name",
            "purchase",
            "reference_transaction",
            "reason",
            "notes",
            "total_cost",
            "items",
            "performed_by",
            "approved_by",
            "approval_date",
            "rejected_by",
            "rejected_at",
            "rejection_reason",
            "voided_by",
            "voided_at",
            "void_reason",
            "created_at",
        ]
        read_only_fields = fields

    def get_vendor_name(self, obj):
        return getattr(obj.vendor, "name", None)

    def get_requires_approval(self, obj):
        return obj.status == InventoryTransaction.STATUS_PENDING


class TransactionLineInputSerializer(serializers.Serializer):
    variant_id = serializers.UUIDField()
    quantity = serializers.IntegerField()
    unit_cost = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    source_type = serializers.ChoiceField(
        choices=[s for s, _ in InventoryTransactionItem.SOURCE_TYPES],
        required=False,
        default=InventoryTransactionItem.SOURCE_FRESH,
    )


class InventoryTransactionCreateSerializer(serializers.Serializer):
    transaction_type = serializers.ChoiceField(choices=[t for t, _ in InventoryTransaction.TYPES])
    items = TransactionLineInputSerializer(many=True, allow_empty=False)

    invoice_no = serializers.CharField(required=False, allow_blank=True, max_length=64)
    transaction_date = serializers.DateField(required=False)
    vendor_id = serializers.UUIDField(required=False, allow_null=True)
    reference_transaction_id = serializers.UUIDField(required=False, allow_null=True)

    reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(required=False, allow_blank=True, max_length=128)


class RejectInputSerializer(serializers.Serializer):
    rejection_reason = serializers.CharField()


class VoidInputSerializer(serializers.Serializer):
    reason = serializers.CharField()
