# purchases/api/serializers.py

from rest_framework import serializers

from purchases.models import Purchase, PurchaseItem, Vendor, VendorPayment


class VendorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Vendor
        fields = [
            "id",
            "name",
            "contact_person",
            "phone",
            "email",
            "address",
            "is_active",
            "balance",
            "total_purchases",
            "total_payments",
            "total_returns",
            "purchase_count",
            "payment_count",
            "return_count",
            "last_purchase_date",
            "last_payment_date",
            "created_at",
            "updated_at",
        ]
        read_only_fields = (
            "id",
            "balance",
            "total_purchases",
            "total_payments",
            "total_returns",
            "purchase_count",
            "payment_count",
            "return_count",
            "last_purchase_date",
            "last_payment_date",
            "created_at",
            "updated_at",
        )


class PurchaseLineSerializer(serializers.Serializer):
    variant_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    cost_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)


class PurchaseCreateSerializer(serializers.Serializer):
    vendor_id = serializers.UUIDField()
    items = PurchaseLineSerializer(many=True, allow_empty=False)

    invoice_no = serializers.CharField(required=False, allow_blank=True, max_length=64)
    invoice_date = serializers.DateField(required=False)

    discount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False, default=0)
    tax = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False, default=0)

    notes = serializers.CharField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(required=False, allow_blank=True, max_length=128)


class PurchaseItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = PurchaseItem
        fields = [
            "id",
            "variant",
            "product_name",
            "variant_name",
            "sku",
            "quantity",
            "cost_price",
            "line_total",
        ]


class PurchaseSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.name", read_only=True)
    items = PurchaseItemSerializer(many=True, read_only=True)
    inventory_transaction_id = serializers.SerializerMethodField()

    class Meta:
        model = Purchase
        fields = [
            "id",
            "vendor",
            "vendor_name",
            "invoice_no",
            "invoice_date",
            "status",
            "subtotal",
            "discount_amount",
            "tax_amount",
            "total_amount",
            "notes",
            "items",
            "inventory_transaction_id",
            "created_by",
            "created_at",
        ]

    def get_inventory_transaction_id(self, obj):
        txn = getattr(obj, "inventory_transaction", None)
        return str(txn.id) if txn else None


class PurchaseCancelSerializer(serializers.Serializer):
    reason = serializers.CharField()


class VendorPaymentCreateSerializer(serializers.Serializer):
    vendor_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)

    payment_method = serializers.ChoiceField(
        choices=[m for m, _ in VendorPayment.METHODS],
        required=False,
        default=VendorPayment.METHOD_CASH,
    )
    payment_date = serializers.DateField(required=False)

    transaction_ref = serializers.CharField(required=False, allow_blank=True, default="")
    bank_name = serializers.CharField(required=False, allow_blank=True, default="")
    remarks = serializers.CharField(required=False, allow_blank=True, default="")
    receipt_url = serializers.URLField(required=False, allow_blank=True, default="")

    idempotency_key = serializers.CharField(required=False, allow_blank=True, max_length=128)


class VendorPaymentSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.name", read_only=True)

    class Meta:
        model = VendorPayment
        fields = [
            "id",
            "vendor",
            "vendor_name",
            "payment_no",
            "payment_date",
            "amount",
            "payment_method",
            "reference_number",
            "bank_name",
            "remarks",
            "receipt_url",
            "balance_before",
            "balance_after",
            "status",
            "created_by",
            "created_at",
        ]
