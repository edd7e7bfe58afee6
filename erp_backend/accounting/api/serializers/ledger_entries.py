# accounting/api/serializers/ledger_entries.py

from rest_framework import serializers

from accounting.models import VendorLedgerEntry


class VendorLedgerEntrySerializer(serializers.ModelSerializer):
    performed_by_email = serializers.SerializerMethodField()

    class Meta:
        model = VendorLedgerEntry
        fields = [
            "id",
            "vendor",
            "entry_type",
            "reference_id",
            "reference_no",
            "debit",
            "credit",
            "running_balance",
            "description",
            "performed_by",
            "performed_by_email",
            "transaction_date",
            "created_at",
        ]
        read_only_fields = fields

    def get_performed_by_email(self, obj):
        return getattr(obj.performed_by, "email", None)


class VendorTransactionsQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, default=20)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)
    entry_type = serializers.ChoiceField(
        choices=[t for t, _ in VendorLedgerEntry.ENTRY_TYPES],
        required=False,
    )
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_to": "date_to must be on or after date_from"})
        return attrs


class VendorReconcileSerializer(serializers.Serializer):
    dedupe = serializers.BooleanField(required=False, default=False)
    dry_run = serializers.BooleanField(required=False, default=False)
