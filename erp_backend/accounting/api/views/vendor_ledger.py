"""
PATH: accounting/api/views/vendor_ledger.py

VENDOR LEDGER API

- GET  vendors/<id>/summary/       projected aggregates (O(1) read)
- GET  vendors/<id>/transactions/  ledger entries, newest first, limit/offset
- POST vendors/<id>/reconcile/     full replay (optionally dedupe first),
                                   requires ledger.reconcile
"""

from __future__ import annotations

from dataclasses import asdict

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.api.serializers import (
    VendorLedgerEntrySerializer,
    VendorReconcileSerializer,
    VendorTransactionsQuerySerializer,
)
from accounting.services.balance_projector import reconcile_vendor
from accounting.services.reconciliation import deduplicate_ledger_entries, verify_vendor_ledger
from accounting.services.vendor_statements import vendor_financial_summary, vendor_transactions
from core.api import error_response
from core.exceptions import NotFoundError, ServiceError
from permissions.roles import CAP_LEDGER_RECONCILE, CAP_VENDORS_VIEW, HasCapability
from purchases.models import Vendor


class VendorSummaryView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_VENDORS_VIEW

    @extend_schema(tags=["accounting"], responses={200: dict, 404: dict})
    def get(self, request, vendor_id):
        try:
            summary = vendor_financial_summary(vendor_id)
        except ServiceError as exc:
            return error_response(exc)
        return Response(summary, status=status.HTTP_200_OK)


@extend_schema(
    tags=["accounting"],
    parameters=[
        OpenApiParameter(name="limit", type=int, location=OpenApiParameter.QUERY, required=False),
        OpenApiParameter(name="offset", type=int, location=OpenApiParameter.QUERY, required=False),
        OpenApiParameter(name="entry_type", type=str, location=OpenApiParameter.QUERY, required=False),
        OpenApiParameter(
            name="date_from",
            type=str,
            location=OpenApiParameter.QUERY,
            required=False,
            description="YYYY-MM-DD, inclusive (business date).",
        ),
        OpenApiParameter(
            name="date_to",
            type=str,
            location=OpenApiParameter.QUERY,
            required=False,
            description="YYYY-MM-DD, inclusive (business date).",
        ),
    ],
    responses={200: dict, 400: dict, 404: dict},
)
class VendorTransactionsView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_VENDORS_VIEW

    def get(self, request, vendor_id):
        query = VendorTransactionsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        try:
            page = vendor_transactions(
                vendor_id,
                limit=params.get("limit", 20),
                offset=params.get("offset", 0),
                entry_type=params.get("entry_type"),
                date_from=params.get("date_from"),
                date_to=params.get("date_to"),
            )
        except ServiceError as exc:
            return error_response(exc)

        page["results"] = VendorLedgerEntrySerializer(page["results"], many=True).data
        return Response(page, status=status.HTTP_200_OK)


class VendorReconcileView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_LEDGER_RECONCILE
    serializer_class = VendorReconcileSerializer

    @extend_schema(tags=["accounting"], request=VendorReconcileSerializer, responses={200: dict, 404: dict})
    def post(self, request, vendor_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        dry_run = s.validated_data["dry_run"]

        if not Vendor.objects.filter(pk=vendor_id).exists():
            return error_response(NotFoundError("Vendor not found"))

        payload = {"vendor_id": str(vendor_id), "dry_run": dry_run}

        if s.validated_data["dedupe"]:
            dedup = deduplicate_ledger_entries(vendor_id=vendor_id, dry_run=dry_run)
            payload["deduplicated"] = {"groups": dedup.groups, "deleted": dedup.deleted}

        result = reconcile_vendor(vendor_id, dry_run=dry_run)
        payload["reconcile"] = {
            "entry_count": result.entry_count,
            "entries_corrected": result.entries_corrected,
            "aggregates_changed": result.aggregates_changed,
            "balance_before": str(result.balance_before),
            "balance_after": str(result.balance_after),
        }

        report = verify_vendor_ledger(vendor_id)
        payload["verification"] = {"ok": report.ok, **asdict(report)}

        return Response(payload, status=status.HTTP_200_OK)
