# inventory/api/viewsets.py

"""
======================================================
PATH: inventory/api/viewsets.py
======================================================
INVENTORY TRANSACTION VIEWSET (MAKER-CHECKER)

- list / retrieve (filters: transaction_type, status, vendor, date range)
- create: privileged actors are approved on the spot, everyone else goes
  to PENDING
- pending: approval queue
- approve / reject / void: privileged actors only
- returnable: remaining returnable quantities of an approved purchase
======================================================
"""

from __future__ import annotations

from dataclasses import asdict

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.api import error_response
from core.exceptions import ServiceError
from inventory.api.filters import InventoryTransactionFilter
from inventory.api.serializers import (
    InventoryTransactionCreateSerializer,
    InventoryTransactionSerializer,
    RejectInputSerializer,
    VoidInputSerializer,
)
from inventory.models import InventoryTransaction
from inventory.services.approval_service import (
    approve_inventory_transaction,
    reject_inventory_transaction,
    void_inventory_transaction,
)
from inventory.services.returns import returnable_quantities
from inventory.services.transaction_service import TransactionLine, create_inventory_transaction
from permissions.roles import (
    CAP_INVENTORY_APPROVE,
    CAP_INVENTORY_CREATE,
    CAP_INVENTORY_VOID,
    HasCapability,
)

ACTION_CAPABILITIES = {
    "list": CAP_INVENTORY_CREATE,
    "retrieve": CAP_INVENTORY_CREATE,
    "create": CAP_INVENTORY_CREATE,
    "pending": CAP_INVENTORY_CREATE,
    "returnable": CAP_INVENTORY_CREATE,
    "approve": CAP_INVENTORY_APPROVE,
    "reject": CAP_INVENTORY_APPROVE,
    "void": CAP_INVENTORY_VOID,
}


class InventoryTransactionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = InventoryTransactionSerializer
    permission_classes = [IsAuthenticated, HasCapability]
    filterset_class = InventoryTransactionFilter

    @property
    def required_capability(self):
        return ACTION_CAPABILITIES.get(self.action)

    def get_queryset(self):
        return (
            InventoryTransaction.objects.select_related("vendor")
            .prefetch_related("items", "items__variant", "items__variant__product")
            .order_by("-created_at")
        )

    def _detail(self, txn, code=status.HTTP_200_OK):
        txn = self.get_queryset().get(pk=txn.pk)
        return Response(InventoryTransactionSerializer(txn).data, status=code)

    # ======================================================
    # CREATE
    # ======================================================

    @extend_schema(
        request=InventoryTransactionCreateSerializer,
        responses={201: InventoryTransactionSerializer},
    )
    def create(self, request):
        ser = InventoryTransactionCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            result = create_inventory_transaction(
                transaction_type=data["transaction_type"],
                items=[
                    TransactionLine(
                        variant_id=line["variant_id"],
                        quantity=line["quantity"],
                        unit_cost=line.get("unit_cost"),
                        source_type=line.get("source_type"),
                    )
                    for line in data["items"]
                ],
                actor=request.user,
                vendor_id=data.get("vendor_id"),
                reason=data.get("reason", ""),
                reference_transaction_id=data.get("reference_transaction_id"),
                invoice_no=data.get("invoice_no"),
                transaction_date=data.get("transaction_date"),
                notes=data.get("notes", ""),
                idempotency_key=data.get("idempotency_key"),
            )
        except ServiceError as exc:
            return error_response(exc)

        return self._detail(result.transaction, code=status.HTTP_201_CREATED)

    # ======================================================
    # APPROVAL QUEUE
    # ======================================================

    @extend_schema(responses={200: InventoryTransactionSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="pending")
    def pending(self, request):
        qs = self.filter_queryset(
            self.get_queryset().filter(status=InventoryTransaction.STATUS_PENDING)
        ).order_by("created_at")
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(qs, many=True).data, status=status.HTTP_200_OK)

    # ======================================================
    # MAKER-CHECKER TRANSITIONS
    # ======================================================

    @extend_schema(request=None, responses={200: InventoryTransactionSerializer})
    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        try:
            txn = approve_inventory_transaction(transaction_id=pk, approver=request.user)
        except ServiceError as exc:
            return error_response(exc)
        return self._detail(txn)

    @extend_schema(request=RejectInputSerializer, responses={200: InventoryTransactionSerializer})
    @action(detail=True, methods=["post"], url_path="reject")
    def reject(self, request, pk=None):
        ser = RejectInputSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            txn = reject_inventory_transaction(
                transaction_id=pk,
                approver=request.user,
                rejection_reason=ser.validated_data["rejection_reason"],
            )
        except ServiceError as exc:
            return error_response(exc)
        return self._detail(txn)

    @extend_schema(request=VoidInputSerializer, responses={200: InventoryTransactionSerializer})
    @action(detail=True, methods=["post"], url_path="void")
    def void(self, request, pk=None):
        ser = VoidInputSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            txn = void_inventory_transaction(
                transaction_id=pk,
                actor=request.user,
                reason=ser.validated_data["reason"],
            )
        except ServiceError as exc:
            return error_response(exc)
        return self._detail(txn)

    # ======================================================
    # RETURNABLE QUANTITIES
    # ======================================================

    @extend_schema(responses={200: serializers.DictField()})
    @action(detail=True, methods=["get"], url_path="returnable")
    def returnable(self, request, pk=None):
        txn: InventoryTransaction = self.get_object()

        if (
            txn.transaction_type != InventoryTransaction.TYPE_PURCHASE
            or txn.status != InventoryTransaction.STATUS_APPROVED
        ):
            return Response(
                {
                    "kind": "validation_error",
                    "detail": "Only approved purchase transactions can be returned against.",
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        lines = returnable_quantities(txn)
        return Response(
            {
                "transaction_id": str(txn.id),
                "invoice_no": txn.invoice_no,
                "vendor_id": str(txn.vendor_id) if txn.vendor_id else None,
                "items": [
                    {**asdict(line), "unit_cost": str(line.unit_cost)}
                    for line in lines.values()
                ],
            },
            status=status.HTTP_200_OK,
        )
