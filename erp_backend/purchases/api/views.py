# purchases/api/views.py

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.api import error_response
from core.exceptions import ServiceError
from permissions.roles import (
    CAP_INVENTORY_VOID,
    CAP_PURCHASES_CREATE,
    CAP_VENDORS_MANAGE,
    CAP_VENDORS_PAY,
    CAP_VENDORS_VIEW,
    HasCapability,
    HasMethodCapability,
)
from purchases.api.serializers import (
    PurchaseCancelSerializer,
    PurchaseCreateSerializer,
    PurchaseSerializer,
    VendorPaymentCreateSerializer,
    VendorPaymentSerializer,
    VendorSerializer,
)
from purchases.models import Purchase, Vendor, VendorPayment
from purchases.services.payment_service import record_vendor_payment
from purchases.services.purchase_service import PurchaseLine, cancel_purchase, create_purchase


class VendorListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasMethodCapability]
    required_capabilities = {"GET": CAP_VENDORS_VIEW, "POST": CAP_VENDORS_MANAGE}
    serializer_class = VendorSerializer

    @extend_schema(tags=["purchases"], responses=VendorSerializer(many=True))
    def get(self, request):
        qs = Vendor.objects.filter(is_active=True).order_by("name")
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(VendorSerializer(page, many=True).data)
        return Response(VendorSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["purchases"],
        request=VendorSerializer,
        responses={201: VendorSerializer},
    )
    def post(self, request):
        s = VendorSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vendor = s.save()
        return Response(VendorSerializer(vendor).data, status=status.HTTP_201_CREATED)


class VendorDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_VENDORS_VIEW
    serializer_class = VendorSerializer

    @extend_schema(tags=["purchases"], responses=VendorSerializer)
    def get(self, request, vendor_id):
        vendor = Vendor.objects.filter(id=vendor_id).first()
        if vendor is None:
            return Response({"kind": "not_found", "detail": "Vendor not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(VendorSerializer(vendor).data, status=status.HTTP_200_OK)


class PurchaseListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasMethodCapability]
    required_capabilities = {"GET": CAP_VENDORS_VIEW, "POST": CAP_PURCHASES_CREATE}
    serializer_class = PurchaseCreateSerializer

    @extend_schema(tags=["purchases"], responses=PurchaseSerializer(many=True))
    def get(self, request):
        qs = (
            Purchase.objects.select_related("vendor", "inventory_transaction")
            .prefetch_related("items")
            .order_by("-created_at")
        )
        vendor_id = request.query_params.get("vendor")
        if vendor_id:
            qs = qs.filter(vendor_id=vendor_id)

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(PurchaseSerializer(page, many=True).data)
        return Response(PurchaseSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["purchases"],
        request=PurchaseCreateSerializer,
        responses={201: dict, 400: dict, 409: dict},
    )
    def post(self, request):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            result = create_purchase(
                vendor_id=data["vendor_id"],
                items=[
                    PurchaseLine(
                        variant_id=line["variant_id"],
                        quantity=line["quantity"],
                        cost_price=line["cost_price"],
                    )
                    for line in data["items"]
                ],
                invoice_no=data.get("invoice_no"),
                invoice_date=data.get("invoice_date"),
                discount=data.get("discount", 0),
                tax=data.get("tax", 0),
                notes=data.get("notes", ""),
                created_by=request.user,
                idempotency_key=data.get("idempotency_key"),
            )
        except ServiceError as exc:
            return error_response(exc)

        code = status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED
        return Response(result.as_dict(), status=code)


class PurchaseDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_VENDORS_VIEW
    serializer_class = PurchaseSerializer

    @extend_schema(tags=["purchases"], responses=PurchaseSerializer)
    def get(self, request, purchase_id):
        purchase = (
            Purchase.objects.select_related("vendor", "inventory_transaction")
            .prefetch_related("items")
            .filter(id=purchase_id)
            .first()
        )
        if purchase is None:
            return Response({"kind": "not_found", "detail": "Purchase not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(PurchaseSerializer(purchase).data, status=status.HTTP_200_OK)


class PurchaseCancelView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_INVENTORY_VOID
    serializer_class = PurchaseCancelSerializer

    @extend_schema(tags=["purchases"], request=PurchaseCancelSerializer, responses={200: PurchaseSerializer})
    def post(self, request, purchase_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            purchase = cancel_purchase(
                purchase_id=purchase_id,
                actor=request.user,
                reason=s.validated_data["reason"],
            )
        except ServiceError as exc:
            return error_response(exc)

        return Response(PurchaseSerializer(purchase).data, status=status.HTTP_200_OK)


class VendorPaymentListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasMethodCapability]
    required_capabilities = {"GET": CAP_VENDORS_VIEW, "POST": CAP_VENDORS_PAY}
    serializer_class = VendorPaymentCreateSerializer

    @extend_schema(tags=["purchases"], responses=VendorPaymentSerializer(many=True))
    def get(self, request):
        qs = VendorPayment.objects.select_related("vendor").order_by("-created_at")
        vendor_id = request.query_params.get("vendor")
        if vendor_id:
            qs = qs.filter(vendor_id=vendor_id)

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(VendorPaymentSerializer(page, many=True).data)
        return Response(VendorPaymentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["purchases"],
        request=VendorPaymentCreateSerializer,
        responses={201: dict, 400: dict, 409: dict},
    )
    def post(self, request):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            result = record_vendor_payment(
                vendor_id=data["vendor_id"],
                amount=data["amount"],
                payment_method=data.get("payment_method"),
                payment_date=data.get("payment_date"),
                transaction_ref=data.get("transaction_ref", ""),
                bank_name=data.get("bank_name", ""),
                remarks=data.get("remarks", ""),
                receipt_url=data.get("receipt_url", ""),
                created_by=request.user,
                idempotency_key=data.get("idempotency_key"),
            )
        except ServiceError as exc:
            return error_response(exc)

        code = status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED
        return Response(result.as_dict(), status=code)
