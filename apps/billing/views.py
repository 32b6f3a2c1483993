from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.billing import services
from apps.billing.models import Invoice, Payment
from apps.billing.serializers import (
    InvoiceCreateSerializer,
    InvoiceSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
    RefundSerializer,
)
from apps.common.exceptions import parse_uuid
from apps.common.permissions import RolePermission, is_admin


def _order_party_filter(user):
    return Q(order__customer=user) | Q(order__vendor=user)


def _ensure_party(user, order):
    if user.id not in (order.customer_id, order.vendor_id) and not is_admin(user):
        raise PermissionDenied("You are not a party to this order.")


class InvoiceViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = InvoiceSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["billing.view"],
        "retrieve": ["billing.view"],
        "create": ["invoices.create"],
    }

    def get_queryset(self):
        queryset = Invoice.objects.select_related("order").prefetch_related("payments")
        user = self.request.user
        if self.action == "list" and not is_admin(user):
            queryset = queryset.filter(_order_party_filter(user))
        params = self.request.query_params
        if params.get("order"):
            queryset = queryset.filter(order_id=parse_uuid(params["order"], field="order"))
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset

    def get_object(self):
        invoice = super().get_object()
        _ensure_party(self.request.user, invoice.order)
        return invoice

    def create(self, request, *args, **kwargs):
        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = services.create_invoice_for_order(actor=request.user, order_id=serializer.validated_data["order"])
        invoice = self.get_queryset().get(pk=invoice.pk)
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


class PaymentViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = PaymentSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["billing.view"],
        "retrieve": ["billing.view"],
        "create": ["payments.create"],
        "refund": ["payments.refund"],
    }

    def get_queryset(self):
        queryset = Payment.objects.select_related("order", "invoice")
        user = self.request.user
        if self.action == "list" and not is_admin(user):
            queryset = queryset.filter(_order_party_filter(user))
        params = self.request.query_params
        if params.get("invoice"):
            queryset = queryset.filter(invoice_id=parse_uuid(params["invoice"], field="invoice"))
        if params.get("order"):
            queryset = queryset.filter(order_id=parse_uuid(params["order"], field="order"))
        return queryset

    def get_object(self):
        payment = super().get_object()
        _ensure_party(self.request.user, payment.order)
        return payment

    def create(self, request, *args, **kwargs):
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = services.record_payment(actor=request.user, **serializer.validated_data)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund = services.refund_payment(
            actor=request.user,
            payment_id=pk,
            amount=serializer.validated_data["refund_amount"],
            reason=serializer.validated_data["reason"],
        )
        return Response(PaymentSerializer(refund).data, status=status.HTTP_201_CREATED)
