from django.db.models import Prefetch, Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.common.permissions import RolePermission, is_admin
from apps.quotations import services
from apps.quotations.models import Quotation, QuotationLine
from apps.quotations.serializers import (
    QuotationCreateSerializer,
    QuotationSerializer,
    QuotationStatusSerializer,
)


class QuotationViewSet(viewsets.ModelViewSet):
    serializer_class = QuotationSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]
    capability_map = {
        "list": ["quotations.view"],
        "retrieve": ["quotations.view"],
        "create": ["quotations.create"],
        "update_status": ["quotations.update"],
        "partial_update": ["quotations.update"],
        "destroy": ["quotations.update"],
    }

    def get_queryset(self):
        queryset = Quotation.objects.select_related("customer", "vendor").prefetch_related(
            Prefetch("lines", queryset=QuotationLine.objects.select_related("product"))
        )
        user = self.request.user
        if self.action == "list" and not is_admin(user):
            queryset = queryset.filter(Q(customer=user) | Q(vendor=user))
        status_param = self.request.query_params.get("status")
        if status_param:
            queryset = queryset.filter(status=status_param)
        return queryset

    def get_object(self):
        quotation = super().get_object()
        user = self.request.user
        if user.id not in (quotation.customer_id, quotation.vendor_id) and not is_admin(user):
            raise PermissionDenied("You are not a party to this quotation.")
        return quotation

    def create(self, request, *args, **kwargs):
        serializer = QuotationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quotations = services.build_quotations(
            actor=request.user,
            items=serializer.validated_data["items"],
            notes=serializer.validated_data["notes"],
        )
        data = QuotationSerializer(quotations, many=True, context=self.get_serializer_context()).data
        return Response(data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        return self.update_status(request, *args, **kwargs)

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request, pk=None):
        serializer = QuotationStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quotation = services.update_quotation_status(
            actor=request.user,
            quotation_id=pk,
            status=serializer.validated_data["status"],
        )
        quotation = self.get_queryset().get(pk=quotation.pk)
        return Response(QuotationSerializer(quotation, context=self.get_serializer_context()).data)

    def perform_destroy(self, instance):
        services.delete_quotation(actor=self.request.user, quotation=instance)
