from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission, is_admin
from apps.pricing.models import DiscountRule, Pricelist, TimeDependentPriceRule
from apps.pricing.serializers import (
    ApplyDiscountSerializer,
    DiscountRuleSerializer,
    PricelistSerializer,
    TimeDependentPriceRuleSerializer,
)
from apps.pricing.services import apply_discount_code

MANAGE_CAPABILITIES = {
    "list": ["pricing.view"],
    "retrieve": ["pricing.view"],
    "create": ["pricing.manage"],
    "update": ["pricing.manage"],
    "partial_update": ["pricing.manage"],
    "destroy": ["pricing.manage"],
}


class VendorOwnedViewSet(viewsets.ModelViewSet):
    """CRUD over rows owned by the requesting vendor; admins see everything."""

    permission_classes = [RolePermission]
    capability_map = MANAGE_CAPABILITIES
    entity_type = None

    def owner_filter(self, user):
        return Q(vendor=user)

    def get_queryset(self):
        queryset = self.queryset.all()
        user = self.request.user
        if not is_admin(user):
            queryset = queryset.filter(self.owner_filter(user)).distinct()
        return queryset

    def _ensure_owner(self, instance):
        user = self.request.user
        if instance.vendor_id != user.id and not is_admin(user):
            raise PermissionDenied("Only the owning vendor can change this.")

    def perform_create(self, serializer):
        instance = serializer.save(vendor=self.request.user)
        record_audit(
            actor=self.request.user,
            action=f"pricing.{self.entity_type}.create",
            entity_type=self.entity_type,
            entity_id=instance.id,
            payload={"name": str(instance)},
        )

    def perform_update(self, serializer):
        self._ensure_owner(serializer.instance)
        instance = serializer.save()
        record_audit(
            actor=self.request.user,
            action=f"pricing.{self.entity_type}.update",
            entity_type=self.entity_type,
            entity_id=instance.id,
            payload={"name": str(instance)},
        )

    def perform_destroy(self, instance):
        self._ensure_owner(instance)
        record_audit(
            actor=self.request.user,
            action=f"pricing.{self.entity_type}.delete",
            entity_type=self.entity_type,
            entity_id=instance.id,
            payload={"name": str(instance)},
        )
        super().perform_destroy(instance)


class DiscountRuleViewSet(VendorOwnedViewSet):
    queryset = DiscountRule.objects.select_related("vendor").prefetch_related("products")
    serializer_class = DiscountRuleSerializer
    capability_map = {**MANAGE_CAPABILITIES, "apply": ["pricing.view"]}
    entity_type = "discount_rule"

    @action(detail=False, methods=["post"])
    def apply(self, request):
        serializer = ApplyDiscountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        applied = apply_discount_code(data["code"], data["subtotal"], vendor=data.get("vendor"))
        return Response(applied.as_dict())


class PricelistViewSet(VendorOwnedViewSet):
    queryset = Pricelist.objects.select_related("vendor").prefetch_related("overrides", "customers")
    serializer_class = PricelistSerializer
    entity_type = "pricelist"

    def owner_filter(self, user):
        return Q(vendor=user) | Q(customers=user)


class TimeDependentPriceRuleViewSet(VendorOwnedViewSet):
    queryset = TimeDependentPriceRule.objects.select_related("vendor").prefetch_related("products")
    serializer_class = TimeDependentPriceRuleSerializer
    entity_type = "price_rule"
