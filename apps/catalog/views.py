from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.catalog.availability import check_availability
from apps.catalog.models import Category, Product, ProductImage
from apps.catalog.serializers import (
    AvailabilityQuerySerializer,
    CategorySerializer,
    ProductImageSerializer,
    ProductSerializer,
)
from apps.common.exceptions import Conflict, parse_uuid
from apps.common.permissions import RolePermission, is_admin


def _product_snapshot(product):
    return {
        "sku": product.sku,
        "name": product.name,
        "stock": product.stock,
        "price_per_hour": str(product.price_per_hour) if product.price_per_hour is not None else None,
        "price_per_day": str(product.price_per_day) if product.price_per_day is not None else None,
        "price_per_week": str(product.price_per_week) if product.price_per_week is not None else None,
        "is_active": product.is_active,
    }


def ensure_product_owner(user, product):
    if product.vendor_id != user.id and not is_admin(user):
        raise PermissionDenied("Only the product's vendor can change it.")


class CategoryViewSet(viewsets.ModelViewSet):
    queryset = Category.objects.all().order_by("name")
    serializer_class = CategorySerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["catalog.view"],
        "retrieve": ["catalog.view"],
        "create": ["categories.manage"],
        "update": ["categories.manage"],
        "partial_update": ["categories.manage"],
        "destroy": ["categories.manage"],
    }

    def perform_destroy(self, instance):
        if instance.products.exists():
            raise Conflict("Category still has products assigned.")
        super().perform_destroy(instance)


class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["catalog.view"],
        "retrieve": ["catalog.view"],
        "availability": ["catalog.view"],
        "create": ["catalog.manage"],
        "partial_update": ["catalog.manage"],
        "update": ["catalog.manage"],
        "destroy": ["catalog.manage"],
    }

    def get_queryset(self):
        queryset = Product.objects.select_related("vendor", "category").prefetch_related("images", "maintenance_blocks")
        params = self.request.query_params

        if params.get("vendor") == "me":
            queryset = queryset.filter(vendor=self.request.user)
        elif self.action == "list" and not is_admin(self.request.user):
            queryset = queryset.filter(Q(is_active=True) | Q(vendor=self.request.user))

        query = params.get("q")
        if query:
            queryset = queryset.filter(Q(name__icontains=query) | Q(sku__icontains=query) | Q(description__icontains=query))

        category_id = params.get("category")
        if category_id:
            queryset = queryset.filter(category_id=parse_uuid(category_id, field="category"))

        availability = params.get("availability")
        if availability == "in-stock":
            queryset = queryset.filter(stock__gt=0)
        elif availability == "out-of-stock":
            queryset = queryset.filter(stock__lte=0)
        return queryset

    def perform_create(self, serializer):
        product = serializer.save(vendor=self.request.user)
        record_audit(
            actor=self.request.user,
            action="catalog.product.create",
            entity_type="product",
            entity_id=product.id,
            payload=_product_snapshot(product),
        )

    def perform_update(self, serializer):
        ensure_product_owner(self.request.user, serializer.instance)
        before = _product_snapshot(serializer.instance)
        product = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product.update",
            entity_type="product",
            entity_id=product.id,
            payload={"before": before, "after": _product_snapshot(product)},
        )

    def perform_destroy(self, instance):
        ensure_product_owner(self.request.user, instance)
        if instance.reservations.exists() or instance.quotation_lines.exists():
            raise Conflict("Product has rental history; deactivate it instead of deleting.")
        record_audit(
            actor=self.request.user,
            action="catalog.product.delete",
            entity_type="product",
            entity_id=instance.id,
            payload=_product_snapshot(instance),
        )
        super().perform_destroy(instance)

    @action(detail=True, methods=["get"])
    def availability(self, request, pk=None):
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        result = check_availability(
            pk,
            start=query.validated_data.get("start_date"),
            end=query.validated_data.get("end_date"),
            quantity=query.validated_data["quantity"],
        )
        return Response(result.as_dict())


class ProductImageViewSet(viewsets.ModelViewSet):
    queryset = ProductImage.objects.select_related("product")
    serializer_class = ProductImageSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["catalog.view"],
        "retrieve": ["catalog.view"],
        "create": ["catalog.manage"],
        "partial_update": ["catalog.manage"],
        "update": ["catalog.manage"],
        "destroy": ["catalog.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        product_id = self.request.query_params.get("product")
        if product_id:
            queryset = queryset.filter(product_id=parse_uuid(product_id, field="product"))
        return queryset

    def perform_create(self, serializer):
        ensure_product_owner(self.request.user, serializer.validated_data["product"])
        image = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product_image.create",
            entity_type="product_image",
            entity_id=image.id,
            payload={"product_id": str(image.product_id), "is_primary": image.is_primary},
        )

    def perform_update(self, serializer):
        ensure_product_owner(self.request.user, serializer.instance.product)
        image = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product_image.update",
            entity_type="product_image",
            entity_id=image.id,
            payload={"image_url": image.image_url, "is_primary": image.is_primary},
        )

    def perform_destroy(self, instance):
        ensure_product_owner(self.request.user, instance.product)
        record_audit(
            actor=self.request.user,
            action="catalog.product_image.delete",
            entity_type="product_image",
            entity_id=instance.id,
            payload={"product_id": str(instance.product_id), "is_primary": instance.is_primary},
        )
        super().perform_destroy(instance)
