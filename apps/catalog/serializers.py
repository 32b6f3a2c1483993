from django.db import transaction
from rest_framework import serializers

from apps.catalog.models import Category, MaintenanceBlock, Product, ProductImage
from apps.common.exceptions import Conflict


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "slug", "description", "parent", "created_at", "updated_at"]
        read_only_fields = ["id", "slug", "created_at", "updated_at"]


class ProductImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductImage
        fields = ["id", "product", "image_url", "is_primary", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate(self, attrs):
        product = attrs.get("product") or getattr(self.instance, "product", None)
        is_primary = attrs.get("is_primary", getattr(self.instance, "is_primary", False))
        if product and is_primary:
            others = ProductImage.objects.filter(product=product, is_primary=True)
            if self.instance:
                others = others.exclude(pk=self.instance.pk)
            if others.exists():
                raise serializers.ValidationError({"is_primary": "The product already has a primary image."})
        return attrs


class MaintenanceBlockSerializer(serializers.ModelSerializer):
    class Meta:
        model = MaintenanceBlock
        fields = ["id", "start", "end", "reason"]
        read_only_fields = ["id"]

    def validate(self, attrs):
        if attrs["start"] >= attrs["end"]:
            raise serializers.ValidationError({"end": "End must be after start."})
        return attrs


class ProductSerializer(serializers.ModelSerializer):
    vendor_username = serializers.CharField(source="vendor.username", read_only=True)
    category_name = serializers.CharField(source="category.name", read_only=True)
    images = ProductImageSerializer(many=True, read_only=True)
    maintenance_blocks = MaintenanceBlockSerializer(many=True, required=False)
    primary_image_url = serializers.CharField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "vendor",
            "vendor_username",
            "category",
            "category_name",
            "sku",
            "name",
            "description",
            "stock",
            "unit",
            "price_per_hour",
            "price_per_day",
            "price_per_week",
            "tax_percent",
            "is_active",
            "images",
            "primary_image_url",
            "maintenance_blocks",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "vendor", "created_at", "updated_at"]
        extra_kwargs = {"sku": {"validators": []}}
        # uniqueness is checked in validate() and raised as Conflict
        validators = []

    def validate_stock(self, value):
        if value < 0:
            raise serializers.ValidationError("Stock cannot be negative.")
        return value

    def validate(self, attrs):
        tiers = {
            name: attrs.get(name, getattr(self.instance, name, None))
            for name in ("price_per_hour", "price_per_day", "price_per_week")
        }
        for name, value in tiers.items():
            if value is not None and value < 0:
                raise serializers.ValidationError({name: "Prices cannot be negative."})
        if not any(value and value > 0 for value in tiers.values()):
            raise serializers.ValidationError({"pricing": "At least one of hourly, daily or weekly price is required."})

        vendor = self.instance.vendor if self.instance else self.context["request"].user
        sku = (attrs.get("sku") or "").strip()
        if "sku" in attrs:
            attrs["sku"] = sku or None
        if sku:
            clash = Product.objects.filter(sku=sku)
            if self.instance:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise Conflict({"sku": f"A product with SKU '{sku}' already exists."})

        name = (attrs.get("name") or "").strip()
        if name:
            clash = Product.objects.filter(vendor=vendor, name=name)
            if self.instance:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise Conflict({"name": f"You already list a product named '{name}'."})
        return attrs

    def _replace_blocks(self, product, blocks):
        product.maintenance_blocks.all().delete()
        MaintenanceBlock.objects.bulk_create([MaintenanceBlock(product=product, **block) for block in blocks])

    def create(self, validated_data):
        blocks = validated_data.pop("maintenance_blocks", [])
        with transaction.atomic():
            product = super().create(validated_data)
            self._replace_blocks(product, blocks)
        return product

    def update(self, instance, validated_data):
        blocks = validated_data.pop("maintenance_blocks", None)
        with transaction.atomic():
            product = super().update(instance, validated_data)
            if blocks is not None:
                self._replace_blocks(product, blocks)
        return product


class AvailabilityQuerySerializer(serializers.Serializer):
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)
    quantity = serializers.IntegerField(required=False, min_value=1, default=1)

    def validate(self, attrs):
        start = attrs.get("start_date")
        end = attrs.get("end_date")
        if (start is None) != (end is None):
            raise serializers.ValidationError({"end_date": "Provide both start_date and end_date, or neither."})
        if start is not None and end <= start:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})
        return attrs
