from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from apps.catalog.models import Product
from apps.common.exceptions import Conflict
from apps.pricing.models import DiscountRule, Pricelist, PricelistOverride, TimeDependentPriceRule


def _validate_vendor_products(products, vendor):
    foreign = [product.name for product in products if product.vendor_id != vendor.id]
    if foreign:
        raise serializers.ValidationError({"products": f"Products not listed by you: {', '.join(foreign)}."})


class DiscountRuleSerializer(serializers.ModelSerializer):
    products = serializers.PrimaryKeyRelatedField(many=True, required=False, queryset=Product.objects.all())

    class Meta:
        model = DiscountRule
        fields = [
            "id",
            "vendor",
            "code",
            "discount_type",
            "value",
            "min_spend",
            "products",
            "usage_limit",
            "times_used",
            "valid_from",
            "valid_until",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "vendor", "times_used", "created_at", "updated_at"]
        validators = []

    def validate_code(self, value):
        return value.strip().upper()

    def validate(self, attrs):
        vendor = self.instance.vendor if self.instance else self.context["request"].user
        discount_type = attrs.get("discount_type", getattr(self.instance, "discount_type", None))
        value = attrs.get("value", getattr(self.instance, "value", None))
        if value is not None and value <= 0:
            raise serializers.ValidationError({"value": "Value must be greater than 0."})
        if discount_type == "percent" and value is not None and value > Decimal("100"):
            raise serializers.ValidationError({"value": "A percent discount cannot exceed 100."})

        valid_from = attrs.get("valid_from", getattr(self.instance, "valid_from", None))
        valid_until = attrs.get("valid_until", getattr(self.instance, "valid_until", None))
        if valid_from and valid_until and valid_until <= valid_from:
            raise serializers.ValidationError({"valid_until": "Must be after valid_from."})

        _validate_vendor_products(attrs.get("products", []), vendor)

        code = attrs.get("code")
        if code:
            clash = DiscountRule.objects.filter(vendor=vendor, code=code)
            if self.instance:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise Conflict({"code": f"You already have a discount with the code '{code}'."})
        return attrs


class PricelistOverrideSerializer(serializers.ModelSerializer):
    class Meta:
        model = PricelistOverride
        fields = ["id", "product", "price_per_hour", "price_per_day", "price_per_week", "discount_percent"]
        read_only_fields = ["id"]

    def validate(self, attrs):
        prices = [attrs.get(name) for name in ("price_per_hour", "price_per_day", "price_per_week")]
        if any(price is not None and price < 0 for price in prices):
            raise serializers.ValidationError("Prices cannot be negative.")
        if all(price is None for price in prices) and not attrs.get("discount_percent"):
            raise serializers.ValidationError("An override needs a price or a discount.")
        return attrs


class PricelistSerializer(serializers.ModelSerializer):
    overrides = PricelistOverrideSerializer(many=True)

    class Meta:
        model = Pricelist
        fields = [
            "id",
            "vendor",
            "name",
            "description",
            "customers",
            "start",
            "end",
            "priority",
            "overrides",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "vendor", "created_at", "updated_at"]
        extra_kwargs = {"customers": {"required": False}}

    def validate_overrides(self, value):
        if not value:
            raise serializers.ValidationError("At least one override is required.")
        products = [item["product"] for item in value]
        if len({product.pk for product in products}) != len(products):
            raise serializers.ValidationError("Each product can only be overridden once.")
        return value

    def validate(self, attrs):
        vendor = self.instance.vendor if self.instance else self.context["request"].user
        start = attrs.get("start", getattr(self.instance, "start", None))
        end = attrs.get("end", getattr(self.instance, "end", None))
        if start and end and end <= start:
            raise serializers.ValidationError({"end": "End must be after start."})
        if "overrides" in attrs:
            _validate_vendor_products([item["product"] for item in attrs["overrides"]], vendor)
        return attrs

    def _replace_overrides(self, pricelist, overrides):
        pricelist.overrides.all().delete()
        PricelistOverride.objects.bulk_create([PricelistOverride(pricelist=pricelist, **item) for item in overrides])

    def create(self, validated_data):
        overrides = validated_data.pop("overrides")
        with transaction.atomic():
            pricelist = super().create(validated_data)
            self._replace_overrides(pricelist, overrides)
        return pricelist

    def update(self, instance, validated_data):
        overrides = validated_data.pop("overrides", None)
        with transaction.atomic():
            pricelist = super().update(instance, validated_data)
            if overrides is not None:
                self._replace_overrides(pricelist, overrides)
        return pricelist


class TimeDependentPriceRuleSerializer(serializers.ModelSerializer):
    products = serializers.PrimaryKeyRelatedField(many=True, required=False, queryset=Product.objects.all())

    class Meta:
        model = TimeDependentPriceRule
        fields = [
            "id",
            "vendor",
            "name",
            "rule_type",
            "pattern",
            "multiplier",
            "fixed_price",
            "products",
            "stacking",
            "start",
            "end",
            "priority",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "vendor", "created_at", "updated_at"]

    def validate_pattern(self, value):
        if not isinstance(value, dict) or not value:
            raise serializers.ValidationError("Pattern must be a non-empty object.")
        return value

    def validate(self, attrs):
        vendor = self.instance.vendor if self.instance else self.context["request"].user
        multiplier = attrs.get("multiplier", getattr(self.instance, "multiplier", None))
        fixed_price = attrs.get("fixed_price", getattr(self.instance, "fixed_price", None))
        if multiplier is None and fixed_price is None:
            raise serializers.ValidationError({"multiplier": "Provide a multiplier or a fixed price."})
        if multiplier is not None and multiplier <= 0:
            raise serializers.ValidationError({"multiplier": "Multiplier must be greater than 0."})
        if fixed_price is not None and fixed_price <= 0:
            raise serializers.ValidationError({"fixed_price": "Fixed price must be greater than 0."})
        _validate_vendor_products(attrs.get("products", []), vendor)
        return attrs


class ApplyDiscountSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=40)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.00"))
    vendor = serializers.IntegerField(required=False)
