from rest_framework import serializers

from apps.quotations.models import Quotation, QuotationLine, QuotationStatus


class QuotationLineSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = QuotationLine
        fields = [
            "id",
            "product",
            "product_name",
            "quantity",
            "start",
            "end",
            "unit",
            "unit_price",
            "billed_units",
            "line_total",
        ]
        read_only_fields = fields


class QuotationSerializer(serializers.ModelSerializer):
    customer_username = serializers.CharField(source="customer.username", read_only=True)
    vendor_username = serializers.CharField(source="vendor.username", read_only=True)
    lines = QuotationLineSerializer(many=True, read_only=True)

    class Meta:
        model = Quotation
        fields = [
            "id",
            "customer",
            "customer_username",
            "vendor",
            "vendor_username",
            "lines",
            "subtotal",
            "tax",
            "discount",
            "total",
            "status",
            "notes",
            "expires_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class QuotationItemSerializer(serializers.Serializer):
    product = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1)
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()

    def validate(self, attrs):
        if attrs["start"] >= attrs["end"]:
            raise serializers.ValidationError({"end": "End must be after start."})
        return attrs


class QuotationCreateSerializer(serializers.Serializer):
    items = QuotationItemSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class QuotationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=QuotationStatus.choices)
