from rest_framework import serializers

from apps.orders.models import (
    DeliveryMethod,
    DeliveryNote,
    DeliveryNoteStatus,
    DeliveryNoteType,
    Order,
    OrderLine,
    OrderStatus,
    Reservation,
)


class OrderLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderLine
        fields = [
            "id",
            "product",
            "product_name",
            "product_image",
            "quantity",
            "start",
            "end",
            "unit",
            "unit_price",
            "billed_units",
            "line_total",
        ]
        read_only_fields = fields


class ReservationSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = Reservation
        fields = ["id", "order", "order_line", "product", "product_name", "quantity", "start", "end", "status", "created_at"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    customer_username = serializers.CharField(source="customer.username", read_only=True)
    vendor_username = serializers.CharField(source="vendor.username", read_only=True)
    lines = OrderLineSerializer(many=True, read_only=True)
    cancellation = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "customer",
            "customer_username",
            "vendor",
            "vendor_username",
            "quotation",
            "lines",
            "subtotal",
            "tax",
            "discount",
            "total",
            "late_fees",
            "paid_amount",
            "balance_due",
            "status",
            "delivery_method",
            "delivery_address",
            "pickup_location",
            "pickup_scheduled_at",
            "pickup_actual_at",
            "return_location",
            "return_scheduled_at",
            "return_actual_at",
            "cancellation",
            "is_overdue_notified",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_cancellation(self, obj):
        record = obj.cancellation
        if record is None:
            return None
        return {
            "by": record["by"],
            "at": record["at"].isoformat() if record["at"] else None,
            "reason": record["reason"],
            "refund_amount": str(record["refund_amount"]) if record["refund_amount"] is not None else "0.00",
        }


class OrderFromQuotationSerializer(serializers.Serializer):
    quotation_id = serializers.CharField()
    delivery_method = serializers.ChoiceField(choices=DeliveryMethod.choices)
    delivery_address = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["delivery_method"] == DeliveryMethod.DELIVERY and not attrs["delivery_address"].strip():
            raise serializers.ValidationError({"delivery_address": "A delivery address is required for delivery orders."})
        return attrs


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)


class ChecklistItemSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    checked = serializers.BooleanField(default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class DeliveryNoteSerializer(serializers.ModelSerializer):
    checklist = ChecklistItemSerializer(many=True, required=False)
    note_type = serializers.ChoiceField(choices=DeliveryNoteType.choices)
    scheduled_at = serializers.DateTimeField(required=False)

    class Meta:
        model = DeliveryNote
        fields = [
            "id",
            "order",
            "note_type",
            "status",
            "scheduled_at",
            "actual_at",
            "driver",
            "checklist",
            "notes",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "status", "actual_at", "created_by", "created_at", "updated_at"]


class DeliveryNoteUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DeliveryNoteStatus.choices, required=False)
    scheduled_at = serializers.DateTimeField(required=False)
    actual_at = serializers.DateTimeField(required=False)
    driver = serializers.CharField(required=False, allow_blank=True, max_length=120)
    checklist = ChecklistItemSerializer(many=True, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
