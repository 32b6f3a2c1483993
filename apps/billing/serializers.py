from decimal import Decimal

from rest_framework import serializers

from apps.billing.models import Invoice, Payment, PaymentMethod


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "order",
            "invoice",
            "amount",
            "method",
            "status",
            "transaction_id",
            "currency",
            "refund_of",
            "refund_reason",
            "recorded_by",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    customer = serializers.IntegerField(source="order.customer_id", read_only=True)
    vendor = serializers.IntegerField(source="order.vendor_id", read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "order",
            "customer",
            "vendor",
            "number",
            "amount",
            "tax",
            "paid",
            "due_amount",
            "status",
            "issued_at",
            "due_date",
            "line_items",
            "notes",
            "payments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class InvoiceCreateSerializer(serializers.Serializer):
    order = serializers.CharField()


class PaymentCreateSerializer(serializers.Serializer):
    invoice_id = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    transaction_id = serializers.CharField(required=False, allow_blank=True, max_length=120, default="")
    currency = serializers.CharField(required=False, min_length=3, max_length=3)


class RefundSerializer(serializers.Serializer):
    refund_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
