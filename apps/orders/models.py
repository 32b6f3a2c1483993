import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models


class OrderStatus(models.TextChoices):
    RESERVED = "reserved", "Reserved"
    READY_FOR_PICKUP = "ready_for_pickup", "Ready for pickup"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
    IN_USE = "in_use", "In use"
    RETURNED = "returned", "Returned"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    OVERDUE = "overdue", "Overdue"


class ReservationStatus(models.TextChoices):
    RESERVED = "reserved", "Reserved"
    PICKED_UP = "picked_up", "Picked up"
    RETURNED = "returned", "Returned"
    CANCELLED = "cancelled", "Cancelled"


class DeliveryMethod(models.TextChoices):
    PICKUP = "pickup", "Pickup"
    DELIVERY = "delivery", "Delivery"


class DeliveryNoteType(models.TextChoices):
    PICKUP = "pickup", "Pickup"
    RETURN = "return", "Return"


class DeliveryNoteStatus(models.TextChoices):
    SCHEDULED = "scheduled", "Scheduled"
    IN_TRANSIT = "in_transit", "In transit"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class Order(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders")
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="vendor_orders")
    quotation = models.OneToOneField("quotations.Quotation", on_delete=models.PROTECT, related_name="order")
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    late_fees = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    balance_due = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.RESERVED)
    delivery_method = models.CharField(max_length=10, choices=DeliveryMethod.choices, default=DeliveryMethod.PICKUP)
    delivery_address = models.TextField(blank=True)
    pickup_location = models.CharField(max_length=255, blank=True)
    pickup_scheduled_at = models.DateTimeField(null=True, blank=True)
    pickup_actual_at = models.DateTimeField(null=True, blank=True)
    return_location = models.CharField(max_length=255, blank=True)
    return_scheduled_at = models.DateTimeField(null=True, blank=True)
    return_actual_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="cancelled_orders",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.CharField(max_length=255, blank=True)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    is_overdue_notified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(condition=models.Q(paid_amount__gte=0), name="order_paid_amount_non_negative"),
            models.CheckConstraint(condition=models.Q(balance_due__gte=0), name="order_balance_due_non_negative"),
            models.CheckConstraint(
                condition=(
                    models.Q(status=OrderStatus.CANCELLED, cancelled_at__isnull=False)
                    | (~models.Q(status=OrderStatus.CANCELLED) & models.Q(cancelled_at__isnull=True))
                ),
                name="order_cancellation_matches_status",
            ),
        ]
        indexes = [
            models.Index(fields=["customer", "status"], name="order_customer_status_idx"),
            models.Index(fields=["vendor", "status"], name="order_vendor_status_idx"),
            models.Index(fields=["status", "return_scheduled_at"], name="order_status_return_idx"),
        ]

    def __str__(self):
        return f"Order {self.id} ({self.status})"

    @property
    def cancellation(self):
        if self.status != OrderStatus.CANCELLED:
            return None
        return {
            "by": self.cancelled_by_id,
            "at": self.cancelled_at,
            "reason": self.cancel_reason,
            "refund_amount": self.refund_amount,
        }


class OrderLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="lines")
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name="order_lines")
    position = models.PositiveIntegerField(default=0)
    product_name = models.CharField(max_length=255)
    product_image = models.URLField(max_length=500, blank=True)
    quantity = models.PositiveIntegerField()
    start = models.DateTimeField()
    end = models.DateTimeField()
    unit = models.CharField(max_length=10)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    billed_units = models.PositiveIntegerField(default=1)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["position"]


class Reservation(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="reservations")
    order_line = models.OneToOneField(OrderLine, on_delete=models.CASCADE, related_name="reservation")
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name="reservations")
    quantity = models.PositiveIntegerField()
    start = models.DateTimeField()
    end = models.DateTimeField()
    status = models.CharField(max_length=20, choices=ReservationStatus.choices, default=ReservationStatus.RESERVED)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="reservation_quantity_positive"),
            models.CheckConstraint(condition=models.Q(start__lt=models.F("end")), name="reservation_start_before_end"),
        ]
        indexes = [
            models.Index(fields=["product", "start", "end"], name="reservation_product_window_idx"),
            models.Index(fields=["product", "status"], name="reservation_product_status_idx"),
        ]


class DeliveryNote(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="delivery_notes")
    note_type = models.CharField(max_length=10, choices=DeliveryNoteType.choices)
    status = models.CharField(max_length=20, choices=DeliveryNoteStatus.choices, default=DeliveryNoteStatus.SCHEDULED)
    scheduled_at = models.DateTimeField()
    actual_at = models.DateTimeField(null=True, blank=True)
    driver = models.CharField(max_length=120, blank=True)
    checklist = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["scheduled_at"]
