import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models


class QuotationStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    CONVERTED = "converted", "Converted"
    CANCELLED_BY_CUSTOMER = "cancelled_by_customer", "Cancelled by customer"


TERMINAL_QUOTATION_STATUSES = frozenset(
    {QuotationStatus.CONVERTED, QuotationStatus.REJECTED, QuotationStatus.CANCELLED_BY_CUSTOMER}
)


class Quotation(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="quotations")
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="received_quotations")
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=30, choices=QuotationStatus.choices, default=QuotationStatus.DRAFT)
    notes = models.TextField(blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "status"], name="quotation_customer_status_idx"),
            models.Index(fields=["vendor", "status"], name="quotation_vendor_status_idx"),
        ]

    def __str__(self):
        return f"Quotation {self.id} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in TERMINAL_QUOTATION_STATUSES


class QuotationLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name="lines")
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name="quotation_lines")
    position = models.PositiveIntegerField(default=0)
    quantity = models.PositiveIntegerField()
    start = models.DateTimeField()
    end = models.DateTimeField()
    unit = models.CharField(max_length=10)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    billed_units = models.PositiveIntegerField(default=1)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["position"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="quotation_line_quantity_positive"),
            models.CheckConstraint(condition=models.Q(start__lt=models.F("end")), name="quotation_line_start_before_end"),
            models.CheckConstraint(condition=models.Q(unit_price__gte=0), name="quotation_line_price_non_negative"),
        ]
