import uuid

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


class NotificationKind(models.TextChoices):
    NEW_QUOTATION = "new_quotation", "New quotation"
    QUOTATION_STATUS_UPDATE = "quotation_status_update", "Quotation status update"
    QUOTATION_CANCELLED_BY_CUSTOMER = "quotation_cancelled_by_customer", "Quotation cancelled by customer"
    ORDER_STATUS_UPDATE = "order_status_update", "Order status update"
    ORDER_CANCELLED = "order_cancelled", "Order cancelled"
    ORDER_OVERDUE = "order_overdue", "Order overdue"


class NotificationChannel(models.TextChoices):
    EMAIL = "email", "Email"
    PUSH = "push", "Push"
    IN_APP = "in_app", "In app"


class NotificationStatus(models.TextChoices):
    SCHEDULED = "scheduled", "Scheduled"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"


class Notification(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    kind = models.CharField(max_length=40, choices=NotificationKind.choices)
    channel = models.CharField(max_length=10, choices=NotificationChannel.choices, default=NotificationChannel.PUSH)
    payload = models.JSONField(default=dict, encoder=DjangoJSONEncoder)
    status = models.CharField(max_length=10, choices=NotificationStatus.choices, default=NotificationStatus.SCHEDULED)
    scheduled_at = models.DateTimeField(default=timezone.now)
    sent_at = models.DateTimeField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient", "read_at"], name="notification_recipient_idx"),
            models.Index(fields=["status", "scheduled_at"], name="notification_outbox_idx"),
        ]

    def __str__(self):
        return f"{self.kind} -> {self.recipient_id} ({self.status})"
