# Generated manually for the notification outbox

import uuid

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("new_quotation", "New quotation"),
                            ("quotation_status_update", "Quotation status update"),
                            ("quotation_cancelled_by_customer", "Quotation cancelled by customer"),
                            ("order_status_update", "Order status update"),
                            ("order_cancelled", "Order cancelled"),
                            ("order_overdue", "Order overdue"),
                        ],
                        max_length=40,
                    ),
                ),
                (
                    "channel",
                    models.CharField(
                        choices=[("email", "Email"), ("push", "Push"), ("in_app", "In app")],
                        default="push",
                        max_length=10,
                    ),
                ),
                ("payload", models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                (
                    "status",
                    models.CharField(
                        choices=[("scheduled", "Scheduled"), ("sent", "Sent"), ("failed", "Failed")],
                        default="scheduled",
                        max_length=10,
                    ),
                ),
                ("scheduled_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("last_error", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "recipient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["recipient", "read_at"], name="notification_recipient_idx"),
                    models.Index(fields=["status", "scheduled_at"], name="notification_outbox_idx"),
                ],
            },
        ),
    ]
