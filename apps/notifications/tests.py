from datetime import timedelta
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.db import transaction
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.notifications.events import OrderCancelled, OrderOverdue, QuotationStatusUpdate, event_from_payload
from apps.notifications.models import Notification, NotificationChannel, NotificationKind, NotificationStatus
from apps.notifications.services import dispatch_notification, notify

User = get_user_model()


class NotificationTests(APITestCase):
    def setUp(self):
        self.customer = User.objects.create_user(
            username="customer", password="customer123", role="CUSTOMER", email="customer@example.com"
        )
        self.vendor = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_events_round_trip_through_the_stored_payload(self):
        event = OrderOverdue(order_id="abc", return_scheduled_at="2025-01-01T10:00:00+00:00")
        notification = notify(self.customer, event)
        self.assertEqual(notification.kind, NotificationKind.ORDER_OVERDUE)
        self.assertEqual(event_from_payload(notification.kind, notification.payload), event)

        with self.assertRaises(ValueError):
            event_from_payload("unknown", {})

    def test_email_is_sent_only_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            notification = notify(
                self.customer,
                OrderCancelled(order_id="o-1", reason="Trip postponed"),
                channel=NotificationChannel.EMAIL,
            )
            self.assertEqual(len(mail.outbox), 0)

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("Trip postponed", mail.outbox[0].body)
        notification.refresh_from_db()
        self.assertEqual(notification.status, NotificationStatus.SENT)
        self.assertIsNotNone(notification.sent_at)
        self.assertEqual(notification.attempts, 1)

    def test_rolled_back_operation_notifies_nobody(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            try:
                with transaction.atomic():
                    notify(self.customer, QuotationStatusUpdate(quotation_id="q-1", status="approved"))
                    raise RuntimeError("boom")
            except RuntimeError:
                pass
        self.assertEqual(callbacks, [])
        self.assertEqual(Notification.objects.count(), 0)

    def test_delivery_failure_is_recorded_not_raised(self):
        notification = notify(
            self.vendor,
            QuotationStatusUpdate(quotation_id="q-1", status="sent"),
            channel=NotificationChannel.EMAIL,
        )
        dispatched = dispatch_notification(notification.id)
        self.assertEqual(dispatched.status, NotificationStatus.FAILED)
        self.assertIn("no email address", dispatched.last_error)

        sent_again = dispatch_notification(notification.id)
        self.assertIsNone(sent_again)

        other = notify(self.customer, QuotationStatusUpdate(quotation_id="q-2", status="sent"), channel="email")
        with mock.patch("apps.notifications.services.send_mail", side_effect=ConnectionRefusedError("smtp down")):
            self.assertEqual(dispatch_notification(other.id).status, NotificationStatus.FAILED)

    def test_dispatch_command_sends_due_notifications(self):
        due = notify(self.customer, QuotationStatusUpdate(quotation_id="q-1", status="sent"))
        later = notify(
            self.customer,
            QuotationStatusUpdate(quotation_id="q-2", status="sent"),
            scheduled_at=timezone.now() + timedelta(days=1),
        )
        out = StringIO()
        call_command("dispatch_notifications", stdout=out)

        self.assertIn("sent: 1", out.getvalue())
        self.assertEqual(Notification.objects.get(pk=due.pk).status, NotificationStatus.SENT)
        self.assertEqual(Notification.objects.get(pk=later.pk).status, NotificationStatus.SCHEDULED)

    def test_users_list_and_mark_their_own_notifications(self):
        first = notify(self.customer, QuotationStatusUpdate(quotation_id="q-1", status="sent"))
        notify(self.customer, QuotationStatusUpdate(quotation_id="q-2", status="approved"))
        notify(self.vendor, QuotationStatusUpdate(quotation_id="q-3", status="approved"))

        self.auth_as("customer", "customer123")
        listing = self.client.get("/api/v1/notifications/")
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.data["count"], 2)

        marked = self.client.post("/api/v1/notifications/mark-read/", {"ids": [str(first.id)]}, format="json")
        self.assertEqual(marked.data["updated"], 1)
        self.assertEqual(self.client.get("/api/v1/notifications/?unread=true").data["count"], 1)

        self.client.post("/api/v1/notifications/mark-read/", {}, format="json")
        self.assertEqual(self.client.get("/api/v1/notifications/?unread=true").data["count"], 0)
        self.assertIsNone(Notification.objects.get(recipient=self.vendor).read_at)
