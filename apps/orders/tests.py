from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.db import DatabaseError
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.notifications.models import Notification, NotificationKind
from apps.orders.models import Order, OrderStatus, Reservation, ReservationStatus
from apps.quotations.models import Quotation, QuotationStatus
from apps.quotations.services import build_quotations, update_quotation_status

User = get_user_model()


class OrderApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.customer = User.objects.create_user(
            username="customer", password="customer123", role="CUSTOMER", email="customer@example.com"
        )
        self.other_customer = User.objects.create_user(username="customer2", password="customer123", role="CUSTOMER")
        self.vendor = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR")
        self.tent = Product.objects.create(vendor=self.vendor, name="Tent", stock=5, price_per_day=Decimal("40.00"))
        self.stove = Product.objects.create(vendor=self.vendor, name="Stove", stock=3, price_per_day=Decimal("10.00"))
        self.start = timezone.now().replace(microsecond=0) + timedelta(days=2)
        self.end = self.start + timedelta(days=3)

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def quotation(self, approve=True):
        quotation = build_quotations(
            actor=self.customer,
            items=[
                {"product": str(self.tent.id), "quantity": 2, "start": self.start, "end": self.end},
                {"product": str(self.stove.id), "quantity": 1, "start": self.start, "end": self.end},
            ],
        )[0]
        if approve:
            update_quotation_status(actor=self.vendor, quotation_id=quotation.id, status=QuotationStatus.APPROVED)
            quotation.refresh_from_db()
        return quotation

    def convert(self, quotation, **body):
        payload = {"quotation_id": str(quotation.id), "delivery_method": "pickup", **body}
        return self.client.post("/api/v1/orders/from-quotation/", payload, format="json")

    def placed_order(self):
        self.auth_as("customer", "customer123")
        return Order.objects.get(pk=self.convert(self.quotation()).data["id"])

    def set_status(self, order, status):
        self.auth_as("vendor", "vendor123")
        return self.client.patch(f"/api/v1/orders/{order.id}/status/", {"status": status}, format="json")

    def test_approved_quotation_converts_into_reserved_order(self):
        quotation = self.quotation()
        self.auth_as("customer", "customer123")

        with self.captureOnCommitCallbacks(execute=True):
            response = self.convert(quotation)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], OrderStatus.RESERVED)
        self.assertEqual(response.data["vendor"], self.vendor.id)
        self.assertEqual(Decimal(response.data["total"]), quotation.total)
        self.assertEqual(Decimal(response.data["paid_amount"]), Decimal("0.00"))
        self.assertEqual(Decimal(response.data["balance_due"]), quotation.total)
        self.assertEqual(len(response.data["lines"]), 2)
        self.assertIsNone(response.data["cancellation"])

        order = Order.objects.get(pk=response.data["id"])
        self.assertEqual(order.pickup_scheduled_at, self.start)
        self.assertEqual(order.return_scheduled_at, self.end)
        reservations = Reservation.objects.filter(order=order)
        self.assertEqual(reservations.count(), 2)
        self.assertTrue(all(r.status == ReservationStatus.RESERVED for r in reservations))

        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.CONVERTED)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["customer@example.com"])
        self.assertTrue(AuditLog.objects.filter(action="order.create_from_quotation", entity_id=str(order.id)).exists())

    def test_conversion_preconditions(self):
        draft = self.quotation(approve=False)
        self.auth_as("customer", "customer123")
        not_approved = self.convert(draft)
        self.assertEqual(not_approved.status_code, 400)
        self.assertEqual(not_approved.data["code"], "invalid_state")

        approved = self.quotation()
        no_address = self.convert(approved, delivery_method="delivery")
        self.assertEqual(no_address.status_code, 400)
        self.assertIn("delivery_address", no_address.data["fields"])

        self.assertEqual(self.convert(approved, quotation_id="xyz").status_code, 400)

        self.auth_as("customer2", "customer123")
        self.assertEqual(self.convert(approved).status_code, 403)

        self.auth_as("customer", "customer123")
        delivered = self.convert(approved, delivery_method="delivery", delivery_address="12 Lake Road")
        self.assertEqual(delivered.status_code, 201)
        self.assertEqual(delivered.data["delivery_address"], "12 Lake Road")

        self.assertEqual(self.convert(approved).status_code, 400)
        self.assertEqual(Order.objects.count(), 1)

    def test_failed_conversion_leaves_no_partial_state(self):
        quotation = self.quotation()
        self.auth_as("customer", "customer123")

        with mock.patch("apps.orders.services._create_reservations", side_effect=DatabaseError("disk full")):
            response = self.convert(quotation)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "transaction_failed")
        self.assertNotIn("disk full", str(response.data))
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(Reservation.objects.count(), 0)
        self.assertEqual(Quotation.objects.get(pk=quotation.pk).status, QuotationStatus.APPROVED)
        self.assertFalse(Notification.objects.filter(kind=NotificationKind.ORDER_STATUS_UPDATE).exists())

    def test_unexpected_error_during_conversion_returns_generic_json_500(self):
        quotation = self.quotation()
        self.auth_as("customer", "customer123")

        with mock.patch("apps.orders.services._create_reservations", side_effect=ValueError("internal secret")):
            with self.assertLogs("apps.common.transactions", level="ERROR"):
                response = self.convert(quotation)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response["Content-Type"], "application/json")
        self.assertEqual(response.data["code"], "transaction_failed")
        self.assertNotIn("internal secret", response.content.decode())
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(Reservation.objects.count(), 0)

    def test_status_update_moves_reservations_along(self):
        order = self.placed_order()

        self.auth_as("customer", "customer123")
        self.assertEqual(self.client.patch(f"/api/v1/orders/{order.id}/status/", {"status": "in_use"}, format="json").status_code, 403)

        response = self.set_status(order, OrderStatus.IN_USE)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], OrderStatus.IN_USE)
        self.assertIsNotNone(response.data["pickup_actual_at"])
        statuses = set(order.reservations.values_list("status", flat=True))
        self.assertEqual(statuses, {ReservationStatus.PICKED_UP})

        self.set_status(order, OrderStatus.RETURNED)
        self.assertEqual(set(order.reservations.values_list("status", flat=True)), {ReservationStatus.RETURNED})

        self.assertEqual(self.set_status(order, "lost").status_code, 400)

    def test_customer_cancels_reserved_order(self):
        order = self.placed_order()

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": "Trip postponed"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], OrderStatus.CANCELLED)
        self.assertEqual(response.data["cancellation"]["by"], self.customer.id)
        self.assertEqual(response.data["cancellation"]["reason"], "Trip postponed")
        self.assertEqual(response.data["cancellation"]["refund_amount"], "0.00")
        self.assertEqual(set(order.reservations.values_list("status", flat=True)), {ReservationStatus.CANCELLED})
        self.assertTrue(Notification.objects.filter(recipient=self.customer, kind=NotificationKind.ORDER_CANCELLED).exists())

        again = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": "Twice"}, format="json")
        self.assertEqual(again.status_code, 400)

    def test_completed_order_cannot_be_cancelled(self):
        order = self.placed_order()
        self.set_status(order, OrderStatus.COMPLETED)
        order.refresh_from_db()
        before = (order.status, order.cancelled_at, order.cancel_reason, order.updated_at)

        self.auth_as("customer", "customer123")
        response = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": "Changed my mind"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_state")

        order.refresh_from_db()
        self.assertEqual((order.status, order.cancelled_at, order.cancel_reason, order.updated_at), before)
        self.assertEqual(set(order.reservations.values_list("status", flat=True)), {ReservationStatus.RETURNED})

    def test_orders_out_with_the_customer_or_returned_cannot_be_cancelled(self):
        for status in (OrderStatus.IN_USE, OrderStatus.RETURNED):
            order = self.placed_order()
            self.set_status(order, status)

            self.auth_as("customer", "customer123")
            response = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": "Too late"}, format="json")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(Order.objects.get(pk=order.pk).status, status)

    def test_cancel_requires_reason_and_the_right_actor(self):
        order = self.placed_order()
        self.assertEqual(self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": ""}, format="json").status_code, 400)

        self.auth_as("vendor", "vendor123")
        self.assertEqual(self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": "No"}, format="json").status_code, 403)

        self.auth_as("customer2", "customer123")
        self.assertEqual(self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": "No"}, format="json").status_code, 403)

        self.auth_as("admin", "admin123")
        self.assertEqual(self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": "Fraud"}, format="json").status_code, 200)

    def test_orders_are_visible_to_their_parties_only(self):
        order = self.placed_order()
        self.assertEqual(self.client.get("/api/v1/orders/").data["count"], 1)
        self.assertEqual(self.client.get(f"/api/v1/reservations/?order={order.id}").data["count"], 2)

        self.auth_as("customer2", "customer123")
        self.assertEqual(self.client.get("/api/v1/orders/").data["count"], 0)
        self.assertEqual(self.client.get(f"/api/v1/orders/{order.id}/").status_code, 403)
        self.assertEqual(self.client.get("/api/v1/reservations/").data["count"], 0)

    def test_overdue_sweep_flags_each_order_once(self):
        order = self.placed_order()
        Order.objects.filter(pk=order.pk).update(
            status=OrderStatus.IN_USE,
            return_scheduled_at=timezone.now() - timedelta(hours=2),
        )
        on_time = self.placed_order()
        Order.objects.filter(pk=on_time.pk).update(status=OrderStatus.IN_USE)

        call_command("flag_overdue_orders", stdout=StringIO())
        call_command("flag_overdue_orders", stdout=StringIO())

        order.refresh_from_db()
        on_time.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.OVERDUE)
        self.assertTrue(order.is_overdue_notified)
        self.assertEqual(on_time.status, OrderStatus.IN_USE)
        overdue = Notification.objects.filter(kind=NotificationKind.ORDER_OVERDUE)
        self.assertEqual(overdue.count(), 1)
        self.assertEqual(overdue.get().channel, "email")

    def test_completing_delivery_notes_advances_the_order(self):
        order = self.placed_order()

        denied = self.client.post("/api/v1/delivery-notes/", {"order": str(order.id), "note_type": "pickup"}, format="json")
        self.assertEqual(denied.status_code, 403)

        self.auth_as("vendor", "vendor123")
        created = self.client.post(
            "/api/v1/delivery-notes/",
            {
                "order": str(order.id),
                "note_type": "pickup",
                "driver": "Ravi",
                "checklist": [{"name": "Poles", "checked": True}],
            },
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["status"], "scheduled")
        self.assertEqual(created.data["checklist"][0]["name"], "Poles")

        completed = self.client.patch(f"/api/v1/delivery-notes/{created.data['id']}/", {"status": "completed"}, format="json")
        self.assertEqual(completed.status_code, 200)
        self.assertIsNotNone(completed.data["actual_at"])
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.IN_USE)

        reopen = self.client.patch(f"/api/v1/delivery-notes/{created.data['id']}/", {"driver": "Someone"}, format="json")
        self.assertEqual(reopen.status_code, 400)
