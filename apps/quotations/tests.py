from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.catalog.models import Product
from apps.notifications.models import Notification, NotificationKind
from apps.quotations.models import Quotation, QuotationStatus

User = get_user_model()


class QuotationApiTests(APITestCase):
    def setUp(self):
        self.customer = User.objects.create_user(username="customer", password="customer123", role="CUSTOMER")
        self.other_customer = User.objects.create_user(username="customer2", password="customer123", role="CUSTOMER")
        self.vendor = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR")
        self.other_vendor = User.objects.create_user(username="vendor2", password="vendor123", role="VENDOR")
        self.tent = Product.objects.create(vendor=self.vendor, name="Tent", stock=5, price_per_day=Decimal("40.00"))
        self.lamp = Product.objects.create(vendor=self.vendor, name="Lamp", stock=10, price_per_hour=Decimal("2.50"))
        self.canoe = Product.objects.create(
            vendor=self.other_vendor,
            name="Canoe",
            stock=2,
            price_per_day=Decimal("60.00"),
            price_per_week=Decimal("300.00"),
        )
        self.start = timezone.now().replace(microsecond=0) + timedelta(days=2)

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def item(self, product, quantity=1, days=1):
        return {
            "product": str(product.id),
            "quantity": quantity,
            "start": self.start.isoformat(),
            "end": (self.start + timedelta(days=days)).isoformat(),
        }

    def request_quotation(self, *items, notes=""):
        return self.client.post("/api/v1/quotations/", {"items": list(items), "notes": notes}, format="json")

    def test_lines_are_grouped_into_one_quotation_per_vendor(self):
        self.auth_as("customer", "customer123")
        response = self.request_quotation(
            self.item(self.tent, quantity=2, days=3),
            self.item(self.canoe, days=7),
            self.item(self.lamp, quantity=4, days=1),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.data), 2)

        first, second = response.data
        self.assertEqual(first["vendor"], self.vendor.id)
        self.assertEqual([line["product_name"] for line in first["lines"]], ["Tent", "Lamp"])
        # tent 40 x 3 days x 2, lamp has only an hourly price: 2.50 x 24 hours x 4
        self.assertEqual(Decimal(first["subtotal"]), Decimal("480.00"))
        self.assertEqual(Decimal(first["tax"]), Decimal("86.40"))
        self.assertEqual(Decimal(first["total"]), Decimal("566.40"))
        self.assertEqual(first["status"], QuotationStatus.DRAFT)

        self.assertEqual(second["vendor"], self.other_vendor.id)
        self.assertEqual(second["lines"][0]["unit"], "week")
        self.assertEqual(Decimal(second["subtotal"]), Decimal("300.00"))

        kinds = Notification.objects.filter(kind=NotificationKind.NEW_QUOTATION)
        self.assertEqual(set(kinds.values_list("recipient_id", flat=True)), {self.vendor.id, self.other_vendor.id})

    def test_invalid_items_create_nothing(self):
        self.tent.is_active = False
        self.tent.save()
        self.auth_as("customer", "customer123")

        inactive = self.request_quotation(self.item(self.canoe), self.item(self.tent))
        self.assertEqual(inactive.status_code, 400)

        too_many = self.request_quotation(self.item(self.canoe), self.item(self.lamp, quantity=11))
        self.assertEqual(too_many.status_code, 400)

        missing = self.request_quotation({**self.item(self.canoe), "product": "00000000-0000-0000-0000-000000000000"})
        self.assertEqual(missing.status_code, 404)

        malformed = self.request_quotation({**self.item(self.canoe), "product": "abc"})
        self.assertEqual(malformed.status_code, 400)
        self.assertEqual(malformed.data["code"], "invalid_id")

        empty = self.request_quotation()
        self.assertEqual(empty.status_code, 400)

        self.assertEqual(Quotation.objects.count(), 0)

    def test_vendors_cannot_request_quotations(self):
        self.auth_as("vendor", "vendor123")
        self.assertEqual(self.request_quotation(self.item(self.canoe)).status_code, 403)

    def test_vendor_moves_quotation_and_customer_is_notified(self):
        self.auth_as("customer", "customer123")
        quotation_id = self.request_quotation(self.item(self.tent)).data[0]["id"]

        approve_by_customer = self.client.patch(
            f"/api/v1/quotations/{quotation_id}/status/", {"status": "approved"}, format="json"
        )
        self.assertEqual(approve_by_customer.status_code, 403)

        self.auth_as("vendor", "vendor123")
        sent = self.client.patch(f"/api/v1/quotations/{quotation_id}/status/", {"status": "sent"}, format="json")
        self.assertEqual(sent.status_code, 200)
        approved = self.client.patch(f"/api/v1/quotations/{quotation_id}/", {"status": "approved"}, format="json")
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.data["status"], QuotationStatus.APPROVED)

        updates = Notification.objects.filter(recipient=self.customer, kind=NotificationKind.QUOTATION_STATUS_UPDATE)
        self.assertEqual(updates.count(), 2)

    def test_terminal_quotations_cannot_change(self):
        self.auth_as("customer", "customer123")
        quotation_id = self.request_quotation(self.item(self.tent)).data[0]["id"]
        cancelled = self.client.patch(
            f"/api/v1/quotations/{quotation_id}/status/", {"status": "cancelled_by_customer"}, format="json"
        )
        self.assertEqual(cancelled.status_code, 200)
        self.assertTrue(
            Notification.objects.filter(recipient=self.vendor, kind=NotificationKind.QUOTATION_CANCELLED_BY_CUSTOMER).exists()
        )

        self.auth_as("vendor", "vendor123")
        response = self.client.patch(f"/api/v1/quotations/{quotation_id}/status/", {"status": "approved"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_state")

        converted = self.client.patch(f"/api/v1/quotations/{quotation_id}/status/", {"status": "converted"}, format="json")
        self.assertEqual(converted.status_code, 400)

    def test_quotations_are_visible_to_their_parties_only(self):
        self.auth_as("customer", "customer123")
        quotation_id = self.request_quotation(self.item(self.tent)).data[0]["id"]

        self.auth_as("vendor", "vendor123")
        self.assertEqual(self.client.get("/api/v1/quotations/").data["count"], 1)

        self.auth_as("vendor2", "vendor123")
        self.assertEqual(self.client.get("/api/v1/quotations/").data["count"], 0)

        self.auth_as("customer2", "customer123")
        self.assertEqual(self.client.get("/api/v1/quotations/").data["count"], 0)
        self.assertEqual(self.client.get(f"/api/v1/quotations/{quotation_id}/").status_code, 403)

    def test_only_draft_quotations_can_be_deleted(self):
        self.auth_as("customer", "customer123")
        draft_id = self.request_quotation(self.item(self.tent)).data[0]["id"]
        sent_id = self.request_quotation(self.item(self.lamp)).data[0]["id"]
        Quotation.objects.filter(pk=sent_id).update(status=QuotationStatus.SENT)

        self.assertEqual(self.client.delete(f"/api/v1/quotations/{sent_id}/").status_code, 400)
        self.assertEqual(self.client.delete(f"/api/v1/quotations/{draft_id}/").status_code, 204)
        self.assertFalse(Quotation.objects.filter(pk=draft_id).exists())
