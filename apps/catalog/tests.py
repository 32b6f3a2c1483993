from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Category, MaintenanceBlock, Product
from apps.catalog.pricing import resolve_price
from apps.orders.services import convert_quotation
from apps.quotations.services import build_quotations, update_quotation_status

User = get_user_model()


class PricingResolverTests(APITestCase):
    def setUp(self):
        self.vendor = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR")
        self.start = timezone.now().replace(microsecond=0) + timedelta(days=3)

    def product(self, **prices):
        return Product(vendor=self.vendor, name="Tent", stock=10, **prices)

    def test_multi_day_daily_booking_bills_every_day(self):
        product = self.product(price_per_day=Decimal("40.00"))
        quote = resolve_price(product, 2, self.start, self.start + timedelta(days=3))
        self.assertEqual(quote.unit, "day")
        self.assertEqual(quote.billed_units, 3)
        self.assertEqual(quote.line_total, Decimal("240.00"))

    def test_weekly_tier_wins_at_seven_days_but_not_at_six(self):
        product = self.product(price_per_day=Decimal("40.00"), price_per_week=Decimal("200.00"))

        week = resolve_price(product, 1, self.start, self.start + timedelta(days=7))
        self.assertEqual((week.unit, week.unit_price, week.line_total), ("week", Decimal("200.00"), Decimal("200.00")))

        six_days = resolve_price(product, 1, self.start, self.start + timedelta(days=6))
        self.assertEqual((six_days.unit, six_days.billed_units), ("day", 6))
        self.assertEqual(six_days.line_total, Decimal("240.00"))

    def test_tier_thresholds_are_six_and_a_half_days_and_twenty_two_hours(self):
        product = self.product(
            price_per_hour=Decimal("5.00"),
            price_per_day=Decimal("40.00"),
            price_per_week=Decimal("200.00"),
        )
        self.assertEqual(resolve_price(product, 1, self.start, self.start + timedelta(days=6, hours=12)).unit, "week")
        self.assertEqual(resolve_price(product, 1, self.start, self.start + timedelta(days=6, hours=11)).unit, "day")
        self.assertEqual(resolve_price(product, 1, self.start, self.start + timedelta(hours=22)).unit, "day")

        short = resolve_price(product, 1, self.start, self.start + timedelta(hours=21, minutes=30))
        self.assertEqual((short.unit, short.billed_units, short.line_total), ("hour", 22, Decimal("110.00")))

    def test_short_booking_without_hourly_price_falls_back_to_one_day(self):
        product = self.product(price_per_day=Decimal("40.00"))
        quote = resolve_price(product, 3, self.start, self.start + timedelta(hours=2))
        self.assertEqual((quote.unit, quote.billed_units, quote.line_total), ("day", 1, Decimal("120.00")))

    def test_invalid_periods_quantities_and_missing_prices_are_rejected(self):
        product = self.product(price_per_day=Decimal("40.00"))
        with self.assertRaises(ValidationError):
            resolve_price(product, 1, self.start, self.start)
        with self.assertRaises(ValidationError):
            resolve_price(product, 0, self.start, self.start + timedelta(days=1))
        with self.assertRaises(ValidationError):
            resolve_price(self.product(price_per_week=Decimal("200.00")), 1, self.start, self.start + timedelta(days=2))


class CatalogApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.vendor = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR")
        self.other_vendor = User.objects.create_user(username="vendor2", password="vendor123", role="VENDOR")
        self.customer = User.objects.create_user(username="customer", password="customer123", role="CUSTOMER")
        self.category = Category.objects.create(name="Camping")
        self.product = Product.objects.create(
            vendor=self.vendor,
            category=self.category,
            sku="TENT-01",
            name="Tent",
            stock=5,
            price_per_day=Decimal("40.00"),
        )
        self.start = timezone.now().replace(microsecond=0) + timedelta(days=5)
        self.end = self.start + timedelta(days=2)

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def reserve(self, quantity, start, end):
        quotation = build_quotations(
            actor=self.customer,
            items=[{"product": str(self.product.id), "quantity": quantity, "start": start, "end": end}],
        )[0]
        update_quotation_status(actor=self.vendor, quotation_id=quotation.id, status="approved")
        return convert_quotation(actor=self.customer, quotation_id=quotation.id, delivery_method="pickup")

    def availability(self, **params):
        return self.client.get(f"/api/v1/products/{self.product.id}/availability/", params)

    def window(self, quantity):
        return self.availability(start_date=self.start.isoformat(), end_date=self.end.isoformat(), quantity=quantity)

    def test_vendor_creates_product_and_it_is_audited(self):
        self.auth_as("vendor", "vendor123")
        response = self.client.post(
            "/api/v1/products/",
            {
                "name": "Camping stove",
                "sku": "STOVE-01",
                "category": str(self.category.id),
                "stock": 3,
                "price_per_hour": "4.00",
                "price_per_day": "15.00",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["vendor"], self.vendor.id)
        self.assertTrue(AuditLog.objects.filter(action="catalog.product.create", entity_id=response.data["id"]).exists())

    def test_product_needs_a_price_tier(self):
        self.auth_as("vendor", "vendor123")
        response = self.client.post("/api/v1/products/", {"name": "Free thing", "stock": 1}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("pricing", response.data["fields"])

    def test_database_rejects_products_without_any_price_tier(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            Product.objects.create(vendor=self.vendor, name="Unpriced", stock=1)
        with self.assertRaises(IntegrityError), transaction.atomic():
            Product.objects.create(vendor=self.vendor, name="Zero priced", stock=1, price_per_day=Decimal("0.00"))
        self.assertFalse(Product.objects.filter(name__in=["Unpriced", "Zero priced"]).exists())

    def test_duplicate_sku_is_a_conflict(self):
        self.auth_as("vendor2", "vendor123")
        response = self.client.post(
            "/api/v1/products/",
            {"name": "Other tent", "sku": "TENT-01", "stock": 1, "price_per_day": "30.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "conflict")

    def test_customers_cannot_manage_products_and_vendors_only_their_own(self):
        self.auth_as("customer", "customer123")
        created = self.client.post("/api/v1/products/", {"name": "Kayak", "stock": 1, "price_per_day": "9.00"}, format="json")
        self.assertEqual(created.status_code, 403)

        self.auth_as("vendor2", "vendor123")
        updated = self.client.patch(f"/api/v1/products/{self.product.id}/", {"stock": 50}, format="json")
        self.assertEqual(updated.status_code, 403)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_listing_filters(self):
        Product.objects.create(vendor=self.other_vendor, name="Canoe", stock=0, price_per_day=Decimal("60.00"))
        self.auth_as("customer", "customer123")

        self.assertEqual(self.client.get("/api/v1/products/?q=ten").data["count"], 1)
        self.assertEqual(self.client.get("/api/v1/products/?availability=out-of-stock").data["count"], 1)
        self.assertEqual(self.client.get(f"/api/v1/products/?category={self.category.id}").data["count"], 1)

        bad = self.client.get("/api/v1/products/?category=not-a-uuid")
        self.assertEqual(bad.status_code, 400)
        self.assertEqual(bad.data["code"], "invalid_id")

    def test_category_management_is_admin_only_and_delete_is_guarded(self):
        self.auth_as("vendor", "vendor123")
        self.assertEqual(self.client.post("/api/v1/categories/", {"name": "Boats"}, format="json").status_code, 403)

        self.auth_as("admin", "admin123")
        created = self.client.post("/api/v1/categories/", {"name": "Party Supplies"}, format="json")
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["slug"], "party-supplies")
        self.assertEqual(self.client.delete(f"/api/v1/categories/{self.category.id}/").status_code, 409)

    def test_windowed_availability_subtracts_overlapping_reservations(self):
        self.reserve(3, self.start, self.end)
        self.auth_as("customer", "customer123")

        too_many = self.window(3)
        self.assertEqual(too_many.status_code, 200)
        self.assertFalse(too_many.data["available"])
        self.assertEqual(too_many.data["available_stock"], 2)
        self.assertEqual(too_many.data["reserved"], 3)
        self.assertEqual(too_many.data["reason"], "Insufficient stock for the requested period")

        enough = self.window(2)
        self.assertTrue(enough.data["available"])
        self.assertEqual(enough.data["reason"], "Available")

    def test_reservations_outside_the_window_or_cancelled_do_not_count(self):
        later = self.end + timedelta(days=1)
        self.reserve(4, later, later + timedelta(days=1))
        order = self.reserve(4, self.start, self.end)
        order.reservations.update(status="cancelled")

        self.auth_as("customer", "customer123")
        response = self.window(5)
        self.assertTrue(response.data["available"])
        self.assertEqual(response.data["available_stock"], 5)

    def test_maintenance_overlap_makes_product_unavailable(self):
        MaintenanceBlock.objects.create(
            product=self.product,
            start=self.start + timedelta(hours=6),
            end=self.end + timedelta(days=1),
            reason="Seam repair",
        )
        self.auth_as("customer", "customer123")
        response = self.window(1)
        self.assertFalse(response.data["available"])
        self.assertEqual(response.data["available_stock"], 0)
        self.assertEqual(response.data["reason"], "Product is under maintenance during the requested period")

    def test_snapshot_availability_counts_held_reservations(self):
        self.reserve(5, self.start, self.end)
        self.auth_as("customer", "customer123")
        response = self.availability()
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["available"])
        self.assertEqual(response.data["reason"], "Out of stock")
        self.assertEqual(response.data["total_stock"], 5)

    def test_availability_errors(self):
        self.auth_as("customer", "customer123")
        malformed = self.client.get("/api/v1/products/nope/availability/")
        self.assertEqual(malformed.status_code, 400)
        self.assertEqual(malformed.data["code"], "invalid_id")

        missing = self.client.get("/api/v1/products/00000000-0000-0000-0000-000000000000/availability/")
        self.assertEqual(missing.status_code, 404)

        half_window = self.availability(start_date=self.start.isoformat())
        self.assertEqual(half_window.status_code, 400)

        backwards = self.availability(start_date=self.end.isoformat(), end_date=self.start.isoformat())
        self.assertEqual(backwards.status_code, 400)

    def test_product_with_rental_history_cannot_be_deleted(self):
        self.reserve(1, self.start, self.end)
        self.auth_as("vendor", "vendor123")
        response = self.client.delete(f"/api/v1/products/{self.product.id}/")
        self.assertEqual(response.status_code, 409)
        self.assertTrue(Product.objects.filter(pk=self.product.pk).exists())
