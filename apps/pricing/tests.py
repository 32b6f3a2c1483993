from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.test import APITestCase

from apps.catalog.models import Product
from apps.pricing.models import DiscountRule, Pricelist
from apps.pricing.services import apply_discount_code

User = get_user_model()


class DiscountCodeTests(APITestCase):
    def setUp(self):
        self.vendor = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR")
        self.other_vendor = User.objects.create_user(username="vendor2", password="vendor123", role="VENDOR")

    def rule(self, code="SUMMER", **fields):
        vendor = fields.pop("vendor", self.vendor)
        values = {"discount_type": "percent", "value": Decimal("10.00"), **fields}
        return DiscountRule.objects.create(vendor=vendor, code=code, **values)

    def test_percent_and_fixed_discounts(self):
        self.rule()
        self.rule(code="FLAT500", discount_type="fixed", value=Decimal("500.00"))

        self.assertEqual(apply_discount_code("summer", "199.99").amount, Decimal("20.00"))
        capped = apply_discount_code("FLAT500", Decimal("120.00"))
        self.assertEqual(capped.amount, Decimal("120.00"))

    def test_validity_window_usage_limit_and_minimum_spend(self):
        now = timezone.now()
        self.rule(code="LATER", valid_from=now + timedelta(days=1))
        self.rule(code="OLD", valid_until=now - timedelta(days=1))
        self.rule(code="USEDUP", usage_limit=2, times_used=2)
        self.rule(code="BIG", min_spend=Decimal("1000.00"))

        for code in ("LATER", "OLD", "USEDUP"):
            with self.assertRaises(ValidationError):
                apply_discount_code(code, "100.00", now=now)
        with self.assertRaises(ValidationError):
            apply_discount_code("BIG", "999.99", now=now)
        self.assertEqual(apply_discount_code("BIG", "1000.00", now=now).amount, Decimal("100.00"))

    def test_unknown_or_inactive_codes_are_not_found(self):
        self.rule(code="OFF", is_active=False)
        with self.assertRaises(NotFound):
            apply_discount_code("NOPE", "10.00")
        with self.assertRaises(NotFound):
            apply_discount_code("OFF", "10.00")

    def test_codes_shared_between_vendors_need_the_vendor(self):
        self.rule()
        self.rule(vendor=self.other_vendor, value=Decimal("50.00"))
        with self.assertRaises(ValidationError):
            apply_discount_code("SUMMER", "100.00")
        self.assertEqual(apply_discount_code("SUMMER", "100.00", vendor=self.other_vendor.id).amount, Decimal("50.00"))


class PricingApiTests(APITestCase):
    def setUp(self):
        self.vendor = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR")
        self.other_vendor = User.objects.create_user(username="vendor2", password="vendor123", role="VENDOR")
        self.customer = User.objects.create_user(username="customer", password="customer123", role="CUSTOMER")
        self.product = Product.objects.create(vendor=self.vendor, name="Speaker", stock=2, price_per_day=Decimal("30.00"))
        self.foreign_product = Product.objects.create(
            vendor=self.other_vendor, name="Mixer", stock=1, price_per_day=Decimal("25.00")
        )

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_vendor_manages_discount_codes(self):
        self.auth_as("vendor", "vendor123")
        created = self.client.post(
            "/api/v1/discounts/",
            {"code": "welcome", "discount_type": "percent", "value": "15.00", "products": [str(self.product.id)]},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["code"], "WELCOME")

        duplicate = self.client.post(
            "/api/v1/discounts/",
            {"code": "Welcome", "discount_type": "fixed", "value": "5.00"},
            format="json",
        )
        self.assertEqual(duplicate.status_code, 409)

        over_hundred = self.client.post(
            "/api/v1/discounts/",
            {"code": "HALFPLUS", "discount_type": "percent", "value": "150.00"},
            format="json",
        )
        self.assertEqual(over_hundred.status_code, 400)

        foreign = self.client.post(
            "/api/v1/discounts/",
            {"code": "MIXER", "discount_type": "fixed", "value": "5.00", "products": [str(self.foreign_product.id)]},
            format="json",
        )
        self.assertEqual(foreign.status_code, 400)

        self.auth_as("vendor2", "vendor123")
        self.assertEqual(self.client.get("/api/v1/discounts/").data["count"], 0)
        self.assertEqual(
            self.client.post(
                "/api/v1/discounts/",
                {"code": "WELCOME", "discount_type": "fixed", "value": "5.00"},
                format="json",
            ).status_code,
            201,
        )

    def test_customer_applies_code_but_cannot_manage(self):
        DiscountRule.objects.create(vendor=self.vendor, code="TENOFF", discount_type="fixed", value=Decimal("10.00"))
        self.auth_as("customer", "customer123")

        self.assertEqual(
            self.client.post("/api/v1/discounts/", {"code": "X", "discount_type": "fixed", "value": "1"}, format="json").status_code,
            403,
        )
        applied = self.client.post("/api/v1/discounts/apply/", {"code": "tenoff", "subtotal": "80.00"}, format="json")
        self.assertEqual(applied.status_code, 200)
        self.assertEqual(applied.data["discount_amount"], "10.00")

        missing = self.client.post("/api/v1/discounts/apply/", {"code": "NOPE", "subtotal": "80.00"}, format="json")
        self.assertEqual(missing.status_code, 404)

    def test_pricelists_with_overrides(self):
        self.auth_as("vendor", "vendor123")
        created = self.client.post(
            "/api/v1/pricelists/",
            {
                "name": "Wedding season",
                "customers": [self.customer.id],
                "priority": 5,
                "overrides": [{"product": str(self.product.id), "price_per_day": "24.00"}],
            },
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(Pricelist.objects.get().overrides.get().price_per_day, Decimal("24.00"))

        empty = self.client.post("/api/v1/pricelists/", {"name": "Empty", "overrides": []}, format="json")
        self.assertEqual(empty.status_code, 400)

        foreign = self.client.post(
            "/api/v1/pricelists/",
            {"name": "Borrowed", "overrides": [{"product": str(self.foreign_product.id), "price_per_day": "1.00"}]},
            format="json",
        )
        self.assertEqual(foreign.status_code, 400)

        self.auth_as("customer", "customer123")
        self.assertEqual(self.client.get("/api/v1/pricelists/").data["count"], 1)

        self.auth_as("vendor2", "vendor123")
        self.assertEqual(self.client.get("/api/v1/pricelists/").data["count"], 0)

    def test_time_dependent_rules_need_an_adjustment(self):
        self.auth_as("vendor", "vendor123")
        missing = self.client.post(
            "/api/v1/price-rules/",
            {"name": "Weekend", "rule_type": "weekday", "pattern": {"weekdays": [5, 6]}},
            format="json",
        )
        self.assertEqual(missing.status_code, 400)

        created = self.client.post(
            "/api/v1/price-rules/",
            {"name": "Weekend", "rule_type": "weekday", "pattern": {"weekdays": [5, 6]}, "multiplier": "1.250"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["vendor"], self.vendor.id)

        self.auth_as("vendor2", "vendor123")
        self.assertEqual(self.client.delete(f"/api/v1/price-rules/{created.data['id']}/").status_code, 404)
