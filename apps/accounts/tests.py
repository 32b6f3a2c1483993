import os
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management import call_command
from rest_framework.test import APITestCase

from apps.accounts.models import UserRole
from apps.catalog.models import Category
from apps.common.permissions import is_admin, resolve_role
from config import settings as base_settings

User = get_user_model()


class AccountTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR", company_name="Lake Rentals")

    def auth(self, username, password):
        return self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )

    def test_jwt_login_valid_and_invalid(self):
        ok = self.auth("vendor", "vendor123")
        self.assertEqual(ok.status_code, 200)
        self.assertIn("access", ok.data)
        self.assertIn("refresh", ok.data)

        bad = self.auth("vendor", "wrong")
        self.assertEqual(bad.status_code, 401)

    def test_anonymous_requests_are_rejected(self):
        response = self.client.get("/api/v1/products/")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(set(response.data), {"code", "detail", "fields"})

    def test_new_users_are_customers_and_groups_override_the_role_field(self):
        customer = User.objects.create_user(username="someone", password="someone123")
        self.assertEqual(resolve_role(customer), UserRole.CUSTOMER)
        self.assertEqual(self.user.display_name, "Lake Rentals")

        call_command("seed_roles", stdout=StringIO())
        self.assertEqual(Group.objects.filter(name__in=UserRole.values).count(), 3)

        self.user.groups.add(Group.objects.get(name=UserRole.ADMIN))
        self.assertEqual(resolve_role(self.user), UserRole.ADMIN)
        self.assertTrue(is_admin(self.user))

    def test_seed_categories_is_idempotent(self):
        call_command("seed_categories", stdout=StringIO())
        call_command("seed_categories", stdout=StringIO())
        self.assertEqual(Category.objects.count(), 5)
        self.assertTrue(Category.objects.filter(slug="power-tools").exists())

    def test_health_endpoint_is_public(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "ok")

    def test_debug_is_off_unless_enabled_in_the_environment(self):
        environment = {key: value for key, value in os.environ.items() if key != "DJANGO_DEBUG"}
        with mock.patch.dict(os.environ, environment, clear=True):
            self.assertFalse(base_settings.env("DJANGO_DEBUG"))
        with mock.patch.dict(os.environ, {"DJANGO_DEBUG": "True"}):
            self.assertTrue(base_settings.env("DJANGO_DEBUG"))
