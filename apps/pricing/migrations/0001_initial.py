# Generated manually for vendor pricing catalogs

import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DiscountRule",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("code", models.CharField(max_length=40)),
                (
                    "discount_type",
                    models.CharField(choices=[("percent", "Percent"), ("fixed", "Fixed amount")], max_length=10),
                ),
                ("value", models.DecimalField(decimal_places=2, max_digits=12)),
                ("min_spend", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("usage_limit", models.PositiveIntegerField(blank=True, null=True)),
                ("times_used", models.PositiveIntegerField(default=0)),
                ("valid_from", models.DateTimeField(blank=True, null=True)),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "products",
                    models.ManyToManyField(blank=True, related_name="discount_rules", to="catalog.product"),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="discount_rules",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("vendor", "code"), name="discount_rule_vendor_code_unique"),
                    models.CheckConstraint(condition=models.Q(value__gt=0), name="discount_rule_value_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Pricelist",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=120)),
                ("description", models.TextField(blank=True)),
                ("start", models.DateTimeField(blank=True, null=True)),
                ("end", models.DateTimeField(blank=True, null=True)),
                ("priority", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "customers",
                    models.ManyToManyField(
                        blank=True,
                        related_name="assigned_pricelists",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pricelists",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-priority", "name"],
            },
        ),
        migrations.CreateModel(
            name="PricelistOverride",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("price_per_hour", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("price_per_day", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("price_per_week", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("discount_percent", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                (
                    "pricelist",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="overrides",
                        to="pricing.pricelist",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pricelist_overrides",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("pricelist", "product"), name="pricelist_override_product_unique"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TimeDependentPriceRule",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=120)),
                (
                    "rule_type",
                    models.CharField(
                        choices=[("weekday", "Weekday"), ("holiday", "Holiday"), ("hours", "Hours")],
                        max_length=10,
                    ),
                ),
                ("pattern", models.JSONField(default=dict)),
                ("multiplier", models.DecimalField(blank=True, decimal_places=3, max_digits=6, null=True)),
                ("fixed_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("stacking", models.BooleanField(default=False)),
                ("start", models.DateTimeField(blank=True, null=True)),
                ("end", models.DateTimeField(blank=True, null=True)),
                ("priority", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "products",
                    models.ManyToManyField(blank=True, related_name="price_rules", to="catalog.product"),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="price_rules",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-priority", "name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("multiplier__isnull", False), ("fixed_price__isnull", False), _connector="OR"),
                        name="price_rule_has_adjustment",
                    ),
                ],
            },
        ),
    ]
