# Generated manually for the rental catalog

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=80, unique=True)),
                ("slug", models.SlugField(max_length=90, unique=True)),
                ("description", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="children",
                        to="catalog.category",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "verbose_name_plural": "categories",
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sku", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("description", models.TextField(blank=True)),
                ("stock", models.IntegerField(default=0)),
                ("unit", models.CharField(default="piece", max_length=30)),
                ("price_per_hour", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("price_per_day", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("price_per_week", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("tax_percent", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="products",
                        to="catalog.category",
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="products",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["vendor", "is_active"], name="product_vendor_active_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(stock__gte=0), name="product_stock_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("price_per_hour__isnull", False), ("price_per_hour__gt", 0)),
                            models.Q(("price_per_day__isnull", False), ("price_per_day__gt", 0)),
                            models.Q(("price_per_week__isnull", False), ("price_per_week__gt", 0)),
                            _connector="OR",
                        ),
                        name="product_has_pricing_tier",
                    ),
                    models.UniqueConstraint(fields=["vendor", "name"], name="unique_product_name_per_vendor"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductImage",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("image_url", models.URLField(max_length=500)),
                ("is_primary", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="images",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "ordering": ["-is_primary", "created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(is_primary=True),
                        fields=("product",),
                        name="unique_primary_image_per_product",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="MaintenanceBlock",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("start", models.DateTimeField()),
                ("end", models.DateTimeField()),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="maintenance_blocks",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "ordering": ["start"],
                "indexes": [models.Index(fields=["product", "start", "end"], name="maintenance_product_window_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(start__lt=models.F("end")),
                        name="maintenance_block_start_before_end",
                    )
                ],
            },
        ),
    ]
