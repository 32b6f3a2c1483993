import uuid

from django.conf import settings
from django.db import models
from django.utils.text import slugify


class RentalUnit(models.TextChoices):
    HOUR = "hour", "Hour"
    DAY = "day", "Day"
    WEEK = "week", "Week"


class Category(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=80, unique=True)
    slug = models.SlugField(max_length=90, unique=True)
    description = models.CharField(max_length=255, blank=True)
    parent = models.ForeignKey("self", null=True, blank=True, on_delete=models.SET_NULL, related_name="children")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="products")
    category = models.ForeignKey(Category, null=True, blank=True, on_delete=models.PROTECT, related_name="products")
    sku = models.CharField(max_length=64, unique=True, null=True, blank=True)
    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True)
    stock = models.IntegerField(default=0)
    unit = models.CharField(max_length=30, default="piece")
    price_per_hour = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    price_per_day = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    price_per_week = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    tax_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(condition=models.Q(stock__gte=0), name="product_stock_non_negative"),
            models.CheckConstraint(
                condition=(
                    models.Q(price_per_hour__isnull=False, price_per_hour__gt=0)
                    | models.Q(price_per_day__isnull=False, price_per_day__gt=0)
                    | models.Q(price_per_week__isnull=False, price_per_week__gt=0)
                ),
                name="product_has_pricing_tier",
            ),
            models.UniqueConstraint(fields=["vendor", "name"], name="unique_product_name_per_vendor"),
        ]
        indexes = [
            models.Index(fields=["vendor", "is_active"], name="product_vendor_active_idx"),
        ]

    def save(self, *args, **kwargs):
        self.sku = (self.sku or "").strip() or None
        self.name = (self.name or "").strip()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.sku} - {self.name}" if self.sku else self.name

    @property
    def primary_image_url(self):
        images = list(self.images.all())
        primary = next((image for image in images if image.is_primary), None)
        if primary:
            return primary.image_url
        return images[0].image_url if images else ""


class ProductImage(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="images")
    image_url = models.URLField(max_length=500)
    is_primary = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-is_primary", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["product"],
                condition=models.Q(is_primary=True),
                name="unique_primary_image_per_product",
            )
        ]


class MaintenanceBlock(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="maintenance_blocks")
    start = models.DateTimeField()
    end = models.DateTimeField()
    reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["start"]
        constraints = [
            models.CheckConstraint(condition=models.Q(start__lt=models.F("end")), name="maintenance_block_start_before_end"),
        ]
        indexes = [
            models.Index(fields=["product", "start", "end"], name="maintenance_product_window_idx"),
        ]

    def __str__(self):
        return f"{self.product_id} {self.start:%Y-%m-%d} - {self.end:%Y-%m-%d}"
