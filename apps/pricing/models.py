import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models


class DiscountType(models.TextChoices):
    PERCENT = "percent", "Percent"
    FIXED = "fixed", "Fixed amount"


class PriceRuleType(models.TextChoices):
    WEEKDAY = "weekday", "Weekday"
    HOLIDAY = "holiday", "Holiday"
    HOURS = "hours", "Hours"


class DiscountRule(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="discount_rules")
    code = models.CharField(max_length=40)
    discount_type = models.CharField(max_length=10, choices=DiscountType.choices)
    value = models.DecimalField(max_digits=12, decimal_places=2)
    min_spend = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    products = models.ManyToManyField("catalog.Product", blank=True, related_name="discount_rules")
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    times_used = models.PositiveIntegerField(default=0)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["vendor", "code"], name="discount_rule_vendor_code_unique"),
            models.CheckConstraint(condition=models.Q(value__gt=0), name="discount_rule_value_positive"),
        ]

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)


class Pricelist(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="pricelists")
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    customers = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="assigned_pricelists")
    start = models.DateTimeField(null=True, blank=True)
    end = models.DateTimeField(null=True, blank=True)
    priority = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-priority", "name"]

    def __str__(self):
        return self.name


class PricelistOverride(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    pricelist = models.ForeignKey(Pricelist, on_delete=models.CASCADE, related_name="overrides")
    product = models.ForeignKey("catalog.Product", on_delete=models.CASCADE, related_name="pricelist_overrides")
    price_per_hour = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    price_per_day = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    price_per_week = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["pricelist", "product"], name="pricelist_override_product_unique"),
        ]


class TimeDependentPriceRule(models.Model):
    """Surcharge or fixed price applied on matching weekdays, holidays or hours.

    ``pattern`` holds the match data for the rule type, e.g.
    ``{"weekdays": [5, 6]}``, ``{"dates": ["2025-12-25"]}`` or
    ``{"from_hour": 18, "to_hour": 23}``. An empty product set applies the
    rule to every product of the vendor.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="price_rules")
    name = models.CharField(max_length=120)
    rule_type = models.CharField(max_length=10, choices=PriceRuleType.choices)
    pattern = models.JSONField(default=dict)
    multiplier = models.DecimalField(max_digits=6, decimal_places=3, null=True, blank=True)
    fixed_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    products = models.ManyToManyField("catalog.Product", blank=True, related_name="price_rules")
    stacking = models.BooleanField(default=False)
    start = models.DateTimeField(null=True, blank=True)
    end = models.DateTimeField(null=True, blank=True)
    priority = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-priority", "name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(multiplier__isnull=False) | models.Q(fixed_price__isnull=False),
                name="price_rule_has_adjustment",
            ),
        ]

    def __str__(self):
        return self.name
