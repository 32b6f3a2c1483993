from django.contrib import admin

from apps.pricing.models import DiscountRule, Pricelist, PricelistOverride, TimeDependentPriceRule


class PricelistOverrideInline(admin.TabularInline):
    model = PricelistOverride
    extra = 0


@admin.register(DiscountRule)
class DiscountRuleAdmin(admin.ModelAdmin):
    list_display = ("code", "vendor", "discount_type", "value", "times_used", "usage_limit", "valid_until", "is_active")
    list_filter = ("discount_type", "is_active")
    search_fields = ("code", "vendor__username")


@admin.register(Pricelist)
class PricelistAdmin(admin.ModelAdmin):
    list_display = ("name", "vendor", "priority", "start", "end")
    search_fields = ("name", "vendor__username")
    inlines = [PricelistOverrideInline]


@admin.register(TimeDependentPriceRule)
class TimeDependentPriceRuleAdmin(admin.ModelAdmin):
    list_display = ("name", "vendor", "rule_type", "multiplier", "fixed_price", "priority", "stacking")
    list_filter = ("rule_type", "stacking")
