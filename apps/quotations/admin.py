from django.contrib import admin

from apps.quotations.models import Quotation, QuotationLine


class QuotationLineInline(admin.TabularInline):
    model = QuotationLine
    extra = 0


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = ("id", "customer", "vendor", "subtotal", "tax", "total", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("id", "customer__username", "vendor__username")
    autocomplete_fields = ("customer", "vendor")
    inlines = [QuotationLineInline]
