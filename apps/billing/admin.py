from django.contrib import admin

from apps.billing.models import Invoice, InvoiceSequence, Payment


class PaymentInline(admin.TabularInline):
    model = Payment
    fk_name = "invoice"
    extra = 0
    readonly_fields = ("amount", "method", "status", "refund_of", "created_at")


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("number", "order", "amount", "paid", "due_amount", "status", "due_date")
    list_filter = ("status",)
    search_fields = ("number", "order__id")
    inlines = [PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "invoice", "amount", "method", "status", "currency", "created_at")
    list_filter = ("status", "method")
    search_fields = ("transaction_id", "invoice__number")


admin.site.register(InvoiceSequence)
