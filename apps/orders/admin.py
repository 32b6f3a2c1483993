from django.contrib import admin

from apps.orders.models import DeliveryNote, Order, OrderLine, Reservation


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0


class ReservationInline(admin.TabularInline):
    model = Reservation
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "customer",
        "vendor",
        "total",
        "paid_amount",
        "balance_due",
        "status",
        "return_scheduled_at",
        "created_at",
    )
    list_filter = ("status", "delivery_method", "is_overdue_notified")
    search_fields = ("id", "customer__username", "vendor__username")
    autocomplete_fields = ("customer", "vendor")
    inlines = [OrderLineInline, ReservationInline]


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ("product", "order", "quantity", "start", "end", "status")
    list_filter = ("status",)
    search_fields = ("order__id", "product__name", "product__sku")


@admin.register(DeliveryNote)
class DeliveryNoteAdmin(admin.ModelAdmin):
    list_display = ("order", "note_type", "status", "scheduled_at", "actual_at", "driver")
    list_filter = ("note_type", "status")
    search_fields = ("order__id", "driver")
