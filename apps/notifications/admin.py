from django.contrib import admin

from apps.notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("kind", "recipient", "channel", "status", "scheduled_at", "sent_at", "read_at")
    list_filter = ("kind", "channel", "status")
    search_fields = ("recipient__username", "recipient__email")
    readonly_fields = ("payload", "attempts", "last_error", "created_at", "updated_at")
