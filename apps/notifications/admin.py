# apps/notifications/admin.py
from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = (
        "user",
        "type",
        "channel",
        "title",
        "status",
        "is_read",
        "created_at",
        "sent_at",
    )
    list_filter = ("type", "channel", "status", "is_read")
    search_fields = ("title", "message", "user__email")
    readonly_fields = (
        "user",
        "type",
        "channel",
        "title",
        "message",
        "resource_type",
        "resource_id",
        "data",
        "status",
        "error_message",
        "sent_at",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False
