# apps/notifications/serializers.py
from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "title",
            "message",
            "resource_type",
            "resource_id",
            "action_url",
            "priority",
            "channel",
            "data",
            "status",
            "is_read",
            "read_at",
            "created_at",
            "sent_at",
        ]
        read_only_fields = fields
