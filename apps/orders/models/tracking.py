import uuid

from django.conf import settings
from django.db import models

from .order import Order

__all__ = ["OrderTrackingEvent"]


class OrderTrackingEvent(models.Model):
    """
    Append-only milestone log of an order.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, related_name="tracking_events", on_delete=models.CASCADE)

    status = models.CharField(max_length=20)  # Stores the status *after* change
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    location = models.CharField(max_length=255, blank=True)
    is_milestone = models.BooleanField(default=False)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.order_id} -> {self.status}: {self.title}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Tracking events are append-only.")
        super().save(*args, **kwargs)
