# apps/notifications/services.py
import logging

from django.db import transaction

from .models import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)

logger = logging.getLogger(__name__)


def notify_user(
    user,
    notification_type: str,
    title: str,
    message: str,
    *,
    resource_type: str = "",
    resource_id: str = "",
    action_url: str = "",
    priority: str = NotificationPriority.NORMAL,
    channel: str = NotificationChannel.IN_APP,
    data: dict | None = None,
) -> Notification | None:
    """
    Main entry point for other apps.

    Creates the Notification row in the caller's transaction and queues
    `send_notification_task` for when that transaction commits, so a
    rolled back business operation never notifies anybody.
    """
    from .tasks import send_notification_task

    if not user:
        return None

    notification = Notification.objects.create(
        user=user,
        type=notification_type,
        title=title,
        message=message,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id else "",
        action_url=action_url,
        priority=priority,
        channel=channel,
        data=data or {},
        status=NotificationStatus.PENDING,
    )

    notification_id = str(notification.id)
    transaction.on_commit(lambda: send_notification_task.delay(notification_id))

    return notification


class NotificationService:
    """
    Order lifecycle messages sent to buyers.
    """

    @staticmethod
    def send_order_confirmation(user, order):
        return notify_user(
            user,
            NotificationType.ORDER_CONFIRMED,
            title=f"Order Confirmed - {order.order_number}",
            message=f"Your order of ₹{order.total_amount} has been confirmed and is being processed.",
            resource_type="order",
            resource_id=order.id,
            action_url=f"/buyer/orders/{order.id}",
            priority=NotificationPriority.HIGH,
        )

    @staticmethod
    def send_order_shipped(user, order):
        return notify_user(
            user,
            NotificationType.ORDER_SHIPPED,
            title=f"Order Shipped - {order.order_number}",
            message=f"Your order has been shipped. Tracking: {order.tracking_number}",
            resource_type="order",
            resource_id=order.id,
            action_url=f"/buyer/orders/{order.id}/tracking",
            priority=NotificationPriority.HIGH,
        )

    @staticmethod
    def send_order_delivered(user, order):
        return notify_user(
            user,
            NotificationType.ORDER_DELIVERED,
            title=f"Order Delivered - {order.order_number}",
            message="Your order has been delivered successfully. Please rate your experience.",
            resource_type="order",
            resource_id=order.id,
            action_url=f"/buyer/orders/{order.id}",
            priority=NotificationPriority.HIGH,
        )

    @staticmethod
    def send_order_cancelled(user, order):
        return notify_user(
            user,
            NotificationType.ORDER_CANCELLED,
            title=f"Order Cancelled - {order.order_number}",
            message="Your order has been cancelled. Refund will be processed within 5-7 business days.",
            resource_type="order",
            resource_id=order.id,
            action_url=f"/buyer/orders/{order.id}",
            priority=NotificationPriority.HIGH,
        )

    @staticmethod
    def send_order_status_update(user, order, note: str = ""):
        return notify_user(
            user,
            NotificationType.ORDER_STATUS,
            title=f"Order Update - {order.order_number}",
            message=note or f"Your order is now {order.get_status_display().lower()}.",
            resource_type="order",
            resource_id=order.id,
            action_url=f"/buyer/orders/{order.id}/tracking",
        )
