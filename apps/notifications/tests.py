# apps/notifications/tests.py
from types import SimpleNamespace
from unittest.mock import patch
import uuid

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APITestCase

from .models import Notification, NotificationChannel, NotificationStatus, NotificationType
from .services import NotificationService, notify_user
from .tasks import send_notification_task


User = get_user_model()


def make_order(**overrides):
    data = {
        "id": uuid.uuid4(),
        "order_number": "ORD-2026-000001",
        "tracking_number": "ZEERO-20260101120000-00001",
        "total_amount": "1180.00",
    }
    data.update(overrides)
    return SimpleNamespace(**data)


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="buyer@example.com",
            password="testpass123",
            full_name="Test Buyer",
        )

    def test_notify_user_creates_pending_notification(self):
        with self.captureOnCommitCallbacks() as callbacks:
            notif = notify_user(
                self.user,
                NotificationType.SYSTEM,
                "Hello",
                "Welcome aboard",
            )

        self.assertIsNotNone(notif)
        self.assertEqual(notif.user, self.user)
        self.assertEqual(notif.status, NotificationStatus.PENDING)
        self.assertEqual(len(callbacks), 1)
        self.assertEqual(Notification.objects.filter(user=self.user).count(), 1)

    def test_notify_user_without_user_is_noop(self):
        self.assertIsNone(notify_user(None, NotificationType.SYSTEM, "x", "y"))
        self.assertEqual(Notification.objects.count(), 0)

    def test_order_confirmation_content(self):
        order = make_order()
        with self.captureOnCommitCallbacks(execute=True):
            notif = NotificationService.send_order_confirmation(self.user, order)

        notif.refresh_from_db()
        self.assertEqual(notif.title, "Order Confirmed - ORD-2026-000001")
        self.assertIn("₹1180.00", notif.message)
        self.assertEqual(notif.resource_type, "order")
        self.assertEqual(notif.resource_id, str(order.id))
        self.assertEqual(notif.action_url, f"/buyer/orders/{order.id}")
        self.assertEqual(notif.priority, "high")
        self.assertEqual(notif.status, NotificationStatus.SENT)

    def test_shipped_message_carries_tracking_number(self):
        notif = NotificationService.send_order_shipped(self.user, make_order())
        self.assertIn("ZEERO-20260101120000-00001", notif.message)
        self.assertEqual(notif.type, NotificationType.ORDER_SHIPPED)


class SendNotificationTaskTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="mailme@example.com",
            password="testpass123",
            full_name="Mail Me",
        )

    def test_email_channel_sends_mail(self):
        notif = Notification.objects.create(
            user=self.user,
            title="Subject line",
            message="Body text",
            channel=NotificationChannel.EMAIL,
        )
        send_notification_task(str(notif.id))

        notif.refresh_from_db()
        self.assertEqual(notif.status, NotificationStatus.SENT)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["mailme@example.com"])

    def test_already_sent_is_skipped(self):
        notif = Notification.objects.create(
            user=self.user,
            title="Once",
            message="Only once",
            channel=NotificationChannel.EMAIL,
            status=NotificationStatus.SENT,
        )
        send_notification_task(str(notif.id))
        self.assertEqual(len(mail.outbox), 0)

    @patch("apps.notifications.tasks.logger")
    def test_missing_notification_is_logged(self, mock_logger):
        send_notification_task(str(uuid.uuid4()))
        mock_logger.error.assert_called_once()


class NotificationAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="reader@example.com",
            password="testpass123",
            full_name="Reader",
        )
        self.other = User.objects.create_user(
            email="other@example.com",
            password="testpass123",
            full_name="Other",
        )
        self.mine = Notification.objects.create(user=self.user, title="A", message="a")
        Notification.objects.create(user=self.user, title="B", message="b")
        Notification.objects.create(user=self.other, title="C", message="c")
        self.client.force_authenticate(self.user)

    def test_list_only_own_notifications(self):
        response = self.client.get(reverse("notification-list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["pagination"]["total"], 2)

    def test_mark_read_and_unread_count(self):
        url = reverse("notification-mark-read", kwargs={"pk": self.mine.id})
        response = self.client.post(url)
        self.assertEqual(response.status_code, 200)

        response = self.client.get(reverse("notification-unread-count"))
        self.assertEqual(response.data["data"]["unreadCount"], 1)

    def test_mark_all_read(self):
        response = self.client.post(reverse("notification-mark-all-read"))
        self.assertEqual(response.data["data"]["updated"], 2)
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())

    def test_mark_read_other_users_notification_is_404(self):
        theirs = Notification.objects.get(user=self.other)
        url = reverse("notification-mark-read", kwargs={"pk": theirs.id})
        response = self.client.post(url)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["errorCode"], "NOTIFICATION_NOT_FOUND")
