# apps/notifications/urls.py
from django.urls import path

from .views import (
    NotificationListView,
    NotificationMarkReadView,
    UnreadCountView,
)

urlpatterns = [
    path("", NotificationListView.as_view(), name="notification-list"),
    path("unread-count/", UnreadCountView.as_view(), name="notification-unread-count"),
    path("<uuid:pk>/read/", NotificationMarkReadView.as_view(), name="notification-mark-read"),
    path("read-all/", NotificationMarkReadView.as_view(), {"pk": "read-all"}, name="notification-mark-all-read"),
]
