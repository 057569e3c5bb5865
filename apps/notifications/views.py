# apps/notifications/views.py
from django.utils import timezone

from rest_framework import generics, status, views, permissions
from rest_framework.response import Response

from apps.utils.exceptions import error_payload
from apps.utils.pagination import StandardResultsSetPagination

from .models import Notification
from .serializers import NotificationSerializer


class NotificationListView(generics.ListAPIView):
    """
    GET /api/v1/notifications/?unread=true
    """
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        qs = Notification.objects.filter(user=self.request.user)
        if self.request.query_params.get("unread") in ("1", "true", "True"):
            qs = qs.filter(is_read=False)
        return qs.order_by("-created_at")


class UnreadCountView(views.APIView):
    """
    GET /api/v1/notifications/unread-count/
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        count = Notification.objects.filter(user=request.user, is_read=False).count()
        return Response({"success": True, "data": {"unreadCount": count}})


class NotificationMarkReadView(views.APIView):
    """
    POST /api/v1/notifications/<id>/read/
    POST /api/v1/notifications/read-all/
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk=None):
        if pk == "read-all":
            updated = Notification.objects.filter(
                user=request.user,
                is_read=False,
            ).update(
                is_read=True,
                read_at=timezone.now(),
            )
            return Response({"success": True, "data": {"updated": updated}})

        try:
            notif = Notification.objects.get(id=pk, user=request.user)
        except Notification.DoesNotExist:
            return Response(
                error_payload("NOTIFICATION_NOT_FOUND", "Notification not found."),
                status=status.HTTP_404_NOT_FOUND,
            )
        notif.mark_read()
        return Response({"success": True, "data": NotificationSerializer(notif).data})
