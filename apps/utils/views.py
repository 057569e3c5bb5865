# apps/utils/views.py
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.conf import settings


class ServerInfoView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "app_name": settings.PROJECT_NAME,
            "version": settings.API_VERSION,
            "debug": settings.DEBUG,
        })


class GlobalConfigView(APIView):
    """
    Public checkout-related settings the frontend renders from.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "default_shipping_charge": settings.DEFAULT_SHIPPING_CHARGE,
            "free_shipping_threshold": settings.FREE_SHIPPING_THRESHOLD,
            "checkout_session_ttl_minutes": settings.CHECKOUT_SESSION_TTL_MINUTES,
            "payment_methods": ["cod", "online", "upi"],
        })
