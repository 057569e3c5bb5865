import logging
import time
from django.utils.deprecation import MiddlewareMixin
from django.http import JsonResponse

from .exceptions import error_payload

logger = logging.getLogger(__name__)


class RequestLogMiddleware(MiddlewareMixin):
    """
    One log line per API request: method, path, status and duration.
    """

    def process_request(self, request):
        request._log_started_at = time.monotonic()

    def process_response(self, request, response):
        started = getattr(request, "_log_started_at", None)
        if started is None or not request.path.startswith("/api/"):
            return response

        duration_ms = (time.monotonic() - started) * 1000
        user = getattr(request, "user", None)
        user_id = str(user.pk) if user is not None and user.is_authenticated else None

        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            extra={"user_id": user_id},
        )
        return response


class GlobalExceptionMiddleware(MiddlewareMixin):
    """
    Last line of defense for non-DRF views.
    """
    def process_exception(self, request, exception):
        logger.exception(f"Unhandled Middleware Exception: {str(exception)}")
        if request.path.startswith('/api/'):
            return JsonResponse(
                error_payload("SERVER_ERROR", "Internal System Error"),
                status=500
            )
        return None # Let Django's default 500 handler work for HTML
