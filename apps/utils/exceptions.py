from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status, exceptions
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Stock not available').

    `code` is the stable error code clients map messages from,
    `status_code` the HTTP status the API layer answers with and
    `details` the raw internal message passed through to the caller.
    """
    code = "business_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed."

    def __init__(self, message=None, code=None, status_code=None, details=None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details if details is not None else self.message
        super().__init__(self.message)


def error_payload(error_code, message, details=None):
    return {
        "success": False,
        "errorCode": error_code,
        "message": message,
        "details": details,
    }


def custom_exception_handler(exc, context):
    # Domain errors carry their own code and status
    if isinstance(exc, BusinessLogicException):
        return Response(
            error_payload(exc.code, exc.message, exc.details),
            status=exc.status_code,
        )

    # Normalize Django errors so they carry DRF codes
    if isinstance(exc, Http404):
        exc = exceptions.NotFound()
    elif isinstance(exc, PermissionDenied):
        exc = exceptions.PermissionDenied()

    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            error_payload("SERVER_ERROR", "Internal Server Error"),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = error_payload(
            "VALIDATION_ERROR", "Invalid request data.", response.data
        )
    elif isinstance(exc, exceptions.APIException):
        detail = response.data.get("detail") if isinstance(response.data, dict) else response.data
        code = exc.get_codes()
        if isinstance(code, dict):
            code = code.get("detail", exc.default_code)
        response.data = error_payload(str(code).upper(), str(detail), None)

    return response
