# apps/utils/tests.py
import json
import logging

from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework import exceptions
from rest_framework.exceptions import ValidationError

from .exceptions import BusinessLogicException, custom_exception_handler, error_payload
from .logging import JSONFormatter
from .validators import validate_phone, validate_pincode


class ValidatorTests(SimpleTestCase):
    def test_phone_validator(self):
        self.assertEqual(validate_phone("+919876543210"), "+919876543210")
        with self.assertRaises(ValidationError):
            validate_phone("123")  # Invalid

    def test_pincode_validator(self):
        self.assertEqual(validate_pincode("400001"), "400001")
        with self.assertRaises(ValidationError):
            validate_pincode("012345")
        with self.assertRaises(ValidationError):
            validate_pincode("4000")


class ExceptionHandlerTests(SimpleTestCase):
    def test_business_exception_uses_own_code_and_status(self):
        exc = BusinessLogicException("Out of stock", code="INSUFFICIENT_STOCK", status_code=409, details="raw")
        response = custom_exception_handler(exc, {})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data, error_payload("INSUFFICIENT_STOCK", "Out of stock", "raw"))

    def test_details_default_to_message(self):
        exc = BusinessLogicException("Something broke")
        response = custom_exception_handler(exc, {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["details"], "Something broke")
        self.assertEqual(response.data["errorCode"], "business_error")

    def test_validation_error_wrapped(self):
        exc = exceptions.ValidationError({"paymentMethod": ["This field is required."]})
        response = custom_exception_handler(exc, {})

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["errorCode"], "VALIDATION_ERROR")
        self.assertIn("paymentMethod", response.data["details"])

    def test_api_exception_code_upper_cased(self):
        response = custom_exception_handler(exceptions.NotAuthenticated(), {})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["errorCode"], "NOT_AUTHENTICATED")

    def test_unhandled_exception_is_server_error(self):
        with self.assertLogs("apps.utils.exceptions", level="ERROR"):
            response = custom_exception_handler(RuntimeError("boom"), {})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["errorCode"], "SERVER_ERROR")


class JSONFormatterTests(SimpleTestCase):
    def _record(self, msg, args=None, **extra):
        record = logging.LogRecord("apps.orders", logging.INFO, __file__, 10, msg, args, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_sensitive_keys_are_redacted(self):
        formatter = JSONFormatter()
        record = self._record({"email": "a@b.com", "password": "secret", "nested": {"token": "x"}})

        payload = json.loads(formatter.format(record))
        self.assertIn("***REDACTED***", payload["msg"])
        self.assertNotIn("secret", payload["msg"])

    def test_context_fields_are_copied(self):
        formatter = JSONFormatter()
        record = self._record("Order placed", order_number="ORD-2026-000001", user_id=42)

        payload = json.loads(formatter.format(record))
        self.assertEqual(payload["order_number"], "ORD-2026-000001")
        self.assertEqual(payload["user_id"], "42")
        self.assertEqual(payload["lvl"], "INFO")


class OpsEndpointTests(TestCase):
    def test_health_check(self):
        response = self.client.get(reverse("health-check"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["components"]["db"], "ok")

    def test_server_info(self):
        response = self.client.get(reverse("server-info"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["app_name"], "Zeero")

    def test_global_config(self):
        response = self.client.get(reverse("global-config"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["checkout_session_ttl_minutes"], 30)
        self.assertIn("upi", response.json()["payment_methods"])
