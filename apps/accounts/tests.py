from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from apps.accounts.models import Role, User
from apps.accounts.services import AccountService


class UserManagerTests(TestCase):

    def test_create_user_normalizes_email_and_defaults_to_buyer(self):
        user = User.objects.create_user(email="Buyer@Example.COM", password="StrongPass!23", full_name="B")
        self.assertEqual(user.email, "Buyer@example.com")
        self.assertEqual(user.role, Role.BUYER)
        self.assertTrue(user.is_buyer)
        self.assertTrue(user.check_password("StrongPass!23"))

    def test_create_superuser_is_platform_admin(self):
        admin = User.objects.create_superuser(email="root@example.com", password="StrongPass!23", full_name="Root")
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)
        self.assertEqual(admin.role, Role.ADMIN)
        self.assertTrue(admin.is_platform_admin)

    def test_register_service_creates_supplier(self):
        user = AccountService.register(
            email="supplier@example.com",
            password="StrongPass!23",
            full_name="Supply Co",
            role=Role.SUPPLIER,
            company_name="Supply Co Pvt Ltd",
        )
        self.assertTrue(user.is_supplier)
        self.assertEqual(user.company_name, "Supply Co Pvt Ltd")


class RegisterAPITests(APITestCase):

    def setUp(self):
        self.client = APIClient()
        self.url = reverse("account-register")

    def test_register_buyer(self):
        response = self.client.post(self.url, {
            "email": "NewBuyer@Example.com",
            "password": "StrongPass!23",
            "full_name": "New Buyer",
            "phone_number": "+919876543210",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["email"], "newbuyer@example.com")
        self.assertEqual(response.data["data"]["role"], Role.BUYER)

    def test_duplicate_email_rejected(self):
        User.objects.create_user(email="dup@example.com", password="StrongPass!23", full_name="Dup")
        response = self.client.post(self.url, {
            "email": "DUP@example.com",
            "password": "StrongPass!23",
            "full_name": "Dup Again",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "VALIDATION_ERROR")
        self.assertIn("email", response.data["details"])

    def test_admin_role_cannot_self_register(self):
        response = self.client.post(self.url, {
            "email": "sneaky@example.com",
            "password": "StrongPass!23",
            "full_name": "Sneaky",
            "role": "admin",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class TokenAndMeTests(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(email="me@example.com", password="StrongPass!23", full_name="Me")

    def test_obtain_token_and_fetch_profile(self):
        response = self.client.post(
            reverse("token-obtain"),
            {"email": "me@example.com", "password": "StrongPass!23"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        access = response.data["access"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        response = self.client.get(reverse("user-me"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["email"], "me@example.com")

    def test_me_requires_authentication(self):
        response = self.client.get(reverse("user-me"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data["success"])
