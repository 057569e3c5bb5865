# apps/customers/tests.py
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Address
from .services import AddressNotFound, CustomerService

User = get_user_model()

ADDRESS = {
    "full_name": "Ravi Kumar",
    "phone": "+919876543210",
    "address_line1": "Plot 12, MIDC",
    "city": "Pune",
    "state": "Maharashtra",
    "pincode": "411019",
}


class CustomerServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="buyer@example.com", password="testpass123")

    def test_first_address_is_default(self):
        address = CustomerService.create_address(self.user, **ADDRESS)
        self.assertTrue(address.is_default)

    def test_new_default_unsets_previous(self):
        first = CustomerService.create_address(self.user, **ADDRESS)
        second = CustomerService.create_address(self.user, **{**ADDRESS, "city": "Mumbai"}, is_default=True)

        first.refresh_from_db()
        self.assertFalse(first.is_default)
        self.assertTrue(second.is_default)
        self.assertEqual(Address.objects.filter(user=self.user, is_default=True).count(), 1)

    def test_deleting_default_promotes_successor(self):
        first = CustomerService.create_address(self.user, **ADDRESS)
        second = CustomerService.create_address(self.user, **{**ADDRESS, "city": "Nashik"})

        CustomerService.delete_address(self.user, first.id)

        second.refresh_from_db()
        self.assertTrue(second.is_default)

    def test_other_users_address_not_found(self):
        other = User.objects.create_user(email="other@example.com", password="testpass123")
        address = CustomerService.create_address(other, **ADDRESS)

        with self.assertRaises(AddressNotFound):
            CustomerService.get_address(self.user, address.id)

    def test_snapshot_uses_camel_case_keys(self):
        address = CustomerService.create_address(self.user, **ADDRESS)
        snapshot = address.as_snapshot()
        self.assertEqual(snapshot["name"], "Ravi Kumar")
        self.assertEqual(snapshot["addressLine1"], "Plot 12, MIDC")
        self.assertEqual(snapshot["state"], "Maharashtra")


class AddressAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="api@example.com", password="testpass123")
        self.client.force_authenticate(self.user)
        self.list_url = reverse("customer-addresses-list")

    def test_create_and_list(self):
        response = self.client.post(self.list_url, ADDRESS, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["is_default"])

        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_invalid_pincode_rejected(self):
        response = self.client.post(self.list_url, {**ADDRESS, "pincode": "12"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("pincode", response.data["details"])

    def test_set_default_action(self):
        CustomerService.create_address(self.user, **ADDRESS)
        second = CustomerService.create_address(self.user, **{**ADDRESS, "city": "Thane"})

        url = reverse("customer-addresses-set-default", kwargs={"pk": second.id})
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_default"])

    def test_cannot_touch_foreign_address(self):
        other = User.objects.create_user(email="else@example.com", password="testpass123")
        address = CustomerService.create_address(other, **ADDRESS)

        url = reverse("customer-addresses-detail", kwargs={"pk": address.id})
        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Address.objects.filter(id=address.id).exists())
