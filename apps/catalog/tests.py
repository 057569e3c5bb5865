# apps/catalog/tests.py
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from django.contrib.auth import get_user_model

from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from .models import Category, Product, ProductStatus

User = get_user_model()


def make_product(supplier, **overrides):
    data = {
        "supplier": supplier,
        "title": "Industrial Drill",
        "sku": "DRL-001",
        "original_price": Decimal("1200.00"),
        "price": Decimal("1000.00"),
        "quantity": 10,
    }
    data.update(overrides)
    return Product.objects.create(**data)


class CategoryModelTests(TestCase):
    def test_category_slug_auto_generated(self):
        c1 = Category.objects.create(name="Packaging Material")
        self.assertEqual(c1.slug, "packaging-material")


class ProductModelTests(TestCase):
    def setUp(self):
        self.supplier = User.objects.create_user(
            email="supplier@example.com",
            password="testpass123",
            role="supplier",
        )

    def test_active_and_expiry_flags(self):
        product = make_product(self.supplier)
        self.assertTrue(product.is_active)
        self.assertFalse(product.is_expired)

        product.expires_at = timezone.now() - timedelta(minutes=1)
        product.status = ProductStatus.INACTIVE
        self.assertTrue(product.is_expired)
        self.assertFalse(product.is_active)


class ProductViewSetTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.supplier = User.objects.create_user(
            email="seller@example.com",
            password="testpass123",
            role="supplier",
            company_name="Seller Industries",
        )
        self.category = Category.objects.create(name="Tools")
        self.visible = make_product(self.supplier, category=self.category)
        make_product(self.supplier, title="Hidden", sku="HID-1", status=ProductStatus.INACTIVE)
        make_product(
            self.supplier,
            title="Old Lot",
            sku="OLD-1",
            expires_at=timezone.now() - timedelta(days=1),
        )

    def test_list_shows_only_active_unexpired(self):
        response = self.client.get(reverse("product-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        titles = [p["title"] for p in response.data["data"]]
        self.assertEqual(titles, ["Industrial Drill"])
        self.assertEqual(response.data["data"][0]["supplier_name"], "Seller Industries")

    def test_filter_by_category_and_search(self):
        response = self.client.get(reverse("product-list"), {"category": str(self.category.id)})
        self.assertEqual(response.data["pagination"]["total"], 1)

        response = self.client.get(reverse("product-list"), {"search": "nothing-matches"})
        self.assertEqual(response.data["pagination"]["total"], 0)

    def test_detail(self):
        response = self.client.get(reverse("product-detail", kwargs={"pk": self.visible.id}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["category_name"], "Tools")


class SupplierListingViewSetTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.supplier = User.objects.create_user(
            email="seller@example.com",
            password="testpass123",
            role="supplier",
        )
        rival = User.objects.create_user(
            email="rival@example.com",
            password="testpass123",
            role="supplier",
        )
        make_product(self.supplier)
        make_product(self.supplier, title="Paused", sku="PAU-1", status=ProductStatus.INACTIVE)
        make_product(rival, title="Rival Drill", sku="RIV-1")
        self.url = reverse("supplier-listing-list")

    def test_lists_own_listings_in_every_status(self):
        self.client.force_authenticate(self.supplier)
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        titles = sorted(p["title"] for p in response.data["data"])
        self.assertEqual(titles, ["Industrial Drill", "Paused"])

        response = self.client.get(self.url, {"status": "inactive"})
        self.assertEqual(response.data["pagination"]["total"], 1)

    def test_buyers_are_rejected(self):
        buyer = User.objects.create_user(email="buyer@example.com", password="testpass123")
        self.client.force_authenticate(buyer)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
