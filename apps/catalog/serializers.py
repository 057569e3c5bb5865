# apps/catalog/serializers.py
from rest_framework import serializers
from .models import Category, Product


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "slug", "is_active", "sort_order"]


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True, default=None)
    supplier_name = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "title",
            "sku",
            "description",
            "image_url",
            "unit",
            "category",
            "category_name",
            "supplier_name",
            "supplier_city",
            "original_price",
            "price",
            "discount_percent",
            "gst_percent",
            "quantity",
            "min_order_quantity",
            "status",
            "expires_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_supplier_name(self, obj):
        return obj.supplier.company_name or obj.supplier.full_name
