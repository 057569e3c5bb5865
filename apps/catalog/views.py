from django.db.models import Q
from django.utils import timezone
from rest_framework import viewsets, filters
from rest_framework.permissions import AllowAny
from django_filters.rest_framework import DjangoFilterBackend

from apps.accounts.permissions import IsSupplier
from .models import Category, Product, ProductStatus
from .serializers import CategorySerializer, ProductSerializer


class CategoryViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Publicly accessible category list.
    """
    queryset = Category.objects.filter(is_active=True)
    serializer_class = CategorySerializer
    permission_classes = [AllowAny]
    filter_backends = [filters.SearchFilter]
    search_fields = ['name']


class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Public listing browse. Only active, unexpired listings are shown.
    """
    serializer_class = ProductSerializer
    permission_classes = [AllowAny]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['category', 'supplier']
    search_fields = ['title', 'description', 'sku']

    def get_queryset(self):
        return (
            Product.objects
            .filter(status=ProductStatus.ACTIVE)
            .filter(Q(expires_at__isnull=True) | Q(expires_at__gt=timezone.now()))
            .select_related('category', 'supplier')
        )


class SupplierListingViewSet(viewsets.ReadOnlyModelViewSet):
    """
    A supplier's own listings in every status, ?status=<status>.
    """
    serializer_class = ProductSerializer
    permission_classes = [IsSupplier]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['status', 'category']
    search_fields = ['title', 'sku']

    def get_queryset(self):
        return (
            Product.objects
            .filter(supplier=self.request.user)
            .select_related('category', 'supplier')
            .order_by('-created_at')
        )
