from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import CategoryViewSet, ProductViewSet, SupplierListingViewSet

router = DefaultRouter()
router.register(r"categories", CategoryViewSet, basename="category")
router.register(r"products", ProductViewSet, basename="product")
router.register(r"supplier/listings", SupplierListingViewSet, basename="supplier-listing")

urlpatterns = [
    path("", include(router.urls)),
]
