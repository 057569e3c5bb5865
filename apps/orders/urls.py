from django.urls import path

from .views import (
    AdminOrderDetailView,
    AdminOrderItemStatusView,
    AdminOrderListView,
    AdminOrderStatusView,
    BuyerOrderDetailView,
    BuyerOrderListView,
    BuyerOrderStatsView,
    CancelOrderView,
    CartItemDetailView,
    CartItemListView,
    CartCouponView,
    CartView,
    CheckoutSessionView,
    CreateOrderView,
    OrderTrackingView,
)

urlpatterns = [
    # Cart & checkout
    path('cart/', CartView.as_view(), name='cart'),
    path('cart/items/', CartItemListView.as_view(), name='cart-items'),
    path('cart/items/<uuid:product_id>/', CartItemDetailView.as_view(), name='cart-item-detail'),
    path('cart/checkout/', CheckoutSessionView.as_view(), name='cart-checkout'),
    path('cart/coupon/', CartCouponView.as_view(), name='cart-coupon'),

    # Buyer orders
    path('create/', CreateOrderView.as_view(), name='create-order'),
    path('', BuyerOrderListView.as_view(), name='order-history'),
    path('active/', BuyerOrderListView.as_view(active_only=True), name='order-active'),
    path('stats/', BuyerOrderStatsView.as_view(), name='order-stats'),
    path('<uuid:pk>/', BuyerOrderDetailView.as_view(), name='order-detail'),
    path('<uuid:pk>/tracking/', OrderTrackingView.as_view(), name='order-tracking'),
    path('<uuid:pk>/cancel/', CancelOrderView.as_view(), name='order-cancel'),

    # Admin
    path('admin/', AdminOrderListView.as_view(), name='admin-order-list'),
    path('admin/<uuid:pk>/', AdminOrderDetailView.as_view(), name='admin-order-detail'),
    path('admin/<uuid:pk>/status/', AdminOrderStatusView.as_view(), name='admin-order-status'),
    path('admin/<uuid:pk>/items/<uuid:item_id>/status/', AdminOrderItemStatusView.as_view(), name='admin-order-item-status'),
]
