from django.db.models import Count, Q
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import IsBuyer, IsPlatformAdmin
from apps.utils.pagination import StandardResultsSetPagination
from apps.utils.throttle import BurstRateThrottle

from .models import Order, OrderStatus
from .serializers import (
    AdminOrderSerializer,
    CancelOrderSerializer,
    CartItemInputSerializer,
    CartQuantitySerializer,
    CouponApplySerializer,
    CreateOrderSerializer,
    OrderDetailSerializer,
    OrderItemStatusUpdateSerializer,
    OrderListSerializer,
    OrderStatusUpdateSerializer,
    OrderTrackingEventSerializer,
    order_created_payload,
)
from .services import CartService, CheckoutService, OrderService


# ---- Cart & checkout ----

class CartView(APIView):
    """
    GET    /api/v1/orders/cart/   cart items with pricing summary
    DELETE /api/v1/orders/cart/   clear cart
    """
    permission_classes = [IsBuyer]

    def get(self, request):
        return Response({"success": True, "data": CartService.get_cart_summary(request.user)})

    def delete(self, request):
        removed = CartService.clear_cart(request.user)
        return Response({"success": True, "message": "Cart cleared", "data": {"removed": removed}})


class CartItemListView(APIView):
    """
    POST /api/v1/orders/cart/items/  {productId, quantity}
    """
    permission_classes = [IsBuyer]

    def post(self, request):
        serializer = CartItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        CartService.add_item(
            request.user,
            serializer.validated_data["productId"],
            serializer.validated_data["quantity"],
        )
        return Response(
            {"success": True, "message": "Item added to cart", "data": CartService.get_cart_summary(request.user)},
            status=status.HTTP_201_CREATED,
        )


class CartItemDetailView(APIView):
    """
    PATCH  /api/v1/orders/cart/items/<product_id>/  {quantity}
    DELETE /api/v1/orders/cart/items/<product_id>/
    """
    permission_classes = [IsBuyer]

    def patch(self, request, product_id):
        serializer = CartQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        CartService.update_item(request.user, product_id, serializer.validated_data["quantity"])
        return Response({"success": True, "data": CartService.get_cart_summary(request.user)})

    def delete(self, request, product_id):
        CartService.remove_item(request.user, product_id)
        return Response({"success": True, "data": CartService.get_cart_summary(request.user)})


class CheckoutSessionView(APIView):
    """
    POST /api/v1/orders/cart/checkout/
    """
    permission_classes = [IsBuyer]
    throttle_classes = [BurstRateThrottle]

    def post(self, request):
        session = CheckoutService.create_session(request.user)
        return Response(
            {
                "success": True,
                "message": "Checkout session created",
                "data": {
                    "checkoutSessionId": str(session.id),
                    "expiresAt": session.expires_at.isoformat(),
                    "items": session.items,
                    "summary": session.summary,
                    "itemCount": session.cart_snapshot.get("itemCount", 0),
                },
            },
            status=status.HTTP_201_CREATED,
        )


class CartCouponView(APIView):
    """
    POST   /api/v1/orders/cart/coupon/  {couponCode}
    DELETE /api/v1/orders/cart/coupon/
    """
    permission_classes = [IsBuyer]

    def post(self, request):
        serializer = CouponApplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        coupon, discount = CartService.apply_coupon(request.user, serializer.validated_data["couponCode"])
        return Response({
            "success": True,
            "message": f"Coupon applied! You saved ₹{discount}",
            "data": {
                "couponCode": coupon.code,
                "discount": str(discount),
                **CartService.get_cart_summary(request.user),
            },
        })

    def delete(self, request):
        CartService.remove_coupon(request.user)
        return Response({
            "success": True,
            "message": "Coupon removed",
            "data": CartService.get_cart_summary(request.user),
        })


# ---- Orders (buyer) ----

class CreateOrderView(APIView):
    """
    POST /api/v1/orders/create/

    Errors are rendered by the DRF exception handler as
    {success: false, errorCode, message, details}.
    """
    permission_classes = [IsBuyer]
    throttle_classes = [BurstRateThrottle]

    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService.create_order(
            user=request.user,
            checkout_session_id=data["checkoutSessionId"],
            shipping_address_id=data["shippingAddressId"],
            billing_address_id=data.get("billingAddressId"),
            payment_method=data["paymentMethod"],
            payment_details=data.get("paymentDetails"),
            order_notes=data.get("orderNotes") or "",
        )

        return Response(
            {
                "success": True,
                "message": "Order placed successfully",
                "data": order_created_payload(order, order.items.count()),
            },
            status=status.HTTP_201_CREATED,
        )


class BuyerOrderListView(generics.ListAPIView):
    """
    GET /api/v1/orders/             history, ?status=<status>
    GET /api/v1/orders/active/      pending/confirmed/processing/shipped
    """
    serializer_class = OrderListSerializer
    permission_classes = [IsBuyer]
    pagination_class = StandardResultsSetPagination
    active_only = False

    def get_queryset(self):
        qs = Order.objects.filter(user=self.request.user).annotate(item_count=Count("items"))

        if self.active_only:
            return qs.filter(status__in=Order.ACTIVE_STATUSES).order_by("-created_at")

        status_filter = self.request.query_params.get("status")
        if status_filter in OrderStatus.values:
            qs = qs.filter(status=status_filter)
        return qs.order_by("-created_at")


class BuyerOrderDetailView(APIView):
    """
    GET /api/v1/orders/<id>/
    """
    permission_classes = [IsBuyer]

    def get(self, request, pk):
        order = OrderService.get_order_for_user(request.user, pk)
        return Response({"success": True, "data": OrderDetailSerializer(order).data})


class OrderTrackingView(APIView):
    """
    GET /api/v1/orders/<id>/tracking/
    """
    permission_classes = [IsBuyer]

    def get(self, request, pk):
        order = OrderService.get_order_for_user(request.user, pk)
        return Response({
            "success": True,
            "data": {
                "orderId": str(order.id),
                "orderNumber": order.order_number,
                "trackingNumber": order.tracking_number,
                "status": order.status,
                "deliveryEta": order.delivery_eta.isoformat() if order.delivery_eta else None,
                "events": OrderTrackingEventSerializer(order.tracking_events.all(), many=True).data,
            },
        })


class CancelOrderView(APIView):
    """
    POST /api/v1/orders/<id>/cancel/  {reason}
    """
    permission_classes = [IsBuyer]

    def post(self, request, pk):
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.cancel_order(request.user, pk, serializer.validated_data["reason"])
        return Response({
            "success": True,
            "message": "Order cancelled successfully",
            "data": {
                "orderId": str(order.id),
                "orderNumber": order.order_number,
                "status": order.status,
                "paymentStatus": order.payment_status,
                "cancelledAt": order.cancelled_at.isoformat(),
            },
        })


class BuyerOrderStatsView(APIView):
    """
    GET /api/v1/orders/stats/
    """
    permission_classes = [IsBuyer]

    def get(self, request):
        return Response({"success": True, "data": OrderService.get_buyer_stats(request.user)})


# ---- Orders (admin) ----

class AdminOrderListView(generics.ListAPIView):
    """
    GET /api/v1/orders/admin/?status=<status>&search=<order number>
    """
    serializer_class = OrderListSerializer
    permission_classes = [IsPlatformAdmin]
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        qs = Order.objects.annotate(item_count=Count("items")).order_by("-created_at")

        status_filter = self.request.query_params.get("status")
        if status_filter in OrderStatus.values:
            qs = qs.filter(status=status_filter)

        search = self.request.query_params.get("search")
        if search:
            qs = qs.filter(Q(order_number__icontains=search) | Q(tracking_number__icontains=search))
        return qs


class AdminOrderDetailView(APIView):
    """
    GET /api/v1/orders/admin/<id>/
    """
    permission_classes = [IsPlatformAdmin]

    def get(self, request, pk):
        order = generics.get_object_or_404(
            Order.objects.select_related("user").prefetch_related("items", "tracking_events"),
            pk=pk,
        )
        return Response({"success": True, "data": AdminOrderSerializer(order).data})


class AdminOrderStatusView(APIView):
    """
    POST /api/v1/orders/admin/<id>/status/  {status, note}
    """
    permission_classes = [IsPlatformAdmin]

    def post(self, request, pk):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.update_status(
            pk,
            serializer.validated_data["status"],
            note=serializer.validated_data.get("note", ""),
            actor=request.user,
        )
        return Response({"success": True, "message": "Order status updated", "data": AdminOrderSerializer(order).data})


class AdminOrderItemStatusView(APIView):
    """
    POST /api/v1/orders/admin/<id>/items/<item_id>/status/  {status}
    """
    permission_classes = [IsPlatformAdmin]

    def post(self, request, pk, item_id):
        serializer = OrderItemStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = OrderService.update_item_status(pk, item_id, serializer.validated_data["status"], actor=request.user)
        return Response({
            "success": True,
            "message": "Item status updated",
            "data": {"itemId": str(item.id), "itemStatus": item.item_status},
        })
