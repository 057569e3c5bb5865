# apps/orders/tests.py
import re
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from apps.accounts.models import Role
from apps.catalog.models import Product, ProductStatus
from apps.customers.models import Address
from apps.notifications.models import Notification, NotificationType
from apps.notifications.services import NotificationService
from apps.orders.exceptions import (
    CartIsEmpty,
    CartModified,
    CouponError,
    InsufficientStock,
    InvalidBillingAddress,
    InvalidCheckoutSession,
    InvalidShippingAddress,
    InvalidStatusTransition,
    OrderCreationFailed,
    ProductExpired,
    ProductNotAvailable,
    ProductNotFound,
    SessionAlreadyUsed,
    SessionExpired,
)
from apps.orders.models import (
    Cart,
    CartItem,
    CheckoutSession,
    Coupon,
    CouponUsage,
    DiscountType,
    Order,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
)
from apps.orders.services import (
    CartService,
    CheckoutService,
    CouponService,
    OrderService,
    PaymentService,
    PricingService,
    cart_content_hash,
)
from apps.orders.tasks import purge_expired_checkout_sessions


User = get_user_model()

ORDER_NUMBER_RE = re.compile(rf"^ORD-{timezone.localdate().year}-\d{{6}}$")


class OrderFixturesMixin:
    """
    Buyer with a Maharashtra address, a supplier and two listings.
    """

    def create_fixtures(self):
        self.buyer = User.objects.create_user(
            email="buyer@example.com",
            password="testpass123",
            full_name="Buyer One",
        )
        self.supplier = User.objects.create_user(
            email="supplier@example.com",
            password="testpass123",
            full_name="Sam Supplier",
            company_name="Acme Fasteners",
            role=Role.SUPPLIER,
        )
        self.product = self.make_product("Steel Bolts", "BLT-1")
        self.other_product = self.make_product("Hex Nuts", "NUT-1", price="200.00", original_price="200.00")
        self.address = self.make_address(self.buyer)

    def make_product(self, title, sku, price="1000.00", original_price="1200.00", quantity=10, **extra):
        return Product.objects.create(
            supplier=self.supplier,
            title=title,
            sku=sku,
            original_price=Decimal(original_price),
            price=Decimal(price),
            discount_percent=Decimal("16.67"),
            quantity=quantity,
            supplier_city="Pune",
            **extra,
        )

    def make_address(self, user, state="Maharashtra"):
        return Address.objects.create(
            user=user,
            full_name="Ravi Kumar",
            phone="+919876543210",
            address_line1="Plot 12, MIDC",
            city="Pune",
            state=state,
            pincode="411019",
            is_default=True,
        )

    def checkout(self, quantity=2, product=None):
        CartService.add_item(self.buyer, (product or self.product).id, quantity)
        return CheckoutService.create_session(self.buyer)

    def place_order(self, quantity=2):
        session = self.checkout(quantity)
        return OrderService.create_order(
            user=self.buyer,
            checkout_session_id=session.id,
            shipping_address_id=self.address.id,
            payment_method="cod",
        )


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------

class PricingServiceTests(SimpleTestCase):

    def item(self, price, original, quantity, gst="18.00"):
        return {"price": price, "originalPrice": original, "quantity": quantity, "gstPercent": gst}

    def test_summary_breakdown(self):
        summary = PricingService.calculate_cart_summary([self.item("1000.00", "1200.00", 2)])

        self.assertEqual(summary["itemSubtotal"], "2400.00")
        self.assertEqual(summary["discountAmount"], "400.00")
        self.assertEqual(summary["subtotalAfterDiscounts"], "2000.00")
        self.assertEqual(summary["gstAmount"], "360.00")
        self.assertEqual(summary["shippingCharges"], "500.00")
        self.assertEqual(summary["platformFee"], "0.00")
        self.assertEqual(summary["finalPayableAmount"], "2860.00")
        self.assertEqual(summary["itemCount"], 1)

    def test_total_is_sum_of_parts(self):
        summary = PricingService.calculate_cart_summary([
            self.item("333.33", "400.00", 3, gst="12.00"),
            self.item("99.99", "99.99", 7),
        ])
        total = (
            Decimal(summary["itemSubtotal"])
            - Decimal(summary["discountAmount"])
            + Decimal(summary["gstAmount"])
            + Decimal(summary["shippingCharges"])
            + Decimal(summary["platformFee"])
        )
        self.assertEqual(Decimal(summary["finalPayableAmount"]), total)

    def test_free_shipping_above_threshold(self):
        summary = PricingService.calculate_cart_summary([self.item("30000.00", "30000.00", 2)])
        self.assertEqual(summary["shippingCharges"], "0.00")

    @override_settings(PLATFORM_FEE_PERCENT=Decimal("2"))
    def test_platform_fee_percentage(self):
        summary = PricingService.calculate_cart_summary([self.item("1000.00", "1000.00", 1)])
        self.assertEqual(summary["platformFee"], "20.00")

    def test_empty_cart_summary(self):
        summary = PricingService.calculate_cart_summary([])
        self.assertEqual(summary["finalPayableAmount"], "0.00")
        self.assertEqual(summary["itemCount"], 0)


class CartHashTests(SimpleTestCase):

    def test_hash_ignores_item_order(self):
        self.assertEqual(
            cart_content_hash([("a", 1), ("b", 2)]),
            cart_content_hash([("b", 2), ("a", 1)]),
        )

    def test_hash_changes_with_quantity(self):
        self.assertNotEqual(
            cart_content_hash([("a", 1)]),
            cart_content_hash([("a", 2)]),
        )


class DerivedValueTests(SimpleTestCase):

    def test_item_tax_extracted_from_inclusive_price(self):
        self.assertEqual(OrderService.calculate_item_tax(Decimal("1180.00"), 1), Decimal("180.00"))

    def test_tax_plus_pre_tax_recovers_subtotal(self):
        for price, quantity in [("999.99", 3), ("12.50", 7), ("0.01", 1), ("45678.90", 11)]:
            gross = Decimal(price) * quantity
            tax = OrderService.calculate_item_tax(price, quantity)
            expected = gross * 18 / 118
            self.assertLessEqual(abs(tax - expected), Decimal("0.005"))
            self.assertLessEqual(abs((gross - tax) - gross * 100 / 118), Decimal("0.005"))

    def test_tracking_number_format(self):
        now = datetime(2026, 1, 2, 3, 4, 5)
        tracking = OrderService.generate_tracking_number(now)
        self.assertRegex(tracking, r"^ZEERO-20260102030405-\d{5}$")

    def test_delivery_eta_fast_state(self):
        now = timezone.now()
        eta = OrderService.calculate_delivery_eta(SimpleNamespace(state="Maharashtra"), now)
        self.assertEqual(eta - now, timedelta(days=3))

    def test_delivery_eta_other_states(self):
        now = timezone.now()
        eta = OrderService.calculate_delivery_eta(SimpleNamespace(state="Karnataka"), now)
        self.assertEqual(eta - now, timedelta(days=5))


class OrderNumberTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email="numbers@example.com", password="testpass123")

    def _order(self, number):
        return Order.objects.create(
            user=self.user,
            order_number=number,
            tracking_number="ZEERO-20310101000000-00001",
            shipping_address={},
            billing_address={},
        )

    def test_first_order_of_year(self):
        self.assertEqual(OrderService.generate_order_number(2031), "ORD-2031-000001")

    def test_increments_within_year_only(self):
        self._order("ORD-2031-000041")
        self._order("ORD-2030-000999")
        self.assertEqual(OrderService.generate_order_number(2031), "ORD-2031-000042")

    def test_numbers_strictly_increase(self):
        previous = None
        for _ in range(5):
            number = OrderService.generate_order_number(2031)
            self._order(number)
            if previous:
                self.assertGreater(number, previous)
            self.assertRegex(number, r"^ORD-2031-\d{6}$")
            previous = number

    def test_suffix_past_six_digits_keeps_counting(self):
        self._order("ORD-2031-999999")
        self._order("ORD-2031-1000000")
        self.assertEqual(OrderService.generate_order_number(2031), "ORD-2031-1000001")

    @override_settings(TIME_ZONE="Asia/Kolkata")
    def test_year_follows_local_date(self):
        # 03:00 on 1 January in Kolkata
        utc_now = datetime(2026, 12, 31, 21, 30, tzinfo=dt_timezone.utc)
        with patch("django.utils.timezone.now", return_value=utc_now):
            self.assertEqual(OrderService.generate_order_number(), "ORD-2027-000001")


# ---------------------------------------------------------------------------
# Validation gates
# ---------------------------------------------------------------------------

class CheckoutSessionValidationTests(OrderFixturesMixin, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_valid_session_returns_snapshot(self):
        session = self.checkout()
        validated = OrderService.validate_checkout_session(session.id, self.buyer)
        self.assertEqual(validated.summary, session.cart_snapshot["summary"])
        self.assertEqual(validated.items[0]["quantity"], 2)

    def test_unknown_session(self):
        with self.assertRaises(InvalidCheckoutSession):
            OrderService.validate_checkout_session("6c1c8b8e-51c4-4e0e-8d5e-9d1c9a9b9c9d", self.buyer)

    def test_malformed_session_id(self):
        with self.assertRaises(InvalidCheckoutSession):
            OrderService.validate_checkout_session("not-a-uuid", self.buyer)

    def test_session_of_other_user(self):
        session = self.checkout()
        intruder = User.objects.create_user(email="intruder@example.com", password="testpass123")
        with self.assertRaises(InvalidCheckoutSession):
            OrderService.validate_checkout_session(session.id, intruder)

    def test_expired_session(self):
        session = self.checkout()
        CheckoutSession.objects.filter(id=session.id).update(expires_at=timezone.now() - timedelta(seconds=1))
        with self.assertRaises(SessionExpired):
            OrderService.validate_checkout_session(session.id, self.buyer)

    def test_used_session(self):
        session = self.checkout()
        CheckoutSession.objects.filter(id=session.id).update(is_used=True)
        with self.assertRaises(SessionAlreadyUsed):
            OrderService.validate_checkout_session(session.id, self.buyer)


class CartConsistencyTests(OrderFixturesMixin, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.session = self.checkout(quantity=2)

    def test_matching_cart_passes(self):
        items = OrderService.validate_cart_against_snapshot(self.session, self.buyer)
        self.assertEqual([i.product_id for i in items], [self.product.id])

    def test_empty_live_cart(self):
        CartService.clear_cart(self.buyer)
        with self.assertRaises(CartIsEmpty):
            OrderService.validate_cart_against_snapshot(self.session, self.buyer)

    def test_item_count_changed_is_generic(self):
        CartService.add_item(self.buyer, self.other_product.id, 1)
        with self.assertRaises(CartModified) as ctx:
            OrderService.validate_cart_against_snapshot(self.session, self.buyer)
        self.assertEqual(ctx.exception.variant, CartModified.GENERIC)

    def test_item_swapped_is_items_changed(self):
        CartService.remove_item(self.buyer, self.product.id)
        CartService.add_item(self.buyer, self.other_product.id, 2)
        with self.assertRaises(CartModified) as ctx:
            OrderService.validate_cart_against_snapshot(self.session, self.buyer)
        self.assertEqual(ctx.exception.variant, CartModified.ITEMS_CHANGED)

    def test_quantity_changed(self):
        CartService.update_item(self.buyer, self.product.id, 3)
        with self.assertRaises(CartModified) as ctx:
            OrderService.validate_cart_against_snapshot(self.session, self.buyer)
        self.assertEqual(ctx.exception.variant, CartModified.QUANTITIES_CHANGED)
        self.assertEqual(ctx.exception.details, "CART_MODIFIED_AFTER_CHECKOUT: Quantities changed")


class ProductAvailabilityTests(OrderFixturesMixin, TestCase):

    def setUp(self):
        self.create_fixtures()
        CartService.add_item(self.buyer, self.product.id, 5)

    def _items(self):
        return CartService.get_items(self.buyer)

    def test_inactive_product(self):
        Product.objects.filter(id=self.product.id).update(status=ProductStatus.INACTIVE)
        with self.assertRaises(ProductNotAvailable):
            OrderService.validate_products_availability(self._items())

    def test_insufficient_stock_reports_both_values(self):
        Product.objects.filter(id=self.product.id).update(quantity=1)
        with self.assertRaises(InsufficientStock) as ctx:
            OrderService.validate_products_availability(self._items())
        self.assertIn("Available: 1", ctx.exception.message)
        self.assertIn("Requested: 5", ctx.exception.message)

    def test_expired_listing(self):
        Product.objects.filter(id=self.product.id).update(expires_at=timezone.now() - timedelta(hours=1))
        with self.assertRaises(ProductExpired):
            OrderService.validate_products_availability(self._items())

    def test_first_violation_wins(self):
        Product.objects.filter(id=self.product.id).update(status=ProductStatus.INACTIVE, quantity=0)
        with self.assertRaises(ProductNotAvailable):
            OrderService.validate_products_availability(self._items())

    def test_deleted_product_is_not_found(self):
        items = self._items()
        Product.objects.filter(id=self.product.id).delete()

        with self.assertRaises(ProductNotFound) as ctx:
            OrderService.validate_products_availability(items)
        self.assertEqual(ctx.exception.code, "PRODUCT_NOT_FOUND")
        self.assertEqual(ctx.exception.status_code, status.HTTP_404_NOT_FOUND)


class AddressValidationTests(OrderFixturesMixin, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.stranger = User.objects.create_user(email="stranger@example.com", password="testpass123")
        self.foreign_address = self.make_address(self.stranger)

    def test_billing_defaults_to_shipping(self):
        shipping, billing = OrderService.validate_addresses(self.buyer, self.address.id)
        self.assertIs(shipping, billing)

    def test_billing_same_id_reuses_shipping(self):
        shipping, billing = OrderService.validate_addresses(self.buyer, self.address.id, self.address.id)
        self.assertIs(shipping, billing)

    def test_separate_billing_address(self):
        billing_address = self.make_address(self.buyer, state="Gujarat")
        shipping, billing = OrderService.validate_addresses(self.buyer, self.address.id, billing_address.id)
        self.assertEqual(billing.id, billing_address.id)

    def test_foreign_shipping_address(self):
        with self.assertRaises(InvalidShippingAddress):
            OrderService.validate_addresses(self.buyer, self.foreign_address.id)

    def test_foreign_billing_address(self):
        with self.assertRaises(InvalidBillingAddress):
            OrderService.validate_addresses(self.buyer, self.address.id, self.foreign_address.id)


# ---------------------------------------------------------------------------
# Order creation
# ---------------------------------------------------------------------------

class CreateOrderServiceTests(OrderFixturesMixin, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_happy_path_persists_aggregate(self):
        session = self.checkout(quantity=2)
        order = OrderService.create_order(
            user=self.buyer,
            checkout_session_id=session.id,
            shipping_address_id=self.address.id,
            payment_method="cod",
            order_notes="Deliver before noon",
        )

        self.assertRegex(order.order_number, ORDER_NUMBER_RE)
        self.assertRegex(order.tracking_number, r"^ZEERO-\d{14}-\d{5}$")
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)
        self.assertEqual(order.total_amount, Decimal(session.summary["finalPayableAmount"]))
        self.assertEqual(order.items_subtotal, Decimal("2400.00"))
        self.assertEqual(order.discount_amount, Decimal("400.00"))
        self.assertEqual(order.shipping_address["state"], "Maharashtra")
        self.assertEqual(order.billing_address, order.shipping_address)
        self.assertEqual(order.order_notes, "Deliver before noon")
        self.assertEqual(order.checkout_session_id, session.id)

        item = order.items.get()
        self.assertEqual(item.product_title, "Steel Bolts")
        self.assertEqual(item.quantity, 2)
        self.assertEqual(item.subtotal, Decimal("2000.00"))
        self.assertEqual(item.gst_amount, Decimal("305.08"))
        self.assertEqual(item.supplier_name, "Acme Fasteners")
        self.assertEqual(item.item_status, OrderItemStatus.PENDING)

        event = order.tracking_events.get()
        self.assertEqual(event.status, OrderStatus.PENDING)
        self.assertEqual(event.title, "Order Placed")
        self.assertTrue(event.is_milestone)

    def test_side_effects_applied(self):
        order = self.place_order(quantity=2)

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 8)
        self.assertTrue(CheckoutSession.objects.get(order=order).is_used)
        self.assertFalse(CartItem.objects.filter(cart__user=self.buyer).exists())

    def test_delivery_eta_fast_state(self):
        order = self.place_order()
        delta = order.delivery_eta - order.created_at
        self.assertAlmostEqual(delta.total_seconds(), timedelta(days=3).total_seconds(), delta=60)

    def test_session_backs_one_order(self):
        session = self.checkout()
        kwargs = dict(
            user=self.buyer,
            checkout_session_id=session.id,
            shipping_address_id=self.address.id,
            payment_method="cod",
        )
        OrderService.create_order(**kwargs)

        with self.assertRaises(SessionAlreadyUsed):
            OrderService.create_order(**kwargs)
        self.assertEqual(Order.objects.count(), 1)

    def test_expired_session_never_succeeds(self):
        session = self.checkout()
        CheckoutSession.objects.filter(id=session.id).update(expires_at=timezone.now() - timedelta(minutes=1))

        for _ in range(3):
            with self.assertRaises(SessionExpired):
                OrderService.create_order(
                    user=self.buyer,
                    checkout_session_id=session.id,
                    shipping_address_id=self.address.id,
                    payment_method="cod",
                )
        self.assertFalse(Order.objects.exists())

    def test_stock_taken_after_validation_rolls_back(self):
        session = self.checkout(quantity=2)
        Product.objects.filter(id=self.product.id).update(quantity=1)

        with patch.object(OrderService, "validate_products_availability", return_value={}):
            with self.assertRaises(InsufficientStock) as ctx:
                OrderService.create_order(
                    user=self.buyer,
                    checkout_session_id=session.id,
                    shipping_address_id=self.address.id,
                    payment_method="cod",
                )

        self.assertIn("Available: 1", ctx.exception.message)
        self.assertFalse(Order.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 1)
        session.refresh_from_db()
        self.assertFalse(session.is_used)

    def test_order_number_collision_is_retried(self):
        existing = Order.objects.create(
            user=self.buyer,
            order_number="ORD-2031-000001",
            tracking_number="ZEERO-20310101000000-00001",
            shipping_address={},
            billing_address={},
        )
        session = self.checkout()

        with patch.object(
            OrderService,
            "generate_order_number",
            side_effect=[existing.order_number, "ORD-2031-000002"],
        ):
            order = OrderService.create_order(
                user=self.buyer,
                checkout_session_id=session.id,
                shipping_address_id=self.address.id,
                payment_method="cod",
            )
        self.assertEqual(order.order_number, "ORD-2031-000002")

    @override_settings(ORDER_NUMBER_MAX_RETRIES=2)
    def test_order_number_retries_exhausted(self):
        Order.objects.create(
            user=self.buyer,
            order_number="ORD-2031-000001",
            tracking_number="ZEERO-20310101000000-00001",
            shipping_address={},
            billing_address={},
        )
        session = self.checkout()

        with patch.object(OrderService, "generate_order_number", return_value="ORD-2031-000001"):
            with self.assertRaises(OrderCreationFailed):
                OrderService.create_order(
                    user=self.buyer,
                    checkout_session_id=session.id,
                    shipping_address_id=self.address.id,
                    payment_method="cod",
                )
        self.assertEqual(Order.objects.count(), 1)

    def test_cart_clear_failure_marks_order_failed(self):
        session = self.checkout(quantity=2)

        with patch.object(CartService, "clear_cart", side_effect=RuntimeError("cart store down")):
            with self.assertRaises(OrderCreationFailed):
                OrderService.create_order(
                    user=self.buyer,
                    checkout_session_id=session.id,
                    shipping_address_id=self.address.id,
                    payment_method="cod",
                )

        order = Order.objects.get()
        self.assertEqual(order.status, OrderStatus.FAILED)
        self.assertEqual(order.admin_notes, "Order creation failed: cart store down")

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)

        self.assertTrue(order.tracking_events.filter(status=OrderStatus.FAILED).exists())
        self.assertFalse(order.items.exclude(item_status=OrderItemStatus.CANCELLED).exists())

    def test_items_of_failed_order_cannot_be_cancelled_again(self):
        session = self.checkout(quantity=2)

        with patch.object(CartService, "clear_cart", side_effect=RuntimeError("cart store down")):
            with self.assertRaises(OrderCreationFailed):
                OrderService.create_order(
                    user=self.buyer,
                    checkout_session_id=session.id,
                    shipping_address_id=self.address.id,
                    payment_method="cod",
                )

        order = Order.objects.get()
        item = order.items.get()
        with self.assertRaises(InvalidStatusTransition):
            OrderService.update_item_status(order.id, item.id, OrderItemStatus.CANCELLED)

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)

    def test_compensation_failure_is_logged_not_raised(self):
        session = self.checkout()

        with patch.object(CartService, "clear_cart", side_effect=RuntimeError("cart store down")), \
                patch.object(OrderService, "_restore_stock", side_effect=RuntimeError("db gone")), \
                self.assertLogs("apps.orders.services", level="ERROR") as logs:
            with self.assertRaises(OrderCreationFailed):
                OrderService.create_order(
                    user=self.buyer,
                    checkout_session_id=session.id,
                    shipping_address_id=self.address.id,
                    payment_method="cod",
                )

        self.assertTrue(any("Compensation failed" in line for line in logs.output))

    def test_notification_failure_does_not_fail_order(self):
        session = self.checkout()

        with patch.object(NotificationService, "send_order_confirmation", side_effect=RuntimeError("smtp down")):
            order = OrderService.create_order(
                user=self.buyer,
                checkout_session_id=session.id,
                shipping_address_id=self.address.id,
                payment_method="cod",
            )

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PENDING)

    def test_confirmation_notification_dispatched_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self.place_order()

        notification = Notification.objects.get(user=self.buyer)
        self.assertEqual(notification.type, NotificationType.ORDER_CONFIRMED)
        self.assertEqual(notification.title, f"Order Confirmed - {order.order_number}")
        self.assertEqual(notification.status, "sent")

    def test_online_payment_keeps_transaction_reference(self):
        session = self.checkout()
        order = OrderService.create_order(
            user=self.buyer,
            checkout_session_id=session.id,
            shipping_address_id=self.address.id,
            payment_method="upi",
            payment_details={"transactionId": "UPI-123"},
        )
        self.assertEqual(order.payment_transaction_id, "UPI-123")
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)


class CreateOrderAPITests(OrderFixturesMixin, APITestCase):

    def setUp(self):
        self.client = APIClient()
        self.create_fixtures()
        self.client.force_authenticate(self.buyer)
        self.url = reverse("create-order")

    def payload(self, session, **overrides):
        data = {
            "checkoutSessionId": str(session.id),
            "shippingAddressId": str(self.address.id),
            "paymentMethod": "cod",
        }
        data.update(overrides)
        return data

    def test_scenario_a_success(self):
        session = self.checkout(quantity=2)
        response = self.client.post(self.url, self.payload(session), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        data = response.data["data"]
        self.assertRegex(data["orderNumber"], ORDER_NUMBER_RE)
        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["paymentStatus"], "pending")
        self.assertEqual(data["itemCount"], 1)
        self.assertEqual(data["totalAmount"], session.summary["finalPayableAmount"])
        for key in ("orderId", "trackingNumber", "deliveryEta", "createdAt"):
            self.assertIn(key, data)

    def test_scenario_b_item_count_changed(self):
        session = self.checkout(quantity=2)
        CartService.add_item(self.buyer, self.other_product.id, 1)

        response = self.client.post(self.url, self.payload(session), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "CART_MODIFIED_AFTER_CHECKOUT")
        self.assertEqual(response.data["details"], "CART_MODIFIED_AFTER_CHECKOUT")

    def test_scenario_c_quantity_changed(self):
        session = self.checkout(quantity=2)
        CartService.update_item(self.buyer, self.product.id, 3)

        response = self.client.post(self.url, self.payload(session), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "CART_MODIFIED_AFTER_CHECKOUT")
        self.assertEqual(response.data["details"], "CART_MODIFIED_AFTER_CHECKOUT: Quantities changed")

    def test_scenario_d_insufficient_stock(self):
        session = self.checkout(quantity=5)
        Product.objects.filter(id=self.product.id).update(quantity=1)

        response = self.client.post(self.url, self.payload(session), format="json")
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["errorCode"], "INSUFFICIENT_STOCK")
        self.assertIn("Available: 1", response.data["message"])
        self.assertIn("Requested: 5", response.data["message"])

    def test_scenario_e_foreign_shipping_address(self):
        session = self.checkout()
        stranger = User.objects.create_user(email="stranger@example.com", password="testpass123")
        foreign = self.make_address(stranger)

        response = self.client.post(
            self.url,
            self.payload(session, shippingAddressId=str(foreign.id)),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "INVALID_SHIPPING_ADDRESS")

    def test_scenario_f_same_session_twice(self):
        session = self.checkout()

        first = self.client.post(self.url, self.payload(session), format="json")
        second = self.client.post(self.url, self.payload(session), format="json")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.data["errorCode"], "CHECKOUT_SESSION_ALREADY_USED")
        self.assertEqual(second.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(Order.objects.filter(user=self.buyer).count(), 1)

    def test_product_not_found_is_404(self):
        session = self.checkout()
        with patch.object(OrderService, "validate_products_availability", side_effect=ProductNotFound("Steel Bolts")):
            response = self.client.post(self.url, self.payload(session), format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["errorCode"], "PRODUCT_NOT_FOUND")

    def test_empty_billing_id_means_shipping(self):
        session = self.checkout()
        response = self.client.post(self.url, self.payload(session, billingAddressId=""), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_request_validation(self):
        session = self.checkout()

        response = self.client.post(self.url, self.payload(session, paymentMethod="barter"), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "VALIDATION_ERROR")
        self.assertIn("paymentMethod", response.data["details"])

        response = self.client.post(self.url, self.payload(session, orderNotes="x" * 501), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(self.url, {"paymentMethod": "cod"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_suppliers_cannot_order(self):
        self.client.force_authenticate(self.supplier)
        response = self.client.post(self.url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


# ---------------------------------------------------------------------------
# Cart & checkout endpoints
# ---------------------------------------------------------------------------

class CartAndCheckoutAPITests(OrderFixturesMixin, APITestCase):

    def setUp(self):
        self.client = APIClient()
        self.create_fixtures()
        self.client.force_authenticate(self.buyer)

    def test_add_merges_quantity(self):
        url = reverse("cart-items")
        self.client.post(url, {"productId": str(self.product.id), "quantity": 2}, format="json")
        response = self.client.post(url, {"productId": str(self.product.id), "quantity": 3}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["items"][0]["quantity"], 5)
        self.assertEqual(response.data["data"]["itemCount"], 1)

    def test_add_beyond_stock_rejected(self):
        response = self.client.post(
            reverse("cart-items"),
            {"productId": str(self.product.id), "quantity": 11},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "INSUFFICIENT_STOCK")

    def test_quantity_zero_removes_item(self):
        CartService.add_item(self.buyer, self.product.id, 2)
        url = reverse("cart-item-detail", kwargs={"product_id": self.product.id})

        response = self.client.patch(url, {"quantity": 0}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["itemCount"], 0)

    def test_checkout_empty_cart(self):
        response = self.client.post(reverse("cart-checkout"))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "CART_IS_EMPTY")

    def test_checkout_creates_session(self):
        CartService.add_item(self.buyer, self.product.id, 2)
        response = self.client.post(reverse("cart-checkout"))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        session = CheckoutSession.objects.get(id=response.data["data"]["checkoutSessionId"])
        self.assertFalse(session.is_used)
        self.assertEqual(session.cart_snapshot["itemCount"], 1)
        self.assertEqual(session.snapshot_hash, cart_content_hash([(self.product.id, 2)]))

        ttl = (session.expires_at - session.created_at).total_seconds()
        self.assertAlmostEqual(ttl, 30 * 60, delta=5)

    def test_checkout_rechecks_stock(self):
        CartService.add_item(self.buyer, self.product.id, 5)
        Product.objects.filter(id=self.product.id).update(quantity=2)

        response = self.client.post(reverse("cart-checkout"))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "INSUFFICIENT_STOCK")


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------

class BuyerOrderLifecycleTests(OrderFixturesMixin, APITestCase):

    def setUp(self):
        self.client = APIClient()
        self.create_fixtures()
        self.client.force_authenticate(self.buyer)
        self.order = self.place_order(quantity=2)

    def test_cancel_pending_order(self):
        url = reverse("order-cancel", kwargs={"pk": self.order.id})
        response = self.client.post(url, {"reason": "Ordered the wrong size"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.assertEqual(self.order.cancelled_by, self.buyer)

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)

        self.assertEqual(self.order.items.get().item_status, OrderItemStatus.CANCELLED)
        self.assertTrue(self.order.tracking_events.filter(status=OrderStatus.CANCELLED).exists())
        self.assertTrue(
            Notification.objects.filter(user=self.buyer, type=NotificationType.ORDER_CANCELLED).exists()
        )

    def test_cancel_reason_too_short(self):
        url = reverse("order-cancel", kwargs={"pk": self.order.id})
        response = self.client.post(url, {"reason": "nope"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_cancel_shipped_order(self):
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.SHIPPED)
        url = reverse("order-cancel", kwargs={"pk": self.order.id})
        response = self.client.post(url, {"reason": "Changed my mind entirely"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "ORDER_CANNOT_BE_CANCELLED")

    def test_other_buyer_cannot_cancel(self):
        other = User.objects.create_user(email="other@example.com", password="testpass123")
        self.client.force_authenticate(other)
        url = reverse("order-cancel", kwargs={"pk": self.order.id})
        response = self.client.post(url, {"reason": "Hacker attempt here"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["errorCode"], "ORDER_NOT_FOUND")

    def test_detail_and_tracking(self):
        response = self.client.get(reverse("order-detail", kwargs={"pk": self.order.id}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["data"]["items"]), 1)
        self.assertTrue(response.data["data"]["can_cancel"])

        response = self.client.get(reverse("order-tracking", kwargs={"pk": self.order.id}))
        events = response.data["data"]["events"]
        self.assertEqual(events[0]["title"], "Order Placed")

    def test_active_history_and_stats(self):
        delivered = self.place_order(quantity=1)
        Order.objects.filter(id=delivered.id).update(status=OrderStatus.DELIVERED)

        response = self.client.get(reverse("order-active"))
        self.assertEqual(response.data["pagination"]["total"], 1)

        response = self.client.get(reverse("order-history"), {"status": "delivered"})
        self.assertEqual(response.data["pagination"]["total"], 1)
        self.assertEqual(response.data["data"][0]["order_number"], delivered.order_number)

        response = self.client.get(reverse("order-stats"))
        stats = response.data["data"]
        self.assertEqual(stats["totalOrders"], 2)
        self.assertEqual(stats["activeOrders"], 1)
        self.assertEqual(stats["deliveredOrders"], 1)

    def test_tracking_events_are_append_only(self):
        event = self.order.tracking_events.get()
        event.title = "Rewritten"
        with self.assertRaises(ValueError):
            event.save()


class AdminOrderTests(OrderFixturesMixin, APITestCase):

    def setUp(self):
        self.client = APIClient()
        self.create_fixtures()
        self.admin = User.objects.create_superuser(email="admin@example.com", password="testpass123")
        self.order = self.place_order(quantity=2)
        self.client.force_authenticate(self.admin)

    def _status_url(self):
        return reverse("admin-order-status", kwargs={"pk": self.order.id})

    def test_walk_to_delivered(self):
        for new_status in ("confirmed", "processing", "shipped", "delivered"):
            response = self.client.post(self._status_url(), {"status": new_status}, format="json")
            self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.DELIVERED)
        self.assertIsNotNone(self.order.shipped_at)
        self.assertIsNotNone(self.order.delivered_at)
        self.assertEqual(self.order.items.get().item_status, OrderItemStatus.DELIVERED)
        self.assertEqual(self.order.tracking_events.count(), 5)
        self.assertTrue(
            Notification.objects.filter(user=self.buyer, type=NotificationType.ORDER_SHIPPED).exists()
        )

    def test_invalid_transition(self):
        response = self.client.post(self._status_url(), {"status": "delivered"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "INVALID_STATUS_TRANSITION")

    def test_admin_cancel_returns_stock(self):
        OrderService.update_status(self.order.id, OrderStatus.CANCELLED, note="Supplier out of stock", actor=self.admin)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)

        with self.assertRaises(InvalidStatusTransition):
            OrderService.update_status(self.order.id, OrderStatus.CONFIRMED, actor=self.admin)

    def test_admin_cancel_refunds_paid_order(self):
        Order.objects.filter(id=self.order.id).update(payment_status=PaymentStatus.PAID)

        with patch.object(PaymentService, "refund_payment", return_value={"success": True}) as refund:
            OrderService.update_status(self.order.id, OrderStatus.CANCELLED, note="Supplier out of stock", actor=self.admin)

        refund.assert_called_once()
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.assertEqual(self.order.payment_status, PaymentStatus.REFUNDED)

    def test_admin_cancel_of_unpaid_order_skips_refund(self):
        with patch.object(PaymentService, "refund_payment") as refund:
            OrderService.update_status(self.order.id, OrderStatus.CANCELLED, actor=self.admin)

        refund.assert_not_called()
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)

    def test_item_status_update(self):
        item = self.order.items.get()
        url = reverse("admin-order-item-status", kwargs={"pk": self.order.id, "item_id": item.id})
        response = self.client.post(url, {"status": "processing"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        item.refresh_from_db()
        self.assertEqual(item.item_status, OrderItemStatus.PROCESSING)

    def test_list_search_and_permissions(self):
        response = self.client.get(reverse("admin-order-list"), {"search": self.order.order_number})
        self.assertEqual(response.data["pagination"]["total"], 1)

        self.client.force_authenticate(self.buyer)
        response = self.client.get(reverse("admin-order-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class PurgeCheckoutSessionTaskTests(OrderFixturesMixin, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_purges_only_stale_unused_sessions(self):
        stale = self.checkout()
        CheckoutSession.objects.filter(id=stale.id).update(expires_at=timezone.now() - timedelta(days=2))
        fresh = CheckoutService.create_session(self.buyer)

        purge_expired_checkout_sessions()

        self.assertFalse(CheckoutSession.objects.filter(id=stale.id).exists())
        self.assertTrue(CheckoutSession.objects.filter(id=fresh.id).exists())


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------

class CouponFixturesMixin(OrderFixturesMixin):

    def make_coupon(self, code="SAVE10", **extra):
        fields = {
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("10.00"),
            "valid_until": timezone.now() + timedelta(days=7),
        }
        fields.update(extra)
        return Coupon.objects.create(code=code, **fields)


class CouponServiceTests(CouponFixturesMixin, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_percentage_discount(self):
        coupon = self.make_coupon()
        self.assertEqual(CouponService.calculate_discount(coupon, self.buyer, Decimal("2000.00")), Decimal("200.00"))

    def test_percentage_discount_is_capped(self):
        coupon = self.make_coupon(max_discount=Decimal("150.00"))
        self.assertEqual(CouponService.calculate_discount(coupon, self.buyer, Decimal("2000.00")), Decimal("150.00"))

    def test_flat_discount_never_exceeds_order_value(self):
        coupon = self.make_coupon(discount_type=DiscountType.FLAT, discount_value=Decimal("5000.00"))
        self.assertEqual(CouponService.calculate_discount(coupon, self.buyer, Decimal("2000.00")), Decimal("2000.00"))

    def test_code_is_case_insensitive(self):
        coupon = self.make_coupon(code="save10")
        self.assertEqual(coupon.code, "SAVE10")
        self.assertEqual(CouponService.get_coupon(" save10 "), coupon)

    def test_inactive_coupon_is_invalid(self):
        self.make_coupon(is_active=False)
        with self.assertRaises(CouponError) as ctx:
            CouponService.get_coupon("SAVE10")
        self.assertEqual(ctx.exception.code, CouponError.INVALID)

    def test_validity_window(self):
        expired = self.make_coupon(code="OLD", valid_until=timezone.now() - timedelta(hours=1))
        upcoming = self.make_coupon(code="SOON", valid_from=timezone.now() + timedelta(days=1))

        with self.assertRaises(CouponError) as ctx:
            CouponService.calculate_discount(expired, self.buyer, Decimal("2000.00"))
        self.assertEqual(ctx.exception.code, CouponError.EXPIRED)

        with self.assertRaises(CouponError) as ctx:
            CouponService.calculate_discount(upcoming, self.buyer, Decimal("2000.00"))
        self.assertEqual(ctx.exception.code, CouponError.NOT_STARTED)

    def test_minimum_order_value(self):
        coupon = self.make_coupon(min_order_value=Decimal("5000.00"))
        with self.assertRaises(CouponError) as ctx:
            CouponService.calculate_discount(coupon, self.buyer, Decimal("2000.00"))
        self.assertEqual(ctx.exception.code, CouponError.MIN_ORDER_NOT_MET)
        self.assertIn("5,000.00", ctx.exception.message)

    def test_per_user_limit(self):
        coupon = self.make_coupon()
        CouponUsage.objects.create(
            coupon=coupon,
            user=self.buyer,
            discount_applied=Decimal("100.00"),
            order_value=Decimal("1000.00"),
        )
        with self.assertRaises(CouponError) as ctx:
            CouponService.calculate_discount(coupon, self.buyer, Decimal("2000.00"))
        self.assertEqual(ctx.exception.code, CouponError.USER_USAGE_LIMIT_REACHED)

    def test_redeem_stops_at_total_limit(self):
        coupon = self.make_coupon(total_usage_limit=1, current_usage_count=1)
        with self.assertRaises(CouponError) as ctx:
            CouponService.redeem(coupon.code, self.buyer, None, Decimal("200.00"), Decimal("2000.00"))
        self.assertEqual(ctx.exception.code, CouponError.USAGE_LIMIT_REACHED)
        self.assertFalse(CouponUsage.objects.exists())

    def test_summary_with_coupon_keeps_total_invariant(self):
        coupon = self.make_coupon()
        items = [
            {"price": "1000.00", "originalPrice": "1200.00", "quantity": 2, "gstPercent": "18.00"},
            {"price": "99.99", "originalPrice": "99.99", "quantity": 7, "gstPercent": "12.00"},
        ]
        summary = PricingService.calculate_cart_summary(items, coupon=coupon, user=self.buyer)

        self.assertEqual(summary["couponCode"], "SAVE10")
        self.assertEqual(summary["couponDiscount"], "269.99")
        total = (
            Decimal(summary["itemSubtotal"])
            - Decimal(summary["discountAmount"])
            - Decimal(summary["couponDiscount"])
            + Decimal(summary["gstAmount"])
            + Decimal(summary["shippingCharges"])
            + Decimal(summary["platformFee"])
        )
        self.assertEqual(Decimal(summary["finalPayableAmount"]), total)
        self.assertEqual(
            Decimal(summary["totalSavings"]),
            Decimal(summary["discountAmount"]) + Decimal(summary["couponDiscount"]),
        )

    def test_summary_with_coupon_breakdown(self):
        coupon = self.make_coupon()
        items = [{"price": "1000.00", "originalPrice": "1200.00", "quantity": 2, "gstPercent": "18.00"}]
        summary = PricingService.calculate_cart_summary(items, coupon=coupon, user=self.buyer)

        self.assertEqual(summary["couponDiscount"], "200.00")
        self.assertEqual(summary["subtotalAfterDiscounts"], "1800.00")
        self.assertEqual(summary["gstAmount"], "324.00")
        self.assertEqual(summary["finalPayableAmount"], "2624.00")

    def test_summary_drops_coupon_that_no_longer_applies(self):
        coupon = self.make_coupon(valid_until=timezone.now() - timedelta(minutes=1))
        items = [{"price": "1000.00", "originalPrice": "1200.00", "quantity": 2, "gstPercent": "18.00"}]
        summary = PricingService.calculate_cart_summary(items, coupon=coupon, user=self.buyer)

        self.assertEqual(summary["couponDiscount"], "0.00")
        self.assertIsNone(summary["couponCode"])
        self.assertEqual(summary["finalPayableAmount"], "2860.00")


class CartCouponAPITests(CouponFixturesMixin, APITestCase):

    def setUp(self):
        self.client = APIClient()
        self.create_fixtures()
        self.coupon = self.make_coupon()
        self.client.force_authenticate(self.buyer)
        self.url = reverse("cart-coupon")

    def test_apply_coupon(self):
        CartService.add_item(self.buyer, self.product.id, 2)
        response = self.client.post(self.url, {"couponCode": "save10"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["message"], "Coupon applied! You saved ₹200.00")
        data = response.data["data"]
        self.assertEqual(data["couponCode"], "SAVE10")
        self.assertEqual(data["summary"]["couponDiscount"], "200.00")
        self.assertEqual(Cart.objects.get(user=self.buyer).coupon, self.coupon)

    def test_apply_to_empty_cart(self):
        response = self.client.post(self.url, {"couponCode": "SAVE10"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "CART_IS_EMPTY")

    def test_apply_unknown_code(self):
        CartService.add_item(self.buyer, self.product.id, 2)
        response = self.client.post(self.url, {"couponCode": "NOPE"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "INVALID_COUPON")

    def test_apply_below_minimum(self):
        self.make_coupon(code="BIGSPEND", min_order_value=Decimal("10000.00"))
        CartService.add_item(self.buyer, self.product.id, 2)
        response = self.client.post(self.url, {"couponCode": "BIGSPEND"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["errorCode"], "MIN_ORDER_NOT_MET")
        self.assertIsNone(Cart.objects.get(user=self.buyer).coupon)

    def test_remove_coupon(self):
        CartService.add_item(self.buyer, self.product.id, 2)
        CartService.apply_coupon(self.buyer, "SAVE10")

        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data["data"]["summary"]["couponCode"])
        self.assertIsNone(Cart.objects.get(user=self.buyer).coupon)


class CouponOrderTests(CouponFixturesMixin, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.coupon = self.make_coupon(total_usage_limit=5)

    def checkout_with_coupon(self, quantity=2):
        CartService.add_item(self.buyer, self.product.id, quantity)
        CartService.apply_coupon(self.buyer, self.coupon.code)
        return CheckoutService.create_session(self.buyer)

    def create(self, session):
        return OrderService.create_order(
            user=self.buyer,
            checkout_session_id=session.id,
            shipping_address_id=self.address.id,
            payment_method="cod",
        )

    def test_order_carries_coupon(self):
        session = self.checkout_with_coupon()
        self.assertEqual(session.summary["couponCode"], "SAVE10")

        order = self.create(session)

        self.assertEqual(order.coupon_code, "SAVE10")
        self.assertEqual(order.coupon_discount, Decimal("200.00"))
        self.assertEqual(
            order.total_amount,
            order.items_subtotal - order.discount_amount - order.coupon_discount
            + order.tax_amount + order.shipping_charges + order.platform_fee,
        )

        usage = CouponUsage.objects.get()
        self.assertEqual(usage.order, order)
        self.assertEqual(usage.discount_applied, Decimal("200.00"))
        self.assertEqual(usage.order_value, Decimal("2000.00"))

        self.coupon.refresh_from_db()
        self.assertEqual(self.coupon.current_usage_count, 1)
        self.assertIsNone(Cart.objects.get(user=self.buyer).coupon)

    def test_usage_limit_reached_before_order(self):
        session = self.checkout_with_coupon()
        Coupon.objects.filter(id=self.coupon.id).update(current_usage_count=5)

        with self.assertRaises(CouponError) as ctx:
            self.create(session)
        self.assertEqual(ctx.exception.code, CouponError.USAGE_LIMIT_REACHED)

        self.assertFalse(Order.objects.exists())
        session.refresh_from_db()
        self.assertFalse(session.is_used)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)

    def test_failed_order_releases_coupon(self):
        session = self.checkout_with_coupon()

        with patch.object(CartService, "clear_cart", side_effect=RuntimeError("cart store down")):
            with self.assertRaises(OrderCreationFailed):
                self.create(session)

        self.assertEqual(Order.objects.get().status, OrderStatus.FAILED)
        self.assertFalse(CouponUsage.objects.exists())
        self.coupon.refresh_from_db()
        self.assertEqual(self.coupon.current_usage_count, 0)
