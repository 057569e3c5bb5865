import hashlib
import json
import logging
import random
import time
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import Length
from django.utils import timezone
from rest_framework import status

from apps.catalog.models import Product, ProductStatus
from apps.customers.models import Address
from apps.notifications.services import NotificationService
from apps.utils.exceptions import BusinessLogicException

from .exceptions import (
    CartIsEmpty,
    CartModified,
    CouponError,
    InsufficientStock,
    InvalidBillingAddress,
    InvalidCheckoutSession,
    InvalidQuantity,
    InvalidShippingAddress,
    InvalidStatusTransition,
    OrderCreationFailed,
    OrderError,
    OrderNotCancellable,
    OrderNotFound,
    ProductExpired,
    ProductNotAvailable,
    ProductNotFound,
    SessionAlreadyUsed,
    SessionExpired,
)
from .models import (
    Cart,
    CartItem,
    CheckoutSession,
    Coupon,
    CouponUsage,
    DiscountType,
    Order,
    OrderItem,
    OrderItemStatus,
    OrderStatus,
    OrderTrackingEvent,
    PaymentMethod,
    PaymentStatus,
)

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def cart_content_hash(pairs) -> str:
    """
    SHA-256 over the sorted (product_id, quantity) pairs of a cart.
    """
    normalized = sorted((str(product_id), int(quantity)) for product_id, quantity in pairs)
    payload = json.dumps(normalized, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CouponService:

    @staticmethod
    def get_coupon(code):
        code = (code or "").strip().upper()
        coupon = Coupon.objects.filter(code=code, is_active=True).first() if code else None
        if coupon is None:
            raise CouponError(CouponError.INVALID)
        return coupon

    @staticmethod
    def calculate_discount(coupon, user, order_value) -> Decimal:
        """
        Validates `coupon` for `user` against `order_value` (the subtotal after
        listing discounts) and returns the discount. The discount never
        exceeds the order value.
        """
        now = timezone.now()
        order_value = money(order_value)

        if not coupon.is_active:
            raise CouponError(CouponError.INVALID)
        if now < coupon.valid_from:
            raise CouponError(CouponError.NOT_STARTED)
        if now > coupon.valid_until:
            raise CouponError(CouponError.EXPIRED)
        if order_value < coupon.min_order_value:
            raise CouponError(
                CouponError.MIN_ORDER_NOT_MET,
                message=f"Minimum order value of ₹{coupon.min_order_value:,} required",
            )
        if coupon.total_usage_limit is not None and coupon.current_usage_count >= coupon.total_usage_limit:
            raise CouponError(CouponError.USAGE_LIMIT_REACHED)
        if user is not None and coupon.usages.filter(user=user).count() >= coupon.max_usage_per_user:
            raise CouponError(CouponError.USER_USAGE_LIMIT_REACHED)

        if coupon.discount_type == DiscountType.PERCENTAGE:
            discount = order_value * coupon.discount_value / Decimal("100")
            if coupon.max_discount is not None:
                discount = min(discount, coupon.max_discount)
        else:
            discount = coupon.discount_value
        return money(min(discount, order_value))

    @staticmethod
    def redeem(code, user, order, discount, order_value):
        """
        Counts one use of `code` for `order`. The usage limit check and the
        increment are one conditional UPDATE.
        """
        coupon = Coupon.objects.filter(code=code).first()
        if coupon is None:
            raise CouponError(CouponError.INVALID)
        if coupon.usages.filter(user=user).count() >= coupon.max_usage_per_user:
            raise CouponError(CouponError.USER_USAGE_LIMIT_REACHED)

        updated = (
            Coupon.objects.filter(id=coupon.id, is_active=True)
            .filter(Q(total_usage_limit__isnull=True) | Q(current_usage_count__lt=F("total_usage_limit")))
            .update(current_usage_count=F("current_usage_count") + 1, updated_at=timezone.now())
        )
        if not updated:
            raise CouponError(CouponError.USAGE_LIMIT_REACHED)

        return CouponUsage.objects.create(
            coupon=coupon,
            user=user,
            order=order,
            discount_applied=discount,
            order_value=order_value,
        )

    @staticmethod
    def release(order):
        usage = CouponUsage.objects.filter(order=order).first()
        if usage is None:
            return
        Coupon.objects.filter(id=usage.coupon_id, current_usage_count__gt=0).update(
            current_usage_count=F("current_usage_count") - 1,
        )
        usage.delete()


class PricingService:
    """
    Cart pricing summary.

    itemSubtotal is the gross (list price) value and discountAmount the
    listing discounts. An applied coupon is taken off the discounted
    subtotal; GST is added on what remains at the weighted GST rate of the
    items, shipping is a flat charge waived above the free shipping
    threshold and the platform fee a percentage of that same amount. Money
    values are serialized as 2-decimal strings so the summary can live in a
    JSON snapshot.
    """

    @staticmethod
    def empty_summary():
        return {
            "itemSubtotal": "0.00",
            "discountAmount": "0.00",
            "couponDiscount": "0.00",
            "couponCode": None,
            "subtotalAfterDiscounts": "0.00",
            "gstAmount": "0.00",
            "shippingCharges": "0.00",
            "platformFee": "0.00",
            "finalPayableAmount": "0.00",
            "totalSavings": "0.00",
            "itemCount": 0,
        }

    @staticmethod
    def calculate_shipping(subtotal: Decimal) -> Decimal:
        if subtotal <= 0:
            return ZERO
        threshold = settings.FREE_SHIPPING_THRESHOLD
        if threshold and subtotal >= threshold:
            return ZERO
        return money(settings.DEFAULT_SHIPPING_CHARGE)

    @staticmethod
    def calculate_platform_fee(subtotal: Decimal) -> Decimal:
        return money(subtotal * settings.PLATFORM_FEE_PERCENT / Decimal("100"))

    @staticmethod
    def calculate_cart_summary(items, coupon=None, user=None):
        """
        `items` are snapshot item dicts (price, originalPrice, quantity, gstPercent).
        A coupon that no longer validates is left out of the summary.
        """
        if not items:
            return PricingService.empty_summary()

        default_gst = Decimal(str(settings.ORDER_GST_PERCENT))
        gross = ZERO
        net = ZERO
        weighted_gst = ZERO

        for item in items:
            quantity = int(item["quantity"])
            price = Decimal(str(item["price"]))
            original = Decimal(str(item.get("originalPrice") or item["price"]))
            gst_percent = Decimal(str(item.get("gstPercent") or default_gst))

            line_net = price * quantity
            gross += max(original, price) * quantity
            net += line_net
            weighted_gst += line_net * gst_percent

        avg_gst = weighted_gst / net if net > 0 else default_gst

        item_subtotal = money(gross)
        discount = money(gross - net)
        discounted = item_subtotal - discount

        coupon_discount = ZERO
        coupon_code = None
        if coupon is not None and discounted > 0:
            try:
                coupon_discount = CouponService.calculate_discount(coupon, user, discounted)
                coupon_code = coupon.code
            except CouponError as exc:
                logger.info(f"Coupon {coupon.code} not applied: {exc.code}")

        taxable = discounted - coupon_discount
        gst = money(taxable * avg_gst / Decimal("100"))
        shipping = PricingService.calculate_shipping(taxable)
        fee = PricingService.calculate_platform_fee(taxable)
        total = money(taxable + gst + shipping + fee)

        return {
            "itemSubtotal": str(item_subtotal),
            "discountAmount": str(discount),
            "couponDiscount": str(coupon_discount),
            "couponCode": coupon_code,
            "subtotalAfterDiscounts": str(taxable),
            "gstAmount": str(gst),
            "shippingCharges": str(shipping),
            "platformFee": str(fee),
            "finalPayableAmount": str(total),
            "totalSavings": str(discount + coupon_discount),
            "itemCount": len(items),
        }


class CartService:

    @staticmethod
    def get_cart(user):
        cart, _ = Cart.objects.get_or_create(user=user)
        return cart

    @staticmethod
    def get_items(user):
        # Prefetch product to avoid N+1 during validation
        return list(
            CartItem.objects.filter(cart__user=user)
            .select_related("product", "product__supplier", "product__category")
            .order_by("added_at")
        )

    @staticmethod
    def _check_purchasable(product, quantity):
        if not product.is_active:
            raise ProductNotAvailable(product.title, status_code=status.HTTP_400_BAD_REQUEST)
        if product.is_expired:
            raise ProductExpired(product.title, status_code=status.HTTP_400_BAD_REQUEST)
        if quantity < product.min_order_quantity:
            raise InvalidQuantity(
                f"Minimum order quantity for {product.title} is {product.min_order_quantity}."
            )
        if quantity > product.quantity:
            raise InsufficientStock(
                product.title,
                available=product.quantity,
                requested=quantity,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

    @staticmethod
    def _get_item(user, product_id):
        try:
            item = (
                CartItem.objects.select_for_update()
                .select_related("product")
                .filter(cart__user=user, product_id=product_id)
                .first()
            )
        except (ValueError, DjangoValidationError):
            item = None
        if item is None:
            raise BusinessLogicException(
                "Item not found in cart.",
                code="CART_ITEM_NOT_FOUND",
                status_code=status.HTTP_404_NOT_FOUND,
            )
        return item

    @staticmethod
    @transaction.atomic
    def add_item(user, product_id, quantity: int):
        """
        Adds a product or merges into the existing line. Stock is checked
        against the merged quantity.
        """
        product = Product.objects.filter(id=product_id).first()
        if product is None:
            raise ProductNotFound()

        cart = CartService.get_cart(user)
        item = CartItem.objects.select_for_update().filter(cart=cart, product=product).first()
        new_quantity = quantity + (item.quantity if item else 0)
        CartService._check_purchasable(product, new_quantity)

        if item:
            item.quantity = new_quantity
            item.unit_price = product.price
            item.save(update_fields=["quantity", "unit_price", "updated_at"])
        else:
            item = CartItem.objects.create(
                cart=cart,
                product=product,
                quantity=new_quantity,
                unit_price=product.price,
            )
        return item

    @staticmethod
    @transaction.atomic
    def update_item(user, product_id, quantity: int):
        if quantity == 0:
            CartService.remove_item(user, product_id)
            return None

        item = CartService._get_item(user, product_id)
        CartService._check_purchasable(item.product, quantity)

        item.quantity = quantity
        item.unit_price = item.product.price
        item.save(update_fields=["quantity", "unit_price", "updated_at"])
        return item

    @staticmethod
    @transaction.atomic
    def remove_item(user, product_id):
        item = CartService._get_item(user, product_id)
        item.delete()

    @staticmethod
    def clear_cart(user) -> int:
        deleted, _ = CartItem.objects.filter(cart__user=user).delete()
        Cart.objects.filter(user=user, coupon__isnull=False).update(coupon=None)
        return deleted

    @staticmethod
    def snapshot_item(cart_item):
        product = cart_item.product
        supplier = product.supplier
        return {
            "productId": str(product.id),
            "title": product.title,
            "sku": product.sku,
            "image": product.image_url or "",
            "category": product.category.name if product.category_id else "",
            "quantity": cart_item.quantity,
            "price": str(product.price),
            "originalPrice": str(product.original_price),
            "discountPercent": str(product.discount_percent),
            "gstPercent": str(product.gst_percent),
            "supplierId": str(product.supplier_id),
            "supplierName": supplier.company_name or supplier.full_name,
            "supplierCity": product.supplier_city,
        }

    @staticmethod
    def get_cart_summary(user):
        cart = CartService.get_cart(user)
        items = [CartService.snapshot_item(i) for i in CartService.get_items(user)]
        return {
            "items": items,
            "summary": PricingService.calculate_cart_summary(items, coupon=cart.coupon, user=user),
            "itemCount": len(items),
        }

    @staticmethod
    def apply_coupon(user, code):
        """
        Validates the coupon against the current cart and attaches it.
        Returns the discount it gives right now.
        """
        cart_items = CartService.get_items(user)
        if not cart_items:
            raise CartIsEmpty(status_code=status.HTTP_400_BAD_REQUEST)

        coupon = CouponService.get_coupon(code)
        base = PricingService.calculate_cart_summary([CartService.snapshot_item(i) for i in cart_items])
        discount = CouponService.calculate_discount(coupon, user, base["subtotalAfterDiscounts"])

        Cart.objects.filter(user=user).update(coupon=coupon, updated_at=timezone.now())
        logger.info(f"Coupon {coupon.code} applied", extra={"user_id": user.id})
        return coupon, discount

    @staticmethod
    def remove_coupon(user):
        Cart.objects.filter(user=user).update(coupon=None, updated_at=timezone.now())


class CheckoutService:

    @staticmethod
    def create_session(user):
        """
        Snapshots the live cart into a single-use, expiring checkout session.
        """
        cart_items = CartService.get_items(user)
        if not cart_items:
            raise CartIsEmpty(status_code=status.HTTP_400_BAD_REQUEST)

        try:
            OrderService.validate_products_availability(cart_items)
        except OrderError as exc:
            # Stock problems at checkout time are reported as 400
            exc.status_code = status.HTTP_400_BAD_REQUEST
            raise

        cart = CartService.get_cart(user)
        items = [CartService.snapshot_item(i) for i in cart_items]
        snapshot = {
            "items": items,
            "summary": PricingService.calculate_cart_summary(items, coupon=cart.coupon, user=user),
            "itemCount": len(items),
        }

        session = CheckoutSession.objects.create(
            user=user,
            cart_snapshot=snapshot,
            snapshot_hash=cart_content_hash((i.product_id, i.quantity) for i in cart_items),
            expires_at=timezone.now() + timedelta(minutes=settings.CHECKOUT_SESSION_TTL_MINUTES),
        )

        logger.info(
            f"Checkout session created with {len(items)} items",
            extra={"user_id": user.id, "checkout_session_id": session.id},
        )
        return session


class PaymentService:
    """
    Gateway integration is not wired up. The methods answer the way the
    gateway adapter is expected to.
    """

    @staticmethod
    def process_payment(amount, payment_method, payment_details=None):
        if payment_method == PaymentMethod.COD:
            return {
                "success": True,
                "transaction_id": None,
                "message": "Cash on Delivery selected",
            }

        details = payment_details or {}
        return {
            "success": True,
            "transaction_id": details.get("transactionId") or f"TXN-{int(time.time() * 1000)}",
            "message": "Payment processed successfully",
        }

    @staticmethod
    def refund_payment(order):
        if order.payment_method == PaymentMethod.COD:
            return {
                "success": True,
                "refund_id": None,
                "message": "No refund needed for COD",
            }

        return {
            "success": True,
            "refund_id": f"REFUND-{int(time.time() * 1000)}",
            "amount": order.total_amount,
            "message": "Refund initiated successfully",
        }


class OrderService:

    ALLOWED_TRANSITIONS = {
        OrderStatus.PENDING: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.FAILED),
        OrderStatus.CONFIRMED: (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
        OrderStatus.PROCESSING: (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        OrderStatus.SHIPPED: (OrderStatus.DELIVERED,),
        OrderStatus.DELIVERED: (OrderStatus.REFUNDED,),
    }

    TRACKING_TITLES = {
        OrderStatus.PENDING: "Order Placed",
        OrderStatus.CONFIRMED: "Order Confirmed",
        OrderStatus.PROCESSING: "Order Processing",
        OrderStatus.SHIPPED: "Order Shipped",
        OrderStatus.DELIVERED: "Order Delivered",
        OrderStatus.CANCELLED: "Order Cancelled",
        OrderStatus.FAILED: "Order Failed",
        OrderStatus.REFUNDED: "Order Refunded",
    }

    MILESTONE_STATUSES = (
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    )

    # ---- Validation gates ----

    @staticmethod
    def validate_checkout_session(session_id, user):
        try:
            session = CheckoutSession.objects.filter(id=session_id, user=user).first()
        except (ValueError, DjangoValidationError):
            session = None

        if session is None:
            raise InvalidCheckoutSession()
        if session.is_expired:
            raise SessionExpired()
        if session.is_used:
            raise SessionAlreadyUsed()
        return session

    @staticmethod
    def validate_cart_against_snapshot(session, user):
        """
        Returns the live cart items when they still match the snapshot.
        """
        cart_items = CartService.get_items(user)
        if not cart_items:
            raise CartIsEmpty()

        live_hash = cart_content_hash((i.product_id, i.quantity) for i in cart_items)
        if live_hash == session.snapshot_hash:
            return cart_items

        snapshot = {str(i["productId"]): int(i["quantity"]) for i in session.items}
        live = {str(i.product_id): i.quantity for i in cart_items}

        if session.cart_snapshot.get("itemCount", len(snapshot)) != len(live):
            raise CartModified(CartModified.GENERIC)
        if set(live) != set(snapshot):
            raise CartModified(CartModified.ITEMS_CHANGED)
        for product_id, quantity in live.items():
            if snapshot[product_id] != quantity:
                raise CartModified(CartModified.QUANTITIES_CHANGED)
        raise CartModified(CartModified.GENERIC)

    @staticmethod
    def validate_products_availability(cart_items):
        """
        Re-fetches every product and stops at the first violation.
        """
        products = Product.objects.in_bulk([i.product_id for i in cart_items])

        for item in cart_items:
            product = products.get(item.product_id)
            if product is None:
                raise ProductNotFound(str(item.product_id))
            if product.status != ProductStatus.ACTIVE:
                raise ProductNotAvailable(product.title)
            if product.quantity < item.quantity:
                raise InsufficientStock(product.title, available=product.quantity, requested=item.quantity)
            if product.is_expired:
                raise ProductExpired(product.title)
        return products

    @staticmethod
    def _get_owned_address(user, address_id):
        try:
            return Address.objects.filter(id=address_id, user=user).first()
        except (ValueError, DjangoValidationError):
            return None

    @staticmethod
    def validate_addresses(user, shipping_address_id, billing_address_id=None):
        """
        Billing falls back to the shipping record when omitted or identical.
        """
        shipping = OrderService._get_owned_address(user, shipping_address_id)
        if shipping is None:
            raise InvalidShippingAddress()

        billing = shipping
        if billing_address_id and str(billing_address_id) != str(shipping_address_id):
            billing = OrderService._get_owned_address(user, billing_address_id)
            if billing is None:
                raise InvalidBillingAddress()
        return shipping, billing

    # ---- Identifiers & derived values ----

    @staticmethod
    def generate_order_number(year=None):
        year = year or timezone.localdate().year
        prefix = f"ORD-{year}-"

        # Longer suffix first; the padding only holds lexical order up to 999999
        last = (
            Order.objects.filter(order_number__startswith=prefix)
            .annotate(number_length=Length("order_number"))
            .order_by("-number_length", "-order_number")
            .values_list("order_number", flat=True)
            .first()
        )
        next_number = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{next_number:06d}"

    @staticmethod
    def generate_tracking_number(now=None):
        now = now or timezone.localtime()
        return f"ZEERO-{now:%Y%m%d%H%M%S}-{random.randint(0, 99999):05d}"

    @staticmethod
    def calculate_delivery_eta(shipping_address, now=None):
        now = now or timezone.now()
        extra_days = 0
        if shipping_address.state != settings.ORDER_FAST_DELIVERY_STATE:
            extra_days = settings.ORDER_EXTRA_DELIVERY_DAYS
        return now + timedelta(days=settings.ORDER_BASE_DELIVERY_DAYS + extra_days)

    @staticmethod
    def calculate_item_tax(final_price, quantity, rate=None) -> Decimal:
        """
        GST contained in a tax-inclusive line: price * qty * rate / (100 + rate).
        """
        rate = Decimal(str(settings.ORDER_GST_PERCENT if rate is None else rate))
        gross = Decimal(str(final_price)) * quantity
        return money(gross * rate / (Decimal("100") + rate))

    # ---- Assembly helpers ----

    @staticmethod
    def _insert_order(**fields):
        """
        Inserts the order under a fresh order number, retrying when a
        concurrent request took the same number.
        """
        attempts = settings.ORDER_NUMBER_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            order_number = OrderService.generate_order_number()
            try:
                with transaction.atomic():
                    return Order.objects.create(order_number=order_number, **fields)
            except IntegrityError:
                logger.warning(f"Order number collision on {order_number} (attempt {attempt}/{attempts})")

        raise OrderCreationFailed(
            details=f"ORDER_CREATION_FAILED: no unique order number after {attempts} attempts"
        )

    @staticmethod
    def _build_order_items(order, snapshot_items, cart_items):
        rate = Decimal(str(settings.ORDER_GST_PERCENT))
        snapshot = {str(i["productId"]): i for i in snapshot_items}
        items = []

        for cart_item in cart_items:
            snap = snapshot[str(cart_item.product_id)]
            quantity = cart_item.quantity
            final_price = Decimal(str(snap["price"]))
            unit_price = Decimal(str(snap.get("originalPrice") or snap["price"]))

            items.append(OrderItem(
                order=order,
                product_id=cart_item.product_id,
                product_title=snap["title"],
                product_sku=snap.get("sku") or "",
                product_image=snap.get("image") or None,
                product_category=snap.get("category") or "",
                unit_price=unit_price,
                discount_percent=Decimal(str(snap.get("discountPercent") or "0")),
                discount_amount=money(max(unit_price - final_price, ZERO) * quantity),
                final_price=final_price,
                quantity=quantity,
                subtotal=money(final_price * quantity),
                gst_percent=rate,
                gst_amount=OrderService.calculate_item_tax(final_price, quantity, rate),
                item_status=OrderItemStatus.PENDING,
                supplier_id=snap.get("supplierId") or None,
                supplier_name=snap.get("supplierName") or "",
                supplier_city=snap.get("supplierCity") or "",
            ))
        return items

    @staticmethod
    def _reserve_stock(cart_items):
        """
        Conditional decrement per product; a zero-row update means another
        order took the stock after validation.
        """
        now = timezone.now()
        for item in cart_items:
            updated = Product.objects.filter(
                id=item.product_id,
                quantity__gte=item.quantity,
            ).update(quantity=F("quantity") - item.quantity, updated_at=now)

            if not updated:
                available = (
                    Product.objects.filter(id=item.product_id)
                    .values_list("quantity", flat=True)
                    .first()
                ) or 0
                raise InsufficientStock(item.product.title, available=available, requested=item.quantity)

    @staticmethod
    def _restore_stock(lines):
        now = timezone.now()
        for product_id, quantity in lines:
            if product_id is None:
                continue
            Product.objects.filter(id=product_id).update(quantity=F("quantity") + quantity, updated_at=now)

    @staticmethod
    def _compensate_failed_order(order, reason):
        """
        Marks an already committed order as failed, cancels its items so
        their stock goes back exactly once and frees any coupon use.
        Errors here are logged only.
        """
        try:
            with transaction.atomic():
                Order.objects.filter(id=order.id).update(
                    status=OrderStatus.FAILED,
                    admin_notes=f"Order creation failed: {reason}",
                    updated_at=timezone.now(),
                )
                OrderService._release_items(order)
                CouponService.release(order)
                OrderTrackingEvent.objects.create(
                    order=order,
                    status=OrderStatus.FAILED,
                    title=OrderService.TRACKING_TITLES[OrderStatus.FAILED],
                    description="Order could not be completed.",
                )
        except Exception:
            logger.exception(
                f"Compensation failed for order {order.order_number}",
                extra={"order_id": order.id, "order_number": order.order_number},
            )

    @staticmethod
    def _notify(send, user, order):
        """
        Notification problems never fail the calling operation.
        """
        try:
            with transaction.atomic():
                send(user, order)
        except Exception:
            logger.exception(
                f"Notification failed for order {order.order_number}",
                extra={"order_id": order.id, "order_number": order.order_number},
            )

    # ---- Create order ----

    @staticmethod
    def create_order(
        user,
        checkout_session_id,
        shipping_address_id,
        billing_address_id=None,
        payment_method=PaymentMethod.COD,
        payment_details=None,
        order_notes="",
    ):
        """
        Secure Order Creation:
        1. Validation gates (session, cart drift, stock, addresses); no side effects
        2. Atomic assembly: claim session, insert order + items + tracking, reserve stock
        3. After commit: clear cart (compensated on failure), notify buyer
        """
        session = OrderService.validate_checkout_session(checkout_session_id, user)
        cart_items = OrderService.validate_cart_against_snapshot(session, user)
        OrderService.validate_products_availability(cart_items)
        shipping, billing = OrderService.validate_addresses(user, shipping_address_id, billing_address_id)

        summary = session.summary
        payment = PaymentService.process_payment(
            summary.get("finalPayableAmount"),
            payment_method,
            payment_details,
        )

        try:
            with transaction.atomic():
                claimed = CheckoutSession.objects.filter(id=session.id, is_used=False).update(
                    is_used=True,
                    used_at=timezone.now(),
                )
                if not claimed:
                    raise SessionAlreadyUsed()

                order = OrderService._insert_order(
                    user=user,
                    checkout_session=session,
                    tracking_number=OrderService.generate_tracking_number(),
                    status=OrderStatus.PENDING,
                    payment_status=PaymentStatus.PENDING,
                    payment_method=payment_method,
                    payment_transaction_id=payment["transaction_id"] or "",
                    items_subtotal=money(summary.get("itemSubtotal", 0)),
                    discount_amount=money(summary.get("discountAmount", 0)),
                    coupon_discount=money(summary.get("couponDiscount", 0)),
                    coupon_code=summary.get("couponCode") or "",
                    tax_amount=money(summary.get("gstAmount", 0)),
                    shipping_charges=money(summary.get("shippingCharges", 0)),
                    platform_fee=money(summary.get("platformFee", 0)),
                    total_amount=money(summary.get("finalPayableAmount", 0)),
                    shipping_address=shipping.as_snapshot(),
                    billing_address=billing.as_snapshot(),
                    delivery_eta=OrderService.calculate_delivery_eta(shipping),
                    order_notes=order_notes or "",
                )

                OrderItem.objects.bulk_create(
                    OrderService._build_order_items(order, session.items, cart_items)
                )
                if order.coupon_code:
                    CouponService.redeem(
                        order.coupon_code,
                        user,
                        order,
                        discount=order.coupon_discount,
                        order_value=order.items_subtotal - order.discount_amount,
                    )
                OrderTrackingEvent.objects.create(
                    order=order,
                    status=OrderStatus.PENDING,
                    title=OrderService.TRACKING_TITLES[OrderStatus.PENDING],
                    description="Your order has been successfully placed and is being processed.",
                    is_milestone=True,
                )
                OrderService._reserve_stock(cart_items)
        except OrderError as exc:
            logger.warning(
                f"Order assembly rejected: {exc.details}",
                extra={"user_id": user.id, "checkout_session_id": session.id, "error_code": exc.code},
            )
            raise
        except Exception as exc:
            logger.exception(
                "Order assembly failed",
                extra={"user_id": user.id, "checkout_session_id": session.id},
            )
            raise OrderCreationFailed(details=f"ORDER_CREATION_FAILED: {exc}") from exc

        try:
            CartService.clear_cart(user)
        except Exception as exc:
            logger.exception(
                f"Cart clear failed after order {order.order_number}",
                extra={"order_id": order.id, "order_number": order.order_number},
            )
            OrderService._compensate_failed_order(order, reason=str(exc))
            raise OrderCreationFailed(details=f"Order creation failed: {exc}") from exc

        OrderService._notify(NotificationService.send_order_confirmation, user, order)

        logger.info(
            f"Order {order.order_number} placed ({len(cart_items)} items, total {order.total_amount})",
            extra={"user_id": user.id, "order_id": order.id, "order_number": order.order_number},
        )
        return order

    # ---- Buyer lifecycle ----

    @staticmethod
    def get_order_for_user(user, order_id):
        try:
            order = (
                Order.objects.filter(id=order_id, user=user)
                .prefetch_related("items", "tracking_events")
                .first()
            )
        except (ValueError, DjangoValidationError):
            order = None
        if order is None:
            raise OrderNotFound()
        return order

    @staticmethod
    def cancel_order(user, order_id, reason: str):
        """
        Buyer cancellation. Handles stock release and refund when paid.
        """
        with transaction.atomic():
            try:
                order = Order.objects.select_for_update().filter(id=order_id, user=user).first()
            except (ValueError, DjangoValidationError):
                order = None
            if order is None:
                raise OrderNotFound()

            if not order.can_cancel:
                raise OrderNotCancellable(
                    f"Order cannot be cancelled in '{order.status}' status. "
                    "Only pending or confirmed orders can be cancelled."
                )

            update_fields = ["status", "cancellation_reason", "cancelled_at", "cancelled_by", "updated_at"]
            if order.payment_status == PaymentStatus.PAID:
                PaymentService.refund_payment(order)
                order.payment_status = PaymentStatus.REFUNDED
                update_fields.append("payment_status")

            order.status = OrderStatus.CANCELLED
            order.cancellation_reason = reason
            order.cancelled_at = timezone.now()
            order.cancelled_by = user
            order.save(update_fields=update_fields)

            OrderService._release_items(order)
            OrderTrackingEvent.objects.create(
                order=order,
                status=OrderStatus.CANCELLED,
                title=OrderService.TRACKING_TITLES[OrderStatus.CANCELLED],
                description=f"Order cancelled by buyer. Reason: {reason}",
                is_milestone=True,
                created_by=user,
            )
            OrderService._notify(NotificationService.send_order_cancelled, order.user, order)

        logger.info(
            f"Order {order.order_number} cancelled by buyer",
            extra={"user_id": user.id, "order_id": order.id, "order_number": order.order_number},
        )
        return order

    @staticmethod
    def _release_items(order):
        lines = list(
            order.items.exclude(item_status=OrderItemStatus.CANCELLED)
            .values_list("product_id", "quantity")
        )
        order.items.exclude(item_status=OrderItemStatus.CANCELLED).update(
            item_status=OrderItemStatus.CANCELLED,
            updated_at=timezone.now(),
        )
        OrderService._restore_stock(lines)

    @staticmethod
    def get_buyer_stats(user):
        totals = Order.objects.filter(user=user).aggregate(
            total_orders=Count("id"),
            active_orders=Count("id", filter=Q(status__in=Order.ACTIVE_STATUSES)),
            delivered_orders=Count("id", filter=Q(status=OrderStatus.DELIVERED)),
            cancelled_orders=Count("id", filter=Q(status=OrderStatus.CANCELLED)),
            total_spent=Sum(
                "total_amount",
                filter=~Q(status__in=[OrderStatus.CANCELLED, OrderStatus.FAILED, OrderStatus.REFUNDED]),
            ),
        )
        return {
            "totalOrders": totals["total_orders"],
            "activeOrders": totals["active_orders"],
            "deliveredOrders": totals["delivered_orders"],
            "cancelledOrders": totals["cancelled_orders"],
            "totalSpent": str(money(totals["total_spent"] or ZERO)),
        }

    # ---- Admin lifecycle ----

    @staticmethod
    def update_status(order_id, new_status, note="", actor=None):
        """
        Admin status transition. Appends a tracking event and notifies the buyer.
        """
        with transaction.atomic():
            try:
                order = Order.objects.select_for_update().select_related("user").filter(id=order_id).first()
            except (ValueError, DjangoValidationError):
                order = None
            if order is None:
                raise OrderNotFound()

            if new_status not in OrderService.ALLOWED_TRANSITIONS.get(order.status, ()):
                raise InvalidStatusTransition(
                    f"Cannot change order status from '{order.status}' to '{new_status}'."
                )

            now = timezone.now()
            order.status = new_status
            update_fields = ["status", "updated_at"]

            if new_status == OrderStatus.SHIPPED:
                order.shipped_at = now
                update_fields.append("shipped_at")
            elif new_status == OrderStatus.DELIVERED:
                order.delivered_at = now
                update_fields.append("delivered_at")
            elif new_status == OrderStatus.CANCELLED:
                order.cancelled_at = now
                order.cancelled_by = actor
                order.cancellation_reason = note
                update_fields += ["cancelled_at", "cancelled_by", "cancellation_reason"]
                if order.payment_status == PaymentStatus.PAID:
                    PaymentService.refund_payment(order)
                    order.payment_status = PaymentStatus.REFUNDED
                    update_fields.append("payment_status")
            elif new_status == OrderStatus.REFUNDED:
                PaymentService.refund_payment(order)
                order.payment_status = PaymentStatus.REFUNDED
                update_fields.append("payment_status")

            order.save(update_fields=update_fields)

            if new_status in (OrderStatus.CANCELLED, OrderStatus.FAILED):
                OrderService._release_items(order)
            elif new_status in OrderItemStatus.values:
                order.items.exclude(item_status=OrderItemStatus.CANCELLED).update(
                    item_status=new_status,
                    updated_at=now,
                )

            OrderTrackingEvent.objects.create(
                order=order,
                status=new_status,
                title=OrderService.TRACKING_TITLES[new_status],
                description=note or f"Order status updated to {new_status}.",
                is_milestone=new_status in OrderService.MILESTONE_STATUSES,
                created_by=actor,
            )

            send = {
                OrderStatus.SHIPPED: NotificationService.send_order_shipped,
                OrderStatus.DELIVERED: NotificationService.send_order_delivered,
                OrderStatus.CANCELLED: NotificationService.send_order_cancelled,
            }.get(new_status, NotificationService.send_order_status_update)
            OrderService._notify(send, order.user, order)

        logger.info(
            f"Order {order.order_number} moved to {new_status}",
            extra={"order_id": order.id, "order_number": order.order_number},
        )
        return order

    @staticmethod
    def update_item_status(order_id, item_id, new_status, actor=None):
        with transaction.atomic():
            try:
                item = (
                    OrderItem.objects.select_for_update()
                    .select_related("order")
                    .filter(id=item_id, order_id=order_id)
                    .first()
                )
            except (ValueError, DjangoValidationError):
                item = None
            if item is None:
                raise BusinessLogicException(
                    "Order item not found.",
                    code="ORDER_ITEM_NOT_FOUND",
                    status_code=status.HTTP_404_NOT_FOUND,
                )

            if item.order.status in (OrderStatus.CANCELLED, OrderStatus.FAILED):
                raise InvalidStatusTransition(
                    f"Items of a {item.order.status} order cannot be updated."
                )
            if item.item_status == OrderItemStatus.CANCELLED:
                raise InvalidStatusTransition("Cancelled items cannot be updated.")

            if new_status == OrderItemStatus.CANCELLED:
                OrderService._restore_stock([(item.product_id, item.quantity)])

            item.item_status = new_status
            item.save(update_fields=["item_status", "updated_at"])

            OrderTrackingEvent.objects.create(
                order=item.order,
                status=item.order.status,
                title="Item Status Updated",
                description=f"{item.product_title}: {item.get_item_status_display()}",
                created_by=actor,
            )
        return item
