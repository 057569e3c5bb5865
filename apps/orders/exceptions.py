"""
Order workflow error taxonomy.

Each error carries a stable `code` for client-side message mapping and an
HTTP status. Unless stated otherwise the create-order API answers with 500;
address, cart-drift and coupon problems are 400 and an unknown product
is 404.
"""
from rest_framework import status

from apps.utils.exceptions import BusinessLogicException


class OrderError(BusinessLogicException):
    code = "ORDER_CREATION_FAILED"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to create order. Please try again."


class OrderCreationFailed(OrderError):
    pass


class InvalidCheckoutSession(OrderError):
    code = "INVALID_CHECKOUT_SESSION"
    default_message = "Invalid checkout session. Please checkout again."


class SessionExpired(OrderError):
    code = "CHECKOUT_SESSION_EXPIRED"
    default_message = "Checkout session has expired. Please checkout again."


class SessionAlreadyUsed(OrderError):
    code = "CHECKOUT_SESSION_ALREADY_USED"
    default_message = "This checkout session has already been used to place an order."


class CartIsEmpty(OrderError):
    code = "CART_IS_EMPTY"
    default_message = "Your cart is empty."


class CartModified(OrderError):
    """
    The live cart drifted from the checkout snapshot.
    """
    ITEMS_CHANGED = "items_changed"
    QUANTITIES_CHANGED = "quantities_changed"
    GENERIC = "generic"

    code = "CART_MODIFIED_AFTER_CHECKOUT"
    status_code = status.HTTP_400_BAD_REQUEST

    MESSAGES = {
        ITEMS_CHANGED: "Items in your cart changed after checkout. Please review your cart and checkout again.",
        QUANTITIES_CHANGED: "Quantities in your cart changed after checkout. Please review your cart and checkout again.",
        GENERIC: "Your cart was modified after checkout. Please checkout again.",
    }
    DETAILS = {
        ITEMS_CHANGED: "CART_MODIFIED_AFTER_CHECKOUT: Items changed",
        QUANTITIES_CHANGED: "CART_MODIFIED_AFTER_CHECKOUT: Quantities changed",
        GENERIC: "CART_MODIFIED_AFTER_CHECKOUT",
    }

    def __init__(self, variant=GENERIC, **kwargs):
        self.variant = variant
        kwargs.setdefault("message", self.MESSAGES[variant])
        kwargs.setdefault("details", self.DETAILS[variant])
        super().__init__(**kwargs)


class ProductNotFound(OrderError):
    code = "PRODUCT_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, title="", **kwargs):
        kwargs.setdefault("message", f"{title or 'Product'} is no longer available.")
        kwargs.setdefault("details", f"PRODUCT_NOT_FOUND: {title}")
        super().__init__(**kwargs)


class ProductNotAvailable(OrderError):
    code = "PRODUCT_NOT_AVAILABLE"

    def __init__(self, title="", **kwargs):
        kwargs.setdefault("message", f"{title} is currently not available for purchase.")
        kwargs.setdefault("details", f"PRODUCT_NOT_AVAILABLE: {title}")
        super().__init__(**kwargs)


class InsufficientStock(OrderError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, title="", available=0, requested=0, **kwargs):
        self.available = available
        self.requested = requested
        kwargs.setdefault(
            "message",
            f"Insufficient stock for {title} (Available: {available}, Requested: {requested})",
        )
        kwargs.setdefault(
            "details",
            f"INSUFFICIENT_STOCK: {title} (Available: {available}, Requested: {requested})",
        )
        super().__init__(**kwargs)


class ProductExpired(OrderError):
    code = "PRODUCT_EXPIRED"

    def __init__(self, title="", **kwargs):
        kwargs.setdefault("message", f"The listing for {title} has expired.")
        kwargs.setdefault("details", f"PRODUCT_EXPIRED: {title}")
        super().__init__(**kwargs)


class InvalidShippingAddress(OrderError):
    code = "INVALID_SHIPPING_ADDRESS"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid shipping address."


class InvalidBillingAddress(OrderError):
    code = "INVALID_BILLING_ADDRESS"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid billing address."


class CouponError(OrderError):
    """
    A coupon that cannot be applied. `code` names the reason.
    """
    INVALID = "INVALID_COUPON"
    NOT_STARTED = "COUPON_NOT_STARTED"
    EXPIRED = "COUPON_EXPIRED"
    MIN_ORDER_NOT_MET = "MIN_ORDER_NOT_MET"
    USAGE_LIMIT_REACHED = "COUPON_USAGE_LIMIT_REACHED"
    USER_USAGE_LIMIT_REACHED = "USER_USAGE_LIMIT_REACHED"

    code = INVALID
    status_code = status.HTTP_400_BAD_REQUEST

    MESSAGES = {
        INVALID: "Invalid or expired coupon code",
        NOT_STARTED: "This coupon is not yet active",
        EXPIRED: "This coupon has expired",
        USAGE_LIMIT_REACHED: "This coupon has reached its usage limit",
        USER_USAGE_LIMIT_REACHED: "You have already used this coupon maximum times",
    }

    def __init__(self, code=INVALID, **kwargs):
        kwargs.setdefault("message", self.MESSAGES.get(code, "Coupon cannot be applied."))
        kwargs.setdefault("details", code)
        super().__init__(code=code, **kwargs)


# Order lifecycle (outside the create-order mapping)

class OrderNotFound(BusinessLogicException):
    code = "ORDER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Order not found."


class OrderNotCancellable(BusinessLogicException):
    code = "ORDER_CANNOT_BE_CANCELLED"
    default_message = "Order cannot be cancelled at this stage."


class InvalidStatusTransition(BusinessLogicException):
    code = "INVALID_STATUS_TRANSITION"
    default_message = "Order cannot move to the requested status."


class InvalidQuantity(BusinessLogicException):
    code = "INVALID_QUANTITY"
    default_message = "Quantity is not allowed for this product."
