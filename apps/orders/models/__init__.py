"""
Top-level models import shim for the Orders app.

Lets `from apps.orders.models import Order` keep working while the
models live in separate modules.
"""

from .order import *          # Order, OrderStatus, PaymentStatus, PaymentMethod
from .item import *           # OrderItem, OrderItemStatus
from .tracking import *       # OrderTrackingEvent
from .cart import *           # Cart, CartItem
from .checkout import *       # CheckoutSession
from .coupon import *         # Coupon, CouponUsage, DiscountType
