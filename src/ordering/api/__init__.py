from ordering.api.errors import register_checkout_exception_handlers
from ordering.api.routes import admin_router, coupon_router, order_router, shipping_router

__all__ = [
    "admin_router",
    "coupon_router",
    "order_router",
    "register_checkout_exception_handlers",
    "shipping_router",
]
