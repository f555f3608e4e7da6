"""Checkout error taxonomy.

Validation problems subclass Protean's ValidationError and missing records
subclass ObjectNotFoundError, so callers that already handle Protean's
exceptions keep working. Payment verification failures are kept apart:
they decide whether money changed hands and are never absorbed.
"""

from enum import Enum

from protean.exceptions import ObjectNotFoundError, ValidationError


class EmptyCart(ValidationError):
    def __init__(self) -> None:
        super().__init__({"items": ["Cart is empty"]})


class InsufficientStock(ValidationError):
    def __init__(self, product_id: str, requested: int, available: int) -> None:
        self.product_id = product_id
        super().__init__(
            {"items": [f"Only {available} unit(s) of product {product_id} in stock, {requested} requested"]}
        )


class ProductNotFound(ObjectNotFoundError):
    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class OrderNotFound(ObjectNotFoundError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class CouponRejection(Enum):
    NOT_FOUND = "Coupon not found"
    INACTIVE = "Coupon is not active"
    NOT_YET_VALID = "Coupon is not yet valid"
    EXPIRED = "Coupon has expired"
    USAGE_LIMIT_REACHED = "Coupon usage limit reached"
    BELOW_MINIMUM_PURCHASE = "Cart total is below the coupon's minimum purchase"


class CouponRejected(ValidationError):
    """A coupon cannot be used for the proposed cart."""

    def __init__(self, reason: CouponRejection, detail: str | None = None) -> None:
        self.reason = reason
        super().__init__({"coupon": [detail or reason.value]})


class PaymentVerificationFailed(Exception):
    """The payment could not be proven authentic for this order."""

    def __init__(self, order_id: str, reason: str) -> None:
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Payment verification failed for order {order_id}: {reason}")


class CheckoutUnavailable(Exception):
    """The payment gateway could not open a payment for the order."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Checkout unavailable: {reason}")


class CarrierRequestFailed(Exception):
    """An operator-triggered carrier call did not succeed."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Carrier {operation} failed: {reason}")
