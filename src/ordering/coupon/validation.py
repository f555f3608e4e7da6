"""Coupon validation: decides whether a coupon applies to a cart total.

Checks run in a fixed order so the reported reason is stable: existence,
active flag, window start, window end, usage cap, minimum purchase.
"""

from datetime import UTC, datetime

from ordering.coupon.coupon import Coupon, as_utc
from ordering.errors import CouponRejected, CouponRejection


def rejection_for(coupon: Coupon | None, now: datetime, cart_total: float) -> CouponRejection | None:
    """Return why ``coupon`` cannot be used, or None when it can."""
    if coupon is None:
        return CouponRejection.NOT_FOUND
    if not coupon.is_active:
        return CouponRejection.INACTIVE

    now = as_utc(now)
    if now < as_utc(coupon.valid_from):
        return CouponRejection.NOT_YET_VALID
    if now > as_utc(coupon.valid_until):
        return CouponRejection.EXPIRED
    if coupon.usage_exhausted:
        return CouponRejection.USAGE_LIMIT_REACHED
    if cart_total <= 0 or cart_total < (coupon.minimum_purchase or 0):
        return CouponRejection.BELOW_MINIMUM_PURCHASE
    return None


def validate(coupon: Coupon | None, now: datetime | None, cart_total: float) -> int:
    """Return the discount ``coupon`` grants on ``cart_total``.

    Raises CouponRejected carrying the first failed check.
    """
    rejection = rejection_for(coupon, now or datetime.now(UTC), cart_total)
    if rejection is CouponRejection.BELOW_MINIMUM_PURCHASE and coupon.minimum_purchase:
        raise CouponRejected(rejection, f"Minimum purchase of {coupon.minimum_purchase:g} required")
    if rejection is not None:
        raise CouponRejected(rejection)
    return coupon.discount(cart_total)
