"""Coupon domain events."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Coupon")
class CouponCreated:
    """A coupon was defined by an administrator."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)
    created_at = DateTime(required=True)


@ordering.event(part_of="Coupon")
class CouponRedeemed:
    """A coupon was counted against a confirmed order."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    order_id = Identifier(required=True)
    used_count = Integer(required=True)
    redeemed_at = DateTime(required=True)


@ordering.event(part_of="Coupon")
class CouponActivationToggled:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    is_active = Boolean()
