"""Coupon aggregate (CQRS): discount codes with a validity window and usage cap.

Validity is a pure predicate over the coupon and a point in time:
active AND valid_from <= now <= valid_until AND (no limit OR used < limit).
Usage is recorded per order id so a retried confirmation never counts twice.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from ordering.coupon.events import CouponActivationToggled, CouponCreated, CouponRedeemed
from ordering.domain import ordering
from ordering.order.pricing import round_half_up


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so window checks never mix kinds."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@ordering.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = String(required=True, max_length=500)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0)
    minimum_purchase = Float(default=0.0, min_value=0)
    maximum_discount = Float(min_value=0)
    usage_limit = Integer(min_value=1)
    used_count = Integer(default=0, min_value=0)
    valid_from = DateTime(required=True)
    valid_until = DateTime(required=True)
    is_active = Boolean(default=True)
    applicable_categories = Text()  # JSON list of category names
    redeemed_order_ids = Text()  # JSON list of order ids already counted
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.valid_from and self.valid_until and as_utc(self.valid_until) < as_utc(self.valid_from):
            raise ValidationError({"valid_until": ["Coupon must not expire before it becomes valid"]})

    @invariant.post
    def percentage_must_not_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.discount_value or 0) > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    @classmethod
    def create(
        cls,
        code: str,
        description: str,
        discount_type: str,
        discount_value: float,
        valid_from: datetime,
        valid_until: datetime,
        minimum_purchase: float = 0.0,
        maximum_discount: float | None = None,
        usage_limit: int | None = None,
        applicable_categories: list[str] | None = None,
    ):
        now = datetime.now(UTC)
        coupon = cls(
            code=normalize_code(code),
            description=description,
            discount_type=discount_type,
            discount_value=discount_value,
            minimum_purchase=minimum_purchase,
            maximum_discount=maximum_discount,
            usage_limit=usage_limit,
            used_count=0,
            valid_from=as_utc(valid_from),
            valid_until=as_utc(valid_until),
            is_active=True,
            applicable_categories=json.dumps(applicable_categories or []),
            redeemed_order_ids=json.dumps([]),
            created_at=now,
            updated_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=discount_type,
                discount_value=discount_value,
                created_at=now,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def categories(self) -> list[str]:
        return json.loads(self.applicable_categories) if self.applicable_categories else []

    @property
    def redeemed_orders(self) -> list[str]:
        return json.loads(self.redeemed_order_ids) if self.redeemed_order_ids else []

    @property
    def usage_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def is_valid(self, now: datetime | None = None) -> bool:
        now = as_utc(now) or datetime.now(UTC)
        return (
            bool(self.is_active)
            and as_utc(self.valid_from) <= now <= as_utc(self.valid_until)
            and not self.usage_exhausted
        )

    def discount(self, cart_total: float) -> int:
        """Discount this coupon grants on ``cart_total``, in whole rupees."""
        if self.discount_type == DiscountType.PERCENTAGE.value:
            amount = Decimal(str(cart_total)) * Decimal(str(self.discount_value)) / 100
            if self.maximum_discount is not None:
                amount = min(amount, Decimal(str(self.maximum_discount)))
        else:
            amount = Decimal(str(self.discount_value))
        return round_half_up(min(amount, Decimal(str(cart_total))))

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def mark_used(self, order_id: str) -> bool:
        """Count this coupon against ``order_id``.

        Returns False without changing anything when the order was already
        counted.
        """
        order_id = str(order_id)
        redeemed = self.redeemed_orders
        if order_id in redeemed:
            return False
        if self.usage_exhausted:
            raise ValidationError({"coupon": ["Coupon usage limit reached"]})

        now = datetime.now(UTC)
        redeemed.append(order_id)
        self.redeemed_order_ids = json.dumps(redeemed)
        self.used_count = (self.used_count or 0) + 1
        self.updated_at = now
        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                order_id=order_id,
                used_count=self.used_count,
                redeemed_at=now,
            )
        )
        return True

    def toggle_active(self) -> None:
        self.is_active = not self.is_active
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CouponActivationToggled(
                coupon_id=str(self.id),
                code=self.code,
                is_active=self.is_active,
            )
        )
