"""Order aggregate (CQRS): the record a checkout drives from cart to delivery.

The order is mutated in place as the address, prices, payment and shipment
arrive. Three statuses are tracked separately:

- ``stage``: where the checkout is (the orchestrator's state machine)
- ``status``: the fulfillment workflow shown to customers and operators
- ``payment_status``: whether money changed hands

Checkout stages:
    CREATED → ADDRESS_ATTACHED → PAYMENT_INITIATED → PAID → SHIPMENT_CREATED → DELIVERED
    PAYMENT_INITIATED → ADDRESS_ATTACHED   (address edited, payment re-opened)
    PAYMENT_INITIATED → PAYMENT_FAILED     (signature mismatch)
    any stage but DELIVERED, CANCELLED, PAYMENT_FAILED → CANCELLED

Money invariant: total_price == items_subtotal + shipping_price - coupon_discount.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from fulfillment.carrier.status import ShipmentStatus as ShippingStatus
from ordering.domain import ordering
from ordering.order import pricing
from ordering.order.events import (
    OrderCancelled,
    OrderCouponApplied,
    OrderCreated,
    OrderDelivered,
    OrderMarkedShipped,
    PaymentConfirmed,
    PaymentFailed,
    PaymentOrderIssued,
    ShipmentBooked,
    ShippingAddressAttached,
    ShippingStatusChanged,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CheckoutStage(Enum):
    CREATED = "Created"
    ADDRESS_ATTACHED = "AddressAttached"
    PAYMENT_INITIATED = "PaymentInitiated"
    PAID = "Paid"
    SHIPMENT_CREATED = "ShipmentCreated"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    PAYMENT_FAILED = "PaymentFailed"


class OrderStatus(Enum):
    PROCESSING = "Processing"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    GATEWAY = "razorpay"
    CASH_ON_DELIVERY = "cod"


_VALID_TRANSITIONS = {
    CheckoutStage.CREATED: {CheckoutStage.ADDRESS_ATTACHED, CheckoutStage.CANCELLED},
    CheckoutStage.ADDRESS_ATTACHED: {
        CheckoutStage.ADDRESS_ATTACHED,
        CheckoutStage.PAYMENT_INITIATED,
        CheckoutStage.CANCELLED,
    },
    CheckoutStage.PAYMENT_INITIATED: {
        CheckoutStage.ADDRESS_ATTACHED,
        CheckoutStage.PAYMENT_INITIATED,
        CheckoutStage.PAID,
        CheckoutStage.PAYMENT_FAILED,
        CheckoutStage.CANCELLED,
    },
    CheckoutStage.PAID: {
        CheckoutStage.SHIPMENT_CREATED,
        CheckoutStage.DELIVERED,
        CheckoutStage.CANCELLED,
    },
    CheckoutStage.SHIPMENT_CREATED: {CheckoutStage.DELIVERED, CheckoutStage.CANCELLED},
    CheckoutStage.DELIVERED: set(),  # terminal
    CheckoutStage.CANCELLED: set(),  # terminal
    CheckoutStage.PAYMENT_FAILED: set(),  # terminal
}

# Stages in which the price of the order may still change
_PRICEABLE_STAGES = {
    CheckoutStage.CREATED,
    CheckoutStage.ADDRESS_ATTACHED,
    CheckoutStage.PAYMENT_INITIATED,
}

# Stages after a verified payment
_PAID_STAGES = {
    CheckoutStage.PAID,
    CheckoutStage.SHIPMENT_CREATED,
    CheckoutStage.DELIVERED,
}

_IN_MOTION = {
    ShippingStatus.PICKED_UP.value,
    ShippingStatus.IN_TRANSIT.value,
    ShippingStatus.OUT_FOR_DELIVERY.value,
}

_SHIPMENT_FIELDS = (
    "provider",
    "awb_number",
    "carrier_name",
    "shipment_id",
    "status",
    "label_url",
    "manifest_url",
    "estimated_delivery",
    "last_tracked_at",
    "booked_at",
)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, and who to contact about it.

    For guest checkouts the name, email and phone here become the order's
    contact details.
    """

    full_name = String(required=True, max_length=150)
    email = String(max_length=254)
    phone = String(required=True, max_length=20)
    street = String(required=True, max_length=255)
    area = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=10)
    country = String(default="India", max_length=100)


@ordering.value_object(part_of="Order")
class Shipment:
    """Carrier booking details, present once the carrier issued an AWB."""

    provider = String(max_length=50, default="ithink_logistics")
    awb_number = String(max_length=100)
    carrier_name = String(max_length=100)
    shipment_id = String(max_length=100)
    status = String(max_length=30, choices=ShippingStatus, default=ShippingStatus.CREATED.value)
    label_url = String(max_length=1000)
    manifest_url = String(max_length=1000)
    estimated_delivery = String(max_length=50)
    last_tracked_at = DateTime()
    booked_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """Line item snapshot taken from the catalog when the order was created."""

    product_id = Identifier(required=True)
    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    category = String(max_length=100)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    pack_size = Integer(required=True, min_value=1)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@ordering.entity(part_of="Order")
class ShippingStatusEntry:
    status = String(required=True, max_length=30)
    message = String(max_length=500)
    location = String(max_length=200)
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_id = Identifier()  # None for guest checkout
    guest_name = String(max_length=150)
    guest_email = String(max_length=254)
    guest_phone = String(max_length=20)

    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)

    items_subtotal = Float(default=0.0, min_value=0.0)
    shipping_price = Float(default=0.0, min_value=0.0)
    coupon_code = String(max_length=50)
    coupon_discount = Float(default=0.0, min_value=0.0)
    total_price = Float(default=0.0, min_value=0.0)

    payment_method = String(choices=PaymentMethod, default=PaymentMethod.GATEWAY.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    external_order_id = String(max_length=100)
    superseded_external_order_ids = Text()  # JSON list, oldest first
    external_payment_id = String(max_length=100)
    payment_signature = String(max_length=255)
    transaction_id = String(max_length=100)

    shipment = ValueObject(Shipment)
    shipping_history = HasMany(ShippingStatusEntry)

    stage = String(choices=CheckoutStage, default=CheckoutStage.CREATED.value)
    status = String(choices=OrderStatus, default=OrderStatus.PROCESSING.value)
    stock_reserved = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=100)

    created_at = DateTime()
    updated_at = DateTime()
    delivered_at = DateTime()

    @invariant.post
    def total_must_match_its_components(self):
        expected = pricing.total(self.items_subtotal or 0, self.shipping_price or 0, self.coupon_discount or 0)
        if abs((self.total_price or 0) - expected) > 0.005:
            raise ValidationError({"total_price": ["Total must equal subtotal plus shipping minus discount"]})

    @invariant.post
    def discount_must_not_exceed_subtotal(self):
        if (self.coupon_discount or 0) > (self.items_subtotal or 0):
            raise ValidationError({"coupon_discount": ["Discount cannot exceed the items subtotal"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number: str,
        items_data: list[dict],
        shipping_price: float,
        customer_id: str | None = None,
        payment_method: str = PaymentMethod.GATEWAY.value,
    ):
        """Create an unpaid order from resolved line items."""
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        subtotal = pricing.items_subtotal(items_data)
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            items_subtotal=subtotal,
            shipping_price=shipping_price,
            coupon_discount=0.0,
            total_price=pricing.total(subtotal, shipping_price),
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            stage=CheckoutStage.CREATED.value,
            status=OrderStatus.PROCESSING.value,
            superseded_external_order_ids=json.dumps([]),
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(OrderItem(**item_data))

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=customer_id,
                items=json.dumps(items_data),
                items_subtotal=subtotal,
                shipping_price=shipping_price,
                total_price=order.total_price,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_guest(self) -> bool:
        return not self.customer_id

    @property
    def contact_email(self) -> str | None:
        if self.shipping_address and self.shipping_address.email:
            return self.shipping_address.email
        return self.guest_email

    @property
    def superseded_ids(self) -> list[str]:
        return json.loads(self.superseded_external_order_ids) if self.superseded_external_order_ids else []

    @property
    def has_shipment(self) -> bool:
        return bool(self.shipment and self.shipment.awb_number)

    @property
    def is_payment_confirmed(self) -> bool:
        return CheckoutStage(self.stage) in _PAID_STAGES or (
            CheckoutStage(self.stage) == CheckoutStage.CANCELLED and bool(self.is_paid)
        )

    @property
    def latest_shipping_status(self) -> str | None:
        if not self.shipping_history:
            return None
        return max(self.shipping_history, key=lambda e: e.recorded_at).status

    def recompute_total(self) -> float:
        return pricing.total(self.items_subtotal or 0, self.shipping_price or 0, self.coupon_discount or 0)

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: CheckoutStage) -> None:
        current = CheckoutStage(self.stage)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"stage": [f"Cannot transition from {current.value} to {target.value}"]})

    def _assert_priceable(self) -> None:
        if CheckoutStage(self.stage) not in _PRICEABLE_STAGES:
            raise ValidationError({"stage": [f"Order can no longer be repriced in {self.stage}"]})

    def _supersede_open_payment_order(self) -> str | None:
        """Retire the open gateway order so it can no longer be verified."""
        previous = self.external_order_id
        if previous:
            superseded = self.superseded_ids
            superseded.append(previous)
            self.superseded_external_order_ids = json.dumps(superseded)
            self.external_order_id = None
        return previous

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def attach_shipping_address(self, address: ShippingAddress, shipping_price: float) -> None:
        """Record the destination and reprice the order for it."""
        self._assert_can_transition(CheckoutStage.ADDRESS_ATTACHED)
        now = datetime.now(UTC)

        self.shipping_address = address
        if self.is_guest:
            self.guest_name = address.full_name
            self.guest_email = address.email
            self.guest_phone = address.phone

        with atomic_change(self):
            self.shipping_price = shipping_price
            self.total_price = self.recompute_total()
        self._supersede_open_payment_order()
        self.stage = CheckoutStage.ADDRESS_ATTACHED.value
        self.updated_at = now

        self.raise_(
            ShippingAddressAttached(
                order_id=str(self.id),
                postal_code=address.postal_code,
                shipping_price=self.shipping_price,
                total_price=self.total_price,
                attached_at=now,
            )
        )

    def apply_coupon(self, code: str, discount: float) -> None:
        """Apply (or replace) the order's coupon discount."""
        self._assert_priceable()
        if discount > (self.items_subtotal or 0):
            raise ValidationError({"coupon": ["Coupon discount exceeds the order subtotal"]})
        # Gateway orders need a positive amount
        if pricing.total(self.items_subtotal or 0, self.shipping_price or 0, discount) <= 0:
            raise ValidationError({"coupon": ["Coupon would bring the order total to zero"]})

        with atomic_change(self):
            self.coupon_code = code
            self.coupon_discount = discount
            self.total_price = self.recompute_total()
        self._supersede_open_payment_order()
        if CheckoutStage(self.stage) == CheckoutStage.PAYMENT_INITIATED:
            self.stage = CheckoutStage.ADDRESS_ATTACHED.value
        self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderCouponApplied(
                order_id=str(self.id),
                coupon_code=code,
                discount=discount,
                total_price=self.total_price,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def issue_payment_order(self, external_order_id: str, amount_minor: int) -> None:
        """Record a freshly opened gateway order for the current total.

        Before an address is known the gateway order is provisional and the
        stage stays CREATED.
        """
        self._assert_priceable()
        current = CheckoutStage(self.stage)
        if current != CheckoutStage.CREATED:
            self._assert_can_transition(CheckoutStage.PAYMENT_INITIATED)

        now = datetime.now(UTC)
        superseded = self._supersede_open_payment_order()
        self.external_order_id = external_order_id
        if current != CheckoutStage.CREATED:
            self.stage = CheckoutStage.PAYMENT_INITIATED.value
        self.updated_at = now

        self.raise_(
            PaymentOrderIssued(
                order_id=str(self.id),
                external_order_id=external_order_id,
                superseded_id=superseded,
                amount_minor=amount_minor,
                issued_at=now,
            )
        )

    def confirm_payment(self, external_payment_id: str, signature: str, transaction_id: str | None = None) -> None:
        self._assert_can_transition(CheckoutStage.PAID)
        now = datetime.now(UTC)

        self.payment_status = PaymentStatus.PAID.value
        self.is_paid = True
        self.paid_at = now
        self.external_payment_id = external_payment_id
        self.payment_signature = signature
        self.transaction_id = transaction_id or external_payment_id
        self.stage = CheckoutStage.PAID.value
        self.status = OrderStatus.CONFIRMED.value
        self.updated_at = now

        self.raise_(
            PaymentConfirmed(
                order_id=str(self.id),
                order_number=self.order_number,
                external_order_id=self.external_order_id,
                external_payment_id=external_payment_id,
                total_price=self.total_price,
                paid_at=now,
            )
        )

    def fail_payment(self, reason: str, external_payment_id: str | None = None) -> None:
        """Mark a forged or unverifiable payment; the order is cancelled."""
        self._assert_can_transition(CheckoutStage.PAYMENT_FAILED)
        now = datetime.now(UTC)

        self.payment_status = PaymentStatus.FAILED.value
        self.external_payment_id = external_payment_id
        self.stage = CheckoutStage.PAYMENT_FAILED.value
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = "system"
        self.stock_reserved = False
        self.updated_at = now

        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                external_order_id=self.external_order_id,
                reason=reason,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Shipment
    # -------------------------------------------------------------------
    def record_shipment(
        self,
        awb_number: str,
        carrier_name: str | None = None,
        shipment_id: str | None = None,
        label_url: str | None = None,
        estimated_delivery: str | None = None,
    ) -> None:
        self._assert_can_transition(CheckoutStage.SHIPMENT_CREATED)
        now = datetime.now(UTC)

        self.shipment = Shipment(
            awb_number=awb_number,
            carrier_name=carrier_name,
            shipment_id=shipment_id,
            status=ShippingStatus.CREATED.value,
            label_url=label_url,
            estimated_delivery=estimated_delivery,
            booked_at=now,
        )
        self.add_shipping_history(
            ShippingStatusEntry(
                status=ShippingStatus.CREATED.value,
                message="Shipment booked with carrier",
                recorded_at=now,
            )
        )
        self.stage = CheckoutStage.SHIPMENT_CREATED.value
        self.updated_at = now

        self.raise_(
            ShipmentBooked(
                order_id=str(self.id),
                awb_number=awb_number,
                carrier_name=carrier_name,
                booked_at=now,
            )
        )

    def _replace_shipment(self, **changes) -> None:
        values = {name: getattr(self.shipment, name) for name in _SHIPMENT_FIELDS}
        values.update(changes)
        self.shipment = Shipment(**values)

    def record_tracking(self, status: str, message: str | None = None, location: str | None = None) -> bool:
        """Record a tracking poll.

        History only grows when the status differs from the latest entry.
        Returns True when an entry was appended.
        """
        if not self.has_shipment:
            raise ValidationError({"shipment": ["Order has no shipment to track"]})

        now = datetime.now(UTC)
        changed = status != self.latest_shipping_status
        if changed:
            self.add_shipping_history(
                ShippingStatusEntry(
                    status=status,
                    message=message or "",
                    location=location or "",
                    recorded_at=now,
                )
            )
            self.raise_(
                ShippingStatusChanged(
                    order_id=str(self.id),
                    awb_number=self.shipment.awb_number,
                    status=status,
                    location=location,
                    recorded_at=now,
                )
            )

        self._replace_shipment(status=status, last_tracked_at=now)
        if status in _IN_MOTION and self.status == OrderStatus.CONFIRMED.value:
            self.status = OrderStatus.SHIPPED.value
        elif status == ShippingStatus.DELIVERED.value and CheckoutStage(self.stage) in (
            CheckoutStage.PAID,
            CheckoutStage.SHIPMENT_CREATED,
        ):
            self.mark_delivered()
        self.updated_at = now
        return changed

    def record_documents(self, label_url: str | None = None, manifest_url: str | None = None) -> None:
        if not self.has_shipment:
            raise ValidationError({"shipment": ["Order has no shipment"]})
        changes = {}
        if label_url:
            changes["label_url"] = label_url
        if manifest_url:
            changes["manifest_url"] = manifest_url
        if changes:
            self._replace_shipment(**changes)
            self.updated_at = datetime.now(UTC)

    def mark_shipped(self, marked_by: str) -> None:
        """Operator override for parcels the carrier has not reported moving yet."""
        if CheckoutStage(self.stage) not in (CheckoutStage.PAID, CheckoutStage.SHIPMENT_CREATED):
            raise ValidationError({"status": [f"Only paid orders can be marked shipped, not {self.stage}"]})
        if self.status == OrderStatus.SHIPPED.value:
            return

        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        self.updated_at = now
        self.raise_(OrderMarkedShipped(order_id=str(self.id), marked_by=marked_by, marked_at=now))

    def mark_delivered(self) -> None:
        self._assert_can_transition(CheckoutStage.DELIVERED)
        now = datetime.now(UTC)
        self.stage = CheckoutStage.DELIVERED.value
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now
        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=now))

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason: str, cancelled_by: str) -> None:
        current = CheckoutStage(self.stage)
        if current == CheckoutStage.DELIVERED:
            raise ValidationError({"status": ["Delivered orders cannot be cancelled"]})
        if current in (CheckoutStage.CANCELLED, CheckoutStage.PAYMENT_FAILED):
            raise ValidationError({"status": ["Order is already cancelled"]})
        self._assert_can_transition(CheckoutStage.CANCELLED)

        now = datetime.now(UTC)
        stock_restored = bool(self.stock_reserved)
        self.stage = CheckoutStage.CANCELLED.value
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.stock_reserved = False
        self._supersede_open_payment_order()
        if self.has_shipment:
            self._replace_shipment(status=ShippingStatus.CANCELLED.value)
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                stock_restored=stock_restored,
                cancelled_at=now,
            )
        )
