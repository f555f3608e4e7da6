"""Domain events for the Order aggregate.

Events are immutable facts about checkout progress. PaymentConfirmed is the
hand-off point to the post-payment handlers, which queue shipment booking
and notifications on the background worker.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderCreated:
    """An unpaid order was created from a cart."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    items = Text(required=True)  # JSON: list of line item dicts
    items_subtotal = Float(required=True)
    shipping_price = Float(required=True)
    total_price = Float(required=True)
    created_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShippingAddressAttached:
    """A shipping address was attached and the order repriced."""

    __version__ = 1

    order_id = Identifier(required=True)
    postal_code = String(required=True)
    shipping_price = Float(required=True)
    total_price = Float(required=True)
    attached_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCouponApplied:
    __version__ = 1

    order_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount = Float(required=True)
    total_price = Float(required=True)


@ordering.event(part_of="Order")
class PaymentOrderIssued:
    """A payment-gateway order was opened for the current total.

    ``superseded_id`` names the gateway order this one replaces, if any.
    """

    __version__ = 1

    order_id = Identifier(required=True)
    external_order_id = String(required=True)
    superseded_id = String()
    amount_minor = Integer(required=True)
    issued_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentConfirmed:
    """The gateway's signature proved the payment; side effects may start."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    external_order_id = String(required=True)
    external_payment_id = String(required=True)
    total_price = Float(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentFailed:
    """Payment verification failed; the order was cancelled."""

    __version__ = 1

    order_id = Identifier(required=True)
    external_order_id = String()
    reason = String(required=True)
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShipmentBooked:
    """The carrier accepted the shipment and assigned an AWB."""

    __version__ = 1

    order_id = Identifier(required=True)
    awb_number = String(required=True)
    carrier_name = String()
    booked_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShippingStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    awb_number = String(required=True)
    status = String(required=True)
    location = String()
    recorded_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderMarkedShipped:
    """An operator marked the order shipped without a carrier update."""

    __version__ = 1

    order_id = Identifier(required=True)
    marked_by = String(required=True)
    marked_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before delivery."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_by = String(required=True)
    stock_restored = Boolean(default=False)
    cancelled_at = DateTime(required=True)
