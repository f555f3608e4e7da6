"""Tests for the Order aggregate: pricing invariants and checkout transitions."""

import pytest
from ordering.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderMarkedShipped,
    PaymentConfirmed,
    PaymentFailed,
    PaymentOrderIssued,
    ShippingStatusChanged,
)
from ordering.order.order import (
    CheckoutStage,
    Order,
    OrderStatus,
    PaymentStatus,
    ShippingAddress,
)
from protean.exceptions import ValidationError


def _items():
    return [
        {
            "product_id": "makhana-peri-peri",
            "sku": "MKH-PP",
            "name": "Peri Peri Makhana",
            "category": "makhana",
            "unit_price": 100,
            "quantity": 2,
            "pack_size": 1,
        },
        {
            "product_id": "chips-ragi",
            "sku": "CHP-RG",
            "name": "Ragi Chips",
            "category": "chips",
            "unit_price": 190,
            "quantity": 1,
            "pack_size": 2,
        },
    ]


def _address(**overrides):
    values = {
        "full_name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "street": "12 Hill Road",
        "city": "Mumbai",
        "state": "Maharashtra",
        "postal_code": "400050",
    }
    values.update(overrides)
    return ShippingAddress(**values)


def _make_order(customer_id=None):
    order = Order.create(order_number="WC-TEST-0001", items_data=_items(), shipping_price=50, customer_id=customer_id)
    order._events.clear()
    return order


def _order_at(stage):
    order = _make_order()
    if stage == CheckoutStage.CREATED:
        return order
    order.attach_shipping_address(_address(), 50)
    if stage == CheckoutStage.ADDRESS_ATTACHED:
        return order
    order.issue_payment_order("order_1", 44000)
    if stage == CheckoutStage.PAYMENT_INITIATED:
        return order
    order.confirm_payment("pay_1", "sig")
    if stage == CheckoutStage.PAID:
        return order
    order.record_shipment("AWB1", "Delhivery")
    if stage == CheckoutStage.SHIPMENT_CREATED:
        return order
    order.mark_delivered()
    return order


class TestOrderCreation:
    def test_subtotal_and_total(self):
        order = _make_order()
        assert order.items_subtotal == 390
        assert order.shipping_price == 50
        assert order.total_price == 440

    def test_initial_state(self):
        order = _make_order()
        assert order.stage == CheckoutStage.CREATED.value
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.is_paid is False
        assert order.is_guest is True

    def test_items_are_snapshotted(self):
        order = _make_order()
        assert len(order.items) == 2
        pack = next(item for item in order.items if item.sku == "CHP-RG")
        assert pack.pack_size == 2
        assert pack.line_total == 190

    def test_raises_order_created(self):
        order = Order.create(order_number="WC-X-0001", items_data=_items(), shipping_price=0)
        assert isinstance(order._events[-1], OrderCreated)

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError):
            Order.create(order_number="WC-X-0002", items_data=[], shipping_price=0)

    def test_mismatched_total_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.total_price = 1


class TestAddress:
    def test_attach_reprices_and_captures_guest_contact(self):
        order = _make_order()
        order.attach_shipping_address(_address(), 0)
        assert order.shipping_price == 0
        assert order.total_price == 390
        assert order.guest_email == "asha@example.com"
        assert order.guest_name == "Asha Rao"
        assert order.stage == CheckoutStage.ADDRESS_ATTACHED.value

    def test_registered_customer_keeps_no_guest_fields(self):
        order = _make_order(customer_id="cust-1")
        order.attach_shipping_address(_address(), 50)
        assert order.guest_email is None
        assert order.contact_email == "asha@example.com"

    def test_reattaching_supersedes_open_payment_order(self):
        order = _order_at(CheckoutStage.PAYMENT_INITIATED)
        order.attach_shipping_address(_address(postal_code="560001"), 50)
        assert order.external_order_id is None
        assert order.superseded_ids == ["order_1"]
        assert order.stage == CheckoutStage.ADDRESS_ATTACHED.value

    def test_cannot_attach_after_payment(self):
        order = _order_at(CheckoutStage.PAID)
        with pytest.raises(ValidationError):
            order.attach_shipping_address(_address(), 50)


class TestCoupon:
    def test_apply_discount(self):
        order = _order_at(CheckoutStage.ADDRESS_ATTACHED)
        order.apply_coupon("CRUNCH50", 50)
        assert order.total_price == 390
        assert order.coupon_code == "CRUNCH50"

    def test_discount_above_subtotal_rejected(self):
        order = _order_at(CheckoutStage.ADDRESS_ATTACHED)
        with pytest.raises(ValidationError) as exc_info:
            order.apply_coupon("HUGE", 500)
        assert "coupon" in exc_info.value.messages
        assert order.total_price == 440

    def test_discount_to_zero_total_rejected(self):
        order = _make_order()
        order.attach_shipping_address(_address(), 0)
        with pytest.raises(ValidationError) as exc_info:
            order.apply_coupon("FREEBIE", 390)
        assert "coupon" in exc_info.value.messages
        assert order.coupon_code is None
        assert order.total_price == 390

    def test_discount_covering_items_but_not_shipping(self):
        order = _order_at(CheckoutStage.ADDRESS_ATTACHED)
        order.apply_coupon("FREEBIE", 390)
        assert order.total_price == 50

    def test_apply_during_payment_reopens_checkout(self):
        order = _order_at(CheckoutStage.PAYMENT_INITIATED)
        order.apply_coupon("CRUNCH50", 50)
        assert order.stage == CheckoutStage.ADDRESS_ATTACHED.value
        assert "order_1" in order.superseded_ids

    def test_cannot_apply_after_payment(self):
        order = _order_at(CheckoutStage.PAID)
        with pytest.raises(ValidationError):
            order.apply_coupon("CRUNCH50", 50)


class TestPayment:
    def test_issue_before_address_stays_created(self):
        order = _make_order()
        order.issue_payment_order("order_0", 44000)
        assert order.stage == CheckoutStage.CREATED.value
        assert order.external_order_id == "order_0"
        assert isinstance(order._events[-1], PaymentOrderIssued)

    def test_issue_after_address_initiates_payment(self):
        order = _order_at(CheckoutStage.PAYMENT_INITIATED)
        assert order.stage == CheckoutStage.PAYMENT_INITIATED.value

    def test_reissue_records_superseded_id(self):
        order = _order_at(CheckoutStage.PAYMENT_INITIATED)
        order.issue_payment_order("order_2", 44000)
        assert order.external_order_id == "order_2"
        assert order.superseded_ids == ["order_1"]
        assert order._events[-1].superseded_id == "order_1"

    def test_confirm_payment(self):
        order = _order_at(CheckoutStage.PAID)
        assert order.is_paid is True
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.external_payment_id == "pay_1"
        assert order.paid_at is not None
        assert any(isinstance(e, PaymentConfirmed) for e in order._events)

    def test_cannot_confirm_without_payment_order(self):
        order = _order_at(CheckoutStage.ADDRESS_ATTACHED)
        with pytest.raises(ValidationError):
            order.confirm_payment("pay_1", "sig")

    def test_fail_payment_cancels(self):
        order = _order_at(CheckoutStage.PAYMENT_INITIATED)
        order.stock_reserved = True
        order.fail_payment("signature mismatch", "pay_1")
        assert order.stage == CheckoutStage.PAYMENT_FAILED.value
        assert order.status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.FAILED.value
        assert order.stock_reserved is False
        assert isinstance(order._events[-1], PaymentFailed)


class TestShipmentTracking:
    def test_record_shipment_adds_created_entry(self):
        order = _order_at(CheckoutStage.SHIPMENT_CREATED)
        assert order.shipment.awb_number == "AWB1"
        assert order.has_shipment
        assert [entry.status for entry in order.shipping_history] == ["created"]

    def test_unchanged_status_does_not_grow_history(self):
        order = _order_at(CheckoutStage.SHIPMENT_CREATED)
        assert order.record_tracking("in_transit", "Left hub", "Mumbai") is True
        first_tracked = order.shipment.last_tracked_at
        assert order.record_tracking("in_transit", "Left hub", "Mumbai") is False
        assert len(order.shipping_history) == 2
        assert order.shipment.last_tracked_at >= first_tracked

    def test_in_motion_marks_shipped(self):
        order = _order_at(CheckoutStage.SHIPMENT_CREATED)
        order.record_tracking("picked_up")
        assert order.status == OrderStatus.SHIPPED.value
        assert isinstance(order._events[-1], ShippingStatusChanged)

    def test_delivered_completes_order(self):
        order = _order_at(CheckoutStage.SHIPMENT_CREATED)
        order.record_tracking("delivered")
        assert order.stage == CheckoutStage.DELIVERED.value
        assert order.status == OrderStatus.DELIVERED.value
        assert order.delivered_at is not None
        assert isinstance(order._events[-1], OrderDelivered)

    def test_tracking_without_shipment_rejected(self):
        order = _order_at(CheckoutStage.PAID)
        with pytest.raises(ValidationError):
            order.record_tracking("in_transit")

    def test_record_documents(self):
        order = _order_at(CheckoutStage.SHIPMENT_CREATED)
        order.record_documents(label_url="https://labels/1.pdf", manifest_url="https://manifests/1.pdf")
        assert order.shipment.label_url == "https://labels/1.pdf"
        assert order.shipment.manifest_url == "https://manifests/1.pdf"
        assert order.shipment.awb_number == "AWB1"


class TestOperatorStatus:
    @pytest.mark.parametrize("stage", [CheckoutStage.PAID, CheckoutStage.SHIPMENT_CREATED])
    def test_mark_shipped(self, stage):
        order = _order_at(stage)
        order.mark_shipped("ops@crunchstream.in")
        assert order.status == OrderStatus.SHIPPED.value
        assert order.stage == stage.value
        assert isinstance(order._events[-1], OrderMarkedShipped)
        assert order._events[-1].marked_by == "ops@crunchstream.in"

    def test_mark_shipped_twice_raises_once(self):
        order = _order_at(CheckoutStage.PAID)
        order.mark_shipped("ops")
        events = len(order._events)
        order.mark_shipped("ops")
        assert len(order._events) == events

    def test_unpaid_order_cannot_be_marked_shipped(self):
        order = _order_at(CheckoutStage.PAYMENT_INITIATED)
        with pytest.raises(ValidationError):
            order.mark_shipped("ops")
        assert order.status == OrderStatus.PROCESSING.value

    def test_mark_delivered_without_carrier_update(self):
        order = _order_at(CheckoutStage.PAID)
        order.mark_delivered()
        assert order.stage == CheckoutStage.DELIVERED.value
        assert order.delivered_at is not None


class TestCancellation:
    @pytest.mark.parametrize(
        "stage",
        [
            CheckoutStage.CREATED,
            CheckoutStage.ADDRESS_ATTACHED,
            CheckoutStage.PAYMENT_INITIATED,
            CheckoutStage.PAID,
            CheckoutStage.SHIPMENT_CREATED,
        ],
    )
    def test_cancel_before_delivery(self, stage):
        order = _order_at(stage)
        order.stock_reserved = True
        order.cancel("Changed my mind", "customer")
        assert order.stage == CheckoutStage.CANCELLED.value
        assert order.status == OrderStatus.CANCELLED.value
        assert order.stock_reserved is False
        event = order._events[-1]
        assert isinstance(event, OrderCancelled)
        assert event.stock_restored is True

    def test_cancel_retires_open_payment_order(self):
        order = _order_at(CheckoutStage.PAYMENT_INITIATED)
        order.cancel("Changed my mind", "customer")
        assert order.external_order_id is None
        assert "order_1" in order.superseded_ids

    def test_cancel_marks_shipment_cancelled(self):
        order = _order_at(CheckoutStage.SHIPMENT_CREATED)
        order.cancel("Out of stock", "admin")
        assert order.shipment.status == "cancelled"

    def test_cancel_delivered_rejected(self):
        order = _order_at(CheckoutStage.DELIVERED)
        with pytest.raises(ValidationError) as exc_info:
            order.cancel("Too late", "customer")
        assert exc_info.value.messages["status"] == ["Delivered orders cannot be cancelled"]

    def test_cancel_twice_rejected(self):
        order = _order_at(CheckoutStage.CREATED)
        order.cancel("Changed my mind", "customer")
        with pytest.raises(ValidationError):
            order.cancel("Again", "customer")
