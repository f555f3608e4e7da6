"""Shared BDD fixtures and step definitions for checkout and fulfillment."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.coupon.coupon import Coupon, DiscountType
from ordering.errors import PaymentVerificationFailed
from ordering.order.lifecycle import CartLine
from payments.gateway.signature import compute_signature
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def error():
    """Container for the failure a When step captured."""
    return {"exc": None}


def _fresh(lifecycle, order):
    return lifecycle.get_order(order.id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a cart with {quantity:d} x "{product_id}" in packs of {pack_size:d}'),
    target_fixture="cart",
)
def _(quantity, product_id, pack_size):
    return [CartLine(product_id=product_id, quantity=quantity, pack_size=pack_size)]


@given(parsers.cfparse('the cart has {quantity:d} x "{product_id}" in packs of {pack_size:d}'))
def _(cart, quantity, product_id, pack_size):
    cart.append(CartLine(product_id=product_id, quantity=quantity, pack_size=pack_size))


@given(parsers.cfparse('a fixed coupon "{code}" worth {value:d}'))
def _(lifecycle, code, value):
    lifecycle.create_coupon(
        code=code,
        description=f"Flat {value} off",
        discount_type=DiscountType.FIXED.value,
        discount_value=value,
        valid_from=datetime.now(UTC) - timedelta(days=1),
        valid_until=datetime.now(UTC) + timedelta(days=7),
    )


@given(parsers.cfparse('a percentage coupon "{code}" worth {value:d} percent'))
def _(lifecycle, code, value):
    lifecycle.create_coupon(
        code=code,
        description=f"{value}% off",
        discount_type=DiscountType.PERCENTAGE.value,
        discount_value=value,
        valid_from=datetime.now(UTC) - timedelta(days=1),
        valid_until=datetime.now(UTC) + timedelta(days=7),
    )


@given(parsers.cfparse('the carrier reports "{status}"'))
def _(carrier, status):
    carrier.tracking_status = status


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the cart is checked out", target_fixture="order")
def _(lifecycle, cart):
    return lifecycle.create_order_from_cart(cart)


@when("the shipping address is attached", target_fixture="order")
def _(lifecycle, order, address):
    return lifecycle.attach_shipping_address(order.id, address)


@when(parsers.cfparse('coupon "{code}" is applied'), target_fixture="order")
def _(lifecycle, order, code):
    coupon = current_domain.repository_for(Coupon).find_by_code(code)
    return lifecycle.apply_coupon(coupon.id, order.id)


@when(parsers.cfparse('the payment is verified with a signature made with secret "{secret}"'))
def _(lifecycle, order, error, secret):
    signature = compute_signature(order.external_order_id, "pay_bdd", secret)
    try:
        lifecycle.verify_payment(order.id, order.external_order_id, "pay_bdd", signature)
    except PaymentVerificationFailed as exc:
        error["exc"] = exc


@when("the payment is verified with the gateway secret", target_fixture="order")
def _(lifecycle, gateway, order):
    signature = gateway.sign(order.external_order_id, "pay_bdd")
    return lifecycle.verify_payment(order.id, order.external_order_id, "pay_bdd", signature)


@when("the post-payment jobs have run")
def _(post_payment):
    assert post_payment.drain()


@when(parsers.cfparse('coupon "{code}" is tried'))
def _(lifecycle, order, error, code):
    coupon = current_domain.repository_for(Coupon).find_by_code(code)
    try:
        lifecycle.apply_coupon(coupon.id, order.id)
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('an operator sets the status to "{status}"'), target_fixture="order")
def _(lifecycle, order, status):
    return lifecycle.update_status(order.id, status, updated_by="ops")


@when("tracking is synced", target_fixture="order")
def _(lifecycle, order):
    return lifecycle.sync_tracking(order.id)


@when(parsers.cfparse('the order is cancelled by "{actor}"'))
def _(lifecycle, order, error, actor):
    try:
        lifecycle.cancel_order(order.id, cancelled_by=actor, reason="Requested in scenario")
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the items subtotal is {amount:d}"))
def _(lifecycle, order, amount):
    assert _fresh(lifecycle, order).items_subtotal == amount


@then(parsers.cfparse("the shipping price is {amount:d}"))
def _(lifecycle, order, amount):
    assert _fresh(lifecycle, order).shipping_price == amount


@then(parsers.cfparse("the order total is {amount:d}"))
def _(lifecycle, order, amount):
    assert _fresh(lifecycle, order).total_price == amount


@then(parsers.cfparse('the checkout stage is "{stage}"'))
def _(lifecycle, order, stage):
    assert _fresh(lifecycle, order).stage == stage


@then(parsers.cfparse('the payment status is "{status}"'))
def _(lifecycle, order, status):
    assert _fresh(lifecycle, order).payment_status == status


@then(parsers.cfparse('the order status is "{status}"'))
def _(lifecycle, order, status):
    assert _fresh(lifecycle, order).status == status


@then(parsers.cfparse('payment verification fails with "{reason}"'))
def _(error, reason):
    assert isinstance(error["exc"], PaymentVerificationFailed)
    assert error["exc"].reason == reason


@then(parsers.cfparse('stock of "{product_id}" is back to {stock:d}'))
def _(catalog, product_id, stock):
    assert catalog.get_product(product_id).stock == stock


@then(parsers.cfparse("the shipping history has {count:d} entries"))
def _(lifecycle, order, count):
    assert len(_fresh(lifecycle, order).shipping_history) == count


@then("cancellation is refused")
def _(error):
    assert isinstance(error["exc"], ValidationError)


@then("the coupon is refused")
def _(error):
    assert isinstance(error["exc"], ValidationError)
    assert "coupon" in error["exc"].messages


@then("the delivery time is recorded")
def _(lifecycle, order):
    assert _fresh(lifecycle, order).delivered_at is not None
