"""FastAPI routes for the Ordering domain: orders, coupons, shipping and admin.

Handlers are plain functions. FastAPI runs them in its threadpool, which
carries the request's domain context, so a slow gateway or carrier call
blocks only its own request.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from ordering.api.schemas import (
    ApplyCouponRequest,
    CancelOrderRequest,
    CouponQuoteResponse,
    CouponResponse,
    CreateCouponRequest,
    CreateOrderRequest,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    PincodeCheckRequest,
    PincodeCheckResponse,
    ShipmentResponse,
    ShippingAddressSchema,
    ShippingRateRequest,
    ShippingRateResponse,
    ShippingStatusResponse,
    UpdateOrderStatusRequest,
    ValidateCouponRequest,
    VerifyPaymentRequest,
)
from ordering.coupon.coupon import Coupon
from ordering.order import pricing
from ordering.order.lifecycle import CartLine, OrderLifecycle
from ordering.order.order import Order
from ordering.wiring import current_lifecycle


def get_lifecycle() -> OrderLifecycle:
    lifecycle = current_lifecycle()
    if lifecycle is None:
        raise HTTPException(status_code=503, detail="Checkout is not configured")
    return lifecycle


def _order_response(order: Order, lifecycle: OrderLifecycle) -> OrderResponse:
    shipment = None
    if order.shipment is not None and order.shipment.awb_number:
        shipment = ShipmentResponse(
            awb_number=order.shipment.awb_number,
            carrier_name=order.shipment.carrier_name,
            status=order.shipment.status,
            label_url=order.shipment.label_url,
            manifest_url=order.shipment.manifest_url,
            estimated_delivery=order.shipment.estimated_delivery,
        )
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=order.customer_id,
        stage=order.stage,
        status=order.status,
        payment_status=order.payment_status,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                sku=item.sku,
                name=item.name,
                pack_size=item.pack_size,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in order.items
        ],
        items_subtotal=order.items_subtotal,
        shipping_price=order.shipping_price,
        coupon_code=order.coupon_code,
        coupon_discount=order.coupon_discount or 0,
        total_price=order.total_price,
        external_order_id=order.external_order_id,
        gateway_key_id=lifecycle.gateway.key_id,
        amount_minor=pricing.to_minor_units(order.total_price),
        shipment=shipment,
        shipping_history=[
            ShippingStatusResponse(
                status=entry.status,
                message=entry.message,
                location=entry.location,
                recorded_at=entry.recorded_at,
            )
            for entry in sorted(order.shipping_history, key=lambda entry: entry.recorded_at)
        ],
        created_at=order.created_at,
        delivered_at=order.delivered_at,
    )


def _coupon_response(coupon: Coupon) -> CouponResponse:
    return CouponResponse(
        coupon_id=str(coupon.id),
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        is_active=coupon.is_active,
        used_count=coupon.used_count,
        usage_limit=coupon.usage_limit,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
def create_order(body: CreateOrderRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> OrderResponse:
    order = lifecycle.create_order_from_cart(
        [CartLine(**line.model_dump()) for line in body.items],
        customer_id=body.customer_id,
    )
    return _order_response(order, lifecycle)


def _order_list(orders: list[Order], lifecycle: OrderLifecycle) -> OrderListResponse:
    return OrderListResponse(orders=[_order_response(order, lifecycle) for order in orders], count=len(orders))


@order_router.get("", response_model=OrderListResponse)
def list_customer_orders(
    customer_id: str = Query(min_length=1),
    limit: int = Query(default=50, ge=1, le=100),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderListResponse:
    return _order_list(lifecycle.list_orders(customer_id=customer_id, limit=limit), lifecycle)


@order_router.get("/by-number/{order_number}", response_model=OrderResponse)
def get_order_by_number(order_number: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> OrderResponse:
    return _order_response(lifecycle.find_order_by_number(order_number), lifecycle)


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> OrderResponse:
    return _order_response(lifecycle.get_order(order_id), lifecycle)


@order_router.put("/{order_id}/address", response_model=OrderResponse)
def attach_address(
    order_id: str, body: ShippingAddressSchema, lifecycle: OrderLifecycle = Depends(get_lifecycle)
) -> OrderResponse:
    order = lifecycle.attach_shipping_address(order_id, body.model_dump())
    return _order_response(order, lifecycle)


@order_router.post("/{order_id}/coupon", response_model=OrderResponse)
def apply_coupon(
    order_id: str, body: ApplyCouponRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)
) -> OrderResponse:
    order = lifecycle.apply_coupon(body.coupon_id, order_id)
    return _order_response(order, lifecycle)


@order_router.post("/{order_id}/payment/verify", response_model=OrderResponse)
def verify_payment(
    order_id: str, body: VerifyPaymentRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)
) -> OrderResponse:
    order = lifecycle.verify_payment(
        order_id,
        external_order_id=body.external_order_id,
        external_payment_id=body.external_payment_id,
        signature=body.signature,
    )
    return _order_response(order, lifecycle)


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str, body: CancelOrderRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)
) -> OrderResponse:
    order = lifecycle.cancel_order(order_id, cancelled_by=body.cancelled_by, reason=body.reason)
    return _order_response(order, lifecycle)


@order_router.post("/{order_id}/shipment", response_model=OrderResponse)
def create_shipment(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> OrderResponse:
    return _order_response(lifecycle.create_shipment(order_id), lifecycle)


@order_router.post("/{order_id}/tracking/sync", response_model=OrderResponse)
def sync_tracking(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> OrderResponse:
    return _order_response(lifecycle.sync_tracking(order_id), lifecycle)


@order_router.post("/{order_id}/label", response_model=OrderResponse)
def fetch_label(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> OrderResponse:
    return _order_response(lifecycle.fetch_label(order_id), lifecycle)


@order_router.post("/{order_id}/manifest", response_model=OrderResponse)
def generate_manifest(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> OrderResponse:
    return _order_response(lifecycle.generate_manifest(order_id), lifecycle)


@order_router.post("/{order_id}/notifications")
def resend_notifications(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> dict:
    results = lifecycle.notify_order_confirmed(order_id)
    return {"deliveries": [{"recipient": result.recipient, "sent": result.sent} for result in results]}


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("", status_code=201, response_model=CouponResponse)
def create_coupon(body: CreateCouponRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> CouponResponse:
    coupon = lifecycle.create_coupon(**body.model_dump())
    return _coupon_response(coupon)


@coupon_router.post("/validate", response_model=CouponQuoteResponse)
def validate_coupon(
    body: ValidateCouponRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)
) -> CouponQuoteResponse:
    quote = lifecycle.validate_coupon(body.code, body.cart_total)
    return CouponQuoteResponse(coupon_id=quote.coupon_id, code=quote.code, discount=quote.discount)


@coupon_router.put("/{coupon_id}/toggle", response_model=CouponResponse)
def toggle_coupon(coupon_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> CouponResponse:
    return _coupon_response(lifecycle.toggle_coupon(coupon_id))


# ---------------------------------------------------------------------------
# Shipping Router
# ---------------------------------------------------------------------------
shipping_router = APIRouter(prefix="/shipping", tags=["shipping"])


@shipping_router.post("/pincode", response_model=PincodeCheckResponse)
def check_pincode(body: PincodeCheckRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> PincodeCheckResponse:
    serviceability = lifecycle.check_pincode(body.postal_code)
    return PincodeCheckResponse(
        postal_code=serviceability.postal_code,
        serviceable=serviceability.serviceable,
        partners=list(serviceability.partners),
    )


@shipping_router.post("/rates", response_model=ShippingRateResponse)
def estimate_rate(body: ShippingRateRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> ShippingRateResponse:
    shipping_price = lifecycle.quote_shipping(body.items_subtotal, body.postal_code)
    return ShippingRateResponse(
        postal_code=body.postal_code,
        items_subtotal=body.items_subtotal,
        shipping_price=shipping_price,
        free_shipping=shipping_price == 0,
    )


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


@admin_router.get("", response_model=OrderListResponse)
def list_all_orders(
    limit: int = Query(default=50, ge=1, le=100),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderListResponse:
    return _order_list(lifecycle.list_orders(limit=limit), lifecycle)


@admin_router.put("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)
) -> OrderResponse:
    order = lifecycle.update_status(order_id, body.status, updated_by=body.updated_by, reason=body.reason)
    return _order_response(order, lifecycle)
