"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept apart from the Order aggregate so that
internal field names can change without breaking clients.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CartLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    pack_size: int = Field(default=1)


class CreateOrderRequest(BaseModel):
    items: list[CartLineSchema]
    customer_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": None,
                    "items": [{"product_id": "makhana-peri-peri", "quantity": 2, "pack_size": 1}],
                }
            ]
        }
    }


class ShippingAddressSchema(BaseModel):
    full_name: str
    phone: str
    email: str | None = None
    street: str
    area: str | None = None
    city: str
    state: str
    postal_code: str
    country: str = "India"


class VerifyPaymentRequest(BaseModel):
    external_order_id: str
    external_payment_id: str
    signature: str


class CancelOrderRequest(BaseModel):
    cancelled_by: str = "customer"
    reason: str = "Cancelled by customer"


class ApplyCouponRequest(BaseModel):
    coupon_id: str


class UpdateOrderStatusRequest(BaseModel):
    status: str
    updated_by: str = "admin"
    reason: str | None = None


class PincodeCheckRequest(BaseModel):
    postal_code: str = Field(min_length=6, max_length=6)


class ShippingRateRequest(BaseModel):
    postal_code: str = Field(min_length=6, max_length=6)
    items_subtotal: float = Field(ge=0)


class ValidateCouponRequest(BaseModel):
    code: str
    cart_total: float = Field(ge=0)


class CreateCouponRequest(BaseModel):
    code: str
    description: str
    discount_type: str = "percentage"
    discount_value: float = Field(gt=0)
    minimum_purchase: float = Field(default=0, ge=0)
    maximum_discount: float | None = None
    usage_limit: int | None = Field(default=None, ge=1)
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True
    applicable_categories: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    product_id: str
    sku: str | None = None
    name: str
    pack_size: int
    quantity: int
    unit_price: float
    line_total: float


class ShipmentResponse(BaseModel):
    awb_number: str | None = None
    carrier_name: str | None = None
    status: str | None = None
    label_url: str | None = None
    manifest_url: str | None = None
    estimated_delivery: str | None = None


class ShippingStatusResponse(BaseModel):
    status: str
    message: str | None = None
    location: str | None = None
    recorded_at: datetime | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str | None = None
    stage: str
    status: str
    payment_status: str
    items: list[OrderItemResponse]
    items_subtotal: float
    shipping_price: float
    coupon_code: str | None = None
    coupon_discount: float = 0
    total_price: float
    external_order_id: str | None = None
    gateway_key_id: str | None = None
    amount_minor: int | None = None
    shipment: ShipmentResponse | None = None
    shipping_history: list[ShippingStatusResponse] = Field(default_factory=list)
    created_at: datetime | None = None
    delivered_at: datetime | None = None


class CouponQuoteResponse(BaseModel):
    coupon_id: str
    code: str
    discount: int


class CouponResponse(BaseModel):
    coupon_id: str
    code: str
    discount_type: str
    discount_value: float
    is_active: bool
    used_count: int
    usage_limit: int | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    count: int


class PincodeCheckResponse(BaseModel):
    postal_code: str
    serviceable: bool
    partners: list[str] = Field(default_factory=list)


class ShippingRateResponse(BaseModel):
    postal_code: str
    items_subtotal: float
    shipping_price: float
    free_shipping: bool
