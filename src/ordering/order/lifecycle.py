"""Order lifecycle: drives an order from cart to delivery.

OrderLifecycle coordinates the Order aggregate with the catalog, the payment
gateway and the carrier. All collaborators are passed in by the caller; the
class holds no module-level state.

Failure policy:
- Rate and serviceability lookups degrade to the fallback shipping price.
- Opening a gateway order either succeeds or leaves the order untouched.
- Signature checks are never recovered locally: a mismatch fails the order,
  releases its stock and raises PaymentVerificationFailed.
- Shipment booking, tracking and emails after payment are retryable and
  never undo a confirmed payment.

Every operation that mutates an order holds that order's lock, so two
overlapping requests for one order are applied one after the other.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from catalogue.catalog import CatalogPort, Product
from fulfillment.carrier.port import CarrierPort, Parcel, Recipient, ShipmentLine, ShipmentRequest
from fulfillment.carrier.results import Serviceability, failure_reason
from notifications.notifier import DeliveryResult, OrderNotifier
from ordering.coupon import validation
from ordering.coupon.coupon import Coupon
from ordering.errors import (
    CarrierRequestFailed,
    CheckoutUnavailable,
    CouponRejected,
    CouponRejection,
    EmptyCart,
    InsufficientStock,
    OrderNotFound,
    PaymentVerificationFailed,
    ProductNotFound,
)
from ordering.order import pricing
from ordering.order.locking import KeyedLocks
from ordering.order.numbering import generate_order_number
from ordering.order.order import (
    CheckoutStage,
    Order,
    OrderStatus,
    PaymentMethod,
    ShippingAddress,
)
from ordering.settings import CheckoutSettings
from payments.gateway.port import PaymentGateway, PaymentGatewayError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    pack_size: int = 1


@dataclass(frozen=True)
class CouponQuote:
    coupon_id: str
    code: str
    discount: int


class OrderLifecycle:
    def __init__(
        self,
        catalog: CatalogPort,
        gateway: PaymentGateway,
        carrier: CarrierPort,
        notifier: OrderNotifier,
        settings: CheckoutSettings | None = None,
        clock=None,
    ) -> None:
        self.catalog = catalog
        self.gateway = gateway
        self.carrier = carrier
        self.notifier = notifier
        self.settings = settings or CheckoutSettings()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._locks = KeyedLocks()

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _orders(self):
        return current_domain.repository_for(Order)

    def _coupons(self):
        return current_domain.repository_for(Coupon)

    def _load(self, order_id: str) -> Order:
        try:
            return self._orders().get(order_id)
        except ObjectNotFoundError as exc:
            raise OrderNotFound(order_id) from exc

    def get_order(self, order_id: str) -> Order:
        return self._load(order_id)

    def find_order_by_number(self, order_number: str) -> Order:
        order = self._orders().find_by_number(order_number)
        if order is None:
            raise OrderNotFound(order_number)
        return order

    def list_orders(self, customer_id: str | None = None, limit: int = 50) -> list[Order]:
        """Orders newest first; all orders when no customer is given."""
        repo = self._orders()
        if customer_id is None:
            return repo.newest(limit)
        return repo.for_customer(customer_id, limit)

    def _tiers(self) -> dict:
        return {
            "free_threshold": self.settings.free_shipping_threshold,
            "reduced_threshold": self.settings.reduced_shipping_threshold,
            "reduced_price": self.settings.reduced_shipping_price,
            "fallback_price": self.settings.fallback_shipping_price,
        }

    def _parcel(self) -> Parcel:
        return Parcel(
            length_cm=self.settings.package_length_cm,
            width_cm=self.settings.package_width_cm,
            height_cm=self.settings.package_height_cm,
            weight_kg=self.settings.package_weight_kg,
        )

    def estimate_shipping(self, subtotal: float) -> float:
        """Shipping before the destination is known."""
        return pricing.shipping_price(subtotal, None, **self._tiers())

    def check_pincode(self, postal_code: str) -> Serviceability:
        """Ask the carrier whether it delivers to ``postal_code``."""
        result = self.carrier.check_serviceability(postal_code)
        if not result.ok:
            reason = failure_reason(result)
            logger.warning("Pincode check failed", postal_code=postal_code, reason=reason)
            raise CarrierRequestFailed("check_serviceability", reason)
        return result.data

    def quote_shipping(self, subtotal: float, postal_code: str) -> float:
        """Shipping to ``postal_code``; carrier trouble falls back to the flat rate."""
        if not pricing.needs_rate_quote(subtotal, reduced_threshold=self.settings.reduced_shipping_threshold):
            return pricing.shipping_price(subtotal, None, **self._tiers())

        serviceability = self.carrier.check_serviceability(postal_code)
        if not serviceability.ok:
            logger.warning(
                "Serviceability check failed, continuing",
                postal_code=postal_code,
                reason=failure_reason(serviceability),
            )
        elif not serviceability.data.serviceable:
            logger.warning("Destination reported unserviceable", postal_code=postal_code)

        parcel = self._parcel()
        quote = self.carrier.get_rate(
            origin=self.settings.warehouse_postal_code,
            destination=postal_code,
            weight_kg=pricing.chargeable_weight(parcel.weight_kg, parcel.length_cm, parcel.width_cm, parcel.height_cm),
            parcel=parcel,
            cash_on_delivery=False,
            declared_value=subtotal,
        )
        quoted_rate = None
        if quote.ok:
            quoted_rate = pricing.round_half_up(quote.data.rate)
        else:
            logger.warning(
                "Rate lookup failed, using fallback shipping price",
                postal_code=postal_code,
                reason=failure_reason(quote),
                fallback=self.settings.fallback_shipping_price,
            )
        return pricing.shipping_price(subtotal, quoted_rate, **self._tiers())

    def _open_payment(self, order: Order) -> tuple[str, int]:
        """Open a gateway order for the order's current total."""
        amount_minor = pricing.to_minor_units(order.total_price)
        if amount_minor <= 0:
            raise ValidationError({"total_price": ["Order total must be positive to take payment"]})
        try:
            external = self.gateway.create_external_order(
                amount_minor=amount_minor,
                currency=self.settings.currency,
                receipt=f"receipt_{order.order_number}",
                notes={"order_number": order.order_number, "customer_id": order.customer_id or "guest"},
            )
        except PaymentGatewayError as exc:
            logger.error(
                "Payment gateway order creation failed",
                order_number=order.order_number,
                amount_minor=amount_minor,
                error=str(exc),
            )
            raise CheckoutUnavailable(str(exc)) from exc
        return external.external_order_id, amount_minor

    @staticmethod
    def _units(item) -> int:
        return item.quantity * item.pack_size

    def _reserve_stock(self, order: Order) -> None:
        """Take every product's units at once, or none of them."""
        units: dict[str, int] = {}
        for item in order.items:
            product_id = str(item.product_id)
            units[product_id] = units.get(product_id, 0) + self._units(item)

        taken: list[tuple[str, int]] = []
        for product_id, needed in units.items():
            if self.catalog.reserve(product_id, needed):
                taken.append((product_id, needed))
                continue
            for reserved_id, reserved_units in taken:
                self.catalog.adjust_stock(reserved_id, reserved_units)
            product = self.catalog.get_product(product_id)
            available = product.stock if product else 0
            logger.warning(
                "Stock ran out before the order was placed",
                order_number=order.order_number,
                product_id=product_id,
                requested=needed,
                available=available,
            )
            raise InsufficientStock(product_id, needed, available)
        order.stock_reserved = True

    def _release_stock(self, order: Order) -> None:
        if not order.stock_reserved:
            return
        self._restore_units(order)
        order.stock_reserved = False

    def _restore_units(self, order: Order) -> None:
        for item in order.items:
            restored = self.catalog.adjust_stock(str(item.product_id), self._units(item))
            if restored is None:
                logger.warning(
                    "Could not restore stock for missing product",
                    order_id=str(order.id),
                    product_id=str(item.product_id),
                )

    # -------------------------------------------------------------------
    # 1. Create from cart
    # -------------------------------------------------------------------
    def create_order_from_cart(self, lines: list[CartLine | dict], customer_id: str | None = None) -> Order:
        """Convert cart lines into an unpaid order, re-pricing from the catalog."""
        if not lines:
            raise EmptyCart()

        products: dict[str, Product] = {}
        units_needed: dict[str, int] = {}
        items_data = []
        for line in lines:
            if isinstance(line, dict):
                line = CartLine(**line)
            if line.quantity < 1:
                raise ValidationError({"quantity": [f"Quantity for product {line.product_id} must be at least 1"]})

            product = products.get(line.product_id) or self.catalog.get_product(line.product_id)
            if product is None or not product.is_active:
                raise ProductNotFound(line.product_id)
            products[line.product_id] = product
            units_needed[line.product_id] = units_needed.get(line.product_id, 0) + line.quantity * line.pack_size

            items_data.append(
                {
                    "product_id": product.product_id,
                    "sku": product.sku,
                    "name": product.name,
                    "category": product.category,
                    "unit_price": pricing.unit_price(product, line.pack_size),
                    "quantity": line.quantity,
                    "pack_size": line.pack_size,
                }
            )

        for product_id, needed in units_needed.items():
            available = products[product_id].stock
            if needed > available:
                raise InsufficientStock(product_id, needed, available)

        subtotal = pricing.items_subtotal(items_data)
        order = Order.create(
            order_number=generate_order_number(self.settings.order_number_prefix),
            items_data=items_data,
            shipping_price=self.estimate_shipping(subtotal),
            customer_id=customer_id,
            payment_method=PaymentMethod.GATEWAY.value,
        )
        # Another checkout may have taken the stock since the check above
        self._reserve_stock(order)
        try:
            external_order_id, amount_minor = self._open_payment(order)
            order.issue_payment_order(external_order_id, amount_minor)
            self._orders().add(order)
        except Exception:
            self._release_stock(order)
            raise

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            items_subtotal=order.items_subtotal,
            total_price=order.total_price,
            guest=order.is_guest,
        )
        return order

    # -------------------------------------------------------------------
    # 2. Attach address
    # -------------------------------------------------------------------
    def attach_shipping_address(self, order_id: str, address: ShippingAddress | dict) -> Order:
        with self._locks.hold(order_id):
            order = self._load(order_id)
            if isinstance(address, dict):
                address = ShippingAddress(**address)

            shipping = self.quote_shipping(order.items_subtotal, address.postal_code)
            order.attach_shipping_address(address, shipping)
            external_order_id, amount_minor = self._open_payment(order)
            order.issue_payment_order(external_order_id, amount_minor)
            self._orders().add(order)

            logger.info(
                "Shipping address attached",
                order_id=order_id,
                postal_code=address.postal_code,
                shipping_price=order.shipping_price,
                total_price=order.total_price,
                external_order_id=external_order_id,
            )
            return order

    # -------------------------------------------------------------------
    # 3. Verify payment
    # -------------------------------------------------------------------
    def verify_payment(
        self,
        order_id: str,
        external_order_id: str,
        external_payment_id: str,
        signature: str,
    ) -> Order:
        with self._locks.hold(order_id):
            order = self._load(order_id)
            stage = CheckoutStage(order.stage)

            if order.is_payment_confirmed:
                if order.external_payment_id == external_payment_id:
                    logger.info("Payment already confirmed", order_id=order_id, external_payment_id=external_payment_id)
                    return order
                raise PaymentVerificationFailed(order_id, "order is already paid by another payment")
            if stage in (CheckoutStage.CANCELLED, CheckoutStage.PAYMENT_FAILED):
                raise PaymentVerificationFailed(order_id, "order is cancelled")
            if order.shipping_address is None:
                raise ValidationError({"shipping_address": ["A shipping address is required before payment"]})

            if not self.gateway.verify_payment(external_order_id, external_payment_id, signature):
                self._reject_payment(order, "signature mismatch", external_order_id, external_payment_id)

            if external_order_id != order.external_order_id:
                # The current payment order stays payable.
                reason = (
                    "payment order was superseded"
                    if external_order_id in order.superseded_ids
                    else "payment order does not belong to this order"
                )
                logger.warning(
                    "Payment for another payment order refused",
                    order_id=order_id,
                    reason=reason,
                    external_order_id=external_order_id,
                    expected_external_order_id=order.external_order_id,
                )
                raise PaymentVerificationFailed(order_id, reason)

            order.confirm_payment(external_payment_id, signature)
            self._orders().add(order)
            logger.info(
                "Payment confirmed",
                order_id=order_id,
                order_number=order.order_number,
                external_order_id=external_order_id,
                external_payment_id=external_payment_id,
                total_price=order.total_price,
            )

            self._redeem_coupon(order)
            return self._load(order_id)

    def _reject_payment(self, order: Order, reason: str, external_order_id: str, external_payment_id: str) -> None:
        logger.warning(
            "Payment verification failed",
            order_id=str(order.id),
            reason=reason,
            external_order_id=external_order_id,
            external_payment_id=external_payment_id,
        )
        self._release_stock(order)
        order.fail_payment(f"Payment verification failed: {reason}", external_payment_id)
        self._orders().add(order)
        raise PaymentVerificationFailed(str(order.id), reason)

    def _redeem_coupon(self, order: Order) -> None:
        if not order.coupon_code:
            return
        with self._locks.hold(f"coupon:{order.coupon_code}"):
            repo = self._coupons()
            coupon = repo.find_by_code(order.coupon_code)
            if coupon is None:
                logger.warning("Applied coupon no longer exists", order_id=str(order.id), code=order.coupon_code)
                return
            try:
                if coupon.mark_used(str(order.id)):
                    repo.add(coupon)
            except ValidationError as exc:
                logger.error(
                    "Coupon usage could not be recorded",
                    order_id=str(order.id),
                    code=order.coupon_code,
                    error=exc.messages,
                )

    # -------------------------------------------------------------------
    # 4. Post-payment side effects
    # -------------------------------------------------------------------
    def _shipment_request(self, order: Order) -> ShipmentRequest:
        address = order.shipping_address
        return ShipmentRequest(
            order_number=order.order_number,
            order_date=order.created_at or self._clock(),
            recipient=Recipient(
                name=address.full_name,
                phone=address.phone,
                email=address.email or order.guest_email,
                street=address.street,
                area=address.area,
                city=address.city,
                state=address.state,
                postal_code=address.postal_code,
                country=address.country or "India",
            ),
            lines=[
                ShipmentLine(name=item.name, sku=item.sku, quantity=item.quantity, price=item.unit_price)
                for item in order.items
            ],
            total_amount=order.total_price,
            shipping_charges=order.shipping_price,
            discount=order.coupon_discount or 0,
            cash_on_delivery=order.payment_method == PaymentMethod.CASH_ON_DELIVERY.value,
            parcel=self._parcel(),
        )

    def create_shipment(self, order_id: str) -> Order:
        """Book the shipment for a paid order; returns the order unchanged if already booked."""
        with self._locks.hold(order_id):
            order = self._load(order_id)
            if order.has_shipment:
                logger.info("Shipment already exists", order_id=order_id, awb_number=order.shipment.awb_number)
                return order
            if CheckoutStage(order.stage) != CheckoutStage.PAID:
                raise ValidationError({"stage": [f"Shipments can only be created for paid orders, not {order.stage}"]})

            result = self.carrier.create_shipment(self._shipment_request(order))
            if not result.ok:
                reason = failure_reason(result)
                logger.error("Shipment creation failed", order_id=order_id, reason=reason)
                raise CarrierRequestFailed("create_shipment", reason)

            booked = result.data
            order.record_shipment(
                awb_number=booked.awb_number,
                carrier_name=booked.carrier_name,
                shipment_id=booked.shipment_id,
                label_url=booked.label_url,
                estimated_delivery=booked.estimated_delivery,
            )
            self._orders().add(order)
            logger.info(
                "Shipment created",
                order_id=order_id,
                awb_number=booked.awb_number,
                carrier_name=booked.carrier_name,
            )
            return order

    def notification_context(self, order: Order) -> dict:
        address = order.shipping_address
        address_text = None
        if address:
            address_text = "\n".join(
                part
                for part in (
                    address.full_name,
                    address.street,
                    address.area,
                    f"{address.city}, {address.state} {address.postal_code}",
                    f"Phone: {address.phone}",
                )
                if part
            )
        return {
            "order_number": order.order_number,
            "customer_name": order.guest_name or (address.full_name if address else None),
            "customer_email": order.contact_email,
            "items": [
                {
                    "name": item.name,
                    "pack_size": item.pack_size,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                }
                for item in order.items
            ],
            "items_subtotal": order.items_subtotal,
            "shipping_price": order.shipping_price,
            "coupon_code": order.coupon_code,
            "coupon_discount": order.coupon_discount,
            "total_price": order.total_price,
            "payment_id": order.external_payment_id,
            "address": address_text,
            "store_name": self.settings.store_name,
        }

    def notify_order_confirmed(self, order_id: str) -> list[DeliveryResult]:
        """Email the store and the customer; each delivery succeeds or fails alone."""
        order = self._load(order_id)
        context = self.notification_context(order)
        results = [self.notifier.send_admin_notification(context, self.settings.admin_email)]
        if order.contact_email:
            results.append(self.notifier.send_order_confirmation(context, order.contact_email))
        else:
            logger.info("No customer email on order, skipping confirmation", order_id=order_id)
        return results

    # -------------------------------------------------------------------
    # 5. Cancel
    # -------------------------------------------------------------------
    def cancel_order(self, order_id: str, cancelled_by: str, reason: str = "Cancelled by customer") -> Order:
        with self._locks.hold(order_id):
            order = self._load(order_id)
            had_reserved_stock = bool(order.stock_reserved)
            awb_number = order.shipment.awb_number if order.has_shipment else None

            order.cancel(reason=reason, cancelled_by=cancelled_by)
            if had_reserved_stock:
                self._restore_units(order)
            self._orders().add(order)
            logger.info("Order cancelled", order_id=order_id, cancelled_by=cancelled_by, reason=reason)

            if awb_number:
                result = self.carrier.cancel_shipment([awb_number])
                if not result.ok:
                    logger.warning(
                        "Carrier cancellation failed, cancel manually",
                        order_id=order_id,
                        awb_number=awb_number,
                        reason=failure_reason(result),
                    )
            return order

    def update_status(
        self,
        order_id: str,
        status: str,
        updated_by: str = "admin",
        reason: str | None = None,
    ) -> Order:
        """Operator status change: Shipped, Delivered or Cancelled."""
        if status == OrderStatus.CANCELLED.value:
            return self.cancel_order(order_id, cancelled_by=updated_by, reason=reason or "Cancelled by admin")
        if status not in (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value):
            raise ValidationError({"status": [f"Status cannot be set to {status}"]})

        with self._locks.hold(order_id):
            order = self._load(order_id)
            previous = order.status
            if status == OrderStatus.SHIPPED.value:
                order.mark_shipped(updated_by)
            else:
                order.mark_delivered()
            self._orders().add(order)
            logger.info(
                "Order status updated",
                order_id=order_id,
                previous_status=previous,
                status=order.status,
                updated_by=updated_by,
            )
            return order

    # -------------------------------------------------------------------
    # 6. Tracking and shipping documents
    # -------------------------------------------------------------------
    def sync_tracking(self, order_id: str) -> Order:
        with self._locks.hold(order_id):
            order = self._load(order_id)
            if not order.has_shipment:
                raise ValidationError({"shipment": ["Order has no shipment to track"]})

            awb_number = order.shipment.awb_number
            result = self.carrier.track_shipment(awb_number)
            if not result.ok:
                reason = failure_reason(result)
                logger.warning("Tracking sync failed", order_id=order_id, awb_number=awb_number, reason=reason)
                raise CarrierRequestFailed("track_shipment", reason)

            snapshot = result.data
            if not snapshot.recognized:
                logger.warning(
                    "Unrecognized carrier status",
                    order_id=order_id,
                    awb_number=awb_number,
                    raw_status=snapshot.raw_status,
                    mapped_to=snapshot.status.value,
                )
            appended = order.record_tracking(
                snapshot.status.value,
                message=snapshot.message or snapshot.raw_status,
                location=snapshot.location,
            )
            self._orders().add(order)
            logger.info(
                "Tracking synced",
                order_id=order_id,
                awb_number=awb_number,
                status=snapshot.status.value,
                changed=appended,
            )
            return order

    def fetch_label(self, order_id: str, page_size: str = "A4") -> Order:
        with self._locks.hold(order_id):
            order = self._load(order_id)
            if not order.has_shipment:
                raise ValidationError({"shipment": ["Order has no shipment"]})
            result = self.carrier.get_label([order.shipment.awb_number], page_size)
            if not result.ok:
                raise CarrierRequestFailed("get_label", failure_reason(result))
            order.record_documents(label_url=result.data.url)
            self._orders().add(order)
            return order

    def generate_manifest(self, order_id: str) -> Order:
        with self._locks.hold(order_id):
            order = self._load(order_id)
            if not order.has_shipment:
                raise ValidationError({"shipment": ["Order has no shipment"]})
            result = self.carrier.generate_manifest([order.shipment.awb_number])
            if not result.ok:
                raise CarrierRequestFailed("generate_manifest", failure_reason(result))
            order.record_documents(manifest_url=result.data.url)
            self._orders().add(order)
            return order

    # -------------------------------------------------------------------
    # 7. Coupons
    # -------------------------------------------------------------------
    def validate_coupon(self, code: str, cart_total: float) -> CouponQuote:
        coupon = self._coupons().find_by_code(code)
        discount = validation.validate(coupon, self._clock(), cart_total)
        return CouponQuote(coupon_id=str(coupon.id), code=coupon.code, discount=discount)

    def _eligible_total(self, order: Order, coupon: Coupon) -> float:
        categories = coupon.categories
        if not categories:
            return order.items_subtotal
        return sum(item.line_total for item in order.items if item.category in categories)

    def apply_coupon(self, coupon_id: str, order_id: str) -> Order:
        with self._locks.hold(order_id):
            order = self._load(order_id)
            try:
                coupon = self._coupons().get(coupon_id)
            except ObjectNotFoundError as exc:
                raise CouponRejected(CouponRejection.NOT_FOUND) from exc

            discount = validation.validate(coupon, self._clock(), self._eligible_total(order, coupon))
            order.apply_coupon(coupon.code, discount)
            if order.shipping_address is not None:
                external_order_id, amount_minor = self._open_payment(order)
                order.issue_payment_order(external_order_id, amount_minor)
            self._orders().add(order)

            logger.info(
                "Coupon applied",
                order_id=order_id,
                code=coupon.code,
                discount=discount,
                total_price=order.total_price,
            )
            return order

    def create_coupon(self, is_active: bool = True, **data) -> Coupon:
        repo = self._coupons()
        if repo.find_by_code(data.get("code", "")) is not None:
            raise ValidationError({"code": [f"Coupon {data['code'].strip().upper()} already exists"]})
        coupon = Coupon.create(**data)
        if not is_active:
            coupon.toggle_active()
        repo.add(coupon)
        logger.info("Coupon created", coupon_id=str(coupon.id), code=coupon.code)
        return coupon

    def toggle_coupon(self, coupon_id: str) -> Coupon:
        with self._locks.hold(f"coupon-id:{coupon_id}"):
            repo = self._coupons()
            coupon = repo.get(coupon_id)
            coupon.toggle_active()
            repo.add(coupon)
            return coupon
