"""Order pricing: pack prices, subtotals, tiered shipping and totals.

Every function here is pure. The lifecycle calls them whenever the
subtotal, address or coupon of an order changes; nothing is cached.
"""

from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError

from catalogue.catalog import Product

SUPPORTED_PACK_SIZES = (1, 2, 4)

# Legacy products carry a single base price; packs get a fixed discount.
_PACK_RATIOS = {1: Decimal("1"), 2: Decimal("0.95"), 4: Decimal("0.90")}

FREE_SHIPPING_THRESHOLD = 499
REDUCED_SHIPPING_THRESHOLD = 249
REDUCED_SHIPPING_PRICE = 50
FALLBACK_SHIPPING_PRICE = 60

VOLUMETRIC_DIVISOR = 5000


def round_half_up(value: float | Decimal) -> int:
    """Round to the nearest whole unit, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def unit_price(product: Product, pack_size: int) -> int:
    """Price of one pack of ``pack_size`` units of ``product``."""
    if pack_size not in SUPPORTED_PACK_SIZES:
        raise ValidationError({"pack_size": [f"Unsupported pack size {pack_size}"]})

    variant_price = (product.pack_prices or {}).get(pack_size)
    if variant_price is not None:
        return round_half_up(variant_price)

    if product.base_price is None:
        raise ValidationError({"price": [f"Product {product.product_id} has no price for pack of {pack_size}"]})

    base = Decimal(str(product.base_price))
    return round_half_up(base * pack_size * _PACK_RATIOS[pack_size])


def items_subtotal(items) -> float:
    """Sum of unit price × quantity over line items (objects or dicts)."""
    total = 0
    for item in items:
        if isinstance(item, dict):
            total += item["unit_price"] * item["quantity"]
        else:
            total += item.unit_price * item.quantity
    return total


def shipping_price(
    subtotal: float,
    quoted_rate: float | None = None,
    *,
    free_threshold: float = FREE_SHIPPING_THRESHOLD,
    reduced_threshold: float = REDUCED_SHIPPING_THRESHOLD,
    reduced_price: float = REDUCED_SHIPPING_PRICE,
    fallback_price: float = FALLBACK_SHIPPING_PRICE,
) -> float:
    """Tiered shipping: free, flat reduced, or the carrier's quote.

    ``quoted_rate`` is None when no address is known yet or the carrier
    lookup failed; the fallback price applies in both cases.
    """
    if subtotal >= free_threshold:
        return 0
    if subtotal >= reduced_threshold:
        return reduced_price
    if quoted_rate is None or quoted_rate <= 0:
        return fallback_price
    return quoted_rate


def needs_rate_quote(subtotal: float, *, reduced_threshold: float = REDUCED_SHIPPING_THRESHOLD) -> bool:
    """True when the subtotal falls in the tier priced by the carrier."""
    return subtotal < reduced_threshold


def total(subtotal: float, shipping: float, discount: float = 0) -> float:
    return max(0, subtotal + shipping - (discount or 0))


def volumetric_weight(length_cm: float, width_cm: float, height_cm: float) -> float:
    return length_cm * width_cm * height_cm / VOLUMETRIC_DIVISOR


def chargeable_weight(actual_kg: float, length_cm: float, width_cm: float, height_cm: float) -> float:
    return max(actual_kg, volumetric_weight(length_cm, width_cm, height_cm))


def to_minor_units(amount: float) -> int:
    """Convert rupees to paise for the payment gateway."""
    return round_half_up(Decimal(str(amount)) * 100)
