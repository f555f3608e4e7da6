"""Order confirmation templates: sent once a payment is verified.

The customer receives a receipt-style summary; the store's admin inbox
receives the same order with the delivery address and payment reference so
it can be packed.
"""


def _pack_label(pack_size) -> str:
    return f" (Pack of {pack_size})" if pack_size and int(pack_size) > 1 else ""


def _money(amount) -> str:
    return f"₹{float(amount or 0):,.2f}"


def _item_lines(items: list[dict]) -> str:
    return "\n".join(
        f"  - {item['name']}{_pack_label(item.get('pack_size'))} x {item['quantity']}"
        f" @ {_money(item['unit_price'])} = {_money(item['unit_price'] * item['quantity'])}"
        for item in items
    )


def _totals(context: dict) -> str:
    lines = [
        f"Subtotal: {_money(context.get('items_subtotal'))}",
        f"Shipping: {_money(context.get('shipping_price'))}",
    ]
    if context.get("coupon_discount"):
        lines.append(f"Discount ({context.get('coupon_code', '')}): -{_money(context['coupon_discount'])}")
    lines.append(f"Total paid: {_money(context.get('total_price'))}")
    return "\n".join(lines)


class CustomerOrderConfirmationTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        store_name = context.get("store_name", "Crunchstream")
        return {
            "subject": f"Order {order_number} confirmed",
            "body": (
                f"Hi {context.get('customer_name') or 'there'},\n\n"
                f"Thank you for your order {order_number}. Your payment has been received.\n\n"
                f"{_item_lines(context.get('items', []))}\n\n"
                f"{_totals(context)}\n\n"
                "We'll email you again once your order ships.\n\n"
                f"Team {store_name}"
            ),
        }


class AdminNewOrderTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        return {
            "subject": f"New order received - {order_number}",
            "body": (
                f"Order {order_number} has been paid.\n\n"
                f"Customer: {context.get('customer_name') or 'Guest'}"
                f" ({context.get('customer_email') or 'no email'})\n"
                f"Payment reference: {context.get('payment_id', 'N/A')}\n\n"
                f"Items:\n{_item_lines(context.get('items', []))}\n\n"
                f"{_totals(context)}\n\n"
                f"Ship to:\n{context.get('address') or 'Not provided'}"
            ),
        }
