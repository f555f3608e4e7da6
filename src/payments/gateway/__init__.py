"""Payment gateway adapters.

build_gateway() constructs the adapter named by ``PAYMENT_GATEWAY``:
- ``fake``: FakeGateway for development and testing (default)
- ``razorpay``: RazorpayGateway, credentials from ``RAZORPAY_*``

The instance is handed to the checkout lifecycle by the application's
composition root; nothing here is cached at module level.
"""

import os

from payments.gateway.config import RazorpaySettings
from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import ExternalOrder, PaymentGateway, PaymentGatewayError


def build_gateway(adapter: str | None = None) -> PaymentGateway:
    adapter = adapter or os.environ.get("PAYMENT_GATEWAY", "fake")
    if adapter == "fake":
        return FakeGateway()
    if adapter == "razorpay":
        from payments.gateway.razorpay_adapter import RazorpayGateway

        return RazorpayGateway(RazorpaySettings())
    raise ValueError(f"Unknown payment gateway adapter: {adapter}")


__all__ = [
    "ExternalOrder",
    "FakeGateway",
    "PaymentGateway",
    "PaymentGatewayError",
    "build_gateway",
]
