"""Configurable fake payment gateway for development and testing.

Opens orders without any external call and verifies signatures with a
shared test secret, exactly as the real adapter does. It can be configured
at runtime to fail order creation, which exercises the checkout's
no-partial-order path.
"""

from uuid import uuid4

from payments.gateway.port import ExternalOrder, PaymentGateway, PaymentGatewayError
from payments.gateway.signature import compute_signature, verify_signature


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, key_secret: str = "test-secret", key_id: str = "rzp_test_fake") -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_external_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict | None = None,
    ) -> ExternalOrder:
        self.calls.append(
            {
                "method": "create_external_order",
                "amount_minor": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": dict(notes or {}),
            }
        )
        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

        return ExternalOrder(
            external_order_id=f"order_fake_{uuid4().hex[:14]}",
            amount_minor=amount_minor,
            currency=currency,
            receipt=receipt,
        )

    def verify_payment(self, external_order_id: str, external_payment_id: str, signature: str) -> bool:
        self.calls.append(
            {
                "method": "verify_payment",
                "external_order_id": external_order_id,
                "external_payment_id": external_payment_id,
            }
        )
        return verify_signature(external_order_id, external_payment_id, signature, self.key_secret)

    def sign(self, external_order_id: str, external_payment_id: str) -> str:
        """Produce the signature a successful checkout would hand back."""
        return compute_signature(external_order_id, external_payment_id, self.key_secret)

    @property
    def opened_orders(self) -> list[dict]:
        return [c for c in self.calls if c["method"] == "create_external_order"]
