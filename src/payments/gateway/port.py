"""Payment gateway port (abstract interface).

The checkout only needs two things from a gateway: open an order for an
exact amount, and later prove that a payment against that order is
authentic. Adapters hide the provider's wire format behind this contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class PaymentGatewayError(Exception):
    """The gateway could not complete the request (network, auth, rejection)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class ExternalOrder:
    """A payment order opened at the gateway."""

    external_order_id: str
    amount_minor: int
    currency: str
    receipt: str
    status: str = "created"
    raw: dict = field(default_factory=dict, compare=False, repr=False)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    key_id: str = ""

    @abstractmethod
    def create_external_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict | None = None,
    ) -> ExternalOrder:
        """Open a gateway order for ``amount_minor`` (smallest currency unit).

        Raises PaymentGatewayError when the order cannot be created.
        """
        ...

    @abstractmethod
    def verify_payment(self, external_order_id: str, external_payment_id: str, signature: str) -> bool:
        """Check the signature the gateway handed to the client after payment."""
        ...
