"""Carrier port (abstract interface).

Defines the contract for the logistics provider. Every operation returns a
normalized CarrierResult; provider field names never leak past an adapter.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from fulfillment.carrier.results import CarrierResult


@dataclass(frozen=True)
class Recipient:
    name: str
    phone: str
    street: str
    city: str
    state: str
    postal_code: str
    email: str | None = None
    area: str | None = None
    country: str = "India"


@dataclass(frozen=True)
class ShipmentLine:
    name: str
    sku: str
    quantity: int
    price: float


@dataclass(frozen=True)
class Parcel:
    length_cm: float = 15
    width_cm: float = 15
    height_cm: float = 10
    weight_kg: float = 0.5


@dataclass(frozen=True)
class ShipmentRequest:
    """Snapshot of a paid order, as much as the carrier needs to book it."""

    order_number: str
    order_date: datetime
    recipient: Recipient
    lines: list[ShipmentLine]
    total_amount: float
    shipping_charges: float = 0
    discount: float = 0
    cash_on_delivery: bool = False
    parcel: Parcel = field(default_factory=Parcel)


class CarrierPort(ABC):
    """Abstract carrier interface."""

    @abstractmethod
    def check_serviceability(self, postal_code: str) -> CarrierResult:
        """Ok(Serviceability) for the destination postal code."""
        ...

    @abstractmethod
    def get_rate(
        self,
        origin: str,
        destination: str,
        weight_kg: float,
        parcel: Parcel,
        cash_on_delivery: bool,
        declared_value: float,
    ) -> CarrierResult:
        """Ok(RateQuote) with the cheapest forward rate."""
        ...

    @abstractmethod
    def create_shipment(self, request: ShipmentRequest) -> CarrierResult:
        """Ok(BookedShipment) once the carrier assigned an AWB."""
        ...

    @abstractmethod
    def track_shipment(self, awb_number: str) -> CarrierResult:
        """Ok(TrackingSnapshot) with the normalized current status."""
        ...

    @abstractmethod
    def cancel_shipment(self, awb_numbers: list[str]) -> CarrierResult:
        """Ok(list of cancelled AWBs)."""
        ...

    @abstractmethod
    def get_label(self, awb_numbers: list[str], page_size: str = "A4") -> CarrierResult:
        """Ok(Document) pointing at the printable label."""
        ...

    @abstractmethod
    def generate_manifest(self, awb_numbers: list[str]) -> CarrierResult:
        """Ok(Document) pointing at the pickup manifest."""
        ...
