"""Normalized carrier results.

Every carrier operation returns exactly one of:

- CarrierOk: the provider accepted the request; ``data`` is a typed payload
- CarrierFailed: the provider answered but refused (message from the provider)
- CarrierTransportError: the provider could not be reached or answered garbage
"""

from dataclasses import dataclass, field
from typing import Any

from fulfillment.carrier.status import ShipmentStatus


@dataclass(frozen=True)
class CarrierOk:
    data: Any
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class CarrierFailed:
    message: str
    ok: bool = field(default=False, init=False)


@dataclass(frozen=True)
class CarrierTransportError:
    cause: str
    ok: bool = field(default=False, init=False)


CarrierResult = CarrierOk | CarrierFailed | CarrierTransportError


def failure_reason(result: CarrierResult) -> str | None:
    if isinstance(result, CarrierFailed):
        return result.message
    if isinstance(result, CarrierTransportError):
        return result.cause
    return None


# ---------------------------------------------------------------------------
# Typed payloads carried by CarrierOk
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Serviceability:
    postal_code: str
    serviceable: bool
    partners: tuple[str, ...] = ()


@dataclass(frozen=True)
class RateQuote:
    rate: float
    partner: str | None = None


@dataclass(frozen=True)
class BookedShipment:
    awb_number: str
    carrier_name: str | None = None
    reference: str | None = None
    shipment_id: str | None = None
    label_url: str | None = None
    estimated_delivery: str | None = None


@dataclass(frozen=True)
class TrackingSnapshot:
    awb_number: str
    status: ShipmentStatus
    raw_status: str | None
    recognized: bool
    location: str | None = None
    message: str | None = None
    estimated_delivery: str | None = None


@dataclass(frozen=True)
class Document:
    url: str
