"""Fake carrier adapter: deterministic carrier for testing and development.

Issues mock AWBs, labels and manifests and reports a configurable tracking
status. Can be told to refuse requests or to behave as if unreachable.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from fulfillment.carrier.port import CarrierPort, Parcel, ShipmentRequest
from fulfillment.carrier.results import (
    BookedShipment,
    CarrierFailed,
    CarrierOk,
    CarrierResult,
    CarrierTransportError,
    Document,
    RateQuote,
    Serviceability,
    TrackingSnapshot,
)
from fulfillment.carrier.status import normalize_status


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    def __init__(self, rate: float | None = 75.0, tracking_status: str = "Manifested"):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.unreachable = False
        self.rate = rate
        self.tracking_status = tracking_status
        self.tracking_location = "Mumbai Hub"
        self.unserviceable: set[str] = set()
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Carrier unavailable",
        unreachable: bool = False,
    ):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unreachable = unreachable

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    def _refusal(self) -> CarrierResult | None:
        if self.unreachable:
            return CarrierTransportError("Connection refused")
        if not self.should_succeed:
            return CarrierFailed(self.failure_reason)
        return None

    def check_serviceability(self, postal_code: str) -> CarrierResult:
        self.calls.append({"method": "check_serviceability", "postal_code": postal_code})
        if refusal := self._refusal():
            return refusal
        serviceable = postal_code not in self.unserviceable
        return CarrierOk(
            Serviceability(
                postal_code=postal_code,
                serviceable=serviceable,
                partners=("delhivery",) if serviceable else (),
            )
        )

    def get_rate(
        self,
        origin: str,
        destination: str,
        weight_kg: float,
        parcel: Parcel,
        cash_on_delivery: bool,
        declared_value: float,
    ) -> CarrierResult:
        self.calls.append(
            {
                "method": "get_rate",
                "origin": origin,
                "destination": destination,
                "weight_kg": weight_kg,
                "cash_on_delivery": cash_on_delivery,
                "declared_value": declared_value,
            }
        )
        if refusal := self._refusal():
            return refusal
        if self.rate is None:
            return CarrierFailed("No usable rate returned")
        return CarrierOk(RateQuote(rate=self.rate, partner="Delhivery"))

    def create_shipment(self, request: ShipmentRequest) -> CarrierResult:
        self.calls.append({"method": "create_shipment", "order_number": request.order_number, "request": request})
        if refusal := self._refusal():
            return refusal

        awb = f"FAKE{uuid4().hex[:10].upper()}"
        estimated = (datetime.now(UTC) + timedelta(days=5)).strftime("%d-%m-%Y")
        return CarrierOk(
            BookedShipment(
                awb_number=awb,
                carrier_name="Delhivery",
                reference=request.order_number,
                shipment_id=f"ship-{uuid4().hex[:8]}",
                label_url=f"https://fake-carrier.example.com/labels/{awb}.pdf",
                estimated_delivery=estimated,
            )
        )

    def track_shipment(self, awb_number: str) -> CarrierResult:
        self.calls.append({"method": "track_shipment", "awb_number": awb_number})
        if refusal := self._refusal():
            return refusal
        status, recognized = normalize_status(self.tracking_status)
        return CarrierOk(
            TrackingSnapshot(
                awb_number=awb_number,
                status=status,
                raw_status=self.tracking_status,
                recognized=recognized,
                location=self.tracking_location,
                message=self.tracking_status,
            )
        )

    def cancel_shipment(self, awb_numbers: list[str]) -> CarrierResult:
        self.calls.append({"method": "cancel_shipment", "awb_numbers": list(awb_numbers)})
        if refusal := self._refusal():
            return refusal
        return CarrierOk(list(awb_numbers))

    def get_label(self, awb_numbers: list[str], page_size: str = "A4") -> CarrierResult:
        self.calls.append({"method": "get_label", "awb_numbers": list(awb_numbers), "page_size": page_size})
        if refusal := self._refusal():
            return refusal
        return CarrierOk(Document(url=f"https://fake-carrier.example.com/labels/{'-'.join(awb_numbers)}.pdf"))

    def generate_manifest(self, awb_numbers: list[str]) -> CarrierResult:
        self.calls.append({"method": "generate_manifest", "awb_numbers": list(awb_numbers)})
        if refusal := self._refusal():
            return refusal
        return CarrierOk(Document(url=f"https://fake-carrier.example.com/manifests/{uuid4().hex[:8]}.pdf"))
