"""iThink Logistics carrier adapter.

Every endpoint takes a JSON ``POST`` of ``{"data": {...}}`` where the payload
carries the account's ``access_token`` and ``secret_key``. Replies are not
uniform: ``status`` is sometimes ``"success"``, sometimes ``true``, sometimes
absent in favour of ``status_code``; the interesting part may sit under
``data`` keyed by AWB, pincode or a positional ``"1"``. This module is the
only place that knows about any of that.
"""

from datetime import UTC, datetime

import httpx
import structlog

from fulfillment.carrier.config import IThinkSettings
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

logger = structlog.get_logger(__name__)


class UnexpectedResponse(Exception):
    """A successful reply did not contain the fields an operation needs."""


def provider_reference(order_number: str, at: datetime | None = None) -> str:
    """Order reference sent to the carrier.

    The carrier de-duplicates on this value, so each booking attempt gets a
    millisecond suffix while keeping the order number as its prefix.
    """
    at = at or datetime.now(UTC)
    return f"{order_number}-{int(at.timestamp() * 1000)}"


def format_date(value: datetime) -> str:
    return value.strftime("%d-%m-%Y")


def _num(value: float | int | None) -> str:
    return f"{(value or 0):g}"


def _is_success(body: dict) -> bool:
    status = body.get("status")
    if status is True:
        return True
    if isinstance(status, str):
        return status.strip().lower() == "success"
    return body.get("status_code") == 200


def _message(body: dict) -> str:
    for key in ("message", "html_message", "remark", "error"):
        if body.get(key):
            return str(body[key])
    return "Carrier rejected the request"


class IThinkCarrier(CarrierPort):
    """Production carrier adapter over the iThink Logistics v3 API."""

    def __init__(self, settings: IThinkSettings, client: httpx.Client | None = None) -> None:
        if not settings.access_token or not settings.secret_key:
            raise ValueError("iThink access token and secret key are required")
        self._settings = settings
        self._client = client or httpx.Client(
            base_url=settings.api_url,
            timeout=httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout),
        )

    def close(self) -> None:
        self._client.close()

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def _post(self, endpoint: str, payload: dict) -> CarrierResult:
        envelope = {
            "data": {
                **payload,
                "access_token": self._settings.access_token,
                "secret_key": self._settings.secret_key,
            }
        }
        try:
            response = self._client.post(endpoint, json=envelope)
        except httpx.TimeoutException:
            logger.warning("Carrier request timed out", endpoint=endpoint)
            return CarrierTransportError(f"Timed out calling {endpoint}")
        except httpx.HTTPError as exc:
            logger.warning("Carrier request failed", endpoint=endpoint, error=str(exc))
            return CarrierTransportError(str(exc))

        if response.status_code >= 500:
            logger.warning("Carrier server error", endpoint=endpoint, status_code=response.status_code)
            return CarrierTransportError(f"HTTP {response.status_code} from {endpoint}")

        try:
            body = response.json()
        except ValueError:
            return CarrierTransportError(f"Non-JSON response from {endpoint}")
        if not isinstance(body, dict):
            return CarrierTransportError(f"Unexpected response shape from {endpoint}")

        if response.status_code >= 400 or not _is_success(body):
            message = _message(body)
            logger.info("Carrier rejected request", endpoint=endpoint, message=message)
            return CarrierFailed(message)
        return CarrierOk(body)

    def _call(self, endpoint: str, payload: dict, parse) -> CarrierResult:
        result = self._post(endpoint, payload)
        if not isinstance(result, CarrierOk):
            return result
        body = result.data
        try:
            return parse(body.get("data", body), body)
        except (UnexpectedResponse, KeyError, TypeError, ValueError) as exc:
            logger.warning("Unexpected carrier response", endpoint=endpoint, error=str(exc))
            return CarrierFailed(f"Unexpected response from carrier: {exc}")

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    def check_serviceability(self, postal_code: str) -> CarrierResult:
        def parse(data, _body):
            entry = data.get(str(postal_code), data) if isinstance(data, dict) else {}
            partners = tuple(name for name, detail in entry.items() if isinstance(detail, dict))
            return CarrierOk(Serviceability(postal_code=postal_code, serviceable=bool(partners), partners=partners))

        return self._call("/pincode/check.json", {"pincode": postal_code}, parse)

    def get_rate(
        self,
        origin: str,
        destination: str,
        weight_kg: float,
        parcel: Parcel,
        cash_on_delivery: bool,
        declared_value: float,
    ) -> CarrierResult:
        payload = {
            "from_pincode": origin,
            "to_pincode": destination,
            "shipping_length_cms": _num(parcel.length_cm),
            "shipping_width_cms": _num(parcel.width_cm),
            "shipping_height_cms": _num(parcel.height_cm),
            "shipping_weight_kg": _num(weight_kg),
            "order_type": "forward",
            "payment_method": "cod" if cash_on_delivery else "prepaid",
            "product_mrp": _num(declared_value),
        }

        def parse(data, _body):
            options = data if isinstance(data, list) else list(data.values())
            quotes = []
            for option in options:
                if not isinstance(option, dict):
                    continue
                try:
                    rate = float(option.get("rate"))
                except (TypeError, ValueError):
                    continue
                if rate > 0:
                    quotes.append(RateQuote(rate=rate, partner=option.get("logistic_name")))
            if not quotes:
                return CarrierFailed("No usable rate returned")
            return CarrierOk(min(quotes, key=lambda quote: quote.rate))

        return self._call("/rate/check.json", payload, parse)

    def create_shipment(self, request: ShipmentRequest) -> CarrierResult:
        reference = provider_reference(request.order_number)
        payload = {
            "shipments": [self._shipment_payload(request, reference)],
            "pickup_address_id": self._settings.pickup_address_id,
            "logistics": self._settings.logistics,
            "s_type": "",
            "order_type": "",
        }

        def parse(data, _body):
            if "waybill" in data:
                entry = data
            else:
                entry = data.get("1") or next(iter(data.values()), {})
            if not _is_success(entry):
                return CarrierFailed(_message(entry))
            if not entry.get("waybill"):
                raise UnexpectedResponse("no waybill in booking reply")
            return CarrierOk(
                BookedShipment(
                    awb_number=str(entry["waybill"]),
                    carrier_name=entry.get("logistic_name") or self._settings.logistics,
                    reference=entry.get("refnum") or reference,
                    shipment_id=str(entry["refnum"]) if entry.get("refnum") else reference,
                )
            )

        return self._call("/order/add.json", payload, parse)

    def _shipment_payload(self, request: ShipmentRequest, reference: str) -> dict:
        recipient = request.recipient
        parcel = request.parcel
        total = _num(request.total_amount)
        return {
            "waybill": "",
            "order": reference,
            "sub_order": "A",
            "order_date": format_date(request.order_date),
            "total_amount": total,
            "name": recipient.name,
            "company_name": "",
            "add": recipient.street,
            "add2": recipient.area or "",
            "add3": "",
            "pin": recipient.postal_code,
            "city": recipient.city,
            "state": recipient.state,
            "country": recipient.country or "India",
            "phone": recipient.phone,
            "alt_phone": recipient.phone,
            "email": recipient.email or "",
            "is_billing_same_as_shipping": "yes",
            "products": [
                {
                    "product_name": line.name,
                    "product_sku": line.sku,
                    "product_quantity": str(line.quantity),
                    "product_price": _num(line.price),
                    "product_tax_rate": "0",
                    "product_hsn_code": "00000",
                    "product_discount": "0",
                }
                for line in request.lines
            ],
            "shipment_length": _num(parcel.length_cm),
            "shipment_width": _num(parcel.width_cm),
            "shipment_height": _num(parcel.height_cm),
            "weight": _num(parcel.weight_kg),
            "shipping_charges": _num(request.shipping_charges),
            "giftwrap_charges": "0",
            "transaction_charges": "0",
            "total_discount": _num(request.discount),
            "first_attemp_discount": "0",
            "cod_charges": "0",
            "advance_amount": "0" if request.cash_on_delivery else total,
            "cod_amount": total if request.cash_on_delivery else "0",
            "payment_mode": "COD" if request.cash_on_delivery else "PREPAID",
            "reseller_name": "",
            "eway_bill_number": "",
            "gst_number": "",
            "return_address_id": self._settings.return_address_id or self._settings.pickup_address_id,
        }

    def track_shipment(self, awb_number: str) -> CarrierResult:
        def parse(data, _body):
            entry = data.get(str(awb_number)) if isinstance(data, dict) else None
            if not isinstance(entry, dict):
                raise UnexpectedResponse(f"no tracking entry for {awb_number}")
            if entry.get("message") and str(entry["message"]).lower() != "success" and not entry.get("current_status"):
                return CarrierFailed(str(entry["message"]))

            raw_status = entry.get("current_status")
            status, recognized = normalize_status(raw_status)
            last_scan = entry.get("last_scan_details") or {}
            return CarrierOk(
                TrackingSnapshot(
                    awb_number=str(awb_number),
                    status=status,
                    raw_status=raw_status,
                    recognized=recognized,
                    location=last_scan.get("scan_location"),
                    message=last_scan.get("status_remark") or raw_status,
                    estimated_delivery=entry.get("expected_delivery_date"),
                )
            )

        return self._call("/order/track.json", {"awb_number_list": awb_number}, parse)

    def cancel_shipment(self, awb_numbers: list[str]) -> CarrierResult:
        def parse(data, _body):
            entries = [entry for entry in data.values() if isinstance(entry, dict)] if isinstance(data, dict) else []
            refused = [entry for entry in entries if not _is_success(entry)]
            if refused:
                return CarrierFailed(_message(refused[0]))
            return CarrierOk(list(awb_numbers))

        return self._call("/order/cancel.json", {"awb_numbers": ",".join(awb_numbers)}, parse)

    def get_label(self, awb_numbers: list[str], page_size: str | None = None) -> CarrierResult:
        payload = {
            "awb_numbers": ",".join(awb_numbers),
            "page_size": page_size or self._settings.label_page_size,
            "display_cod_prepaid": "",
            "display_shipper_mobile": "",
            "display_shipper_address": "",
        }
        return self._call("/shipping/label.json", payload, _document)

    def generate_manifest(self, awb_numbers: list[str]) -> CarrierResult:
        return self._call("/shipping/manifest.json", {"awb_numbers": ",".join(awb_numbers)}, _document)


def _document(data, body) -> CarrierResult:
    url = body.get("file_name") or (data.get("file_name") if isinstance(data, dict) else None)
    if not url:
        raise UnexpectedResponse("no document URL")
    return CarrierOk(Document(url=url))
