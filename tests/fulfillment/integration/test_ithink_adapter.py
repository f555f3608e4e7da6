"""iThink adapter against a mocked HTTP transport."""

import json
from datetime import UTC, datetime

import httpx
import pytest
from fulfillment.carrier.config import IThinkSettings
from fulfillment.carrier.ithink_adapter import IThinkCarrier, format_date, provider_reference
from fulfillment.carrier.port import Parcel, Recipient, ShipmentLine, ShipmentRequest
from fulfillment.carrier.results import CarrierFailed, CarrierOk, CarrierTransportError
from fulfillment.carrier.status import ShipmentStatus

SETTINGS = IThinkSettings(
    access_token="tok",
    secret_key="key",
    pickup_address_id="pick-1",
    logistics="Delhivery",
)


def _carrier(handler):
    client = httpx.Client(base_url=SETTINGS.api_url, transport=httpx.MockTransport(handler))
    return IThinkCarrier(SETTINGS, client=client)


def _replying(body, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
        return httpx.Response(status_code, json=body)

    return handler


def _request():
    return ShipmentRequest(
        order_number="WC-20260301-0007",
        order_date=datetime(2026, 3, 1, 10, 30, tzinfo=UTC),
        recipient=Recipient(
            name="Asha Rao",
            phone="9876543210",
            street="12 Hill Road",
            city="Mumbai",
            state="Maharashtra",
            postal_code="400050",
            email="asha@example.com",
        ),
        lines=[ShipmentLine(name="Makhana Peri Peri (Pack of 2)", sku="MKH-PP", quantity=1, price=190)],
        total_amount=265,
        shipping_charges=75,
    )


class TestHelpers:
    def test_reference_keeps_order_number_prefix(self):
        at = datetime(2026, 3, 1, tzinfo=UTC)
        reference = provider_reference("WC-1", at)
        assert reference == f"WC-1-{int(at.timestamp() * 1000)}"

    def test_references_differ_between_attempts(self):
        first = provider_reference("WC-1", datetime(2026, 3, 1, 0, 0, 0, tzinfo=UTC))
        second = provider_reference("WC-1", datetime(2026, 3, 1, 0, 0, 1, tzinfo=UTC))
        assert first != second

    def test_date_format(self):
        assert format_date(datetime(2026, 3, 1)) == "01-03-2026"

    def test_missing_credentials_rejected(self):
        with pytest.raises(ValueError):
            IThinkCarrier(IThinkSettings(access_token="", secret_key=""))


class TestEnvelope:
    def test_credentials_travel_inside_data(self):
        seen = {}
        carrier = _carrier(_replying({"status": "success", "data": {"400050": {"Delhivery": {}}}}, seen=seen))

        carrier.check_serviceability("400050")

        assert seen["path"].endswith("/pincode/check.json")
        assert seen["body"]["data"]["access_token"] == "tok"
        assert seen["body"]["data"]["secret_key"] == "key"
        assert seen["body"]["data"]["pincode"] == "400050"


class TestServiceability:
    def test_partners_listed(self):
        body = {"status": "success", "data": {"400050": {"Delhivery": {"prepaid": "Y"}, "Xpressbees": {}}}}
        result = _carrier(_replying(body)).check_serviceability("400050")
        assert result.data.serviceable is True
        assert set(result.data.partners) == {"Delhivery", "Xpressbees"}

    def test_no_partners_means_unserviceable(self):
        result = _carrier(_replying({"status": "success", "data": {"999999": {}}})).check_serviceability("999999")
        assert result.data.serviceable is False


class TestRate:
    def test_cheapest_positive_rate_wins(self):
        seen = {}
        body = {
            "status": "success",
            "data": [
                {"logistic_name": "Delhivery", "rate": "82.5"},
                {"logistic_name": "Xpressbees", "rate": "64"},
                {"logistic_name": "Broken", "rate": "0"},
                {"logistic_name": "Garbage", "rate": "n/a"},
            ],
        }
        result = _carrier(_replying(body, seen=seen)).get_rate("400067", "400050", 0.5, Parcel(), False, 190)

        assert result.data.rate == 64.0
        assert result.data.partner == "Xpressbees"
        assert seen["body"]["data"]["payment_method"] == "prepaid"
        assert seen["body"]["data"]["shipping_weight_kg"] == "0.5"

    def test_no_usable_rate(self):
        body = {"status": "success", "data": [{"logistic_name": "Delhivery", "rate": "0"}]}
        result = _carrier(_replying(body)).get_rate("400067", "400050", 0.5, Parcel(), True, 190)
        assert isinstance(result, CarrierFailed)


class TestCreateShipment:
    def test_waybill_from_positional_entry(self):
        seen = {}
        body = {
            "status": "success",
            "data": {"1": {"status": "Success", "waybill": "1333110020164", "refnum": "WC-ref", "logistic_name": "Delhivery"}},
        }
        result = _carrier(_replying(body, seen=seen)).create_shipment(_request())

        assert isinstance(result, CarrierOk)
        assert result.data.awb_number == "1333110020164"
        assert result.data.carrier_name == "Delhivery"

        shipment = seen["body"]["data"]["shipments"][0]
        assert shipment["order"].startswith("WC-20260301-0007-")
        assert shipment["order_date"] == "01-03-2026"
        assert shipment["payment_mode"] == "PREPAID"
        assert shipment["advance_amount"] == "265"
        assert shipment["cod_amount"] == "0"
        assert shipment["products"][0]["product_quantity"] == "1"
        assert seen["body"]["data"]["pickup_address_id"] == "pick-1"

    def test_refused_booking(self):
        body = {"status": "success", "data": {"1": {"status": "error", "remark": "Duplicate order id"}}}
        result = _carrier(_replying(body)).create_shipment(_request())
        assert isinstance(result, CarrierFailed)
        assert result.message == "Duplicate order id"

    def test_missing_waybill_is_failure(self):
        body = {"status": "success", "data": {"1": {"status": "success"}}}
        result = _carrier(_replying(body)).create_shipment(_request())
        assert isinstance(result, CarrierFailed)


class TestTracking:
    def test_parses_entry_keyed_by_awb(self):
        body = {
            "status_code": 200,
            "data": {
                "1333110020164": {
                    "current_status": "Out For Delivery",
                    "last_scan_details": {"scan_location": "Bandra DC", "status_remark": "Out for delivery"},
                    "expected_delivery_date": "03-03-2026",
                }
            },
        }
        result = _carrier(_replying(body)).track_shipment("1333110020164")

        snapshot = result.data
        assert snapshot.status is ShipmentStatus.OUT_FOR_DELIVERY
        assert snapshot.recognized is True
        assert snapshot.location == "Bandra DC"
        assert snapshot.message == "Out for delivery"

    def test_unrecognized_status_flagged(self):
        body = {"status": True, "data": {"AWB1": {"current_status": "Held at customs"}}}
        snapshot = _carrier(_replying(body)).track_shipment("AWB1").data
        assert snapshot.status is ShipmentStatus.IN_TRANSIT
        assert snapshot.recognized is False
        assert snapshot.raw_status == "Held at customs"

    def test_unknown_awb(self):
        body = {"status": True, "data": {"AWB1": {"message": "Invalid AWB"}}}
        result = _carrier(_replying(body)).track_shipment("AWB1")
        assert isinstance(result, CarrierFailed)
        assert result.message == "Invalid AWB"


class TestCancelAndDocuments:
    def test_cancel(self):
        seen = {}
        body = {"status": "success", "data": {"1": {"status": "Success", "remark": "Cancelled"}}}
        result = _carrier(_replying(body, seen=seen)).cancel_shipment(["A1", "A2"])
        assert result.data == ["A1", "A2"]
        assert seen["body"]["data"]["awb_numbers"] == "A1,A2"

    def test_cancel_refused(self):
        body = {"status": "success", "data": {"1": {"status": "error", "remark": "Already picked up"}}}
        result = _carrier(_replying(body)).cancel_shipment(["A1"])
        assert isinstance(result, CarrierFailed)

    def test_label_url(self):
        seen = {}
        body = {"status": "success", "file_name": "https://cdn.example.com/label.pdf"}
        result = _carrier(_replying(body, seen=seen)).get_label(["A1"])
        assert result.data.url == "https://cdn.example.com/label.pdf"
        assert seen["body"]["data"]["page_size"] == "A4"

    def test_manifest_url(self):
        body = {"status": "success", "file_name": "https://cdn.example.com/manifest.pdf"}
        result = _carrier(_replying(body)).generate_manifest(["A1"])
        assert result.data.url == "https://cdn.example.com/manifest.pdf"

    def test_document_without_url(self):
        result = _carrier(_replying({"status": "success"})).get_label(["A1"])
        assert isinstance(result, CarrierFailed)


class TestFailureModes:
    def test_status_false_is_refusal(self):
        body = {"status": False, "message": "Invalid access token"}
        result = _carrier(_replying(body)).check_serviceability("400050")
        assert isinstance(result, CarrierFailed)
        assert result.message == "Invalid access token"

    def test_server_error_is_transport_error(self):
        result = _carrier(_replying({"message": "oops"}, status_code=503)).check_serviceability("400050")
        assert isinstance(result, CarrierTransportError)

    def test_timeout_is_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        result = _carrier(handler).track_shipment("A1")
        assert isinstance(result, CarrierTransportError)

    def test_non_json_is_transport_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        result = _carrier(handler).track_shipment("A1")
        assert isinstance(result, CarrierTransportError)
