"""Tests for the configurable fake payment gateway."""

import pytest
from payments.gateway import FakeGateway, PaymentGatewayError, build_gateway


class TestFakeGateway:
    def test_opens_order(self):
        gateway = FakeGateway()
        external = gateway.create_external_order(44000, "INR", "receipt_WC-1", {"order_number": "WC-1"})
        assert external.external_order_id.startswith("order_fake_")
        assert external.amount_minor == 44000
        assert gateway.opened_orders[0]["notes"] == {"order_number": "WC-1"}

    def test_configured_failure_raises(self):
        gateway = FakeGateway()
        gateway.configure(should_succeed=False, failure_reason="Gateway down")
        with pytest.raises(PaymentGatewayError, match="Gateway down"):
            gateway.create_external_order(44000, "INR", "receipt_WC-1")

    def test_verifies_own_signatures(self):
        gateway = FakeGateway(key_secret="s3cr3t")
        signature = gateway.sign("order_1", "pay_1")
        assert gateway.verify_payment("order_1", "pay_1", signature) is True
        assert gateway.verify_payment("order_1", "pay_2", signature) is False


class TestBuildGateway:
    def test_default_is_fake(self, monkeypatch):
        monkeypatch.delenv("PAYMENT_GATEWAY", raising=False)
        assert isinstance(build_gateway(), FakeGateway)

    def test_razorpay_needs_credentials(self, monkeypatch):
        monkeypatch.delenv("RAZORPAY_KEY_ID", raising=False)
        monkeypatch.delenv("RAZORPAY_KEY_SECRET", raising=False)
        with pytest.raises(ValueError):
            build_gateway("razorpay")

    def test_unknown_adapter(self):
        with pytest.raises(ValueError):
            build_gateway("paypal")
