"""Razorpay payment gateway adapter.

Orders are opened with ``POST /v1/orders`` (HTTP basic auth with the key id
and secret). Payments are proven by the checkout signature, which is
recomputed locally from the key secret; no network call is involved.
"""

import httpx
import structlog

from payments.gateway.config import RazorpaySettings
from payments.gateway.port import ExternalOrder, PaymentGateway, PaymentGatewayError
from payments.gateway.signature import verify_signature

logger = structlog.get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    """Production Razorpay adapter over its REST API."""

    def __init__(self, settings: RazorpaySettings, client: httpx.Client | None = None) -> None:
        if not settings.key_id or not settings.key_secret:
            raise ValueError("Razorpay key id and key secret are required")
        self.key_id = settings.key_id
        self._key_secret = settings.key_secret
        self._client = client or httpx.Client(
            base_url=settings.base_url,
            auth=(settings.key_id, settings.key_secret),
            timeout=httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout),
        )

    def close(self) -> None:
        self._client.close()

    def create_external_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict | None = None,
    ) -> ExternalOrder:
        if not isinstance(amount_minor, int) or amount_minor <= 0:
            raise PaymentGatewayError(f"Amount must be a positive integer in minor units, got {amount_minor!r}")

        payload = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": {key: str(value) for key, value in (notes or {}).items()},
        }
        try:
            response = self._client.post("/v1/orders", json=payload)
        except httpx.TimeoutException as exc:
            logger.error("Razorpay order creation timed out", receipt=receipt)
            raise PaymentGatewayError("Payment gateway timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("Razorpay order creation failed", receipt=receipt, error=str(exc))
            raise PaymentGatewayError(f"Payment gateway unreachable: {exc}") from exc

        if response.status_code >= 400:
            description = _error_description(response)
            logger.error(
                "Razorpay rejected order creation",
                receipt=receipt,
                status_code=response.status_code,
                description=description,
            )
            raise PaymentGatewayError(description, status_code=response.status_code)

        try:
            body = response.json()
            external = ExternalOrder(
                external_order_id=str(body["id"]),
                amount_minor=int(body.get("amount", amount_minor)),
                currency=body.get("currency", currency),
                receipt=body.get("receipt", receipt),
                status=body.get("status", "created"),
                raw=body,
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error(
                "Razorpay returned an unreadable order",
                receipt=receipt,
                status_code=response.status_code,
                error=repr(exc),
            )
            raise PaymentGatewayError("Unexpected response from gateway", status_code=response.status_code) from exc

        logger.info("Razorpay order created", external_order_id=external.external_order_id, receipt=receipt)
        return external

    def verify_payment(self, external_order_id: str, external_payment_id: str, signature: str) -> bool:
        return verify_signature(external_order_id, external_payment_id, signature, self._key_secret)


def _error_description(response: httpx.Response) -> str:
    try:
        error = response.json().get("error") or {}
    except (ValueError, AttributeError):
        return f"HTTP {response.status_code}"
    return error.get("description") or f"HTTP {response.status_code}"
