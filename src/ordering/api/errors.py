"""HTTP mapping for checkout failures Protean's own handlers do not cover.

Validation and not-found errors are mapped by
``protean.integrations.fastapi.register_exception_handlers``; this module adds
the payment and carrier failures.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ordering.errors import CarrierRequestFailed, CheckoutUnavailable, PaymentVerificationFailed

logger = structlog.get_logger(__name__)


async def _payment_verification_failed(request: Request, exc: PaymentVerificationFailed) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": {"payment": [f"Payment verification failed: {exc.reason}"]}},
    )


async def _checkout_unavailable(request: Request, exc: CheckoutUnavailable) -> JSONResponse:
    logger.warning("Checkout unavailable", path=request.url.path, reason=exc.reason)
    return JSONResponse(
        status_code=502,
        content={"error": {"payment": ["Payment provider is unavailable, please retry"]}},
    )


async def _carrier_request_failed(request: Request, exc: CarrierRequestFailed) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={"error": {"carrier": [f"{exc.operation} failed: {exc.reason}"]}},
    )


def register_checkout_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PaymentVerificationFailed, _payment_verification_failed)
    app.add_exception_handler(CheckoutUnavailable, _checkout_unavailable)
    app.add_exception_handler(CarrierRequestFailed, _carrier_request_failed)
