"""Crunchstream checkout API.

Single-domain web server for checkout, coupons, shipping quotes and order
tracking. Each request under one of the checkout prefixes runs inside the
ordering domain context. Route handlers are plain functions, so FastAPI runs
them in its threadpool and a slow provider call only holds up its own
request.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# Events are processed synchronously; post-payment jobs go to the background
# worker installed next to the lifecycle and run after the response.
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering import wiring
from ordering.domain import ordering
from ordering.utils.logging import configure_logging
from ordering.worker import BackgroundWorker

configure_logging()
ordering.init()
worker = BackgroundWorker(ordering)
wiring.install(wiring.build_lifecycle(), worker)

_ROUTE_PREFIXES = ("/orders", "/coupons", "/shipping", "/admin")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let queued shipment bookings and emails finish before exiting
    worker.shutdown(wait_for_jobs=True)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Crunchstream Checkout API",
    description="Order lifecycle, coupons and fulfillment orchestration",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ordering domain context for checkout requests."""
    if request.url.path.startswith(_ROUTE_PREFIXES):
        with ordering.domain_context():
            return await call_next(request)
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from ordering.api import (  # noqa: E402
    admin_router,
    coupon_router,
    order_router,
    register_checkout_exception_handlers,
    shipping_router,
)

app.include_router(order_router)
app.include_router(coupon_router)
app.include_router(shipping_router)
app.include_router(admin_router)
register_exception_handlers(app)
register_checkout_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    lifecycle = wiring.current_lifecycle()
    return JSONResponse(
        content={
            "status": "ok",
            "domain": ordering.name,
            "gateway": type(lifecycle.gateway).__name__,
            "carrier": type(lifecycle.carrier).__name__,
            "pending_jobs": worker.pending,
        }
    )
