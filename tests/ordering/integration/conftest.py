import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from ordering.api import (
    admin_router,
    coupon_router,
    order_router,
    register_checkout_exception_handlers,
    shipping_router,
)
from ordering.domain import ordering
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def api(lifecycle):
    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with ordering.domain_context():
            return await call_next(request)

    app.include_router(order_router)
    app.include_router(coupon_router)
    app.include_router(shipping_router)
    app.include_router(admin_router)
    register_exception_handlers(app)
    register_checkout_exception_handlers(app)
    return app


@pytest.fixture()
def client(api):
    return TestClient(api)
