"""Holds the OrderLifecycle and BackgroundWorker the process was assembled with.

The composition root (``app.py`` or a test fixture) builds an
``OrderLifecycle`` from concrete adapters and installs it here together with
the worker that runs post-payment jobs. Event handlers look both up at
dispatch time because Protean instantiates them itself.
"""

import structlog

logger = structlog.get_logger(__name__)

_lifecycle = None
_worker = None


def install(lifecycle, worker=None) -> None:
    global _lifecycle, _worker
    _lifecycle = lifecycle
    _worker = worker
    logger.info(
        "Order lifecycle installed",
        gateway=type(lifecycle.gateway).__name__,
        carrier=type(lifecycle.carrier).__name__,
        background_worker=worker is not None,
    )


def current_lifecycle():
    """Return the installed lifecycle, or None when nothing was installed."""
    return _lifecycle


def current_worker():
    return _worker


def reset() -> None:
    global _lifecycle, _worker
    _lifecycle = None
    _worker = None


def build_lifecycle(catalog=None, gateway=None, carrier=None, mailer=None, settings=None):
    """Assemble an OrderLifecycle from the adapters named in the environment.

    ``CATALOG_FILE`` points at a JSON product list for the in-memory catalog;
    without it the catalog starts empty.
    """
    import os

    from catalogue.catalog import InMemoryCatalog
    from fulfillment.carrier import build_carrier
    from notifications.channel import build_mailer
    from notifications.notifier import OrderNotifier
    from ordering.order.lifecycle import OrderLifecycle
    from payments.gateway import build_gateway

    if catalog is None:
        catalog_file = os.environ.get("CATALOG_FILE")
        catalog = InMemoryCatalog.from_json(catalog_file) if catalog_file else InMemoryCatalog()

    return OrderLifecycle(
        catalog=catalog,
        gateway=gateway or build_gateway(),
        carrier=carrier or build_carrier(),
        notifier=OrderNotifier(mailer or build_mailer()),
        settings=settings,
    )
