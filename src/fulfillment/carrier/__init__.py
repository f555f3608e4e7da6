"""Carrier adapter abstraction: pluggable shipping carrier integration."""

import os

from fulfillment.carrier.config import IThinkSettings
from fulfillment.carrier.fake_adapter import FakeCarrier
from fulfillment.carrier.port import CarrierPort


def build_carrier(adapter: str | None = None) -> CarrierPort:
    """Construct the carrier adapter named by ``CARRIER_ADAPTER``.

    ``fake`` (default) for development and tests, ``ithink`` for
    iThink Logistics with credentials from ``ITHINK_*``.
    """
    adapter = adapter or os.environ.get("CARRIER_ADAPTER", "fake")
    if adapter == "fake":
        return FakeCarrier()
    if adapter == "ithink":
        from fulfillment.carrier.ithink_adapter import IThinkCarrier

        return IThinkCarrier(IThinkSettings())
    raise ValueError(f"Unknown carrier adapter: {adapter}")
