"""Carrier status normalization.

iThink reports free-text statuses that differ between courier partners
("Manifested", "Pickup Done", "OFD", "RTO In Transit", ...). They are folded
into the order's shipping statuses through a fixed table. Anything not in
the table is treated as still in transit and flagged as unrecognized.
"""

import re
from enum import Enum


class ShipmentStatus(Enum):
    PENDING = "pending"
    CREATED = "created"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


_STATUS_TABLE = {
    "pending": ShipmentStatus.PENDING,
    "not picked": ShipmentStatus.PENDING,
    "pickup pending": ShipmentStatus.PENDING,
    "created": ShipmentStatus.CREATED,
    "booked": ShipmentStatus.CREATED,
    "manifested": ShipmentStatus.CREATED,
    "pickup scheduled": ShipmentStatus.CREATED,
    "picked up": ShipmentStatus.PICKED_UP,
    "picked": ShipmentStatus.PICKED_UP,
    "pickup done": ShipmentStatus.PICKED_UP,
    "in transit": ShipmentStatus.IN_TRANSIT,
    "shipped": ShipmentStatus.IN_TRANSIT,
    "dispatched": ShipmentStatus.IN_TRANSIT,
    "reached at destination": ShipmentStatus.IN_TRANSIT,
    "reached destination hub": ShipmentStatus.IN_TRANSIT,
    "out for delivery": ShipmentStatus.OUT_FOR_DELIVERY,
    "ofd": ShipmentStatus.OUT_FOR_DELIVERY,
    "delivered": ShipmentStatus.DELIVERED,
    "undelivered": ShipmentStatus.FAILED,
    "delivery failed": ShipmentStatus.FAILED,
    "failed": ShipmentStatus.FAILED,
    "lost": ShipmentStatus.FAILED,
    "damaged": ShipmentStatus.FAILED,
    "rto": ShipmentStatus.FAILED,
    "rto in transit": ShipmentStatus.FAILED,
    "rto delivered": ShipmentStatus.FAILED,
    "cancelled": ShipmentStatus.CANCELLED,
    "canceled": ShipmentStatus.CANCELLED,
}

FALLBACK_STATUS = ShipmentStatus.IN_TRANSIT


def _canonical(raw: str) -> str:
    return re.sub(r"[\s_\-]+", " ", raw.strip().lower())


def normalize_status(raw: str | None) -> tuple[ShipmentStatus, bool]:
    """Map a carrier status to a ShipmentStatus.

    Returns the status and whether the raw text was recognized.
    """
    if not raw:
        return FALLBACK_STATUS, False
    status = _STATUS_TABLE.get(_canonical(raw))
    if status is None:
        return FALLBACK_STATUS, False
    return status, True
