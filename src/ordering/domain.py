"""Ordering bounded context: checkout, coupons and the order lifecycle.

Orders are stored as CQRS aggregates. Events are processed synchronously in
every environment; the PaymentConfirmed handlers only queue their work on the
background worker, so the slow post-payment steps still run after the
response.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
