"""Post-payment side effects.

Two handlers react to PaymentConfirmed. Neither does the work itself: each
queues its job on the background worker, so the payment confirmation goes
back to the customer without waiting for the carrier or the mail server.

- ``book_shipment`` books the shipment
- ``send_order_emails`` emails the store and the customer

The jobs run independently. A failure in either is logged and leaves the
paid order intact so the step can be retried through
``OrderLifecycle.create_shipment`` or ``notify_order_confirmed``.
"""

import structlog
from protean.utils.mixins import handle

from ordering.domain import ordering
from ordering.errors import CarrierRequestFailed
from ordering.order.events import PaymentConfirmed
from ordering.order.order import Order
from ordering.wiring import current_lifecycle, current_worker

logger = structlog.get_logger(__name__)


def book_shipment(order_id: str, lifecycle) -> None:
    try:
        order = lifecycle.create_shipment(order_id)
    except CarrierRequestFailed as e:
        logger.error(
            "Shipment booking failed after payment, retry required",
            order_id=order_id,
            error=e.reason,
        )
        return
    except Exception as e:
        logger.exception("Unexpected error while booking shipment", order_id=order_id, error=str(e))
        return
    logger.info("Shipment booked after payment", order_id=order_id, awb_number=order.shipment.awb_number)


def send_order_emails(order_id: str, lifecycle) -> None:
    try:
        results = lifecycle.notify_order_confirmed(order_id)
    except Exception as e:
        logger.exception("Order confirmation emails failed", order_id=order_id, error=str(e))
        return

    failed = [result.recipient for result in results if not result.sent]
    if failed:
        logger.warning("Some order emails were not delivered", order_id=order_id, recipients=failed)


def _schedule(event: PaymentConfirmed, job_name: str, job) -> None:
    order_id = str(event.order_id)
    lifecycle = current_lifecycle()
    worker = current_worker()
    if lifecycle is None or worker is None:
        logger.warning(
            "Post-payment job not scheduled, checkout is not fully wired",
            job=job_name,
            order_id=order_id,
            lifecycle=lifecycle is not None,
            worker=worker is not None,
        )
        return
    worker.submit(job_name, job, order_id, lifecycle)


@ordering.event_handler(part_of=Order)
class ShipmentBookingHandler:
    """Queues shipment booking once payment is proven."""

    @handle(PaymentConfirmed)
    def on_payment_confirmed(self, event: PaymentConfirmed) -> None:
        _schedule(event, "book_shipment", book_shipment)


@ordering.event_handler(part_of=Order)
class OrderEmailHandler:
    """Queues the admin and customer confirmation emails."""

    @handle(PaymentConfirmed)
    def on_payment_confirmed(self, event: PaymentConfirmed) -> None:
        _schedule(event, "send_order_emails", send_order_emails)
