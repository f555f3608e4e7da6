"""Order notification dispatch.

OrderNotifier renders a template and hands it to the email channel. Every
recipient is attempted on its own; a failed delivery is reported in the
returned result and logged, never raised.
"""

from dataclasses import dataclass

import structlog

from notifications.channel.email_port import EmailPort
from notifications.templates import get_template

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    recipient: str
    sent: bool
    message_id: str | None = None
    error: str | None = None


class OrderNotifier:
    def __init__(self, mailer: EmailPort) -> None:
        self.mailer = mailer

    def send(self, kind: str, context: dict, recipient: str) -> DeliveryResult:
        content = get_template(kind).render(context)
        try:
            receipt = self.mailer.send(to=recipient, subject=content["subject"], body=content["body"])
        except Exception as exc:
            logger.error(
                "Email dispatch raised",
                kind=kind,
                recipient=recipient,
                order_number=context.get("order_number"),
                error=str(exc),
            )
            return DeliveryResult(recipient=recipient, sent=False, error=str(exc))

        if not receipt.delivered:
            logger.warning(
                "Email dispatch failed",
                kind=kind,
                recipient=recipient,
                order_number=context.get("order_number"),
                error=receipt.error,
            )
            return DeliveryResult(recipient=recipient, sent=False, error=receipt.error)

        logger.info("Email dispatched", kind=kind, recipient=recipient, order_number=context.get("order_number"))
        return DeliveryResult(recipient=recipient, sent=True, message_id=receipt.message_id)

    def send_order_confirmation(self, context: dict, recipient: str) -> DeliveryResult:
        return self.send("order_confirmation", context, recipient)

    def send_admin_notification(self, context: dict, recipient: str) -> DeliveryResult:
        return self.send("admin_new_order", context, recipient)
