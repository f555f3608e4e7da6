"""Outbound email channel.

Adapters deliver one rendered message to one address and report the outcome
as an ``EmailReceipt``. Delivery problems are part of the receipt; adapters
raise only for misconfiguration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmailReceipt:
    delivered: bool
    message_id: str | None = None
    error: str | None = None

    @classmethod
    def accepted(cls, message_id: str) -> "EmailReceipt":
        return cls(delivered=True, message_id=message_id)

    @classmethod
    def refused(cls, error: str) -> "EmailReceipt":
        return cls(delivered=False, error=error)


class EmailPort(ABC):
    @abstractmethod
    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> EmailReceipt:
        """Hand one message for ``to`` to the mail transport."""
        ...
