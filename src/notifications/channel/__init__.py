"""Email channel adapters.

build_mailer() constructs the adapter named by ``EMAIL_ADAPTER``: ``fake``
(default) records messages in memory, ``smtp`` delivers through the server
configured by ``SMTP_*``.
"""

import os

from notifications.channel.email_port import EmailPort, EmailReceipt
from notifications.channel.fake_email import FakeEmailAdapter


def build_mailer(adapter: str | None = None) -> EmailPort:
    adapter = adapter or os.environ.get("EMAIL_ADAPTER", "fake")
    if adapter == "fake":
        return FakeEmailAdapter()
    if adapter == "smtp":
        from notifications.channel.smtp_email import SmtpEmailAdapter, SmtpSettings

        return SmtpEmailAdapter(SmtpSettings())
    raise ValueError(f"Unknown email adapter: {adapter}")


__all__ = ["EmailPort", "EmailReceipt", "FakeEmailAdapter", "build_mailer"]
