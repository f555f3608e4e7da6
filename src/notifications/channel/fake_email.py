"""Fake email adapter: records sent emails for testing."""

from uuid import uuid4

from notifications.channel.email_port import EmailPort, EmailReceipt


class FakeEmailAdapter(EmailPort):
    """Email adapter that records messages in memory for test assertions.

    ``failing_recipients`` makes delivery fail for specific addresses only,
    so one recipient's failure can be observed next to another's success.
    """

    def __init__(self):
        self.sent_emails: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"
        self.failing_recipients: set[str] = set()

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Email delivery failed",
        failing_recipients: set[str] | None = None,
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.failing_recipients = set(failing_recipients or ())

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> EmailReceipt:
        if not self.should_succeed or to in self.failing_recipients:
            return EmailReceipt.refused(self.failure_reason)

        message_id = f"email-{uuid4().hex[:12]}"
        self.sent_emails.append(
            {
                "message_id": message_id,
                "to": to,
                "subject": subject,
                "body": body,
                "html_body": html_body,
            }
        )
        return EmailReceipt.accepted(message_id)

    def sent_to(self, address: str) -> list[dict]:
        return [email for email in self.sent_emails if email["to"] == address]
