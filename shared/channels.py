"""
Email gateway for the CRM notification service.

Consumers send mail through an EmailGateway and never talk to a transport
directly. Two gateways exist:
- MockEmailGateway records messages in memory (tests, demos, local runs)
- SmtpEmailGateway delivers through an SMTP server with smtplib

Design decisions:
- A failed send raises EmailDeliveryError; the caller decides whether to
  log-and-drop or surface the failure
- Every attempt is logged with recipient and subject
- Templates are rendered here so consumers only pass data
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from shared.config import Settings
from shared.models import utcnow
from shared.templates import EmailKind, render_email

logger = logging.getLogger("email_gateway")


class EmailDeliveryError(RuntimeError):
    """Raised when an email could not be handed to the transport."""


@dataclass
class SentEmail:
    """
    Result of an email send attempt.

    Captures success/failure and content for debugging and testing.
    """
    to: str
    subject: str
    body: str
    success: bool = True
    timestamp: datetime = field(default_factory=utcnow)
    error: Optional[str] = None

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"{status} EMAIL to {self.to}: {self.subject}"


class EmailGateway(ABC):
    """
    Outbound mail contract used by the consumers and the API.

    Subclasses implement send(); the templated helpers build on it.
    """

    def __init__(self, system_name: str = "CRM System"):
        self.system_name = system_name

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> SentEmail:
        """
        Send a plain text email.

        Raises:
            EmailDeliveryError: If the transport rejected or failed the send
        """

    def send_welcome_email(self, to: str, username: str, full_name: str) -> SentEmail:
        """Send the account welcome email to a newly registered user."""
        logger.info(f"Sending welcome email to: {to}")
        subject, body = render_email(
            EmailKind.WELCOME,
            system_name=self.system_name,
            username=username,
            full_name=full_name,
        )
        return self.send(to, subject, body)

    def send_notification_email(self, to: str, subject: str, content: str) -> SentEmail:
        """Send a free-form notification wrapped in the standard footer."""
        subject, body = render_email(
            EmailKind.NOTIFICATION,
            system_name=self.system_name,
            subject=subject,
            content=content,
        )
        return self.send(to, subject, body)


class MockEmailGateway(EmailGateway):
    """
    In-memory email gateway.

    Logs sends and tracks them for test assertions. Can be switched into a
    failing mode to exercise error handling.
    """

    def __init__(self, fail: bool = False, system_name: str = "CRM System"):
        """
        Args:
            fail: When True every send raises EmailDeliveryError.
        """
        super().__init__(system_name=system_name)
        self.fail = fail
        self.sent_messages: list[SentEmail] = []

    def send(self, to: str, subject: str, body: str) -> SentEmail:
        if self.fail:
            result = SentEmail(
                to=to,
                subject=subject,
                body=body,
                success=False,
                error="Simulated email delivery failure",
            )
            self.sent_messages.append(result)
            logger.error(f"[EMAIL FAILED] To: {to} | Subject: {subject} | Error: {result.error}")
            raise EmailDeliveryError(f"Failed to send email to {to}: {result.error}")

        result = SentEmail(to=to, subject=subject, body=body)
        self.sent_messages.append(result)
        logger.info(f"[EMAIL] To: {to} | Subject: {subject}")
        logger.debug(f"[EMAIL BODY] {body}")
        return result

    def get_sent_count(self) -> int:
        """Number of successful sends."""
        return len(self.get_successful_sends())

    def get_successful_sends(self) -> list[SentEmail]:
        return [m for m in self.sent_messages if m.success]

    def find_message_to(self, recipient: str) -> Optional[SentEmail]:
        """Find the first successful message sent to a recipient."""
        for msg in self.sent_messages:
            if msg.to == recipient and msg.success:
                return msg
        return None

    def clear_history(self) -> None:
        self.sent_messages.clear()


class SmtpEmailGateway(EmailGateway):
    """Email gateway backed by an SMTP server."""

    def __init__(self, settings: Settings):
        super().__init__(system_name=settings.email_from_name)
        self.settings = settings

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        if s.smtp_use_ssl:
            server = smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout)
        else:
            server = smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout)
            if s.smtp_starttls:
                server.starttls()
        if s.smtp_username and s.smtp_password:
            server.login(s.smtp_username, s.smtp_password)
        return server

    def send(self, to: str, subject: str, body: str) -> SentEmail:
        s = self.settings
        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = formataddr((s.email_from_name, s.email_from_address))
        msg["To"] = to
        msg["Subject"] = subject

        try:
            server = self._connect()
            try:
                server.sendmail(s.email_from_address, [to], msg.as_string())
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to: {to}: {e}")
            raise EmailDeliveryError(f"Failed to send email to {to}") from e

        logger.info(f"Email sent successfully to: {to}")
        return SentEmail(to=to, subject=subject, body=body)


def create_email_gateway(settings: Settings) -> EmailGateway:
    """Build the gateway selected by settings.email_backend."""
    if settings.email_backend == "smtp":
        return SmtpEmailGateway(settings)
    return MockEmailGateway(system_name=settings.email_from_name)
