"""Email notification sink — renders the channel template and sends it over SMTP.

The subject and body come from ``NotificationChannel.subject_template``
and ``body_template``, filled with ``{job_name, build_id, status,
run_url, detail}``.  Delivery goes through ``smtplib`` unless a
``transport`` callable is injected (tests, or a relay client).
"""

from __future__ import annotations

import logging
import smtplib
from collections.abc import Callable
from email.message import EmailMessage

from canaryforge.errors import NotifyError
from canaryforge.models.config import NotificationChannel
from canaryforge.models.notifications import RunNotification

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 30

Transport = Callable[[EmailMessage], None]


class EmailSink:
    """Sends one email per run outcome.

    Parameters
    ----------
    channel:
        Recipient, sender, SMTP server and templates.
    transport:
        Optional delivery callable.  Defaults to SMTP via ``channel``.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        transport: Transport | None = None,
    ) -> None:
        if not channel.recipient:
            raise ValueError("EmailSink requires a recipient address")
        self._channel = channel
        self._transport = transport or self._send_smtp

    @property
    def sink_name(self) -> str:
        return "email"

    def accept(self, notification: RunNotification) -> None:
        message = self.render(notification)
        self._transport(message)
        logger.info(
            "Sent %s notification for build #%d to %s",
            notification.status,
            notification.build_id,
            self._channel.recipient,
        )

    def render(self, notification: RunNotification) -> EmailMessage:
        """Build the email for *notification* from the channel templates."""
        fields = notification.template_fields()
        try:
            subject = self._channel.subject_template.format(**fields)
            body = self._channel.body_template.format(**fields)
        except (KeyError, IndexError, ValueError) as exc:
            raise NotifyError(f"bad notification template: {exc}") from exc

        message = EmailMessage()
        message["From"] = self._channel.sender
        message["To"] = self._channel.recipient
        message["Subject"] = subject
        message["X-Canaryforge-Build-Id"] = str(notification.build_id)
        message.set_content(body)
        return message

    def _send_smtp(self, message: EmailMessage) -> None:
        if not self._channel.smtp_host:
            raise NotifyError("no SMTP host configured")
        try:
            with smtplib.SMTP(
                self._channel.smtp_host, self._channel.smtp_port, timeout=SMTP_TIMEOUT
            ) as smtp:
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotifyError(f"SMTP delivery failed: {exc}") from exc
