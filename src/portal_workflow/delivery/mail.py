"""Mail delivery collaborators.

``MailSender`` is the boundary the engine depends on: "send templated message
to address". Rendering the full document is out of scope; the SMTP sender builds
a plain-text (and optional HTML) message from what it is given.
"""

from __future__ import annotations

import logging
import smtplib
import threading
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from email.message import EmailMessage

from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.engine.errors import MailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MailMessage:
    to: str
    subject: str
    text: str
    html: str | None = None
    template: str | None = None
    data: Mapping[str, object] = field(default_factory=dict)


class MailSender(ABC):
    """Abstract mail transport."""

    @abstractmethod
    def send(self, message: MailMessage) -> None:
        """Deliver ``message``.

        Raises:
            MailDeliveryError: If delivery fails.
        """


class LoggingMailSender(MailSender):
    """Records what would be sent; used in development and by default.

    Only the most recent ``max_items`` messages are kept.
    """

    def __init__(self, max_items: int = 500) -> None:
        self._lock = threading.Lock()
        self._sent: deque[MailMessage] = deque(maxlen=max_items)

    @property
    def sent(self) -> list[MailMessage]:
        with self._lock:
            return list(self._sent)

    def send(self, message: MailMessage) -> None:
        with self._lock:
            self._sent.append(message)
        logger.info(
            "Email not delivered (log backend)",
            extra={"to": message.to, "subject": message.subject, "template": message.template},
        )


class SmtpMailSender(MailSender):
    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def _build(self, message: MailMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.text)
        if message.html:
            msg.add_alternative(message.html, subtype="html")
        return msg

    def send(self, message: MailMessage) -> None:
        msg = self._build(message)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._username:
                    server.login(self._username, self._password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP delivery to {message.to} failed: {e}") from e

        logger.info("Email sent", extra={"to": message.to, "subject": message.subject})


def build_mail_sender(settings: WorkflowSettings) -> MailSender:
    if settings.mail_backend == "smtp":
        return SmtpMailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.mail_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    return LoggingMailSender()
