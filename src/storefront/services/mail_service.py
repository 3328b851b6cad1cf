import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import List, Optional

from flask import render_template

from storefront.core.config import MailConfig
from storefront.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class MailService:
    """
    SMTP delivery for account emails.

    With ``suppress_send`` messages are appended to ``outbox`` instead of
    being delivered.
    """

    def __init__(self, config: MailConfig, site_name: str):
        self.config = config
        self.site_name = site_name
        self.outbox: List[EmailMessage] = []

    def send(self, to: str, subject: str, text_body: str, html_body: Optional[str] = None) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr((self.config.from_name, self.config.from_address))
        message["To"] = to
        message.set_content(text_body)
        if html_body:
            message.add_alternative(html_body, subtype="html")

        if self.config.suppress_send:
            logger.info("Mail suppressed: %r to %s", subject, to)
            self.outbox.append(message)
            return

        try:
            self._deliver(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send {subject!r} to {to}: {e}")
            raise ExternalServiceError("mail", "We could not send the email. Please try again later.", str(e))
        logger.info("Mail sent: %r to %s", subject, to)

    def _deliver(self, message: EmailMessage) -> None:
        cfg = self.config
        if cfg.encryption == "ssl":
            server = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=cfg.timeout)
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout)
        with server:
            if cfg.encryption == "tls":
                server.starttls()
            if cfg.username:
                server.login(cfg.username, cfg.password)
            server.send_message(message)

    def send_activation_email(self, email: str, username: str, activation_link: str) -> None:
        context = {"username": username, "link": activation_link, "site_name": self.site_name}
        self.send(
            email,
            f"Activate your {self.site_name} account",
            render_template("emails/activation.txt", **context),
        )

    def send_password_reset_email(self, email: str, username: str, reset_link: str, ttl_minutes: int) -> None:
        context = {
            "username": username,
            "link": reset_link,
            "site_name": self.site_name,
            "ttl_minutes": ttl_minutes,
        }
        self.send(
            email,
            f"{self.site_name} password reset",
            render_template("emails/password_reset.txt", **context),
            render_template("emails/password_reset.html", **context),
        )
