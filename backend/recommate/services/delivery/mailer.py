"""
SMTP Mailer

Sends a single message with an optional PDF attachment.
"""
import logging
import os
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from ...config import SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, SMTP_USE_TLS

logger = logging.getLogger(__name__)


class SmtpMailer:
    """smtplib-backed mailer configured from the SMTP_* settings."""

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: str = SMTP_USER,
        password: str = SMTP_PASSWORD,
        use_tls: bool = SMTP_USE_TLS,
        timeout: int = 30,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def has_credentials(self) -> bool:
        return bool(self.user and self.password)

    def _connect(self) -> smtplib.SMTP:
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        if self.use_tls:
            smtp.starttls()
        if self.password:
            smtp.login(self.user, self.password)
        return smtp

    def is_configured(self) -> bool:
        """Credentials present and the server accepts a login."""
        if not self.has_credentials():
            return False
        try:
            with self._connect() as smtp:
                smtp.noop()
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP check failed for {self.host}:{self.port}: {e}")
            return False

    def build_message(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        attachment_path: Optional[str] = None,
        attachment_name: Optional[str] = None,
        from_name: Optional[str] = None,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((from_name, self.user)) if from_name else self.user
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")

        if attachment_path:
            with open(attachment_path, "rb") as f:
                msg.add_attachment(
                    f.read(),
                    maintype="application",
                    subtype="pdf",
                    filename=attachment_name or os.path.basename(attachment_path),
                )
        return msg

    def send(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        attachment_path: Optional[str] = None,
        attachment_name: Optional[str] = None,
        from_name: Optional[str] = None,
    ) -> None:
        """Send one message. smtplib and OS errors propagate to the caller."""
        msg = self.build_message(to, subject, text, html, attachment_path, attachment_name, from_name)
        with self._connect() as smtp:
            smtp.send_message(msg)
        logger.info(f"Email sent to {to}: {subject}")
