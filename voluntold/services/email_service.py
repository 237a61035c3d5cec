import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid, parseaddr
from functools import lru_cache
from typing import Protocol

from voluntold.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


class EmailDispatcher(Protocol):
    def send(
        self,
        to_email: str,
        subject: str,
        html: str,
        text: str,
        *,
        from_email: str | None = None,
    ) -> str: ...


def get_smtp_ctx() -> ssl.SSLContext:
    return ssl.create_default_context()


class SmtpEmailDispatcher:
    """Sends one message per call and returns its Message-ID."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _build_message(
        self, to_email: str, subject: str, html: str, text: str, from_email: str
    ) -> EmailMessage:
        _, sender_addr = parseaddr(from_email)
        domain = sender_addr.partition("@")[2] or None
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = from_email
        msg["To"] = to_email
        msg["Message-ID"] = make_msgid(domain=domain)
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    def send(
        self,
        to_email: str,
        subject: str,
        html: str,
        text: str,
        *,
        from_email: str | None = None,
    ) -> str:
        s = self.settings
        msg = self._build_message(
            to_email, subject, html, text, from_email or s.mail_from
        )
        try:
            with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout) as smtp:
                smtp.ehlo()
                if s.smtp_starttls:
                    smtp.starttls(context=get_smtp_ctx())
                    smtp.ehlo()
                if s.smtp_username and s.smtp_password:
                    smtp.login(s.smtp_username, s.smtp_password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Email to %s failed: %s", to_email, exc)
            raise EmailDeliveryError(str(exc)) from exc
        return msg["Message-ID"]


@lru_cache
def _dispatcher() -> SmtpEmailDispatcher:
    return SmtpEmailDispatcher(get_settings())


def get_email_dispatcher() -> EmailDispatcher:
    return _dispatcher()
