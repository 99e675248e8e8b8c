"""Outbound email over SMTP.

The SMTP destination is one of two configured channels (``EMAIL_CHANNEL``).
Both go through the same code path; only connection details differ.
"""

import asyncio
import threading
from email.message import EmailMessage
from email.utils import make_msgid
from html import escape
from typing import Optional

import aiosmtplib
import structlog

from storageup.config import SmtpChannel, get_settings

logger = structlog.get_logger(__name__)

SMTP_TIMEOUT_SECONDS = 30


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the SMTP server."""


class Mailer:
    """SMTP sender bound to one channel."""

    def __init__(self, channel: SmtpChannel, sender: str, channel_name: str):
        self.channel = channel
        self.sender = sender
        self.channel_name = channel_name

    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        """Send a multipart (text + HTML) message and return its Message-ID."""
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain="storageup")
        message.set_content(text)
        message.add_alternative(html, subtype="html")

        await aiosmtplib.send(
            message,
            hostname=self.channel.host,
            port=self.channel.port,
            username=self.channel.username,
            password=self.channel.password,
            use_tls=self.channel.use_tls,
            timeout=SMTP_TIMEOUT_SECONDS,
        )
        return message["Message-ID"]


_mailer: Optional[Mailer] = None
_mailer_lock = threading.Lock()


def get_mailer() -> Mailer:
    """Return the process-wide mailer, creating it on first use.

    Raises:
        EmailDeliveryError: If the selected channel has no SMTP host configured
    """
    global _mailer
    if _mailer is None:
        with _mailer_lock:
            if _mailer is None:
                settings = get_settings()
                channel = settings.active_smtp_channel
                if channel is None:
                    raise EmailDeliveryError(
                        f"No SMTP server configured for the '{settings.email_channel}' email channel"
                    )
                _mailer = Mailer(channel, settings.email_from, settings.email_channel)
                logger.info(
                    "mailer_initialized",
                    channel=settings.email_channel,
                    host=channel.host,
                    port=channel.port,
                )
    return _mailer


def reset_mailer() -> None:
    """Drop the cached mailer so the next send re-reads configuration."""
    global _mailer
    with _mailer_lock:
        _mailer = None


class EmailService:
    """Service for composing and sending transactional email."""

    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        """Send an email.

        Returns:
            The Message-ID of the sent message

        Raises:
            EmailDeliveryError: On any configuration or delivery failure
        """
        try:
            mailer = get_mailer()
            message_id = await mailer.send(to, subject, html, text)
        except EmailDeliveryError as e:
            logger.error("email_send_failed", to=to, error=str(e))
            raise
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
            logger.error("email_send_failed", to=to, error=str(e))
            raise EmailDeliveryError(str(e)) from e

        logger.info(
            "email_sent",
            to=to,
            message_id=message_id,
            channel=mailer.channel_name,
        )
        return message_id

    async def send_password_reset_email(
        self,
        to: str,
        name: str,
        reset_url: str,
        expires_minutes: int,
    ) -> str:
        """Send the password reset link to an identity's email address."""
        subject = "StorageUp password reset"
        text = (
            f"Hello {name},\n\n"
            f"We received a request to reset your StorageUp password.\n"
            f"Open the link below to choose a new password. "
            f"The link expires in {expires_minutes} minutes.\n\n"
            f"{reset_url}\n\n"
            f"If you did not request this, you can ignore this email."
        )
        html = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>We received a request to reset your StorageUp password.</p>"
            f'<p><a href="{escape(reset_url, quote=True)}">Reset your password</a></p>'
            f"<p>The link expires in {expires_minutes} minutes.</p>"
            f"<p>If you did not request this, you can ignore this email.</p>"
        )
        return await self.send(to, subject, html, text)
