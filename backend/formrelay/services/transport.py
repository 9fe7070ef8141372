"""
SMTP transport.

``build_email_message`` turns an OutboundMessage into a multipart
``EmailMessage`` (text + HTML alternative + attachments). ``SmtpTransport``
sends it with aiosmtplib using one TransportConfig:

  use_implicit_tls=True   TLS from the first byte (typically port 465)
  use_implicit_tls=False  plain connect, STARTTLS when the server offers it
                          (typically port 587)

Every attempt is bounded by ``timeout`` seconds. Any failure (refused
connection, auth error, timeout, rejected recipient) surfaces as
TransportError; callers do not branch on the kind.
"""

import asyncio
import logging
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Optional, Protocol

import aiosmtplib

from formrelay.config import TransportConfig
from formrelay.models.attachment import PathAttachment
from formrelay.models.submission import OutboundMessage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class TransportError(Exception):
    """Raised when a transport could not hand the message to the SMTP server."""
    def __init__(self, message: str, transport: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.transport = transport


class Transport(Protocol):
    name: str

    async def send(self, message: EmailMessage) -> None:
        ...


def build_email_message(outbound: OutboundMessage) -> EmailMessage:
    """
    Build the MIME message for an OutboundMessage.

    Path-backed attachments are read here, so this must run before the
    temporary files are released.

    Raises:
        OSError: an attachment file could not be read
    """
    msg = EmailMessage()
    msg["From"] = outbound.sender
    msg["To"] = outbound.recipient
    if outbound.reply_to:
        msg["Reply-To"] = outbound.reply_to
    msg["Subject"] = outbound.subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid()

    msg.set_content(outbound.text)
    msg.add_alternative(outbound.html, subtype="html")

    for attachment in outbound.attachments:
        if isinstance(attachment, PathAttachment):
            content = attachment.path.read_bytes()
        else:
            content = attachment.content
        mime_type = attachment.mime_type or "application/octet-stream"
        maintype, _, subtype = mime_type.partition("/")
        msg.add_attachment(
            content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return msg


class SmtpTransport:
    """Sends messages through one SMTP configuration."""

    def __init__(self, config: TransportConfig, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.config = config
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.config.name

    async def send(self, message: EmailMessage) -> None:
        config = self.config
        try:
            # aiosmtplib applies ``timeout`` per network operation; wait_for
            # bounds the whole attempt.
            await asyncio.wait_for(
                aiosmtplib.send(
                    message,
                    hostname=config.host,
                    port=config.port,
                    username=config.username,
                    password=config.password,
                    use_tls=config.use_implicit_tls,
                    start_tls=False if config.use_implicit_tls else None,
                    validate_certs=not config.accept_invalid_certificates,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise TransportError(
                f"{config.name} SMTP {config.host}:{config.port} timed out after {self.timeout:g}s",
                transport=config.name,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise TransportError(
                f"{config.name} SMTP {config.host}:{config.port} failed: {exc}",
                transport=config.name,
            ) from exc

    def __repr__(self) -> str:
        return f"SmtpTransport({self.config!r})"
