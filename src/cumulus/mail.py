"""ShareMailer — share notification email through fastapi-mail.

When SMTP is not configured the message is logged instead of sent, so
sharing keeps working in development.  ``suppress_send`` goes one step
further: the message is built and dispatched to fastapi-mail's outbox
signal without opening a connection.
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING

from fastapi_mail import ConnectionConfig, FastMail
from fastapi_mail.errors import ConnectionErrors
from fastapi_mail.schemas import MessageSchema, MessageType, MultipartSubtypeEnum
from pydantic import ValidationError

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)


class MailError(Exception):
    """Raised when a notification cannot be delivered."""


def _article(item_type: str) -> str:
    return "a file" if item_type == "file" else "a folder"


def build_share_message(
    *,
    sender_name: str,
    recipient: str,
    item_name: str,
    item_type: str,
    share_link: str,
    role: str,
    from_name: str,
) -> MessageSchema:
    """Compose the HTML share notification with a plain-text alternative."""
    subject = f"{sender_name} shared {_article(item_type)} with you: {item_name}"
    text = (
        "Hello,\n\n"
        f"{sender_name} has shared {_article(item_type)} with you.\n\n"
        f"Item: {item_name}\n"
        f"Access Level: {role}\n\n"
        "You can access it using this link:\n"
        f"{share_link}\n\n"
        f"Best regards,\n{from_name}"
    )
    label = "File" if item_type == "file" else "Folder"
    body = (
        "<html><body>"
        "<p>Hello,</p>"
        f"<p><strong>{html.escape(sender_name)}</strong> has shared "
        f"{_article(item_type)} with you.</p>"
        f"<p><strong>Item:</strong> {html.escape(item_name)}</p>"
        f"<p><strong>Access Level:</strong> {html.escape(role)}</p>"
        f'<p><a href="{html.escape(share_link, quote=True)}">Open {label}</a></p>'
        "</body></html>"
    )
    return MessageSchema(
        subject=subject,
        recipients=[recipient],
        body=body,
        alternative_body=text,
        subtype=MessageType.html,
        multipart_subtype=MultipartSubtypeEnum.alternative,
    )


class ShareMailer:
    """Sends share notifications; log-only when SMTP settings are absent."""

    def __init__(
        self,
        *,
        host: str | None = None,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        secure: bool = False,
        from_email: str | None = None,
        from_name: str = "Cloud Drive",
        timeout: float = 10.0,
        suppress_send: bool = False,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self._password = password
        self.secure = secure or port == 465
        self.from_email = from_email or user or "no-reply@localhost"
        self.from_name = from_name
        self.timeout = timeout
        self.suppress_send = suppress_send
        self._client: FastMail | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ShareMailer:
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_pass,
            secure=settings.smtp_secure,
            from_email=settings.from_email,
            from_name=settings.from_name,
            timeout=settings.fetch_timeout,
            suppress_send=settings.smtp_suppress_send,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.user and self._password)

    @property
    def client(self) -> FastMail:
        """The fastapi-mail client, built on first use."""
        if self._client is None:
            try:
                config = ConnectionConfig(
                    MAIL_USERNAME=self.user or "",
                    MAIL_PASSWORD=self._password or "",
                    MAIL_FROM=self.from_email,
                    MAIL_FROM_NAME=self.from_name,
                    MAIL_SERVER=self.host or "localhost",
                    MAIL_PORT=self.port,
                    MAIL_STARTTLS=not self.secure,
                    MAIL_SSL_TLS=self.secure,
                    USE_CREDENTIALS=True,
                    SUPPRESS_SEND=1 if self.suppress_send else 0,
                    TIMEOUT=max(1, int(self.timeout)),
                )
            except ValidationError as e:
                raise MailError(f"Invalid mail settings: {e.errors()[0]['msg']}") from e
            self._client = FastMail(config)
        return self._client

    async def send_share_email(
        self,
        recipient: str,
        *,
        sender_name: str,
        item_name: str,
        item_type: str,
        share_link: str,
        role: str,
    ) -> bool:
        """Send (or log) the notification. Returns True if actually sent."""
        if not self.configured:
            logger.info(
                "SMTP not configured; would send to %s | item=%s | link=%s",
                recipient,
                item_name,
                share_link,
            )
            return False

        try:
            message = build_share_message(
                sender_name=sender_name,
                recipient=recipient,
                item_name=item_name,
                item_type=item_type,
                share_link=share_link,
                role=role,
                from_name=self.from_name,
            )
        except ValidationError as e:
            raise MailError(f"Invalid recipient address: {recipient}") from e

        try:
            await self.client.send_message(message)
        except ConnectionErrors as e:
            raise MailError(f"Cannot send email via {self.host}:{self.port}: {e}") from e
        if self.suppress_send:
            logger.info("[SMTP_SUPPRESS_SEND] would send to %s | subject=%s", recipient, message.subject)
        else:
            logger.info("Share email sent to %s", recipient)
        return True
