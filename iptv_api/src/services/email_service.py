"""
Transactional email.

Renders the five account emails (verification, congratulations, password
recovery, username recovery, password reset confirmation) and delivers them
over SMTP with aiosmtplib. Every interpolated value is HTML-escaped.
"""

import html
import re
from dataclasses import dataclass
from email.message import EmailMessage
from enum import Enum
from typing import Mapping, Optional

import aiosmtplib
import structlog

from iptv_api.src.config import Settings
from iptv_api.src.models.auth import UserDB
from shared.metrics import APIMetrics

logger = structlog.get_logger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when the SMTP server does not accept a message."""


class EmailMessageType(str, Enum):
    """Kinds of transactional email."""

    VERIFY = "verify"
    CONGRATULATIONS = "congratulations"
    RECOVERY = "recovery"
    USERNAME_RECOVERY = "username-recovery"
    PASSWORD_RESET_SUCCESS = "password-reset-success"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


_SUBJECTS = {
    EmailMessageType.VERIFY: "Welcome to our platform! Verify your account",
    EmailMessageType.CONGRATULATIONS: "Congratulations! Your account has been verified",
    EmailMessageType.RECOVERY: "Password recovery",
    EmailMessageType.USERNAME_RECOVERY: "Recover your username",
    EmailMessageType.PASSWORD_RESET_SUCCESS: "Your password has been reset successfully",
}

_BODIES = {
    EmailMessageType.VERIFY: (
        "<p>Hello {first_name} {last_name},</p>"
        "<p>Thank you for joining our community. We are excited to have you on board.</p>"
        "<p>To complete your registration, enter the following verification code to "
        "activate your account: <strong>{verification_code}</strong></p>"
        "<p>This step protects your account and lets you enjoy every feature.</p>"
        "<p>If you have any questions or need assistance, do not hesitate to contact us.</p>"
    ),
    EmailMessageType.CONGRATULATIONS: (
        "<p>Hello {first_name} {last_name},</p>"
        "<p>Congratulations! Your account has been successfully verified.</p>"
        "<p>Your username is: <strong>{username}</strong></p>"
        "<p>We are glad to have you in our community. Thank you for choosing us!</p>"
    ),
    EmailMessageType.RECOVERY: (
        "<p>You requested a password reset. Use the following code to reset it: "
        "<strong>{verification_code}</strong></p>"
    ),
    EmailMessageType.USERNAME_RECOVERY: (
        "<p>Hello {first_name} {last_name},</p>"
        "<p>We received a request to remind you of your username on our platform.</p>"
        "<p>Your username is: <strong>{username}</strong></p>"
    ),
    EmailMessageType.PASSWORD_RESET_SUCCESS: (
        "<p>Hello {first_name} {last_name},</p>"
        "<p>Your password has been reset successfully.</p>"
        "<p>If you did not request this change, contact us immediately to protect your account.</p>"
        "<p>Thank you for trusting us!</p>"
    ),
}

_FRAME = (
    '<div style="font-family: Arial, sans-serif; font-size: 16px; color: #333;">'
    "{content}"
    "<p>Keep your account safe.</p>"
    "<p>The {team} team</p>"
    '<hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">'
    "</div>"
)

_TAG_RE = re.compile(r"<[^>]+>")
_BLOCK_END_RE = re.compile(r"</p>|<hr[^>]*>", re.IGNORECASE)


def html_to_text(markup: str) -> str:
    """Plain-text alternative: one line per paragraph, tags stripped."""
    text = _BLOCK_END_RE.sub("\n", markup)
    text = html.unescape(_TAG_RE.sub("", text))
    return "\n".join(line.strip() for line in text.splitlines() if line.strip())


def render_email(
    message_type: EmailMessageType,
    context: Mapping[str, str],
    team_name: str = "TevePlay"
) -> RenderedEmail:
    """
    Render subject, HTML and text bodies for a message type.

    Args:
        message_type: Which email to render
        context: Template values (first_name, last_name, username, verification_code)
        team_name: Name used in the signature

    Returns:
        Rendered email

    Raises:
        KeyError: If the template needs a value missing from context
    """
    escaped = {key: html.escape(str(value)) for key, value in context.items()}
    content = _BODIES[message_type].format(**escaped)
    markup = _FRAME.format(content=content, team=html.escape(team_name))
    return RenderedEmail(
        subject=_SUBJECTS[message_type],
        html=markup,
        text=html_to_text(markup),
    )


def build_message(sender: str, recipient: str, rendered: RenderedEmail) -> EmailMessage:
    """Assemble a multipart/alternative message."""
    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = rendered.subject
    message.set_content(rendered.text)
    message.add_alternative(rendered.html, subtype="html")
    return message


def _user_context(user: UserDB, verification_code: Optional[str] = None) -> dict:
    context = {
        "first_name": user.first_name,
        "last_name": user.last_name,
        "username": user.username,
    }
    if verification_code is not None:
        context["verification_code"] = verification_code
    return context


class EmailService:
    """Send transactional account emails."""

    def __init__(self, settings: Settings, metrics: Optional[APIMetrics] = None) -> None:
        self.settings = settings
        self.metrics = metrics

    async def send(
        self,
        recipient: str,
        message_type: EmailMessageType,
        context: Mapping[str, str]
    ) -> None:
        """
        Render and deliver one email.

        Args:
            recipient: Destination address
            message_type: Which email to send
            context: Template values

        Raises:
            EmailDeliveryError: If delivery fails
        """
        rendered = render_email(message_type, context, self.settings.email_team_name)
        message = build_message(self.settings.email_from, recipient, rendered)

        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.smtp_host,
                port=self.settings.smtp_port,
                username=self.settings.smtp_username or None,
                password=self.settings.smtp_password or None,
                start_tls=self.settings.smtp_start_tls,
                timeout=self.settings.smtp_timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            self._record(message_type, "failure")
            logger.error(
                "email_send_failed",
                message_type=message_type.value,
                error=str(e),
                error_type=type(e).__name__
            )
            raise EmailDeliveryError("Error sending email") from e

        self._record(message_type, "success")
        logger.info("email_sent", message_type=message_type.value)

    async def send_verification(self, user: UserDB, code: str) -> None:
        await self.send(user.email, EmailMessageType.VERIFY, _user_context(user, code))

    async def send_congratulations(self, user: UserDB) -> None:
        await self.send(user.email, EmailMessageType.CONGRATULATIONS, _user_context(user))

    async def send_recovery(self, user: UserDB, code: str) -> None:
        await self.send(user.email, EmailMessageType.RECOVERY, _user_context(user, code))

    async def send_username_recovery(self, user: UserDB) -> None:
        await self.send(user.email, EmailMessageType.USERNAME_RECOVERY, _user_context(user))

    async def send_password_reset_success(self, user: UserDB) -> None:
        await self.send(user.email, EmailMessageType.PASSWORD_RESET_SUCCESS, _user_context(user))

    def _record(self, message_type: EmailMessageType, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.emails_sent.labels(message_type=message_type.value, outcome=outcome).inc()
