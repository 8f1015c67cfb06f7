"""Outgoing mail for password resets.

``EMAIL_PROVIDER`` picks SendGrid (default) or Office 365 SMTP. A failed
Office 365 delivery is retried through SendGrid when an API key is set. With
no provider configured the reset link is logged so local setups still work.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Optional
from urllib.parse import quote

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from podcast_club.config import Settings, settings
from podcast_club.services.credentials import RESET_TOKEN_TTL

logger = logging.getLogger(__name__)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: str


def build_password_reset_url(token: str) -> str:
    base_url = (settings.app_base_url or "http://localhost:3000").rstrip("/")
    return f"{base_url}/reset-password?token={quote(token, safe='')}"


def password_reset_message(to_email: str, name: Optional[str], reset_url: str) -> OutgoingEmail:
    greeting = str(name or "").strip() or "there"
    minutes = int(RESET_TOKEN_TTL.total_seconds() // 60)
    paragraphs = [
        f"Hi {greeting},",
        "Use this link to reset your Podcast Club password:",
        reset_url,
        f"The link expires in {minutes} minutes and works only once.",
    ]
    html = "".join(
        f'<p><a href="{escape(reset_url)}">{escape(reset_url)}</a></p>' if text == reset_url
        else f"<p>{escape(text)}</p>"
        for text in paragraphs
    )
    return OutgoingEmail(
        to=to_email,
        subject="Reset your Podcast Club password",
        text="\n\n".join(paragraphs),
        html=html,
    )


class EmailService:

    def __init__(self, config: Settings):
        self.config = config

    @property
    def has_sendgrid(self) -> bool:
        return bool(self.config.email_from_email and self.config.sendgrid_api_key)

    @property
    def has_smtp(self) -> bool:
        return bool(self.config.email_from_email and self.config.smtp_username and self.config.smtp_password)

    @property
    def is_configured(self) -> bool:
        if self.config.email_provider.lower() == "office365":
            return self.has_smtp or self.has_sendgrid
        return self.has_sendgrid

    def _via_sendgrid(self, message: OutgoingEmail) -> dict:
        mail = Mail(
            from_email=(self.config.email_from_email, self.config.email_from_name),
            to_emails=message.to,
            subject=message.subject,
            plain_text_content=message.text,
            html_content=message.html,
        )
        try:
            response = SendGridAPIClient(self.config.sendgrid_api_key).send(mail)
        except Exception as exc:
            logger.error(f"SendGrid delivery to {message.to} failed: {exc}")
            return {"sent": False, "provider": "sendgrid", "error": str(exc)}

        sent = 200 <= response.status_code < 300
        if not sent:
            logger.error(f"SendGrid rejected mail to {message.to} with status {response.status_code}")
        return {"sent": sent, "provider": "sendgrid", "status_code": response.status_code}

    def _via_office365(self, message: OutgoingEmail) -> dict:
        mime = EmailMessage()
        mime["Subject"] = message.subject
        mime["From"] = formataddr((self.config.email_from_name, self.config.email_from_email))
        mime["To"] = message.to
        mime.set_content(message.text)
        mime.add_alternative(message.html, subtype="html")

        try:
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(self.config.smtp_username, self.config.smtp_password)
                server.send_message(mime)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(f"Office 365 delivery to {message.to} failed: {exc}")
            return {"sent": False, "provider": "office365", "error": str(exc)}
        return {"sent": True, "provider": "office365"}

    def deliver(self, message: OutgoingEmail) -> dict:
        if self.config.email_provider.lower() == "office365" and self.has_smtp:
            result = self._via_office365(message)
            if result["sent"] or not self.has_sendgrid:
                return result
            logger.warning("Retrying Office 365 failure through SendGrid")
        if not self.has_sendgrid:
            return {"sent": False, "provider": "sendgrid", "error": "SendGrid is not configured"}
        return self._via_sendgrid(message)

    def send_password_reset_email(self, to_email: str, name: Optional[str], reset_url: str) -> dict:
        """Send the self-service reset link, or log it when mail is not set up"""
        if not self.is_configured:
            logger.info(f"Email not configured; password reset link for {to_email}: {reset_url}")
            return {"sent": False, "logged": True, "error": "Email provider is not configured"}
        logger.info(f"Sending password reset email to {to_email}")
        return self.deliver(password_reset_message(to_email, name, reset_url))


email_service = EmailService(settings)
