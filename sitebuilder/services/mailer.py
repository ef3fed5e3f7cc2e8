"""Transactional email through the SendGrid v3 HTTP API."""

import logging
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from sitebuilder.config import settings

logger = logging.getLogger("sitebuilder.mailer")

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class MailerNotConfigured(Exception):
    pass


class SendGridMailer:
    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.from_email = from_email if from_email is not None else settings.SENDGRID_FROM_EMAIL
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        if not self.configured:
            raise MailerNotConfigured("SendGrid credentials not configured")

        content = [{"type": "text/plain", "value": text}]
        if html:
            content.append({"type": "text/html", "value": html})
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": content,
        }
        async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
            response = await client.post(
                SENDGRID_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        response.raise_for_status()
        logger.info("Email '%s' sent to %s", subject, to)

    async def send_registration_otp(self, to: str, otp: str) -> None:
        minutes = settings.OTP_TTL_SECONDS // 60
        text = (
            "Welcome to Adds AI!\n\n"
            "Please verify your email to complete registration.\n\n"
            f"Your verification code is: {otp}\n\n"
            f"This code will expire in {minutes} minutes.\n\n"
            "If you didn't request this verification, please ignore this email.\n"
        )
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            "<h1>Welcome to Adds AI!</h1>"
            "<p>Your verification code is:</p>"
            f'<p style="font-size: 32px; font-weight: bold; letter-spacing: 8px;">{otp}</p>'
            f"<p><strong>Important:</strong> This code will expire in {minutes} minutes.</p>"
            "</div>"
        )
        await self.send(to, "Email Verification - Complete Your Registration", text, html)
