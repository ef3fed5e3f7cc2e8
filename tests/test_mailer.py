"""Tests for the SendGrid mailer (httpx MockTransport)."""
import json

import httpx
import pytest

from sitebuilder.services.mailer import SENDGRID_URL, MailerNotConfigured, SendGridMailer


async def test_send_registration_otp_payload():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(202)

    mailer = SendGridMailer(api_key="SG.key", from_email="noreply@example.com",
                            transport=httpx.MockTransport(handler))
    await mailer.send_registration_otp("new@example.com", "123456")

    request = seen[0]
    assert str(request.url) == SENDGRID_URL
    assert request.headers["Authorization"] == "Bearer SG.key"
    body = json.loads(request.content)
    assert body["personalizations"] == [{"to": [{"email": "new@example.com"}]}]
    assert body["from"] == {"email": "noreply@example.com"}
    assert "123456" in body["content"][0]["value"]
    assert body["content"][1]["type"] == "text/html"


async def test_send_raises_on_provider_error():
    mailer = SendGridMailer(api_key="SG.key", from_email="noreply@example.com",
                            transport=httpx.MockTransport(lambda request: httpx.Response(401)))
    with pytest.raises(httpx.HTTPStatusError):
        await mailer.send("new@example.com", "Hi", "text")


async def test_unconfigured_mailer_refuses_to_send():
    mailer = SendGridMailer(api_key="", from_email="")
    assert mailer.configured is False
    with pytest.raises(MailerNotConfigured):
        await mailer.send("new@example.com", "Hi", "text")
