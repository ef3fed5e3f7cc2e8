"""Integration tests for /api/auth/* (OTP-gated registration, cookie login)."""
import httpx
import pytest

from sitebuilder.models.company import Company
from sitebuilder.models.user import User, UserMeta

from conftest import USER_EMAIL, USER_PASSWORD, FakeMailer, seed_user

NEW_EMAIL = "new.user@example.com"


def _register_body(**overrides):
    body = {
        "email": NEW_EMAIL,
        "password": "Secret123",
        "username": "newuser",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "account_type": "business",
        "company": "Analytical Engines",
        "phone": "+4412345678",
        "address": "12 St James's Square",
        "city": "London",
        "zip": "SW1Y",
        "accept_terms": True,
    }
    body.update(overrides)
    return body


async def _verify_email(client, fakes, email=NEW_EMAIL):
    resp = await client.post("/api/auth/send-registration-otp", json={"email": email, "username": "newuser"})
    assert resp.status_code == 200, resp.text
    sent_to, otp = fakes.mailer.sent[-1]
    assert sent_to == email
    resp = await client.post("/api/auth/verify-registration-otp", json={"email": email, "otp": otp})
    assert resp.status_code == 200, resp.text
    return resp


# ── OTP ──

async def test_send_otp_emails_six_digit_code(client, fakes):
    resp = await client.post("/api/auth/send-registration-otp", json={"email": "New.User@Example.com"})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Verification code sent successfully"}
    to, otp = fakes.mailer.sent[0]
    assert to == NEW_EMAIL
    assert len(otp) == 6 and otp.isdigit()


async def test_send_otp_rejects_registered_email_and_username(client, db, fakes):
    seed_user(db)

    resp = await client.post("/api/auth/send-registration-otp", json={"email": USER_EMAIL})
    assert resp.status_code == 409
    assert resp.json() == {"error": "Email is already registered"}

    resp = await client.post(
        "/api/auth/send-registration-otp", json={"email": NEW_EMAIL, "username": "owner"}
    )
    assert resp.status_code == 409
    assert resp.json() == {"error": "Username is already taken"}
    assert fakes.mailer.sent == []


async def test_send_otp_without_mail_credentials(client, fakes):
    fakes.mailer.configured = False
    resp = await client.post("/api/auth/send-registration-otp", json={"email": NEW_EMAIL})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Email service not configured"}


async def test_send_otp_mail_failure_discards_code(client, fakes):
    class FailingMailer(FakeMailer):
        async def send_registration_otp(self, to, otp):
            self.sent.append((to, otp))
            raise httpx.ConnectError("sendgrid down")

    from sitebuilder.api import deps
    from sitebuilder.main import app

    failing = FailingMailer()
    app.dependency_overrides[deps.get_mailer] = lambda: failing

    resp = await client.post("/api/auth/send-registration-otp", json={"email": NEW_EMAIL})
    assert resp.status_code == 500

    _, otp = failing.sent[0]
    resp = await client.post("/api/auth/verify-registration-otp", json={"email": NEW_EMAIL, "otp": otp})
    assert resp.status_code == 400
    assert resp.json() == {"error": "No OTP found for this email. Please request a new OTP."}


async def test_verify_wrong_code_counts_attempts(client, fakes):
    await client.post("/api/auth/send-registration-otp", json={"email": NEW_EMAIL})
    _, otp = fakes.mailer.sent[0]
    wrong = "000000" if otp != "000000" else "111111"

    resp = await client.post("/api/auth/verify-registration-otp", json={"email": NEW_EMAIL, "otp": wrong})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid OTP. 2 attempt(s) remaining."}

    resp = await client.post("/api/auth/verify-registration-otp", json={"email": NEW_EMAIL, "otp": otp})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Email verified successfully", "verified": True}


# ── registration ──

async def test_register_requires_verified_email(client):
    resp = await client.post("/api/auth/register", json=_register_body())
    assert resp.status_code == 400
    assert resp.json() == {"error": "Email not verified. Please verify your email before registering."}


async def test_register_after_verification(client, db, fakes):
    await _verify_email(client, fakes)

    resp = await client.post("/api/auth/register", json=_register_body())

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["user"]["email"] == NEW_EMAIL
    assert body["user"]["username"] == "newuser"

    user = db.query(User).filter(User.email == NEW_EMAIL).one()
    assert user.hashed_password != "Secret123"
    meta = {m.meta_key: m.meta_value for m in db.query(UserMeta).filter(UserMeta.user_id == user.id)}
    assert meta["first_name"] == "Ada"
    assert meta["accept_terms"] == "true"
    company = db.query(Company).filter(Company.user_id == user.id).one()
    assert company.name == "Analytical Engines"
    assert company.address == "12 St James's Square, London, SW1Y"

    # the verification marker is single-use
    resp = await client.post("/api/auth/register", json=_register_body(username="other"))
    assert resp.status_code == 400


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"password": "short1A"}, "password"),
        ({"password": "alllowercase1"}, "password"),
        ({"phone": "phone-number"}, "phone"),
        ({"first_name": "  "}, "first_name"),
    ],
)
async def test_register_field_validation(client, overrides, field):
    resp = await client.post("/api/auth/register", json=_register_body(**overrides))
    assert resp.status_code == 400
    assert field in resp.json()["error"]


# ── login / logout ──

async def test_login_sets_http_only_cookie(client, db):
    seed_user(db)

    resp = await client.post("/api/auth/login", json={"userEmail": "owner", "password": USER_PASSWORD})

    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == USER_EMAIL
    cookie = resp.headers["set-cookie"]
    assert cookie.startswith("token=")
    assert "HttpOnly" in cookie
    assert "samesite=strict" in cookie.lower()


async def test_login_by_email_then_access_protected_route(client, db):
    seed_user(db)
    resp = await client.post("/api/auth/login", json={"userEmail": USER_EMAIL, "password": USER_PASSWORD})
    token = resp.json()["token"]

    client.cookies.set("token", token)
    resp = await client.get("/api/site/get-all")
    assert resp.status_code == 200


async def test_login_errors(client, db):
    user, _ = seed_user(db)

    resp = await client.post("/api/auth/login", json={"userEmail": "", "password": ""})
    assert resp.status_code == 400

    resp = await client.post("/api/auth/login", json={"userEmail": "ghost", "password": USER_PASSWORD})
    assert resp.status_code == 404
    assert resp.json() == {"error": "User not found"}

    resp = await client.post("/api/auth/login", json={"userEmail": "owner", "password": "Wrong1234"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid password"}

    user.status = "disabled"
    db.commit()
    resp = await client.post("/api/auth/login", json={"userEmail": "owner", "password": USER_PASSWORD})
    assert resp.status_code == 403


async def test_logout_clears_cookie(client):
    resp = await client.post("/api/auth/logout")
    assert resp.status_code == 200
    assert resp.headers["set-cookie"].startswith('token=""')


async def test_login_rate_limited(client, db):
    from sitebuilder.main import app

    class Exhausted:
        def is_allowed(self, key, max_requests, window_seconds):
            assert key == "rl:login:198.51.100.7"
            return False, 0, 42

    app.state.rate_limiter = Exhausted()
    resp = await client.post(
        "/api/auth/login",
        json={"userEmail": "owner", "password": USER_PASSWORD},
        headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1"},
    )
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "42"
    assert resp.json() == {"error": "Too many login attempts. Please try again later."}
