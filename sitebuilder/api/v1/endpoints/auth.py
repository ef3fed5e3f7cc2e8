"""
Authentication API

Registration is two-step: the email is verified with a one-time passcode
first, which leaves a short-lived `registration_verified_<email>` marker that
`/register` consumes. Login sets the JWT as an httpOnly `token` cookie.
"""
import logging
from datetime import timedelta
from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sitebuilder.api import deps
from sitebuilder.config import settings
from sitebuilder.core.otp_store import OTPStore, normalize_email
from sitebuilder.core.security import create_access_token
from sitebuilder.crud import crud_company, crud_user
from sitebuilder.middleware.rate_limit import RateLimit
from sitebuilder.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    SendOTPRequest,
    UserRead,
    VerifyOTPRequest,
)
from sitebuilder.services.mailer import SendGridMailer

router = APIRouter()
logger = logging.getLogger("sitebuilder.auth")


def registration_key(email: str) -> str:
    return f"registration_{normalize_email(email)}"


def verified_key(email: str) -> str:
    return f"registration_verified_{normalize_email(email)}"


@router.post("/send-registration-otp", dependencies=[Depends(RateLimit("otp"))])
async def send_registration_otp(
    body: SendOTPRequest,
    db: Session = Depends(deps.get_db),
    otp_store: OTPStore = Depends(deps.get_otp_store),
    mailer: SendGridMailer = Depends(deps.get_mailer),
) -> Any:
    email = normalize_email(body.email)
    existing = crud_user.get_by_email_or_username(db, email, body.username)
    if existing:
        if existing.email == email:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")

    if not mailer.configured:
        logger.error("SendGrid credentials not configured")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Email service not configured")

    key = registration_key(email)
    otp = otp_store.issue(key)
    try:
        await mailer.send_registration_otp(email, otp)
    except httpx.HTTPError as e:
        otp_store.delete(key)
        logger.error("Error sending registration OTP to %s: %s", email, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send verification code. Please try again.",
        )
    return {"message": "Verification code sent successfully"}


@router.post("/verify-registration-otp", dependencies=[Depends(RateLimit("otp"))])
def verify_registration_otp(
    body: VerifyOTPRequest,
    otp_store: OTPStore = Depends(deps.get_otp_store),
) -> Any:
    result = otp_store.verify(registration_key(body.email), body.otp)
    if not result.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    otp_store.mark(verified_key(body.email))
    return {"message": "Email verified successfully", "verified": True}


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RateLimit("register"))],
)
def register(
    body: RegisterRequest,
    db: Session = Depends(deps.get_db),
    otp_store: OTPStore = Depends(deps.get_otp_store),
) -> Any:
    email = normalize_email(body.email)
    if not otp_store.is_marked(verified_key(email)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email not verified. Please verify your email before registering.",
        )
    if crud_user.get_by_email(db, email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")

    address = ", ".join(
        part.strip() for part in (body.address, body.city, body.state, body.zip) if part and part.strip()
    )
    try:
        user = crud_user.create(
            db,
            email=email,
            username=body.username,
            password=body.password,
            meta=body.profile_meta(),
        )
        company = crud_company.create(
            db,
            name=body.company.strip(),
            user_id=user.id,
            email=email,
            phone=body.phone.strip(),
            address=address,
            vat=(body.vat or "").strip(),
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    db.refresh(user)
    otp_store.delete(verified_key(email))
    logger.info("User %s registered with company %s", user.id, company.id)
    return RegisterResponse(
        success=True,
        message="User registered successfully",
        user=UserRead.model_validate(user),
        company_id=company.id,
    )


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(RateLimit("login"))])
def login(
    body: LoginRequest,
    response: Response,
    db: Session = Depends(deps.get_db),
) -> Any:
    if not body.userEmail or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username/Email and password are required",
        )
    user = crud_user.get_by_login(db, body.userEmail)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not crud_user.authenticate(db, body.userEmail, body.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(user.id, user.email, expires_delta=expires)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=int(expires.total_seconds()),
        httponly=True,
        secure=settings.is_hosted,
        samesite="strict",
    )
    logger.info("User %s logged in", user.id)
    return LoginResponse(success=True, token=token, user=UserRead.model_validate(user))


@router.post("/logout")
def logout(response: Response) -> Any:
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return {"success": True, "message": "Logged out successfully"}
