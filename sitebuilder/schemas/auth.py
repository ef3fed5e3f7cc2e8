import re
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

PHONE_PATTERN = re.compile(r"^\+?[0-9]\d{0,15}$")


class LoginRequest(BaseModel):
    userEmail: str
    password: str


class SendOTPRequest(BaseModel):
    email: EmailStr
    username: Optional[str] = None


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    username: str
    first_name: str
    last_name: str
    account_type: str
    company: str
    phone: str
    vat: Optional[str] = ""
    teams: Optional[str] = ""
    linkedin: Optional[str] = ""
    country: Optional[str] = ""
    state: Optional[str] = ""
    city: Optional[str] = ""
    zip: Optional[str] = ""
    address: Optional[str] = ""
    accept_terms: bool = False

    @field_validator("username", "first_name", "last_name", "account_type", "company", "phone")
    @classmethod
    def _required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("field is required")
        return v.strip()

    @field_validator("password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )
        return v

    @field_validator("phone")
    @classmethod
    def _phone_format(cls, v: str) -> str:
        if not PHONE_PATTERN.match(re.sub(r"\s", "", v)):
            raise ValueError("Invalid phone number format")
        return v

    def profile_meta(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "account_type": self.account_type,
            "phone": self.phone,
            "teams": self.teams or "",
            "linkedin": self.linkedin or "",
            "country": self.country or "",
            "state": self.state or "",
            "city": self.city or "",
            "zip": self.zip or "",
            "address": self.address or "",
            "accept_terms": "true" if self.accept_terms else "false",
        }


class UserRead(BaseModel):
    id: UUID
    email: str
    username: str
    role: Optional[str] = None
    status: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    user: UserRead


class RegisterResponse(BaseModel):
    success: bool = True
    message: str
    user: UserRead
    company_id: Optional[UUID] = None
