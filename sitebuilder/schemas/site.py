from typing import Dict, List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator


class UploadedImage(BaseModel):
    content: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None


# Properties received by POST /site/create (multipart form)
class SiteCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    domain: Optional[str] = None
    site_name: Optional[str] = Field(default=None, alias="siteName")
    tagline: Optional[str] = None
    logo: Optional[UploadedImage] = None
    favicon: Optional[UploadedImage] = None
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")
    favicon_url: Optional[str] = Field(default=None, alias="faviconUrl")
    company_id: Optional[str] = Field(default=None, alias="company")
    company_name: Optional[str] = Field(default=None, alias="companyName")
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    accent_color: Optional[str] = Field(default=None, alias="accentColor")
    is_cloudflare: bool = Field(default=False, alias="isCloudflare")

    @field_validator("is_cloudflare", mode="before")
    @classmethod
    def _parse_flag(cls, v):
        # Form posts send the literal string "true"; anything else is False
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() == "true"

    @field_validator(
        "domain", "site_name", "tagline", "logo_url", "favicon_url",
        "company_id", "company_name", "phone", "email", "address", "accent_color",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class SiteCreateResult(BaseModel):
    success: bool = True
    siteId: str
    domain: str
    message: str


class SiteValidateRequest(BaseModel):
    siteId: str


class SiteDeleteRequest(BaseModel):
    site_id: str


class SiteMetaRead(BaseModel):
    meta_key: str
    meta_value: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CompanySummary(BaseModel):
    id: Optional[UUID] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SiteRead(BaseModel):
    id: UUID
    domain: str
    site_name: str
    status: Optional[bool] = None
    user_id: UUID
    company_id: UUID
    created_at: Optional[datetime] = None
    site_meta: List[SiteMetaRead] = []
    company: Optional[CompanySummary] = None

    model_config = ConfigDict(from_attributes=True)


class SiteValidateResult(BaseModel):
    valid: bool = True
    domain: str
    site_name: str
    meta: Dict[str, str]
    company: Optional[CompanySummary] = None
