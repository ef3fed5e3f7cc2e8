"""
Site management API

  POST   /site/create    provision a domain-backed site (multipart form)
  GET    /site/get-all   list sites with meta and company
  POST   /site/validate  resolve a site id for the public renderer
  DELETE /site/delete    tear a site down, including DNS and certificate
"""
import logging
import uuid
from typing import Any, List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sitebuilder.api import deps
from sitebuilder.config import settings
from sitebuilder.crud import crud_site
from sitebuilder.models.site import Site
from sitebuilder.models.user import User
from sitebuilder.schemas.site import (
    CompanySummary,
    SiteCreateRequest,
    SiteCreateResult,
    SiteDeleteRequest,
    SiteRead,
    SiteValidateRequest,
    SiteValidateResult,
    UploadedImage,
)
from sitebuilder.services.cloudflare import CloudflareClient
from sitebuilder.services.hosts_file import HostsFileManager
from sitebuilder.services.site_provisioning import ProvisioningError, SiteProvisioner
from sitebuilder.services.ssl_installer import SSLInstaller
from sitebuilder.services.storage import SpacesStorage

router = APIRouter()
logger = logging.getLogger("sitebuilder.sites")


# ── Helpers ──

async def _read_upload(upload: Optional[UploadFile]) -> Optional[UploadedImage]:
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    if not content:
        return None
    return UploadedImage(content=content, filename=upload.filename, content_type=upload.content_type)


def _parse_site_id(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _validation_error_response(exc: ValidationError) -> JSONResponse:
    errors = {}
    for err in exc.errors():
        field = str(err["loc"][-1]) if err.get("loc") else "form"
        errors.setdefault(field, err["msg"])
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": errors})


# ── Endpoints ──

@router.post("/create", response_model=SiteCreateResult)
async def create_site(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    provisioner: SiteProvisioner = Depends(deps.get_site_provisioner),
    domain: Optional[str] = Form(None),
    siteName: Optional[str] = Form(None),
    tagline: Optional[str] = Form(None),
    logo: Optional[UploadFile] = File(None),
    favicon: Optional[UploadFile] = File(None),
    logoUrl: Optional[str] = Form(None),
    faviconUrl: Optional[str] = Form(None),
    company: Optional[str] = Form(None),
    companyName: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    accentColor: Optional[str] = Form(None),
    isCloudflare: Optional[str] = Form(None),
) -> Any:
    """
    Create a site: DNS (Cloudflare or hosts file), SSL, database rows and
    logo/favicon upload. Errors come back as `{"error": {field: message}}`.
    """
    try:
        site_in = SiteCreateRequest(
            domain=domain,
            siteName=siteName,
            tagline=tagline,
            logo=await _read_upload(logo),
            favicon=await _read_upload(favicon),
            logoUrl=logoUrl,
            faviconUrl=faviconUrl,
            company=company,
            companyName=companyName,
            phone=phone,
            email=email,
            address=address,
            accentColor=accentColor,
            isCloudflare=isCloudflare or False,
        )
    except ValidationError as e:
        return _validation_error_response(e)

    try:
        return await provisioner.create_site(db, site_in, current_user.id)
    except ProvisioningError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_response())


@router.get("/get-all", response_model=List[SiteRead])
def get_all_sites(
    search: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return crud_site.get_multi(db, search=search)


@router.post("/validate", response_model=SiteValidateResult)
def validate_site(
    body: SiteValidateRequest,
    db: Session = Depends(deps.get_db),
) -> Any:
    """Public: the site renderer resolves its id here."""
    if not body.siteId:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Site ID is required")
    site_id = _parse_site_id(body.siteId)
    site = crud_site.get(db, site_id) if site_id else None
    if not site:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid site ID")

    return SiteValidateResult(
        valid=True,
        domain=site.domain,
        site_name=site.site_name,
        meta=site.meta_dict(),
        company=CompanySummary.model_validate(site.company) if site.company else None,
    )


@router.delete("/delete")
async def delete_site(
    body: SiteDeleteRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    storage: SpacesStorage = Depends(deps.get_storage),
    cloudflare: CloudflareClient = Depends(deps.get_cloudflare),
    hosts: HostsFileManager = Depends(deps.get_hosts_file),
    ssl: SSLInstaller = Depends(deps.get_ssl_installer),
) -> Any:
    if not body.site_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="site_id is required")
    site_id = _parse_site_id(body.site_id)
    site: Optional[Site] = crud_site.get(db, site_id) if site_id else None
    if not site:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    if not current_user.is_admin and site.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to delete this site")

    domain = site.domain
    try:
        crud_site.remove(db, site=site)
        await storage.delete_folder(str(site_id))
        db.commit()
    except (SQLAlchemyError, BotoCoreError, ClientError) as e:
        db.rollback()
        logger.error("Error deleting site %s and related data: %s", site_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete site and related data.",
        )

    if not settings.is_hosted:
        await hosts.remove_from_hosts(domain)
    else:
        zone_id = await cloudflare.get_zone_id(domain)
        record_id = await cloudflare.get_dns_record_id(zone_id, settings.APP_IPv4, domain)
        await cloudflare.delete_dns_record(zone_id, record_id)
        if not await ssl.remove_certificate(domain):
            logger.warning("Failed to remove SSL certificate from server for %s", domain)

    logger.info("Site %s (%s) deleted by %s", site_id, domain, current_user.id)
    return {
        "success": True,
        "message": "Site and all related data deleted, Cloudflare A record and SSL certificate removed.",
    }
