"""
Site provisioning

Turns a validated site-create request into a live site:

  VALIDATING → DNS_ZONE_CHECK → DNS_RECORD_CREATE → DNS_PROPAGATION_WAIT
  → SSL_INSTALL → DB_PERSIST → ASSET_UPLOAD → DONE   (or FAILED)

Hosted environments (production/staging) get a Cloudflare A record, a
propagation wait and a certbot certificate. Everywhere else the domain is
pointed at 127.0.0.1 through the hosts file.

Every 4xx/5xx outcome is raised as ProvisioningError and rendered by the
route as `{"error": {field: message}}`.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union
from uuid import UUID

import httpx
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image
from sqlalchemy.orm import Session

from sitebuilder.config import settings, HOSTED_ENVIRONMENTS
from sitebuilder.core.security import validate_domain
from sitebuilder.crud import crud_company, crud_site
from sitebuilder.logging_config import domain_ctx
from sitebuilder.models.company import Company
from sitebuilder.schemas.site import SiteCreateRequest, SiteCreateResult, UploadedImage
from sitebuilder.services.cloudflare import CloudflareClient
from sitebuilder.services.dns_propagation import DNSPropagationChecker
from sitebuilder.services.hosts_file import HostsFileManager
from sitebuilder.services.images import ImageFetchError, fetch_image, resize_favicon
from sitebuilder.services.ssl_installer import SSLInstaller
from sitebuilder.services.storage import SpacesStorage

logger = logging.getLogger("sitebuilder.provisioning")

UPLOAD_ERRORS = (
    ImageFetchError,
    httpx.HTTPError,
    BotoCoreError,
    ClientError,
    OSError,
    ValueError,
    Image.DecompressionBombError,
)

UNEXPECTED_ERROR = (
    "An unexpected error occurred while creating the site. "
    "Please try again or contact support if the issue persists."
)


class ProvisioningState(str, Enum):
    VALIDATING = "validating"
    DNS_ZONE_CHECK = "dns_zone_check"
    DNS_RECORD_CREATE = "dns_record_create"
    DNS_PROPAGATION_WAIT = "dns_propagation_wait"
    SSL_INSTALL = "ssl_install"
    DB_PERSIST = "db_persist"
    ASSET_UPLOAD = "asset_upload"
    DONE = "done"
    FAILED = "failed"


class ProvisioningError(Exception):
    def __init__(self, status_code: int, field: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.field = field
        self.message = message

    def to_response(self) -> dict:
        return {"error": {self.field: self.message}}


@dataclass
class ProvisioningContext:
    """Per-request handle on everything created so far."""
    domain: str = ""
    is_cloudflare: bool = False
    state: ProvisioningState = ProvisioningState.VALIDATING
    zone_id: Union[str, bool] = False
    record_id: Optional[str] = None
    site_id: Optional[UUID] = None
    hosts_entry_added: bool = False
    history: List[ProvisioningState] = field(default_factory=list)

    def advance(self, state: ProvisioningState) -> None:
        logger.info("Provisioning %s: %s -> %s", self.domain or "-", self.state.value, state.value)
        self.history.append(self.state)
        self.state = state


class SiteProvisioner:
    def __init__(
        self,
        cloudflare: Optional[CloudflareClient] = None,
        hosts: Optional[HostsFileManager] = None,
        ssl: Optional[SSLInstaller] = None,
        storage: Optional[SpacesStorage] = None,
        dns: Optional[DNSPropagationChecker] = None,
        app_env: Optional[str] = None,
    ):
        self.app_env = app_env or settings.APP_ENV
        self.cloudflare = cloudflare or CloudflareClient(app_env=self.app_env)
        self.hosts = hosts or HostsFileManager()
        self.ssl = ssl or SSLInstaller()
        self.storage = storage or SpacesStorage()
        self.dns = dns or DNSPropagationChecker()

    @property
    def is_hosted(self) -> bool:
        return self.app_env in HOSTED_ENVIRONMENTS

    # ──────────── entry point ────────────

    async def create_site(self, db: Session, request: SiteCreateRequest, user_id: UUID) -> SiteCreateResult:
        ctx = ProvisioningContext(is_cloudflare=request.is_cloudflare)
        token = domain_ctx.set("-")
        try:
            return await self._run(db, request, user_id, ctx)
        except ProvisioningError:
            ctx.advance(ProvisioningState.FAILED)
            raise
        except Exception as e:
            logger.exception("Unexpected error creating site %s", ctx.domain or "-")
            ctx.advance(ProvisioningState.FAILED)
            db.rollback()
            if ctx.domain:
                await self.cleanup_on_failure(db, ctx)
            raise ProvisioningError(500, "unexpected", UNEXPECTED_ERROR) from e
        finally:
            domain_ctx.reset(token)

    async def _run(self, db: Session, request: SiteCreateRequest, user_id: UUID,
                   ctx: ProvisioningContext) -> SiteCreateResult:
        ctx.domain = self._validate(request)
        domain_ctx.set(ctx.domain)
        domain = ctx.domain

        if crud_site.get_by_domain(db, domain):
            raise ProvisioningError(
                400, "domain", f"This domain {domain} is already connected to another site."
            )

        if ctx.is_cloudflare:
            ctx.advance(ProvisioningState.DNS_ZONE_CHECK)
            ctx.zone_id = await self.cloudflare.get_zone_id(domain)

        if not self.is_hosted:
            ctx.hosts_entry_added = await self.hosts.create_local_config(domain)
            if not ctx.hosts_entry_added:
                logger.warning("No hosts entry added for %s; continuing", domain)
        else:
            if ctx.is_cloudflare:
                await self._create_dns_record(ctx)
            await self._wait_and_install_ssl(ctx)

        ctx.advance(ProvisioningState.DB_PERSIST)
        try:
            company = self._resolve_company(db, request, user_id)
            site_id = await self._persist(db, request, user_id, company, ctx)
        except ProvisioningError:
            db.rollback()
            await self.cleanup_on_failure(db, ctx)
            raise
        except Exception as e:
            logger.exception("Error creating site configuration for %s", domain)
            db.rollback()
            await self.cleanup_on_failure(db, ctx)
            raise ProvisioningError(
                500,
                "unexpected",
                f"Failed to create site configuration for {domain}. {e}. "
                "Please try again or contact support if the issue persists.",
            ) from e

        ctx.advance(ProvisioningState.DONE)
        suffix = " and SSL certificate installed" if self.is_hosted else ""
        logger.info('Site "%s" (%s) created successfully with ID: %s', request.site_name, domain, site_id)
        return SiteCreateResult(
            success=True,
            siteId=str(site_id),
            domain=domain,
            message=f'Site "{request.site_name}" created successfully{suffix} for {domain}',
        )

    # ──────────── steps ────────────

    def _validate(self, request: SiteCreateRequest) -> str:
        if not request.domain:
            raise ProvisioningError(400, "domain", "Missing domain")
        validation = validate_domain(request.domain)
        if not validation.is_valid:
            raise ProvisioningError(400, "domain", validation.error)
        domain = validation.sanitized
        if self.app_env == "staging":
            domain = f"dev.{domain}"

        if not request.site_name:
            raise ProvisioningError(400, "siteName", "Missing site name")
        if not request.tagline:
            raise ProvisioningError(400, "tagline", "Missing tagline")
        return domain

    async def _create_dns_record(self, ctx: ProvisioningContext) -> None:
        domain = ctx.domain
        if not ctx.zone_id:
            raise ProvisioningError(400, "domain", f"Your domain {domain} does not exist in Cloudflare.")

        existing = await self.cloudflare.get_dns_record_id(ctx.zone_id, settings.APP_IPv4, domain)
        if existing:
            raise ProvisioningError(400, "domain", f"DNS record with name {domain} already exists.")

        ctx.advance(ProvisioningState.DNS_RECORD_CREATE)
        record = await self.cloudflare.create_dns_record(ctx.zone_id, settings.APP_IPv4)
        if not record.success:
            raise ProvisioningError(400, "domain", f"{record.error} for {domain}")
        ctx.record_id = record.id

    async def _discard_dns_record(self, ctx: ProvisioningContext, reason: str) -> None:
        """Delete the record this run created, at most once."""
        if not (ctx.is_cloudflare and ctx.zone_id and ctx.record_id):
            return
        if await self.cloudflare.delete_dns_record(ctx.zone_id, ctx.record_id):
            logger.info("Cleaned up DNS record for %s after %s", ctx.domain, reason)
        else:
            logger.error("Failed to clean up DNS record for %s after %s", ctx.domain, reason)
        ctx.record_id = None

    async def _wait_and_install_ssl(self, ctx: ProvisioningContext) -> None:
        domain = ctx.domain
        ctx.advance(ProvisioningState.DNS_PROPAGATION_WAIT)
        if not await self.dns.check(domain):
            await self._discard_dns_record(ctx, "propagation timeout")
            raise ProvisioningError(
                400,
                "dns",
                f"DNS A record not propagated for {domain}. "
                f"Please add {settings.NEXT_PUBLIC_APP_IPv4} to your DNS records.",
            )

        ctx.advance(ProvisioningState.SSL_INSTALL)
        logger.info("DNS propagated, installing SSL certificate for %s", domain)
        if await self.ssl.install_certificate(domain):
            logger.info("SSL certificate installed successfully for %s", domain)
            return

        await self._discard_dns_record(ctx, "SSL failure")
        raise ProvisioningError(
            400,
            "ssl",
            f"Failed to install SSL certificate for {domain}. "
            "Please check your domain configuration and try again.",
        )

    def _resolve_company(self, db: Session, request: SiteCreateRequest, user_id: UUID) -> Company:
        if request.company_id:
            company = None
            try:
                company = crud_company.get(db, uuid.UUID(request.company_id))
            except ValueError:
                pass
            if not company:
                raise ProvisioningError(400, "company", f"Company with id {request.company_id} not found")
            return company

        if not request.company_name:
            raise ProvisioningError(400, "company", "Missing company name")
        if crud_company.get_by_name(db, request.company_name):
            raise ProvisioningError(400, "company", f"Company with name {request.company_name} already exists")
        return crud_company.create(
            db,
            name=request.company_name,
            user_id=user_id,
            email=request.email,
            phone=request.phone,
            address=request.address,
        )

    async def _persist(self, db: Session, request: SiteCreateRequest, user_id: UUID,
                       company: Company, ctx: ProvisioningContext) -> UUID:
        site = crud_site.create_with_meta(
            db,
            domain=ctx.domain,
            site_name=request.site_name,
            user_id=user_id,
            company_id=company.id,
            meta={"tagline": request.tagline, "accent_color": request.accent_color},
        )
        ctx.site_id = site.id

        ctx.advance(ProvisioningState.ASSET_UPLOAD)
        folder = str(site.id)
        logo_url = await self._upload_asset(folder, "logo.png", request.logo_url, request.logo, resize=False)
        favicon_url = await self._upload_asset(folder, "favicon.png", request.favicon_url, request.favicon, resize=True)

        crud_site.upsert_meta(db, site_id=site.id, key="logo_url", value=logo_url)
        crud_site.upsert_meta(db, site_id=site.id, key="favicon_url", value=favicon_url)
        db.commit()
        return site.id

    async def _upload_asset(self, folder: str, filename: str, url: Optional[str],
                            upload: Optional[UploadedImage], resize: bool) -> str:
        """Store a remote or uploaded image. Returns its CDN URL, or "" on any failure."""
        if not url and not upload:
            return ""
        try:
            data = await fetch_image(url) if url else upload.content
            if resize:
                data = await asyncio.to_thread(resize_favicon, data)
            cdn_url = await self.storage.upload(data, filename, folder, "image/png")
        except UPLOAD_ERRORS as e:
            logger.error("Failed to upload %s for site %s: %s", filename, folder, e)
            return ""
        logger.info("%s uploaded successfully for site %s", filename, folder)
        return cdn_url

    # ──────────── cleanup ────────────

    async def cleanup_on_failure(self, db: Session, ctx: ProvisioningContext) -> None:
        """Undo what this run created. Logs every failure, never raises."""
        domain = ctx.domain
        if ctx.site_id:
            try:
                site = crud_site.get(db, ctx.site_id)
                if site:
                    logger.info("Cleaning up site %s due to creation failure", site.id)
                    crud_site.remove(db, site=site)
                    db.commit()
            except Exception as e:
                db.rollback()
                logger.error("Failed to clean up site rows for %s: %s", domain, e)
            ctx.site_id = None

        if self.is_hosted:
            await self._discard_dns_record(ctx, "creation failure")
        elif ctx.hosts_entry_added:
            if await self.hosts.remove_from_hosts(domain):
                logger.info("Removed %s from hosts file", domain)
            ctx.hosts_entry_added = False
