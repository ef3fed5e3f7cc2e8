import logging
import uuid
from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from sitebuilder.config import settings
from sitebuilder.core.otp_store import OTPStore
from sitebuilder.core.security import decode_access_token
from sitebuilder.crud import crud_user
from sitebuilder.db.session import SessionLocal
from sitebuilder.models.user import User
from sitebuilder.services.cloudflare import CloudflareClient
from sitebuilder.services.hosts_file import HostsFileManager
from sitebuilder.services.mailer import SendGridMailer
from sitebuilder.services.site_provisioning import SiteProvisioner
from sitebuilder.services.ssl_installer import SSLInstaller
from sitebuilder.services.storage import SpacesStorage

logger = logging.getLogger("sitebuilder.auth")

UNAUTHORIZED = "Unauthorized - Please log in"


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    token: Optional[str] = request.cookies.get(settings.AUTH_COOKIE_NAME)
    user_id = decode_access_token(token) if token else None
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)
    try:
        user = crud_user.get(db, uuid.UUID(user_id))
    except ValueError:
        user = None
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)
    return user


def get_otp_store(request: Request) -> OTPStore:
    return request.app.state.otp_store


def get_mailer() -> SendGridMailer:
    return SendGridMailer()


def get_storage() -> SpacesStorage:
    return SpacesStorage()


def get_cloudflare() -> CloudflareClient:
    return CloudflareClient()


def get_hosts_file() -> HostsFileManager:
    return HostsFileManager()


def get_ssl_installer() -> SSLInstaller:
    return SSLInstaller()


def get_site_provisioner(
    cloudflare: CloudflareClient = Depends(get_cloudflare),
    hosts: HostsFileManager = Depends(get_hosts_file),
    ssl: SSLInstaller = Depends(get_ssl_installer),
    storage: SpacesStorage = Depends(get_storage),
) -> SiteProvisioner:
    return SiteProvisioner(cloudflare=cloudflare, hosts=hosts, ssl=ssl, storage=storage)
