"""Pytest configuration and shared fixtures."""
import os
import uuid
from typing import List, Optional, Tuple

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sitebuilder.config import settings
from sitebuilder.core.otp_store import MemoryExpiringStore, OTPStore
from sitebuilder.core.security import create_access_token, get_password_hash
from sitebuilder.db.base_class import Base
from sitebuilder.services.cloudflare import DNSRecordResult

# --- Constants ---
USER_EMAIL = "owner@test.com"
USER_PASSWORD = "Owner1234"
ADMIN_EMAIL = "admin@test.com"


# --- DB URL ---

def _build_test_db_url() -> str:
    """TEST_DATABASE_URL when set (e.g. a Postgres test DB), in-memory SQLite otherwise."""
    return os.getenv("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def test_engine():
    url = _build_test_db_url()
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    import sitebuilder.models  # noqa: F401

    Base.metadata.create_all(bind=test_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# --- Seed data ---

def seed_user(db, email: str = USER_EMAIL, username: str = "owner", role: str = "user",
              company_name: Optional[str] = "Acme"):
    from sitebuilder.models.company import Company
    from sitebuilder.models.user import User

    user = User(
        id=uuid.uuid4(),
        email=email,
        username=username,
        hashed_password=get_password_hash(USER_PASSWORD),
        role=role,
        status="active",
    )
    db.add(user)
    db.flush()
    company = None
    if company_name:
        company = Company(id=uuid.uuid4(), name=company_name, user_id=user.id, status=True)
        db.add(company)
    db.commit()
    return user, company


def login_as(client: AsyncClient, user) -> None:
    """Put a valid auth cookie for `user` on the client."""
    client.cookies.set(settings.AUTH_COOKIE_NAME, create_access_token(user.id, user.email))


# --- Fakes for external collaborators ---

class FakeCloudflare:
    def __init__(self, zone_id="zone-1", existing_record=False, create_result=None):
        self.zone_id = zone_id
        self.existing_record = existing_record
        self.create_result = create_result or DNSRecordResult(success=True, id="rec-1")
        self.calls: List[Tuple] = []
        self.deleted: List[Tuple] = []

    async def get_zone_id(self, domain):
        self.calls.append(("get_zone_id", domain))
        return self.zone_id

    async def get_dns_record_id(self, zone_id, ip, name):
        self.calls.append(("get_dns_record_id", zone_id, ip, name))
        return self.existing_record

    async def create_dns_record(self, zone_id, ip=None):
        self.calls.append(("create_dns_record", zone_id, ip))
        return self.create_result

    async def delete_dns_record(self, zone_id, record_id):
        self.calls.append(("delete_dns_record", zone_id, record_id))
        self.deleted.append((zone_id, record_id))
        return True


class FakeHosts:
    def __init__(self, added=True):
        self.added = added
        self.created: List[str] = []
        self.removed: List[str] = []

    async def create_local_config(self, domain):
        self.created.append(domain)
        return self.added

    async def remove_from_hosts(self, domain):
        self.removed.append(domain)
        return True


class FakeSSL:
    def __init__(self, installed=True):
        self.installed = installed
        self.installs: List[str] = []
        self.removals: List[str] = []

    async def install_certificate(self, domain):
        self.installs.append(domain)
        return self.installed

    async def remove_certificate(self, domain):
        self.removals.append(domain)
        return True


class FakeStorage:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.uploads = {}
        self.deleted_folders: List[str] = []

    async def upload(self, body, filename, folder="generated", content_type="application/octet-stream"):
        if self.error:
            raise self.error
        self.uploads[f"{folder}/{filename}"] = body
        return f"https://cdn.test/{folder}/{filename}"

    async def delete_folder(self, folder):
        self.deleted_folders.append(folder)
        return 0


class FakeDNS:
    def __init__(self, propagated=True):
        self.propagated = propagated
        self.checked: List[str] = []

    async def check(self, domain, max_attempts=None):
        self.checked.append(domain)
        return self.propagated


class FakeMailer:
    def __init__(self, configured=True):
        self.configured = configured
        self.sent: List[Tuple[str, str]] = []

    async def send_registration_otp(self, to, otp):
        self.sent.append((to, otp))


@pytest.fixture
def fakes():
    class _Fakes:
        cloudflare = FakeCloudflare()
        hosts = FakeHosts()
        ssl = FakeSSL()
        storage = FakeStorage()
        dns = FakeDNS()
        mailer = FakeMailer()
    return _Fakes()


# --- HTTP client ---

@pytest.fixture
async def client(session_factory, fakes):
    """
    Async HTTP client against the app with:
      - get_db bound to the test database
      - an in-memory OTP store and no rate limiter
      - fake DNS / SSL / storage / mail collaborators
    """
    from sitebuilder.main import app as fastapi_app
    from sitebuilder.api import deps
    from sitebuilder.services.site_provisioning import SiteProvisioner

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _override_provisioner():
        return SiteProvisioner(
            cloudflare=fakes.cloudflare,
            hosts=fakes.hosts,
            ssl=fakes.ssl,
            storage=fakes.storage,
            dns=fakes.dns,
        )

    fastapi_app.dependency_overrides[deps.get_db] = _override_get_db
    fastapi_app.dependency_overrides[deps.get_site_provisioner] = _override_provisioner
    fastapi_app.dependency_overrides[deps.get_storage] = lambda: fakes.storage
    fastapi_app.dependency_overrides[deps.get_cloudflare] = lambda: fakes.cloudflare
    fastapi_app.dependency_overrides[deps.get_hosts_file] = lambda: fakes.hosts
    fastapi_app.dependency_overrides[deps.get_ssl_installer] = lambda: fakes.ssl
    fastapi_app.dependency_overrides[deps.get_mailer] = lambda: fakes.mailer

    fastapi_app.state.otp_store = OTPStore(MemoryExpiringStore(), ttl_seconds=600, max_attempts=3)
    fastapi_app.state.rate_limiter = None

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
