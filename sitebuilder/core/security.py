"""
Security helpers: password hashing, JWT cookies, and input validation for
values that reach subprocesses or server-side fetches.
"""
import ipaddress
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlsplit

import bcrypt
from jose import JWTError, jwt

from sitebuilder.config import settings


# ═══════════════════════════════════════════
#  Passwords
# ═══════════════════════════════════════════

def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


# ═══════════════════════════════════════════
#  JWT
# ═══════════════════════════════════════════

def create_access_token(user_id: Any, email: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {"userId": str(user_id), "email": email, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Return the user id carried by a valid token, None otherwise."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    return payload.get("userId") or None


# ═══════════════════════════════════════════
#  Domain validation
# ═══════════════════════════════════════════

# Characters that carry meaning in a shell; checked before the grammar so the
# rejection reason is explicit.
SHELL_METACHARACTERS = re.compile(r"[;&|`$(){}\[\]<>!#*?~\n\r\\'\"]")
PATH_SEPARATORS = re.compile(r"[/\\]")
DOMAIN_PATTERN = re.compile(
    r"^(?!-)[a-z0-9-]{1,63}(?<!-)(\.[a-z0-9-]{1,63})*\.[a-z]{2,}$"
)
SAFE_CHARS = re.compile(r"^[a-z0-9.-]+$")
MAX_DOMAIN_LENGTH = 253


@dataclass(frozen=True)
class DomainValidation:
    is_valid: bool
    sanitized: Optional[str] = None
    error: Optional[str] = None


def validate_domain(domain: Any) -> DomainValidation:
    """Normalize a hostname and reject anything unsafe for shell arguments or DNS lookups."""
    if not domain or not isinstance(domain, str):
        return DomainValidation(False, error="Domain is required")

    cleaned = domain.lower().strip()
    if not cleaned:
        return DomainValidation(False, error="Domain cannot be empty")

    if len(cleaned) > MAX_DOMAIN_LENGTH:
        return DomainValidation(False, error="Domain name too long (max 253 characters)")

    if SHELL_METACHARACTERS.search(cleaned) or PATH_SEPARATORS.search(cleaned):
        return DomainValidation(False, error="Domain contains invalid characters")

    if not DOMAIN_PATTERN.match(cleaned):
        return DomainValidation(False, error="Invalid domain format. Example: example.com")

    if not SAFE_CHARS.match(cleaned):
        return DomainValidation(False, error="Domain contains disallowed characters")

    return DomainValidation(True, sanitized=cleaned)


def contains_shell_metacharacters(value: str) -> bool:
    return bool(SHELL_METACHARACTERS.search(value))


# ═══════════════════════════════════════════
#  URL validation (SSRF)
# ═══════════════════════════════════════════

ALLOWED_SCHEMES = {"http", "https"}

BLOCKED_HOSTNAMES = {
    "localhost",
    "metadata.google.internal",
    "metadata.google.com",
}


def validate_url_for_fetch(url: Any) -> tuple[bool, Optional[str]]:
    """Check a user-supplied URL before the server fetches it. Returns (ok, error)."""
    if not url or not isinstance(url, str):
        return False, "URL is required"

    try:
        parts = urlsplit(url)
        hostname = (parts.hostname or "").lower()
    except ValueError:
        return False, "Invalid URL format"

    if parts.scheme not in ALLOWED_SCHEMES:
        return False, "Only HTTP/HTTPS URLs are allowed"
    if not hostname:
        return False, "Invalid URL format"
    if parts.username or parts.password:
        return False, "URLs with credentials are not allowed"
    if hostname in BLOCKED_HOSTNAMES:
        return False, "This URL is not allowed"

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return True, None

    if (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_unspecified
        or ip.is_multicast
        or (ip.version == 4 and ip in ipaddress.ip_network("100.64.0.0/10"))
    ):
        return False, "This URL is not allowed"
    return True, None
