"""
One-time passcode storage.

`ExpiringStore` is a small key/value interface with per-key TTL. Two backends:
an in-process dict (single worker / tests) and Redis (multi-worker). The
application builds one store at startup and hands it to routes through a
dependency, so nothing here is a module-level singleton.
"""
import json
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import redis

logger = logging.getLogger("sitebuilder.otp")


class ExpiringStore(Protocol):
    def get(self, key: str) -> Optional[dict]: ...

    def set(self, key: str, value: dict, ttl: int) -> None: ...

    def delete(self, key: str) -> bool: ...


class MemoryExpiringStore:
    """Thread-safe dict with lazy expiry. `clock` is injectable for tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 10000):
        self._clock = clock
        self._max_entries = max_entries
        self._data: dict[str, tuple[float, dict]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._data[key]
                return None
            return dict(value)

    def set(self, key: str, value: dict, ttl: int) -> None:
        with self._lock:
            if len(self._data) >= self._max_entries:
                self._purge_expired()
            self._data[key] = (self._clock() + ttl, dict(value))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def _purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (exp, _) in self._data.items() if exp <= now]
        for k in expired:
            del self._data[k]
        if expired:
            logger.debug("Purged %d expired OTP entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._data)


class RedisExpiringStore:
    """Redis-backed store; values are JSON documents under `prefix:key`."""

    def __init__(self, client: redis.Redis, prefix: str = "otp"):
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "otp") -> "RedisExpiringStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def get(self, key: str) -> Optional[dict]:
        raw = self._redis.get(self._key(key))
        return json.loads(raw) if raw else None

    def set(self, key: str, value: dict, ttl: int) -> None:
        self._redis.setex(self._key(key), ttl, json.dumps(value))

    def delete(self, key: str) -> bool:
        return bool(self._redis.delete(self._key(key)))


# ═══════════════════════════════════════════
#  OTP service
# ═══════════════════════════════════════════

@dataclass(frozen=True)
class OTPVerification:
    valid: bool
    error: Optional[str] = None


def normalize_email(email: str) -> str:
    return email.lower().strip()


def generate_otp() -> str:
    return str(secrets.randbelow(900000) + 100000)


class OTPStore:
    """Issues and verifies passcodes with attempt limiting on top of an ExpiringStore."""

    def __init__(self, backend: ExpiringStore, ttl_seconds: int = 600, max_attempts: int = 3):
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts

    def issue(self, key: str, otp: Optional[str] = None) -> str:
        code = otp or generate_otp()
        self.backend.set(key, {"otp": code, "attempts": 0}, self.ttl_seconds)
        logger.info("OTP issued for %s", key)
        return code

    def verify(self, key: str, candidate: str) -> OTPVerification:
        data = self.backend.get(key)
        if data is None:
            return OTPVerification(False, "No OTP found for this email. Please request a new OTP.")

        if data.get("attempts", 0) >= self.max_attempts:
            self.backend.delete(key)
            return OTPVerification(False, "Too many failed attempts. Please request a new OTP.")

        if secrets.compare_digest(str(candidate).strip(), str(data["otp"]).strip()):
            self.backend.delete(key)
            logger.info("OTP verified for %s", key)
            return OTPVerification(True)

        attempts = data.get("attempts", 0) + 1
        remaining = self.max_attempts - attempts
        if remaining <= 0:
            self.backend.delete(key)
            return OTPVerification(False, "Too many failed attempts. Please request a new OTP.")

        self.backend.set(key, {**data, "attempts": attempts}, self.ttl_seconds)
        logger.info("Invalid OTP for %s (%d/%d)", key, attempts, self.max_attempts)
        return OTPVerification(False, f"Invalid OTP. {remaining} attempt(s) remaining.")

    def mark(self, key: str) -> None:
        """Store a bare marker (e.g. 'email verified') under the same TTL."""
        self.backend.set(key, {"marked": True}, self.ttl_seconds)

    def is_marked(self, key: str) -> bool:
        data = self.backend.get(key)
        return bool(data and data.get("marked"))

    def delete(self, key: str) -> bool:
        return self.backend.delete(key)


def build_otp_store(backend_name: str, redis_url: str, ttl_seconds: int, max_attempts: int) -> OTPStore:
    if backend_name == "redis":
        backend: ExpiringStore = RedisExpiringStore.from_url(redis_url)
    else:
        backend = MemoryExpiringStore()
    return OTPStore(backend, ttl_seconds=ttl_seconds, max_attempts=max_attempts)
