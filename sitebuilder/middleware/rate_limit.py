"""
Per-IP rate limiting for the auth endpoints.

Redis sliding window: one sorted set per (scope, ip), scored by request time.
When Redis is unreachable the request is allowed.
"""
import logging
import time
from typing import Optional, Tuple

import redis
from fastapi import HTTPException, Request, status

from sitebuilder.config import settings

logger = logging.getLogger("sitebuilder.rate_limit")


# ═══════════════════════════════════════════
#  Rate Limiter Core
# ═══════════════════════════════════════════

class RateLimiter:
    """Redis-backed sliding-window limiter."""

    def __init__(self, redis_url: Optional[str] = None):
        self._redis_url = redis_url or settings.redis_url
        self._redis: Optional[redis.Redis] = None

    @property
    def r(self) -> redis.Redis:
        if self._redis is None:
            client = redis.Redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            client.ping()
            self._redis = client
        return self._redis

    def is_allowed(
        self,
        key: str,
        max_requests: int,
        window_seconds: int,
    ) -> Tuple[bool, int, int]:
        """
        Sliding-window check.
        Returns (allowed, remaining, retry_after_seconds).
        """
        try:
            now = time.time()
            window_start = now - window_seconds
            pipe = self.r.pipeline(transaction=True)
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, window_seconds + 10)
            results = pipe.execute()
            current_count = results[1]

            if current_count >= max_requests:
                self.r.zrem(key, str(now))
                oldest = self.r.zrange(key, 0, 0, withscores=True)
                retry_after = int(window_seconds - (now - oldest[0][1])) if oldest else window_seconds
                return False, 0, max(retry_after, 1)

            remaining = max_requests - current_count - 1
            return True, max(remaining, 0), 0

        except redis.RedisError as e:
            logger.warning("Rate limiter Redis error: %s, allowing request", e)
            self._redis = None
            return True, max_requests, 0


# ═══════════════════════════════════════════
#  Rate Limit Configuration
# ═══════════════════════════════════════════

RATE_LIMITS = {
    "login": {
        "max_requests": settings.RATE_LIMIT_LOGIN,
        "window_seconds": 15 * 60,
        "message": "Too many login attempts. Please try again later.",
    },
    "otp": {
        "max_requests": settings.RATE_LIMIT_OTP,
        "window_seconds": 60,
        "message": "Too many OTP requests. Please wait before requesting another code.",
    },
    "register": {
        "max_requests": settings.RATE_LIMIT_REGISTER,
        "window_seconds": 60 * 60,
        "message": "Too many registration attempts. Please try again later.",
    },
}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# ═══════════════════════════════════════════
#  FastAPI dependency
# ═══════════════════════════════════════════

class RateLimit:
    """
    Route dependency: `Depends(RateLimit("login"))`.
    The limiter instance lives on `app.state.rate_limiter`.
    """

    def __init__(self, scope: str):
        if scope not in RATE_LIMITS:
            raise KeyError(f"Unknown rate limit scope: {scope}")
        self.scope = scope

    def __call__(self, request: Request) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return

        conf = RATE_LIMITS[self.scope]
        ip = client_ip(request)
        allowed, _, retry_after = limiter.is_allowed(
            f"rl:{self.scope}:{ip}",
            conf["max_requests"],
            conf["window_seconds"],
        )
        if not allowed:
            logger.warning("Rate limit '%s' exceeded for %s", self.scope, ip)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=conf["message"],
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(conf["max_requests"]),
                    "X-RateLimit-Remaining": "0",
                },
            )
