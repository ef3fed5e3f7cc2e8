from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sitebuilder.api.v1.api import api_router
from sitebuilder.config import settings
from sitebuilder.core.otp_store import build_otp_store
from sitebuilder.logging_config import setup_logging
from sitebuilder.middleware.rate_limit import RateLimiter
from sitebuilder.middleware.request_logging import RequestLoggingMiddleware

# ── Initialize structured logging ──
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.otp_store = build_otp_store(
        settings.OTP_STORE_BACKEND,
        settings.redis_url,
        ttl_seconds=settings.OTP_TTL_SECONDS,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
    )
    app.state.rate_limiter = RateLimiter(settings.redis_url) if settings.RATE_LIMIT_ENABLED else None
    yield


app = FastAPI(
    title=settings.APP_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan,
)

# Set all CORS enabled origins
cors_origins = ["http://localhost:3000"]
if settings.BACKEND_CORS_ORIGINS:
    cors_origins.extend(
        [origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware: request ID, timing, user context
app.add_middleware(RequestLoggingMiddleware)


# ── Error envelope: every failure is rendered as {"error": ...} ──

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "form")]
        errors.setdefault(".".join(loc) or "request", err.get("msg", "Invalid value"))
    return JSONResponse(status_code=400, content={"error": errors})


app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    return {"message": f"Welcome to {settings.APP_NAME} API", "docs": "/docs"}


@app.get("/health")
def health_check():
    return {"status": "ok", "env": settings.APP_ENV}
