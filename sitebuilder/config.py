import warnings
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Known insecure default keys (must never be used in production) ──
_INSECURE_KEYS = {
    "change_this",
    "change_this_to_a_secure_random_string",
    "your-secret-key",
    "secret",
}

HOSTED_ENVIRONMENTS = ("production", "staging")


class Settings(BaseSettings):
    APP_NAME: str = "Adds AI Site Builder"
    APP_ENV: str = "development"
    API_PREFIX: str = "/api"
    SECRET_KEY: str = "change_this"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    ALGORITHM: str = "HS256"
    AUTH_COOKIE_NAME: str = "token"

    # ── Public addresses of the web server hosting generated sites ──
    APP_IPv4: str = ""
    NEXT_PUBLIC_APP_IPv4: str = ""

    # CORS
    BACKEND_CORS_ORIGINS: str = ""

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "sitebuilder"
    DB_ECHO: bool = False

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    # Cloudflare
    CLOUDFLARE_API_TOKEN: str = ""
    CLOUDFLARE_API_URL: str = "https://api.cloudflare.com/client/v4"
    CLOUDFLARE_RECORD_TTL: int = 3600
    CLOUDFLARE_RECORD_COMMENT: str = "Dynamic website generator (adds-ai)"

    # DNS propagation (DNS-over-HTTPS)
    DNS_RESOLVER_URL: str = "https://dns.google/resolve"
    DNS_PROPAGATION_ATTEMPTS: int = 3
    DNS_PROPAGATION_MAX_WAIT: float = 10.0  # seconds

    # SSL (certbot)
    CERTBOT_COMMAND: str = "sudo certbot"
    LETSENCRYPT_LIVE_DIR: str = "/etc/letsencrypt/live"
    CERTBOT_TIMEOUT: int = 300  # seconds

    # Local development hosts file
    HOSTS_FILE_PATH: str = r"C:\Windows\System32\drivers\etc\hosts"

    # DigitalOcean Spaces (S3 compatible)
    DO_SPACES_REGION: str = "nyc3"
    DO_SPACES_ORIGIN_ENDPOINT: str = ""
    DO_SPACES_CDN_ENDPOINT: str = ""
    DO_SPACES_KEY: str = ""
    DO_SPACES_SECRET: str = ""
    DO_SPACES_BUCKET_NAME: str = ""
    FAVICON_SIZE: int = 32

    # SendGrid
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""

    # OTP
    OTP_STORE_BACKEND: str = "memory"  # memory / redis
    OTP_TTL_SECONDS: int = 10 * 60
    OTP_MAX_ATTEMPTS: int = 3

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_LOGIN: int = 5               # requests / 15 minutes per IP
    RATE_LIMIT_OTP: int = 3                 # requests / minute per IP
    RATE_LIMIT_REGISTER: int = 5            # requests / hour per IP

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Block startup if critical secrets are insecure in production / staging."""
        if self.APP_ENV in HOSTED_ENVIRONMENTS:
            # ── SECRET_KEY ──
            if self.SECRET_KEY in _INSECURE_KEYS or len(self.SECRET_KEY) < 32:
                raise ValueError(
                    f"SECRET_KEY is insecure ('{self.SECRET_KEY[:8]}…'). "
                    "Set a strong random key (≥ 32 chars) in .env or environment. "
                    f"Hint: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
                )
            # ── Database password ──
            if self.POSTGRES_PASSWORD in ("postgres", ""):
                raise ValueError(
                    "POSTGRES_PASSWORD is set to default 'postgres'. "
                    "Set a strong password in .env or environment."
                )
            # ── Server address used for A records ──
            if not self.APP_IPv4:
                warnings.warn(
                    "APP_IPv4 is empty. Cloudflare A records will be created without content.",
                    UserWarning,
                    stacklevel=2,
                )
        return self

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/0"

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def is_hosted(self) -> bool:
        """Production or staging: real DNS and SSL instead of the hosts file."""
        return self.APP_ENV in HOSTED_ENVIRONMENTS

settings = Settings()
