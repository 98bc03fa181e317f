"""Settings — typed configuration read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./cumulus.db"
DEFAULT_JWT_EXPIRES_IN = 7 * 24 * 60 * 60


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Process configuration. Build with ``Settings.from_env()`` or directly in tests."""

    database_url: str = DEFAULT_DATABASE_URL
    db_pool_size: int = 20
    db_connect_timeout: int = 10
    db_pool_recycle: int = 1800
    db_echo: bool = False

    jwt_secret: str = "dev-secret"
    jwt_algorithm: str = "HS256"
    jwt_expires_in: int = DEFAULT_JWT_EXPIRES_IN
    cookie_secure: bool = False

    storage_backend: str = "local"
    storage_bucket: str = "files"
    storage_root: str = "./storage"
    s3_endpoint_url: str | None = None
    aws_region: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    signed_url_ttl: int = 60
    fetch_timeout: float = 10.0

    public_base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_secure: bool = False
    smtp_suppress_send: bool = False
    from_email: str | None = None
    from_name: str = "Cloud Drive"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> Settings:
        """Read settings from ``os.environ`` (after loading ``.env`` when *dotenv*)."""
        if dotenv:
            load_dotenv()
        smtp_user = os.getenv("SMTP_USER")
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            db_pool_size=_env_int("DB_POOL_SIZE", 20),
            db_connect_timeout=_env_int("DB_CONNECT_TIMEOUT", 10),
            db_pool_recycle=_env_int("DB_POOL_RECYCLE", 1800),
            db_echo=_env_bool("DB_ECHO"),
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
            jwt_expires_in=_env_int("JWT_EXPIRES_IN", DEFAULT_JWT_EXPIRES_IN),
            cookie_secure=_env_bool("COOKIE_SECURE"),
            storage_backend=os.getenv("STORAGE_BACKEND", "local").lower(),
            storage_bucket=os.getenv("STORAGE_BUCKET", "files"),
            storage_root=os.getenv("STORAGE_ROOT", "./storage"),
            s3_endpoint_url=os.getenv("S3_ENDPOINT_URL"),
            aws_region=os.getenv("AWS_REGION"),
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            signed_url_ttl=_env_int("SIGNED_URL_TTL", 60),
            fetch_timeout=float(os.getenv("FETCH_TIMEOUT", "10")),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
            cors_origins=_env_list("CORS_ORIGINS", ["*"]),
            smtp_host=os.getenv("SMTP_HOST"),
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_user=smtp_user,
            smtp_pass=os.getenv("SMTP_PASS"),
            smtp_secure=_env_bool("SMTP_SECURE"),
            smtp_suppress_send=_env_bool("SMTP_SUPPRESS_SEND"),
            from_email=os.getenv("FROM_EMAIL") or smtp_user,
            from_name=os.getenv("FROM_NAME", "Cloud Drive"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)


def configure_logging(level: str = "INFO") -> None:
    """Install a basic stream handler on the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
