"""Application configuration management."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from urllib.parse import quote_plus
from typing import Any, Optional, Union

from sqlalchemy.engine import make_url

from pydantic import BaseModel, Field, field_validator, model_validator
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"

load_dotenv(ENV_FILE)

logger = logging.getLogger(__name__)

_PLACEHOLDER_SECRETS = {"change-me", "changeme", "secret"}


def _normalise_directory(path_str: str, *, default: Path, description: str) -> str:
    """Return a writable directory path, falling back when necessary."""

    candidate = Path(path_str).expanduser()
    if not candidate.is_absolute():
        candidate = (BASE_DIR / candidate).resolve()

    try:
        candidate.mkdir(parents=True, exist_ok=True)
    except (PermissionError, OSError) as exc:
        fallback = default.resolve()
        fallback.mkdir(parents=True, exist_ok=True)
        logger.warning(
            "Unable to create %s at %s (%s); using fallback %s",
            description,
            candidate,
            exc,
            fallback,
        )
        candidate = fallback

    return str(candidate)


class Settings(BaseModel):
    """Runtime configuration values for the scheme migration service."""

    app_name: str = Field("Scheme Migration Lock Cache", validation_alias="APP_NAME")
    app_env: str = Field("development", validation_alias="APP_ENV")
    debug: bool = Field(False, validation_alias="DEBUG")

    database_url: str | None = Field(None, validation_alias="DATABASE_URL")
    postgres_db: str = Field("scheme_migration", validation_alias="POSTGRES_DB")
    postgres_user: str = Field("migration", validation_alias="POSTGRES_USER")
    postgres_password: str = Field("please-change-me", validation_alias="POSTGRES_PASSWORD")
    postgres_host: str = Field("localhost", validation_alias="POSTGRES_HOST")
    postgres_port: int = Field(5432, validation_alias="POSTGRES_PORT")

    redis_url: Optional[str] = Field("redis://localhost:6379/0", validation_alias="REDIS_URL")

    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:8000",
            "http://127.0.0.1:8000",
        ],
        validation_alias="CORS_ORIGINS",
    )

    jwt_secret: str = Field(validation_alias="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    jwt_expiry_minutes: int = Field(60, validation_alias="JWT_EXPIRY_MINUTES", gt=0)
    auth_cred_id_claim: str = Field("credId", validation_alias="AUTH_CRED_ID_CLAIM", min_length=1)

    lock_ttl_seconds: int = Field(900, validation_alias="LOCK_TTL_SECONDS", gt=0)
    lock_set_max_retries: int = Field(5, validation_alias="LOCK_SET_MAX_RETRIES", ge=1)
    data_cache_ttl_days: int = Field(28, validation_alias="DATA_CACHE_TTL_DAYS", gt=0)
    expiry_sweep_interval_seconds: float = Field(
        300.0,
        validation_alias="EXPIRY_SWEEP_INTERVAL_SECONDS",
        ge=0,
    )

    rate_limit_requests: int = Field(120, validation_alias="RATE_LIMIT_REQUESTS", gt=0)
    rate_limit_window: int = Field(60, validation_alias="RATE_LIMIT_WINDOW", gt=0)
    rate_limit_max_keys: int = Field(10_000, validation_alias="RATE_LIMIT_MAX_KEYS")
    request_timeout_seconds: float = Field(30.0, validation_alias="REQUEST_TIMEOUT_SECONDS", ge=0)

    log_dir: str = Field(str(BASE_DIR / "data" / "logs"), validation_alias="LOGS_DIR")
    log_max_bytes: int = Field(10 * 1024 * 1024, validation_alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(5, validation_alias="LOG_BACKUP_COUNT")

    db_migration_max_retries: int = Field(
        5,
        validation_alias="DB_MIGRATION_MAX_RETRIES",
        ge=1,
    )
    db_migration_retry_delay_seconds: float = Field(
        2.0,
        validation_alias="DB_MIGRATION_RETRY_DELAY_SECONDS",
        ge=0.0,
    )

    class Config:
        populate_by_name = True

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: Union[str, list[str], None]) -> list[str]:
        if isinstance(value, str):
            parts = [origin.strip() for origin in value.split(",")]
            return [origin for origin in parts if origin]
        if value is None:
            return []
        return list(value)

    @field_validator("redis_url", mode="before")
    @classmethod
    def blank_redis_url_disables_redis(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, value: str) -> str:
        """Ensure the JWT verification secret is sufficiently strong."""

        if value in _PLACEHOLDER_SECRETS:
            raise ValueError(
                "JWT_SECRET must be changed from the default. "
                "Generate a new key with: openssl rand -base64 32"
            )
        if len(value) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters long")
        return value

    @model_validator(mode="after")
    def normalise_log_directory(self) -> "Settings":
        self.log_dir = _normalise_directory(
            self.log_dir,
            default=BASE_DIR / "data" / "logs",
            description="log directory",
        )
        return self

    @model_validator(mode="after")
    def ensure_database_url(self) -> "Settings":
        """Construct a PostgreSQL URL when one is not explicitly provided."""

        if self.database_url:
            try:
                make_url(self.database_url)
            except Exception as exc:
                raise ValueError(f"DATABASE_URL is invalid: {exc}") from exc
            return self

        if not self.postgres_password:
            raise ValueError(
                "DATABASE_URL must be provided or POSTGRES_PASSWORD must be set to build one"
            )

        user = quote_plus(self.postgres_user)
        password = quote_plus(self.postgres_password)
        db_name = quote_plus(self.postgres_db)
        self.database_url = (
            f"postgresql+psycopg2://{user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{db_name}"
        )
        return self

    @property
    def is_sqlite(self) -> bool:
        return bool(self.database_url and self.database_url.startswith("sqlite"))


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    env_names = {
        name: field.validation_alias
        for name, field in Settings.model_fields.items()
        if isinstance(field.validation_alias, str)
    }
    overrides: dict[str, Any] = {
        name: os.environ[alias] for name, alias in env_names.items() if alias in os.environ
    }
    if "jwt_secret" not in overrides:
        raise RuntimeError("JWT_SECRET must be set; it is shared with the token issuer")
    return Settings(**overrides)


settings = get_settings()
