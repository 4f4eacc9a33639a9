from __future__ import annotations

import re

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class MissingRequiredSettingsError(Exception):
    """Raised when required settings are missing."""

    def __init__(self, missing_fields: list[str]) -> None:
        """Initialize with list of missing field names."""
        self.missing_fields = missing_fields
        super().__init__(f"Missing required environment variables: {', '.join(missing_fields)}")


class InvalidSettingsError(Exception):
    """Raised when settings are invalid."""

    def __init__(self, invalid_fields: list[tuple[str, str]]) -> None:
        """Initialize with list of invalid field names and messages."""
        self.invalid_fields = invalid_fields
        summary = ", ".join(f"{field}: {message}" for field, message in invalid_fields)
        super().__init__(f"Invalid environment variables: {summary}")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required environment variables
    jwt_secret_key: str = Field(..., description="JWT secret key for token signing (required)")
    cron_secret: str = Field(..., description="Bearer secret for cron triggers (required)")
    encryption_key: str = Field(
        ..., description="Master key for encrypting stored API keys (required)"
    )

    # Database: either a full URL or Postgres components
    database_url: str | None = Field(default=None, description="Database connection URL")
    postgres_user: str | None = None
    postgres_password: str | None = None
    postgres_host: str | None = None
    postgres_port: int | None = None
    postgres_db: str | None = None

    # Rate limit storage: explicit URL, Redis components, or in-memory
    rate_limit_storage_url: str | None = Field(default=None, description="Rate limit storage URL")
    redis_host: str | None = None
    redis_port: int = 6379
    redis_db: int = 0

    # Secrets for signed links and webhooks
    unsubscribe_secret: str | None = None
    nextauth_secret: str | None = None
    resend_webhook_secret: str | None = None

    # Provider keys used when nothing is stored in the database
    resend_api_key: str | None = None
    gemini_api_key: str | None = None
    airtable_base_id: str | None = None
    gemini_model: str = "gemini-2.0-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"

    # Sender identity for the CAN-SPAM footer
    public_base_url: str = ""
    business_name: str = "cucina labs"
    business_address: str = ""
    business_city: str = ""
    business_state: str = ""
    business_zip: str = ""
    default_from_name: str = "cucina labs"
    default_from_email: str = "newsletter@cucinalabs.com"

    # Optional environment variables (defaults provided)
    app_name: str = "newsdesk-api"
    environment: str = "local"
    log_level: str = "INFO"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 12

    @model_validator(mode="after")
    def build_derived_urls(self) -> Settings:
        """Build URLs from components when missing."""
        if self.database_url is None:
            components = (
                self.postgres_user,
                self.postgres_password,
                self.postgres_host,
                self.postgres_db,
            )
            if any(value is None for value in components):
                raise ValueError(
                    "DATABASE_URL or POSTGRES_USER/POSTGRES_PASSWORD/POSTGRES_HOST/POSTGRES_DB "
                    "must be set."
                )
            self.database_url = URL.create(
                drivername="postgresql+asyncpg",
                username=self.postgres_user,
                password=self.postgres_password,
                host=self.postgres_host,
                port=self.postgres_port or 5432,
                database=self.postgres_db,
            ).render_as_string(hide_password=False)
        if self.rate_limit_storage_url is None:
            if self.redis_host:
                self.rate_limit_storage_url = (
                    f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"
                )
            else:
                self.rate_limit_storage_url = "memory://"
        return self

    @staticmethod
    def _is_strong_jwt_secret(secret: str) -> bool:
        if len(secret) < 32:
            return False
        has_lower = re.search(r"[a-z]", secret) is not None
        has_upper = re.search(r"[A-Z]", secret) is not None
        has_digit = re.search(r"\d", secret) is not None
        has_symbol = re.search(r"[^\w\s]", secret) is not None
        return has_lower and has_upper and has_digit and has_symbol

    @model_validator(mode="after")
    def validate_jwt_secret_strength(self) -> Settings:
        if not self._is_strong_jwt_secret(self.jwt_secret_key):
            raise ValueError(
                "JWT secret key must be at least 32 characters and include upper, lower, "
                "number, and symbol characters."
            )
        return self

    @model_validator(mode="after")
    def validate_encryption_key_length(self) -> Settings:
        if len(self.encryption_key) < 32:
            raise ValueError("ENCRYPTION_KEY must be at least 32 characters long.")
        return self

    @property
    def signing_secret(self) -> str:
        """Secret used for unsubscribe/preferences link tokens."""
        return self.unsubscribe_secret or self.nextauth_secret or ""

    @property
    def physical_address(self) -> str:
        parts = [self.business_address, self.business_city]
        region = " ".join(part for part in (self.business_state, self.business_zip) if part)
        if region:
            parts.append(region)
        return ", ".join(part for part in parts if part)


def validate_settings() -> Settings:
    """Validate settings and raise exception for missing required fields.

    Raises:
        MissingRequiredSettingsError: If required environment variables are missing
        InvalidSettingsError: If values are present but invalid
    """
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as e:
        missing_fields: list[str] = []
        for error in e.errors():
            if error["type"] == "missing":
                field_name = error["loc"][0] if error["loc"] else "unknown"
                missing_fields.append(str(field_name).upper())

        if missing_fields:
            raise MissingRequiredSettingsError(missing_fields) from e

        invalid_fields: list[tuple[str, str]] = []
        for error in e.errors():
            field_path = ".".join(str(part) for part in error.get("loc", []))
            message = error.get("msg", "Invalid value")
            invalid_fields.append((field_path or "unknown", message))

        if invalid_fields:
            raise InvalidSettingsError(invalid_fields) from e

        raise


# Validate settings at import time.
# Exceptions will propagate to the importing module (e.g., newsdesk/main.py)
settings = validate_settings()
