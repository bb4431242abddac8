"""Application settings loaded from environment variables.

Environment Configuration:
    SCAAF_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: PostgreSQL connection string (required)
    LOG_JSON: Emit JSON logs (default true); console renderer otherwise

Auth Configuration (required in all environments):
    SUPABASE_JWKS_URL: Full URL to Supabase JWKS endpoint
    SUPABASE_ISSUER: Expected JWT issuer (trailing slash stripped)
    SUPABASE_AUDIENCES: Comma-separated list of allowed audiences
    AUTH_COOKIE_NAME: Cookie carrying the Supabase access token (browser sessions)

Mail Configuration:
    MAIL_DOMAIN: Domain for issued inbox addresses (default scaaf.day)
    MAILGUN_SIGNING_KEY: Webhook signing key (required in staging/prod)
    APP_BASE_URL: Public origin used to build invite links
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - SUPABASE_JWKS_URL, SUPABASE_ISSUER, SUPABASE_AUDIENCES are required in all environments
    - MAILGUN_SIGNING_KEY is required in staging and prod only
    """

    scaaf_env: Environment = Field(default=Environment.LOCAL, alias="SCAAF_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Supabase auth settings (required in all environments)
    supabase_jwks_url: str | None = Field(default=None, alias="SUPABASE_JWKS_URL")
    supabase_issuer: str | None = Field(default=None, alias="SUPABASE_ISSUER")
    supabase_audiences: str | None = Field(default=None, alias="SUPABASE_AUDIENCES")
    auth_cookie_name: str = Field(default="sb-access-token", alias="AUTH_COOKIE_NAME")

    # Mail settings
    mail_domain: str = Field(default="scaaf.day", alias="MAIL_DOMAIN")
    mailgun_signing_key: str | None = Field(default=None, alias="MAILGUN_SIGNING_KEY")
    app_base_url: str | None = Field(default=None, alias="APP_BASE_URL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set for all environments."""
        missing_auth = []
        if not self.supabase_jwks_url:
            missing_auth.append("SUPABASE_JWKS_URL")
        if not self.supabase_issuer:
            missing_auth.append("SUPABASE_ISSUER")
        if not self.supabase_audiences:
            missing_auth.append("SUPABASE_AUDIENCES")

        if missing_auth:
            raise ValueError(
                f"Missing required Supabase auth settings: {', '.join(missing_auth)}. "
                "Set these environment variables or add them to .env."
            )

        # Unsigned webhooks are only tolerated outside deployed environments
        if self.scaaf_env in (Environment.STAGING, Environment.PROD):
            if not self.mailgun_signing_key:
                raise ValueError(
                    f"MAILGUN_SIGNING_KEY is required for SCAAF_ENV={self.scaaf_env.value}"
                )

        return self

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.supabase_audiences:
            return [a.strip() for a in self.supabase_audiences.split(",") if a.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.supabase_issuer:
            return self.supabase_issuer.rstrip("/")
        return None

    @property
    def normalized_mail_domain(self) -> str:
        """Return the mail domain lowercased, without a leading '@'."""
        return self.mail_domain.strip().lstrip("@").lower()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
