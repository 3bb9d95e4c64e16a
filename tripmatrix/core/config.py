"""
Application configuration with environment-based settings.

This module uses Pydantic Settings for automatic environment variable loading
and validation. Canva Connect credentials and tuning knobs for the design
pipeline (timeouts, polling cadence, refresh skew) live here as well.
"""

import os
import secrets
import tomllib
from base64 import urlsafe_b64encode
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    AnyUrl,
    BeforeValidator,
    PostgresDsn,
    computed_field,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    """Parse CORS origins from string or list"""
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


def _load_app_version_from_pyproject() -> str:
    """Load application version from pyproject.toml"""
    try:
        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"

        if not pyproject_path.exists():
            return "0.0.0"

        with open(pyproject_path, "rb") as f:
            config = tomllib.load(f)
            return config.get("project", {}).get("version") or "0.0.0"

    except (OSError, tomllib.TOMLDecodeError):
        return "0.0.0"


class Settings(BaseSettings):
    """
    Application settings with validation.

    All settings have defaults for local development, except the Canva
    client credentials: without them the authorization flow reports
    ConfigurationMissing instead of starting.
    """

    model_config = SettingsConfigDict(
        # Disable .env loading when TESTING=1 (set by conftest.py)
        env_file=None if os.getenv("TESTING") else ".env",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=True,
    )

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "TripMatrix"
    APP_VERSION: str = _load_app_version_from_pyproject()
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Environment
    ENVIRONMENT: Literal["local", "development", "staging", "production"] = "local"

    # Frontend Configuration
    # OAuth callbacks redirect the browser back here with canva_auth/canva_error params.
    FRONTEND_HOST: str = "http://localhost:3000"

    # CORS Configuration
    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        """Get all CORS origins including frontend host"""
        origins = [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]
        if self.FRONTEND_HOST:
            origins.append(self.FRONTEND_HOST.rstrip("/"))
        return origins

    # Database Configuration (PostgreSQL)
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "app"
    POSTGRES_PASSWORD: str = "changethis"
    POSTGRES_DB: str = "app"

    # Token encryption key for Canva tokens at rest.
    # Auto-generated for local/dev (stored tokens won't survive a restart).
    # For production, set explicitly and persist:
    #   python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    TOKEN_ENCRYPTION_KEY: str = urlsafe_b64encode(secrets.token_bytes(32)).decode()

    # Canva Connect OAuth
    # Register at: https://www.canva.com/developers/integrations
    CANVA_CLIENT_ID: str | None = None
    CANVA_CLIENT_SECRET: str | None = None
    # When unset, the callback URL is derived from the incoming request.
    CANVA_REDIRECT_URI: str | None = None
    CANVA_AUTH_BASE_URL: str = "https://www.canva.com/api"
    CANVA_API_BASE_URL: str = "https://api.canva.com/rest"
    CANVA_DESIGN_BASE_URL: str = "https://www.canva.com"

    # Brand template used for autofill. Without it, designs are created empty
    # and seeded with the cover image instead.
    CANVA_BRAND_TEMPLATE_ID: str | None = None

    # Canva pipeline tuning
    CANVA_HTTP_TIMEOUT_SECONDS: float = 30.0
    CANVA_TOKEN_REFRESH_SKEW_SECONDS: int = 60
    CANVA_JOB_POLL_INTERVAL_SECONDS: float = 2.0
    CANVA_JOB_TIMEOUT_SECONDS: float = 60.0
    CANVA_ASSET_POLL_INTERVAL_SECONDS: float = 1.0
    CANVA_ASSET_UPLOAD_TIMEOUT_SECONDS: float = 30.0
    CANVA_DISPLAY_TIMEZONE: str = "UTC"

    # Expired OAuth state cleanup period
    STATE_CLEANUP_INTERVAL_SECONDS: int = 300

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        """Build PostgreSQL connection string"""
        return PostgresDsn.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )


# Create settings instance
settings = Settings()
