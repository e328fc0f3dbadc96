# Central place for all configurable settings. We use Pydantic's
# BaseSettings so values can be read from env vars or a .env file.
# This keeps deployment flexible without hardcoding credentials.

import json
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def safe_json_loads(value):
    try:
        return json.loads(value)
    except Exception:
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_json_loads=safe_json_loads,
    )

    # Core DB connection string, like sqlite:///./app.db or a MySQL URL.
    # Needed by SQLAlchemy to connect to the customer registry.
    DATABASE_URL: str

    # Deployment environment name. "production" enables stricter checks.
    ENVIRONMENT: str = "development"

    # Region used for the Marketplace Metering and Entitlement clients.
    AWS_DEFAULT_REGION: str = "us-east-1"

    # Form field AWS posts the registration token in.
    MARKETPLACE_TOKEN_FIELD: str = "x-amzn-marketplace-token"

    # Page size requested from GetEntitlements. NextToken pages are
    # followed until exhausted.
    ENTITLEMENTS_PAGE_SIZE: int = Field(default=25, gt=0)

    # Public path the onboarding form lives under once the webhook
    # redirects. Must end with a slash.
    ONBOARDING_BASE_PATH: str = "/aws-marketplace/"

    # Directory holding the Jinja2 templates for the onboarding pages.
    TEMPLATES_DIR: Optional[str] = None

    LOG_LEVEL: str = "INFO"

    # Security headers. The CSP applies to the HTML onboarding pages.
    SECURITY_HEADERS_ENABLED: bool = True
    ONBOARDING_CSP: str = (
        "default-src 'none'; style-src 'unsafe-inline'; form-action 'self'; "
        "frame-ancestors 'none'; base-uri 'none'"
    )
    HSTS_MAX_AGE: int = 31536000

    @field_validator("ONBOARDING_BASE_PATH", mode="before")
    @classmethod
    def _ensure_trailing_slash(cls, value):
        if isinstance(value, str) and value and not value.endswith("/"):
            return f"{value}/"
        return value


# Instantiate a single settings object for app-wide import.
# Any module can just `from marketplace_onboarding.core.config import settings`.
settings = Settings()
