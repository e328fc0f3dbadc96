"""
Startup-time checks for required configuration.
"""

from __future__ import annotations

from marketplace_onboarding.core.config import settings


def _is_production() -> bool:
    env = (settings.ENVIRONMENT or "").strip().lower()
    return env in {"production", "prod"}


def run_startup_checks() -> None:
    missing: list[str] = []
    insecure: list[str] = []

    if not settings.DATABASE_URL:
        missing.append("DATABASE_URL")
    if not settings.AWS_DEFAULT_REGION:
        missing.append("AWS_DEFAULT_REGION")
    if not settings.MARKETPLACE_TOKEN_FIELD:
        missing.append("MARKETPLACE_TOKEN_FIELD")

    if _is_production():
        if settings.DATABASE_URL and settings.DATABASE_URL.startswith("sqlite"):
            insecure.append("DATABASE_URL")
        if not settings.SECURITY_HEADERS_ENABLED:
            insecure.append("SECURITY_HEADERS_ENABLED")

    if missing or insecure:
        parts = []
        if missing:
            parts.append(f"Missing required settings: {', '.join(sorted(set(missing)))}")
        if insecure:
            parts.append(f"Insecure settings detected: {', '.join(sorted(set(insecure)))}")
        raise RuntimeError("Startup checks failed. " + " ".join(parts))
