import os

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from marketplace_onboarding.core import startup_checks
from marketplace_onboarding.core.config import Settings


def test_startup_checks_pass_with_defaults():
    startup_checks.run_startup_checks()


def test_startup_checks_reject_sqlite_in_production(monkeypatch):
    monkeypatch.setattr(startup_checks.settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(startup_checks.settings, "DATABASE_URL", "sqlite:///./prod.db")
    with pytest.raises(RuntimeError) as exc:
        startup_checks.run_startup_checks()
    assert "DATABASE_URL" in str(exc.value)


def test_startup_checks_report_missing_region(monkeypatch):
    monkeypatch.setattr(startup_checks.settings, "AWS_DEFAULT_REGION", "")
    with pytest.raises(RuntimeError) as exc:
        startup_checks.run_startup_checks()
    assert "AWS_DEFAULT_REGION" in str(exc.value)


def test_onboarding_base_path_gains_trailing_slash(monkeypatch):
    monkeypatch.setenv("ONBOARDING_BASE_PATH", "/saas/v1.0")
    assert Settings().ONBOARDING_BASE_PATH == "/saas/v1.0/"


def test_page_size_must_be_positive(monkeypatch):
    monkeypatch.setenv("ENTITLEMENTS_PAGE_SIZE", "0")
    with pytest.raises(ValueError):
        Settings()
