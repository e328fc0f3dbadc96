import os
import time

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from marketplace_onboarding.crud.customers import (
    CustomerProfile,
    check_customer_registration,
    get_customer,
    update_customer_additional_info,
    upsert_customer_basic_info,
)
from marketplace_onboarding.crud.entitlements import SqlAlchemyEntitlementStore
from marketplace_onboarding.crud.errors import CustomerNotFound
from marketplace_onboarding.crud.products import get_product, upsert_product
from marketplace_onboarding.entitlements.reconciler import EntitlementReconciler
from factories import observation, setup_db

PROFILE = CustomerProfile(
    name="Ada Lovelace",
    email="ada@example.com",
    phone="+44 20 7946 0000",
    job_role="CTO",
    company="Analytical Engines",
    country="GB",
)


@pytest.fixture
def SessionLocal(tmp_path):
    return setup_db(f"sqlite:///{tmp_path}/customers.db")


def test_upsert_creates_customer_and_product(SessionLocal):
    with SessionLocal() as db:
        customer = upsert_customer_basic_info(
            db,
            customer_identifier="c1",
            aws_account_id="111122223333",
            product_code="p1",
        )
        assert customer.aws_account_id == "111122223333"
        assert get_product(db, "p1") is not None


def test_upsert_updates_account_id_for_existing_customer(SessionLocal):
    with SessionLocal() as db:
        upsert_customer_basic_info(db, customer_identifier="c1", aws_account_id="old", product_code="p1")
        upsert_customer_basic_info(db, customer_identifier="c1", aws_account_id="new", product_code="p1")
        assert get_customer(db, "c1").aws_account_id == "new"


def test_upsert_requires_all_identifiers(SessionLocal):
    with SessionLocal() as db:
        with pytest.raises(ValueError) as exc:
            upsert_customer_basic_info(db, customer_identifier="c1", aws_account_id=None, product_code="p1")
        assert "aws_account_id" in str(exc.value)


def test_upsert_product_keeps_name_unless_given(SessionLocal):
    with SessionLocal() as db:
        upsert_product(db, "p1", "Widget Cloud")
        db.commit()
        upsert_product(db, "p1")
        db.commit()
        assert get_product(db, "p1").product_name == "Widget Cloud"


def test_unknown_customer_needs_no_registration(SessionLocal):
    with SessionLocal() as db:
        status = check_customer_registration(db, "ghost")
    assert status.needs_registration is False
    assert status.product_name == ""
    assert status.customer_found is False


def test_new_customer_needs_registration_with_latest_product(SessionLocal):
    with SessionLocal() as db:
        upsert_customer_basic_info(db, customer_identifier="c1", aws_account_id="a", product_code="p1")
        upsert_product(db, "p1", "Widget Cloud")
        db.commit()
    EntitlementReconciler(SqlAlchemyEntitlementStore(SessionLocal)).reconcile([observation(5)])

    with SessionLocal() as db:
        status = check_customer_registration(db, "c1")
    assert status.needs_registration is True
    assert status.product_name == "Widget Cloud"


def test_product_code_stands_in_for_missing_display_name(SessionLocal):
    with SessionLocal() as db:
        upsert_customer_basic_info(db, customer_identifier="c1", aws_account_id="a", product_code="p1")
    EntitlementReconciler(SqlAlchemyEntitlementStore(SessionLocal)).reconcile([observation(5)])

    with SessionLocal() as db:
        assert check_customer_registration(db, "c1").product_name == "p1"


def test_profile_update_completes_registration(SessionLocal):
    with SessionLocal() as db:
        customer = upsert_customer_basic_info(db, customer_identifier="c1", aws_account_id="a", product_code="p1")
        before = customer.updated_at
        time.sleep(0.01)
        updated = update_customer_additional_info(db, "c1", PROFILE)
        assert updated.is_fully_registered
        assert updated.updated_at > before
        assert check_customer_registration(db, "c1").needs_registration is False


def test_blank_profile_field_still_needs_registration(SessionLocal):
    with SessionLocal() as db:
        upsert_customer_basic_info(db, customer_identifier="c1", aws_account_id="a", product_code="p1")
        update_customer_additional_info(
            db,
            "c1",
            CustomerProfile(**{**PROFILE.__dict__, "country": "  "}),
        )
        assert check_customer_registration(db, "c1").needs_registration is True


def test_profile_update_for_unknown_customer(SessionLocal):
    with SessionLocal() as db:
        with pytest.raises(CustomerNotFound):
            update_customer_additional_info(db, "ghost", PROFILE)
