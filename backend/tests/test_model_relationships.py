import os
import warnings

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import SADeprecationWarning
from sqlalchemy.orm import configure_mappers

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from marketplace_onboarding.crud.customers import get_customer
from marketplace_onboarding.crud.entitlements import SqlAlchemyEntitlementStore
from marketplace_onboarding.crud.products import get_product
from marketplace_onboarding.entitlements.reconciler import EntitlementReconciler
from marketplace_onboarding.models.customers import Customer
from marketplace_onboarding.models.entitlements import Entitlement
from marketplace_onboarding.models.products import Product
from factories import make_customer, observation, setup_db


@pytest.fixture
def db_session(tmp_path):
    SessionLocal = setup_db(f"sqlite:///{tmp_path}/relationships_test.db")
    with SessionLocal() as db:
        make_customer(db, customer_identifier="c1", product_code="p1")
    EntitlementReconciler(SqlAlchemyEntitlementStore(SessionLocal)).reconcile(
        [observation(5), observation("gold", dimension="tier")]
    )
    with SessionLocal() as session:
        yield session


def test_relationships_use_supported_loader_strategies():
    with warnings.catch_warnings():
        warnings.simplefilter("error", SADeprecationWarning)
        configure_mappers()
    for model, name in ((Customer, "entitlements"), (Product, "entitlements"), (Entitlement, "customer")):
        assert inspect(model).relationships[name].lazy == "select"


def test_customer_has_entitlements_relationship(db_session):
    customer = get_customer(db_session, "c1")
    assert sorted(row.dimension for row in customer.entitlements) == ["seats", "tier"]


def test_product_and_entitlement_link_back(db_session):
    product = get_product(db_session, "p1")
    rows = product.entitlements
    assert len(rows) == 2
    assert {row.customer.customer_identifier for row in rows} == {"c1"}
    assert {row.product.product_code for row in rows} == {"p1"}
