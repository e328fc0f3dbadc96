import os

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from marketplace_onboarding.main import app
from marketplace_onboarding.api.dependencies import get_marketplace_client
from marketplace_onboarding.crud.customers import CustomerProfile, update_customer_additional_info
from marketplace_onboarding.crud.entitlements import count_entitlements
from marketplace_onboarding.marketplace.client import MarketplaceClient
from marketplace_onboarding.models.customers import Customer
from marketplace_onboarding.models.products import Product
from factories import setup_db
from marketplace_fakes import FakeEntitlementClient, FakeMeteringClient, client_error, entitlement_item

TOKEN_FIELD = "x-amzn-marketplace-token"


@pytest.fixture
def SessionLocal(tmp_path):
    return setup_db(f"sqlite:///{tmp_path}/webhook.db")


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _use_marketplace(metering=None, pages=None, entitlement_error=None):
    def factory():
        return MarketplaceClient(
            metering or FakeMeteringClient(),
            FakeEntitlementClient(pages=pages, error=entitlement_error),
            page_size=10,
        )

    app.dependency_overrides[get_marketplace_client] = factory


def _pages(*items):
    return [{"Entitlements": list(items)}]


def test_missing_token_renders_error_page(SessionLocal, client):
    _use_marketplace()
    resp = client.post("/aws-marketplace/webhook", data={})
    assert resp.status_code == 400
    assert "No token provided." in resp.text


def test_resolve_failure_maps_marketplace_error(SessionLocal, client):
    _use_marketplace(metering=FakeMeteringClient(error=client_error("ExpiredTokenException", "ResolveCustomer")))
    resp = client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"})
    assert resp.status_code == 400
    assert resp.headers["X-Error-Code"] == "ExpiredTokenException"
    assert "Resolve Customer Failed" in resp.text


def test_no_entitlements_renders_not_found(SessionLocal, client):
    _use_marketplace(pages=_pages())
    resp = client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"})
    assert resp.status_code == 404
    assert "No entitlements found." in resp.text


def test_new_customer_is_recorded_and_redirected(SessionLocal, client):
    _use_marketplace(
        pages=_pages(
            entitlement_item({"IntegerValue": 5}),
            entitlement_item({"StringValue": "gold"}, dimension="tier"),
        )
    )
    resp = client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"}, follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/aws-marketplace/onboarding/c1"
    with SessionLocal() as db:
        assert db.query(Customer).filter(Customer.customer_identifier == "c1").one().aws_account_id == "111122223333"
        assert db.query(Product).filter(Product.product_code == "p1").count() == 1
        assert count_entitlements(db) == 2


def test_replayed_webhook_does_not_grow_the_log(SessionLocal, client):
    items = (entitlement_item({"IntegerValue": 5}), entitlement_item({"BooleanValue": True}, dimension="sso"))
    _use_marketplace(pages=_pages(*items))
    client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"}, follow_redirects=False)
    _use_marketplace(pages=_pages(*items))
    resp = client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"}, follow_redirects=False)

    assert resp.status_code == 302
    with SessionLocal() as db:
        assert count_entitlements(db) == 2


def test_changed_entitlement_appends_history(SessionLocal, client):
    _use_marketplace(pages=_pages(entitlement_item({"IntegerValue": 5})))
    client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"}, follow_redirects=False)
    _use_marketplace(pages=_pages(entitlement_item({"IntegerValue": 10})))
    client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"}, follow_redirects=False)

    with SessionLocal() as db:
        assert count_entitlements(db, ("c1", "p1", "seats")) == 2
    resp = client.get("/aws-marketplace/customers/c1/entitlements")
    assert resp.status_code == 200
    body = resp.json()
    assert [(e["dimension"], e["value_type"], e["value"]) for e in body["entitlements"]] == [
        ("seats", "integer", 10)
    ]


def test_invalid_entitlement_value_aborts_reconciliation(SessionLocal, client):
    _use_marketplace(
        pages=_pages(
            entitlement_item({"IntegerValue": 5}),
            entitlement_item({}, dimension="broken"),
        )
    )
    resp = client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"}, follow_redirects=False)

    assert resp.status_code == 422
    assert resp.headers["X-Error-Code"] == "invalid_value"
    with SessionLocal() as db:
        assert count_entitlements(db) == 0
        assert db.query(Customer).count() == 1


def test_entitlement_fetch_failure_renders_error(SessionLocal, client):
    _use_marketplace(entitlement_error=client_error("ThrottlingException"))
    resp = client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"})
    assert resp.status_code == 429
    assert "Get Entitlements Failed" in resp.text


def test_registered_customer_sees_success_page(SessionLocal, client):
    _use_marketplace(pages=_pages(entitlement_item({"IntegerValue": 5})))
    client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"}, follow_redirects=False)
    with SessionLocal() as db:
        update_customer_additional_info(
            db,
            "c1",
            CustomerProfile(
                name="Ada",
                email="ada@example.com",
                phone="1",
                job_role="CTO",
                company="AE",
                country="GB",
            ),
        )

    _use_marketplace(pages=_pages(entitlement_item({"IntegerValue": 5})))
    resp = client.post("/aws-marketplace/webhook", data={TOKEN_FIELD: "tok"}, follow_redirects=False)
    assert resp.status_code == 200
    assert "all set" in resp.text


def test_entitlements_endpoint_unknown_customer(SessionLocal, client):
    resp = client.get("/aws-marketplace/customers/ghost/entitlements")
    assert resp.status_code == 404


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}
