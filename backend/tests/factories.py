from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import marketplace_onboarding.core.db as db_module
import marketplace_onboarding.models  # noqa: F401
from marketplace_onboarding.core.db import Base
from marketplace_onboarding.crud.customers import upsert_customer_basic_info
from marketplace_onboarding.entitlements.reconciler import EntitlementObservation
from marketplace_onboarding.entitlements.values import EntitlementValue


def setup_db(db_url: str):
    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False},
        future=True,
    )
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    db_module.engine = engine
    db_module.SessionLocal = SessionLocal
    Base.metadata.create_all(bind=engine)
    return SessionLocal


def make_customer(db, *, customer_identifier: str | None = None, product_code: str = "prod-1", aws_account_id: str = "123456789012"):
    customer_identifier = customer_identifier or f"cust-{uuid4().hex[:8]}"
    return upsert_customer_basic_info(
        db,
        customer_identifier=customer_identifier,
        aws_account_id=aws_account_id,
        product_code=product_code,
    )


def observation(
    value,
    *,
    customer_identifier: str = "c1",
    product_code: str = "p1",
    dimension: str = "seats",
    expiration: int | None = 1700000000,
) -> EntitlementObservation:
    if isinstance(value, bool):
        value = EntitlementValue.boolean(value)
    elif isinstance(value, int):
        value = EntitlementValue.integer(value)
    elif isinstance(value, float):
        value = EntitlementValue.double(value)
    elif isinstance(value, str):
        value = EntitlementValue.string(value)
    return EntitlementObservation(
        customer_identifier=customer_identifier,
        product_code=product_code,
        dimension=dimension,
        value=value,
        expiration_epoch_seconds=expiration,
    )
