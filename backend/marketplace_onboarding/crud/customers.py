from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from marketplace_onboarding.crud.errors import CustomerNotFound
from marketplace_onboarding.crud.products import upsert_product
from marketplace_onboarding.models.customers import Customer
from marketplace_onboarding.models.entitlements import Entitlement
from marketplace_onboarding.models.products import Product


@dataclass(frozen=True)
class CustomerProfile:
    name: str
    email: str
    phone: str
    job_role: str
    company: str
    country: str


@dataclass(frozen=True)
class RegistrationStatus:
    needs_registration: bool
    product_name: str = ""
    customer_found: bool = True


def get_customer(db: Session, customer_identifier: str) -> Customer | None:
    return (
        db.query(Customer)
        .filter(Customer.customer_identifier == customer_identifier)
        .first()
    )


def upsert_customer_basic_info(
    db: Session,
    *,
    customer_identifier: str | None,
    aws_account_id: str | None,
    product_code: str | None,
    product_name: str | None = None,
) -> Customer:
    missing = [
        name
        for name, value in (
            ("customer_identifier", customer_identifier),
            ("aws_account_id", aws_account_id),
            ("product_code", product_code),
        )
        if not value
    ]
    if missing:
        raise ValueError(f"missing required fields: {', '.join(missing)}")

    customer = get_customer(db, customer_identifier)
    if customer:
        customer.aws_account_id = aws_account_id
    else:
        customer = Customer(customer_identifier=customer_identifier, aws_account_id=aws_account_id)
        db.add(customer)
    upsert_product(db, product_code, product_name)
    db.commit()
    db.refresh(customer)
    return customer


def update_customer_additional_info(
    db: Session,
    customer_identifier: str,
    profile: CustomerProfile,
) -> Customer:
    customer = get_customer(db, customer_identifier)
    if customer is None:
        raise CustomerNotFound(customer_identifier)
    customer.name = profile.name
    customer.email = profile.email
    customer.phone = profile.phone
    customer.job_role = profile.job_role
    customer.company = profile.company
    customer.country = profile.country
    db.commit()
    db.refresh(customer)
    return customer


def check_customer_registration(db: Session, customer_identifier: str) -> RegistrationStatus:
    customer = get_customer(db, customer_identifier)
    if customer is None:
        return RegistrationStatus(needs_registration=False, product_name="", customer_found=False)

    latest_product = (
        db.query(Product.product_code, Product.product_name)
        .join(Entitlement, Entitlement.product_code == Product.product_code)
        .filter(Entitlement.customer_identifier == customer_identifier)
        .order_by(Entitlement.created_at.desc(), Entitlement.entitlement_id.asc())
        .first()
    )
    product_name = ""
    if latest_product is not None:
        product_name = latest_product.product_name or latest_product.product_code
    return RegistrationStatus(
        needs_registration=not customer.is_fully_registered,
        product_name=product_name,
    )
