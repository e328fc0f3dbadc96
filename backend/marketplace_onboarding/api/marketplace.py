from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace_onboarding.api.dependencies import get_marketplace_client, get_reconciler
from marketplace_onboarding.api.templates import render_error, render_page
from marketplace_onboarding.core.config import settings
from marketplace_onboarding.core.db import get_db
from marketplace_onboarding.core.logging import get_structured_logger
from marketplace_onboarding.crud.customers import (
    CustomerProfile,
    check_customer_registration,
    get_customer,
    update_customer_additional_info,
    upsert_customer_basic_info,
)
from marketplace_onboarding.crud.entitlements import get_current_entitlements_for_customer
from marketplace_onboarding.crud.errors import CustomerNotFound
from marketplace_onboarding.entitlements.errors import ReconciliationError
from marketplace_onboarding.entitlements.reconciler import EntitlementReconciler
from marketplace_onboarding.entitlements.values import EntitlementValue
from marketplace_onboarding.marketplace.client import MarketplaceClient, MarketplaceError
from marketplace_onboarding.schemas.customers import CustomerDetailsForm
from marketplace_onboarding.schemas.entitlements import CustomerEntitlementsRead, EntitlementRead


router = APIRouter(prefix="/aws-marketplace", tags=["aws-marketplace"])
logger = get_structured_logger("api.marketplace")


def _onboarding_url(customer_identifier: str) -> str:
    return f"{settings.ONBOARDING_BASE_PATH}onboarding/{customer_identifier}"


@router.post("/webhook")
def handle_marketplace_token(
    request: Request,
    token: str = Form("", alias=settings.MARKETPLACE_TOKEN_FIELD),
    db: Session = Depends(get_db),
    marketplace: MarketplaceClient = Depends(get_marketplace_client),
    reconciler: EntitlementReconciler = Depends(get_reconciler),
):
    token = (token or "").strip()
    if not token:
        logger.error("marketplace.webhook.missing_token")
        return render_error(request, status.HTTP_400_BAD_REQUEST, "Invalid Token", "No token provided.")

    try:
        resolved = marketplace.resolve_customer(token)
    except MarketplaceError as exc:
        return render_error(
            request,
            exc.status_code,
            "Resolve Customer Failed",
            "Failed to resolve customer.",
            error_code=exc.code,
        )

    try:
        upsert_customer_basic_info(
            db,
            customer_identifier=resolved.customer_identifier,
            aws_account_id=resolved.aws_account_id,
            product_code=resolved.product_code,
        )
    except (ValueError, SQLAlchemyError) as exc:
        db.rollback()
        logger.error(
            "marketplace.webhook.customer_upsert_failed",
            extra={"customer_identifier": resolved.customer_identifier, "error": str(exc)},
        )
        return render_error(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Update Customer Info Failed",
            "Failed to update customer info.",
        )

    try:
        observations = marketplace.get_entitlements(resolved.customer_identifier, resolved.product_code)
    except MarketplaceError as exc:
        return render_error(
            request,
            exc.status_code,
            "Get Entitlements Failed",
            "Failed to get entitlements.",
            error_code=exc.code,
        )

    if not observations:
        logger.info(
            "marketplace.webhook.no_entitlements",
            extra={
                "customer_identifier": resolved.customer_identifier,
                "product_code": resolved.product_code,
            },
        )
        return render_error(request, status.HTTP_404_NOT_FOUND, "No Entitlements Found", "No entitlements found.")

    try:
        reconciler.reconcile(observations)
    except ReconciliationError as exc:
        return render_error(
            request,
            exc.status_code,
            "Update Entitlements Failed",
            "Failed to update entitlements.",
            error_code=exc.code,
        )

    registration = check_customer_registration(db, resolved.customer_identifier)
    if not registration.needs_registration:
        return render_page(request, "success.html")

    target = _onboarding_url(resolved.customer_identifier)
    logger.info(
        "marketplace.webhook.redirect",
        extra={"customer_identifier": resolved.customer_identifier, "location": target},
    )
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)


@router.get("/onboarding/{customer_identifier}")
def onboarding_form(
    customer_identifier: str,
    request: Request,
    db: Session = Depends(get_db),
):
    registration = check_customer_registration(db, customer_identifier)
    logger.info(
        "marketplace.onboarding.form",
        extra={
            "customer_identifier": customer_identifier,
            "needs_registration": registration.needs_registration,
        },
    )
    if not registration.customer_found:
        return render_error(request, status.HTTP_404_NOT_FOUND, "Customer Not Found", "Customer not found.")
    if not registration.needs_registration:
        return render_page(request, "success.html")
    return render_page(
        request,
        "index.html",
        {
            "product_name": registration.product_name,
            "customer_identifier": customer_identifier,
        },
    )


@router.post("/onboarding/{customer_identifier}")
def submit_customer_details(
    customer_identifier: str,
    request: Request,
    form_customer_identifier: str = Form("", alias="customer_identifier"),
    name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    job_role: str = Form(""),
    company: str = Form(""),
    country: str = Form(""),
    db: Session = Depends(get_db),
):
    try:
        details = CustomerDetailsForm(
            customer_identifier=form_customer_identifier or customer_identifier,
            name=name,
            email=email,
            phone=phone,
            job_role=job_role,
            company=company,
            country=country,
        )
    except ValidationError as exc:
        logger.error(
            "marketplace.onboarding.invalid_payload",
            extra={"customer_identifier": customer_identifier, "error_count": exc.error_count()},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request payload",
                "details": exc.errors(include_url=False, include_context=False, include_input=False),
            },
            headers={"X-Error-Code": "invalid_payload"},
        )

    if details.customer_identifier != customer_identifier:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request payload",
                "details": "customer_identifier does not match the onboarding link",
            },
            headers={"X-Error-Code": "invalid_payload"},
        )

    registration = check_customer_registration(db, customer_identifier)
    if not registration.customer_found:
        return render_error(request, status.HTTP_404_NOT_FOUND, "Customer Not Found", "Customer not found.")
    if not registration.needs_registration:
        return render_page(request, "success.html")

    profile = CustomerProfile(
        name=details.name,
        email=str(details.email),
        phone=details.phone,
        job_role=details.job_role,
        company=details.company,
        country=details.country,
    )
    try:
        update_customer_additional_info(db, customer_identifier, profile)
    except CustomerNotFound:
        logger.error("marketplace.onboarding.customer_missing", extra={"customer_identifier": customer_identifier})
        return render_error(request, status.HTTP_404_NOT_FOUND, "Customer Not Found", "Customer not found.")
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "marketplace.onboarding.update_failed",
            extra={"customer_identifier": customer_identifier, "error": str(exc)},
        )
        return render_error(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Update Customer Info Failed",
            "Failed to update customer info.",
        )

    logger.info("marketplace.onboarding.completed", extra={"customer_identifier": customer_identifier})
    return render_page(request, "success.html")


@router.get("/customers/{customer_identifier}/entitlements", response_model=CustomerEntitlementsRead)
def list_current_entitlements(customer_identifier: str, db: Session = Depends(get_db)):
    if get_customer(db, customer_identifier) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    rows = get_current_entitlements_for_customer(db, customer_identifier)
    entitlements = []
    for row in rows:
        value = EntitlementValue.from_columns(row.value)
        entitlements.append(
            EntitlementRead(
                entitlement_id=row.entitlement_id,
                customer_identifier=row.customer_identifier,
                product_code=row.product_code,
                dimension=row.dimension,
                value_type=value.value_type.value,
                value=value.payload,
                expiration_date=row.expiration_date,
                created_at=row.created_at,
            )
        )
    return CustomerEntitlementsRead(customer_identifier=customer_identifier, entitlements=entitlements)
