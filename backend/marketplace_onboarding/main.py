# This file bootstraps the FastAPI app, wires up middlewares for
# logging/metrics/security headers, and includes the marketplace router.

import os

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from marketplace_onboarding.api.marketplace import router as marketplace_router
from marketplace_onboarding.core.db import Base, engine
from marketplace_onboarding.core.logging import APILoggingMiddleware
from marketplace_onboarding.core.metrics import MetricsMiddleware
from marketplace_onboarding.core.request_context import RequestContextMiddleware
from marketplace_onboarding.core.security_headers import SecurityHeadersMiddleware
from marketplace_onboarding.core.startup_checks import run_startup_checks
from marketplace_onboarding.entitlements.errors import ReconciliationError
from marketplace_onboarding.marketplace.client import MarketplaceError

import marketplace_onboarding.models  # noqa: F401  registers tables on Base

# Create DB tables right away when migrations are not managing the
# schema (local runs and tests).
if os.getenv("SKIP_MIGRATIONS") != "1":
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="AWS Marketplace Onboarding")


@app.on_event("startup")
def _run_startup_checks() -> None:
    run_startup_checks()


@app.exception_handler(ReconciliationError)
def handle_reconciliation_error(_request, exc: ReconciliationError):
    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    response.headers["X-Error-Code"] = exc.code
    return response


@app.exception_handler(MarketplaceError)
def handle_marketplace_error(_request, exc: MarketplaceError):
    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    response.headers["X-Error-Code"] = exc.code
    return response


# Observability and response hardening
app.add_middleware(APILoggingMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(marketplace_router)

# Attach request context (request_id) early.
app.add_middleware(RequestContextMiddleware)


# /metrics endpoint (Prometheus scraping)
@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health():
    return {"status": "healthy"}
