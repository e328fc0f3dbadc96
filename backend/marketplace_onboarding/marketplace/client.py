"""
Thin wrappers over the AWS Marketplace Metering and Entitlement APIs.

Only the two calls the onboarding flow needs are exposed. Raw botocore
errors are turned into :class:`MarketplaceError` so handlers can map them
to an HTTP status without knowing about boto.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from marketplace_onboarding.core.config import settings
from marketplace_onboarding.core.logging import get_request_id, get_structured_logger
from marketplace_onboarding.core.metrics import MARKETPLACE_CALLS
from marketplace_onboarding.core.time import datetime_to_unix
from marketplace_onboarding.entitlements.reconciler import EntitlementObservation

logger = get_structured_logger("marketplace.client")

_VALUE_KEYS = ("BooleanValue", "DoubleValue", "IntegerValue", "StringValue")

# AWS error code -> (HTTP status, user facing message)
ERROR_MAP: dict[str, tuple[int, str]] = {
    "InvalidParameterException": (400, "Invalid parameter in the request"),
    "InvalidProductCodeException": (400, "The product code is invalid"),
    "InvalidUsageRecordException": (400, "The usage record is invalid"),
    "InvalidCustomerIdentifierException": (400, "The customer identifier is invalid"),
    "TimestampOutOfBoundsException": (400, "The timestamp is outside of the allowed range"),
    "ThrottlingException": (429, "Request was throttled, please try again later"),
    "InternalServiceErrorException": (503, "An internal error occurred"),
    "InternalServiceException": (503, "An internal error occurred"),
    "InvalidTokenException": (400, "Invalid registration token"),
    "ExpiredTokenException": (400, "Registration token has expired"),
    "DisabledApiException": (503, "The marketplace API is disabled for this account"),
}


class MarketplaceError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 502):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    @classmethod
    def from_client_error(cls, exc: ClientError) -> "MarketplaceError":
        error = exc.response.get("Error", {}) if isinstance(exc.response, dict) else {}
        code = error.get("Code") or "UnknownError"
        status_code, message = ERROR_MAP.get(code, (502, "Unexpected marketplace API error"))
        return cls(code, message, status_code)

    def to_payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class ResolvedCustomer:
    customer_identifier: str
    aws_account_id: str | None
    product_code: str


def _extract_value(raw: dict[str, Any] | None, dimension: str | None) -> dict[str, Any]:
    raw = raw or {}
    value = {key: raw[key] for key in _VALUE_KEYS if raw.get(key) is not None}
    if not value:
        logger.warning(
            "marketplace.entitlement.unknown_value_type",
            extra={"request_id": get_request_id(), "dimension": dimension, "keys": sorted(raw)},
        )
    return value


def to_observation(item: dict[str, Any]) -> EntitlementObservation:
    expiration = item.get("ExpirationDate")
    return EntitlementObservation(
        customer_identifier=item.get("CustomerIdentifier") or "",
        product_code=item.get("ProductCode") or "",
        dimension=item.get("Dimension") or "",
        value=_extract_value(item.get("Value"), item.get("Dimension")),
        expiration_epoch_seconds=datetime_to_unix(expiration) if expiration is not None else None,
    )


class MarketplaceClient:
    def __init__(self, metering_client, entitlement_client, *, page_size: int | None = None):
        self.metering_client = metering_client
        self.entitlement_client = entitlement_client
        self.page_size = page_size or settings.ENTITLEMENTS_PAGE_SIZE

    @classmethod
    def from_settings(cls) -> "MarketplaceClient":
        session = boto3.Session(region_name=settings.AWS_DEFAULT_REGION)
        return cls(
            session.client("meteringmarketplace"),
            session.client("marketplace-entitlement"),
        )

    def _call(self, operation: str, func, **kwargs) -> dict[str, Any]:
        try:
            response = func(**kwargs)
        except ClientError as exc:
            MARKETPLACE_CALLS.labels(operation, "error").inc()
            error = MarketplaceError.from_client_error(exc)
            logger.error(
                "marketplace.call.failed",
                extra={
                    "request_id": get_request_id(),
                    "operation": operation,
                    "error_code": error.code,
                    "status_code": error.status_code,
                },
            )
            raise error from exc
        except BotoCoreError as exc:
            MARKETPLACE_CALLS.labels(operation, "error").inc()
            logger.error(
                "marketplace.call.unavailable",
                extra={"request_id": get_request_id(), "operation": operation, "error": str(exc)},
            )
            raise MarketplaceError("MarketplaceUnavailable", "AWS Marketplace is unreachable", 502) from exc
        MARKETPLACE_CALLS.labels(operation, "ok").inc()
        return response

    def resolve_customer(self, registration_token: str) -> ResolvedCustomer:
        if not registration_token:
            raise MarketplaceError("InvalidTokenException", "No token provided.", 400)
        response = self._call(
            "ResolveCustomer",
            self.metering_client.resolve_customer,
            RegistrationToken=registration_token,
        )
        customer_identifier = response.get("CustomerIdentifier")
        product_code = response.get("ProductCode")
        if not customer_identifier or not product_code:
            raise MarketplaceError(
                "IncompleteResolveCustomerResponse",
                "Marketplace did not return a customer identifier and product code",
                502,
            )
        return ResolvedCustomer(
            customer_identifier=customer_identifier,
            aws_account_id=response.get("CustomerAWSAccountId"),
            product_code=product_code,
        )

    def get_entitlements(self, customer_identifier: str, product_code: str) -> list[EntitlementObservation]:
        logger.info(
            "marketplace.entitlements.fetch",
            extra={
                "request_id": get_request_id(),
                "customer_identifier": customer_identifier,
                "product_code": product_code,
            },
        )
        observations: list[EntitlementObservation] = []
        next_token: str | None = None
        pages = 0
        while True:
            params: dict[str, Any] = {
                "ProductCode": product_code,
                "Filter": {"CUSTOMER_IDENTIFIER": [customer_identifier]},
                "MaxResults": self.page_size,
            }
            if next_token:
                params["NextToken"] = next_token
            response = self._call("GetEntitlements", self.entitlement_client.get_entitlements, **params)
            pages += 1
            observations.extend(to_observation(item) for item in response.get("Entitlements") or [])
            next_token = response.get("NextToken")
            if not next_token:
                break
        logger.info(
            "marketplace.entitlements.fetched",
            extra={"request_id": get_request_id(), "count": len(observations), "pages": pages},
        )
        return observations
