from marketplace_onboarding.core.db import get_session_factory
from marketplace_onboarding.crud.entitlements import SqlAlchemyEntitlementStore
from marketplace_onboarding.entitlements.reconciler import EntitlementReconciler
from marketplace_onboarding.marketplace.client import MarketplaceClient


def get_marketplace_client() -> MarketplaceClient:
    return MarketplaceClient.from_settings()


def get_entitlement_store() -> SqlAlchemyEntitlementStore:
    return SqlAlchemyEntitlementStore(get_session_factory())


def get_reconciler() -> EntitlementReconciler:
    return EntitlementReconciler(get_entitlement_store())
