from .customers import (
    check_customer_registration,
    get_customer,
    update_customer_additional_info,
    upsert_customer_basic_info,
)
from .entitlements import (
    SqlAlchemyEntitlementStore,
    count_entitlements,
    get_current_entitlements_for_customer,
    get_entitlement_history,
    get_latest_entitlement,
)
from .products import get_product, upsert_product
