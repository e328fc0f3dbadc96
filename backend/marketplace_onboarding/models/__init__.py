from .customers import Customer
from .products import Product
from .entitlement_values import EntitlementValueRecord
from .entitlements import Entitlement
