from __future__ import annotations

from datetime import datetime
from typing import Union

from pydantic import BaseModel


class EntitlementRead(BaseModel):
    entitlement_id: int
    customer_identifier: str
    product_code: str
    dimension: str
    value_type: str
    value: Union[bool, int, float, str]
    expiration_date: datetime
    created_at: datetime


class CustomerEntitlementsRead(BaseModel):
    customer_identifier: str
    entitlements: list[EntitlementRead] = []
