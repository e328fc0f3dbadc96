from datetime import datetime, timezone

from botocore.exceptions import ClientError


def client_error(code: str, operation: str = "GetEntitlements") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeMeteringClient:
    def __init__(self, response=None, error=None):
        self.response = response or {
            "CustomerIdentifier": "c1",
            "CustomerAWSAccountId": "111122223333",
            "ProductCode": "p1",
        }
        self.error = error
        self.calls = []

    def resolve_customer(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


class FakeEntitlementClient:
    def __init__(self, pages=None, error=None):
        self.pages = list(pages or [])
        self.error = error
        self.calls = []

    def get_entitlements(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if not self.pages:
            return {"Entitlements": []}
        return self.pages.pop(0)


def entitlement_item(value, *, dimension="seats", customer="c1", product="p1", expires=datetime(2030, 1, 1, tzinfo=timezone.utc)):
    item = {
        "CustomerIdentifier": customer,
        "ProductCode": product,
        "Dimension": dimension,
        "Value": value,
    }
    if expires is not None:
        item["ExpirationDate"] = expires
    return item
