from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ReconciliationError(Exception):
    code: str
    message: str
    status_code: int
    dimension: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.dimension is not None:
            payload["dimension"] = self.dimension
        return payload


class InvalidValue(ReconciliationError):
    """The observation's value populates none of the supported variants."""

    def __init__(self, message: str = "invalid entitlement value", *, dimension: str | None = None):
        super().__init__(
            code="invalid_value",
            message=message,
            status_code=422,
            dimension=dimension,
        )


class StorageFailure(ReconciliationError):
    """A lookup, insert or commit failed; the batch was rolled back."""

    def __init__(self, message: str = "entitlement storage failure", *, dimension: str | None = None):
        super().__init__(
            code="storage_failure",
            message=message,
            status_code=503,
            dimension=dimension,
        )


class PreconditionViolation(ReconciliationError):
    """The caller handed over a batch that breaks the reconcile contract."""

    def __init__(self, message: str, *, dimension: str | None = None):
        super().__init__(
            code="precondition_violation",
            message=message,
            status_code=400,
            dimension=dimension,
        )
