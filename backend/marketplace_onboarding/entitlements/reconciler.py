"""
Append-only entitlement reconciliation.

Each observation is compared with the latest stored record for its
(customer, product, dimension) triple. Unknown triples get a first record,
changed values get a new record appended, and unchanged values are skipped
so replaying a batch never grows the log. A whole batch commits or rolls
back as one transaction.
"""

from __future__ import annotations

import enum
import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from time import monotonic
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from marketplace_onboarding.core.logging import get_request_id, get_structured_logger
from marketplace_onboarding.core.metrics import (
    ENTITLEMENT_OBSERVATIONS,
    RECONCILE_DURATION,
    RECONCILE_FAILURES,
)
from marketplace_onboarding.core.time import unix_to_datetime
from marketplace_onboarding.entitlements.errors import (
    InvalidValue,
    PreconditionViolation,
    ReconciliationError,
)
from marketplace_onboarding.entitlements.values import EntitlementValue, resolve_value, values_equal

TripleKey = tuple[str, str, str]


@dataclass(frozen=True)
class EntitlementObservation:
    customer_identifier: str
    product_code: str
    dimension: str
    value: EntitlementValue | Mapping[str, Any] | None
    expiration_epoch_seconds: Optional[int] = None

    @property
    def triple(self) -> TripleKey:
        return (self.customer_identifier, self.product_code, self.dimension)


@dataclass(frozen=True)
class StoredEntitlement:
    entitlement_id: int
    customer_identifier: str
    product_code: str
    dimension: str
    value: EntitlementValue
    expiration_date: datetime
    created_at: datetime

    @property
    def triple(self) -> TripleKey:
        return (self.customer_identifier, self.product_code, self.dimension)


class EntitlementUnitOfWork(Protocol):
    def latest(self, triple: TripleKey) -> StoredEntitlement | None: ...

    def add_value(self, value: EntitlementValue) -> int: ...

    def add_entitlement(
        self,
        triple: TripleKey,
        *,
        value_id: int,
        expiration_date: datetime,
    ) -> int: ...


class EntitlementStore(Protocol):
    def transaction(
        self, triples: Iterable[TripleKey] = ()
    ) -> AbstractContextManager[EntitlementUnitOfWork]: ...

    def latest(self, triple: TripleKey) -> StoredEntitlement | None: ...


class ReconcileOutcome(str, enum.Enum):
    CREATED = "created"
    UNCHANGED = "unchanged"
    APPENDED = "appended"


@dataclass(frozen=True)
class ObservationResult:
    triple: TripleKey
    outcome: ReconcileOutcome
    entitlement_id: int


@dataclass
class ReconcileResult:
    results: list[ObservationResult] = field(default_factory=list)

    def count(self, outcome: ReconcileOutcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    @property
    def created(self) -> int:
        return self.count(ReconcileOutcome.CREATED)

    @property
    def unchanged(self) -> int:
        return self.count(ReconcileOutcome.UNCHANGED)

    @property
    def appended(self) -> int:
        return self.count(ReconcileOutcome.APPENDED)

    @property
    def records_written(self) -> int:
        return self.created + self.appended


def _expiration_of(observation: EntitlementObservation) -> datetime:
    if observation.expiration_epoch_seconds is None:
        raise PreconditionViolation(
            "expiration is required to record an entitlement",
            dimension=observation.dimension,
        )
    try:
        return unix_to_datetime(observation.expiration_epoch_seconds)
    except (OverflowError, OSError, ValueError) as exc:
        raise PreconditionViolation(
            f"expiration {observation.expiration_epoch_seconds} is out of range",
            dimension=observation.dimension,
        ) from exc


class EntitlementReconciler:
    def __init__(self, store: EntitlementStore, *, logger: logging.Logger | None = None):
        self.store = store
        self.logger = logger or get_structured_logger("entitlements.reconciler")

    def reconcile(self, batch: Sequence[EntitlementObservation]) -> ReconcileResult:
        observations = list(batch)
        if not observations:
            raise PreconditionViolation("entitlement batch is empty")

        start = monotonic()
        result = ReconcileResult()
        try:
            with self.store.transaction({o.triple for o in observations}) as unit:
                for observation in observations:
                    result.results.append(self._reconcile_one(unit, observation))
        except ReconciliationError as exc:
            RECONCILE_FAILURES.labels(exc.code).inc()
            self.logger.warning(
                "entitlements.reconcile.aborted",
                extra={
                    "request_id": get_request_id(),
                    "error_code": exc.code,
                    "dimension": exc.dimension,
                    "observations": len(observations),
                },
            )
            raise

        RECONCILE_DURATION.observe(monotonic() - start)
        for item in result.results:
            ENTITLEMENT_OBSERVATIONS.labels(item.outcome.value).inc()
        self.logger.info(
            "entitlements.reconcile.completed",
            extra={
                "request_id": get_request_id(),
                "observations": len(observations),
                "created_count": result.created,
                "appended_count": result.appended,
                "unchanged_count": result.unchanged,
            },
        )
        return result

    def _reconcile_one(
        self,
        unit: EntitlementUnitOfWork,
        observation: EntitlementObservation,
    ) -> ObservationResult:
        existing = unit.latest(observation.triple)
        try:
            value = resolve_value(observation.value)
        except InvalidValue as exc:
            raise InvalidValue(exc.message, dimension=observation.dimension) from exc

        if existing is not None and values_equal(existing.value, value):
            return ObservationResult(
                triple=observation.triple,
                outcome=ReconcileOutcome.UNCHANGED,
                entitlement_id=existing.entitlement_id,
            )

        expiration_date = _expiration_of(observation)
        value_id = unit.add_value(value)
        entitlement_id = unit.add_entitlement(
            observation.triple,
            value_id=value_id,
            expiration_date=expiration_date,
        )
        outcome = ReconcileOutcome.CREATED if existing is None else ReconcileOutcome.APPENDED
        self.logger.debug(
            "entitlements.reconcile.recorded",
            extra={
                "request_id": get_request_id(),
                "customer_identifier": observation.customer_identifier,
                "product_code": observation.product_code,
                "dimension": observation.dimension,
                "outcome": outcome.value,
                "entitlement_id": entitlement_id,
            },
        )
        return ObservationResult(
            triple=observation.triple,
            outcome=outcome,
            entitlement_id=entitlement_id,
        )

    def current_value(self, triple: TripleKey) -> EntitlementValue | None:
        latest = self.store.latest(triple)
        return latest.value if latest is not None else None
