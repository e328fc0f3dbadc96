from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterable, Iterator

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace_onboarding.core.time import utcnow
from marketplace_onboarding.entitlements.errors import StorageFailure
from marketplace_onboarding.entitlements.reconciler import StoredEntitlement, TripleKey
from marketplace_onboarding.entitlements.values import EntitlementValue
from marketplace_onboarding.models.entitlement_values import EntitlementValueRecord
from marketplace_onboarding.models.entitlements import Entitlement


def _latest_query(db: Session, triple: TripleKey):
    customer_identifier, product_code, dimension = triple
    return (
        db.query(Entitlement)
        .filter(
            Entitlement.customer_identifier == customer_identifier,
            Entitlement.product_code == product_code,
            Entitlement.dimension == dimension,
        )
        .order_by(Entitlement.created_at.desc(), Entitlement.entitlement_id.asc())
    )


def get_latest_entitlement(db: Session, triple: TripleKey, *, for_update: bool = False) -> Entitlement | None:
    query = _latest_query(db, triple)
    if for_update:
        query = query.with_for_update(of=Entitlement)
    return query.first()


def get_entitlement_history(db: Session, triple: TripleKey) -> list[Entitlement]:
    customer_identifier, product_code, dimension = triple
    return (
        db.query(Entitlement)
        .filter(
            Entitlement.customer_identifier == customer_identifier,
            Entitlement.product_code == product_code,
            Entitlement.dimension == dimension,
        )
        .order_by(Entitlement.created_at.asc(), Entitlement.entitlement_id.asc())
        .all()
    )


def get_current_entitlements_for_customer(db: Session, customer_identifier: str) -> list[Entitlement]:
    rows = (
        db.query(Entitlement)
        .filter(Entitlement.customer_identifier == customer_identifier)
        .order_by(
            Entitlement.product_code,
            Entitlement.dimension,
            Entitlement.created_at.desc(),
            Entitlement.entitlement_id.asc(),
        )
        .all()
    )
    current: dict[TripleKey, Entitlement] = {}
    for row in rows:
        current.setdefault(row.triple, row)
    return list(current.values())


def count_entitlements(db: Session, triple: TripleKey | None = None) -> int:
    query = db.query(func.count(Entitlement.entitlement_id))
    if triple is not None:
        customer_identifier, product_code, dimension = triple
        query = query.filter(
            Entitlement.customer_identifier == customer_identifier,
            Entitlement.product_code == product_code,
            Entitlement.dimension == dimension,
        )
    return query.scalar() or 0


def to_stored_entitlement(row: Entitlement) -> StoredEntitlement:
    return StoredEntitlement(
        entitlement_id=row.entitlement_id,
        customer_identifier=row.customer_identifier,
        product_code=row.product_code,
        dimension=row.dimension,
        value=EntitlementValue.from_columns(row.value),
        expiration_date=row.expiration_date,
        created_at=row.created_at,
    )


class _TripleLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self) -> None:
        self.lock = threading.Lock()


# Process-wide so that stores created per request still share locks.
_triple_locks: "weakref.WeakValueDictionary[TripleKey, _TripleLock]" = weakref.WeakValueDictionary()
_triple_locks_guard = threading.Lock()


def _acquire_triple_locks(triples: Iterable[TripleKey]) -> list[_TripleLock]:
    held: list[_TripleLock] = []
    with _triple_locks_guard:
        for triple in sorted(set(triples)):
            entry = _triple_locks.get(triple)
            if entry is None:
                entry = _TripleLock()
                _triple_locks[triple] = entry
            held.append(entry)
    # Sorted acquisition keeps overlapping batches from deadlocking.
    for entry in held:
        entry.lock.acquire()
    return held


def _release_triple_locks(held: list[_TripleLock]) -> None:
    for entry in reversed(held):
        entry.lock.release()


class _SessionUnitOfWork:
    def __init__(self, db: Session):
        self.db = db
        self._last_created: dict[TripleKey, datetime] = {}

    def latest(self, triple: TripleKey) -> StoredEntitlement | None:
        row = get_latest_entitlement(self.db, triple, for_update=True)
        if row is None:
            return None
        self._remember(triple, row.created_at)
        return to_stored_entitlement(row)

    def add_value(self, value: EntitlementValue) -> int:
        record = EntitlementValueRecord(**value.to_columns())
        self.db.add(record)
        self.db.flush()
        return record.value_id

    def add_entitlement(
        self,
        triple: TripleKey,
        *,
        value_id: int,
        expiration_date: datetime,
    ) -> int:
        customer_identifier, product_code, dimension = triple
        created_at = self._next_created_at(triple)
        entitlement = Entitlement(
            customer_identifier=customer_identifier,
            product_code=product_code,
            dimension=dimension,
            expiration_date=expiration_date,
            value_id=value_id,
            created_at=created_at,
            updated_at=created_at,
        )
        self.db.add(entitlement)
        self.db.flush()
        self._remember(triple, created_at)
        return entitlement.entitlement_id

    def _remember(self, triple: TripleKey, created_at: datetime) -> None:
        previous = self._last_created.get(triple)
        if previous is None or created_at > previous:
            self._last_created[triple] = created_at

    def _next_created_at(self, triple: TripleKey) -> datetime:
        now = utcnow()
        previous = self._last_created.get(triple)
        if previous is not None and now <= previous:
            # Keep creation order strictly increasing within a triple.
            return previous + timedelta(microseconds=1)
        return now


class SqlAlchemyEntitlementStore:
    """Entitlement log persisted through SQLAlchemy sessions."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def transaction(self, triples: Iterable[TripleKey] = ()) -> Iterator[_SessionUnitOfWork]:
        held = _acquire_triple_locks(triples)
        try:
            db = self._session_factory()
            try:
                with db.begin():
                    yield _SessionUnitOfWork(db)
            except SQLAlchemyError as exc:
                raise StorageFailure(f"entitlement transaction failed: {exc.__class__.__name__}") from exc
            finally:
                db.close()
        finally:
            _release_triple_locks(held)

    def latest(self, triple: TripleKey) -> StoredEntitlement | None:
        db = self._session_factory()
        try:
            row = get_latest_entitlement(db, triple)
            return to_stored_entitlement(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StorageFailure(f"entitlement lookup failed: {exc.__class__.__name__}") from exc
        finally:
            db.close()
