"""
Document store access for site content.

`DocumentStore` implementations do the physical reads and writes and raise on
failure. `Database` is the gateway the services talk to: it stamps
timestamps, converts every failure into a `DbResult`, and publishes change
events after successful writes.
"""

from __future__ import annotations

import copy
import logging
import operator
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import JSON, Column, DateTime, String, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend.events import DatabaseEvent, EventBus, Operation

logger = logging.getLogger(__name__)

DOCUMENT_NOT_FOUND = "Document not found"
CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"

# (field, operator, value)
Condition = Tuple[str, str, Any]
StoredDocument = Tuple[str, dict]


class DocumentNotFoundError(LookupError):
    """Raised by a store when a write targets a document that does not exist."""


class ErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"


@dataclass
class DbResult:
    """Outcome of a gateway call. Gateway calls never raise."""

    success: bool
    data: Any = None
    id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def not_found(self) -> bool:
        return self.error_kind == ErrorKind.NOT_FOUND


class DocumentStore(Protocol):
    """Physical operations a document database must provide."""

    def timestamp(self) -> Any:
        ...

    def upsert(
        self, collection: str, doc_id: str, data: dict, on_create: dict
    ) -> None:
        """Merges `data` into the document; `on_create` is added only if it is new."""
        ...

    def add(self, collection: str, data: dict) -> str:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def list_documents(self, collection: str) -> List[StoredDocument]:
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    def query(
        self,
        collection: str,
        conditions: Sequence[Condition],
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        ...


def _array_contains_any(value: Any, targets: Any) -> bool:
    return isinstance(value, list) and any(target in value for target in targets)


_COMPARATORS = {
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    ">": operator.gt,
    "in": lambda value, targets: value in targets,
    "not-in": lambda value, targets: value not in targets,
    "array-contains": lambda value, target: isinstance(value, list) and target in value,
    "array-contains-any": _array_contains_any,
}
QUERY_OPERATORS = frozenset(_COMPARATORS)

_MISSING = object()


def check_query(
    conditions: Sequence[Condition], direction: str, limit: Optional[int]
) -> None:
    for condition in conditions:
        if len(condition) != 3:
            raise ValueError(f"Query condition must be (field, operator, value): {condition!r}")
        if condition[1] not in QUERY_OPERATORS:
            raise ValueError(f"Unsupported query operator: {condition[1]}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"Order direction must be 'asc' or 'desc', got {direction!r}")
    if limit is not None and limit < 0:
        raise ValueError(f"Query limit must not be negative, got {limit}")


def _field_value(data: dict, field_path: str) -> Any:
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _matches(data: dict, conditions: Sequence[Condition]) -> bool:
    for field_path, op, expected in conditions:
        actual = _field_value(data, field_path)
        # Documents without the field never match a filter on it.
        if actual is _MISSING:
            return False
        try:
            if not _COMPARATORS[op](actual, expected):
                return False
        except TypeError:
            return False
    return True


def apply_query(
    documents: Sequence[StoredDocument],
    conditions: Sequence[Condition],
    order_by: Optional[str] = None,
    direction: str = "asc",
    limit: Optional[int] = None,
) -> List[StoredDocument]:
    """Filters, orders and caps documents the way a Firestore query would."""
    check_query(conditions, direction, limit)
    results = [doc for doc in documents if _matches(doc[1], conditions)]
    if order_by:
        results = [
            doc for doc in results if _field_value(doc[1], order_by) is not _MISSING
        ]
        results.sort(
            key=lambda doc: _field_value(doc[1], order_by),
            reverse=direction == "desc",
        )
    if limit:
        results = results[:limit]
    return results


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}

    def timestamp(self) -> datetime:
        return _utcnow()

    def _docs(self, collection: str) -> Dict[str, dict]:
        return self.collections.setdefault(collection, {})

    def upsert(
        self, collection: str, doc_id: str, data: dict, on_create: dict
    ) -> None:
        docs = self._docs(collection)
        existing = docs.get(doc_id)
        if existing is None:
            docs[doc_id] = copy.deepcopy({**on_create, **data})
        else:
            existing.update(copy.deepcopy(data))

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self._docs(collection)[doc_id] = copy.deepcopy(data)
        return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        data = self._docs(collection).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def list_documents(self, collection: str) -> List[StoredDocument]:
        return [
            (doc_id, copy.deepcopy(data))
            for doc_id, data in self._docs(collection).items()
        ]

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        existing = self._docs(collection).get(doc_id)
        if existing is None:
            raise DocumentNotFoundError(DOCUMENT_NOT_FOUND)
        existing.update(copy.deepcopy(data))

    def delete(self, collection: str, doc_id: str) -> None:
        self._docs(collection).pop(doc_id, None)

    def query(
        self,
        collection: str,
        conditions: Sequence[Condition],
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        return apply_query(
            self.list_documents(collection), conditions, order_by, direction, limit
        )

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


def _split_timestamps(data: dict) -> tuple[dict, Any, Any]:
    fields = dict(data)
    created_at = fields.pop(CREATED_AT, None)
    updated_at = fields.pop(UPDATED_AT, None)
    return fields, created_at, updated_at


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    Each document is one row keyed by (collection, doc_id) with its fields in a
    JSON column. Timestamps live in their own columns.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_document(self, row: "DocumentRow") -> dict:
        data = copy.deepcopy(row.data or {})
        if row.created_at is not None:
            data[CREATED_AT] = row.created_at
        if row.updated_at is not None:
            data[UPDATED_AT] = row.updated_at
        return data

    def timestamp(self) -> datetime:
        return _utcnow()

    def upsert(
        self, collection: str, doc_id: str, data: dict, on_create: dict
    ) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if row:
                fields, _, updated_at = _split_timestamps(data)
                row.data = {**(row.data or {}), **fields}
                if updated_at is not None:
                    row.updated_at = updated_at
            else:
                fields, created_at, updated_at = _split_timestamps(
                    {**on_create, **data}
                )
                session.add(
                    DocumentRow(
                        collection=collection,
                        doc_id=doc_id,
                        data=fields,
                        created_at=created_at,
                        updated_at=updated_at,
                    )
                )
            session.commit()

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        fields, created_at, updated_at = _split_timestamps(data)
        with self.Session() as session:
            session.add(
                DocumentRow(
                    collection=collection,
                    doc_id=doc_id,
                    data=fields,
                    created_at=created_at,
                    updated_at=updated_at,
                )
            )
            session.commit()
        return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                return None
            return self._to_document(row)

    def list_documents(self, collection: str) -> List[StoredDocument]:
        with self.Session() as session:
            rows = (
                session.execute(
                    select(DocumentRow)
                    .where(DocumentRow.collection == collection)
                    .order_by(DocumentRow.doc_id.asc())
                )
                .scalars()
                .all()
            )
            return [(row.doc_id, self._to_document(row)) for row in rows]

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                raise DocumentNotFoundError(DOCUMENT_NOT_FOUND)
            fields, _, updated_at = _split_timestamps(data)
            row.data = {**(row.data or {}), **fields}
            if updated_at is not None:
                row.updated_at = updated_at
            session.commit()

    def delete(self, collection: str, doc_id: str) -> None:
        with self.Session() as session:
            session.execute(
                delete(DocumentRow).where(
                    DocumentRow.collection == collection,
                    DocumentRow.doc_id == doc_id,
                )
            )
            session.commit()

    def query(
        self,
        collection: str,
        conditions: Sequence[Condition],
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        # JSON operators differ per dialect, so filtering happens in Python.
        return apply_query(
            self.list_documents(collection), conditions, order_by, direction, limit
        )


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)


def _writable(data: dict) -> dict:
    """Drops caller-supplied timestamps; only the gateway sets them."""
    return {k: v for k, v in dict(data).items() if k not in (CREATED_AT, UPDATED_AT)}


def _require_id(doc_id: str) -> None:
    if not doc_id:
        raise ValueError("Document id is required")


class Database:
    """
    Uniform create/read/list/update/delete/query over named collections.

    Every method returns a DbResult. Writes publish "{collection}{Operation}"
    and "databaseUpdated" on the event bus once they succeed. Nothing is
    retried.
    """

    def __init__(self, store: DocumentStore, events: Optional[EventBus] = None):
        self.store = store
        self.events = events or EventBus()

    def _emit(self, operation: Operation, collection: str, doc_id: Optional[str]) -> None:
        self.events.publish(
            DatabaseEvent(collection=collection, operation=operation, doc_id=doc_id)
        )

    def _failure(self, action: str, collection: str, exc: Exception) -> DbResult:
        if isinstance(exc, DocumentNotFoundError):
            logger.warning("[DocumentStore] %s in %s: %s", action, collection, exc)
            return DbResult(
                success=False, error=DOCUMENT_NOT_FOUND, error_kind=ErrorKind.NOT_FOUND
            )
        logger.exception("[DocumentStore] Error %s in %s", action, collection)
        return DbResult(
            success=False,
            error=str(exc) or type(exc).__name__,
            error_kind=ErrorKind.TRANSPORT,
        )

    def set(self, collection: str, doc_id: str, data: dict) -> DbResult:
        """Merge-upsert: named fields are overwritten, other stored fields kept."""
        try:
            _require_id(doc_id)
            now = self.store.timestamp()
            payload = {**_writable(data), UPDATED_AT: now}
            self.store.upsert(collection, doc_id, payload, on_create={CREATED_AT: now})
        except Exception as exc:
            return self._failure("setting document", collection, exc)
        self._emit(Operation.UPDATED, collection, doc_id)
        return DbResult(success=True, id=doc_id)

    def add(self, collection: str, data: dict) -> DbResult:
        try:
            now = self.store.timestamp()
            doc_id = self.store.add(
                collection, {**_writable(data), CREATED_AT: now, UPDATED_AT: now}
            )
        except Exception as exc:
            return self._failure("adding document", collection, exc)
        self._emit(Operation.CREATED, collection, doc_id)
        return DbResult(success=True, id=doc_id)

    def get(self, collection: str, doc_id: str) -> DbResult:
        try:
            _require_id(doc_id)
            data = self.store.get(collection, doc_id)
        except Exception as exc:
            return self._failure("getting document", collection, exc)
        if data is None:
            return DbResult(
                success=False,
                id=doc_id,
                error=DOCUMENT_NOT_FOUND,
                error_kind=ErrorKind.NOT_FOUND,
            )
        return DbResult(success=True, id=doc_id, data={"id": doc_id, **data})

    def get_all(self, collection: str) -> DbResult:
        try:
            documents = self.store.list_documents(collection)
        except Exception as exc:
            return self._failure("getting all documents", collection, exc)
        return DbResult(
            success=True, data=[{"id": doc_id, **data} for doc_id, data in documents]
        )

    def update(self, collection: str, doc_id: str, data: dict) -> DbResult:
        """Partial update of top-level fields. Fails if the document is absent."""
        try:
            _require_id(doc_id)
            payload = {**_writable(data), UPDATED_AT: self.store.timestamp()}
            self.store.update(collection, doc_id, payload)
        except Exception as exc:
            return self._failure("updating document", collection, exc)
        self._emit(Operation.UPDATED, collection, doc_id)
        return DbResult(success=True, id=doc_id)

    def delete(self, collection: str, doc_id: str) -> DbResult:
        try:
            _require_id(doc_id)
            self.store.delete(collection, doc_id)
        except Exception as exc:
            return self._failure("deleting document", collection, exc)
        self._emit(Operation.DELETED, collection, doc_id)
        return DbResult(success=True, id=doc_id)

    def query(
        self,
        collection: str,
        conditions: Sequence[Condition] = (),
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
    ) -> DbResult:
        """ANDs every (field, operator, value) condition; optional order and cap."""
        try:
            conditions = [tuple(condition) for condition in conditions or ()]
            check_query(conditions, direction, limit)
            documents = self.store.query(
                collection, conditions, order_by, direction, limit
            )
        except Exception as exc:
            return self._failure("querying documents", collection, exc)
        return DbResult(
            success=True, data=[{"id": doc_id, **data} for doc_id, data in documents]
        )
