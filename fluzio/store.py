"""
Document store abstraction for Firestore, SQL (via SQLAlchemy) and an
in-memory test implementation.

Every collection holds schemaless JSON documents addressed by id, which is the
model the mobile clients already use against Firestore.
"""

from __future__ import annotations

import copy
import time
import uuid
from typing import Any, Iterable, Optional, Protocol, Sequence

from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import Increment, Query
from google.cloud.firestore_v1.base_query import FieldFilter
from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.documents import encode_value, id_field, to_document

Filter = tuple[str, str, Any]

SUPPORTED_OPERATORS = {"==", "!=", "<", "<=", ">", ">=", "in", "array_contains"}

_MISSING = object()


class DocumentStore(Protocol):
    """Interface for document access."""

    def add(self, collection: str, data: dict) -> str:
        ...

    def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def update(self, collection: str, doc_id: str, updates: dict) -> bool:
        ...

    def increment(
        self, collection: str, doc_id: str, field: str, amount: float
    ) -> Optional[float]:
        ...

    def delete(self, collection: str, doc_id: str) -> bool:
        ...

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict]]:
        ...


def _lookup(data: dict, path: str) -> Any:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _compare(actual: Any, op: str, expected: Any) -> bool:
    if op == "==":
        return actual == expected
    if op == "!=":
        return actual != expected
    if op == "in":
        return actual in expected
    if op == "array_contains":
        return isinstance(actual, list) and expected in actual
    if actual is None or expected is None:
        return False
    try:
        if op == "<":
            return actual < expected
        if op == "<=":
            return actual <= expected
        if op == ">":
            return actual > expected
        if op == ">=":
            return actual >= expected
    except TypeError:
        return False
    raise ValueError(f"Unsupported filter operator: {op}")


def matches(data: dict, filters: Iterable[Filter]) -> bool:
    """Evaluate Firestore-style filters against a plain document."""
    for field_path, op, value in filters:
        if op not in SUPPORTED_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {op}")
        actual = _lookup(data, field_path)
        if actual is _MISSING:
            return False
        if not _compare(actual, op, encode_value(value)):
            return False
    return True


def _sort_and_limit(
    items: list[tuple[str, dict]],
    order_by: Optional[str],
    descending: bool,
    limit: Optional[int],
) -> list[tuple[str, dict]]:
    if order_by:
        # Nulls sort first, matching Firestore's type ordering.
        def key(item: tuple[str, dict]):
            value = _lookup(item[1], order_by)
            if value is _MISSING or value is None:
                return (0, "")
            return (1, value)

        items = sorted(items, key=key, reverse=descending)
    if limit is not None:
        items = items[:limit]
    return items


def _apply_updates(data: dict, updates: dict) -> None:
    for key, value in updates.items():
        target = data
        parts = key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}

    def _collection(self, name: str) -> dict[str, dict]:
        return self.collections.setdefault(name, {})

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self._collection(collection)[doc_id] = copy.deepcopy(encode_value(data))
        return doc_id

    def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        docs = self._collection(collection)
        payload = copy.deepcopy(encode_value(data))
        if merge and doc_id in docs:
            docs[doc_id].update(payload)
        else:
            docs[doc_id] = payload

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        data = self._collection(collection).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def update(self, collection: str, doc_id: str, updates: dict) -> bool:
        data = self._collection(collection).get(doc_id)
        if data is None:
            return False
        _apply_updates(data, copy.deepcopy(encode_value(updates)))
        return True

    def increment(
        self, collection: str, doc_id: str, field: str, amount: float
    ) -> Optional[float]:
        data = self._collection(collection).get(doc_id)
        if data is None:
            return None
        current = _lookup(data, field)
        if current is _MISSING or current is None:
            current = 0
        new_value = current + amount
        _apply_updates(data, {field: new_value})
        return new_value

    def delete(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict]]:
        items = [
            (doc_id, copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
            if matches(data, filters)
        ]
        return _sort_and_limit(items, order_by, descending, limit)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    Filters and ordering are evaluated in Python after loading a collection,
    which is fine for the collection sizes a single deployment sees.
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

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        payload = encode_value(data)
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if row:
                merged = dict(row.data) if merge else {}
                merged.update(payload)
                row.data = merged
                row.updated_at = time.time()
            else:
                session.add(
                    DocumentRow(
                        collection=collection,
                        doc_id=doc_id,
                        data=payload,
                        updated_at=time.time(),
                    )
                )
            session.commit()

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            return copy.deepcopy(row.data) if row else None

    def update(self, collection: str, doc_id: str, updates: dict) -> bool:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                return False
            data = copy.deepcopy(row.data)
            _apply_updates(data, encode_value(updates))
            # Reassign so SQLAlchemy notices the JSON change.
            row.data = data
            row.updated_at = time.time()
            session.commit()
            return True

    def increment(
        self, collection: str, doc_id: str, field: str, amount: float
    ) -> Optional[float]:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id), with_for_update=True)
            if not row:
                return None
            data = copy.deepcopy(row.data)
            current = _lookup(data, field)
            if current is _MISSING or current is None:
                current = 0
            new_value = current + amount
            _apply_updates(data, {field: new_value})
            row.data = data
            row.updated_at = time.time()
            session.commit()
            return new_value

    def delete(self, collection: str, doc_id: str) -> bool:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict]]:
        with self.Session() as session:
            stmt = select(DocumentRow).where(DocumentRow.collection == collection)
            rows = session.execute(stmt).scalars().all()
            items = [
                (row.doc_id, copy.deepcopy(row.data))
                for row in rows
                if matches(row.data, filters)
            ]
        return _sort_and_limit(items, order_by, descending, limit)


class FirestoreDocumentStore:
    """Firestore implementation backed by a firebase_admin client."""

    def __init__(self, client):
        self.client = client

    def add(self, collection: str, data: dict) -> str:
        ref = self.client.collection(collection).document()
        ref.set(encode_value(data))
        return ref.id

    def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        self.client.collection(collection).document(doc_id).set(
            encode_value(data), merge=merge
        )

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def update(self, collection: str, doc_id: str, updates: dict) -> bool:
        try:
            self.client.collection(collection).document(doc_id).update(
                encode_value(updates)
            )
        except google_exceptions.NotFound:
            return False
        return True

    def increment(
        self, collection: str, doc_id: str, field: str, amount: float
    ) -> Optional[float]:
        ref = self.client.collection(collection).document(doc_id)
        try:
            ref.update({field: Increment(amount)})
        except google_exceptions.NotFound:
            return None
        snapshot = ref.get()
        return _lookup(snapshot.to_dict() or {}, field)

    def delete(self, collection: str, doc_id: str) -> bool:
        ref = self.client.collection(collection).document(doc_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict]]:
        query = self.client.collection(collection)
        for field_path, op, value in filters:
            query = query.where(filter=FieldFilter(field_path, op, encode_value(value)))
        if order_by:
            direction = Query.DESCENDING if descending else Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        return [(snapshot.id, snapshot.to_dict()) for snapshot in query.stream()]


def insert_record(store: DocumentStore, collection: str, record: Any) -> str:
    """Add a record dataclass under a generated id and write the id back onto it."""
    key = id_field(type(record))
    doc = to_document(record)
    doc.pop(key, None)
    doc_id = store.add(collection, doc)
    setattr(record, key, doc_id)
    return doc_id
