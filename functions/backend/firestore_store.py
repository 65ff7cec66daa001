"""
Firestore-backed DocumentStore.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP, FieldFilter, Query, transactional
from google.cloud.firestore_v1.field_path import FieldPath

from backend.db import (
    DOCUMENT_NOT_FOUND,
    Condition,
    DocumentNotFoundError,
    StoredDocument,
    check_query,
)


def _top_level_paths(data: dict) -> list[FieldPath]:
    # Naming each top-level field replaces nested maps wholesale instead of
    # deep-merging them, and keeps dotted keys from being read as paths.
    return [FieldPath(key) for key in data]


class FirestoreDocumentStore:
    """Reads and writes documents through a firebase_admin Firestore client."""

    def __init__(self, client):
        self._client = client

    def timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    def _doc(self, collection: str, doc_id: str):
        return self._client.collection(collection).document(doc_id)

    def upsert(
        self, collection: str, doc_id: str, data: dict, on_create: dict
    ) -> None:
        doc_ref = self._doc(collection, doc_id)

        @transactional
        def _write(transaction) -> None:
            snapshot = doc_ref.get(transaction=transaction)
            payload = dict(data) if snapshot.exists else {**on_create, **data}
            transaction.set(doc_ref, payload, merge=_top_level_paths(payload))

        _write(self._client.transaction())

    def add(self, collection: str, data: dict) -> str:
        _, doc_ref = self._client.collection(collection).add(data)
        return doc_ref.id

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self._doc(collection, doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def list_documents(self, collection: str) -> List[StoredDocument]:
        return [
            (snapshot.id, snapshot.to_dict() or {})
            for snapshot in self._client.collection(collection).stream()
        ]

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        try:
            self._doc(collection, doc_id).update(data)
        except exceptions.NotFound as e:
            raise DocumentNotFoundError(DOCUMENT_NOT_FOUND) from e

    def delete(self, collection: str, doc_id: str) -> None:
        self._doc(collection, doc_id).delete()

    def query(
        self,
        collection: str,
        conditions: Sequence[Condition],
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        check_query(conditions, direction, limit)
        query = self._client.collection(collection)
        for field_path, op, value in conditions:
            query = query.where(filter=FieldFilter(field_path, op, value))
        if order_by:
            query = query.order_by(
                order_by,
                direction=Query.DESCENDING if direction == "desc" else Query.ASCENDING,
            )
        if limit:
            query = query.limit(limit)
        return [(snapshot.id, snapshot.to_dict() or {}) for snapshot in query.stream()]
