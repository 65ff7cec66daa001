"""
Shared read/delete operations for entity services built on the gateway.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, List, Mapping, NoReturn, Optional, TypeVar

from dacite import DaciteError

from backend.db import Database, DbResult
from shared.normalize import NormalizationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceError(Exception):
    """A document store call failed for a reason other than "not found"."""


class RecordNotFoundError(ServiceError):
    """A record that was just written could not be read back."""


class ContentService(Generic[T]):
    """
    Typed getAll/getById/delete for one collection.

    Subclasses set `collection` and `label` and implement `normalize`.
    """

    collection: str = ""
    label: str = "Content Service"

    def __init__(self, db: Database):
        self.db = db

    def normalize(self, raw: Mapping[str, Any]) -> T:
        raise NotImplementedError

    def _log(self, operation: str, **details: Any) -> None:
        logger.info("[%s %s] %s", self.label, operation, details)

    def _fail(self, operation: str, result: DbResult, fallback: str) -> NoReturn:
        message = result.error or fallback
        logger.error("[%s Error] %s: %s", self.label, operation, message)
        raise ServiceError(message)

    def normalize_each(self, documents: List[dict], operation: str) -> List[T]:
        """Normalizes documents, dropping (and logging) any that are malformed."""
        records: List[T] = []
        for index, doc in enumerate(documents):
            try:
                records.append(self.normalize(doc))
            except (NormalizationError, DaciteError):
                logger.exception(
                    "[%s Error] %s: dropping record %r at index %d",
                    self.label,
                    operation,
                    doc.get("id"),
                    index,
                )
        return records

    def get_all(self) -> List[T]:
        self._log("getAll", starting=True)
        result = self.db.get_all(self.collection)
        if not result.success:
            self._fail("getAll", result, f"Failed to fetch {self.collection}")
        records = self.normalize_each(result.data, "getAll")
        self._log("getAll", success=True, count=len(records))
        return records

    def get_by_id(self, record_id: str) -> Optional[T]:
        """Returns the normalized record, or None if it does not exist."""
        self._log("getById", id=record_id)
        result = self.db.get(self.collection, record_id)
        if not result.success:
            if result.not_found:
                self._log("getById", not_found=True, id=record_id)
                return None
            self._fail("getById", result, f"Failed to fetch {record_id}")
        record = self.normalize(result.data)
        self._log("getById", success=True, id=record_id)
        return record

    def delete(self, record_id: str) -> None:
        self._log("delete", id=record_id)
        result = self.db.delete(self.collection, record_id)
        if not result.success:
            self._fail("delete", result, f"Failed to delete {record_id}")
        self._log("delete", success=True, id=record_id)
