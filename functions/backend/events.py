"""
Publish/subscribe channel for document-store change notifications.

Every successful write through the gateway publishes two events: one scoped to
the collection (e.g. "pagesUpdated") and the generic "databaseUpdated". Both
carry the same DatabaseEvent payload.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DATABASE_UPDATED = "databaseUpdated"


class Operation(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class DatabaseEvent:
    collection: str
    operation: Operation
    doc_id: Optional[str] = None

    @property
    def name(self) -> str:
        """Collection-scoped event name, e.g. "projectsDeleted"."""
        return collection_event_name(self.collection, self.operation)


Handler = Callable[[DatabaseEvent], None]


def collection_event_name(collection: str, operation: Operation) -> str:
    return f"{collection}{operation.value.capitalize()}"


class EventBus:
    """In-process, fire-and-forget event delivery. Nothing is retained."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        """Registers `handler` for `name` and returns a function that removes it."""
        with self._lock:
            self._handlers.setdefault(name, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(name, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def subscribers(self, name: str) -> List[Handler]:
        with self._lock:
            return list(self._handlers.get(name, []))

    def publish(self, event: DatabaseEvent) -> None:
        for name in (event.name, DATABASE_UPDATED):
            for handler in self.subscribers(name):
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "Handler %r failed for %s (%s)", handler, name, event.doc_id
                    )
