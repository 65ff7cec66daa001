"""
Keyed read cache with request de-duplication, retries and invalidation.

Keys are tuples such as ("pages",) or ("page", "home"). Invalidating a key
drops every entry that starts with it.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from backend.events import DATABASE_UPDATED, DatabaseEvent, EventBus

logger = logging.getLogger(__name__)

QueryKey = Tuple[Any, ...]


@dataclass
class _Entry:
    value: Any
    fetched_at: float


class QueryClient:
    def __init__(
        self,
        retry: int = 2,
        stale_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retry = retry
        self.stale_seconds = stale_seconds
        self._clock = clock
        self._entries: Dict[QueryKey, _Entry] = {}
        self._in_flight: Dict[QueryKey, Future] = {}
        self._generation: Dict[QueryKey, int] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, entry: _Entry) -> bool:
        return self._clock() - entry.fetched_at < self.stale_seconds

    def fetch(self, key: QueryKey, fn: Callable[[], Any], enabled: bool = True) -> Any:
        """
        Returns the cached value for `key`, calling `fn` when there is none.

        Concurrent callers for the same key share one call. Returns None
        without calling `fn` when `enabled` is False.
        """
        if not enabled:
            return None

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry):
                return entry.value
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future
                generation = self._generation.get(key, 0)

        if not owner:
            return future.result()

        try:
            value = self._call_with_retry(key, fn)
        except Exception as e:
            with self._lock:
                self._in_flight.pop(key, None)
            future.set_exception(e)
            raise

        with self._lock:
            self._in_flight.pop(key, None)
            # An invalidation while the call was running makes the value stale.
            if self._generation.get(key, 0) == generation:
                self._entries[key] = _Entry(value=value, fetched_at=self._clock())
        future.set_result(value)
        return value

    def _call_with_retry(self, key: QueryKey, fn: Callable[[], Any]) -> Any:
        attempts = self.retry + 1
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except Exception:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Query %r failed (attempt %d of %d), retrying",
                    key,
                    attempt,
                    attempts,
                    exc_info=True,
                )

    def invalidate(self, prefix: QueryKey) -> int:
        """Drops every cached entry whose key starts with `prefix`."""
        prefix = tuple(prefix)
        with self._lock:
            matching = [key for key in self._entries if key[: len(prefix)] == prefix]
            for key in matching:
                del self._entries[key]
            for key in list(self._in_flight):
                if key[: len(prefix)] == prefix:
                    self._generation[key] = self._generation.get(key, 0) + 1
        if matching:
            logger.debug("Invalidated %d cached queries for %r", len(matching), prefix)
        return len(matching)

    def get_query_data(self, key: QueryKey) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            return entry.value if entry is not None else None

    def bind(self, bus: EventBus) -> Callable[[], None]:
        """Invalidates a collection's list query whenever the store reports a change."""

        def _on_change(event: DatabaseEvent) -> None:
            self.invalidate((event.collection,))

        return bus.subscribe(DATABASE_UPDATED, _on_change)
