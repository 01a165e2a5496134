"""Correlation registry for in-flight list queries.

Every list request is tagged with a correlation id that the server echoes
in its replies. When a request is made its callback is stored here under a
fresh id; when the last page of the list has been delivered the entry is
removed. When the owner of a callback goes away, all of its entries are
dropped, and any reply that still arrives for them is discarded.

Requests are registered from caller threads while replies are completed on
the response path, so the id counter and the mapping share one lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .protocol.query import ListQuery

logger = logging.getLogger(__name__)

# callback(total, start, parameters, items)
ItemListCallback = Callable[[int, int, dict[str, str], list[Any]], None]


@dataclass
class PendingRequest:
    """A list query waiting for (more) replies."""

    correlation_id: int
    callback: ItemListCallback
    owner: Any = None
    query: ListQuery | None = None


class CorrelationRegistry:
    """Thread-safe map of correlation id to pending request."""

    def __init__(self, first_id: int = 1):
        self._lock = threading.Lock()
        self._next_id = first_id
        self._pending: dict[int, PendingRequest] = {}

    def register(self, callback: ItemListCallback, owner: Any = None) -> int:
        """Store ``callback`` under a newly allocated correlation id."""
        with self._lock:
            correlation_id = self._next_id
            self._next_id += 1
            self._pending[correlation_id] = PendingRequest(correlation_id, callback, owner)
            return correlation_id

    def update_query(self, correlation_id: int, query: ListQuery) -> bool:
        """Record the window currently requested for a pending entry."""
        with self._lock:
            pending = self._pending.get(correlation_id)
            if pending is None:
                return False
            pending.query = query
            return True

    def get(self, correlation_id: int | None) -> PendingRequest | None:
        if correlation_id is None:
            return None
        with self._lock:
            return self._pending.get(correlation_id)

    def complete(self, correlation_id: int | None) -> PendingRequest | None:
        """Remove and return an entry, or ``None`` if it is already gone."""
        if correlation_id is None:
            return None
        with self._lock:
            return self._pending.pop(correlation_id, None)

    def cancel(self, correlation_id: int) -> bool:
        return self.complete(correlation_id) is not None

    def cancel_all(self, owner: Any) -> int:
        """Drop every entry registered by ``owner``.

        Purely local: nothing is sent to the server, late replies for the
        dropped ids are ignored.
        """
        with self._lock:
            doomed = [cid for cid, pending in self._pending.items() if pending.owner == owner]
            for cid in doomed:
                pending = self._pending.pop(cid)
                logger.info(f"cancel request: [{cid};{pending.callback}]")
        return len(doomed)

    def pending_ids(self) -> list[int]:
        with self._lock:
            return list(self._pending)

    def __contains__(self, correlation_id: object) -> bool:
        with self._lock:
            return correlation_id in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
