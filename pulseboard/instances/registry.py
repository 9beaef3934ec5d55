"""Instance registry — the ordered list of tracked endpoints.

The list itself is replaced wholesale on reconciliation and read as a stable
copy for iteration, both under the registry lock. Display indexes are
assigned in the same critical section as the swap. Endpoint objects are shared
by reference; their mutable fields have their own per-endpoint locks.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from .models import Endpoint

logger = logging.getLogger(__name__)


class InstanceRegistry:
    """Thread-safe holder of the current endpoint list."""

    def __init__(self, endpoints: Iterable[Endpoint] | None = None) -> None:
        self._lock = threading.Lock()
        self._endpoints: list[Endpoint] = []
        self.replace(list(endpoints or []))

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)

    def snapshot(self) -> list[Endpoint]:
        """Stable copy of the current list, safe to iterate without the lock."""
        with self._lock:
            return list(self._endpoints)

    def indexed(self) -> list[tuple[int, Endpoint]]:
        """(display_index, endpoint) pairs read together under the lock."""
        with self._lock:
            return [(ep.display_index, ep) for ep in self._endpoints]

    def by_url(self) -> dict[str, Endpoint]:
        with self._lock:
            return {ep.url: ep for ep in self._endpoints}

    def get(self, url: str) -> Endpoint | None:
        with self._lock:
            return next((ep for ep in self._endpoints if ep.url == url), None)

    def replace(self, endpoints: list[Endpoint]) -> None:
        """Atomically swap in a new ordered list and renumber it 1..N."""
        with self._lock:
            for index, endpoint in enumerate(endpoints, start=1):
                endpoint.display_index = index
            self._endpoints = list(endpoints)
        logger.debug("Registry now tracks %d instances", len(endpoints))
