"""Broadcaster — fans snapshot payloads out to live dashboard subscribers.

Delivery is best effort: every subscriber owns a bounded inbox and a full
inbox only costs that subscriber the current update. Publishing never waits.
Both ``publish`` and ``subscribe`` are meant to run on the event loop thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading

from ..instances.registry import InstanceRegistry
from .stats import build_snapshot

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """One live consumer: a bounded FIFO inbox of serialized snapshots."""

    def __init__(self, maxsize: int = 10) -> None:
        if maxsize < 2:
            raise ValueError("subscriber inbox needs room for at least 2 payloads")
        self._inbox: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._inbox.qsize()

    def offer(self, payload: str) -> bool:
        """Enqueue without blocking. False when closed or full."""
        if self._closed:
            return False
        try:
            self._inbox.put_nowait(payload)
        except asyncio.QueueFull:
            return False
        return True

    def get_nowait(self) -> str | None:
        """Next queued payload, None once closed. Raises asyncio.QueueEmpty."""
        item = self._inbox.get_nowait()
        return None if item is _CLOSED else item  # type: ignore[return-value]

    async def receive(self) -> str | None:
        """Wait for the next payload; None once the subscription is closed."""
        item = await self._inbox.get()
        if item is _CLOSED:
            # Leave the marker for any other waiter.
            self._inbox.put_nowait(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Pending payloads are no longer wanted; make room for the end marker.
        while not self._inbox.empty():
            self._inbox.get_nowait()
        self._inbox.put_nowait(_CLOSED)


class Broadcaster:
    """Holds the subscriber set and publishes registry snapshots to it."""

    def __init__(self, registry: InstanceRegistry, inbox_size: int = 10) -> None:
        self.registry = registry
        self.inbox_size = inbox_size
        self._subscribers: set[Subscription] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def current_payload(self) -> str:
        return json.dumps(build_snapshot(self.registry).to_dict())

    def subscribe(self) -> Subscription:
        """Register a consumer; its inbox starts with the current state."""
        sub = Subscription(self.inbox_size)
        sub.offer(self.current_payload())
        with self._lock:
            self._subscribers.add(sub)
            count = len(self._subscribers)
        logger.info("Client connected, total clients: %d", count)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(sub)
            count = len(self._subscribers)
        sub.close()
        logger.info("Client disconnected, total clients: %d", count)

    def publish(self) -> int:
        """Push a fresh snapshot to every subscriber. Returns deliveries made."""
        with self._lock:
            subscribers = list(self._subscribers)
        if not subscribers:
            return 0

        payload = self.current_payload()
        delivered = 0
        for sub in subscribers:
            if sub.offer(payload):
                delivered += 1
            elif not sub.closed:
                logger.warning("Client channel full, skipping update")

        logger.info("Broadcast update to %d clients", delivered)
        return delivered
