"""Instance data model — tracked endpoints, their check history, and the config document."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel

# ── Check history ────────────────────────────────────────────────────────────


class Kind(str, Enum):
    API = "api"
    UI = "ui"


@dataclass(frozen=True)
class Check:
    """Outcome of one probe. Never mutated after creation."""

    timestamp: datetime
    status_code: int
    response_time: int  # milliseconds
    success: bool
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "status_code": self.status_code,
            "response_time": self.response_time,
            "success": self.success,
        }
        if self.error:
            d["error"] = self.error
        return d


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Endpoint ─────────────────────────────────────────────────────────────────


class Endpoint:
    """One monitored instance.

    ``url`` and ``kind`` never change. ``group``, ``group_order``,
    ``cors_enabled`` and the check history are guarded by the endpoint's own
    lock. ``display_index`` is written only by ``InstanceRegistry.replace``
    while it holds the registry lock.
    """

    def __init__(
        self,
        url: str,
        kind: Kind,
        max_history: int,
        group: str = "",
        group_order: int = 0,
        cors_enabled: bool = False,
    ) -> None:
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self._url = url
        self._kind = Kind(kind)
        self.group = group
        self.group_order = group_order
        self.cors_enabled = cors_enabled
        self.display_index = 0
        self._history: deque[Check] = deque(maxlen=max_history)
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Endpoint(url={self._url!r}, kind={self._kind.value!r}, group={self.group!r})"

    @property
    def url(self) -> str:
        return self._url

    @property
    def kind(self) -> Kind:
        return self._kind

    def record(self, check: Check) -> None:
        """Append a check, evicting the oldest one when the history is full."""
        with self._lock:
            self._history.append(check)

    def classify(self, group: str, group_order: int, cors_enabled: bool) -> None:
        with self._lock:
            self.group = group
            self.group_order = group_order
            self.cors_enabled = cors_enabled

    def history(self) -> list[Check]:
        """Copy of the retained checks, oldest first."""
        with self._lock:
            return list(self._history)

    def read(self) -> tuple[str, int, bool, list[Check]]:
        """Consistent copy of (group, group_order, cors_enabled, history)."""
        with self._lock:
            return self.group, self.group_order, self.cors_enabled, list(self._history)


# ── Config document ──────────────────────────────────────────────────────────


class ApiGroup(BaseModel):
    urls: list[str] = []
    cors: bool = False


class InstancesDocument(BaseModel):
    """Shape of the remote instances.json file."""

    api: dict[str, ApiGroup] = {}
    ui: dict[str, list[str]] = {}
