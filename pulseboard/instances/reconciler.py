"""Reconciler — fetches instances.json and merges it into the registry.

Endpoints that stay in the document keep their Endpoint object (and history),
new URLs get a fresh Endpoint, URLs that disappeared are dropped. On any fetch
or parse failure the registry is left untouched and the error is raised to
the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from ..fetching import get_within
from .models import Endpoint, InstancesDocument, Kind
from .ordering import extract_group_order
from .registry import InstanceRegistry

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when the config source is unreachable or answers non-2xx."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ParseError(Exception):
    """Raised when the config payload is not a valid instances document."""


@dataclass
class ReconcileResult:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    total: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def parse_document(raw: str) -> InstancesDocument:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"failed to parse instances JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"instances JSON must be an object, got {type(data).__name__}")
    try:
        return InstancesDocument.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"invalid instances document: {e}") from e


def _ordered(recovered: list[str], groups: dict[str, Any]) -> list[str]:
    """Recovered order first, then any group the text scan could not place."""
    order = [g for g in recovered if g in groups]
    order.extend(g for g in groups if g not in order)
    return order


class Reconciler:
    """Keeps the registry in line with the remote instance list."""

    def __init__(
        self,
        registry: InstanceRegistry,
        source_url: str,
        max_history: int,
        timeout: float = 30.0,
        on_change: Callable[[], Any] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.registry = registry
        self.source_url = source_url
        self.max_history = max_history
        self.timeout = timeout
        self.on_change = on_change  # broadcast callback
        self._transport = transport

    def fetch(self) -> str:
        """Download the raw config document within the request timeout."""
        try:
            with httpx.Client(
                timeout=self.timeout, follow_redirects=True, transport=self._transport,
            ) as client:
                resp, body = get_within(client, self.source_url, self.timeout)
        except httpx.HTTPError as e:
            raise FetchError(f"failed to fetch instances: {type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise FetchError(
                f"failed to fetch instances with unexpected status code: {resp.status_code}",
                status_code=resp.status_code,
            )
        return body.decode(resp.encoding or "utf-8", errors="replace")

    def apply(self, raw: str) -> ReconcileResult:
        """Merge a raw document into the registry. Raises ParseError, changes nothing."""
        doc = parse_document(raw)
        api_order = _ordered(extract_group_order(raw, "api"), doc.api)
        ui_order = _ordered(extract_group_order(raw, "ui"), doc.ui)

        existing = self.registry.by_url()
        updated: list[Endpoint] = []
        seen: set[str] = set()
        group_order = 0

        def place(url: str, kind: Kind, group: str, cors: bool) -> None:
            if url in seen:
                logger.warning("Duplicate instance URL %s in group %r ignored", url, group)
                return
            seen.add(url)
            endpoint = existing.get(url)
            if endpoint is None:
                endpoint = Endpoint(url, kind, self.max_history)
            elif endpoint.kind is not kind:
                logger.warning(
                    "Instance %s moved from %s to %s section; keeping kind %s",
                    url, endpoint.kind.value, kind.value, endpoint.kind.value,
                )
            endpoint.classify(group, group_order, cors)
            updated.append(endpoint)

        for group in api_order:
            details = doc.api[group]
            for url in details.urls:
                place(url, Kind.API, group, details.cors)
            group_order += 1

        for group in ui_order:
            for url in doc.ui[group]:
                place(url, Kind.UI, group, False)
            group_order += 1

        result = ReconcileResult(
            added=[ep.url for ep in updated if ep.url not in existing],
            removed=[url for url in existing if url not in seen],
            total=len(updated),
        )
        self.registry.replace(updated)

        if result.changed:
            logger.info(
                "Instance list updated: %d added, %d removed.",
                len(result.added), len(result.removed),
            )
        return result

    async def refresh(self) -> ReconcileResult:
        """Fetch + merge, then broadcast when membership changed."""
        loop = asyncio.get_running_loop()
        raw = await loop.run_in_executor(None, self.fetch)
        result = self.apply(raw)
        if result.changed and self.on_change:
            try:
                self.on_change()
            except Exception:
                logger.exception("Broadcast callback error")
        return result
