"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import pytest

from pulseboard.instances.models import Check, Endpoint, Kind
from pulseboard.instances.registry import InstanceRegistry

SAMPLE_DOCUMENT = """{
  "api": {
    "beta": {"urls": ["https://b1.example.com", "https://b2.example.com"], "cors": true},
    "alpha": {"urls": ["https://a1.example.com"], "cors": false}
  },
  "ui": {
    "zeta": ["https://ui-z.example.com"],
    "eta": ["https://ui-e1.example.com", "https://ui-e2.example.com"]
  }
}"""


@pytest.fixture
def make_check() -> Callable[..., Check]:
    def _make(success: bool = True, response_time: int = 100, status_code: int | None = None) -> Check:
        if status_code is None:
            status_code = 200 if success else 503
        return Check(
            timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
            status_code=status_code,
            response_time=response_time,
            success=success,
        )
    return _make


@pytest.fixture
def sample_document() -> str:
    return SAMPLE_DOCUMENT


@pytest.fixture
def registry() -> InstanceRegistry:
    """Three endpoints: two API in one group, one UI."""
    eps = [
        Endpoint("https://a1.example.com", Kind.API, max_history=5, group="alpha", group_order=0, cors_enabled=True),
        Endpoint("https://a2.example.com", Kind.API, max_history=5, group="alpha", group_order=0),
        Endpoint("https://ui.example.com", Kind.UI, max_history=5, group="web", group_order=1),
    ]
    return InstanceRegistry(eps)


@pytest.fixture
def document_transport() -> Callable[[str, int], httpx.MockTransport]:
    """MockTransport that serves a fixed body for every request."""
    def _make(body: str, status_code: int = 200) -> httpx.MockTransport:
        return httpx.MockTransport(lambda request: httpx.Response(status_code, text=body))
    return _make
