"""Tests for instance list reconciliation."""

from __future__ import annotations

import asyncio
import json
import time
from unittest.mock import MagicMock, patch

import httpx
import pytest

from pulseboard.health.stats import endpoint_views
from pulseboard.instances.models import Kind
from pulseboard.instances.reconciler import FetchError, ParseError, Reconciler
from pulseboard.instances.registry import InstanceRegistry


def _doc(api: dict | None = None, ui: dict | None = None) -> str:
    doc = {}
    if api is not None:
        doc["api"] = api
    if ui is not None:
        doc["ui"] = ui
    return json.dumps(doc, indent=2)


@pytest.fixture
def reconciler() -> Reconciler:
    return Reconciler(InstanceRegistry(), "https://config.example.com/instances.json", max_history=4)


# ── Merge ────────────────────────────────────────────────────────────────────


class TestApply:
    def test_builds_list_in_declared_order(self, reconciler: Reconciler, sample_document: str) -> None:
        result = reconciler.apply(sample_document)
        eps = reconciler.registry.snapshot()

        assert [e.url for e in eps] == [
            "https://b1.example.com",
            "https://b2.example.com",
            "https://a1.example.com",
            "https://ui-z.example.com",
            "https://ui-e1.example.com",
            "https://ui-e2.example.com",
        ]
        assert [e.display_index for e in eps] == [1, 2, 3, 4, 5, 6]
        assert [e.group for e in eps] == ["beta", "beta", "alpha", "zeta", "eta", "eta"]
        assert [e.kind for e in eps] == [Kind.API] * 3 + [Kind.UI] * 3
        assert result.total == 6
        assert len(result.added) == 6
        assert result.removed == []

    def test_group_order_counts_api_then_ui(self, reconciler: Reconciler, sample_document: str) -> None:
        reconciler.apply(sample_document)
        orders = [e.group_order for e in reconciler.registry.snapshot()]
        assert orders == [0, 0, 1, 2, 3, 3]
        assert orders == sorted(orders)

    def test_cors_flags(self, reconciler: Reconciler, sample_document: str) -> None:
        reconciler.apply(sample_document)
        by_url = reconciler.registry.by_url()
        assert by_url["https://b1.example.com"].cors_enabled is True
        assert by_url["https://a1.example.com"].cors_enabled is False
        assert by_url["https://ui-z.example.com"].cors_enabled is False

    def test_history_preserved_across_regrouping(self, reconciler: Reconciler, make_check) -> None:
        reconciler.apply(_doc(api={"one": {"urls": ["https://x"]}, "two": {"urls": ["https://y"]}}))
        x = reconciler.registry.get("https://x")
        checks = [make_check(response_time=i) for i in range(3)]
        for c in checks:
            x.record(c)

        # x moves to another group, groups swap order
        reconciler.apply(_doc(api={"two": {"urls": ["https://y", "https://x"], "cors": True}}))

        moved = reconciler.registry.get("https://x")
        assert moved is x
        assert moved.history() == checks
        assert moved.group == "two"
        assert moved.group_order == 0
        assert moved.cors_enabled is True
        assert moved.display_index == 2

    def test_adds_and_removes_exactly(self, reconciler: Reconciler) -> None:
        reconciler.apply(_doc(ui={"g": ["https://a", "https://b", "https://c"]}))
        result = reconciler.apply(_doc(ui={"g": ["https://b", "https://d"], "h": ["https://e"]}))

        assert result.added == ["https://d", "https://e"]
        assert sorted(result.removed) == ["https://a", "https://c"]
        assert result.changed
        assert [e.url for e in reconciler.registry.snapshot()] == ["https://b", "https://d", "https://e"]
        assert [e.display_index for e in reconciler.registry.snapshot()] == [1, 2, 3]

    def test_unchanged_membership(self, reconciler: Reconciler, sample_document: str) -> None:
        reconciler.apply(sample_document)
        result = reconciler.apply(sample_document)
        assert not result.changed
        assert result.total == 6

    def test_indexes_stay_unique_while_list_is_swapped(self, reconciler: Reconciler) -> None:
        registry = reconciler.registry
        reconciler.apply(_doc(ui={"g": ["https://a", "https://b", "https://c"]}))

        seen_before_swap: list[list[int]] = []
        real_replace = registry.replace

        def spy(endpoints):
            seen_before_swap.append([v.display_index for v in endpoint_views(registry)])
            real_replace(endpoints)

        with patch.object(registry, "replace", side_effect=spy):
            reconciler.apply(_doc(ui={"g": ["https://b", "https://c"]}))

        assert seen_before_swap == [[1, 2, 3]]
        assert [(v.url, v.display_index) for v in endpoint_views(registry)] == [
            ("https://b", 1), ("https://c", 2),
        ]

    def test_duplicate_urls_keep_first(self, reconciler: Reconciler) -> None:
        reconciler.apply(_doc(
            api={"a": {"urls": ["https://dup"]}},
            ui={"b": ["https://dup", "https://other"]},
        ))
        eps = reconciler.registry.snapshot()
        assert [e.url for e in eps] == ["https://dup", "https://other"]
        assert eps[0].kind is Kind.API
        assert eps[0].group == "a"

    def test_kind_is_kept_when_url_changes_section(self, reconciler: Reconciler, make_check) -> None:
        reconciler.apply(_doc(api={"a": {"urls": ["https://x"]}}))
        reconciler.registry.get("https://x").record(make_check())
        reconciler.apply(_doc(ui={"web": ["https://x"]}))
        ep = reconciler.registry.get("https://x")
        assert ep.kind is Kind.API
        assert ep.group == "web"
        assert len(ep.history()) == 1

    def test_missing_sections_mean_no_groups(self, reconciler: Reconciler) -> None:
        result = reconciler.apply("{}")
        assert result.total == 0
        assert len(reconciler.registry) == 0

    def test_empty_group_still_takes_an_order_slot(self, reconciler: Reconciler) -> None:
        reconciler.apply(_doc(api={"empty": {"urls": []}, "full": {"urls": ["https://x"]}}))
        assert reconciler.registry.get("https://x").group_order == 1


class TestApplyErrors:
    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2, 3]",
        '{"api": {"g": {"urls": "https://not-a-list"}}}',
        '{"ui": {"g": [1, 2]}}',
        '{"api": {"g": {"urls": ["https://a"]}',
    ])
    def test_parse_error_leaves_registry_unchanged(self, reconciler: Reconciler, sample_document: str, raw: str) -> None:
        reconciler.apply(sample_document)
        before = reconciler.registry.snapshot()

        with pytest.raises(ParseError):
            reconciler.apply(raw)

        assert reconciler.registry.snapshot() == before


# ── Fetch ────────────────────────────────────────────────────────────────────


class TestFetch:
    def test_fetch_success(self, document_transport, sample_document: str) -> None:
        r = Reconciler(InstanceRegistry(), "https://cfg", 4, transport=document_transport(sample_document))
        assert r.fetch() == sample_document

    def test_fetch_non_2xx(self, document_transport) -> None:
        r = Reconciler(InstanceRegistry(), "https://cfg", 4, transport=document_transport("nope", 404))
        with pytest.raises(FetchError) as exc:
            r.fetch()
        assert exc.value.status_code == 404

    def test_fetch_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        r = Reconciler(InstanceRegistry(), "https://cfg", 4, transport=httpx.MockTransport(handler))
        with pytest.raises(FetchError, match="ConnectError"):
            r.fetch()

    def test_fetch_slow_body_hits_deadline(self) -> None:
        def trickle():
            for part in ('{"ui": ', '{"g": ', '["https://a"]}}'):
                yield part.encode()
                time.sleep(0.3)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=trickle())

        r = Reconciler(InstanceRegistry(), "https://cfg", 4, timeout=0.5, transport=httpx.MockTransport(handler))
        with pytest.raises(FetchError, match="DeadlineExceeded"):
            r.fetch()


class TestRefresh:
    def test_broadcasts_only_on_membership_change(self, document_transport, sample_document: str) -> None:
        on_change = MagicMock()
        r = Reconciler(
            InstanceRegistry(), "https://cfg", 4,
            on_change=on_change, transport=document_transport(sample_document),
        )

        first = asyncio.run(r.refresh())
        second = asyncio.run(r.refresh())

        assert first.changed and not second.changed
        assert on_change.call_count == 1
        assert len(r.registry) == 6

    def test_fetch_failure_is_raised_and_registry_kept(self, document_transport, sample_document: str) -> None:
        registry = InstanceRegistry()
        Reconciler(registry, "https://cfg", 4).apply(sample_document)
        before = registry.snapshot()

        on_change = MagicMock()
        r = Reconciler(registry, "https://cfg", 4, on_change=on_change, transport=document_transport("", 500))
        with pytest.raises(FetchError):
            asyncio.run(r.refresh())

        assert registry.snapshot() == before
        on_change.assert_not_called()
