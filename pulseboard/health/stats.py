"""Snapshot builder — derived metrics computed fresh from the registry."""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..instances.models import Check
from ..instances.registry import InstanceRegistry


def calculate_uptime(checks: Sequence[Check]) -> float:
    if not checks:
        return 0.0
    successful = sum(1 for c in checks if c.success)
    return successful / len(checks) * 100


def calculate_avg_response_time(checks: Sequence[Check]) -> int:
    if not checks:
        return 0
    return sum(c.response_time for c in checks) // len(checks)


# ── Views ────────────────────────────────────────────────────────────────────


@dataclass
class EndpointView:
    group: str
    url: str
    kind: str
    cors_enabled: bool
    group_order: int
    display_index: int
    checks: list[Check]
    uptime: float
    avg_response_time: int
    last_check: Check | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "group": self.group,
            "url": self.url,
            "kind": self.kind,
            "cors_enabled": self.cors_enabled,
            "group_order": self.group_order,
            "display_index": self.display_index,
            "checks": [c.to_dict() for c in self.checks],
            "uptime": self.uptime,
            "avg_response_time": self.avg_response_time,
            "last_check": self.last_check.to_dict() if self.last_check else None,
        }


@dataclass
class StatsView:
    total_instances: int
    up_instances: int
    avg_uptime: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_instances": self.total_instances,
            "up_instances": self.up_instances,
            "avg_uptime": self.avg_uptime,
        }


@dataclass
class Snapshot:
    instances: list[EndpointView]
    stats: StatsView
    timestamp: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "instances": [v.to_dict() for v in self.instances],
            "stats": self.stats.to_dict(),
            "timestamp": self.timestamp,
        }


@dataclass
class BadgeStatus:
    up: bool
    uptime: float


# ── Builders ─────────────────────────────────────────────────────────────────


def endpoint_views(registry: InstanceRegistry) -> list[EndpointView]:
    views = []
    for index, ep in registry.indexed():
        group, group_order, cors, checks = ep.read()
        views.append(EndpointView(
            group=group,
            url=ep.url,
            kind=ep.kind.value,
            cors_enabled=cors,
            group_order=group_order,
            display_index=index,
            checks=checks,
            uptime=calculate_uptime(checks),
            avg_response_time=calculate_avg_response_time(checks),
            last_check=checks[-1] if checks else None,
        ))
    return views


def aggregate_stats(views: Sequence[EndpointView]) -> StatsView:
    total = len(views)
    up = sum(1 for v in views if v.last_check is not None and v.last_check.success)
    avg = sum(v.uptime for v in views) / total if total else 0.0
    return StatsView(total_instances=total, up_instances=up, avg_uptime=avg)


def build_snapshot(registry: InstanceRegistry) -> Snapshot:
    views = endpoint_views(registry)
    return Snapshot(instances=views, stats=aggregate_stats(views))


def badge_status(registry: InstanceRegistry, url: str) -> BadgeStatus | None:
    """Up/down + uptime for one tracked URL, or None when it is not tracked."""
    endpoint = registry.get(url)
    if endpoint is None:
        return None
    checks = endpoint.history()
    return BadgeStatus(
        up=bool(checks) and checks[-1].success,
        uptime=calculate_uptime(checks),
    )
