"""API routes for the dashboard.

Endpoints:
  GET  /api/instances         — every tracked instance with history + metrics
  GET  /api/stats             — aggregate stats
  GET  /api/snapshot          — instances + stats + timestamp in one payload
  GET  /api/badge/{url}       — SVG status badge for one instance
  GET  /api/stream            — SSE stream of live snapshots
  GET  /health                — liveness probe
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import StreamingResponse

from pulseboard.health.broadcaster import Subscription
from pulseboard.health.stats import aggregate_stats, badge_status, build_snapshot, endpoint_views
from pulseboard.api.badge import not_found_badge, status_badge

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api")
probe_router = APIRouter()

_NO_CACHE = "no-cache, no-store, must-revalidate"


@api_router.get("/instances")
def list_instances(request: Request) -> list[dict[str, Any]]:
    return [v.to_dict() for v in endpoint_views(request.app.state.registry)]


@api_router.get("/stats")
def get_stats(request: Request) -> dict[str, Any]:
    views = endpoint_views(request.app.state.registry)
    return aggregate_stats(views).to_dict()


@api_router.get("/snapshot")
def get_snapshot(request: Request) -> dict[str, Any]:
    return build_snapshot(request.app.state.registry).to_dict()


@api_router.get("/badge/{instance_url:path}")
def get_badge(instance_url: str, request: Request) -> Response:
    """Badge for the instance whose URL is the (already decoded) path tail."""
    status = badge_status(request.app.state.registry, instance_url)
    headers = {"Cache-Control": _NO_CACHE}
    if status is None:
        return Response(
            not_found_badge(), status_code=404,
            media_type="image/svg+xml", headers=headers,
        )
    return Response(
        status_badge(status.up, status.uptime),
        media_type="image/svg+xml", headers=headers,
    )


# ── SSE stream ───────────────────────────────────────────────────────────────


async def sse_events(
    request: Request, sub: Subscription, keepalive: float,
) -> AsyncIterator[str]:
    """Format subscription payloads as SSE frames until the client leaves."""
    while True:
        if await request.is_disconnected():
            break
        try:
            payload = await asyncio.wait_for(sub.receive(), timeout=keepalive)
        except asyncio.TimeoutError:
            yield ": keepalive\n\n"
            continue
        if payload is None:
            break
        yield f"data: {payload}\n\n"


@api_router.get("/stream")
async def stream(request: Request) -> StreamingResponse:
    """Server-Sent Events: current state first, then every broadcast."""
    broadcaster = request.app.state.broadcaster
    keepalive = float(request.app.state.settings.sse_keepalive_seconds)
    sub = broadcaster.subscribe()

    async def event_generator() -> AsyncIterator[str]:
        try:
            async for frame in sse_events(request, sub, keepalive):
                yield frame
        finally:
            broadcaster.unsubscribe(sub)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# ── Liveness ─────────────────────────────────────────────────────────────────


@probe_router.get("/health")
def health(request: Request) -> dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": int(time.time()),
        "instances": len(request.app.state.registry),
    }
