"""FastAPI server for the status dashboard."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from pulseboard import __version__
from pulseboard.api.routes import api_router, probe_router
from pulseboard.config import Settings, settings as default_settings
from pulseboard.health.broadcaster import Broadcaster
from pulseboard.health.engine import Prober
from pulseboard.health.scheduler import CycleScheduler
from pulseboard.instances.reconciler import Reconciler
from pulseboard.instances.registry import InstanceRegistry

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent.parent / "static"


def build_services(app: FastAPI, cfg: Settings) -> CycleScheduler:
    """Create the core services and hang them on ``app.state``."""
    registry = InstanceRegistry()
    broadcaster = Broadcaster(registry, inbox_size=cfg.subscriber_inbox_size)
    reconciler = Reconciler(
        registry,
        cfg.instances_url,
        max_history=cfg.max_check_history,
        timeout=cfg.request_timeout,
        on_change=broadcaster.publish,
    )
    prober = Prober(timeout=cfg.request_timeout)
    scheduler = CycleScheduler(
        registry, prober, reconciler, broadcaster,
        check_interval=cfg.check_interval,
        refresh_interval=cfg.refresh_interval,
    )

    app.state.settings = cfg
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.reconciler = reconciler
    app.state.scheduler = scheduler
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the instance list and start the check / refresh cycles."""
    scheduler = build_services(app, app.state.settings)

    result = await scheduler.run_refresh()
    if result is None:
        logger.warning("Initial instance list unavailable, will retry on next refresh")
    else:
        logger.info("Tracking %d instances", result.total)

    try:
        await scheduler.start()
    except Exception:
        logger.exception("Scheduler failed to start")

    yield

    await scheduler.stop()


def create_app(cfg: Settings | None = None) -> FastAPI:
    app = FastAPI(
        title="Pulseboard - Instance Status",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg or default_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(probe_router)

    @app.get("/")
    async def dashboard():
        return FileResponse(STATIC_DIR / "index.html")

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    return app


app = create_app()
