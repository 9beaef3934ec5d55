"""Cycle scheduler — drives the check cycle and the instance refresh cycle.

Two independent asyncio loops started together. The check loop runs one cycle
right away, then one per ``check_interval`` measured from the start of the
previous cycle, and always broadcasts afterwards.
The refresh loop reconciles the instance list every ``refresh_interval``; the
reconciler broadcasts on its own when membership changed. Neither loop cancels
the other's in-flight work.
"""

from __future__ import annotations

import asyncio
import logging
import time

from ..instances.reconciler import FetchError, ParseError, ReconcileResult, Reconciler
from ..instances.registry import InstanceRegistry
from .broadcaster import Broadcaster
from .engine import Prober

logger = logging.getLogger(__name__)


class CycleScheduler:
    """Owns the two periodic background tasks."""

    def __init__(
        self,
        registry: InstanceRegistry,
        prober: Prober,
        reconciler: Reconciler,
        broadcaster: Broadcaster,
        check_interval: float = 3600.0,
        refresh_interval: float = 900.0,
    ) -> None:
        self.registry = registry
        self.prober = prober
        self.reconciler = reconciler
        self.broadcaster = broadcaster
        self.check_interval = check_interval
        self.refresh_interval = refresh_interval
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._check_loop(), name="check-cycle"),
            asyncio.create_task(self._refresh_loop(), name="instance-refresh"),
        ]
        logger.info(
            "Scheduler started: checks every %ss, refresh every %ss",
            self.check_interval, self.refresh_interval,
        )

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Scheduler stopped")

    async def run_check_cycle(self) -> int:
        """Probe the current endpoints, then broadcast. Returns probes run."""
        endpoints = self.registry.snapshot()
        logger.info("Starting check cycle for %d instances", len(endpoints))
        t0 = time.perf_counter()

        await self.prober.check_all(endpoints)

        logger.info("Check cycle completed in %.2fs", time.perf_counter() - t0)
        self.broadcaster.publish()
        return len(endpoints)

    async def run_refresh(self) -> ReconcileResult | None:
        """Reconcile once. Failures are logged and leave the registry as it was."""
        logger.info("Refreshing instance list...")
        try:
            return await self.reconciler.refresh()
        except (FetchError, ParseError) as e:
            logger.error("Error refreshing instances: %s", e)
            return None

    def _until_next_cycle(self, started: float) -> float:
        """Seconds left in the current period; cycles start on a fixed cadence."""
        return max(0.0, self.check_interval - (time.perf_counter() - started))

    async def _check_loop(self) -> None:
        while self._running:
            started = time.perf_counter()
            try:
                await self.run_check_cycle()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Check cycle error")
            try:
                await asyncio.sleep(self._until_next_cycle(started))
            except asyncio.CancelledError:
                break

    async def _refresh_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.refresh_interval)
                if not self._running:
                    break
                await self.run_refresh()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Instance refresh error")
