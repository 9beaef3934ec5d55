"""Probe engine — one HTTP GET per instance, all instances in parallel.

A probe never raises: transport errors and non-2xx answers are recorded as a
failed Check in the endpoint's history.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import httpx

from ..fetching import get_within
from ..instances.models import Check, Endpoint, Kind, utc_now

logger = logging.getLogger(__name__)

API_PROBE_SUFFIX = "/search/?s=kanye"


def probe_target(endpoint: Endpoint) -> str:
    """URL actually requested for an endpoint."""
    if endpoint.kind is Kind.API:
        return f"{endpoint.url}{API_PROBE_SUFFIX}"
    return endpoint.url


def run_probe(
    url: str,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> Check:
    """Single GET, success iff the response status is 2xx.

    The whole exchange, body included, must finish within ``timeout``.
    """
    started = utc_now()
    t0 = time.perf_counter()
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True, transport=transport) as client:
            resp, _ = get_within(client, url, timeout)
        elapsed = int((time.perf_counter() - t0) * 1000)
        return Check(
            timestamp=started,
            status_code=resp.status_code,
            response_time=elapsed,
            success=200 <= resp.status_code < 300,
        )
    except httpx.TimeoutException as e:
        elapsed = int((time.perf_counter() - t0) * 1000)
        return Check(
            timestamp=started, status_code=0, response_time=elapsed, success=False,
            error=f"Timeout after {timeout:g}s: {type(e).__name__}: {e}",
        )
    except Exception as e:
        elapsed = int((time.perf_counter() - t0) * 1000)
        return Check(
            timestamp=started, status_code=0, response_time=elapsed, success=False,
            error=f"{type(e).__name__}: {e}",
        )


class Prober:
    """Runs one probe per endpoint, one worker thread each."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._transport = transport

    def check_one(self, endpoint: Endpoint) -> Check:
        check = run_probe(probe_target(endpoint), self.timeout, self._transport)
        # If the endpoint was dropped meanwhile, this lands on an unreachable object.
        endpoint.record(check)
        logger.debug(
            "[%d] %s (%s): success=%s, status=%d, time=%dms",
            endpoint.display_index, endpoint.url, endpoint.kind.value,
            check.success, check.status_code, check.response_time,
        )
        return check

    async def check_all(self, endpoints: Sequence[Endpoint]) -> list[Check]:
        """Probe every endpoint concurrently and wait for the last one."""
        if not endpoints:
            return []

        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(
            max_workers=len(endpoints), thread_name_prefix="probe",
        )
        try:
            return list(await asyncio.gather(*(
                loop.run_in_executor(executor, self.check_one, ep) for ep in endpoints
            )))
        finally:
            executor.shutdown(wait=False)
