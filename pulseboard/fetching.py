"""GET with a single deadline over the whole exchange.

httpx timeouts apply per connect/read/write step, so a server that trickles
its body never trips them. ``get_within`` streams the body and gives up once
the total elapsed time passes ``timeout``.
"""

from __future__ import annotations

import time

import httpx


class DeadlineExceeded(httpx.TimeoutException):
    """The full request/response did not finish within the deadline."""


def get_within(client: httpx.Client, url: str, timeout: float) -> tuple[httpx.Response, bytes]:
    """GET ``url`` and read the full body, raising DeadlineExceeded past ``timeout``.

    The response is returned closed; use the returned bytes for its body.
    """
    deadline = time.perf_counter() + timeout
    with client.stream("GET", url) as resp:
        chunks: list[bytes] = []
        if time.perf_counter() > deadline:
            raise DeadlineExceeded(f"no response within {timeout:g}s", request=resp.request)
        for chunk in resp.iter_bytes():
            chunks.append(chunk)
            if time.perf_counter() > deadline:
                raise DeadlineExceeded(
                    f"response body incomplete after {timeout:g}s", request=resp.request,
                )
    return resp, b"".join(chunks)
