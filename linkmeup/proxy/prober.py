"""Health prober issuing HTTP GETs through a local SOCKS5 tunnel.

A probe counts as successful when any response with a status code in
[200, 500) comes back: a 4xx from the installation's API still proves the
tunnel carries traffic. Transport failures (refused connection, timeout, DNS
failure behind the tunnel) and 5xx responses count as failures.
"""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from linkmeup.proxy.types import ProbeResult

logger = logging.getLogger(__name__)


def ensure_scheme(url: str) -> str:
    """Prefix ``https://`` when the URL carries no http(s) scheme."""
    if url.startswith(("http://", "https://")):
        return url
    return "https://" + url


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 500


class HealthProber:
    """Probes health-check URLs through ``socks5://<proxy_host>:<port>``."""

    def __init__(self, proxy_host: str = "127.0.0.1") -> None:
        self._proxy_host = proxy_host

    def proxy_url(self, port: int) -> str:
        return f"socks5://{self._proxy_host}:{port}"

    async def probe(self, port: int, url: str, timeout: float = 10.0) -> ProbeResult:
        """Issue one GET to ``url`` through the tunnel on ``port``.

        Always returns within ``timeout`` seconds and never raises for
        transport problems; they are reported in the result instead.
        """
        url = ensure_scheme(url)
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._get(port, url, timeout), timeout=timeout
            )
        except asyncio.TimeoutError:
            return ProbeResult(
                success=False,
                error=f"request timed out after {timeout:g}s",
                duration=time.monotonic() - started,
            )
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            return ProbeResult(
                success=False,
                error=f"request failed: {str(exc) or type(exc).__name__}",
                duration=time.monotonic() - started,
            )

        return ProbeResult(
            success=is_success_status(response.status_code),
            status_code=response.status_code,
            duration=time.monotonic() - started,
        )

    async def _get(self, port: int, url: str, timeout: float) -> httpx.Response:
        async with httpx.AsyncClient(
            proxy=self.proxy_url(port),
            timeout=httpx.Timeout(timeout),
        ) as client:
            return await client.get(url)
