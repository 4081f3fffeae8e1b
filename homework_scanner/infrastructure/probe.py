"""Advisory reachability checks for published images."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProbeResult:
    address: str
    reachable: bool
    status_code: int | None = None
    reason: str | None = None

    def describe(self) -> str:
        if self.reachable:
            return "Image is publicly accessible"
        if self.status_code is not None:
            return f"Image accessibility check failed: {self.status_code}"
        return f"Image accessibility check error: {self.reason}"


class ReachabilityProber:
    """Issues a HEAD request against a public address.

    The prober never raises: every outcome, including transport errors, is
    folded into a :class:`ProbeResult`.
    """

    def __init__(self, *, timeout: float | None = 10.0, http_client: httpx.AsyncClient | None = None) -> None:
        self._client = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._owns_client = http_client is None

    async def probe(self, address: str) -> ProbeResult:
        try:
            response = await self._client.head(address)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("HEAD %s failed: %s", address, exc)
            return ProbeResult(address=address, reachable=False, reason=str(exc) or type(exc).__name__)
        if response.is_success:
            return ProbeResult(address=address, reachable=True, status_code=response.status_code)
        logger.warning("HEAD %s returned %s", address, response.status_code)
        return ProbeResult(address=address, reachable=False, status_code=response.status_code)

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()
