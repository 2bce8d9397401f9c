"""HTTP liveness probe for provider endpoints."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Optional, Type

import httpx

from provider_manager.constants import DEFAULT_PROBE_TIMEOUT, HEALTH_PATH

logger = logging.getLogger(__name__)


def health_url(endpoint: str) -> str:
    """Probe target for *endpoint*: trailing slashes stripped, ``/health`` appended."""
    return endpoint.rstrip("/") + HEALTH_PATH


class LivenessProber:
    """Performs bounded ``GET {endpoint}/health`` probes.

    A probe is healthy iff a response arrives with a 2xx status.  Transport
    errors, timeouts, malformed URLs and non-2xx statuses all count as a
    failure and are only logged; :meth:`probe` never raises.

    Parameters
    ----------
    timeout:
        Seconds allowed for one probe (connect + read).
    transport:
        Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeout(self) -> float:
        return self._timeout

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LivenessProber":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def probe(self, endpoint: str, *, name: Optional[str] = None) -> bool:
        """Return ``True`` if ``endpoint/health`` answers with a 2xx status."""
        label = name or endpoint
        url = health_url(endpoint)
        try:
            resp = await self._ensure_client().get(url)
        except httpx.TimeoutException:
            logger.info("[%s] Health check timed out after %.1fs (%s)", label, self._timeout, url)
            return False
        except Exception as exc:
            logger.info(
                "[%s] Health check failed (%s): %s: %s",
                label,
                url,
                type(exc).__name__,
                exc,
            )
            return False

        if 200 <= resp.status_code < 300:
            logger.debug("[%s] Health check OK (%d)", label, resp.status_code)
            return True

        logger.info("[%s] Health check failed: status code %d", label, resp.status_code)
        return False
