"""Tests for the HTTP liveness prober."""

from __future__ import annotations

import asyncio
from typing import List

import httpx
import pytest

from provider_manager.health.prober import LivenessProber, health_url


def _run(coro):
    return asyncio.run(coro)


async def _probe_with(handler, endpoint: str) -> bool:
    async with LivenessProber(timeout=1.0, transport=httpx.MockTransport(handler)) as prober:
        return await prober.probe(endpoint)


class TestHealthUrl:
    @pytest.mark.parametrize(
        "endpoint, expected",
        [
            ("http://p.example", "http://p.example/health"),
            ("http://p.example/", "http://p.example/health"),
            ("http://p.example/api/v1//", "http://p.example/api/v1/health"),
        ],
    )
    def test_trailing_slash_stripped(self, endpoint: str, expected: str) -> None:
        assert health_url(endpoint) == expected


class TestProbe:
    def test_requests_health_path_with_get(self) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "ok"})

        assert _run(_probe_with(handler, "http://provider.local:8081/")) is True
        assert len(seen) == 1
        assert seen[0].method == "GET"
        assert str(seen[0].url) == "http://provider.local:8081/health"

    @pytest.mark.parametrize("code", [200, 201, 204, 299])
    def test_2xx_is_healthy(self, code: int) -> None:
        assert _run(_probe_with(lambda r: httpx.Response(code), "http://p")) is True

    @pytest.mark.parametrize("code", [300, 404, 500, 503])
    def test_non_2xx_is_unhealthy(self, code: int) -> None:
        assert _run(_probe_with(lambda r: httpx.Response(code), "http://p")) is False

    def test_connection_error_is_unhealthy(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert _run(_probe_with(handler, "http://p")) is False

    def test_timeout_is_unhealthy(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        assert _run(_probe_with(handler, "http://p")) is False

    def test_malformed_url_is_unhealthy(self) -> None:
        # default transport rejects a URL without scheme before any I/O
        async def scenario() -> bool:
            async with LivenessProber(timeout=1.0) as prober:
                return await prober.probe("not a url")

        assert _run(scenario()) is False

    def test_close_is_idempotent(self) -> None:
        async def scenario() -> None:
            prober = LivenessProber(timeout=1.0, transport=httpx.MockTransport(lambda r: httpx.Response(200)))
            assert await prober.probe("http://p") is True
            await prober.close()
            await prober.close()

        _run(scenario())
