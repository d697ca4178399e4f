"""Tests for the aiohttp-backed HTTP client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from sctr_enrich.data.http import AiohttpClient, HttpResponse
from sctr_enrich.exceptions import UpstreamError


def _session_returning(status: int = 200, text: str = "[]", error=None):
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response, side_effect=error)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=ctx)
    session.closed = False
    session.close = AsyncMock()
    return session


class TestHttpResponse:
    def test_ok_and_json(self):
        response = HttpResponse(200, '{"a": 1}')
        assert response.ok
        assert response.json() == {"a": 1}
        assert not HttpResponse(429, "").ok

    def test_malformed_json_raises_value_error(self):
        with pytest.raises(ValueError):
            HttpResponse(200, "<html>").json()


class TestAiohttpClient:
    @pytest.mark.asyncio
    async def test_returns_status_and_body(self):
        client = AiohttpClient()
        client._session = _session_returning(404, "nope")

        response = await client.get("https://example.test/x", headers={"A": "b"}, timeout=3)

        assert response == HttpResponse(404, "nope")
        kwargs = client._session.get.call_args.kwargs
        assert kwargs["headers"] == {"A": "b"}
        assert kwargs["timeout"].total == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [aiohttp.ClientConnectionError("reset"), asyncio.TimeoutError()]
    )
    async def test_network_errors_raise_upstream_error(self, error):
        client = AiohttpClient()
        client._session = _session_returning(error=error)
        with pytest.raises(UpstreamError):
            await client.get("https://example.test/x")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = AiohttpClient()
        session = _session_returning()
        client._session = session
        await client.close()
        await client.close()
        session.close.assert_awaited_once()
