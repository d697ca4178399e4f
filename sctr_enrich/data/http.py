"""
HTTP capability shared by every upstream client.

The pipeline never opens its own connections: one ``HttpClient`` is created
by the caller and handed to the dataset client, the providers and the
price-history client. Tests substitute a fake implementing the same
``get`` coroutine.

Error Handling:
    - Non-2xx responses: returned as-is (callers decide what a status means)
    - Network errors / timeouts: raised as UpstreamError
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import aiohttp
import structlog

from sctr_enrich.exceptions import UpstreamError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON. Raises ValueError on malformed payloads."""
        return json.loads(self.body)


class HttpClient(ABC):
    """Minimal GET-only HTTP interface."""

    @abstractmethod
    async def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> HttpResponse:
        pass

    async def close(self) -> None:
        """Release underlying resources. Default: nothing to release."""


class AiohttpClient(HttpClient):
    """
    aiohttp-backed client holding one session for the whole request.

    Usage:
        async with AiohttpClient() as http:
            response = await http.get(url, headers=headers, timeout=10)
    """

    def __init__(self) -> None:
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self):
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self) -> None:
        """Close the aiohttp session. Safe to call multiple times."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> HttpResponse:
        if not self._session:
            self._session = aiohttp.ClientSession()

        try:
            async with self._session.get(
                url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                body = await response.text(errors="replace")
                return HttpResponse(status=response.status, body=body)
        except asyncio.TimeoutError as e:
            logger.debug("http_timeout", url=url, timeout=timeout)
            raise UpstreamError(f"Timed out after {timeout}s: {url}") from e
        except aiohttp.ClientError as e:
            logger.debug("http_network_error", url=url, error=str(e))
            raise UpstreamError(f"Network error for {url}: {e}") from e
