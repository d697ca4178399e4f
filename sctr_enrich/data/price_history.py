"""
Daily close history from the Yahoo chart API.

Response shape (abridged):
    {"chart": {"result": [{"timestamp": [1697500800, ...],
                           "indicators": {"quote": [{"close": [181.2, null, ...]}]}}]}}

Timestamp/close pairs with a null on either side are dropped. A history is
only accepted (and cached) when it has at least ``min_points`` closes.
"""

import asyncio
import time
from datetime import datetime, timezone

import pandas as pd
import structlog

from sctr_enrich.config import config
from sctr_enrich.data.cache import CacheService, SourceCache
from sctr_enrich.data.http import HttpClient
from sctr_enrich.exceptions import UpstreamError

logger = structlog.get_logger(__name__)

PRICE_CACHE_NAME = "ma50-prices-cache"


def parse_chart_payload(payload: object) -> list[tuple[str, float]]:
    """Extract ``(YYYY-MM-DD, close)`` pairs from a chart response."""
    try:
        result = payload["chart"]["result"][0]  # type: ignore[index]
        timestamps = result.get("timestamp") or []
        closes = result["indicators"]["quote"][0].get("close") or []
    except (KeyError, IndexError, TypeError, AttributeError):
        return []

    points = []
    for ts, close in zip(timestamps, closes):
        if ts is None or close is None:
            continue
        if isinstance(close, bool) or not isinstance(close, int | float):
            continue
        day = datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()
        points.append((day, float(close)))
    return points


class PriceHistoryClient:
    """Fetches and caches daily closes keyed by symbol and lookback."""

    def __init__(
        self,
        http: HttpClient,
        cache_service: CacheService,
        base_url: str | None = None,
        lookback_days: int | None = None,
        min_points: int | None = None,
        timeout: float | None = None,
    ):
        self.http = http
        self.base_url = (base_url or config.yahoo_chart_url).rstrip("/")
        self.lookback_days = lookback_days or config.price_lookback_days
        self.min_points = min_points or config.ma_period
        self.timeout = timeout or config.http_timeout
        self.cache: SourceCache = cache_service.namespace(
            PRICE_CACHE_NAME,
            ttl_seconds=config.price_cache_ttl,
            flush_every=10,
        )

    def _cache_key(self, symbol: str) -> str:
        return f"prices_{symbol}_{self.lookback_days}"

    def _url(self, symbol: str) -> str:
        period2 = int(time.time())
        period1 = period2 - self.lookback_days * 24 * 60 * 60
        return (
            f"{self.base_url}/{symbol}"
            f"?interval=1d&period1={period1}&period2={period2}"
        )

    async def get_closes(self, symbol: str) -> pd.Series | None:
        """
        Daily closes indexed by ISO date string, oldest first.

        Returns None on any failure or when fewer than ``min_points`` closes
        are available. Only successes are cached.
        """
        symbol = symbol.strip().upper()
        key = self._cache_key(symbol)
        if key in self.cache:
            cached = self.cache.get(key)
            if cached:
                return self._to_series(cached)

        try:
            response = await self.http.get(
                self._url(symbol),
                headers=config.request_headers("application/json"),
                timeout=self.timeout,
            )
        except (UpstreamError, asyncio.TimeoutError) as e:
            logger.debug("price_history_network_error", symbol=symbol, error=str(e))
            return None

        if not response.ok:
            logger.debug(
                "price_history_http_error", symbol=symbol, status=response.status
            )
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.debug("price_history_malformed_json", symbol=symbol)
            return None

        points = parse_chart_payload(payload)
        if len(points) < self.min_points:
            logger.debug(
                "price_history_insufficient",
                symbol=symbol,
                points=len(points),
                required=self.min_points,
            )
            return None

        await self.cache.put(key, [[day, close] for day, close in points])
        return self._to_series(points)

    @staticmethod
    def _to_series(points) -> pd.Series:
        series = pd.Series(
            [float(close) for _, close in points],
            index=[str(day) for day, _ in points],
            dtype="float64",
        )
        # Duplicate dates (intraday bar appended to daily series) keep the latest
        series = series[~series.index.duplicated(keep="last")]
        return series.sort_index()
