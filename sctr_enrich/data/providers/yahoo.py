"""Yahoo Finance assetProfile classifications (quoteSummary JSON API)."""

import structlog

from sctr_enrich.config import config
from sctr_enrich.data.cache import CacheService
from sctr_enrich.data.http import HttpClient
from sctr_enrich.data.providers.base import IndustrySectorProvider
from sctr_enrich.exceptions import RateLimitedError, UpstreamError
from sctr_enrich.models import IndustryClassification
from sctr_enrich.utils import settle_all

logger = structlog.get_logger(__name__)

YAHOO_CACHE_NAME = "yahoo-industry-cache"


def parse_asset_profile(payload: object) -> tuple[str | None, str | None]:
    """Return ``(industry, sector)`` from a quoteSummary response."""
    try:
        profile = payload["quoteSummary"]["result"][0]["assetProfile"]  # type: ignore[index]
    except (KeyError, IndexError, TypeError):
        return None, None
    if not isinstance(profile, dict):
        return None, None
    industry = (profile.get("industry") or "").strip() or None
    sector = (profile.get("sector") or "").strip() or None
    return industry, sector


class YahooProvider(IndustrySectorProvider):
    key = "yahoo"
    source_name = "Yahoo"
    description = "Yahoo Finance classifications"

    def __init__(
        self,
        http: HttpClient,
        cache_service: CacheService,
        batch_size: int | None = None,
        delay: float | None = None,
    ):
        self.http = http
        self.batch_size = batch_size or config.yahoo_max_concurrency
        self.delay = config.yahoo_batch_delay if delay is None else delay
        self.cache = cache_service.namespace(
            YAHOO_CACHE_NAME,
            ttl_seconds=config.industry_cache_ttl,
            negative_ttl_seconds=config.yahoo_negative_ttl,
            flush_every=10,
        )

    async def fetch_one(self, ticker: str) -> IndustryClassification | None:
        ticker = ticker.strip().upper()
        hit, cached = self._cached(ticker)
        if hit:
            logger.debug("yahoo_cache_hit", ticker=ticker, found=cached is not None)
            return cached

        url = f"{config.yahoo_profile_url}/{ticker}?modules=assetProfile"
        try:
            response = await self.http.get(
                url,
                headers=config.request_headers("application/json"),
                timeout=config.http_timeout,
            )
        except UpstreamError as e:
            logger.debug("yahoo_network_error", ticker=ticker, error=str(e))
            return None

        if response.status == 404:
            await self._remember(ticker, None)
            return None
        if response.status == 429:
            raise RateLimitedError(self.source_name)
        if not response.ok:
            logger.debug("yahoo_http_error", ticker=ticker, status=response.status)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.debug("yahoo_malformed_json", ticker=ticker)
            return None

        industry, sector = parse_asset_profile(payload)
        if not industry and not sector:
            await self._remember(ticker, None)
            return None

        result = IndustryClassification(
            industry=industry, sector=sector, source=self.source_name
        )
        await self._remember(ticker, result)
        return result

    async def fetch_batch(
        self, tickers: list[str]
    ) -> dict[str, IndustryClassification]:
        results: dict[str, IndustryClassification] = {}

        async def _fetch(ticker: str) -> tuple[str, IndustryClassification | None]:
            return ticker, await self.fetch_one(ticker)

        for start in range(0, len(tickers), self.batch_size):
            group = tickers[start : start + self.batch_size]
            settled = await settle_all((_fetch(t) for t in group), label="yahoo_profile")
            for ticker, result in settled:
                if result is not None:
                    results[ticker] = result
            if start + self.batch_size < len(tickers):
                await self._pause(self.delay)

        await self.cache.flush()
        logger.info("yahoo_batch_complete", requested=len(tickers), found=len(results))
        return results
