"""
Finviz quote-page scraper for sector/industry.

Finviz has no API; the quote page (``quote.ashx?t=SYMBOL``) shows sector and
industry in a few layouts depending on page version. Extraction tries, in
order:

    1. snapshot-table label/value cells ("Sector" | "Technology")
    2. screener links in the quote header (``f=sec_technology``, ``f=ind_...``)
    3. raw-HTML regex patterns, most structured first
    4. tooltip markup for industry, og:description keyword for sector

Finviz rate-limits aggressively, so batches run serially with a delay and a
429 stops the whole batch.
"""

import html
import re

import structlog
from bs4 import BeautifulSoup

from sctr_enrich.config import config
from sctr_enrich.data.cache import CacheService
from sctr_enrich.data.http import HttpClient
from sctr_enrich.data.providers.base import IndustrySectorProvider
from sctr_enrich.exceptions import RateLimitedError, UpstreamError
from sctr_enrich.models import IndustryClassification

logger = structlog.get_logger(__name__)

FINVIZ_CACHE_NAME = "finviz-industry-cache"

_PLACEHOLDERS = {"sector", "industry", "-", "n/a"}

SECTOR_PATTERNS = [
    re.compile(r"snapshot-td2[^>]*>Sector</td>\s*<td[^>]*>([^<]+)</td>", re.I),
    re.compile(
        r"Sector[^<]*</td>\s*<td[^>]*class=\"snapshot-td2\"[^>]*>([^<]+)</td>", re.I
    ),
    re.compile(r"Sector</td>\s*<td[^>]*>([^<]+)</td>", re.I),
    re.compile(r"Sector[:\s]*</td>\s*<td[^>]*>([^<]+)</td>", re.I),
]

INDUSTRY_PATTERNS = [
    re.compile(r"snapshot-td2[^>]*>Industry</td>\s*<td[^>]*>([^<]+)</td>", re.I),
    re.compile(
        r"Industry[^<]*</td>\s*<td[^>]*class=\"snapshot-td2\"[^>]*>([^<]+)</td>",
        re.I,
    ),
    re.compile(r"Industry</td>\s*<td[^>]*>([^<]+)</td>", re.I),
    re.compile(r"Industry[:\s]*</td>\s*<td[^>]*>([^<]+)</td>", re.I),
]

TOOLTIP_INDUSTRY_PATTERN = re.compile(r"<b>[^<]+</b>([^<•]+)<span[^>]*>•</span>")

SECTOR_KEYWORDS = re.compile(
    r"\b(Technology|Healthcare|Financial|Consumer|Energy|Industrial|"
    r"Materials|Utilities|Real Estate|Communication)\b",
    re.I,
)


def clean_label(raw: str | None) -> str | None:
    """Unescape, collapse whitespace and reject placeholders."""
    if raw is None:
        return None
    text = html.unescape(raw).replace("\xa0", " ")
    text = re.sub(r"\s+", " ", text).strip()
    if not text or text.lower() in _PLACEHOLDERS:
        return None
    return text


class FinvizPageParser:
    """Pulls sector/industry out of a Finviz quote page."""

    def __init__(self, page: str):
        self.page = page
        self.soup = BeautifulSoup(page, "html.parser")

    def parse(self) -> tuple[str | None, str | None]:
        sector, industry = self._from_snapshot_table()
        if not sector or not industry:
            link_sector, link_industry = self._from_screener_links()
            sector = sector or link_sector
            industry = industry or link_industry
        sector = sector or self._first_match(SECTOR_PATTERNS)
        industry = industry or self._first_match(INDUSTRY_PATTERNS)
        industry = industry or self._from_tooltip()
        sector = sector or self._from_og_description()
        return sector, industry

    def _from_snapshot_table(self) -> tuple[str | None, str | None]:
        found: dict[str, str | None] = {"sector": None, "industry": None}
        for table in self.soup.find_all("table", class_=re.compile(r"snapshot-table")):
            cells = table.find_all("td")
            for i in range(0, len(cells) - 1):
                label = cells[i].get_text(strip=True).rstrip(":").lower()
                if label in found and found[label] is None:
                    found[label] = clean_label(cells[i + 1].get_text(" ", strip=True))
        return found["sector"], found["industry"]

    def _from_screener_links(self) -> tuple[str | None, str | None]:
        sector = industry = None
        for link in self.soup.find_all("a", href=True):
            href = link["href"]
            if sector is None and "f=sec_" in href:
                sector = clean_label(link.get_text(" ", strip=True))
            elif industry is None and "f=ind_" in href:
                industry = clean_label(link.get_text(" ", strip=True))
            if sector and industry:
                break
        return sector, industry

    def _first_match(self, patterns: list[re.Pattern]) -> str | None:
        for pattern in patterns:
            match = pattern.search(self.page)
            if match:
                value = clean_label(match.group(1))
                if value:
                    return value
        return None

    def _from_tooltip(self) -> str | None:
        match = TOOLTIP_INDUSTRY_PATTERN.search(self.page)
        if not match:
            return None
        value = clean_label(match.group(1))
        if value and 3 <= len(value) <= 100:
            return value
        return None

    def _from_og_description(self) -> str | None:
        meta = self.soup.find("meta", attrs={"property": "og:description"})
        if meta is None or not meta.get("content"):
            return None
        match = SECTOR_KEYWORDS.search(meta["content"])
        return match.group(1) if match else None


class FinvizProvider(IndustrySectorProvider):
    key = "finviz"
    source_name = "Finviz"
    description = "Finviz industry definitions (cached)"

    def __init__(
        self,
        http: HttpClient,
        cache_service: CacheService,
        delay: float | None = None,
    ):
        self.http = http
        self.delay = config.finviz_delay if delay is None else delay
        self.cache = cache_service.namespace(
            FINVIZ_CACHE_NAME,
            ttl_seconds=config.industry_cache_ttl,
            negative_ttl_seconds=config.finviz_negative_ttl,
            flush_every=5,
        )

    async def fetch_one(self, ticker: str) -> IndustryClassification | None:
        """
        Scrape one quote page.

        Raises:
            RateLimitedError: Finviz answered 429 (not cached)
        """
        ticker = ticker.strip().upper()
        hit, cached = self._cached(ticker)
        if hit:
            logger.debug("finviz_cache_hit", ticker=ticker, found=cached is not None)
            return cached

        url = f"{config.finviz_quote_url}?t={ticker}"
        try:
            response = await self.http.get(
                url,
                headers=config.request_headers(
                    "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
                ),
                timeout=config.http_timeout,
            )
        except UpstreamError as e:
            logger.debug("finviz_network_error", ticker=ticker, error=str(e))
            return None

        if response.status == 429:
            logger.warning("finviz_rate_limited", ticker=ticker)
            raise RateLimitedError(self.source_name)
        if response.status == 404:
            await self._remember(ticker, None)
            return None
        if not response.ok:
            logger.debug("finviz_http_error", ticker=ticker, status=response.status)
            return None

        sector, industry = FinvizPageParser(response.body).parse()
        if not sector and not industry:
            logger.debug("finviz_no_classification", ticker=ticker)
            await self._remember(ticker, None)
            return None

        result = IndustryClassification(
            industry=industry, sector=sector, source=self.source_name
        )
        await self._remember(ticker, result)
        logger.debug("finviz_classified", ticker=ticker, sector=sector, industry=industry)
        return result

    async def fetch_batch(
        self, tickers: list[str]
    ) -> dict[str, IndustryClassification]:
        """Serial fetch; a 429 stops the batch and keeps what was gathered."""
        results: dict[str, IndustryClassification] = {}
        for i, ticker in enumerate(tickers):
            was_cached = ticker.strip().upper() in self.cache
            try:
                result = await self.fetch_one(ticker)
            except RateLimitedError:
                logger.warning(
                    "finviz_batch_aborted",
                    fetched=len(results),
                    remaining=len(tickers) - i,
                )
                break
            if result is not None:
                results[ticker] = result
            if not was_cached and i < len(tickers) - 1:
                await self._pause(self.delay)

        await self.cache.flush()
        logger.info("finviz_batch_complete", requested=len(tickers), found=len(results))
        return results
