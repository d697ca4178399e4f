"""
Industry trend: is the industry trading above its 50-day moving average?

Each industry is represented by a proxy ETF when one is known (exact table,
then keyword rules, then the sector ETF). Without a usable proxy the trend
is computed on a synthesized basket: an equal-weighted average of up to 20
constituents from the SCTR dataset.

Results (including failures) are cached per industry name for a day. A
computation that exceeds the per-industry timeout counts as a failure.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import pandas as pd
import structlog

from sctr_enrich.config import config
from sctr_enrich.data.cache import CacheService
from sctr_enrich.data.price_history import PriceHistoryClient
from sctr_enrich.models import IndustryTrendResult, RankRecord

logger = structlog.get_logger(__name__)

TREND_CACHE_NAME = "ma50-industry-cache"

INDUSTRY_ETF_MAP: dict[str, str] = {
    # Technology
    "Semiconductors": "SMH",
    "Semiconductor Equipment": "SMH",
    "Software": "IGV",
    "Software - Application": "IGV",
    "Software - Infrastructure": "IGV",
    "Software - System": "IGV",
    "Information Technology Services": "IGV",
    "Internet Content & Information": "FDN",
    # Consumer
    "Broadline Retailers": "XRT",
    "Specialty Retail": "XRT",
    "Internet Retail": "XRT",
    "Discount Stores": "XRT",
    "Department Stores": "XRT",
    "Apparel Retail": "XRT",
    "Home Improvement Retail": "XRT",
    "Automotive": "CARZ",
    "Automobiles": "CARZ",
    "Auto Manufacturers": "CARZ",
    "Auto Parts": "CARZ",
    "Auto & Truck Dealerships": "CARZ",
    "Hotels & Motels": "PEJ",
    "Restaurants": "PEJ",
    "Entertainment": "PEJ",
    "Leisure": "PEJ",
    "Recreational Vehicles": "PEJ",
    # Financials
    "Banks - Regional": "KRE",
    "Regional Banks": "KRE",
    "Banks - Diversified": "KBE",
    "Money Center Banks": "KBE",
    "Capital Markets": "IAI",
    "Investment Brokerage": "IAI",
    "Insurance": "KIE",
    "Property & Casualty Insurance": "KIE",
    "Life Insurance": "KIE",
    # Healthcare
    "Biotechnology": "XBI",
    "Drug Manufacturers": "PJP",
    "Drug Manufacturers - Major": "PJP",
    "Drug Manufacturers - Specialty & Generic": "PJP",
    "Medical Devices": "IHI",
    "Medical Instruments & Supplies": "IHI",
    "Healthcare Plans": "IHF",
    "Health Care Plans": "IHF",
    # Energy
    "Oil & Gas": "XLE",
    "Oil & Gas Refining & Marketing": "XLE",
    "Oil & Gas Pipelines": "XLE",
    "Oil & Gas E&P": "XOP",
    "Oil & Gas Drilling": "XOP",
    # Industrials
    "Aerospace & Defense": "ITA",
    "Aerospace/Defense": "ITA",
    "Industrial Machinery": "XLI",
    "Railroads": "IYT",
    "Airlines": "JETS",
    "Shipping": "SEA",
    # Materials
    "Gold": "GDX",
    "Steel": "SLX",
    "Chemicals": "IYM",
    "Chemicals - Major Diversified": "IYM",
    # Utilities / Real Estate
    "Utilities": "XLU",
    "Electric Utilities": "XLU",
    "Gas Utilities": "XLU",
    "REITs": "VNQ",
    "Real Estate": "VNQ",
    "REIT - Residential": "VNQ",
    "REIT - Retail": "VNQ",
    "REIT - Office": "VNQ",
}

SECTOR_ETF_MAP: dict[str, str] = {
    "Technology": "XLK",
    "Consumer Discretionary": "XLY",
    "Consumer Staples": "XLP",
    "Financials": "XLF",
    "Healthcare": "XLV",
    "Energy": "XLE",
    "Industrials": "XLI",
    "Materials": "XLB",
    "Utilities": "XLU",
    "Real Estate": "XLRE",
    "Communication Services": "XLC",
}


@dataclass(frozen=True)
class ProxyRule:
    """Maps a lower-cased industry name to an instrument when ``predicate`` holds."""

    name: str
    predicate: Callable[[str], bool]
    instrument: str


def _has_any(*words: str) -> Callable[[str], bool]:
    return lambda text: any(word in text for word in words)


def _has_all(*words: str) -> Callable[[str], bool]:
    return lambda text: all(word in text for word in words)


def _oil_gas(text: str) -> bool:
    return "oil" in text or "gas" in text


def _oil_gas_upstream(text: str) -> bool:
    return _oil_gas(text) and _has_any("exploration", "e&p", "drilling")(text)


# Evaluated top to bottom; first match wins
KEYWORD_RULES: list[ProxyRule] = [
    ProxyRule("semiconductors", _has_any("semiconductor"), "SMH"),
    ProxyRule("software", _has_any("software"), "IGV"),
    ProxyRule(
        "retail", _has_any("retail", "retailer", "discount store", "internet retail"), "XRT"
    ),
    ProxyRule("autos", _has_any("auto", "automobile", "auto manufacturer"), "CARZ"),
    ProxyRule("regional_banks", _has_all("bank", "regional"), "KRE"),
    ProxyRule("banks", _has_any("bank"), "KBE"),
    ProxyRule(
        "capital_markets",
        _has_any("capital market", "investment", "broker", "securities"),
        "IAI",
    ),
    ProxyRule("biotech", _has_any("biotech", "biotechnology"), "XBI"),
    ProxyRule("medical_devices", _has_any("medical device", "medical instrument"), "IHI"),
    ProxyRule("pharma", _has_any("drug", "pharmaceutical"), "PJP"),
    ProxyRule("oil_gas_upstream", _oil_gas_upstream, "XOP"),
    ProxyRule("oil_gas", _oil_gas, "XLE"),
    ProxyRule("aerospace_defense", _has_any("aerospace", "defense"), "ITA"),
]


def resolve_proxy(industry: str | None, sector: str | None = None) -> str | None:
    """Exact industry table, then keyword rules, then the sector table."""
    if industry:
        name = industry.strip()
        if name in INDUSTRY_ETF_MAP:
            return INDUSTRY_ETF_MAP[name]
        lowered = name.lower()
        for rule in KEYWORD_RULES:
            if rule.predicate(lowered):
                return rule.instrument
    if sector:
        return SECTOR_ETF_MAP.get(sector.strip())
    return None


def moving_average_position(series: pd.Series, period: int) -> tuple[float, float] | None:
    """``(latest, sma)`` over the trailing ``period`` samples, or None if too short."""
    series = series.dropna()
    if len(series) < period:
        return None
    return float(series.iloc[-1]), float(series.iloc[-period:].mean())


class IndustryTrendEngine:
    def __init__(
        self,
        prices: PriceHistoryClient,
        cache_service: CacheService,
        ma_period: int | None = None,
        max_constituents: int | None = None,
        basket_delay: float | None = None,
        timeout: float | None = None,
    ):
        self.prices = prices
        self.ma_period = ma_period or config.ma_period
        self.max_constituents = max_constituents or config.basket_max_constituents
        self.basket_delay = config.basket_delay if basket_delay is None else basket_delay
        self.timeout = timeout or config.trend_timeout
        self.cache = cache_service.namespace(
            TREND_CACHE_NAME,
            ttl_seconds=config.trend_cache_ttl,
            flush_every=5,
        )

    def _from_cache(self, industry: str) -> tuple[bool, IndustryTrendResult | None]:
        if industry not in self.cache:
            return False, None
        data = self.cache.get(industry)
        if data is None:
            return True, None
        try:
            return True, IndustryTrendResult.model_validate(data)
        except ValueError:
            return False, None

    async def compute_for_industry(
        self,
        industry: str,
        sector_fallback: str | None,
        records_in_industry: list[RankRecord],
        all_records: list[RankRecord],
        basket_label: str | None = None,
    ) -> IndustryTrendResult | None:
        """
        Trend for one industry, or None when it cannot be determined.

        ``basket_label`` is the SCTR-taxonomy label used to pick basket
        constituents when ``industry`` comes from another provider.
        """
        if not industry:
            return None

        hit, cached = self._from_cache(industry)
        if hit:
            logger.debug("trend_cache_hit", industry=industry, found=cached is not None)
            return cached

        try:
            result = await asyncio.wait_for(
                self._compute(
                    industry,
                    sector_fallback,
                    records_in_industry,
                    all_records,
                    basket_label,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("trend_timeout", industry=industry, timeout=self.timeout)
            result = None
        except Exception as e:
            logger.warning("trend_failed", industry=industry, error=str(e))
            result = None

        await self.cache.put(
            industry, result.model_dump(by_alias=True) if result is not None else None
        )
        return result

    async def _compute(
        self,
        industry: str,
        sector_fallback: str | None,
        records_in_industry: list[RankRecord],
        all_records: list[RankRecord],
        basket_label: str | None,
    ) -> IndustryTrendResult | None:
        proxy = resolve_proxy(industry, sector_fallback)
        if proxy:
            result = await self._from_proxy(proxy)
            if result is not None:
                logger.info(
                    "trend_from_proxy",
                    industry=industry,
                    proxy=proxy,
                    above=result.is_above_ma,
                )
                return result
            logger.debug("trend_proxy_unusable", industry=industry, proxy=proxy)

        label = basket_label or industry
        constituents = [r for r in all_records if r.industry == label]
        if not constituents:
            constituents = list(records_in_industry)
        result = await self._from_basket(constituents)
        if result is None:
            logger.info("trend_unavailable", industry=industry)
        else:
            logger.info(
                "trend_from_basket",
                industry=industry,
                sampled=result.sampled_constituents,
                total=result.total_constituents,
                above=result.is_above_ma,
            )
        return result

    def _build_result(
        self, series: pd.Series, source: str, **extra
    ) -> IndustryTrendResult | None:
        position = moving_average_position(series, self.ma_period)
        if position is None:
            return None
        current, sma = position
        if sma <= 0:
            return None
        return IndustryTrendResult(
            current_index_value=current,
            moving_average_50=sma,
            is_above_ma=current > sma,
            percent_above_ma=(current - sma) / sma * 100,
            source=source,
            **extra,
        )

    async def _from_proxy(self, symbol: str) -> IndustryTrendResult | None:
        closes = await self.prices.get_closes(symbol)
        if closes is None:
            return None
        return self._build_result(closes, "proxy-instrument", proxy_symbol=symbol)

    async def _from_basket(
        self, constituents: list[RankRecord]
    ) -> IndustryTrendResult | None:
        if not constituents:
            return None

        sample = constituents[: self.max_constituents]
        series: dict[str, pd.Series] = {}
        for i, record in enumerate(sample):
            if i > 0 and self.basket_delay > 0:
                await asyncio.sleep(self.basket_delay)
            closes = await self.prices.get_closes(record.symbol)
            if closes is not None and not closes.empty:
                series[record.symbol] = closes

        if not series:
            return None

        # Equal-weighted mean across constituents priced on each date
        basket = pd.concat(series, axis=1).sort_index().mean(axis=1, skipna=True)
        return self._build_result(
            basket,
            "synthesized-basket",
            sampled_constituents=len(series),
            total_constituents=len(constituents),
        )
