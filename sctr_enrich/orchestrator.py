"""
Enrichment orchestrator.

Stages run strictly in order:

    1. fetch the full SCTR dataset                (failure -> RankDatasetError)
    2. filter to the requested tickers            (absentees -> missing_tickers)
    3. industry/sector override from a provider   (failure -> no override)
    4. peer statistics over the full dataset
    5. MA50 trend per distinct displayed industry (failure -> None per industry)

Every enrichment dimension degrades on its own; only stage 1 can fail the
whole request.
"""

import structlog

from sctr_enrich.config import config
from sctr_enrich.data.cache import CacheService
from sctr_enrich.data.http import HttpClient
from sctr_enrich.data.price_history import PriceHistoryClient
from sctr_enrich.data.providers import registry
from sctr_enrich.data.providers.base import IndustrySectorProvider
from sctr_enrich.data.sctr_fetcher import SctrFetcher
from sctr_enrich.industry_trend import IndustryTrendEngine
from sctr_enrich.models import (
    EnrichedRecord,
    EnrichmentResult,
    EnrichmentStats,
    IndustryClassification,
    IndustryTrendResult,
    RankRecord,
)
from sctr_enrich.peer_stats import LabelMap, compute_peer_stats, relative_strength
from sctr_enrich.utils import settle_all

logger = structlog.get_logger(__name__)


def normalize_request(tickers: list[str]) -> list[str]:
    """Trim, uppercase and dedupe while keeping request order."""
    seen: dict[str, None] = {}
    for ticker in tickers:
        value = str(ticker or "").strip().upper()
        if value:
            seen.setdefault(value, None)
    return list(seen)


def sort_records(records: list[EnrichedRecord]) -> list[EnrichedRecord]:
    """Rank score descending with missing scores last; ties by symbol."""
    return sorted(
        records,
        key=lambda r: (
            r.rank_score is None,
            -(r.rank_score or 0.0),
            r.symbol.casefold(),
        ),
    )


class EnrichmentOrchestrator:
    """
    Runs one enrichment request end to end.

    Collaborators are injectable for tests; by default everything is built
    from the shared HttpClient and CacheService.
    """

    def __init__(
        self,
        http: HttpClient,
        cache_service: CacheService,
        sctr_fetcher: SctrFetcher | None = None,
        trend_engine: IndustryTrendEngine | None = None,
        providers: dict[str, IndustrySectorProvider] | None = None,
        trend_concurrency: int | None = None,
    ):
        self.http = http
        self.cache_service = cache_service
        self.sctr_fetcher = sctr_fetcher or SctrFetcher(http)
        self.trend_engine = trend_engine or IndustryTrendEngine(
            PriceHistoryClient(http, cache_service), cache_service
        )
        self._providers = dict(providers or {})
        self.trend_concurrency = trend_concurrency or config.trend_max_concurrency

    def provider(self, source: str | None) -> IndustrySectorProvider:
        key = (source or config.default_industry_source).strip().lower()
        if key not in self._providers:
            self._providers[key] = registry.create(key, self.http, self.cache_service)
        return self._providers[key]

    async def enrich(
        self, tickers: list[str], industry_source: str | None = None
    ) -> EnrichmentResult:
        requested = normalize_request(tickers)
        if not requested:
            return EnrichmentResult()

        all_records = await self.sctr_fetcher.fetch_all()

        by_symbol: dict[str, RankRecord] = {}
        for record in all_records:
            by_symbol.setdefault(record.symbol, record)
        selected = [by_symbol[t] for t in requested if t in by_symbol]
        missing = [t for t in requested if t not in by_symbol]
        logger.info(
            "enrich_started",
            requested=len(requested),
            matched=len(selected),
            missing=len(missing),
            source=industry_source or config.default_industry_source,
        )

        provider = self.provider(industry_source)
        overrides = await self._fetch_overrides(provider, [r.symbol for r in selected])

        peer_stats = compute_peer_stats(all_records)
        industry_labels, sector_labels = LabelMap(), LabelMap()
        enriched = [
            self._enrich_record(
                record,
                overrides.get(record.symbol),
                peer_stats,
                industry_labels,
                sector_labels,
            )
            for record in selected
        ]

        trends = await self._compute_trends(enriched, all_records, industry_labels)
        enriched = [self._attach_trend(r, trends) for r in enriched]

        await self.cache_service.flush()

        result = EnrichmentResult(
            records=sort_records(enriched),
            stats=EnrichmentStats(
                industries=peer_stats.industries,
                sectors=peer_stats.sectors,
                industry_trends=trends,
            ),
            missing_tickers=missing,
        )
        logger.info(
            "enrich_complete",
            records=len(result.records),
            overrides=len(overrides),
            trends=sum(1 for t in trends.values() if t is not None),
        )
        return result

    async def _fetch_overrides(
        self, provider: IndustrySectorProvider, symbols: list[str]
    ) -> dict[str, IndustryClassification]:
        if not symbols:
            return {}
        try:
            return await provider.fetch_batch(symbols)
        except Exception as e:
            logger.warning(
                "industry_override_failed", source=provider.key, error=str(e)
            )
            return {}

    @staticmethod
    def _enrich_record(
        record: RankRecord,
        override: IndustryClassification | None,
        peer_stats,
        industry_labels: LabelMap,
        sector_labels: LabelMap,
    ) -> EnrichedRecord:
        industry, sector = record.industry, record.sector
        industry_source = sector_source = "StockCharts"

        if override is not None:
            if override.industry:
                industry_labels.observe(override.industry, record.industry)
                industry, industry_source = override.industry, override.source
            if override.sector:
                sector_labels.observe(override.sector, record.sector)
                sector, sector_source = override.sector, override.source

        industry_rs = relative_strength(
            record.rank_score, industry_labels.resolve(industry), peer_stats.industries
        )
        sector_rs = relative_strength(
            record.rank_score, sector_labels.resolve(sector), peer_stats.sectors
        )

        return EnrichedRecord(
            **record.model_dump(exclude={"industry", "sector"}),
            industry=industry,
            sector=sector,
            industry_source=industry_source,
            sector_source=sector_source,
            industry_relative_strength=industry_rs,
            sector_relative_strength=sector_rs,
        )

    async def _compute_trends(
        self,
        records: list[EnrichedRecord],
        all_records: list[RankRecord],
        industry_labels: LabelMap,
    ) -> dict[str, IndustryTrendResult | None]:
        groups: dict[str, list[EnrichedRecord]] = {}
        for record in records:
            if record.industry:
                groups.setdefault(record.industry, []).append(record)
        if not groups:
            return {}

        async def _one(industry: str) -> tuple[str, IndustryTrendResult | None]:
            members = groups[industry]
            result = await self.trend_engine.compute_for_industry(
                industry,
                members[0].sector or None,
                members,
                all_records,
                basket_label=industry_labels.resolve(industry),
            )
            return industry, result

        settled = await settle_all(
            (_one(industry) for industry in groups),
            concurrency=self.trend_concurrency,
            label="industry_trend",
        )
        trends: dict[str, IndustryTrendResult | None] = {name: None for name in groups}
        trends.update(dict(settled))
        return trends

    @staticmethod
    def _attach_trend(
        record: EnrichedRecord, trends: dict[str, IndustryTrendResult | None]
    ) -> EnrichedRecord:
        trend = trends.get(record.industry)
        if trend is None:
            return record
        return record.model_copy(
            update={
                "industry_above_ma50": trend.is_above_ma,
                "industry_percent_above_ma50": trend.percent_above_ma,
            }
        )
