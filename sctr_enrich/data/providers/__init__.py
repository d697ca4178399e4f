"""Industry/sector provider module.

Public API:
    ProviderRegistry: maps a source key ("finviz", "yahoo", "stockcharts")
        to a provider factory
    registry: module-level singleton with the built-in providers registered
    INDUSTRY_SOURCES: source key -> human-readable description

Usage:
    from sctr_enrich.data.providers import registry
    provider = registry.create("finviz", http, cache_service)
    classifications = await provider.fetch_batch(["AAPL", "NVDA"])
"""

from collections.abc import Callable

import structlog

from sctr_enrich.data.cache import CacheService
from sctr_enrich.data.http import HttpClient
from sctr_enrich.data.providers.base import IndustrySectorProvider
from sctr_enrich.data.providers.finviz import FinvizProvider
from sctr_enrich.data.providers.stockcharts import StockChartsProvider
from sctr_enrich.data.providers.yahoo import YahooProvider

logger = structlog.get_logger(__name__)

ProviderFactory = Callable[[HttpClient, CacheService], IndustrySectorProvider]

DEFAULT_SOURCE = "finviz"


class ProviderRegistry:
    """Maps source keys to provider factories. Module-level singleton."""

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}
        self._descriptions: dict[str, str] = {}

    def register(
        self, key: str, factory: ProviderFactory, description: str = ""
    ) -> None:
        self._factories[key] = factory
        self._descriptions[key] = description
        logger.debug("industry_provider_registered", source=key)

    def create(
        self, key: str | None, http: HttpClient, cache_service: CacheService
    ) -> IndustrySectorProvider:
        """Build the provider for ``key``; unknown keys fall back to the default."""
        normalized = (key or DEFAULT_SOURCE).strip().lower()
        if normalized not in self._factories:
            logger.warning(
                "unknown_industry_source", requested=key, fallback=DEFAULT_SOURCE
            )
            normalized = DEFAULT_SOURCE
        return self._factories[normalized](http, cache_service)

    @property
    def sources(self) -> dict[str, str]:
        return dict(self._descriptions)


# Module-level singleton
registry = ProviderRegistry()
registry.register("finviz", FinvizProvider, FinvizProvider.description)
registry.register(
    "stockcharts",
    lambda http, cache_service: StockChartsProvider(),
    StockChartsProvider.description,
)
registry.register("yahoo", YahooProvider, YahooProvider.description)

INDUSTRY_SOURCES = registry.sources

__all__ = [
    "DEFAULT_SOURCE",
    "INDUSTRY_SOURCES",
    "IndustrySectorProvider",
    "ProviderRegistry",
    "registry",
]
