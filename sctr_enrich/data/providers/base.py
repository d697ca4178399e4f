"""Base class for industry/sector providers.

A provider maps tickers to IndustryClassification objects. ``fetch_batch``
returns successes only; a ticker absent from the result simply keeps the
labels from the SCTR dataset.
"""

import asyncio
from abc import ABC, abstractmethod

import structlog

from sctr_enrich.data.cache import SourceCache
from sctr_enrich.models import IndustryClassification

logger = structlog.get_logger(__name__)


class IndustrySectorProvider(ABC):
    """Interchangeable industry/sector source."""

    key: str = ""
    source_name: str = ""
    description: str = ""

    cache: SourceCache | None = None

    @abstractmethod
    async def fetch_one(self, ticker: str) -> IndustryClassification | None:
        """Classification for one ticker, or None when unavailable."""

    @abstractmethod
    async def fetch_batch(
        self, tickers: list[str]
    ) -> dict[str, IndustryClassification]:
        """Classifications for many tickers, honoring the provider's rate limits."""

    def _cached(self, ticker: str) -> tuple[bool, IndustryClassification | None]:
        """Return ``(hit, value)``; a hit may carry a cached negative (None)."""
        if self.cache is None or ticker not in self.cache:
            return False, None
        data = self.cache.get(ticker)
        if data is None:
            return True, None
        try:
            return True, IndustryClassification.model_validate(data)
        except ValueError:
            logger.debug("provider_cache_entry_invalid", source=self.key, ticker=ticker)
            return False, None

    async def _remember(self, ticker: str, value: IndustryClassification | None) -> None:
        if self.cache is None:
            return
        await self.cache.put(ticker, value.model_dump() if value is not None else None)

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
