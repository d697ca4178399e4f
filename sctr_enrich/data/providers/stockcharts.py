"""StockCharts pass-through provider: keeps the labels shipped in the SCTR dataset."""

from sctr_enrich.data.providers.base import IndustrySectorProvider
from sctr_enrich.models import IndustryClassification


class StockChartsProvider(IndustrySectorProvider):
    key = "stockcharts"
    source_name = "StockCharts"
    description = "StockCharts SCTR data"

    async def fetch_one(self, ticker: str) -> IndustryClassification | None:
        return None

    async def fetch_batch(
        self, tickers: list[str]
    ) -> dict[str, IndustryClassification]:
        return {}
