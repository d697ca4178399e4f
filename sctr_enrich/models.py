"""
Data models for the enrichment pipeline.

All models serialize with camelCase aliases so ``model_dump(by_alias=True)``
yields the plain-data shape consumed by the UI and the CSV export
(``rankScore``, ``marketCapMillions``, ``industryAboveMA50`` ...).
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ProviderTag = Literal["Finviz", "Yahoo", "StockCharts"]
TrendSource = Literal["proxy-instrument", "synthesized-basket"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RankRecord(_CamelModel):
    """One row of the SCTR dataset. Never mutated; enrichment builds new objects."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    date: str = ""
    symbol: str
    name: str = ""
    rank_score: float | None = None
    rank_delta: float | None = None
    close: float | None = None
    market_cap_millions: float | None = None
    volume: int | None = None
    industry: str = ""
    sector: str = ""


class IndustryClassification(_CamelModel):
    """Industry/sector labels reported by one provider for one ticker."""

    industry: str | None = None
    sector: str | None = None
    source: ProviderTag


class PeerGroupStats(_CamelModel):
    average: float
    count: int
    min: float
    max: float
    median: float


class IndustryTrendResult(_CamelModel):
    """Position of an industry's index relative to its 50-day moving average."""

    current_index_value: float
    moving_average_50: float = Field(alias="movingAverage50")
    is_above_ma: bool = Field(alias="isAboveMA")
    percent_above_ma: float = Field(alias="percentAboveMA")
    source: TrendSource
    proxy_symbol: str | None = None
    sampled_constituents: int | None = None
    total_constituents: int | None = None


class EnrichedRecord(RankRecord):
    industry_relative_strength: float | None = None
    sector_relative_strength: float | None = None
    industry_source: ProviderTag = "StockCharts"
    sector_source: ProviderTag = "StockCharts"
    industry_above_ma50: bool | None = Field(default=None, alias="industryAboveMA50")
    industry_percent_above_ma50: float | None = Field(
        default=None, alias="industryPercentAboveMA50"
    )


class EnrichmentStats(_CamelModel):
    industries: dict[str, PeerGroupStats] = Field(default_factory=dict)
    sectors: dict[str, PeerGroupStats] = Field(default_factory=dict)
    industry_trends: dict[str, IndustryTrendResult | None] = Field(
        default_factory=dict
    )


class EnrichmentResult(_CamelModel):
    records: list[EnrichedRecord] = Field(default_factory=list)
    stats: EnrichmentStats = Field(default_factory=EnrichmentStats)
    missing_tickers: list[str] = Field(default_factory=list)


class TickerColumnResult(_CamelModel):
    """Outcome of scanning an uploaded CSV for its ticker column."""

    columns: list[str] = Field(default_factory=list)
    ticker_column_index: int = 0
    ticker_column_name: str | None = None
    tickers: list[str] = Field(default_factory=list)
