"""
Configuration module using Pydantic Settings.

Provides validated, type-safe configuration from environment variables
(and an optional .env file). Every tunable of the enrichment pipeline lives
here: upstream URLs, request timeouts, provider rate limits, cache TTLs and
the industry-trend budget.

Usage:
    from sctr_enrich.config import config

    config.cache_dir            # Path to the JSON cache directory
    config.finviz_delay         # Seconds between Finviz quote-page requests
"""

import logging
import os
import sys
from pathlib import Path

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Logging Setup (must happen before Settings to capture validation errors) ---
logging.basicConfig(
    format="%(asctime)s [%(levelname)-8s] %(message)s",
    stream=sys.stderr,
    level=logging.INFO,
    force=True,
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.KeyValueRenderer(
            key_order=["timestamp", "level", "event"]
        ),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

DAY_SECONDS = 24 * 60 * 60


class Settings(BaseSettings):
    """
    Configuration for the SCTR enrichment pipeline.

    Defaults mirror the conservative limits the upstream sites tolerate:
    Finviz is fetched serially with a multi-second gap, Yahoo in small
    batches, and industry classifications are cached for ~6 months while
    price data and MA50 results expire daily.
    """

    # --- Directory Paths ---
    cache_dir: Path = Field(
        default=Path("./.cache"),
        validation_alias="CACHE_DIR",
        description="Directory for the per-provider JSON cache files",
    )

    # --- Upstream Endpoints ---
    sctr_url: str = Field(
        default="https://stockcharts.com/j-sum/sum?cmd=sctr&view=L&timeframe=I",
        validation_alias="SCTR_URL",
        description="StockCharts SCTR JSON feed (full rank dataset)",
    )
    finviz_quote_url: str = Field(
        default="https://finviz.com/quote.ashx",
        validation_alias="FINVIZ_QUOTE_URL",
        description="Finviz quote page (scraped for sector/industry)",
    )
    yahoo_profile_url: str = Field(
        default="https://query1.finance.yahoo.com/v10/finance/quoteSummary",
        validation_alias="YAHOO_PROFILE_URL",
        description="Yahoo quoteSummary endpoint (assetProfile module)",
    )
    yahoo_chart_url: str = Field(
        default="https://query1.finance.yahoo.com/v8/finance/chart",
        validation_alias="YAHOO_CHART_URL",
        description="Yahoo chart endpoint for daily closes",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        validation_alias="USER_AGENT",
        description="User-Agent header sent to every upstream",
    )

    # --- Timeouts (seconds) ---
    sctr_timeout: float = Field(
        default=20.0,
        gt=0,
        validation_alias="SCTR_TIMEOUT",
        description="Timeout for the full rank dataset request",
    )
    http_timeout: float = Field(
        default=10.0,
        gt=0,
        validation_alias="HTTP_TIMEOUT",
        description="Timeout for provider and price-history requests",
    )
    trend_timeout: float = Field(
        default=45.0,
        gt=0,
        validation_alias="TREND_TIMEOUT",
        description="Wall-clock budget for one industry trend computation",
    )

    # --- Industry Source ---
    default_industry_source: str = Field(
        default="finviz",
        validation_alias="DEFAULT_INDUSTRY_SOURCE",
        description="Industry/sector provider (finviz, yahoo, stockcharts)",
    )

    # --- Rate Limiting ---
    # Finviz answers bursts with 429 quickly: one request at a time, 2s apart
    finviz_delay: float = Field(
        default=2.0,
        ge=0,
        validation_alias="FINVIZ_DELAY",
        description="Seconds between Finviz requests",
    )
    yahoo_max_concurrency: int = Field(
        default=5,
        ge=1,
        validation_alias="YAHOO_MAX_CONCURRENCY",
        description="Yahoo profile requests in flight per batch",
    )
    yahoo_batch_delay: float = Field(
        default=0.1,
        ge=0,
        validation_alias="YAHOO_BATCH_DELAY",
        description="Seconds between Yahoo batches",
    )

    # --- Industry Trend (MA50) ---
    price_lookback_days: int = Field(
        default=90,
        ge=1,
        validation_alias="PRICE_LOOKBACK_DAYS",
        description="Calendar days of daily closes to request",
    )
    ma_period: int = Field(
        default=50,
        ge=2,
        validation_alias="MA_PERIOD",
        description="Moving-average window in trading days",
    )
    basket_max_constituents: int = Field(
        default=20,
        ge=1,
        validation_alias="BASKET_MAX_CONSTITUENTS",
        description="Constituents sampled when synthesizing an industry basket",
    )
    basket_delay: float = Field(
        default=0.1,
        ge=0,
        validation_alias="BASKET_DELAY",
        description="Seconds between constituent price requests",
    )
    trend_max_concurrency: int = Field(
        default=3,
        ge=1,
        validation_alias="TREND_MAX_CONCURRENCY",
        description="Industries computed concurrently",
    )

    # --- Cache TTLs (seconds) ---
    industry_cache_ttl: float = Field(
        default=180 * DAY_SECONDS,
        gt=0,
        validation_alias="INDUSTRY_CACHE_TTL",
        description="TTL for industry/sector classifications",
    )
    finviz_negative_ttl: float = Field(
        default=7 * DAY_SECONDS,
        gt=0,
        validation_alias="FINVIZ_NEGATIVE_TTL",
        description="TTL for Finviz lookups that found nothing",
    )
    yahoo_negative_ttl: float = Field(
        default=DAY_SECONDS,
        gt=0,
        validation_alias="YAHOO_NEGATIVE_TTL",
        description="TTL for Yahoo lookups that found nothing",
    )
    price_cache_ttl: float = Field(
        default=DAY_SECONDS,
        gt=0,
        validation_alias="PRICE_CACHE_TTL",
        description="TTL for daily close histories",
    )
    trend_cache_ttl: float = Field(
        default=DAY_SECONDS,
        gt=0,
        validation_alias="TREND_CACHE_TTL",
        description="TTL for industry MA50 results (including failures)",
    )

    # --- Logging ---
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # --- Environment ---
    environment: str = Field(
        default="dev",
        validation_alias="ENVIRONMENT",
        description="Environment (dev, prod, test)",
    )

    # --- Pydantic Settings Configuration ---
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        # CLI flags override a few settings at runtime
        frozen=False,
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def setup_environment(self) -> "Settings":
        """Expand user paths and apply the configured log level."""
        self.cache_dir = Path(os.path.expanduser(str(self.cache_dir)))
        self.default_industry_source = self.default_industry_source.strip().lower()

        log_level_value = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.getLogger().setLevel(log_level_value)
        for name in logging.root.manager.loggerDict:
            logging.getLogger(name).setLevel(log_level_value)

        return self

    def request_headers(self, accept: str = "*/*") -> dict[str, str]:
        """Default browser-like headers for upstream requests."""
        return {
            "User-Agent": self.user_agent,
            "Accept": accept,
            "Accept-Language": "en-US,en;q=0.9",
        }


# --- Module-level Singleton Instance ---
# Instantiated at import time, triggers validation
config = Settings()
