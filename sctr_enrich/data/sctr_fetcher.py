"""
StockCharts SCTR dataset client.

Fetches the full SCTR ranking (every ranked US stock, ~thousands of rows) as
one JSON array and normalizes it into RankRecord objects.

Row format (all values strings):
    {"date": "17 Oct 2026", "symbol": "NVDA", "name": "Nvidia Corp",
     "SCTR": "98.4", "delta": "-0.3", "close": "181.2", "marketCap": "4412000",
     "vol": "210043000", "industry": "Semiconductors", "sector": "Technology"}

Only the first row usually carries ``date``; later rows inherit it.

Error Handling:
    - HTTP error / network failure / malformed JSON: raises RankDatasetError
    - Non-array payload: empty dataset
"""

import math
import re
from datetime import datetime
from typing import Any

import structlog

from sctr_enrich.config import config
from sctr_enrich.data.http import HttpClient
from sctr_enrich.exceptions import RankDatasetError, UpstreamError
from sctr_enrich.models import RankRecord

logger = structlog.get_logger(__name__)

SCTR_HEADERS = {
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "Referer": "https://stockcharts.com/freecharts/sctr.html",
}

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})\s+([A-Za-z]{3})[a-z]*\.?\s+(\d{4})$")


def to_number(value: Any) -> float | None:
    """Parse a numeric cell; blanks, garbage, NaN and infinities become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def to_int(value: Any) -> int | None:
    number = to_number(value)
    return int(number) if number is not None else None


def parse_date(value: Any) -> str | None:
    """Normalize ``YYYY-MM-DD`` or ``D Mon YYYY`` to ISO; anything else is None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if _ISO_DATE.match(text):
        return text
    match = _DAY_MONTH_YEAR.match(text)
    if match:
        day, month, year = match.groups()
        try:
            parsed = datetime.strptime(f"{day} {month.title()} {year}", "%d %b %Y")
        except ValueError:
            return None
        return parsed.date().isoformat()
    return None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def normalize_records(rows: list[Any]) -> list[RankRecord]:
    """
    Convert raw rows into RankRecords.

    Rows without a symbol are dropped. A row that has a date but no symbol
    only updates the carried date.
    """
    records: list[RankRecord] = []
    as_of_date = ""

    for row in rows:
        if not isinstance(row, dict):
            continue

        row_date = parse_date(row.get("date"))
        if row_date:
            as_of_date = row_date

        symbol = _text(row.get("symbol")).upper()
        if not symbol:
            continue

        records.append(
            RankRecord(
                date=as_of_date,
                symbol=symbol,
                name=_text(row.get("name")),
                rank_score=to_number(row.get("SCTR")),
                rank_delta=to_number(row.get("delta")),
                close=to_number(row.get("close")),
                market_cap_millions=to_number(row.get("marketCap")),
                volume=to_int(row.get("vol")),
                industry=_text(row.get("industry")),
                sector=_text(row.get("sector")),
            )
        )

    return records


class SctrFetcher:
    """Client for the full SCTR ranking."""

    def __init__(
        self,
        http: HttpClient,
        url: str | None = None,
        timeout: float | None = None,
    ):
        self.http = http
        self.url = url or config.sctr_url
        self.timeout = timeout or config.sctr_timeout

    async def fetch_all(self) -> list[RankRecord]:
        headers = {"User-Agent": config.user_agent, **SCTR_HEADERS}
        try:
            response = await self.http.get(
                self.url, headers=headers, timeout=self.timeout
            )
        except UpstreamError as e:
            logger.error("sctr_fetch_failed", url=self.url, error=str(e))
            raise RankDatasetError(f"StockCharts request failed: {e}") from e

        if not response.ok:
            logger.error("sctr_http_error", url=self.url, status=response.status)
            raise RankDatasetError(
                f"StockCharts HTTP {response.status}", status_code=response.status
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("sctr_malformed_json", url=self.url, error=str(e))
            raise RankDatasetError("StockCharts returned malformed JSON") from e

        if not isinstance(payload, list):
            logger.warning("sctr_unexpected_payload", type=type(payload).__name__)
            return []

        records = normalize_records(payload)
        logger.info("sctr_dataset_fetched", rows=len(payload), records=len(records))
        return records
