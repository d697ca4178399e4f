"""CSV export of enriched records."""

from pathlib import Path

import pandas as pd
import structlog

from sctr_enrich.models import EnrichedRecord

logger = structlog.get_logger(__name__)

# Export header -> EnrichedRecord attribute
EXPORT_COLUMNS: dict[str, str] = {
    "date": "date",
    "symbol": "symbol",
    "name": "name",
    "SCTR": "rank_score",
    "delta": "rank_delta",
    "close": "close",
    "marketCap": "market_cap_millions",
    "vol": "volume",
    "industry": "industry",
    "sector": "sector",
    "industryRS": "industry_relative_strength",
    "sectorRS": "sector_relative_strength",
    "industrySource": "industry_source",
    "sectorSource": "sector_source",
    "industryAboveMA50": "industry_above_ma50",
    "industryPercentAboveMA50": "industry_percent_above_ma50",
}


def records_to_frame(records: list[EnrichedRecord]) -> pd.DataFrame:
    rows = [
        {header: getattr(record, attr) for header, attr in EXPORT_COLUMNS.items()}
        for record in records
    ]
    frame = pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))
    # Keep integer volumes from turning into floats when some are missing
    frame["vol"] = frame["vol"].astype("Int64")
    return frame


def to_csv(records: list[EnrichedRecord]) -> str:
    """Serialize records to CSV text; missing values are empty cells."""
    return records_to_frame(records).to_csv(index=False, lineterminator="\n")


def export_csv(records: list[EnrichedRecord], path: str | Path) -> Path:
    path = Path(path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_csv(records), encoding="utf-8")
    logger.info("csv_exported", path=str(path), rows=len(records))
    return path
