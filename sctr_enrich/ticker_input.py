"""
Ticker extraction from uploaded CSVs and free text.

Broker exports and screener downloads rarely agree on a column name, so the
ticker column is found by vocabulary first ("Ticker", "Symbol", ...) and by
content second (the column whose cells most often look like tickers).

Values are normalized before use:
    ' "NASDAQ:AAPL" ' -> 'AAPL'
    'brk.b'           -> 'BRK.B'
    'Symbol'          -> ''   (header text repeated in the data)
"""

import io
import re

import pandas as pd
import structlog

from sctr_enrich.models import TickerColumnResult

logger = structlog.get_logger(__name__)

PREFERRED_COLUMN_NAMES = ["ticker", "symbol", "tick", "sym", "symbols", "tickers"]
MAX_SCORED_ROWS = 200

_TICKER_RE = re.compile(r"^[A-Z0-9.\-]{1,10}$")
_REJECTED = {"TICKER", "SYMBOL"}
_TEXT_SEPARATORS = re.compile(r"[\s,;]+")


def normalize_ticker_candidate(value: object) -> str:
    """Return the normalized ticker, or '' when the value is not a ticker."""
    if value is None:
        return ""
    text = str(value).strip().strip('"')
    if '"' in text:
        text = text.split('"', 1)[0]
    text = text.strip()

    colon = text.rfind(":")
    if 0 <= colon < len(text) - 1:
        text = text[colon + 1 :]

    text = text.strip().upper()
    if text in _REJECTED or not _TICKER_RE.match(text):
        return ""
    return text


def detect_ticker_column(rows: list[list[object]], columns: list[str]) -> int:
    """Index of the column most likely holding tickers (0 when undecidable)."""
    if not columns:
        return 0

    lowered = [str(c).strip().lower() for c in columns]
    for preferred in PREFERRED_COLUMN_NAMES:
        for index, name in enumerate(lowered):
            if name == preferred or preferred in name:
                return index

    best_index, best_score = 0, -1
    sample = rows[:MAX_SCORED_ROWS]
    for index in range(len(columns)):
        score = sum(
            1
            for row in sample
            if index < len(row) and normalize_ticker_candidate(row[index])
        )
        if score > best_score:
            best_index, best_score = index, score
    return best_index


def detect_delimiter(text: str) -> str:
    """Tab when the first non-empty line has more tabs than commas, else comma."""
    for line in text.splitlines():
        if line.strip():
            return "\t" if line.count("\t") > line.count(",") else ","
    return ","


def _unique(values) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        ticker = normalize_ticker_candidate(value)
        if ticker:
            seen.setdefault(ticker, None)
    return list(seen)


def _read(text: str, delimiter: str, header: bool) -> pd.DataFrame:
    return pd.read_csv(
        io.StringIO(text),
        sep=delimiter,
        header=0 if header else None,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine="python",
        on_bad_lines="skip",
    )


def _is_blank_header(name: object) -> bool:
    text = str(name).strip()
    return not text or text.startswith("Unnamed:")


def parse_csv_for_tickers(text: str) -> TickerColumnResult:
    """
    Parse CSV text and pull the tickers out of its most likely column.

    Never raises on malformed input; the worst case is an empty result with
    ``ticker_column_index`` 0.
    """
    if not text or not text.strip():
        return TickerColumnResult()

    delimiter = detect_delimiter(text)
    try:
        frame = _read(text, delimiter, header=True)
        if frame.empty or all(_is_blank_header(c) for c in frame.columns):
            frame = _read(text, delimiter, header=False)
            frame.columns = [f"col_{i}" for i in range(len(frame.columns))]
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        logger.warning("csv_parse_failed", error=str(e))
        return TickerColumnResult()

    columns = [str(c).strip() for c in frame.columns]
    rows = frame.values.tolist()
    index = detect_ticker_column(rows, columns)
    tickers = _unique(frame.iloc[:, index]) if columns else []

    logger.info(
        "csv_tickers_extracted",
        column=columns[index] if columns else None,
        rows=len(rows),
        tickers=len(tickers),
    )
    return TickerColumnResult(
        columns=columns,
        ticker_column_index=index,
        ticker_column_name=columns[index] if columns else None,
        tickers=tickers,
    )


def extract_tickers_from_text(text: str) -> list[str]:
    """Split free text on whitespace, commas and semicolons; normalize and dedupe."""
    if not text:
        return []
    return _unique(token for token in _TEXT_SEPARATORS.split(text) if token)
