#!/usr/bin/env python3
"""
Command-line entry point: look up SCTR ranks for a ticker list and print an
enriched, sortable table.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import structlog
from rich import box
from rich.console import Console
from rich.table import Table

# Import config FIRST so logging is configured before anything logs
from sctr_enrich.config import config
from sctr_enrich.data.cache import CacheService
from sctr_enrich.data.http import AiohttpClient
from sctr_enrich.data.providers import INDUSTRY_SOURCES
from sctr_enrich.exceptions import RankDatasetError
from sctr_enrich.export import export_csv
from sctr_enrich.models import EnrichedRecord, EnrichmentResult
from sctr_enrich.orchestrator import EnrichmentOrchestrator
from sctr_enrich.ticker_input import extract_tickers_from_text, parse_csv_for_tickers

logger = structlog.get_logger(__name__)
console = Console()
err_console = Console(stderr=True)

# --sort-by choice -> EnrichedRecord attribute
SORT_COLUMNS = {
    "sctr": "rank_score",
    "symbol": "symbol",
    "name": "name",
    "delta": "rank_delta",
    "close": "close",
    "marketcap": "market_cap_millions",
    "vol": "volume",
    "industry": "industry",
    "sector": "sector",
    "industry-rs": "industry_relative_strength",
    "sector-rs": "sector_relative_strength",
    "ma50": "industry_percent_above_ma50",
}


def suppress_all_logging():
    """Suppress all logging output for quiet mode."""
    logging.getLogger().setLevel(logging.CRITICAL)
    for name in logging.root.manager.loggerDict:
        logging.getLogger(name).setLevel(logging.CRITICAL)

    structlog.configure(
        processors=[],
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_arg_parser() -> argparse.ArgumentParser:
    source_help = "; ".join(f"{k}: {v}" for k, v in INDUSTRY_SOURCES.items())
    parser = argparse.ArgumentParser(
        description="Enrich StockCharts SCTR ranks with industry context",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Tickers from free text
  sctr-enrich --tickers "AAPL, NVDA MSFT"

  # Tickers from a broker export, Yahoo classifications, export results
  sctr-enrich --csv positions.csv --source yahoo --output sctr.csv

  # Sort by industry relative strength
  sctr-enrich --tickers "AAPL NVDA" --sort-by industry-rs
        """,
    )

    inputs = parser.add_mutually_exclusive_group()
    inputs.add_argument(
        "--csv",
        type=Path,
        help="CSV/TSV file; the ticker column is detected automatically",
    )
    inputs.add_argument(
        "--tickers",
        type=str,
        help="Tickers separated by commas, spaces, semicolons or newlines",
    )

    parser.add_argument(
        "--source",
        choices=sorted(INDUSTRY_SOURCES),
        default=None,
        help=f"Industry/sector source (default: {config.default_industry_source}). "
        f"{source_help}",
    )
    parser.add_argument(
        "--sort-by",
        choices=sorted(SORT_COLUMNS),
        default="sctr",
        help="Column to sort the table by (default: sctr)",
    )
    parser.add_argument(
        "--ascending",
        action="store_true",
        help="Sort ascending instead of descending",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the enriched records to this CSV file",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON instead of a table",
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Delete every cached classification, price history and trend",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress logging output",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def collect_tickers(args: argparse.Namespace) -> list[str]:
    if args.csv:
        text = args.csv.read_text(encoding="utf-8-sig", errors="replace")
        parsed = parse_csv_for_tickers(text)
        if parsed.ticker_column_name:
            logger.info(
                "ticker_column_detected",
                column=parsed.ticker_column_name,
                tickers=len(parsed.tickers),
            )
        return parsed.tickers
    if args.tickers:
        return extract_tickers_from_text(args.tickers)
    return []


def sort_for_display(
    records: list[EnrichedRecord], column: str, ascending: bool
) -> list[EnrichedRecord]:
    """Sort by one column; missing values always go last."""
    attr = SORT_COLUMNS[column]
    present = [r for r in records if getattr(r, attr) not in (None, "")]
    absent = [r for r in records if getattr(r, attr) in (None, "")]

    def _key(record: EnrichedRecord):
        value = getattr(record, attr)
        return value.casefold() if isinstance(value, str) else value

    present.sort(key=_key, reverse=not ascending)
    return present + absent


def _fmt(value, digits: int = 1, suffix: str = "") -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.{digits}f}{suffix}"
    return f"{value}{suffix}"


def _fmt_signed(value: float | None) -> str:
    if value is None:
        return "[dim]-[/dim]"
    color = "green" if value > 0 else "red" if value < 0 else "white"
    return f"[{color}]{value:+.1f}%[/{color}]"


def _fmt_trend(record: EnrichedRecord) -> str:
    if record.industry_above_ma50 is None:
        return "[dim]?[/dim]"
    arrow = "[green]▲[/green]" if record.industry_above_ma50 else "[red]▼[/red]"
    return f"{arrow} {_fmt_signed(record.industry_percent_above_ma50)}"


def build_results_table(records: list[EnrichedRecord]) -> Table:
    table = Table(box=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("Name", max_width=28, overflow="ellipsis")
    table.add_column("SCTR", justify="right")
    table.add_column("Δ", justify="right")
    table.add_column("Close", justify="right")
    table.add_column("Industry", max_width=30, overflow="ellipsis")
    table.add_column("Ind RS", justify="right")
    table.add_column("Sector", max_width=22, overflow="ellipsis")
    table.add_column("Sec RS", justify="right")
    table.add_column("Ind MA50", justify="right")
    table.add_column("Src", style="dim")

    for r in records:
        table.add_row(
            r.symbol,
            r.name,
            _fmt(r.rank_score),
            _fmt(r.rank_delta),
            _fmt(r.close, 2),
            r.industry or "-",
            _fmt_signed(r.industry_relative_strength),
            r.sector or "-",
            _fmt_signed(r.sector_relative_strength),
            _fmt_trend(r),
            r.industry_source,
        )
    return table


def display_results(result: EnrichmentResult, args: argparse.Namespace) -> None:
    records = sort_for_display(result.records, args.sort_by, args.ascending)
    as_of = records[0].date if records else ""
    console.print(
        f"\n[bold green]SCTR snapshot[/bold green] "
        f"[dim]{as_of}[/dim] ({len(records)} matched)\n"
    )
    console.print(build_results_table(records))
    if result.missing_tickers:
        console.print(
            f"[yellow]Not in SCTR dataset:[/yellow] {', '.join(result.missing_tickers)}\n"
        )


async def run(args: argparse.Namespace) -> int:
    cache_service = CacheService(config.cache_dir)

    if args.clear_cache:
        cleared = cache_service.clear_all()
        if not args.json:
            console.print(f"[cyan]Cleared {len(cleared)} cache file(s).[/cyan]")
        if not args.csv and not args.tickers:
            return 0

    tickers = collect_tickers(args)
    if not tickers:
        err_console.print("[yellow]No tickers found in input.[/yellow]")
        return 1

    async with AiohttpClient() as http:
        orchestrator = EnrichmentOrchestrator(http, cache_service)
        try:
            result = await orchestrator.enrich(tickers, args.source)
        except RankDatasetError as e:
            err_console.print(f"[bold red]Could not load SCTR data:[/bold red] {e}")
            return 1
        finally:
            await cache_service.dispose()

    if args.output:
        path = export_csv(
            sort_for_display(result.records, args.sort_by, args.ascending), args.output
        )
        if not args.json:
            console.print(f"[dim]Saved {len(result.records)} rows to {path}[/dim]")

    if args.json:
        print(json.dumps(result.model_dump(by_alias=True), indent=2))
    else:
        display_results(result, args)
    return 0


async def main() -> int:
    """Main entry point for the application."""
    args = build_arg_parser().parse_args()

    if args.quiet:
        suppress_all_logging()
    elif args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        for name in logging.root.manager.loggerDict:
            logging.getLogger(name).setLevel(logging.DEBUG)

    try:
        return await run(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user.[/yellow]\n")
        return 1


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
