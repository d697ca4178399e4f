"""Tests for the SCTR dataset client and row normalization."""

import pytest

from sctr_enrich.data.http import HttpResponse
from sctr_enrich.data.sctr_fetcher import (
    SctrFetcher,
    normalize_records,
    parse_date,
    to_int,
    to_number,
)
from sctr_enrich.exceptions import RankDatasetError, UpstreamError
from tests.conftest import FakeHttpClient, json_response


class TestParsing:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("98.4", 98.4),
            (" 12 ", 12.0),
            ("1,234.5", 1234.5),
            (7, 7.0),
            ("", None),
            ("n/a", None),
            ("NaN", None),
            ("inf", None),
            (None, None),
        ],
    )
    def test_to_number(self, raw, expected):
        assert to_number(raw) == expected

    def test_to_int_truncates(self):
        assert to_int("1234.9") == 1234
        assert to_int("x") is None

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2026-10-16", "2026-10-16"),
            ("16 Oct 2026", "2026-10-16"),
            ("3 Jan 2025", "2025-01-03"),
            ("Oct 16", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_date(self, raw, expected):
        assert parse_date(raw) == expected


class TestNormalizeRecords:
    def test_date_carries_forward(self):
        rows = [
            {"date": "16 Oct 2026", "symbol": "nvda", "SCTR": "98.4"},
            {"symbol": "AAPL", "SCTR": "70"},
        ]
        records = normalize_records(rows)
        assert [r.date for r in records] == ["2026-10-16", "2026-10-16"]
        assert records[0].symbol == "NVDA"

    def test_date_only_row_sets_date_without_record(self):
        rows = [{"date": "2026-10-15"}, {"symbol": "AAPL"}]
        records = normalize_records(rows)
        assert len(records) == 1
        assert records[0].date == "2026-10-15"

    def test_rows_without_symbol_dropped(self):
        rows = [{"symbol": ""}, {"name": "No symbol"}, "garbage", {"symbol": "MSFT"}]
        assert [r.symbol for r in normalize_records(rows)] == ["MSFT"]

    def test_malformed_numerics_become_none(self):
        row = {
            "symbol": "AAPL",
            "SCTR": "abc",
            "delta": "",
            "close": "181.2",
            "marketCap": "-",
            "vol": "1200.7",
            "industry": " Consumer Electronics ",
            "sector": None,
        }
        record = normalize_records([row])[0]
        assert record.rank_score is None
        assert record.rank_delta is None
        assert record.close == 181.2
        assert record.market_cap_millions is None
        assert record.volume == 1200
        assert record.industry == "Consumer Electronics"
        assert record.sector == ""


class TestSctrFetcher:
    @pytest.mark.asyncio
    async def test_fetch_all(self):
        http = FakeHttpClient(
            {"stockcharts.com": json_response([{"symbol": "AAPL", "SCTR": "80"}])}
        )
        records = await SctrFetcher(http).fetch_all()
        assert [r.symbol for r in records] == ["AAPL"]
        assert "cmd=sctr" in http.calls[0]

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        http = FakeHttpClient({"stockcharts.com": HttpResponse(503, "")})
        with pytest.raises(RankDatasetError, match="StockCharts HTTP 503") as exc:
            await SctrFetcher(http).fetch_all()
        assert exc.value.status_code == 503

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        http = FakeHttpClient({"stockcharts.com": UpstreamError("boom")})
        with pytest.raises(RankDatasetError):
            await SctrFetcher(http).fetch_all()

    @pytest.mark.asyncio
    async def test_malformed_json_raises(self):
        http = FakeHttpClient({"stockcharts.com": HttpResponse(200, "<html>")})
        with pytest.raises(RankDatasetError):
            await SctrFetcher(http).fetch_all()

    @pytest.mark.asyncio
    async def test_non_array_payload_is_empty(self):
        http = FakeHttpClient({"stockcharts.com": json_response({"error": "x"})})
        assert await SctrFetcher(http).fetch_all() == []
