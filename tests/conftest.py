"""Pytest configuration for SCTR enrichment tests."""

import json
import logging
import os
from unittest.mock import patch

import pytest
import structlog

from sctr_enrich.data.cache import CacheService
from sctr_enrich.data.http import HttpClient, HttpResponse
from sctr_enrich.models import RankRecord


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Default environment for the whole session; no test touches the network."""
    test_env = {
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "ERROR",
    }
    with patch.dict(os.environ, test_env, clear=False):
        yield


@pytest.fixture(autouse=True)
def configure_structlog_for_tests():
    """Configure structlog for test environment."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.root.setLevel(logging.WARNING)
    yield


class FakeHttpClient(HttpClient):
    """
    Canned responses keyed by URL substring.

    A route value may be an HttpResponse, an exception instance (raised), or
    a list of those (consumed in order, last one repeats).
    """

    def __init__(self, routes: dict | None = None):
        self.routes = dict(routes or {})
        self.calls: list[str] = []

    def add(self, fragment: str, response) -> None:
        self.routes[fragment] = response

    async def get(self, url, headers=None, timeout=10.0):
        self.calls.append(url)
        for fragment, response in self.routes.items():
            if fragment in url:
                if isinstance(response, list):
                    response = response.pop(0) if len(response) > 1 else response[0]
                if isinstance(response, BaseException):
                    raise response
                return response
        return HttpResponse(status=404, body="")

    def calls_to(self, fragment: str) -> list[str]:
        return [url for url in self.calls if fragment in url]


def json_response(payload, status: int = 200) -> HttpResponse:
    return HttpResponse(status=status, body=json.dumps(payload))


def chart_payload(closes: list[float | None], start_ts: int = 1_700_000_000) -> dict:
    """Yahoo chart response with one close per day."""
    timestamps = [start_ts + i * 86_400 for i in range(len(closes))]
    return {
        "chart": {
            "result": [
                {
                    "timestamp": timestamps,
                    "indicators": {"quote": [{"close": closes}]},
                }
            ]
        }
    }


def make_record(symbol: str, score: float | None = 50.0, **kwargs) -> RankRecord:
    data = {
        "date": "2026-10-16",
        "symbol": symbol,
        "name": f"{symbol} Inc",
        "rank_score": score,
        "industry": "Software",
        "sector": "Technology",
    }
    data.update(kwargs)
    return RankRecord(**data)


@pytest.fixture
def fake_http():
    return FakeHttpClient()


@pytest.fixture
def cache_service(tmp_path):
    return CacheService(tmp_path / "cache")


@pytest.fixture
def sample_records() -> list[RankRecord]:
    return [
        make_record("AAPL", 80.0, industry="Consumer Electronics", sector="Technology"),
        make_record("MSFT", 70.0, industry="Software", sector="Technology"),
        make_record("ORCL", 50.0, industry="Software", sector="Technology"),
        make_record("CRM", 30.0, industry="Software", sector="Technology"),
        make_record("JPM", 60.0, industry="Banks - Diversified", sector="Financials"),
        make_record("XOM", None, industry="Oil & Gas", sector="Energy"),
    ]
