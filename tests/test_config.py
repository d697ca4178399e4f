"""
Unit tests for configuration module.

Covers environment loading, defaults and validation of the Settings model.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError


class TestDefaults:
    def test_rate_limit_and_ttl_defaults(self):
        """Defaults match the conservative upstream limits."""
        from sctr_enrich.config import DAY_SECONDS, Settings

        settings = Settings(_env_file=None)
        assert settings.finviz_delay == 2.0
        assert settings.yahoo_max_concurrency == 5
        assert settings.ma_period == 50
        assert settings.price_lookback_days == 90
        assert settings.basket_max_constituents == 20
        assert settings.industry_cache_ttl == 180 * DAY_SECONDS
        assert settings.finviz_negative_ttl == 7 * DAY_SECONDS
        assert settings.trend_cache_ttl == DAY_SECONDS
        assert settings.sctr_timeout == 20.0

    def test_sctr_url_default(self):
        from sctr_enrich.config import Settings

        settings = Settings(_env_file=None)
        assert "cmd=sctr" in settings.sctr_url


class TestEnvironmentOverrides:
    @patch.dict(
        os.environ,
        {
            "FINVIZ_DELAY": "3.5",
            "TREND_MAX_CONCURRENCY": "1",
            "DEFAULT_INDUSTRY_SOURCE": "  Yahoo ",
        },
    )
    def test_env_values_are_converted(self):
        """Test that string env vars are converted and normalized."""
        from sctr_enrich.config import Settings

        settings = Settings(_env_file=None)
        assert settings.finviz_delay == 3.5
        assert settings.trend_max_concurrency == 1
        assert settings.default_industry_source == "yahoo"

    @patch.dict(os.environ, {"CACHE_DIR": "~/sctr-cache"})
    def test_cache_dir_expands_user(self):
        from sctr_enrich.config import Settings

        settings = Settings(_env_file=None)
        assert settings.cache_dir == Path(os.path.expanduser("~/sctr-cache"))

    @patch.dict(os.environ, {"MA_PERIOD": "1"})
    def test_invalid_values_rejected(self):
        from sctr_enrich.config import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_request_headers():
    from sctr_enrich.config import Settings

    headers = Settings(_env_file=None).request_headers("application/json")
    assert headers["Accept"] == "application/json"
    assert "Mozilla" in headers["User-Agent"]
