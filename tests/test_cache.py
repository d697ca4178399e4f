"""Tests for the JSON-backed TTL caches."""

import json
import threading
from unittest.mock import patch

import pytest

from sctr_enrich.data.cache import CacheService, SourceCache


class Clock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


def _cache(tmp_path, clock, **kwargs) -> SourceCache:
    params = {"ttl_seconds": 100, "flush_every": 3}
    params.update(kwargs)
    return SourceCache("test-cache", tmp_path / "test-cache.json", clock=clock, **params)


class TestSourceCache:
    def test_round_trip_through_disk(self, tmp_path, clock):
        cache = _cache(tmp_path, clock)
        cache.set("AAPL", {"industry": "Consumer Electronics"})
        cache.save_to_disk()

        clock.now += 50
        fresh = _cache(tmp_path, clock)
        assert fresh.load_from_disk() == 1
        assert "AAPL" in fresh
        assert fresh.get("AAPL") == {"industry": "Consumer Electronics"}

    def test_reload_after_ttl_is_absent(self, tmp_path, clock):
        cache = _cache(tmp_path, clock)
        cache.set("AAPL", "x")
        cache.save_to_disk()

        clock.now += 100
        fresh = _cache(tmp_path, clock)
        assert fresh.load_from_disk() == 0
        assert "AAPL" not in fresh
        assert fresh.get("AAPL") is None

    def test_in_memory_expiry(self, tmp_path, clock):
        cache = _cache(tmp_path, clock)
        cache.set("AAPL", "x")
        clock.now += 99
        assert "AAPL" in cache
        clock.now += 1
        assert "AAPL" not in cache

    def test_none_is_cacheable(self, tmp_path, clock):
        """Absent and cached-None are distinguishable."""
        cache = _cache(tmp_path, clock)
        cache.set("ZZZZZ", None)
        assert "ZZZZZ" in cache
        assert cache.get("ZZZZZ") is None
        assert "OTHER" not in cache

    def test_negative_ttl_applies_to_none_only(self, tmp_path, clock):
        cache = _cache(tmp_path, clock, negative_ttl_seconds=10)
        cache.set("MISS", None)
        cache.set("HIT", "Software")
        clock.now += 11
        assert "MISS" not in cache
        assert "HIT" in cache

    def test_set_does_not_write(self, tmp_path, clock):
        cache = _cache(tmp_path, clock, flush_every=1)
        cache.set("A", 1)
        assert cache.flush_due
        assert not (tmp_path / "test-cache.json").exists()

    @pytest.mark.asyncio
    async def test_put_flushes_every_nth_insert(self, tmp_path, clock):
        path = tmp_path / "test-cache.json"
        cache = _cache(tmp_path, clock)
        await cache.put("A", 1)
        await cache.put("B", 2)
        assert not path.exists()
        await cache.put("C", 3)
        assert json.loads(path.read_text()).keys() == {"A", "B", "C"}
        assert not cache.flush_due

    @pytest.mark.asyncio
    async def test_flush_writes_from_worker_thread(self, tmp_path, clock):
        cache = _cache(tmp_path, clock)
        cache.set("AAPL", "x")
        original = SourceCache.save_to_disk
        writer_threads = []

        def _spy(self, *args, **kwargs):
            writer_threads.append(threading.get_ident())
            return original(self, *args, **kwargs)

        with patch.object(SourceCache, "save_to_disk", _spy):
            await cache.flush()

        assert len(writer_threads) == 1
        assert writer_threads[0] != threading.get_ident()
        data = json.loads((tmp_path / "test-cache.json").read_text())
        assert data["AAPL"]["data"] == "x"

    def test_disk_layout(self, tmp_path, clock):
        cache = _cache(tmp_path, clock)
        cache.set("AAPL", [1, 2])
        cache.save_to_disk()
        data = json.loads((tmp_path / "test-cache.json").read_text())
        assert data == {"AAPL": {"data": [1, 2], "timestamp": clock.now}}

    def test_reload_keeps_original_timestamp(self, tmp_path, clock):
        cache = _cache(tmp_path, clock)
        cache.set("AAPL", "x")
        cache.save_to_disk()

        clock.now += 60
        fresh = _cache(tmp_path, clock)
        fresh.load_from_disk()
        fresh.save_to_disk()

        clock.now += 40
        assert "AAPL" not in fresh

    def test_clear_removes_memory_and_file(self, tmp_path, clock):
        path = tmp_path / "test-cache.json"
        cache = _cache(tmp_path, clock)
        cache.set("AAPL", "x")
        cache.save_to_disk()
        cache.clear()
        assert len(cache) == 0
        assert not path.exists()

    def test_corrupt_file_is_ignored(self, tmp_path, clock):
        (tmp_path / "test-cache.json").write_text("{not json")
        cache = _cache(tmp_path, clock)
        assert cache.load_from_disk() == 0
        cache.set("AAPL", "x")
        assert cache.get("AAPL") == "x"

    def test_unwritable_location_runs_memory_only(self, tmp_path, clock):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        cache = SourceCache(
            "test-cache", blocker / "sub" / "c.json", ttl_seconds=100, clock=clock
        )
        cache.set("AAPL", "x")
        cache.save_to_disk()
        assert cache.get("AAPL") == "x"


class TestCacheService:
    def test_namespace_is_created_once_and_loaded(self, tmp_path, clock):
        (tmp_path / "finviz-industry-cache.json").write_text(
            json.dumps({"AAPL": {"data": None, "timestamp": clock.now}})
        )
        service = CacheService(tmp_path, clock=clock)
        first = service.namespace("finviz-industry-cache", ttl_seconds=100)
        second = service.namespace("finviz-industry-cache", ttl_seconds=100)
        assert first is second
        assert "AAPL" in first
        assert first.path == tmp_path / "finviz-industry-cache.json"

    @pytest.mark.asyncio
    async def test_flush_and_dispose(self, tmp_path, clock):
        service = CacheService(tmp_path, clock=clock)
        cache = service.namespace("ma50-prices-cache", ttl_seconds=100, flush_every=10)
        cache.set("prices_SPY_90", [["2026-10-16", 1.0]])
        await service.dispose()
        assert (tmp_path / "ma50-prices-cache.json").exists()
        assert service.namespaces == []

    def test_clear_all_includes_unopened_files(self, tmp_path, clock):
        (tmp_path / "yahoo-industry-cache.json").write_text("{}")
        service = CacheService(tmp_path, clock=clock)
        cache = service.namespace("finviz-industry-cache", ttl_seconds=100)
        cache.set("AAPL", "x")
        cache.save_to_disk()

        cleared = service.clear_all()
        assert set(cleared) == {"finviz-industry-cache", "yahoo-industry-cache"}
        assert list(tmp_path.glob("*.json")) == []
