"""
Expiring key/value caches persisted as JSON files.

Each provider owns one namespace (one file under the cache directory):

    finviz-industry-cache.json
    yahoo-industry-cache.json
    ma50-prices-cache.json
    ma50-industry-cache.json

On-disk layout is ``{key: {"data": value, "timestamp": epoch_seconds}}``.
``None`` is a legitimate cached value (negative result), so membership and
lookup are separate: ``key in cache`` says whether a valid entry exists,
``cache.get(key)`` returns its value.

Disk errors are logged and swallowed; the cache then runs memory-only for
the rest of the process. There is no cross-process locking (last write wins).
"""

import asyncio
import json
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class SourceCache:
    """In-memory TTL cache mirrored to one JSON file."""

    def __init__(
        self,
        name: str,
        path: Path,
        ttl_seconds: float,
        negative_ttl_seconds: float | None = None,
        flush_every: int = 5,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.path = Path(path)
        self.ttl_seconds = ttl_seconds
        self.negative_ttl_seconds = negative_ttl_seconds
        self.flush_every = max(1, flush_every)
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._pending = 0
        self._write_lock = asyncio.Lock()

    def _ttl_for(self, value: Any) -> float:
        if value is None and self.negative_ttl_seconds is not None:
            return self.negative_ttl_seconds
        return self.ttl_seconds

    def _is_valid(self, value: Any, stored_at: float, now: float) -> bool:
        return now - stored_at < self._ttl_for(value)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        value, stored_at = entry
        if self._is_valid(value, stored_at, self._clock()):
            return True
        del self._entries[key]
        return False

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any:
        """Return the cached value, or None when absent or expired."""
        if key not in self:
            return None
        return self._entries[key][0]

    def set(self, key: str, value: Any) -> None:
        """Store a value in memory and mark the file as dirty."""
        self._entries[key] = (value, self._clock())
        self._pending += 1

    @property
    def flush_due(self) -> bool:
        return self._pending >= self.flush_every

    async def put(self, key: str, value: Any) -> None:
        """Store a value; every ``flush_every``-th insert writes the file."""
        self.set(key, value)
        if self.flush_due:
            await self.flush()

    async def flush(self) -> None:
        """Write the current entries to disk from a worker thread."""
        async with self._write_lock:
            await asyncio.to_thread(self.save_to_disk, self._snapshot())

    def load_from_disk(self) -> int:
        """Load unexpired entries from the file. Returns the number loaded."""
        if not self.path.exists():
            return 0
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("cache_load_failed", cache=self.name, error=str(e))
            return 0
        if not isinstance(data, dict):
            logger.warning("cache_file_malformed", cache=self.name)
            return 0

        now = self._clock()
        loaded = 0
        for key, entry in data.items():
            if not isinstance(entry, dict):
                continue
            value = entry.get("data")
            stored_at = entry.get("timestamp", 0)
            if not isinstance(stored_at, int | float):
                continue
            if self._is_valid(value, stored_at, now):
                self._entries[key] = (value, float(stored_at))
                loaded += 1

        logger.debug("cache_loaded", cache=self.name, entries=loaded)
        return loaded

    def _snapshot(self) -> dict[str, dict[str, Any]]:
        self._pending = 0
        return {
            key: {"data": value, "timestamp": stored_at}
            for key, (value, stored_at) in self._entries.items()
        }

    def save_to_disk(self, payload: dict[str, dict[str, Any]] | None = None) -> None:
        """Write all entries (with their original timestamps) to the file.

        Blocking. ``flush`` passes a snapshot taken on the event loop so the
        write can run in a worker thread while inserts continue.
        """
        if payload is None:
            payload = self._snapshot()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("cache_save_failed", cache=self.name, error=str(e))

    def clear(self) -> None:
        """Drop every entry and remove the backing file."""
        self._entries.clear()
        self._pending = 0
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("cache_clear_failed", cache=self.name, error=str(e))


class CacheService:
    """
    Owns every cache namespace for the lifetime of the process.

    Constructed once and handed to the providers, the trend engine and the
    CLI. ``flush`` writes pending entries; ``dispose`` flushes and forgets
    the namespaces.
    """

    def __init__(self, cache_dir: Path, clock: Callable[[], float] = time.time):
        self.cache_dir = Path(cache_dir)
        self._clock = clock
        self._caches: dict[str, SourceCache] = {}

    def namespace(
        self,
        name: str,
        ttl_seconds: float,
        negative_ttl_seconds: float | None = None,
        flush_every: int = 5,
    ) -> SourceCache:
        """Return the cache for ``name``, creating and loading it on first use."""
        if name in self._caches:
            return self._caches[name]
        cache = SourceCache(
            name=name,
            path=self.cache_dir / f"{name}.json",
            ttl_seconds=ttl_seconds,
            negative_ttl_seconds=negative_ttl_seconds,
            flush_every=flush_every,
            clock=self._clock,
        )
        cache.load_from_disk()
        self._caches[name] = cache
        return cache

    @property
    def namespaces(self) -> list[str]:
        return list(self._caches)

    async def flush(self) -> None:
        for cache in list(self._caches.values()):
            await cache.flush()

    def clear_all(self) -> list[str]:
        """Clear every open namespace plus any stray cache files on disk."""
        cleared = []
        for cache in self._caches.values():
            cache.clear()
            cleared.append(cache.name)
        if self.cache_dir.exists():
            for path in self.cache_dir.glob("*-cache.json"):
                if path.stem not in cleared:
                    path.unlink(missing_ok=True)
                    cleared.append(path.stem)
        logger.info("caches_cleared", namespaces=cleared)
        return cleared

    async def dispose(self) -> None:
        await self.flush()
        self._caches.clear()
