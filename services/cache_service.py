# services/cache_service.py
import asyncio
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from cachetools import TLRUCache

logger = logging.getLogger(__name__)

DEFAULT_TTL = 60 * 60  # 1 hour


class CacheService:
    """
    In-memory key/value cache with a per-entry TTL.

    One instance per application (or per test); nothing is process-global.
    Expired entries are never returned, and a background sweep removes them
    so memory stays bounded between reads.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        # Stored values are (data, ttl); expiry is computed from the entry's own ttl
        self._cache = TLRUCache(maxsize=maxsize, ttu=lambda _key, value, now: now + value[1], timer=timer)
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def set(self, key: str, data: Any, ttl: Optional[float] = None):
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._cache[key] = (data, ttl)
        logger.debug(f"📦 Cache SET: {key} (TTL: {ttl}s)")

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
        if entry is None:
            logger.debug(f"Cache MISS: {key}")
            return None
        logger.debug(f"Cache HIT: {key}")
        return entry[0]

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self):
        with self._lock:
            size = len(self._cache)
            self._cache.clear()
        logger.info(f"🧹 Cache CLEAR ALL ({size} entries)")

    def cleanup(self) -> int:
        """Drop expired entries now; returns how many were removed."""
        with self._lock:
            before = len(self._cache)
            self._cache.expire()
            removed = before - len(self._cache)
        if removed:
            logger.info(f"🧹 Cache cleanup: removed {removed} expired entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            self._cache.expire()
            return {"size": len(self._cache), "keys": list(self._cache.keys())}

    # ------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------
    async def _sweep_loop(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            try:
                self.cleanup()
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}")

    def start_sweeper(self, interval: float = 60) -> asyncio.Task:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(interval))
        return self._sweeper

    async def stop_sweeper(self):
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    # ------------------------------------------------------------
    # Key helpers
    # ------------------------------------------------------------
    @staticmethod
    def paper_key(url: str) -> str:
        return f"paper:{url}"

    @staticmethod
    def arxiv_key(arxiv_id: str) -> str:
        return f"arxiv:{arxiv_id}"
