"""
Snapshot cache orchestration with stale-while-revalidate.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from config.settings import settings
from fpl_tools.upstream import fetch_bootstrap
from .coalescer import RequestCoalescer
from .core import (
    Envelope,
    EnvelopeDecodeError,
    Freshness,
    RefreshResult,
    collection_counts,
    decode_envelope,
    expiry_seconds,
    now_ms_from,
)
from .store import KeyValueStore, StoreError, get_store

logger = logging.getLogger("cache.manager")


class CacheCoordinator:
    """
    Owns the lifecycle of one cached snapshot:
    - Fresh envelopes are served straight from the store
    - Stale envelopes are served while a background refresh runs
    - Absent or corrupt envelopes trigger a foreground fetch
    - At most one upstream fetch is in flight per process

    Another process may refresh the same key at the same time; both write
    and the last write wins.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        fetcher: Callable[[], Awaitable[Dict[str, Any]]] = fetch_bootstrap,
        cache_key: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            store: Key-value store (defaults to the configured store)
            fetcher: Coroutine function returning a fresh snapshot
            cache_key: Store key for the envelope
            ttl_seconds: Freshness window; store expiry is twice this
            clock: Wall clock in seconds, used for fetchedAt and ages
        """
        self._store = store
        self._fetcher = fetcher
        self._key = cache_key or settings.bootstrap_cache_key
        self._ttl = ttl_seconds or settings.cache_ttl_seconds
        self._clock = clock
        self._coalescer = RequestCoalescer()
        self._background: Set[asyncio.Task] = set()
        self._last_fetched_at = 0

        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "refreshes": 0,
            "background_failures": 0,
            "decode_errors": 0,
        }

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            self._store = get_store()
        return self._store

    @property
    def cache_key(self) -> str:
        return self._key

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _now_ms(self) -> int:
        return now_ms_from(self._clock())

    async def get(self, allow_stale: bool = True) -> Dict[str, Any]:
        """
        Get the current snapshot.

        Args:
            allow_stale: Serve a stale snapshot while refreshing in the background

        Returns:
            The snapshot payload

        Raises:
            UpstreamError: If no snapshot is stored and the fetch fails
        """
        envelope = await self._read_envelope()

        if envelope is None:
            logger.info(f"CACHE MISS: {self._key}")
            self._stats["misses"] += 1
            return (await self._foreground_fetch()).payload

        freshness = envelope.freshness(self._now_ms(), self._ttl)
        age = envelope.age_seconds(self._now_ms())

        if freshness is Freshness.FRESH:
            logger.debug(f"CACHE HIT (fresh): {self._key} [age={age:.1f}s]")
            self._stats["hits_fresh"] += 1
            return envelope.payload

        if freshness is Freshness.STALE and allow_stale:
            logger.info(f"CACHE HIT (stale, revalidating): {self._key} [age={age:.1f}s]")
            self._stats["hits_stale"] += 1
            self.trigger_background_refresh()
            return envelope.payload

        logger.info(f"CACHE EXPIRED: {self._key} [age={age:.1f}s]")
        self._stats["misses"] += 1
        if freshness is Freshness.ABSENT:
            return (await self._foreground_fetch()).payload

        try:
            return (await self._foreground_fetch()).payload
        except Exception as e:
            logger.warning(f"Refresh failed, serving stale {self._key}: {e}")
            return envelope.payload

    async def force_refresh(self) -> RefreshResult:
        """
        Fetch and store a new snapshot regardless of freshness.

        Joins a fetch already in flight rather than starting a second one.
        """
        logger.info(f"FORCE REFRESH: {self._key}")
        envelope = await self._foreground_fetch()
        return RefreshResult(
            fetched_at=envelope.fetched_at_iso,
            counts=collection_counts(envelope.payload),
        )

    async def _read_envelope(self) -> Optional[Envelope]:
        """Read and decode the stored envelope; anything unusable counts as absent."""
        try:
            raw = await self.store.get(self._key)
        except StoreError as e:
            logger.warning(f"Store read failed for {self._key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return decode_envelope(raw)
        except EnvelopeDecodeError as e:
            logger.warning(f"Discarding corrupt cache entry {self._key}: {e}")
            self._stats["decode_errors"] += 1
            return None

    async def _fetch_and_store(self) -> Envelope:
        payload = await self._fetcher()
        # fetchedAt never moves backwards within this process
        fetched_at = max(self._now_ms(), self._last_fetched_at)
        self._last_fetched_at = fetched_at
        envelope = Envelope(payload=payload, fetched_at=fetched_at)

        try:
            await self.store.set(self._key, envelope.encode(), expiry_seconds(self._ttl))
        except StoreError as e:
            logger.error(f"Store write failed for {self._key}: {e}")

        self._stats["refreshes"] += 1
        return envelope

    async def _foreground_fetch(self) -> Envelope:
        return await self._coalescer.get_or_fetch(self._key, self._fetch_and_store)

    def trigger_background_refresh(self) -> bool:
        """
        Start a refresh without waiting for it.

        Returns:
            True if a new fetch was started, False if one was already running
        """
        task, started = self._coalescer.start(self._key, self._fetch_and_store)
        if not started:
            logger.debug(f"Already refreshing: {self._key}")
            return False

        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return True

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._stats["background_failures"] += 1
            logger.warning(f"Background refresh failed: {self._key} - {error}")
        else:
            logger.debug(f"Background refresh complete: {self._key}")

    @property
    def is_refreshing(self) -> bool:
        return self._coalescer.is_in_flight(self._key)

    async def wait_for_background(self) -> None:
        """Wait for background refreshes started so far (tests, shutdown)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_hits = self._stats["hits_fresh"] + self._stats["hits_stale"]
        total_requests = total_hits + self._stats["misses"]
        hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "key": self._key,
            "ttl_seconds": self._ttl,
            **self._stats,
            "hit_rate_percent": round(hit_rate, 1),
            "refreshing": self.is_refreshing,
            "coalescer": self._coalescer.get_stats(),
        }


# Global coordinator instance
_cache_coordinator: Optional[CacheCoordinator] = None


def get_cache_coordinator() -> CacheCoordinator:
    """Get or create the global cache coordinator."""
    global _cache_coordinator
    if _cache_coordinator is None:
        _cache_coordinator = CacheCoordinator()
    return _cache_coordinator


def set_cache_coordinator(coordinator: Optional[CacheCoordinator]) -> None:
    """Replace the global coordinator (tests, alternate wiring)."""
    global _cache_coordinator
    _cache_coordinator = coordinator
