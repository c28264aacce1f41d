"""Rate limiting for the MCP endpoint."""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from config.settings import settings
from fpl_tools.cache.store import RestKeyValueStore, StoreError, get_store

logger = logging.getLogger("ratelimit")

DEFAULT_PREFIX = "rl:mcp"


@dataclass
class RateLimitResult:
    """Outcome of one rate-limit check."""
    success: bool
    limit: int
    remaining: int
    reset: int  # epoch milliseconds when the oldest request leaves the window

    def retry_after_seconds(self, now_ms: int) -> int:
        return max(1, -(-(self.reset - now_ms) // 1000))


class RateLimiter:
    """
    Sliding window rate limiter.

    Limits each identifier (e.g. "mcp:<ip>") to max_requests per window.
    State is per process; separate instances do not share counts. Used when
    no shared key-value store is configured.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    async def limit(self, identifier: str) -> RateLimitResult:
        """
        Record a request for identifier if it is within the limit.

        Args:
            identifier: Unique key for the client

        Returns:
            RateLimitResult; success is False when the request must be rejected
        """
        now = self._clock()
        window_start = now - self.window_seconds

        async with self._lock:
            # Drop idle clients once per window
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(window_start)
                self._last_sweep = now

            timestamps = [ts for ts in self._requests[identifier] if ts > window_start]
            self._requests[identifier] = timestamps

            if len(timestamps) >= self.max_requests:
                reset = min(timestamps) + self.window_seconds
                return RateLimitResult(False, self.max_requests, 0, int(reset * 1000))

            timestamps.append(now)
            reset = min(timestamps) + self.window_seconds
            return RateLimitResult(
                True,
                self.max_requests,
                self.max_requests - len(timestamps),
                int(reset * 1000),
            )

    def _sweep(self, window_start: float) -> int:
        cleaned = 0
        for identifier in list(self._requests):
            recent = [ts for ts in self._requests[identifier] if ts > window_start]
            if recent:
                self._requests[identifier] = recent
            else:
                del self._requests[identifier]
                cleaned += 1
        return cleaned

    @property
    def tracked_clients(self) -> int:
        return len(self._requests)

    async def reset(self, identifier: str) -> None:
        """
        Reset the rate limit for a specific client.

        Useful for testing or admin override.
        """
        async with self._lock:
            self._requests.pop(identifier, None)

    async def cleanup(self) -> int:
        """
        Remove all stale entries from the limiter.

        Returns the number of clients cleaned up.
        """
        window_start = self._clock() - self.window_seconds
        async with self._lock:
            return self._sweep(window_start)


# Weighted two-window counter, evaluated atomically by the store.
# KEYS: current window, previous window. ARGV: limit, now (ms), window (ms).
# Returns the remaining allowance, or -1 when the request is rejected.
SLIDING_WINDOW_SCRIPT = """
local current = tonumber(redis.call("GET", KEYS[1]) or "0")
local previous = tonumber(redis.call("GET", KEYS[2]) or "0")
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[3])
local elapsed = (tonumber(ARGV[2]) % window) / window
previous = math.floor((1 - elapsed) * previous)
if previous + current >= limit then
  return -1
end
local count = redis.call("INCR", KEYS[1])
if count == 1 then
  redis.call("PEXPIRE", KEYS[1], window * 2 + 1000)
end
return limit - (count + previous)
"""


class StoreRateLimiter:
    """
    Sliding window rate limiter shared by every instance through the
    REST key-value store.

    Counts live under "<prefix>:<identifier>:<window index>". The current
    window's count plus the previous window's count, weighted by how much
    of it still overlaps the sliding window, must stay under max_requests.
    """

    def __init__(
        self,
        store: RestKeyValueStore,
        max_requests: int = 60,
        window_seconds: int = 60,
        prefix: str = DEFAULT_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix
        self._clock = clock

    def _key(self, identifier: str, window_index: int) -> str:
        return f"{self.prefix}:{identifier}:{window_index}"

    async def limit(self, identifier: str) -> RateLimitResult:
        """
        Count a request for identifier in the shared store.

        Raises:
            StoreError: If the store cannot evaluate the window
        """
        now_ms = int(self._clock() * 1000)
        window_ms = self.window_seconds * 1000
        window_index = now_ms // window_ms

        result = await self.store.command(
            "EVAL",
            SLIDING_WINDOW_SCRIPT,
            2,
            self._key(identifier, window_index),
            self._key(identifier, window_index - 1),
            self.max_requests,
            now_ms,
            window_ms,
        )
        try:
            remaining = int(result)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Unexpected rate-limit reply: {result!r}") from e

        reset = (window_index + 1) * window_ms
        if remaining < 0:
            return RateLimitResult(False, self.max_requests, 0, reset)
        return RateLimitResult(True, self.max_requests, remaining, reset)


Limiter = Union[RateLimiter, StoreRateLimiter]

# Global rate limiter instance
_rate_limiter: Optional[Limiter] = None


def get_rate_limiter() -> Limiter:
    """Shared limiter when the REST store is configured, otherwise in-process."""
    global _rate_limiter
    if _rate_limiter is None:
        store = get_store()
        if isinstance(store, RestKeyValueStore):
            _rate_limiter = StoreRateLimiter(
                store,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        else:
            logger.warning("No shared store configured; rate limits are per process")
            _rate_limiter = RateLimiter(
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
    return _rate_limiter


def set_rate_limiter(limiter: Optional[Limiter]) -> None:
    """Replace the global rate limiter (tests)."""
    global _rate_limiter
    _rate_limiter = limiter
