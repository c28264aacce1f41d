"""
Request coalescing to prevent duplicate upstream API calls.

When multiple concurrent requests ask for the same data, only one
upstream call is made and all requesters share the result.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Tuple

logger = logging.getLogger("cache.coalescer")


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one upstream call.

    Pattern:
    - First request for a key starts a task running the fetch
    - Subsequent requests for the same key await that same task
    - The slot is released when the task finishes, whether it succeeded or not

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.get_or_fetch(
            cache_key="fpl:bootstrap:v1",
            fetch_fn=fetch_and_store,
        )
    """

    def __init__(self):
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._waiters: Dict[str, int] = {}

    def start(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Tuple[asyncio.Task, bool]:
        """
        Join the in-flight task for cache_key, or start one.

        Must be called from a running event loop.

        Returns:
            (task, is_initiator)
        """
        task = self._in_flight.get(cache_key)
        if task is not None:
            self._waiters[cache_key] = self._waiters.get(cache_key, 0) + 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {self._waiters[cache_key]})"
            )
            return task, False

        logger.debug(f"Initiating fetch for {cache_key}")
        task = asyncio.create_task(self._run(cache_key, fetch_fn))
        self._in_flight[cache_key] = task
        self._waiters[cache_key] = 0
        return task, True

    async def _run(self, cache_key: str, fetch_fn: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await fetch_fn()
        except Exception as e:
            logger.warning(f"Fetch failed for {cache_key}: {e}")
            raise
        finally:
            # The task registers itself before it first runs
            if self._in_flight.get(cache_key) is asyncio.current_task():
                del self._in_flight[cache_key]
                self._waiters.pop(cache_key, None)

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Either join an existing in-flight request or initiate a new one.

        A cancelled caller does not cancel the shared fetch.

        Raises:
            Exception: Any error from fetch_fn is propagated to every waiter
        """
        task, _ = self.start(cache_key, fetch_fn)
        return await asyncio.shield(task)

    def is_in_flight(self, cache_key: str) -> bool:
        return cache_key in self._in_flight

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
        }
