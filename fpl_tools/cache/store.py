"""
Key-value stores backing the snapshot cache.

Two implementations share one contract:
- RestKeyValueStore: Vercel KV / Upstash over its REST command API
- MemoryKeyValueStore: in-process dict with per-key expiry (local dev, tests)

Writes are whole-value replacement with an expiry; there is no
compare-and-swap, so concurrent writers from different processes race and
the last write wins.
"""
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from config.settings import settings
from .core import EncodedValue, StoredValue, StructuredValue

logger = logging.getLogger("cache.store")


class StoreError(Exception):
    """The key-value store rejected a command or could not be reached."""


class KeyValueStore(ABC):
    """Minimal async key-value contract used by the cache coordinator."""

    @abstractmethod
    async def get(self, key: str) -> Optional[StoredValue]:
        """
        Read a value.

        Returns:
            The raw stored value, or None if the key is missing or expired
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, expiry_seconds: int) -> None:
        """Replace the value under key; it expires after expiry_seconds."""
        pass


def _wrap_raw(value: Any) -> Optional[StoredValue]:
    if value is None:
        return None
    if isinstance(value, str):
        return EncodedValue(value)
    return StructuredValue(value)


class RestKeyValueStore(KeyValueStore):
    """
    Store reached over the Upstash REST protocol.

    Commands are POSTed as JSON arrays, e.g. ["SET", key, value, "EX", 7200],
    and replies look like {"result": ...} or {"error": "..."}. One HTTP client
    is kept per store so consecutive commands reuse the connection.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Authorization": f"Bearer {self._token}"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def command(self, *args: Any) -> Any:
        """
        Run one command and return its result.

        Raises:
            StoreError: On transport failure, non-2xx, a non-JSON reply or an
                error reply
        """
        label = str(args[0]) if args else "command"
        try:
            response = await self._get_client().post(self._url, json=list(args))
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise StoreError(f"KV {label} failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise StoreError(f"KV {label} returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise StoreError(f"KV {label} returned a non-JSON reply") from e

        if not isinstance(body, dict):
            raise StoreError(f"KV {label} returned an unexpected reply")
        if body.get("error"):
            raise StoreError(f"KV {label} error: {body['error']}")
        return body.get("result")

    async def get(self, key: str) -> Optional[StoredValue]:
        return _wrap_raw(await self.command("GET", key))

    async def set(self, key: str, value: str, expiry_seconds: int) -> None:
        await self.command("SET", key, value, "EX", int(expiry_seconds))


class MemoryKeyValueStore(KeyValueStore):
    """
    In-process store with per-key expiry.

    With decode_json=True, values that parse as JSON come back already
    structured, like clients that deserialize transparently.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        decode_json: bool = False,
    ):
        self._clock = clock
        self._decode_json = decode_json
        self._data: Dict[str, Tuple[str, float]] = {}
        self.writes: List[str] = []

    async def get(self, key: str) -> Optional[StoredValue]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        if self._decode_json:
            try:
                return StructuredValue(json.loads(value))
            except ValueError:
                return EncodedValue(value)
        return EncodedValue(value)

    async def set(self, key: str, value: str, expiry_seconds: int) -> None:
        self._data[key] = (value, self._clock() + max(1, expiry_seconds))
        self.writes.append(key)

    def clear(self) -> None:
        self._data.clear()


# Global store instance
_store: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    """Get or create the configured store."""
    global _store
    if _store is None:
        if settings.kv_rest_api_url and settings.kv_rest_api_token:
            logger.info("Using REST key-value store")
            _store = RestKeyValueStore(settings.kv_rest_api_url, settings.kv_rest_api_token)
        else:
            logger.warning("KV_REST_API_URL not set; using in-process store")
            _store = MemoryKeyValueStore()
    return _store
