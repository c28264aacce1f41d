"""
Snapshot caching with freshness classification, request coalescing,
and stale-while-revalidate.
"""
from .core import (
    Envelope,
    EncodedValue,
    EnvelopeDecodeError,
    Freshness,
    RefreshResult,
    StoredValue,
    StructuredValue,
    classify_freshness,
    decode_envelope,
    expiry_seconds,
)
from .coalescer import RequestCoalescer
from .store import (
    KeyValueStore,
    MemoryKeyValueStore,
    RestKeyValueStore,
    StoreError,
    get_store,
)
from .manager import CacheCoordinator, get_cache_coordinator, set_cache_coordinator

__all__ = [
    # Core types
    "Envelope",
    "EncodedValue",
    "EnvelopeDecodeError",
    "Freshness",
    "RefreshResult",
    "StoredValue",
    "StructuredValue",
    "classify_freshness",
    "decode_envelope",
    "expiry_seconds",
    # Stores
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RestKeyValueStore",
    "StoreError",
    "get_store",
    # Coalescing
    "RequestCoalescer",
    # Coordinator
    "CacheCoordinator",
    "get_cache_coordinator",
    "set_cache_coordinator",
]
