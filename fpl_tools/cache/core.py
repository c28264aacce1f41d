"""
Core cache data structures.
"""
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class Freshness(Enum):
    """Classification of a stored envelope relative to TTL and expiry."""
    FRESH = "fresh"     # age < TTL
    STALE = "stale"     # TTL <= age < 2*TTL, served while revalidating
    ABSENT = "absent"   # missing or past store expiry


def expiry_seconds(ttl_seconds: int) -> int:
    """Store-level expiry for a given freshness window."""
    return ttl_seconds * 2


def classify_freshness(age_seconds: float, ttl_seconds: int) -> Freshness:
    """Pure freshness classification of an envelope's age."""
    if age_seconds < ttl_seconds:
        return Freshness.FRESH
    if age_seconds < expiry_seconds(ttl_seconds):
        return Freshness.STALE
    return Freshness.ABSENT


class Envelope(BaseModel):
    """
    A snapshot plus the moment its fetch completed.

    This is the unit persisted in the key-value store. The payload is
    replaced wholesale on refresh, never mutated in place.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    payload: Dict[str, Any]
    fetched_at: int = Field(alias="fetchedAt")  # epoch milliseconds

    def age_seconds(self, now_ms: int) -> float:
        """Seconds since the payload was fetched."""
        return (now_ms - self.fetched_at) / 1000

    def freshness(self, now_ms: int, ttl_seconds: int) -> Freshness:
        return classify_freshness(self.age_seconds(now_ms), ttl_seconds)

    @property
    def fetched_at_iso(self) -> str:
        dt = datetime.fromtimestamp(self.fetched_at / 1000, tz=timezone.utc)
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def encode(self) -> str:
        """JSON text as written to the store: {"payload": ..., "fetchedAt": ...}."""
        return self.model_dump_json(by_alias=True)


# ----------------------------------------------------------------------------
# Store boundary: raw values come back either as encoded text or as an
# already-parsed structure, depending on the store client.
# ----------------------------------------------------------------------------

@dataclass(frozen=True)
class EncodedValue:
    """A stored value returned as a string that still needs parsing."""
    text: str


@dataclass(frozen=True)
class StructuredValue:
    """A stored value the store client already parsed."""
    data: Any


StoredValue = Union[EncodedValue, StructuredValue]


class EnvelopeDecodeError(Exception):
    """Stored value does not deserialize into an Envelope."""


def decode_envelope(raw: StoredValue) -> Envelope:
    """
    Turn a raw store value into an Envelope.

    Raises:
        EnvelopeDecodeError: If the value is not a valid envelope
    """
    if isinstance(raw, EncodedValue):
        try:
            data = json.loads(raw.text)
        except ValueError as e:
            raise EnvelopeDecodeError(f"Stored value is not valid JSON: {e}") from e
    elif isinstance(raw, StructuredValue):
        data = raw.data
    else:
        raise EnvelopeDecodeError(f"Unexpected stored value type: {type(raw).__name__}")

    if not isinstance(data, dict):
        raise EnvelopeDecodeError(f"Unexpected envelope shape: {type(data).__name__}")

    try:
        return Envelope.model_validate(data)
    except ValidationError as e:
        raise EnvelopeDecodeError(f"Invalid envelope: {e.error_count()} error(s)") from e


@dataclass
class RefreshResult:
    """Metadata about a freshly stored snapshot."""
    fetched_at: str  # ISO timestamp
    counts: Dict[str, int]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        result: Dict[str, Any] = {"fetchedAt": self.fetched_at}
        result.update(self.counts)
        return result


def collection_counts(payload: Dict[str, Any]) -> Dict[str, int]:
    """Record counts for every list-valued top-level collection."""
    counts = {"elements": 0, "teams": 0, "events": 0}
    for name, value in payload.items():
        if isinstance(value, list):
            counts[name] = len(value)
    return counts


def now_ms_from(clock_seconds: float) -> int:
    return int(clock_seconds * 1000)
