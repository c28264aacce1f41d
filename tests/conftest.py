"""
Shared test fixtures: a small bootstrap snapshot, a controllable clock,
and a fake upstream fetcher that counts calls.
"""
import asyncio
import copy
from typing import Any, Dict, List, Optional

import pytest

from fpl_tools.cache import CacheCoordinator, MemoryKeyValueStore

TTL = 3600
CACHE_KEY = "fpl:bootstrap:test"


def _player(
    id: int,
    web_name: str,
    first_name: str,
    second_name: str,
    team: int,
    element_type: int,
    now_cost: int,
    total_points: int,
    selected_by_percent: str,
    status: str = "a",
    news: str = "",
    chance_of_playing_next_round: Optional[int] = None,
) -> Dict[str, Any]:
    return {
        "id": id,
        "web_name": web_name,
        "first_name": first_name,
        "second_name": second_name,
        "team": team,
        "element_type": element_type,
        "now_cost": now_cost,
        "total_points": total_points,
        "selected_by_percent": selected_by_percent,
        "status": status,
        "news": news,
        "chance_of_playing_next_round": chance_of_playing_next_round,
        "form": "5.0",
        "points_per_game": "4.8",
    }


def make_snapshot() -> Dict[str, Any]:
    """Bootstrap-shaped payload with two teams and a handful of players."""
    return {
        "teams": [
            {"id": 1, "short_name": "ARS", "name": "Arsenal"},
            {"id": 2, "short_name": "CHE", "name": "Chelsea"},
        ],
        "events": [
            {"id": 1, "is_current": False, "is_next": False, "finished": True},
            {"id": 2, "is_current": True, "is_next": False, "finished": False},
            {"id": 3, "is_current": False, "is_next": True, "finished": False},
        ],
        "elements": [
            _player(10, "Saka", "Bukayo", "Saka", 1, 3, 90, 120, "45.2"),
            _player(20, "Palmer", "Cole", "Palmer", 2, 3, 65, 150, "60.1",
                    chance_of_playing_next_round=100),
            _player(30, "Ødegaard", "Martin", "Ødegaard", 1, 3, 85, 80, "12.0",
                    status="d", news="Ankle injury - 75% chance of playing",
                    chance_of_playing_next_round=75),
            _player(40, "Alexander-Arnold", "Trent", "Alexander-Arnold", 2, 2, 70, 60, "8.5",
                    status="i", news="Hamstring injury", chance_of_playing_next_round=0),
            _player(50, "Raya", "David", "Raya Martín", 1, 1, 55, 100, "20.0",
                    news="Minor knock"),
            _player(60, "Jackson", "Nicolas", "Jackson", 2, 4, 75, 70, "5.0",
                    status="s", news="Suspended until 14 Dec", chance_of_playing_next_round=0),
            _player(70, "Madueke", "Noni", "Madueke", 2, 3, 65, 50, "3.0"),
            _player(80, "Šeško", "Benjamin", "Šeško", 99, 4, 72, 10, "1.0",
                    chance_of_playing_next_round=75),
        ],
    }


class FakeClock:
    """Wall clock in seconds that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """
    Stand-in for the upstream fetch.

    If a gate is set, each call blocks until the gate is opened, which keeps
    the fetch in flight for as long as a test needs.
    """

    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.payload = payload if payload is not None else make_snapshot()
        self.error = error
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None

    async def __call__(self) -> Dict[str, Any]:
        self.calls += 1
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.payload)


def make_coordinator(
    fetcher: FakeFetcher,
    store: Optional[MemoryKeyValueStore] = None,
    clock: Optional[FakeClock] = None,
) -> CacheCoordinator:
    clock = clock or FakeClock()
    return CacheCoordinator(
        store=store if store is not None else MemoryKeyValueStore(clock=clock),
        fetcher=fetcher,
        cache_key=CACHE_KEY,
        ttl_seconds=TTL,
        clock=clock,
    )


@pytest.fixture
def snapshot() -> Dict[str, Any]:
    return make_snapshot()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def store(clock) -> MemoryKeyValueStore:
    return MemoryKeyValueStore(clock=clock)


@pytest.fixture
def coordinator(fetcher, store, clock) -> CacheCoordinator:
    return make_coordinator(fetcher, store=store, clock=clock)


def ids(players: List[Dict[str, Any]]) -> List[int]:
    return [p["id"] for p in players]
