"""Player resolution: fuzzy name search over a bootstrap snapshot.

Scoring is additive. Exact and prefix matches on the web name, full name
and surname carry most of the weight; each query token found anywhere in
those names adds a little; popularity and season points add at most 10
points each so they only separate otherwise similar matches. A record
with no name signal scores 0 and is never returned.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from fpl_tools.enums import SHORT_TO_POSITION_ID
from fpl_tools.utils.helpers import safe_float, safe_int
from .normalizer import normalize, tokenize

logger = logging.getLogger("search.resolver")

DEFAULT_LIMIT = 10

PositionFilter = Union[int, str, None]
TeamFilter = Union[int, str, None]


@dataclass
class ScoredPlayer:
    """A candidate record with its match score."""
    player: Dict[str, Any]
    score: float

    @property
    def total_points(self) -> int:
        return safe_int(self.player.get("total_points"))


def score_player(player: Dict[str, Any], q_norm: str, q_tokens: List[str]) -> float:
    """
    Score how well a player matches a normalized query.
    Higher score = better match; 0 means no match signal at all.
    """
    web = normalize(player.get("web_name") or "")
    full = normalize(f"{player.get('first_name') or ''} {player.get('second_name') or ''}")
    last = normalize(player.get("second_name") or "")

    score = 0.0

    # Exact / starts-with bonuses
    if web == q_norm:
        score += 100
    if full == q_norm:
        score += 90
    if last == q_norm:
        score += 85
    if web.startswith(q_norm):
        score += 60
    if last.startswith(q_norm):
        score += 55
    if full.startswith(q_norm):
        score += 50

    # Token coverage
    haystack = f"{web} {full} {last}"
    for token in q_tokens:
        if token in haystack:
            score += 10

    if score == 0:
        return 0.0

    # Popularity tiebreakers, capped so they never dominate
    score += min(10.0, safe_float(player.get("selected_by_percent")) / 5)
    score += min(10.0, safe_int(player.get("total_points")) / 50)

    return score


def resolve_position_id(position: PositionFilter) -> Optional[int]:
    """
    Map a position filter (1..4, "1".."4", or GKP/DEF/MID/FWD) to its code.

    Returns:
        The position code, or None if the value is not recognised
    """
    if position is None:
        return None
    if isinstance(position, bool):
        return None
    if isinstance(position, int):
        return position if position in SHORT_TO_POSITION_ID.values() else None
    text = str(position).strip().upper()
    if text.isdigit():
        return resolve_position_id(int(text))
    return SHORT_TO_POSITION_ID.get(text)


def resolve_team_id(snapshot: Dict[str, Any], team: TeamFilter) -> Optional[int]:
    """
    Map a team filter (id, short code or full name) to a team id.

    Names match case- and diacritic-insensitively, but exactly.
    """
    if team is None or isinstance(team, bool):
        return None
    if isinstance(team, int):
        return team
    if str(team).strip().isdigit():
        return int(str(team).strip())

    wanted = normalize(str(team))
    if not wanted:
        return None
    for record in snapshot.get("teams", []):
        if normalize(record.get("short_name") or "") == wanted or normalize(record.get("name") or "") == wanted:
            return record.get("id")
    return None


def search_players(
    snapshot: Dict[str, Any],
    query: str,
    position: PositionFilter = None,
    team: TeamFilter = None,
    limit: Optional[int] = DEFAULT_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Search players by free-text name (surname or any part).

    Args:
        snapshot: Bootstrap payload
        query: Free-text name
        position: Optional position filter (1..4 or GKP/DEF/MID/FWD)
        team: Optional team filter (id, short code or full name)
        limit: Maximum results (default 10, at least 1)

    Returns:
        Player records, best match first. Empty if the query normalizes to nothing.
    """
    q_norm = normalize(query or "")
    if not q_norm:
        return []
    q_tokens = tokenize(query)

    # An active filter that resolves to nothing matches no records
    position_id = resolve_position_id(position)
    if position is not None and position_id is None:
        logger.debug(f"Unknown position filter: {position!r}")
        return []
    team_id = resolve_team_id(snapshot, team)
    if team is not None and team_id is None:
        logger.debug(f"Unknown team filter: {team!r}")
        return []

    scored: List[ScoredPlayer] = []
    for player in snapshot.get("elements", []):
        if position_id is not None and player.get("element_type") != position_id:
            continue
        if team_id is not None and player.get("team") != team_id:
            continue
        score = score_player(player, q_norm, q_tokens)
        if score > 0:
            scored.append(ScoredPlayer(player, score))

    # Stable sort keeps snapshot order for full ties
    scored.sort(key=lambda s: (s.score, s.total_points), reverse=True)

    limit = max(1, limit if limit is not None else DEFAULT_LIMIT)
    return [s.player for s in scored[:limit]]


def resolve_player_by_name(snapshot: Dict[str, Any], name: str) -> Optional[Dict[str, Any]]:
    """Best single match for a name, or None."""
    results = search_players(snapshot, name, limit=1)
    return results[0] if results else None


def find_player_by_id(snapshot: Dict[str, Any], player_id: int) -> Optional[Dict[str, Any]]:
    """Exact id lookup, or None."""
    for player in snapshot.get("elements", []):
        if player.get("id") == player_id:
            return player
    return None
