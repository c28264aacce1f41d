"""
Derived views over a bootstrap snapshot.
Pure functions: they read the snapshot (and fixture list) and never keep it.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from fpl_tools.enums import POSITION_ID_TO_NAME, POSITION_ID_TO_SHORT, PlayerStatus, price_tenths_to_millions
from fpl_tools.search.resolver import PositionFilter, TeamFilter, resolve_position_id, resolve_team_id
from fpl_tools.utils.helpers import safe_float, safe_int, safe_str


# =============================================================================
# LABELS
# =============================================================================

def price_label(now_cost: int) -> str:
    """Tenths of £m to a label: 72 -> "£7.2m"."""
    return f"£{price_tenths_to_millions(safe_int(now_cost)):.1f}m"


def team_short(snapshot: Dict[str, Any], team_id: int) -> str:
    """Team short code, or "T<id>" when the team is unknown."""
    for team in snapshot.get("teams", []):
        if team.get("id") == team_id:
            return team.get("short_name") or f"T{team_id}"
    return f"T{team_id}"


def position_short(element_type: Optional[int]) -> Optional[str]:
    """GKP/DEF/MID/FWD, or None for an unknown code."""
    if element_type is None:
        return None
    return POSITION_ID_TO_SHORT.get(element_type)


# =============================================================================
# PLAYER PROJECTIONS
# =============================================================================

def player_summary(snapshot: Dict[str, Any], p: Dict[str, Any]) -> Dict[str, Any]:
    """Compact player row used by search results."""
    return {
        "id": p.get("id"),
        "web_name": p.get("web_name"),
        "first_name": p.get("first_name"),
        "second_name": p.get("second_name"),
        "team": team_short(snapshot, p.get("team")),
        "position": position_short(p.get("element_type")),
        "now_cost": p.get("now_cost"),
        "price_label": price_label(p.get("now_cost")),
        "status": p.get("status"),
        "total_points": p.get("total_points"),
        "selected_by_percent": p.get("selected_by_percent"),
    }


def player_info(snapshot: Dict[str, Any], p: Dict[str, Any]) -> Dict[str, Any]:
    """Full player card: availability, price, selection, form and points."""
    return {
        "id": p.get("id"),
        "web_name": p.get("web_name"),
        "first_name": p.get("first_name"),
        "second_name": p.get("second_name"),
        "team": team_short(snapshot, p.get("team")),
        "position": position_short(p.get("element_type")),
        "position_name": POSITION_ID_TO_NAME.get(p.get("element_type")),
        "status": p.get("status"),
        "chance_of_playing_next_round": p.get("chance_of_playing_next_round"),
        "news": p.get("news"),
        "now_cost": p.get("now_cost"),
        "price_label": price_label(p.get("now_cost")),
        "selected_by_percent": p.get("selected_by_percent"),
        "form": p.get("form"),
        "points_per_game": p.get("points_per_game"),
        "total_points": p.get("total_points"),
    }


def price_row(snapshot: Dict[str, Any], p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": p.get("id"),
        "name": p.get("web_name"),
        "team": team_short(snapshot, p.get("team")),
        "position": position_short(p.get("element_type")),
        "price": price_label(p.get("now_cost")),
        "total_points": p.get("total_points"),
    }


def top_by_price(snapshot: Dict[str, Any], position: int, n: int = 10) -> List[Dict[str, Any]]:
    """Most expensive players in a position; ties go to more total points."""
    players = [p for p in snapshot.get("elements", []) if p.get("element_type") == position]
    players.sort(
        key=lambda p: (safe_int(p.get("now_cost")), safe_int(p.get("total_points"))),
        reverse=True,
    )
    return players[:max(0, n)]


# =============================================================================
# FIXTURE DIFFICULTY
# =============================================================================

@dataclass
class TeamFixture:
    """One upcoming fixture from a single team's point of view."""
    event: int
    opponent: int
    opponent_short: str
    is_home: bool
    difficulty: int
    kickoff_time: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event,
            "opponent": self.opponent,
            "opponentShort": self.opponent_short,
            "isHome": self.is_home,
            "difficulty": self.difficulty,
            "kickoffTime": self.kickoff_time,
        }


def current_event_id(snapshot: Dict[str, Any]) -> int:
    """The current gameweek, else the next one, else 1."""
    for event in snapshot.get("events", []):
        if event.get("is_current") or event.get("is_next"):
            return safe_int(event.get("id"), 1)
    return 1


def fixture_difficulty(
    snapshot: Dict[str, Any],
    fixtures: Iterable[Dict[str, Any]],
    team_ids: Optional[Iterable[int]] = None,
    gameweeks: int = 3,
) -> Dict[str, Any]:
    """
    Group unfinished fixtures in the next N gameweeks by team.

    Every fixture adds an entry to both the home and away side, each with
    that side's difficulty rating. Teams without fixtures in the window
    are left out.

    Args:
        snapshot: Bootstrap payload (events and teams)
        fixtures: Upstream fixture list
        team_ids: Restrict output to these teams (default: all)
        gameweeks: Window size starting at the current or next gameweek

    Returns:
        {"gameweeks": {"start", "end"}, "teams": {team_id: {...}}}
    """
    start = current_event_id(snapshot)
    end = start + max(1, gameweeks) - 1

    by_team: Dict[int, List[TeamFixture]] = {}
    for fx in fixtures:
        event = fx.get("event")
        if event is None or fx.get("finished"):
            continue
        if not start <= event <= end:
            continue

        home, away = fx.get("team_h"), fx.get("team_a")
        by_team.setdefault(home, []).append(TeamFixture(
            event=event,
            opponent=away,
            opponent_short=team_short(snapshot, away),
            is_home=True,
            difficulty=safe_int(fx.get("team_h_difficulty")),
            kickoff_time=fx.get("kickoff_time"),
        ))
        by_team.setdefault(away, []).append(TeamFixture(
            event=event,
            opponent=home,
            opponent_short=team_short(snapshot, home),
            is_home=False,
            difficulty=safe_int(fx.get("team_a_difficulty")),
            kickoff_time=fx.get("kickoff_time"),
        ))

    wanted = set(team_ids) if team_ids else None
    teams: Dict[int, Dict[str, Any]] = {}
    for team_id, entries in by_team.items():
        if wanted is not None and team_id not in wanted:
            continue
        average = sum(e.difficulty for e in entries) / len(entries)
        teams[team_id] = {
            "team": team_short(snapshot, team_id),
            "fixtures": [e.to_dict() for e in entries],
            "averageDifficulty": f"{average:.1f}",
        }

    return {"gameweeks": {"start": start, "end": end}, "teams": teams}


# =============================================================================
# UNAVAILABLE PLAYERS
# =============================================================================

UNAVAILABLE_GROUPS = ("injured_doubtful", "suspended", "other")


def is_unavailable(p: Dict[str, Any], include_doubtful: bool = False) -> bool:
    """
    A player is flagged when their status is not available or they carry
    news. With include_doubtful, a chance of playing below 100 also counts.
    """
    if p.get("status") != PlayerStatus.AVAILABLE.value:
        return True
    if safe_str(p.get("news")).strip():
        return True
    if include_doubtful:
        chance = p.get("chance_of_playing_next_round")
        # None means no flag, i.e. fully available
        if chance is not None and safe_int(chance, 100) < 100:
            return True
    return False


def unavailable_group(status: Optional[str]) -> str:
    if status in (PlayerStatus.INJURED.value, PlayerStatus.DOUBTFUL.value):
        return "injured_doubtful"
    if status == PlayerStatus.SUSPENDED.value:
        return "suspended"
    return "other"


def unavailable_players(
    snapshot: Dict[str, Any],
    include_doubtful: bool = False,
    team: TeamFilter = None,
    position: PositionFilter = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Flagged players, grouped by status.

    Players whose status is not available come first; within that, the
    most selected players come first.
    """
    team_id = resolve_team_id(snapshot, team)
    position_id = resolve_position_id(position)
    if (team is not None and team_id is None) or (position is not None and position_id is None):
        flagged = []
    else:
        flagged = [
            p for p in snapshot.get("elements", [])
            if (team_id is None or p.get("team") == team_id)
            and (position_id is None or p.get("element_type") == position_id)
            and is_unavailable(p, include_doubtful)
        ]

    flagged.sort(key=lambda p: (
        p.get("status") == PlayerStatus.AVAILABLE.value,
        -safe_float(p.get("selected_by_percent")),
    ))
    if limit is not None:
        flagged = flagged[:max(1, limit)]

    groups: Dict[str, List[Dict[str, Any]]] = {name: [] for name in UNAVAILABLE_GROUPS}
    rows = []
    for p in flagged:
        row = {
            "id": p.get("id"),
            "name": p.get("web_name"),
            "team": team_short(snapshot, p.get("team")),
            "position": position_short(p.get("element_type")),
            "status": p.get("status"),
            "news": p.get("news") or "",
            "chance_of_playing_next_round": p.get("chance_of_playing_next_round"),
            "selected_by_percent": p.get("selected_by_percent"),
        }
        rows.append(row)
        groups[unavailable_group(p.get("status"))].append(row)

    return {
        "count": len(rows),
        "players": rows,
        "groups": groups,
        "counts": {name: len(members) for name, members in groups.items()},
    }
