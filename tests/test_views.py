"""
Tests for derived views: labels, price tables, fixture difficulty and
unavailable players.
"""
import pytest

from fpl_tools.views import (
    current_event_id,
    fixture_difficulty,
    is_unavailable,
    player_info,
    position_short,
    price_label,
    team_short,
    top_by_price,
    unavailable_players,
)

from conftest import ids


@pytest.fixture
def fixtures():
    """Fixture list around gameweeks 1-4 for teams 1 (ARS) and 2 (CHE)."""
    return [
        # Finished, ignored
        {"event": 2, "team_h": 2, "team_a": 1, "team_h_difficulty": 1, "team_a_difficulty": 1,
         "kickoff_time": "2024-08-10T14:00:00Z", "finished": True},
        {"event": 2, "team_h": 1, "team_a": 2, "team_h_difficulty": 3, "team_a_difficulty": 4,
         "kickoff_time": "2024-08-17T14:00:00Z", "finished": False},
        {"event": 3, "team_h": 2, "team_a": 1, "team_h_difficulty": 2, "team_a_difficulty": 5,
         "kickoff_time": "2024-08-24T14:00:00Z", "finished": False},
        # Outside a two-gameweek window
        {"event": 4, "team_h": 1, "team_a": 2, "team_h_difficulty": 2, "team_a_difficulty": 2,
         "kickoff_time": "2024-08-31T14:00:00Z", "finished": False},
        # Not yet scheduled
        {"event": None, "team_h": 1, "team_a": 2, "team_h_difficulty": 2, "team_a_difficulty": 2,
         "kickoff_time": None, "finished": False},
    ]


# =============================================================================
# Labels
# =============================================================================

class TestLabels:

    @pytest.mark.parametrize("now_cost,label", [
        (72, "£7.2m"),
        (100, "£10.0m"),
        (45, "£4.5m"),
        (0, "£0.0m"),
    ])
    def test_price_label(self, now_cost, label):
        assert price_label(now_cost) == label

    def test_team_short(self, snapshot):
        assert team_short(snapshot, 1) == "ARS"
        assert team_short(snapshot, 99) == "T99"

    def test_position_short(self):
        assert position_short(1) == "GKP"
        assert position_short(4) == "FWD"
        assert position_short(7) is None
        assert position_short(None) is None

    def test_player_info_projection(self, snapshot):
        info = player_info(snapshot, snapshot["elements"][7])
        assert info["team"] == "T99"
        assert info["position"] == "FWD"
        assert info["position_name"] == "Forward"
        assert info["price_label"] == "£7.2m"


# =============================================================================
# Top by price
# =============================================================================

class TestTopByPrice:

    def test_most_expensive_midfielder(self, snapshot):
        assert ids(top_by_price(snapshot, 3, 1)) == [10]

    def test_sorted_by_price_then_points(self, snapshot):
        rows = top_by_price(snapshot, 3, 10)
        # Palmer and Madueke both cost 65; Palmer has more points
        assert ids(rows) == [10, 30, 20, 70]
        costs = [p["now_cost"] for p in rows]
        assert costs == sorted(costs, reverse=True)

    def test_never_exceeds_count(self, snapshot):
        assert len(top_by_price(snapshot, 3, 2)) == 2
        assert top_by_price(snapshot, 3, 0) == []

    def test_unknown_position_empty(self, snapshot):
        assert top_by_price(snapshot, 9) == []


# =============================================================================
# Fixture difficulty
# =============================================================================

class TestFixtureDifficulty:

    def test_current_event(self, snapshot):
        assert current_event_id(snapshot) == 2
        assert current_event_id({"events": [{"id": 5, "is_next": True}]}) == 5
        assert current_event_id({"events": []}) == 1

    def test_window_and_both_sides(self, snapshot, fixtures):
        result = fixture_difficulty(snapshot, fixtures, gameweeks=2)

        assert result["gameweeks"] == {"start": 2, "end": 3}
        ars = result["teams"][1]
        che = result["teams"][2]

        assert ars["team"] == "ARS"
        assert [f["difficulty"] for f in ars["fixtures"]] == [3, 5]
        assert [f["isHome"] for f in ars["fixtures"]] == [True, False]
        assert [f["opponent"] for f in ars["fixtures"]] == [2, 2]
        assert ars["fixtures"][0]["opponentShort"] == "CHE"
        assert ars["fixtures"][0]["kickoffTime"] == "2024-08-17T14:00:00Z"
        assert ars["averageDifficulty"] == "4.0"

        assert [f["difficulty"] for f in che["fixtures"]] == [4, 2]
        assert che["averageDifficulty"] == "3.0"

    def test_team_filter(self, snapshot, fixtures):
        result = fixture_difficulty(snapshot, fixtures, team_ids=[2], gameweeks=3)
        assert list(result["teams"]) == [2]
        assert len(result["teams"][2]["fixtures"]) == 3
        assert result["teams"][2]["averageDifficulty"] == "2.7"

    def test_no_fixtures(self, snapshot):
        result = fixture_difficulty(snapshot, [], gameweeks=3)
        assert result == {"gameweeks": {"start": 2, "end": 4}, "teams": {}}


# =============================================================================
# Unavailable players
# =============================================================================

class TestUnavailable:

    def test_injured_and_news_qualify(self, snapshot):
        by_id = {p["id"]: p for p in snapshot["elements"]}
        assert is_unavailable(by_id[40])           # status i
        assert is_unavailable(by_id[50])           # status a with news
        assert not is_unavailable(by_id[10])       # available, no news, no flag
        assert not is_unavailable(by_id[20], include_doubtful=True)  # chance 100

    def test_chance_only_counts_when_requested(self, snapshot):
        sesko = next(p for p in snapshot["elements"] if p["id"] == 80)
        assert not is_unavailable(sesko)
        assert is_unavailable(sesko, include_doubtful=True)

    def test_ordering(self, snapshot):
        result = unavailable_players(snapshot)
        # Flagged statuses first by popularity, then available-with-news
        assert [p["id"] for p in result["players"]] == [30, 40, 60, 50]
        assert result["count"] == 4

    def test_groups(self, snapshot):
        result = unavailable_players(snapshot, include_doubtful=True)
        groups = result["groups"]
        assert [p["id"] for p in groups["injured_doubtful"]] == [30, 40]
        assert [p["id"] for p in groups["suspended"]] == [60]
        assert [p["id"] for p in groups["other"]] == [50, 80]
        assert result["counts"] == {"injured_doubtful": 2, "suspended": 1, "other": 2}

    def test_filters_and_limit(self, snapshot):
        assert [p["id"] for p in unavailable_players(snapshot, team="CHE")["players"]] == [40, 60]
        assert [p["id"] for p in unavailable_players(snapshot, position="GKP")["players"]] == [50]
        assert unavailable_players(snapshot, team="Nowhere FC")["count"] == 0
        assert unavailable_players(snapshot, limit=2)["count"] == 2
