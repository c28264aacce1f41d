"""
Tests for tool dispatch: argument validation, results and error rendering.
"""
import asyncio
import json

import pytest

from fpl_tools import tools, upstream
from fpl_tools.upstream import UpstreamError

from conftest import FakeFetcher, make_coordinator


def _call(name, arguments, cache):
    return asyncio.run(tools.call_tool(name, arguments, cache=cache))


def _payload(result):
    assert result["content"][0]["type"] == "text"
    return json.loads(result["content"][0]["text"])


def _error_text(result):
    assert result.get("isError") is True
    return result["content"][0]["text"]


class TestRegistry:

    def test_all_tools_registered(self):
        names = {t["name"] for t in tools.list_tools()}
        assert names == {
            "search_players",
            "get_player_info",
            "top_by_price",
            "refresh_bootstrap",
            "get_fixture_difficulty",
            "get_unavailable_players",
        }

    def test_definitions_carry_json_schema(self):
        definition = tools.TOOLS["search_players"].definition()
        assert definition["inputSchema"]["type"] == "object"
        assert "q" in definition["inputSchema"]["properties"]


class TestSearchTool:

    def test_search(self, coordinator):
        data = _payload(_call("search_players", {"q": "saka"}, coordinator))
        assert data["count"] == 1
        row = data["results"][0]
        assert row["id"] == 10
        assert row["team"] == "ARS"
        assert row["position"] == "MID"
        assert row["price_label"] == "£9.0m"

    def test_search_with_filters(self, coordinator):
        data = _payload(_call("search_players", {"q": "palmer", "team": "CHE", "position": 3}, coordinator))
        assert [r["id"] for r in data["results"]] == [20]

    def test_short_query_rejected(self, coordinator, fetcher):
        text = _error_text(_call("search_players", {"q": "s"}, coordinator))
        assert "Invalid arguments" in text
        assert fetcher.calls == 0

    def test_limit_bounds(self, coordinator):
        assert _call("search_players", {"q": "saka", "limit": 51}, coordinator).get("isError")
        assert _call("search_players", {"q": "saka", "limit": 0}, coordinator).get("isError")


class TestPlayerInfoTool:

    def test_by_id(self, coordinator):
        data = _payload(_call("get_player_info", {"id": 40}, coordinator))
        assert data["web_name"] == "Alexander-Arnold"
        assert data["status"] == "i"
        assert data["news"] == "Hamstring injury"

    def test_by_name(self, coordinator):
        data = _payload(_call("get_player_info", {"name": "Palmer"}, coordinator))
        assert data["id"] == 20

    def test_unknown_id_falls_back_to_name(self, coordinator):
        data = _payload(_call("get_player_info", {"id": 999, "name": "saka"}, coordinator))
        assert data["id"] == 10

    def test_requires_id_or_name(self, coordinator):
        assert _error_text(_call("get_player_info", {}, coordinator)) == "Provide either id or name."

    def test_not_found(self, coordinator):
        assert _error_text(_call("get_player_info", {"name": "nobody"}, coordinator)) == "Player not found"


class TestTopByPriceTool:

    def test_rows(self, coordinator):
        data = _payload(_call("top_by_price", {"position": "3", "limit": 2}, coordinator))
        assert data["position"] == "3"
        assert [r["id"] for r in data["rows"]] == [10, 30]
        assert data["rows"][0]["price"] == "£9.0m"

    def test_alias_and_int_positions(self, coordinator):
        by_alias = _payload(_call("top_by_price", {"position": "MID", "limit": 1}, coordinator))
        by_int = _payload(_call("top_by_price", {"position": 3, "limit": 1}, coordinator))
        assert by_alias["rows"] == by_int["rows"]

    def test_invalid_position(self, coordinator):
        assert _call("top_by_price", {"position": "7"}, coordinator).get("isError")


class TestRefreshTool:

    def test_refresh_reports_counts(self, coordinator, fetcher):
        data = _payload(_call("refresh_bootstrap", {}, coordinator))
        assert fetcher.calls == 1
        assert data["elements"] == 8
        assert data["teams"] == 2
        assert data["events"] == 3
        assert data["fetchedAt"].endswith("Z")


class TestFixtureDifficultyTool:

    def test_uses_fixture_list(self, coordinator, monkeypatch):
        async def fake_fixtures():
            return [
                {"event": 2, "team_h": 1, "team_a": 2, "team_h_difficulty": 3,
                 "team_a_difficulty": 4, "kickoff_time": "2024-08-17T14:00:00Z", "finished": False},
            ]

        monkeypatch.setattr(upstream, "fetch_fixtures", fake_fixtures)
        data = _payload(_call("get_fixture_difficulty", {"team_ids": [1]}, coordinator))
        assert data["gameweeks"] == {"start": 2, "end": 4}
        # JSON object keys are strings
        assert data["teams"]["1"]["averageDifficulty"] == "3.0"

    def test_fixture_fetch_failure_is_tool_error(self, coordinator, monkeypatch):
        async def failing():
            raise UpstreamError("Fixtures API error: 502", status_code=502)

        monkeypatch.setattr(upstream, "fetch_fixtures", failing)
        assert "Fixtures API error" in _error_text(_call("get_fixture_difficulty", {}, coordinator))


class TestUnavailableTool:

    def test_default_and_doubtful(self, coordinator):
        default = _payload(_call("get_unavailable_players", {}, coordinator))
        doubtful = _payload(_call("get_unavailable_players", {"include_doubtful": True}, coordinator))
        assert default["count"] == 4
        assert doubtful["count"] == 5


class TestUpstreamFailure:

    def test_no_snapshot_and_upstream_down(self, clock):
        coordinator = make_coordinator(FakeFetcher(error=UpstreamError("Upstream FPL error: 503")), clock=clock)
        text = _error_text(_call("search_players", {"q": "saka"}, coordinator))
        assert "503" in text

    def test_unknown_tool_raises(self, coordinator):
        with pytest.raises(KeyError):
            _call("does_not_exist", {}, coordinator)
