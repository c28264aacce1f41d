"""
Query tools exposed over the MCP endpoint.

Each tool validates its arguments with a pydantic model, reads the cached
bootstrap snapshot, and returns MCP text content holding compact JSON.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from fpl_tools import upstream
from fpl_tools.cache import CacheCoordinator, get_cache_coordinator
from fpl_tools.schemas import (
    FixtureDifficultyInput,
    GetPlayerInfoInput,
    RefreshBootstrapInput,
    SearchPlayersInput,
    TopByPriceInput,
    UnavailablePlayersInput,
)
from fpl_tools.search import find_player_by_id, resolve_player_by_name, search_players
from fpl_tools.upstream import UpstreamError
from fpl_tools.views import (
    fixture_difficulty,
    player_info,
    player_summary,
    price_row,
    top_by_price,
    unavailable_players,
)

logger = logging.getLogger("tools")


class ToolError(Exception):
    """A user-facing tool failure, rendered as an isError result."""


Handler = Callable[[Any, CacheCoordinator], Awaitable[Any]]


@dataclass
class Tool:
    """A registered tool: metadata, argument model and handler."""
    name: str
    title: str
    description: str
    input_model: Type[BaseModel]
    handler: Handler

    def definition(self) -> Dict[str, Any]:
        """Tool listing entry for tools/list."""
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(),
        }


TOOLS: Dict[str, Tool] = {}


def tool(name: str, title: str, description: str, input_model: Type[BaseModel]):
    """Register a handler under name."""
    def decorator(handler: Handler) -> Handler:
        TOOLS[name] = Tool(name, title, description, input_model, handler)
        return handler
    return decorator


def as_json_text(value: Any) -> str:
    """Always return a string for MCP text content."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def text_result(value: Any, is_error: bool = False) -> Dict[str, Any]:
    text = value if isinstance(value, str) else as_json_text(value)
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


# =============================================================================
# TOOLS
# =============================================================================

@tool(
    "search_players",
    title="Search players by name",
    description=(
        "Find players by free-text name (surname or any part). Optional filters: "
        "position (1..4 or GKP/DEF/MID/FWD) and team (id, short code, or full name). "
        "Returns id, names, team, position, price, status."
    ),
    input_model=SearchPlayersInput,
)
async def _search_players(args: SearchPlayersInput, cache: CacheCoordinator) -> Dict[str, Any]:
    boot = await cache.get(allow_stale=True)
    results = [
        player_summary(boot, p)
        for p in search_players(boot, args.q, position=args.position, team=args.team, limit=args.limit)
    ]
    return {"count": len(results), "results": results}


@tool(
    "get_player_info",
    title="Get player info by id or name",
    description=(
        "Return a player's id, names, team, position, availability, current price, "
        "selection %, form, points per game, total points. Provide either id or a "
        "name (surname allowed)."
    ),
    input_model=GetPlayerInfoInput,
)
async def _get_player_info(args: GetPlayerInfoInput, cache: CacheCoordinator) -> Dict[str, Any]:
    if not args.id and not args.name:
        raise ToolError("Provide either id or name.")

    boot = await cache.get(allow_stale=True)

    player = None
    if args.id:
        player = find_player_by_id(boot, args.id)
    if player is None and args.name:
        player = resolve_player_by_name(boot, args.name)

    if player is None:
        raise ToolError("Player not found")
    return player_info(boot, player)


@tool(
    "top_by_price",
    title="Top N by price within a position",
    description="List the most expensive players for a given position using cached bootstrap.",
    input_model=TopByPriceInput,
)
async def _top_by_price(args: TopByPriceInput, cache: CacheCoordinator) -> Dict[str, Any]:
    boot = await cache.get(allow_stale=True)
    rows = [price_row(boot, p) for p in top_by_price(boot, int(args.position), args.limit)]
    return {"position": args.position, "rows": rows}


@tool(
    "refresh_bootstrap",
    title="Force refresh bootstrap cache",
    description="Fetch bootstrap and refresh the key-value cache.",
    input_model=RefreshBootstrapInput,
)
async def _refresh_bootstrap(args: RefreshBootstrapInput, cache: CacheCoordinator) -> Dict[str, Any]:
    result = await cache.force_refresh()
    return result.to_dict()


@tool(
    "get_fixture_difficulty",
    title="Fixture difficulty over the next gameweeks",
    description=(
        "Upcoming unfinished fixtures per team over the next N gameweeks (default 3), "
        "with opponent, home/away, difficulty rating and average difficulty."
    ),
    input_model=FixtureDifficultyInput,
)
async def _get_fixture_difficulty(args: FixtureDifficultyInput, cache: CacheCoordinator) -> Dict[str, Any]:
    boot, fixtures = await asyncio.gather(
        cache.get(allow_stale=True),
        upstream.fetch_fixtures(),
    )
    return fixture_difficulty(boot, fixtures, team_ids=args.team_ids, gameweeks=args.gameweeks)


@tool(
    "get_unavailable_players",
    title="Injured, doubtful and suspended players",
    description=(
        "Players flagged as unavailable (status other than available, or carrying news), "
        "grouped into injured/doubtful, suspended and other. Set include_doubtful to also "
        "include players with under 100% chance of playing next round."
    ),
    input_model=UnavailablePlayersInput,
)
async def _get_unavailable_players(args: UnavailablePlayersInput, cache: CacheCoordinator) -> Dict[str, Any]:
    boot = await cache.get(allow_stale=True)
    return unavailable_players(
        boot,
        include_doubtful=args.include_doubtful,
        team=args.team,
        position=args.position,
        limit=args.limit,
    )


# =============================================================================
# DISPATCH
# =============================================================================

def list_tools() -> List[Dict[str, Any]]:
    return [t.definition() for t in TOOLS.values()]


async def call_tool(
    name: str,
    arguments: Optional[Dict[str, Any]] = None,
    cache: Optional[CacheCoordinator] = None,
) -> Dict[str, Any]:
    """
    Validate arguments and run a tool.

    Returns:
        MCP tool result; user-facing failures come back with isError set

    Raises:
        KeyError: If no tool is registered under name
    """
    registered = TOOLS[name]
    try:
        args = registered.input_model.model_validate(arguments or {})
    except ValidationError as e:
        return text_result(f"Invalid arguments: {e}", is_error=True)

    try:
        value = await registered.handler(args, cache or get_cache_coordinator())
    except ToolError as e:
        return text_result(str(e), is_error=True)
    except UpstreamError as e:
        logger.error(f"Tool {name} failed: {e}")
        return text_result(f"FPL data unavailable: {e}", is_error=True)

    return text_result(value)
