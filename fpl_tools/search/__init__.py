"""Player search: normalization, scoring and name resolution."""

from .normalizer import normalize, tokenize
from .resolver import find_player_by_id, resolve_player_by_name, search_players

__all__ = ["normalize", "tokenize", "search_players", "resolve_player_by_name", "find_player_by_id"]
