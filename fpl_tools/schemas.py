"""
Pydantic schemas for tool arguments.
Arguments are validated here, before anything reaches the cache or search code.
"""
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

from fpl_tools.enums import SHORT_TO_POSITION_ID

PositionCode = Literal["1", "2", "3", "4"]
PositionAlias = Literal["1", "2", "3", "4", "GKP", "DEF", "MID", "FWD"]
TeamRef = Union[PositiveInt, Annotated[str, Field(min_length=2)]]


def _position_to_str(value):
    """Accept 3 as well as "3"; upper-case aliases."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip().upper()
    return value


class ToolInput(BaseModel):
    """Base for tool argument models."""
    model_config = ConfigDict(extra="ignore")


class SearchPlayersInput(ToolInput):
    """Find players by free-text name."""
    q: str = Field(min_length=2, description="Player name, surname or any part of it")
    position: Optional[PositionAlias] = Field(
        default=None, description="1..4 or GKP/DEF/MID/FWD"
    )
    team: Optional[TeamRef] = Field(default=None, description="Team id, short code or full name")
    limit: int = Field(default=10, ge=1, le=50)

    @field_validator("position", mode="before")
    @classmethod
    def normalize_position(cls, value):
        return _position_to_str(value)


class GetPlayerInfoInput(ToolInput):
    """Look a player up by id or by name."""
    id: Optional[PositiveInt] = None
    name: Optional[str] = Field(default=None, min_length=2)


class TopByPriceInput(ToolInput):
    """Most expensive players in a position."""
    position: PositionCode = Field(description="1=GKP, 2=DEF, 3=MID, 4=FWD")
    limit: int = Field(default=10, ge=1, le=50)

    @field_validator("position", mode="before")
    @classmethod
    def position_code(cls, value):
        value = _position_to_str(value)
        # Aliases map onto numeric codes here
        if isinstance(value, str) and value in SHORT_TO_POSITION_ID:
            return str(SHORT_TO_POSITION_ID[value])
        return value


class RefreshBootstrapInput(ToolInput):
    """No arguments."""
    pass


class FixtureDifficultyInput(ToolInput):
    """Upcoming fixture difficulty per team."""
    team_ids: Optional[List[PositiveInt]] = Field(
        default=None, description="Restrict to these team ids (default: all teams)"
    )
    gameweeks: int = Field(default=3, ge=1, le=10)


class UnavailablePlayersInput(ToolInput):
    """Injured, doubtful, suspended and otherwise flagged players."""
    include_doubtful: bool = Field(
        default=False,
        description="Also include players whose chance of playing next round is below 100",
    )
    team: Optional[TeamRef] = None
    position: Optional[PositionAlias] = None
    limit: int = Field(default=50, ge=1, le=200)

    @field_validator("position", mode="before")
    @classmethod
    def normalize_position(cls, value):
        return _position_to_str(value)
