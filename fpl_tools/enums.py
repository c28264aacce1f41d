"""
Enumerations for the FPL bootstrap-static payload.
"""
from enum import Enum, IntEnum
from typing import Dict


class ElementTypeId(IntEnum):
    """Player positions from `element_types[].id`."""
    GOALKEEPER = 1
    DEFENDER = 2
    MIDFIELDER = 3
    FORWARD = 4


class PlayerStatus(str, Enum):
    """
    Player availability codes from `elements[].status`.

    Anything other than AVAILABLE is flagged.
    """
    AVAILABLE = "a"
    DOUBTFUL = "d"
    INJURED = "i"
    SUSPENDED = "s"
    NOT_AVAILABLE = "n"


POSITION_ID_TO_SHORT: Dict[int, str] = {
    ElementTypeId.GOALKEEPER: "GKP",
    ElementTypeId.DEFENDER: "DEF",
    ElementTypeId.MIDFIELDER: "MID",
    ElementTypeId.FORWARD: "FWD",
}

POSITION_ID_TO_NAME: Dict[int, str] = {
    ElementTypeId.GOALKEEPER: "Goalkeeper",
    ElementTypeId.DEFENDER: "Defender",
    ElementTypeId.MIDFIELDER: "Midfielder",
    ElementTypeId.FORWARD: "Forward",
}

SHORT_TO_POSITION_ID: Dict[str, int] = {
    short: int(position_id) for position_id, short in POSITION_ID_TO_SHORT.items()
}


def price_tenths_to_millions(now_cost: int) -> float:
    """Prices come as tenths of £m (72 => 7.2)."""
    return now_cost / 10
