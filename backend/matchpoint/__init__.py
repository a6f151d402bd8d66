"""Point-by-point tennis scoring engine with single-step undo."""

from .domain import MatchFormat, Side, TiebreakType
from .schemas import MatchConfig, Player, Point, ServeData
from .services.match_store import MatchStore

__version__ = "0.1.0"

__all__ = [
    "MatchConfig",
    "MatchFormat",
    "MatchStore",
    "Player",
    "Point",
    "ServeData",
    "Side",
    "TiebreakType",
]
