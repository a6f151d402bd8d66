"""Entity records and enums for a tracked tennis match.

Records are plain dataclasses held in an arena (see ``services.arena``).
Parents refer to children by id: a ``Match`` lists set ids, a
``TennisSet`` lists game ids and optionally one tiebreak id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas import Player, Point


class Side(str, Enum):
    PLAYER = "player"
    OPPONENT = "opponent"

    @classmethod
    def of(cls, is_player_point: bool) -> "Side":
        return cls.PLAYER if is_player_point else cls.OPPONENT


class MatchFormat(str, Enum):
    REGULAR_SET = "regular_set"
    SHORT_SET = "short_set"


class TiebreakType(str, Enum):
    FIVE_POINT = "five_point"
    SEVEN_POINT = "seven_point"
    TEN_POINT = "ten_point"


class ShotType(str, Enum):
    NONE = "none"
    FOREHAND = "forehand"
    BACKHAND = "backhand"
    VOLLEY = "volley"
    DROPSHOT = "dropshot"
    OVERHEAD = "overhead"
    LOB = "lob"
    ACE = "ace"
    SLICE = "slice"
    SERVE_UNRETURNED = "serve_unreturned"
    OPPONENT_UNFORCED_ERROR = "opponent_unforced_error"
    FOREHAND_WINNER = "forehand_winner"
    BACKHAND_WINNER = "backhand_winner"
    VOLLEY_WINNER = "volley_winner"
    DROPSHOT_WINNER = "dropshot_winner"
    OVERHEAD_WINNER = "overhead_winner"
    LOB_WINNER = "lob_winner"
    SLICE_WINNER = "slice_winner"
    FOREHAND_UNRETURNED = "forehand_unreturned"
    BACKHAND_UNRETURNED = "backhand_unreturned"
    VOLLEY_UNRETURNED = "volley_unreturned"
    DROPSHOT_UNRETURNED = "dropshot_unreturned"
    OVERHEAD_UNRETURNED = "overhead_unreturned"
    LOB_UNRETURNED = "lob_unreturned"
    SLICE_UNRETURNED = "slice_unreturned"


class ErrorType(str, Enum):
    NONE = "none"
    FOREHAND_UNFORCED = "forehand_unforced"
    BACKHAND_UNFORCED = "backhand_unforced"
    VOLLEY_UNFORCED = "volley_unforced"
    DROPSHOT_UNFORCED = "dropshot_unforced"
    OVERHEAD_UNFORCED = "overhead_unforced"
    SLICE_UNFORCED = "slice_unforced"
    LOB_UNFORCED = "lob_unforced"
    FORCED_ERROR = "forced_error"


class MentalPhysicalState(str, Enum):
    CONFIDENT = "confident"
    NERVOUS = "nervous"
    TIRED = "tired"
    ENERGETIC = "energetic"
    FOCUSED = "focused"
    DISTRACTED = "distracted"
    FRUSTRATED = "frustrated"
    CALM = "calm"
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"


@dataclass
class Game:
    id: str
    is_player_serving: bool
    points: List["Point"] = field(default_factory=list)
    player_score: int = 0
    opponent_score: int = 0
    is_completed: bool = False


@dataclass
class Tiebreak:
    id: str
    type: TiebreakType
    points: List["Point"] = field(default_factory=list)
    player_points: int = 0
    opponent_points: int = 0
    is_completed: bool = False


@dataclass
class TennisSet:
    id: str
    player_games: int = 0
    opponent_games: int = 0
    game_ids: List[str] = field(default_factory=list)
    tiebreak_id: Optional[str] = None
    is_completed: bool = False
    # Whole set is a single deciding tiebreak (third-set override).
    tiebreak_only: bool = False


@dataclass
class Match:
    id: str
    player: "Player"
    opponent: "Player"
    date: datetime
    created_at: datetime
    set_ids: List[str] = field(default_factory=list)
    is_completed: bool = False
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_duration: Optional[int] = None
    ai_insights: Optional[Dict[str, Any]] = None
    comments: Optional[str] = None
    is_no_ad_scoring: bool = False
    match_format: MatchFormat = MatchFormat.REGULAR_SET
    third_set_tiebreak_type: TiebreakType = TiebreakType.SEVEN_POINT
