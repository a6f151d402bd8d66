import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import SCHEMA_VERSION
from .domain import (
    ErrorType,
    MatchFormat,
    MentalPhysicalState,
    ShotType,
    TiebreakType,
)
from .time_utils import coerce_utc, require_utc, utcnow


def new_id() -> str:
    return uuid.uuid4().hex


ServeOutcome = Literal["first_serve_in", "second_serve_in", "double_fault"]


class Player(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=50)
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("name must be a string")
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("name must not be empty")
        return trimmed


class ServeData(BaseModel):
    is_first_serve_in: bool = True
    is_second_serve_in: Optional[bool] = None
    is_double_fault: bool = False

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_double_fault(self) -> "ServeData":
        if self.is_double_fault and (self.is_first_serve_in or self.is_second_serve_in):
            raise ValueError("a double fault cannot have a serve in")
        return self

    @property
    def outcome(self) -> ServeOutcome:
        if self.is_double_fault:
            return "double_fault"
        if self.is_first_serve_in:
            return "first_serve_in"
        return "second_serve_in"


class Point(BaseModel):
    """A single recorded point. Immutable once created."""

    id: str = Field(default_factory=new_id)
    is_player_point: bool
    shot_type: Optional[ShotType] = None
    error_type: Optional[ErrorType] = None
    serve_data: ServeData = Field(default_factory=ServeData)
    rally_length: Optional[int] = Field(default=None, ge=1)
    mental_physical_states: List[MentalPhysicalState] = Field(default_factory=list)
    # Only set on tiebreak points, where the server changes mid-"game".
    is_player_serving: Optional[bool] = None
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return coerce_utc(value)


class MatchConfig(BaseModel):
    player: Player
    opponent: Player
    id: str = Field(default_factory=new_id)
    is_no_ad_scoring: bool = False
    match_format: MatchFormat = MatchFormat.REGULAR_SET
    third_set_tiebreak_type: TiebreakType = TiebreakType.SEVEN_POINT
    location: Optional[str] = None
    date: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("date")
    @classmethod
    def _aware_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return require_utc(value, field_name="date")

    @model_validator(mode="after")
    def _distinct_sides(self) -> "MatchConfig":
        if self.player.id == self.opponent.id:
            raise ValueError("player and opponent must be different players")
        return self


# --- persisted aggregate ---------------------------------------------------


class GameSchema(BaseModel):
    id: str
    is_player_serving: bool
    points: List[Point] = Field(default_factory=list)
    player_score: int = 0
    opponent_score: int = 0
    is_completed: bool = False


class TiebreakSchema(BaseModel):
    id: str
    type: TiebreakType
    points: List[Point] = Field(default_factory=list)
    player_points: int = Field(default=0, ge=0)
    opponent_points: int = Field(default=0, ge=0)
    is_completed: bool = False


class SetSchema(BaseModel):
    id: str
    player_games: int = Field(default=0, ge=0)
    opponent_games: int = Field(default=0, ge=0)
    games: List[GameSchema] = Field(default_factory=list)
    tiebreak: Optional[TiebreakSchema] = None
    is_completed: bool = False
    tiebreak_only: bool = False


class MatchSchema(BaseModel):
    id: str
    player: Player
    opponent: Player
    date: datetime
    created_at: datetime
    sets: List[SetSchema] = Field(default_factory=list, max_length=3)
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


class PersistedState(BaseModel):
    schema_version: int = SCHEMA_VERSION
    matches: Dict[str, MatchSchema] = Field(default_factory=dict)
    players: List[Player] = Field(default_factory=list)
    current_match_id: Optional[str] = None

    @model_validator(mode="after")
    def _keys_match_ids(self) -> "PersistedState":
        for key, match in self.matches.items():
            if key != match.id:
                raise ValueError(f"match stored under {key!r} has id {match.id!r}")
        if self.current_match_id is not None and self.current_match_id not in self.matches:
            self.current_match_id = None
        return self
