"""Tennis scoring counters.
Advances a game along the 0-15-30-40 ladder and a tiebreak by raw points."""

from typing import NamedTuple, Optional

from ..domain import Side, TiebreakType
from ..exceptions import InvalidScoreError

ADVANTAGE = 45
LADDER = (0, 15, 30, 40)
_NEXT = {0: 15, 15: 30, 30: 40}

TIEBREAK_MIN_POINTS = {
    TiebreakType.FIVE_POINT: 5,
    TiebreakType.SEVEN_POINT: 7,
    TiebreakType.TEN_POINT: 10,
}


class GameScore(NamedTuple):
    player_score: int
    opponent_score: int
    completed: bool = False
    winner: Optional[Side] = None


class TiebreakScore(NamedTuple):
    player_points: int
    opponent_points: int
    completed: bool = False
    winner: Optional[Side] = None


def _check(player_score: int, opponent_score: int) -> None:
    valid = LADDER + (ADVANTAGE,)
    if player_score not in valid or opponent_score not in valid:
        raise InvalidScoreError(player_score, opponent_score)
    if ADVANTAGE in (player_score, opponent_score) and {player_score, opponent_score} != {40, ADVANTAGE}:
        raise InvalidScoreError(player_score, opponent_score)


def score_game(
    player_score: int, opponent_score: int, winner: Side, no_ad: bool = False
) -> GameScore:
    """Apply one point to an in-progress game.

    Scores are ladder values; ``ADVANTAGE`` marks the side holding
    advantage. A completed game resets both scores to 0.
    """
    _check(player_score, opponent_score)
    if winner is Side.PLAYER:
        mine, theirs = player_score, opponent_score
    else:
        mine, theirs = opponent_score, player_score

    if mine in _NEXT:
        mine = _NEXT[mine]
    elif mine == ADVANTAGE or theirs < 40:
        return GameScore(0, 0, True, winner)
    elif theirs == ADVANTAGE:
        mine = theirs = 40
    elif no_ad:
        return GameScore(0, 0, True, winner)
    else:
        mine = ADVANTAGE

    if winner is Side.PLAYER:
        return GameScore(mine, theirs)
    return GameScore(theirs, mine)


def score_tiebreak(
    player_points: int, opponent_points: int, winner: Side, min_points: int
) -> TiebreakScore:
    """Apply one point to a tiebreak.

    Won at ``min_points`` or more with a lead of two; there is no cap.
    """
    if winner is Side.PLAYER:
        player_points += 1
    else:
        opponent_points += 1

    lead = player_points - opponent_points
    if player_points >= min_points and lead >= 2:
        return TiebreakScore(player_points, opponent_points, True, Side.PLAYER)
    if opponent_points >= min_points and -lead >= 2:
        return TiebreakScore(player_points, opponent_points, True, Side.OPPONENT)
    return TiebreakScore(player_points, opponent_points)


def tiebreak_min_points(tiebreak_type: TiebreakType) -> int:
    return TIEBREAK_MIN_POINTS[TiebreakType(tiebreak_type)]


def tiebreak_server(first_server_is_player: bool, points_played: int) -> bool:
    """Return ``True`` if the player serves the next tiebreak point.

    The first server serves one point, then the sides alternate every
    two points.
    """
    if points_played <= 0:
        return first_server_is_player
    block = (points_played - 1) // 2
    return first_server_is_player if block % 2 == 1 else not first_server_is_player


def score_to_string(score: int) -> str:
    if score == ADVANTAGE:
        return "Ad"
    return str(score)


def format_enum_value(value: str) -> str:
    """``forehand_winner`` -> ``Forehand Winner``."""
    raw = getattr(value, "value", value)
    return " ".join(word.capitalize() for word in str(raw).split("_"))
