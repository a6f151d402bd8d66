"""Set progression and match completion rules.

Pure functions over entity records; nothing here mutates state.
"""

from typing import Dict, Iterable, NamedTuple, Optional

from ..config import MAX_SETS, SETS_TO_WIN
from ..domain import MatchFormat, Side, TennisSet, Tiebreak, TiebreakType


class SetRules(NamedTuple):
    games_to_win: int
    tiebreak_at: int
    tiebreak_type: TiebreakType


SET_RULES: Dict[MatchFormat, SetRules] = {
    MatchFormat.REGULAR_SET: SetRules(6, 6, TiebreakType.SEVEN_POINT),
    MatchFormat.SHORT_SET: SetRules(4, 3, TiebreakType.FIVE_POINT),
}


class SetProgress(NamedTuple):
    completed: bool = False
    winner: Optional[Side] = None
    start_tiebreak: Optional[TiebreakType] = None


def rules_for(match_format: MatchFormat) -> SetRules:
    return SET_RULES[MatchFormat(match_format)]


def evaluate_games(
    player_games: int, opponent_games: int, match_format: MatchFormat
) -> SetProgress:
    """Decide what a set's game count means after a game is won."""
    rules = rules_for(match_format)
    lead = player_games - opponent_games
    if player_games >= rules.games_to_win and lead >= 2:
        return SetProgress(True, Side.PLAYER)
    if opponent_games >= rules.games_to_win and -lead >= 2:
        return SetProgress(True, Side.OPPONENT)
    if player_games == opponent_games == rules.tiebreak_at:
        return SetProgress(start_tiebreak=rules.tiebreak_type)
    return SetProgress()


def third_set_override(
    match_format: MatchFormat,
    third_set_tiebreak_type: TiebreakType,
    completed_sets: int,
    set_wins: Dict[Side, int],
) -> Optional[TiebreakType]:
    """Return the tiebreak kind when the next set is a single tiebreak.

    Only the third set can be replaced: short sets at one set all play a
    five point tiebreak, regular sets do so only when a ten point decider
    was configured.
    """
    if completed_sets != MAX_SETS - 1:
        return None
    if MatchFormat(match_format) is MatchFormat.SHORT_SET:
        if set_wins.get(Side.PLAYER, 0) == 1 and set_wins.get(Side.OPPONENT, 0) == 1:
            return TiebreakType.FIVE_POINT
        return None
    if TiebreakType(third_set_tiebreak_type) is TiebreakType.TEN_POINT:
        return TiebreakType.TEN_POINT
    return None


def set_winner(tennis_set: TennisSet, tiebreak: Optional[Tiebreak] = None) -> Optional[Side]:
    if not tennis_set.is_completed:
        return None
    if tiebreak is not None and tiebreak.is_completed:
        player, opponent = tiebreak.player_points, tiebreak.opponent_points
    else:
        player, opponent = tennis_set.player_games, tennis_set.opponent_games
    if player > opponent:
        return Side.PLAYER
    if opponent > player:
        return Side.OPPONENT
    return None


def tally_sets(winners: Iterable[Optional[Side]]) -> Dict[Side, int]:
    wins = {Side.PLAYER: 0, Side.OPPONENT: 0}
    for winner in winners:
        if winner is not None:
            wins[winner] += 1
    return wins


def match_winner(set_wins: Dict[Side, int]) -> Optional[Side]:
    """Best of three: first side to two sets."""
    for side in (Side.PLAYER, Side.OPPONENT):
        if set_wins.get(side, 0) >= SETS_TO_WIN:
            return side
    return None
