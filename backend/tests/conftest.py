import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from matchpoint.domain import MatchFormat, TiebreakType  # noqa: E402
from matchpoint.schemas import MatchConfig, Player, Point  # noqa: E402
from matchpoint.services.match_store import MatchStore  # noqa: E402


class FakeClock:
    """Deterministic clock: each call advances by one minute."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        self.calls = 0

    def __call__(self) -> datetime:
        value = self.now
        self.now = self.now + timedelta(minutes=1)
        self.calls += 1
        return value


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def make_store(clock=None, **config) -> MatchStore:
    store = MatchStore(clock=clock or FakeClock())
    store.create_match(
        MatchConfig(
            player=Player(id="p1", name="Ana"),
            opponent=Player(id="p2", name="Bea"),
            **config,
        )
    )
    store.add_game(0, True)
    return store


@pytest.fixture()
def store(clock) -> MatchStore:
    return make_store(clock)


@pytest.fixture()
def short_store(clock) -> MatchStore:
    return make_store(clock, match_format=MatchFormat.SHORT_SET)


@pytest.fixture()
def ten_point_store(clock) -> MatchStore:
    return make_store(clock, third_set_tiebreak_type=TiebreakType.TEN_POINT)


# ---------------------------------------------------------
# Helpers for driving a store through the current position
# ---------------------------------------------------------

def point(is_player: bool) -> Point:
    return Point(is_player_point=is_player)


def current_position(store: MatchStore):
    """Index of the last set and of its last game."""
    match = store.current_match
    set_index = len(match.set_ids) - 1
    tennis_set = store.arena.sets[match.set_ids[set_index]]
    return set_index, len(tennis_set.game_ids) - 1, tennis_set


def play(store: MatchStore, is_player: bool) -> bool:
    """Play one point wherever the match currently is."""
    set_index, game_index, tennis_set = current_position(store)
    if tennis_set.tiebreak_id is not None:
        return store.add_tiebreak_point(set_index, point(is_player))
    return store.add_point(set_index, game_index, point(is_player))


def win_game(store: MatchStore, is_player: bool) -> None:
    for _ in range(4):
        play(store, is_player)


def win_games(store: MatchStore, player_games: int, opponent_games: int) -> None:
    """Alternate games until the set reaches the given count."""
    p = o = 0
    while p < player_games or o < opponent_games:
        if p < player_games and (p <= o or o >= opponent_games):
            win_game(store, True)
            p += 1
        else:
            win_game(store, False)
            o += 1
