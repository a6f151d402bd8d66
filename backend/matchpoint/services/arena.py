"""Entity arena: every record of every match, looked up by id."""

from __future__ import annotations

from dataclasses import fields
from typing import Dict, Iterator, List, Optional, Union

from ..domain import Game, Match, TennisSet, Tiebreak
from ..schemas import GameSchema, MatchSchema, Point, SetSchema, TiebreakSchema

Record = Union[Match, TennisSet, Game, Tiebreak]

KIND_MATCH = "match"
KIND_SET = "set"
KIND_GAME = "game"
KIND_TIEBREAK = "tiebreak"

_KINDS = {
    Match: KIND_MATCH,
    TennisSet: KIND_SET,
    Game: KIND_GAME,
    Tiebreak: KIND_TIEBREAK,
}


def kind_of(record: Record) -> str:
    return _KINDS[type(record)]


class MatchArena:
    def __init__(self) -> None:
        self.matches: Dict[str, Match] = {}
        self.sets: Dict[str, TennisSet] = {}
        self.games: Dict[str, Game] = {}
        self.tiebreaks: Dict[str, Tiebreak] = {}
        self._tables = {
            KIND_MATCH: self.matches,
            KIND_SET: self.sets,
            KIND_GAME: self.games,
            KIND_TIEBREAK: self.tiebreaks,
        }

    def table(self, kind: str) -> Dict[str, Record]:
        return self._tables[kind]

    def put(self, record: Record) -> Record:
        self.table(kind_of(record))[record.id] = record
        return record

    def get(self, kind: str, record_id: str) -> Optional[Record]:
        return self.table(kind).get(record_id)

    # -- navigation ------------------------------------------------------

    def sets_of(self, match: Match) -> List[TennisSet]:
        return [self.sets[sid] for sid in match.set_ids]

    def games_of(self, tennis_set: TennisSet) -> List[Game]:
        return [self.games[gid] for gid in tennis_set.game_ids]

    def tiebreak_of(self, tennis_set: TennisSet) -> Optional[Tiebreak]:
        if tennis_set.tiebreak_id is None:
            return None
        return self.tiebreaks.get(tennis_set.tiebreak_id)

    def set_at(self, match: Match, index: int) -> Optional[TennisSet]:
        if not 0 <= index < len(match.set_ids):
            return None
        return self.sets[match.set_ids[index]]

    def game_at(self, tennis_set: TennisSet, index: int) -> Optional[Game]:
        if not 0 <= index < len(tennis_set.game_ids):
            return None
        return self.games[tennis_set.game_ids[index]]

    def iter_points(self, match: Match) -> Iterator[Point]:
        for tennis_set in self.sets_of(match):
            for game in self.games_of(tennis_set):
                yield from game.points
            tiebreak = self.tiebreak_of(tennis_set)
            if tiebreak is not None:
                yield from tiebreak.points

    # -- removal ---------------------------------------------------------

    def drop_set(self, set_id: str) -> None:
        tennis_set = self.sets.pop(set_id, None)
        if tennis_set is None:
            return
        for gid in tennis_set.game_ids:
            self.games.pop(gid, None)
        if tennis_set.tiebreak_id is not None:
            self.tiebreaks.pop(tennis_set.tiebreak_id, None)

    def drop_match(self, match_id: str) -> None:
        match = self.matches.pop(match_id, None)
        if match is None:
            return
        for sid in match.set_ids:
            self.drop_set(sid)

    def clear(self) -> None:
        for table in self._tables.values():
            table.clear()

    # -- aggregate conversion -------------------------------------------

    def to_schema(self, match: Match) -> MatchSchema:
        sets = []
        for tennis_set in self.sets_of(match):
            tiebreak = self.tiebreak_of(tennis_set)
            sets.append(
                SetSchema(
                    id=tennis_set.id,
                    player_games=tennis_set.player_games,
                    opponent_games=tennis_set.opponent_games,
                    games=[
                        GameSchema(**_values(game)) for game in self.games_of(tennis_set)
                    ],
                    tiebreak=TiebreakSchema(**_values(tiebreak)) if tiebreak else None,
                    is_completed=tennis_set.is_completed,
                    tiebreak_only=tennis_set.tiebreak_only,
                )
            )
        data = _values(match)
        data.pop("set_ids")
        return MatchSchema(sets=sets, **data)

    def load(self, schema: MatchSchema) -> Match:
        """Insert a persisted aggregate, replacing any match with the same id."""
        self.drop_match(schema.id)
        set_ids = []
        for set_schema in schema.sets:
            game_ids = []
            for game_schema in set_schema.games:
                self.put(Game(**game_schema.model_dump(exclude={"points"}), points=list(game_schema.points)))
                game_ids.append(game_schema.id)
            tiebreak_id = None
            if set_schema.tiebreak is not None:
                tb = set_schema.tiebreak
                self.put(Tiebreak(**tb.model_dump(exclude={"points"}), points=list(tb.points)))
                tiebreak_id = tb.id
            self.put(
                TennisSet(
                    id=set_schema.id,
                    player_games=set_schema.player_games,
                    opponent_games=set_schema.opponent_games,
                    game_ids=game_ids,
                    tiebreak_id=tiebreak_id,
                    is_completed=set_schema.is_completed,
                    tiebreak_only=set_schema.tiebreak_only,
                )
            )
            set_ids.append(set_schema.id)
        data = schema.model_dump(exclude={"sets", "player", "opponent"})
        match = Match(
            player=schema.player,
            opponent=schema.opponent,
            set_ids=set_ids,
            **data,
        )
        self.put(match)
        return match


def _values(record: Record) -> dict:
    # Shallow: keeps Point/Player models as they are.
    return {f.name: getattr(record, f.name) for f in fields(record)}
