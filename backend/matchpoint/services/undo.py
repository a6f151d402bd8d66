"""Single-step undo for point events.

Every primitive mutation made through a :class:`Transaction` yields an
inverse operation. A point event's inverses, together with the flags that
describe which cascades fired, form a :class:`LastAction`; the
:class:`ActionRecorder` keeps exactly one of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..domain import Game, Match, TennisSet, Tiebreak
from ..schemas import Point
from .arena import KIND_GAME, KIND_MATCH, KIND_SET, KIND_TIEBREAK, MatchArena, Record, kind_of

logger = logging.getLogger(__name__)


class InverseOp(Protocol):
    def apply(self, arena: MatchArena) -> None: ...


@dataclass(frozen=True)
class RestoreFields:
    kind: str
    record_id: str
    before: Tuple[Tuple[str, Any], ...]

    def apply(self, arena: MatchArena) -> None:
        record = arena.get(self.kind, self.record_id)
        if record is None:
            return
        for name, value in self.before:
            setattr(record, name, value)


@dataclass(frozen=True)
class RemovePoint:
    kind: str
    record_id: str
    point_id: str

    def apply(self, arena: MatchArena) -> None:
        record = arena.get(self.kind, self.record_id)
        if record is None:
            return
        record.points = [p for p in record.points if p.id != self.point_id]


@dataclass(frozen=True)
class DetachGame:
    set_id: str
    game_id: str

    def apply(self, arena: MatchArena) -> None:
        tennis_set = arena.sets.get(self.set_id)
        if tennis_set is not None and self.game_id in tennis_set.game_ids:
            tennis_set.game_ids = [g for g in tennis_set.game_ids if g != self.game_id]
        arena.games.pop(self.game_id, None)


@dataclass(frozen=True)
class DetachTiebreak:
    set_id: str
    tiebreak_id: str

    def apply(self, arena: MatchArena) -> None:
        tennis_set = arena.sets.get(self.set_id)
        if tennis_set is not None and tennis_set.tiebreak_id == self.tiebreak_id:
            tennis_set.tiebreak_id = None
        arena.tiebreaks.pop(self.tiebreak_id, None)


@dataclass(frozen=True)
class DetachSet:
    match_id: str
    set_id: str

    def apply(self, arena: MatchArena) -> None:
        match = arena.matches.get(self.match_id)
        if match is not None and self.set_id in match.set_ids:
            match.set_ids = [s for s in match.set_ids if s != self.set_id]
        arena.drop_set(self.set_id)


class Transaction:
    """Applies mutations to the arena and collects their inverses."""

    def __init__(self, arena: MatchArena) -> None:
        self.arena = arena
        self.inverses: List[InverseOp] = []

    def assign(self, record: Record, **changes: Any) -> None:
        before = tuple((name, getattr(record, name)) for name in changes)
        for name, value in changes.items():
            setattr(record, name, value)
        self.inverses.append(RestoreFields(kind_of(record), record.id, before))

    def append_point(self, record: Game | Tiebreak, point: Point) -> None:
        record.points = [*record.points, point]
        self.inverses.append(RemovePoint(kind_of(record), record.id, point.id))

    def attach_game(self, tennis_set: TennisSet, game: Game) -> None:
        self.arena.put(game)
        tennis_set.game_ids = [*tennis_set.game_ids, game.id]
        self.inverses.append(DetachGame(tennis_set.id, game.id))

    def attach_tiebreak(self, tennis_set: TennisSet, tiebreak: Tiebreak) -> None:
        self.arena.put(tiebreak)
        tennis_set.tiebreak_id = tiebreak.id
        self.inverses.append(DetachTiebreak(tennis_set.id, tiebreak.id))

    def attach_set(self, match: Match, tennis_set: TennisSet) -> None:
        self.arena.put(tennis_set)
        match.set_ids = [*match.set_ids, tennis_set.id]
        self.inverses.append(DetachSet(match.id, tennis_set.id))


class ActionKind(str, Enum):
    REGULAR_POINT = "regular_point"
    TIEBREAK_POINT = "tiebreak_point"


@dataclass
class LastAction:
    kind: ActionKind
    match_id: str
    set_index: int
    point_id: str
    game_index: Optional[int] = None
    game_completed: bool = False
    set_completed: bool = False
    match_completed: bool = False
    game_added: bool = False
    set_added: bool = False
    tiebreak_started: bool = False
    tiebreak_completed: bool = False
    inverses: List[InverseOp] = field(default_factory=list)

    def before(self, kind: str, record_id: str) -> Dict[str, Any]:
        """Prior values of every field the action changed on one record."""
        values: Dict[str, Any] = {}
        # Earliest capture wins: that is the value before the action.
        for op in reversed(self.inverses):
            if isinstance(op, RestoreFields) and op.kind == kind and op.record_id == record_id:
                values.update(dict(op.before))
        return values

    @property
    def previous_match_state(self) -> Dict[str, Any]:
        return self.before(KIND_MATCH, self.match_id)


class ActionRecorder:
    """Single-slot buffer holding the most recent undoable action."""

    def __init__(self) -> None:
        self._slot: Optional[LastAction] = None

    @property
    def last_action(self) -> Optional[LastAction]:
        return self._slot

    def record(self, action: LastAction, tx: Transaction) -> None:
        action.inverses = list(tx.inverses)
        self._slot = action

    def clear(self) -> None:
        self._slot = None

    def undo(self, arena: MatchArena) -> Optional[LastAction]:
        action = self._slot
        if action is None:
            return None
        self._slot = None
        for op in reversed(action.inverses):
            op.apply(arena)
        logger.debug(
            "Undid %s %s in match %s (set %d)",
            action.kind.value,
            action.point_id,
            action.match_id,
            action.set_index,
        )
        return action


__all__ = [
    "ActionKind",
    "ActionRecorder",
    "DetachGame",
    "DetachSet",
    "DetachTiebreak",
    "InverseOp",
    "KIND_GAME",
    "KIND_MATCH",
    "KIND_SET",
    "KIND_TIEBREAK",
    "LastAction",
    "RemovePoint",
    "RestoreFields",
    "Transaction",
]
