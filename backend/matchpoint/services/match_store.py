"""Match store: turns point events into game, set and match state.

A :class:`MatchStore` is an explicit context object. It owns an arena of
entity records for every tracked match, a player list, the id of the
current match and the single undoable :class:`~.undo.LastAction`.

Operations never raise for caller errors: unknown ids and out-of-range
indices leave state untouched and return ``False``. Every operation that
changes state returns ``True`` and notifies subscribers.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..config import MAX_SETS
from ..domain import Game, Match, Side, TennisSet, Tiebreak, TiebreakType
from ..schemas import MatchConfig, MatchSchema, PersistedState, Player, Point, new_id
from ..scoring.policies import (
    evaluate_games,
    match_winner,
    set_winner,
    tally_sets,
    third_set_override,
)
from ..scoring.tennis import score_game, score_tiebreak, tiebreak_min_points, tiebreak_server
from ..time_utils import duration_ms, require_utc, utcnow
from .arena import MatchArena
from .undo import ActionKind, ActionRecorder, LastAction, Transaction

logger = logging.getLogger(__name__)

Listener = Callable[["MatchStore"], None]

_UPDATABLE_MATCH_FIELDS = {"location", "date"}


class MatchStore:
    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self.arena = MatchArena()
        self.players: List[Player] = []
        self.current_match_id: Optional[str] = None
        self.recorder = ActionRecorder()
        self._clock = clock
        self._listeners: List[Listener] = []

    # =========================================================
    # SUBSCRIPTIONS
    # =========================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> bool:
        for listener in list(self._listeners):
            listener(self)
        return True

    # =========================================================
    # QUERIES
    # =========================================================

    @property
    def matches(self) -> List[Match]:
        return list(self.arena.matches.values())

    @property
    def current_match(self) -> Optional[Match]:
        if self.current_match_id is None:
            return None
        return self.arena.matches.get(self.current_match_id)

    @property
    def last_action(self) -> Optional[LastAction]:
        return self.recorder.last_action

    def get_match(self, match_id: str) -> Optional[Match]:
        return self.arena.matches.get(match_id)

    def snapshot(self, match_id: Optional[str] = None) -> Optional[MatchSchema]:
        """Nested, read-only copy of a match (current match by default)."""
        match = self.get_match(match_id) if match_id else self.current_match
        if match is None:
            return None
        return self.arena.to_schema(match)

    def iter_points(self, match_id: Optional[str] = None) -> Iterator[Point]:
        match = self.get_match(match_id) if match_id else self.current_match
        if match is None:
            return iter(())
        return self.arena.iter_points(match)

    def export_state(self) -> PersistedState:
        return PersistedState(
            matches={m.id: self.arena.to_schema(m) for m in self.matches},
            players=list(self.players),
            current_match_id=self.current_match_id,
        )

    def replace_state(self, state: PersistedState) -> None:
        """Install rehydrated state. Subscribers are not notified."""
        self.arena.clear()
        for schema in state.matches.values():
            self.arena.load(schema)
        self.players = list(state.players)
        self.current_match_id = state.current_match_id
        self.recorder.clear()
        logger.info(
            "Loaded %d match(es) and %d player(s)", len(state.matches), len(self.players)
        )

    # =========================================================
    # PLAYERS
    # =========================================================

    def add_player(self, player: Player) -> bool:
        if any(p.id == player.id for p in self.players):
            logger.warning("Player %s already exists", player.id)
            return False
        self.players.append(player)
        return self._changed()

    def update_player(self, player: Player) -> bool:
        """Replace a player's display fields everywhere they appear."""
        if not any(p.id == player.id for p in self.players):
            logger.warning("Cannot update unknown player %s", player.id)
            return False
        self.players = [player if p.id == player.id else p for p in self.players]
        for match in self.matches:
            if match.player.id == player.id:
                match.player = player
            if match.opponent.id == player.id:
                match.opponent = player
        return self._changed()

    def delete_player(self, player_id: str) -> bool:
        remaining = [p for p in self.players if p.id != player_id]
        if len(remaining) == len(self.players):
            return False
        # Match history keeps its copy of the player.
        self.players = remaining
        return self._changed()

    # =========================================================
    # MATCH LIFECYCLE
    # =========================================================

    def create_match(self, config: MatchConfig) -> Match:
        existing = self.get_match(config.id)
        if existing is not None:
            logger.warning("Match %s already exists", config.id)
            return existing

        now = self._clock()
        match = Match(
            id=config.id,
            player=config.player,
            opponent=config.opponent,
            date=config.date or now,
            created_at=now,
            location=config.location,
            is_no_ad_scoring=config.is_no_ad_scoring,
            match_format=config.match_format,
            third_set_tiebreak_type=config.third_set_tiebreak_type,
        )
        self.arena.put(match)
        first_set = TennisSet(id=new_id())
        self.arena.put(first_set)
        match.set_ids = [first_set.id]

        self.current_match_id = match.id
        self.recorder.clear()
        logger.info(
            "Created match %s (%s vs %s, %s)",
            match.id,
            match.player.name,
            match.opponent.name,
            match.match_format.value,
        )
        self._changed()
        return match

    def update_match(self, match_id: str, **fields: Any) -> bool:
        unknown = set(fields) - _UPDATABLE_MATCH_FIELDS
        if unknown:
            logger.warning("Cannot update match field(s) %s", sorted(unknown))
            return False
        match = self.get_match(match_id)
        if match is None:
            logger.warning("Cannot update unknown match %s", match_id)
            return False
        if "date" in fields:
            if not isinstance(fields["date"], datetime):
                logger.warning("Cannot set date of match %s to %r", match_id, fields["date"])
                return False
            try:
                fields["date"] = require_utc(fields["date"], field_name="date")
            except ValueError as exc:
                logger.warning("Cannot update match %s: %s", match_id, exc)
                return False
        for name, value in fields.items():
            setattr(match, name, value)
        return self._changed()

    def delete_match(self, match_id: str) -> bool:
        if match_id not in self.arena.matches:
            return False
        self.arena.drop_match(match_id)
        if self.current_match_id == match_id:
            self.current_match_id = None
        last = self.recorder.last_action
        if last is not None and last.match_id == match_id:
            self.recorder.clear()
        logger.info("Deleted match %s", match_id)
        return self._changed()

    def set_current_match(self, match_id: Optional[str]) -> bool:
        if match_id is not None and match_id not in self.arena.matches:
            logger.warning("Cannot select unknown match %s", match_id)
            return False
        self.current_match_id = match_id
        self.recorder.clear()
        return self._changed()

    def reopen_match(self, match_id: str) -> bool:
        match = self.get_match(match_id)
        if match is None:
            return False
        match.is_completed = False
        match.end_time = None
        match.total_duration = None
        self.recorder.clear()
        logger.info("Reopened match %s", match_id)
        return self._changed()

    def update_match_insights(self, match_id: str, insights: Dict[str, Any]) -> bool:
        match = self.get_match(match_id)
        if match is None:
            return False
        match.ai_insights = insights
        return self._changed()

    def update_match_comments(self, match_id: str, comments: str) -> bool:
        match = self.get_match(match_id)
        if match is None:
            return False
        match.comments = comments
        return self._changed()

    # =========================================================
    # POINT EVENTS
    # =========================================================

    def add_point(self, set_index: int, game_index: int, point: Point) -> bool:
        """Record a regular point and run every cascade it triggers."""
        match = self.current_match
        if match is None:
            logger.warning("add_point ignored: no current match")
            return False
        if match.is_completed:
            logger.debug("add_point ignored: match %s is completed", match.id)
            return False
        tennis_set = self.arena.set_at(match, set_index)
        if tennis_set is None or tennis_set.is_completed or tennis_set.tiebreak_id:
            logger.warning("add_point ignored: set %d is not accepting games", set_index)
            return False
        game = self.arena.game_at(tennis_set, game_index)
        if game is None or game.is_completed:
            logger.warning("add_point ignored: game %d.%d is not open", set_index, game_index)
            return False

        winner = Side.of(point.is_player_point)
        result = score_game(
            game.player_score, game.opponent_score, winner, match.is_no_ad_scoring
        )

        tx = Transaction(self.arena)
        action = LastAction(
            kind=ActionKind.REGULAR_POINT,
            match_id=match.id,
            set_index=set_index,
            game_index=game_index,
            point_id=point.id,
        )
        if match.start_time is None and not self._has_regular_points(match):
            tx.assign(match, start_time=self._clock())

        tx.append_point(game, point)
        tx.assign(
            game,
            player_score=result.player_score,
            opponent_score=result.opponent_score,
            is_completed=result.completed,
        )

        if result.completed:
            action.game_completed = True
            self._award_game(tx, tennis_set, winner)
            logger.debug(
                "Game %d.%d won by %s (%d-%d)",
                set_index,
                game_index,
                winner.value,
                tennis_set.player_games,
                tennis_set.opponent_games,
            )
            progress = evaluate_games(
                tennis_set.player_games, tennis_set.opponent_games, match.match_format
            )
            if progress.completed:
                tx.assign(tennis_set, is_completed=True)
                action.set_completed = True
                self._close_set(tx, match, action, not game.is_player_serving)
            elif progress.start_tiebreak is not None:
                tx.attach_tiebreak(
                    tennis_set, Tiebreak(id=new_id(), type=progress.start_tiebreak)
                )
                action.tiebreak_started = True
                logger.debug(
                    "Set %d tied; started %s tiebreak",
                    set_index,
                    progress.start_tiebreak.value,
                )
            else:
                tx.attach_game(
                    tennis_set, Game(id=new_id(), is_player_serving=not game.is_player_serving)
                )
                action.game_added = True

        self.recorder.record(action, tx)
        return self._changed()

    def add_tiebreak_point(self, set_index: int, point: Point) -> bool:
        """Record a tiebreak point; completing the tiebreak completes the set."""
        match = self.current_match
        if match is None:
            logger.warning("add_tiebreak_point ignored: no current match")
            return False
        if match.is_completed:
            logger.debug("add_tiebreak_point ignored: match %s is completed", match.id)
            return False
        tennis_set = self.arena.set_at(match, set_index)
        tiebreak = self.arena.tiebreak_of(tennis_set) if tennis_set else None
        if tiebreak is None or tiebreak.is_completed:
            logger.warning("add_tiebreak_point ignored: set %d has no open tiebreak", set_index)
            return False

        if point.is_player_serving is None:
            first = self._first_tiebreak_server(match, tennis_set)
            point = point.model_copy(
                update={"is_player_serving": tiebreak_server(first, len(tiebreak.points))}
            )

        winner = Side.of(point.is_player_point)
        result = score_tiebreak(
            tiebreak.player_points,
            tiebreak.opponent_points,
            winner,
            tiebreak_min_points(tiebreak.type),
        )

        tx = Transaction(self.arena)
        action = LastAction(
            kind=ActionKind.TIEBREAK_POINT,
            match_id=match.id,
            set_index=set_index,
            point_id=point.id,
        )
        if match.start_time is None and not self._has_any_points(match):
            tx.assign(match, start_time=self._clock())

        tx.append_point(tiebreak, point)
        tx.assign(
            tiebreak,
            player_points=result.player_points,
            opponent_points=result.opponent_points,
            is_completed=result.completed,
        )

        if result.completed:
            action.tiebreak_completed = True
            action.set_completed = True
            if tennis_set.tiebreak_only:
                tx.assign(
                    tennis_set,
                    player_games=result.player_points,
                    opponent_games=result.opponent_points,
                )
            else:
                self._award_game(tx, tennis_set, winner)
            tx.assign(tennis_set, is_completed=True)
            logger.debug(
                "Tiebreak in set %d won by %s (%d-%d)",
                set_index,
                winner.value,
                result.player_points,
                result.opponent_points,
            )
            self._close_set(tx, match, action, self._server_after_tiebreak(tiebreak))

        self.recorder.record(action, tx)
        return self._changed()

    def undo_last_action(self) -> bool:
        """Reverse the most recent point event. A second call is a no-op."""
        if self.recorder.last_action is None:
            return False
        self.recorder.undo(self.arena)
        return self._changed()

    def undo_last_point(self, set_index: int, game_index: int) -> bool:
        last = self.recorder.last_action
        if (
            last is None
            or last.kind is not ActionKind.REGULAR_POINT
            or last.match_id != self.current_match_id
            or (last.set_index, last.game_index) != (set_index, game_index)
        ):
            return False
        return self.undo_last_action()

    def undo_last_tiebreak_point(self, set_index: int) -> bool:
        last = self.recorder.last_action
        if (
            last is None
            or last.kind is not ActionKind.TIEBREAK_POINT
            or last.match_id != self.current_match_id
            or last.set_index != set_index
        ):
            return False
        return self.undo_last_action()

    # =========================================================
    # MANUAL STRUCTURE
    # =========================================================

    def add_game(self, set_index: int, is_player_serving: bool) -> bool:
        located = self._locate_set(set_index)
        if located is None:
            return False
        _, tennis_set = located
        Transaction(self.arena).attach_game(
            tennis_set, Game(id=new_id(), is_player_serving=is_player_serving)
        )
        self.recorder.clear()
        return self._changed()

    def add_set(self) -> bool:
        """Open the next set, or complete the match if it is already decided."""
        match = self.current_match
        if match is None:
            return False
        if match_winner(self._set_wins(match)) is not None:
            if match.is_completed:
                return False
            self._complete(match)
            self.recorder.clear()
            return self._changed()
        if len(match.set_ids) >= MAX_SETS:
            return False
        self._open_next_set(Transaction(self.arena), match, None)
        self.recorder.clear()
        return self._changed()

    def update_server_for_game(
        self, set_index: int, game_index: int, is_player_serving: bool
    ) -> bool:
        located = self._locate_set(set_index)
        if located is None:
            return False
        game = self.arena.game_at(located[1], game_index)
        if game is None:
            return False
        game.is_player_serving = is_player_serving
        return self._changed()

    def toggle_no_ad_scoring(self) -> bool:
        match = self.current_match
        if match is None:
            return False
        match.is_no_ad_scoring = not match.is_no_ad_scoring
        return self._changed()

    def start_tiebreak(self, set_index: int, tiebreak_type: TiebreakType) -> bool:
        located = self._locate_set(set_index)
        if located is None:
            return False
        _, tennis_set = located
        if tennis_set.tiebreak_id is not None or tennis_set.is_completed:
            return False
        Transaction(self.arena).attach_tiebreak(
            tennis_set, Tiebreak(id=new_id(), type=TiebreakType(tiebreak_type))
        )
        self.recorder.clear()
        return self._changed()

    def complete_game(self, set_index: int, game_index: int) -> bool:
        located = self._locate_set(set_index)
        if located is None:
            return False
        game = self.arena.game_at(located[1], game_index)
        if game is None or game.is_completed:
            return False
        game.is_completed = True
        self.recorder.clear()
        return self._changed()

    def complete_tiebreak(self, set_index: int) -> bool:
        located = self._locate_set(set_index)
        if located is None:
            return False
        match, tennis_set = located
        tiebreak = self.arena.tiebreak_of(tennis_set)
        if tiebreak is None:
            return False
        tiebreak.is_completed = True
        tennis_set.is_completed = True
        if match_winner(self._set_wins(match)) is not None:
            self._complete(match)
        self.recorder.clear()
        return self._changed()

    def complete_set(self, set_index: int) -> bool:
        located = self._locate_set(set_index)
        if located is None:
            return False
        match, tennis_set = located
        tennis_set.is_completed = True
        if match_winner(self._set_wins(match)) is not None:
            self._complete(match)
        self.recorder.clear()
        return self._changed()

    def complete_match(self) -> bool:
        """End the current match, discarding games nobody played."""
        match = self.current_match
        if match is None:
            return False
        for tennis_set in self.arena.sets_of(match):
            for game in self.arena.games_of(tennis_set):
                if not game.points:
                    tennis_set.game_ids = [g for g in tennis_set.game_ids if g != game.id]
                    del self.arena.games[game.id]
        self._complete(match)
        self.recorder.clear()
        return self._changed()

    # =========================================================
    # TIMING
    # =========================================================

    def start_match_timing(self) -> bool:
        match = self.current_match
        if match is None or match.start_time is not None:
            return False
        match.start_time = self._clock()
        return self._changed()

    def end_match_timing(self) -> bool:
        match = self.current_match
        if match is None or match.start_time is None or match.end_time is not None:
            return False
        end = self._clock()
        match.end_time = end
        match.total_duration = duration_ms(match.start_time, end)
        return self._changed()

    # =========================================================
    # INTERNALS
    # =========================================================

    def _locate_set(self, set_index: int) -> Optional[Tuple[Match, TennisSet]]:
        match = self.current_match
        if match is None:
            logger.warning("Ignored set operation: no current match")
            return None
        tennis_set = self.arena.set_at(match, set_index)
        if tennis_set is None:
            logger.warning("Ignored set operation: no set %d in match %s", set_index, match.id)
            return None
        return match, tennis_set

    def _has_regular_points(self, match: Match) -> bool:
        return any(
            game.points
            for tennis_set in self.arena.sets_of(match)
            for game in self.arena.games_of(tennis_set)
        )

    def _has_any_points(self, match: Match) -> bool:
        return any(True for _ in self.arena.iter_points(match))

    def _set_wins(self, match: Match) -> Dict[Side, int]:
        return tally_sets(
            set_winner(s, self.arena.tiebreak_of(s)) for s in self.arena.sets_of(match)
        )

    def _first_tiebreak_server(self, match: Match, tennis_set: TennisSet) -> bool:
        """Side due to serve after the last point played before this tiebreak."""
        sets = self.arena.sets_of(match)
        earlier = sets[: sets.index(tennis_set)]
        for candidate in [tennis_set, *reversed(earlier)]:
            if candidate is not tennis_set:
                tiebreak = self.arena.tiebreak_of(candidate)
                if tiebreak is not None and tiebreak.points:
                    last = tiebreak.points[-1]
                    if last.is_player_serving is not None:
                        return not last.is_player_serving
            games = self.arena.games_of(candidate)
            if games:
                return not games[-1].is_player_serving
        return True

    @staticmethod
    def _server_after_tiebreak(tiebreak: Tiebreak) -> bool:
        # The side that did not serve the final tiebreak point.
        return not tiebreak.points[-1].is_player_serving

    @staticmethod
    def _award_game(tx: Transaction, tennis_set: TennisSet, winner: Side) -> None:
        if winner is Side.PLAYER:
            tx.assign(tennis_set, player_games=tennis_set.player_games + 1)
        else:
            tx.assign(tennis_set, opponent_games=tennis_set.opponent_games + 1)

    def _stamp_end(self, tx: Transaction, match: Match) -> None:
        if match.start_time is None or match.end_time is not None:
            return
        end = self._clock()
        tx.assign(match, end_time=end, total_duration=duration_ms(match.start_time, end))

    def _complete(self, match: Match) -> None:
        tx = Transaction(self.arena)
        tx.assign(match, is_completed=True)
        self._stamp_end(tx, match)
        logger.info("Match %s completed", match.id)

    def _close_set(
        self, tx: Transaction, match: Match, action: LastAction, next_server: bool
    ) -> None:
        winner = match_winner(self._set_wins(match))
        if winner is not None:
            tx.assign(match, is_completed=True)
            self._stamp_end(tx, match)
            action.match_completed = True
            logger.info("Match %s won by %s", match.id, winner.value)
        elif len(match.set_ids) < MAX_SETS:
            self._open_next_set(tx, match, next_server)
            action.set_added = True

    def _open_next_set(
        self, tx: Transaction, match: Match, first_server: Optional[bool]
    ) -> TennisSet:
        sets = self.arena.sets_of(match)
        completed = sum(1 for s in sets if s.is_completed)
        override = third_set_override(
            match.match_format,
            match.third_set_tiebreak_type,
            completed,
            self._set_wins(match),
        )
        tennis_set = TennisSet(id=new_id(), tiebreak_only=override is not None)
        tx.attach_set(match, tennis_set)
        if override is not None:
            tx.attach_tiebreak(tennis_set, Tiebreak(id=new_id(), type=override))
        elif first_server is not None:
            tx.attach_game(tennis_set, Game(id=new_id(), is_player_serving=first_server))
        logger.debug(
            "Opened set %d of match %s%s",
            len(sets) + 1,
            match.id,
            f" as a {override.value} tiebreak" if override is not None else "",
        )
        return tennis_set
