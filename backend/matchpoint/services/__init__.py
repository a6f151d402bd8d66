"""Match store, undo log and the persistence collaborator."""

from .arena import MatchArena
from .match_store import MatchStore
from .undo import ActionKind, ActionRecorder, LastAction, Transaction
from .migrations import migrate
from .persistence import (
    InMemoryKeyValueStore,
    KeyValueStore,
    MatchPersistence,
    MatchRepository,
    RedisKeyValueStore,
    SqlKeyValueStore,
)

__all__ = [
    "MatchArena",
    "MatchStore",
    "ActionKind",
    "ActionRecorder",
    "LastAction",
    "Transaction",
    "migrate",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "MatchPersistence",
    "MatchRepository",
    "RedisKeyValueStore",
    "SqlKeyValueStore",
]
