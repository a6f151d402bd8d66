"""Persisted state migrations.

Each entry of :data:`MIGRATIONS` upgrades a raw state dict from one
schema version to the next. State written before versioning existed is
treated as version 0.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict

from ..config import SCHEMA_VERSION
from ..exceptions import SchemaVersionError

logger = logging.getLogger(__name__)

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")

# Values under these keys are opaque and copied verbatim.
_OPAQUE_KEYS = {"aiInsights"}


def _snake(name: str) -> str:
    return _CAMEL.sub("_", name).lower()


def _snake_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            _snake(k): (v if k in _OPAQUE_KEYS else _snake_keys(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    return value


def _clean_point(point: Dict[str, Any]) -> Dict[str, Any]:
    # The legacy app stored 0 for "no rally length recorded".
    if not point.get("rally_length"):
        point.pop("rally_length", None)
    for key in ("shot_type", "error_type", "timestamp"):
        if point.get(key) is None:
            point.pop(key, None)
    return point


def _expect(value: Any, kind: type, what: str) -> Any:
    if not isinstance(value, kind):
        raise ValueError(f"legacy {what} is {type(value).__name__}, expected {kind.__name__}")
    return value


def _points(container: Dict[str, Any], what: str) -> list:
    raw = _expect(container.get("points") or [], list, f"{what} points")
    return [_clean_point(_expect(p, dict, "point")) for p in raw]


def _migrate_0_to_1(data: Dict[str, Any]) -> Dict[str, Any]:
    """Legacy camelCase layout -> snake_case, matches keyed by id.

    Raises:
        ValueError: If any nested value has the wrong JSON type.
    """
    state = _expect(data.get("state", data), dict, "state")
    matches: Dict[str, Any] = {}
    for raw in _expect(state.get("matches") or [], list, "matches"):
        match = _snake_keys(_expect(raw, dict, "match"))
        sets = _expect(match.get("sets") or [], list, "sets")
        for index, tennis_set in enumerate(sets):
            _expect(tennis_set, dict, "set")
            games = _expect(tennis_set.get("games") or [], list, "games")
            tennis_set["games"] = games
            for game in games:
                _expect(game, dict, "game")["points"] = _points(game, "game")
            tiebreak = tennis_set.get("tiebreak")
            if tiebreak:
                _expect(tiebreak, dict, "tiebreak")["points"] = _points(tiebreak, "tiebreak")
            tennis_set["tiebreak_only"] = bool(tiebreak) and not games and index == 2
        for key, value in list(match.items()):
            if value is None:
                del match[key]
        matches[match["id"]] = match

    current = state.get("currentMatch") or {}
    return {
        "schema_version": 1,
        "matches": matches,
        "players": _snake_keys(_expect(state.get("players") or [], list, "players")),
        "current_match_id": current.get("id") if isinstance(current, dict) else None,
    }


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    0: _migrate_0_to_1,
}


def detect_version(data: Dict[str, Any]) -> int:
    version = data.get("schema_version", 0)
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        raise SchemaVersionError(version, SCHEMA_VERSION)
    return version


def migrate(data: Dict[str, Any]) -> Dict[str, Any]:
    """Upgrade ``data`` to :data:`~matchpoint.config.SCHEMA_VERSION`.

    Raises:
        SchemaVersionError: If the version is unknown, newer than this code,
            or has no migration path.
    """
    version = detect_version(data)
    if version > SCHEMA_VERSION:
        raise SchemaVersionError(version, SCHEMA_VERSION)
    while version < SCHEMA_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise SchemaVersionError(version, SCHEMA_VERSION)
        data = step(data)
        logger.info("Migrated persisted state from version %d to %d", version, data["schema_version"])
        version = data["schema_version"]
    return data
