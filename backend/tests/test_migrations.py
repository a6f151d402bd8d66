import pytest

from matchpoint.config import SCHEMA_VERSION
from matchpoint.domain import MatchFormat, ShotType, TiebreakType
from matchpoint.exceptions import SchemaVersionError
from matchpoint.schemas import PersistedState
from matchpoint.services.arena import MatchArena
from matchpoint.services.migrations import detect_version, migrate


def _legacy_point(point_id, is_player, **extra):
    data = {
        "id": point_id,
        "isPlayerPoint": is_player,
        "serveData": {"isFirstServeIn": True, "isDoubleFault": False},
        "rallyLength": 0,
        "mentalPhysicalStates": [],
        "timestamp": "2024-05-01T10:05:00.000Z",
    }
    data.update(extra)
    return data


def _legacy_blob():
    return {
        "version": 0,
        "state": {
            "players": [
                {"id": "p1", "name": "Ana", "createdAt": "2024-04-01T09:00:00.000Z"},
                {"id": "p2", "name": "Bea"},
            ],
            "currentMatch": {"id": "m1"},
            "matches": [
                {
                    "id": "m1",
                    "player": {"id": "p1", "name": "Ana"},
                    "opponent": {"id": "p2", "name": "Bea"},
                    "date": "2024-05-01T10:00:00.000Z",
                    "createdAt": "2024-05-01T10:00:00.000Z",
                    "startTime": "2024-05-01T10:01:00.000Z",
                    "location": None,
                    "isCompleted": False,
                    "isNoAdScoring": True,
                    "matchFormat": "short_set",
                    "thirdSetTiebreakType": "seven_point",
                    "aiInsights": {"keyStrengths": ["serve"], "overallAssessment": "ok"},
                    "sets": [
                        {
                            "id": "s1",
                            "playerGames": 4,
                            "opponentGames": 2,
                            "isCompleted": True,
                            "games": [
                                {
                                    "id": "g1",
                                    "isPlayerServing": True,
                                    "playerScore": 0,
                                    "opponentScore": 0,
                                    "isCompleted": True,
                                    "points": [
                                        _legacy_point("pt1", True, shotType="forehand", rallyLength=7),
                                        _legacy_point("pt2", False),
                                    ],
                                }
                            ],
                        },
                        {
                            "id": "s2",
                            "playerGames": 1,
                            "opponentGames": 4,
                            "isCompleted": True,
                            "games": [],
                        },
                        {
                            "id": "s3",
                            "playerGames": 0,
                            "opponentGames": 0,
                            "isCompleted": False,
                            "games": [],
                            "tiebreak": {
                                "id": "t1",
                                "type": "five_point",
                                "playerPoints": 1,
                                "opponentPoints": 0,
                                "isCompleted": False,
                                "points": [_legacy_point("pt3", True)],
                            },
                        },
                    ],
                }
            ],
        },
    }


def test_legacy_state_is_upgraded():
    data = migrate(_legacy_blob())
    assert data["schema_version"] == SCHEMA_VERSION

    state = PersistedState.model_validate(data)
    assert state.current_match_id == "m1"
    assert [p.name for p in state.players] == ["Ana", "Bea"]

    match = state.matches["m1"]
    assert match.is_no_ad_scoring is True
    assert match.match_format is MatchFormat.SHORT_SET
    assert match.start_time is not None
    assert match.location is None
    assert match.ai_insights == {"keyStrengths": ["serve"], "overallAssessment": "ok"}

    first = match.sets[0].games[0].points[0]
    assert first.shot_type is ShotType.FOREHAND
    assert first.rally_length == 7
    assert match.sets[0].games[0].points[1].rally_length is None

    third = match.sets[2]
    assert third.tiebreak_only is True
    assert third.tiebreak.type is TiebreakType.FIVE_POINT
    assert match.sets[1].tiebreak_only is False


def test_upgraded_state_loads_into_arena():
    state = PersistedState.model_validate(migrate(_legacy_blob()))
    arena = MatchArena()
    match = arena.load(state.matches["m1"])
    assert len(list(arena.iter_points(match))) == 3
    assert arena.to_schema(match) == state.matches["m1"]


def test_legacy_without_current_match():
    blob = _legacy_blob()
    del blob["state"]["currentMatch"]
    assert migrate(blob)["current_match_id"] is None


def test_current_version_is_untouched():
    data = {"schema_version": SCHEMA_VERSION, "matches": {}, "players": []}
    assert migrate(data) is data


@pytest.mark.parametrize("version", [SCHEMA_VERSION + 1, -1, "1", True])
def test_unknown_versions_rejected(version):
    with pytest.raises(SchemaVersionError):
        migrate({"schema_version": version})


def test_missing_version_means_legacy():
    assert detect_version({"state": {}}) == 0


@pytest.mark.parametrize(
    "blob",
    [
        {"state": "x"},
        {"matches": [1]},
        {"matches": {"a": {}}},
        {"matches": [{"id": "m", "sets": [1]}]},
        {"matches": [{"id": "m", "sets": [{"tiebreak": ["t"]}]}]},
        {"players": "Ana"},
    ],
    ids=["state", "match", "matches", "set", "tiebreak", "players"],
)
def test_legacy_wrong_nested_types_rejected(blob):
    with pytest.raises(ValueError):
        migrate(blob)
