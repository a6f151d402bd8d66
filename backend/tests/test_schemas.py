from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from matchpoint.domain import MatchFormat
from matchpoint.schemas import MatchConfig, Player, Point, ServeData


def test_player_name_is_trimmed():
    assert Player(name="  Ana  ").name == "Ana"


@pytest.mark.parametrize("name", ["", "   ", "x" * 51])
def test_player_name_rejected(name):
    with pytest.raises(ValidationError):
        Player(name=name)


def test_double_fault_cannot_have_serve_in():
    with pytest.raises(ValidationError):
        ServeData(is_first_serve_in=True, is_double_fault=True)
    with pytest.raises(ValidationError):
        ServeData(is_first_serve_in=False, is_second_serve_in=True, is_double_fault=True)


@pytest.mark.parametrize(
    "serve, outcome",
    [
        (ServeData(), "first_serve_in"),
        (ServeData(is_first_serve_in=False, is_second_serve_in=True), "second_serve_in"),
        (ServeData(is_first_serve_in=False, is_double_fault=True), "double_fault"),
    ],
)
def test_serve_outcome(serve, outcome):
    assert serve.outcome == outcome


def test_point_defaults():
    point = Point(is_player_point=True)
    assert point.serve_data == ServeData()
    assert point.mental_physical_states == []
    assert point.timestamp.tzinfo is not None
    assert Point(is_player_point=True).id != point.id


def test_point_is_immutable():
    point = Point(is_player_point=True)
    with pytest.raises(ValidationError):
        point.is_player_point = False


def test_point_rally_length_positive():
    assert Point(is_player_point=False, rally_length=3).rally_length == 3
    with pytest.raises(ValidationError):
        Point(is_player_point=False, rally_length=0)


def test_point_timestamp_normalized_to_utc():
    naive = datetime(2024, 5, 1, 10, 0)
    point = Point(is_player_point=True, timestamp=naive)
    assert point.timestamp == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_match_config_defaults():
    config = MatchConfig(player=Player(name="Ana"), opponent=Player(name="Bea"))
    assert config.match_format is MatchFormat.REGULAR_SET
    assert config.is_no_ad_scoring is False
    assert config.id


def test_match_config_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        MatchConfig(player=Player(name="Ana"), opponent=Player(name="Bea"), best_of=5)


def test_match_config_rejects_unknown_format():
    with pytest.raises(ValidationError):
        MatchConfig(
            player=Player(name="Ana"), opponent=Player(name="Bea"), match_format="pro_set"
        )


def test_match_config_date_must_be_aware():
    with pytest.raises(ValidationError):
        MatchConfig(
            player=Player(name="Ana"),
            opponent=Player(name="Bea"),
            date=datetime(2024, 5, 1, 10, 0),
        )
    config = MatchConfig(
        player=Player(name="Ana"),
        opponent=Player(name="Bea"),
        date=datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
    )
    assert config.date.tzinfo is not None
