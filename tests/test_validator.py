import pytest

from idleracer.errors import ValidationError
from idleracer.validation.validator import validate_game_data

MINIMAL = {
    "money": 1000,
    "level": 1,
    "cars": [{"power": 50, "speed": 60, "handling": 70, "acceleration": 55}],
}


def _doc(**overrides):
    doc = {**MINIMAL, "cars": [dict(c) for c in MINIMAL["cars"]]}
    doc.update(overrides)
    return doc


def test_minimal_document_is_accepted():
    gd = validate_game_data(_doc())
    assert gd.money == 1000
    assert gd.level == 1
    assert gd.cars[0].power == 50
    assert gd.cars[0].fuel == gd.cars[0].max_fuel


@pytest.mark.parametrize("payload", [None, [], "money=1000", 42])
def test_non_object_rejected(payload):
    with pytest.raises(ValidationError, match="format"):
        validate_game_data(payload)


def test_negative_money_rejected():
    with pytest.raises(ValidationError, match="money"):
        validate_game_data(_doc(money=-1))


def test_level_above_cap_rejected():
    with pytest.raises(ValidationError, match="level"):
        validate_game_data(_doc(level=101))


def test_empty_garage_rejected():
    with pytest.raises(ValidationError, match="cars"):
        validate_game_data(_doc(cars=[]))


def test_stat_out_of_range_rejected():
    with pytest.raises(ValidationError, match="power"):
        validate_game_data(_doc(cars=[{"power": 500, "speed": 60, "handling": 70, "acceleration": 55}]))


def test_fuel_above_tank_rejected():
    car = {"power": 50, "speed": 60, "handling": 70, "acceleration": 55, "fuel": 31, "max_fuel": 30}
    with pytest.raises(ValidationError, match="max_fuel"):
        validate_game_data(_doc(cars=[car]))


def test_inconsistent_stats_rejected():
    with pytest.raises(ValidationError, match="wins exceed"):
        validate_game_data(_doc(stats={"total_races": 2, "wins": 3}))


def test_special_parts_must_be_booleans():
    car = {"power": 50, "speed": 60, "handling": 70, "acceleration": 55,
           "special_parts": {"nitro": "yes"}}
    with pytest.raises(ValidationError, match="nitro"):
        validate_game_data(_doc(cars=[car]))


def test_current_car_out_of_range():
    with pytest.raises(ValidationError, match="current_car"):
        validate_game_data(_doc(current_car=1))


def test_duplicate_achievements_collapse():
    gd = validate_game_data(_doc(achievements=[{"id": "first_win"}, {"id": "first_win"}]))
    assert [a.id for a in gd.achievements] == ["first_win"]
