from datetime import timedelta

import pytest

from idleracer.errors import ValidationError
from idleracer.models import GlobalEvent, Opponent, RaceOutcome, Skills, Vehicle
from idleracer.simulation.engine import (
    car_power, price_race, resolve_race, roll_skill_gain, settle_race,
    skill_gain_chance, skill_multiplier,
)

from conftest import FixedRng


def _event(kind, now, **kw):
    return GlobalEvent(type=kind, title=kind, description=kind,
                       start_time=now, end_time=now + timedelta(hours=2), **kw)


def _opponent(difficulty=1.0, reward=600, fuel_cost=8):
    return Opponent(index=0, difficulty_class="medium", name="x",
                    difficulty=difficulty, reward=reward, fuel_cost=fuel_cost)


def _outcome(won):
    return RaceOutcome(won=won, player_time=1, opponent_time=2, nitro_activated=False,
                       player_efficiency=1, opponent_efficiency=1)


def test_car_power_includes_upgrades():
    car = Vehicle(power=40, speed=60, handling=80, acceleration=20)
    assert car_power(car) == 50
    car.upgrades.engine = 2
    car.upgrades.tires = 1
    assert car_power(car) == 56


def test_skill_multiplier():
    assert skill_multiplier(Skills()) == pytest.approx(1.007)
    assert skill_multiplier(Skills(driving=10, speed=10, reaction=10, technique=10)) == pytest.approx(1.07)


def test_stronger_car_always_wins_with_fixed_jitter():
    car = Vehicle(power=150, speed=150, handling=150, acceleration=150)
    outcome = resolve_race(car, Skills(), 0.58, FixedRng())
    assert outcome.won is True
    assert outcome.player_time < outcome.opponent_time
    assert not outcome.nitro_activated


def test_weaker_car_always_loses_with_fixed_jitter():
    car = Vehicle(power=10, speed=10, handling=10, acceleration=10)
    outcome = resolve_race(car, Skills(), 2.0, FixedRng())
    assert outcome.won is False


def test_zero_stat_car_still_resolves():
    outcome = resolve_race(Vehicle(), Skills(), 1.0, FixedRng())
    assert outcome.won is False


def test_nitro_boost():
    car = Vehicle(power=60, speed=60, handling=60, acceleration=60)
    car.special_parts.nitro = True
    boosted = resolve_race(car, Skills(), 1.0, FixedRng(roll=0.1))
    plain = resolve_race(car, Skills(), 1.0, FixedRng(roll=0.5))
    assert boosted.nitro_activated
    assert not plain.nitro_activated
    assert boosted.player_efficiency == pytest.approx(plain.player_efficiency * 1.2, rel=1e-3)


def test_won_is_always_boolean():
    car = Vehicle(power=60, speed=60, handling=60, acceleration=60)
    for _ in range(50):
        assert isinstance(resolve_race(car, Skills(), 1.0).won, bool)


def test_settle_classic_win():
    s = settle_race(_outcome(True), _opponent(), "classic")
    assert (s.reward, s.xp_gained, s.fuel_cost, s.bet_delta) == (600, 80, 8, 0)


def test_settle_loss_pays_nothing_and_loses_bet():
    s = settle_race(_outcome(False), _opponent(), "classic", bet=300)
    assert s.reward == 0
    assert s.bet_delta == -300
    assert s.xp_gained == 20 + 30 + 3


def test_race_type_modifiers():
    s = settle_race(_outcome(True), _opponent(), "endurance")
    assert s.reward == 1200
    assert s.xp_gained == 200
    assert s.fuel_cost == 16
    sprint = settle_race(_outcome(True), _opponent(), "sprint")
    assert sprint.fuel_cost == 4


def test_unknown_race_type():
    with pytest.raises(ValidationError):
        price_race(_opponent(), "drag")


def test_event_effects(now):
    win = _outcome(True)
    assert settle_race(win, _opponent(), "drift", _event("double_rewards", now)).reward == 1440
    assert settle_race(_outcome(False), _opponent(), "classic", _event("double_rewards", now)).reward == 0
    assert settle_race(win, _opponent(), "classic", _event("bonus_xp", now)).xp_gained == 160
    assert settle_race(win, _opponent(), "endurance", _event("free_fuel", now)).fuel_cost == 0
    discount = settle_race(win, _opponent(), "classic", _event("upgrade_discount", now))
    assert (discount.reward, discount.xp_gained, discount.fuel_cost) == (600, 80, 8)


def test_skill_gain_chance_is_capped():
    assert skill_gain_chance(True, "classic", 1.0) == pytest.approx(0.10)
    assert skill_gain_chance(False, "classic", 1.0) == pytest.approx(0.03)
    assert skill_gain_chance(True, "endurance", 5.0) == pytest.approx(0.30)
    assert skill_gain_chance(True, "drift", 5.0) <= 0.35


def test_roll_skill_gain():
    assert roll_skill_gain(True, "classic", 1.0, FixedRng(roll=0.99)) is None
    assert roll_skill_gain(True, "classic", 1.0, FixedRng(roll=0.0)) in {"driving", "speed", "reaction", "technique"}
