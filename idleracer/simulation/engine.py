"""
Pure race resolution with no I/O.

A race is a single closed-form comparison: both sides get a lap time derived
from their efficiency plus a small uniform jitter, lower time wins.  Randomness
comes from an injectable `rng` (anything with random() and uniform()) so tests
can pin the jitter.
"""
from __future__ import annotations

import math
import random
from typing import Optional

from idleracer.config import (
    NITRO_BOOST,
    NITRO_CHANCE,
    OPPONENT_EFFICIENCY_PER_DIFFICULTY,
    RACE_JITTER,
    RACE_TYPES,
    SKILL_GAIN_BASE_CHANCE,
    SKILL_GAIN_DIFFICULTY_CLAMP,
    SKILL_GAIN_MAX_CHANCE,
    SKILL_GAIN_RACE_TYPE_FACTOR,
    SKILL_NAMES,
    SKILL_WEIGHTS,
    TRACK_BASE_TIME,
    UPGRADE_POWER_BONUS,
)
from idleracer.errors import ValidationError
from idleracer.models import GlobalEvent, Opponent, RaceOutcome, RaceSettlement, Skills, Vehicle
from idleracer.progression import calculate_xp_gain

MIN_EFFICIENCY = 1.0

_default_rng = random.Random()


# ── Efficiency ────────────────────────────────────────────────────────────────

def car_power(car: Vehicle) -> float:
    base = (car.power + car.speed + car.handling + car.acceleration) / 4
    return base + UPGRADE_POWER_BONUS * car.upgrades.total()


def skill_multiplier(skills: Skills) -> float:
    return 1 + sum(getattr(skills, name) * w for name, w in SKILL_WEIGHTS.items())


def _lap_time(efficiency: float, jitter: float) -> float:
    return TRACK_BASE_TIME * (100 / max(efficiency, MIN_EFFICIENCY)) * jitter


# ── Main entry point ──────────────────────────────────────────────────────────

def resolve_race(
    car: Vehicle,
    skills: Skills,
    difficulty: float,
    rng: Optional[random.Random] = None,
) -> RaceOutcome:
    rng = rng or _default_rng

    efficiency = car_power(car) * skill_multiplier(skills)
    nitro = False
    if car.special_parts.nitro and rng.random() < NITRO_CHANCE:
        efficiency *= NITRO_BOOST
        nitro = True

    opponent_efficiency = OPPONENT_EFFICIENCY_PER_DIFFICULTY * difficulty

    lo, hi = RACE_JITTER
    player_time = _lap_time(efficiency, rng.uniform(lo, hi))
    opponent_time = _lap_time(opponent_efficiency, rng.uniform(lo, hi))

    return RaceOutcome(
        won=player_time < opponent_time,
        player_time=round(player_time, 3),
        opponent_time=round(opponent_time, 3),
        nitro_activated=nitro,
        player_efficiency=round(efficiency, 2),
        opponent_efficiency=round(opponent_efficiency, 2),
    )


# ── Race type & event modifiers ───────────────────────────────────────────────

def race_modifiers(race_type: str) -> dict[str, float]:
    if race_type not in RACE_TYPES:
        raise ValidationError(f"Unknown race type: {race_type}")
    return RACE_TYPES[race_type]


def price_race(opponent: Opponent, race_type: str, event: Optional[GlobalEvent] = None) -> int:
    """Fuel actually charged for a race, known before it is run."""
    cost = math.ceil(opponent.fuel_cost * race_modifiers(race_type)["fuel"])
    if event is not None and event.type == "free_fuel":
        return 0
    return cost


def settle_race(
    outcome: RaceOutcome,
    opponent: Opponent,
    race_type: str,
    event: Optional[GlobalEvent] = None,
    bet: int = 0,
) -> RaceSettlement:
    """Turn an outcome into money/xp/fuel. Race type applies first, then the event."""
    mods = race_modifiers(race_type)

    reward = math.floor(opponent.reward * mods["reward"]) if outcome.won else 0
    xp = math.floor(calculate_xp_gain(outcome.won, opponent.difficulty, bet) * mods["xp"])

    event_type = event.type if event is not None else None
    if event_type == "double_rewards" and outcome.won:
        reward = math.floor(reward * event.multiplier)
    elif event_type == "bonus_xp":
        xp = math.floor(xp * event.multiplier)

    return RaceSettlement(
        race_type=race_type,
        fuel_cost=price_race(opponent, race_type, event),
        reward=reward,
        xp_gained=xp,
        bet_delta=bet if outcome.won else -bet,
        event_type=event_type,
    )


# ── Skill gain ────────────────────────────────────────────────────────────────

def skill_gain_chance(won: bool, race_type: str, difficulty: float) -> float:
    lo, hi = SKILL_GAIN_DIFFICULTY_CLAMP
    chance = (
        SKILL_GAIN_BASE_CHANCE["win" if won else "loss"]
        * SKILL_GAIN_RACE_TYPE_FACTOR.get(race_type, 1.0)
        * min(max(difficulty, lo), hi)
    )
    return min(chance, SKILL_GAIN_MAX_CHANCE)


def roll_skill_gain(
    won: bool,
    race_type: str,
    difficulty: float,
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """Return the name of the one skill that improves after this race, if any."""
    rng = rng or _default_rng
    if rng.random() >= skill_gain_chance(won, race_type, difficulty):
        return None
    return rng.choice(SKILL_NAMES)
