"""
Progression calculator. Pure functions, no I/O.

XP curve and level-ups, car tier unlocks, fuel regeneration/consumption,
upgrade pricing and purchase eligibility.  Functions that take a Vehicle or
GameData mutate it in place; everything else only computes.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from idleracer.config import (
    BASE_FUEL_COST, BASE_XP_LOSS, BASE_XP_WIN, BET_XP_DIVISOR, CAR_LEVEL_STEPS,
    CAR_LEVEL_TOP, CAR_TIER_MILESTONES, FUEL_COST_TIERS, FUEL_REGEN_MINUTES,
    LEVEL_UP_REWARD_PER_LEVEL, MAX_LEVEL, UPGRADE_BASE_COSTS,
    UPGRADE_COST_MULTIPLIERS, UPGRADE_TIER_STEPS, UPGRADE_TIER_TOP, XP_BASE,
    XP_GROWTH, XP_PER_DIFFICULTY,
)
from idleracer.errors import ConflictError, InsufficientResourceError, ValidationError
from idleracer.models import GameData, GlobalEvent, Vehicle


# ── Experience & levels ───────────────────────────────────────────────────────

def required_xp(level: int) -> int:
    """Total experience needed to reach `level`."""
    return math.floor(XP_BASE * XP_GROWTH ** (level - 1))


@dataclass(frozen=True)
class LevelUpResult:
    new_level: int
    leveled_up: bool
    total_reward: int


def check_level_up(level: int, xp: float) -> LevelUpResult:
    """Compute how far `xp` carries a player from `level`.

    Pure: calling it again with the same inputs yields the same result, so the
    caller applies the reward once and persists the new level with it.
    """
    new_level = level
    total_reward = 0
    while new_level < MAX_LEVEL and xp >= required_xp(new_level + 1):
        new_level += 1
        total_reward += LEVEL_UP_REWARD_PER_LEVEL * new_level
    return LevelUpResult(new_level, new_level > level, total_reward)


def unlock_car_tiers(game_data: GameData) -> list[int]:
    """Add every milestone tier the current level has reached. Returns new tiers."""
    have = set(game_data.unlocked_car_tiers)
    new = [m for m in CAR_TIER_MILESTONES if m <= game_data.level and m not in have]
    if new:
        game_data.unlocked_car_tiers = sorted(have | set(new))
    return new


def apply_level_up(game_data: GameData) -> LevelUpResult:
    result = check_level_up(game_data.level, game_data.experience)
    if result.leveled_up:
        game_data.level = result.new_level
        game_data.money += result.total_reward
        unlock_car_tiers(game_data)
    return result


def calculate_xp_gain(won: bool, difficulty: float, bet: int = 0) -> int:
    base = BASE_XP_WIN if won else BASE_XP_LOSS
    return base + math.floor(difficulty * XP_PER_DIFFICULTY) + math.floor(bet / BET_XP_DIVISOR)


# ── Fuel ──────────────────────────────────────────────────────────────────────

def _minutes_since(vehicle: Vehicle, now: datetime) -> float:
    return max(0.0, (now - vehicle.last_fuel_update).total_seconds() / 60.0)


def regenerate_fuel(vehicle: Vehicle, now: datetime) -> int:
    """Grant one unit per full FUEL_REGEN_MINUTES; returns units granted."""
    if vehicle.fuel >= vehicle.max_fuel:
        return 0
    units = int(_minutes_since(vehicle, now) // FUEL_REGEN_MINUTES)
    if units <= 0:
        return 0
    granted = min(units, vehicle.max_fuel - vehicle.fuel)
    vehicle.fuel += granted
    vehicle.last_fuel_update = now
    return granted


def regenerate_all(game_data: GameData, now: datetime) -> int:
    return sum(regenerate_fuel(car, now) for car in game_data.cars)


def spend_fuel(vehicle: Vehicle, amount: int, now: datetime) -> bool:
    if vehicle.fuel < amount:
        return False
    vehicle.fuel -= amount
    vehicle.last_fuel_update = now
    return True


def fuel_regen_eta(vehicle: Vehicle, now: datetime) -> int:
    """Minutes until the next unit of fuel, 0 when the tank is full."""
    if vehicle.fuel >= vehicle.max_fuel:
        return 0
    minutes = _minutes_since(vehicle, now)
    return math.ceil(FUEL_REGEN_MINUTES - (minutes % FUEL_REGEN_MINUTES))


def fuel_cost_for(difficulty: float) -> int:
    multiplier = 1.0
    for lower_bound, mult in FUEL_COST_TIERS:
        if difficulty >= lower_bound:
            multiplier = mult
            break
    return math.ceil(BASE_FUEL_COST * multiplier)


# ── Upgrades ──────────────────────────────────────────────────────────────────

def max_upgrade_level(price: int) -> int:
    for max_price, level in UPGRADE_TIER_STEPS:
        if price <= max_price:
            return level
    return UPGRADE_TIER_TOP


def apply_upgrade_discount(event: Optional[GlobalEvent], cost: int) -> int:
    if event is None or event.type != "upgrade_discount":
        return cost
    return math.floor(cost * event.discount)


def upgrade_cost(upgrade_type: str, current_level: int, event: Optional[GlobalEvent] = None) -> int:
    if upgrade_type not in UPGRADE_BASE_COSTS:
        raise ValidationError(f"Unknown upgrade: {upgrade_type}")
    cost = math.floor(
        UPGRADE_BASE_COSTS[upgrade_type] * UPGRADE_COST_MULTIPLIERS[upgrade_type] ** current_level
    )
    return apply_upgrade_discount(event, cost)


def check_upgrade(car: Vehicle, upgrade_type: str, money: int, event: Optional[GlobalEvent] = None) -> int:
    """Return the price of the next level, or raise before anything is mutated."""
    if upgrade_type not in UPGRADE_BASE_COSTS:
        raise ValidationError(f"Unknown upgrade: {upgrade_type}")
    level = car.upgrades.get_level(upgrade_type)
    if level >= max_upgrade_level(car.price):
        raise ConflictError(f"{upgrade_type} is already at max level ({level})")
    cost = upgrade_cost(upgrade_type, level, event)
    if money < cost:
        raise InsufficientResourceError(f"Insufficient funds: need {cost}, have {money}")
    return cost


# ── Car purchases ─────────────────────────────────────────────────────────────

def required_level_for_price(price: int) -> int:
    for max_price, level in CAR_LEVEL_STEPS:
        if price <= max_price:
            return level
    return CAR_LEVEL_TOP


def check_purchase(game_data: GameData, catalog_car: dict) -> int:
    """Return the price of `catalog_car`, or raise if the player can't buy it."""
    if game_data.owns_catalog_car(catalog_car["id"]):
        raise ConflictError(f"{catalog_car['name']} is already owned")
    price = catalog_car["price"]
    needed = required_level_for_price(price)
    if game_data.level < needed:
        raise InsufficientResourceError(f"Requires level {needed}, current level {game_data.level}")
    if game_data.money < price:
        raise InsufficientResourceError(f"Insufficient funds: need {price}, have {game_data.money}")
    return price
