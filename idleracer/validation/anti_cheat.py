"""
Differential anti-cheat: compare a submitted save with the stored state.

Checks are advisory.  Each one yields a CheatFlag with a stable code; the
caller logs the flags and feeds them into the player's suspicion counter.
"""
from __future__ import annotations

from dataclasses import dataclass

from idleracer.config import (
    ANTI_CHEAT_MAX_LEVEL_JUMP, ANTI_CHEAT_MAX_MONEY_PER_SAVE,
    ANTI_CHEAT_RACES_PER_MINUTE, ANTI_CHEAT_WIN_RATE_LIMIT,
    ANTI_CHEAT_WIN_RATE_MIN_RACES, CAR_CATALOG, CORE_STATS, MAX_RACE_REWARD,
    SKILL_NAMES, UPGRADE_NAMES,
)
from idleracer.models import GameData, Vehicle
from idleracer.progression import max_upgrade_level, upgrade_cost

CHECK_HINTS: dict[str, str] = {
    "AC001": "Money grew faster than races could have paid out in the elapsed time.",
    "AC002": "Level jumped by more than a single save can plausibly earn.",
    "AC003": "Lifetime race count went backwards.",
    "AC004": "Lifetime win count went backwards.",
    "AC005": "New vehicles appeared without a matching money decrease.",
    "AC006": "Win rate is implausibly high over a meaningful number of races.",
    "AC007": "A skill level went backwards.",
    "AC008": "A vehicle's base stats exceed its catalog values.",
    "AC009": "Upgrade levels exceed the car's limit or were not paid for.",
}

__all__ = ["AntiCheatThresholds", "CheatFlag", "CHECK_HINTS", "detect_cheating", "money_budget"]

_CATALOG = {c["id"]: c for c in CAR_CATALOG}


@dataclass(frozen=True)
class AntiCheatThresholds:
    max_money_per_save: int = ANTI_CHEAT_MAX_MONEY_PER_SAVE
    max_race_reward: int = MAX_RACE_REWARD
    races_per_minute: float = ANTI_CHEAT_RACES_PER_MINUTE
    max_level_jump: int = ANTI_CHEAT_MAX_LEVEL_JUMP
    win_rate_limit: float = ANTI_CHEAT_WIN_RATE_LIMIT
    win_rate_min_races: int = ANTI_CHEAT_WIN_RATE_MIN_RACES


@dataclass(frozen=True)
class CheatFlag:
    code: str
    label: str
    detail: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "label": self.label, "detail": self.detail or CHECK_HINTS.get(self.code, "")}


def money_budget(elapsed_seconds: float, t: AntiCheatThresholds) -> int:
    """Largest money increase one save may carry after `elapsed_seconds`."""
    minutes = max(0.0, elapsed_seconds) / 60.0
    return t.max_money_per_save + int(t.max_race_reward * t.races_per_minute * minutes)


def _price_of(car: Vehicle) -> int:
    if car.id in _CATALOG:
        return _CATALOG[car.id]["price"]
    return car.price


def _added_vehicles(old: GameData, new: GameData) -> list[Vehicle]:
    """Catalog cars whose id the old garage lacks, plus surplus id-less cars."""
    old_ids = {c.id for c in old.cars if c.id is not None}
    added = [c for c in new.cars if c.id is not None and c.id not in old_ids]
    old_anonymous = sum(1 for c in old.cars if c.id is None)
    added += [c for c in new.cars if c.id is None][old_anonymous:]
    return added


def _boosted_stats(car: Vehicle) -> list[str]:
    entry = _CATALOG.get(car.id)
    if entry is None:
        return []
    return [s for s in CORE_STATS if getattr(car, s) > entry[s]]


def _unpaid_upgrade_cost(old: GameData, new: GameData) -> int:
    """Price of every upgrade level gained on a car the old garage already had."""
    before = {c.id: c for c in old.cars if c.id is not None}
    total = 0
    for car in new.cars:
        prev = before.get(car.id)
        if prev is None:
            continue
        for name in UPGRADE_NAMES:
            for level in range(prev.upgrades.get_level(name), car.upgrades.get_level(name)):
                total += upgrade_cost(name, level)
    return total


def detect_cheating(
    old: GameData,
    new: GameData,
    elapsed_seconds: float = 0.0,
    thresholds: AntiCheatThresholds | None = None,
) -> list[CheatFlag]:
    t = thresholds or AntiCheatThresholds()
    out: list[CheatFlag] = []

    # AC001: money jump beyond what races could pay in the window
    gained = new.money - old.money
    budget = money_budget(elapsed_seconds, t)
    if gained > budget:
        out.append(CheatFlag("AC001", "Suspicious money increase", f"+{gained} exceeds budget {budget}"))

    # AC002: level jump
    if new.level - old.level > t.max_level_jump:
        out.append(CheatFlag("AC002", "Suspicious level increase", f"{old.level} -> {new.level}"))

    # AC003/AC004: cumulative stats moving backwards
    if new.stats.total_races < old.stats.total_races:
        out.append(CheatFlag("AC003", "Race count decreased",
                             f"{old.stats.total_races} -> {new.stats.total_races}"))
    if new.stats.wins < old.stats.wins:
        out.append(CheatFlag("AC004", "Win count decreased", f"{old.stats.wins} -> {new.stats.wins}"))

    # AC005: vehicles without payment; race earnings in the same window count as spendable
    earned = max(0, new.stats.money_earned - old.stats.money_earned)
    paid = old.money - new.money + earned
    added = _added_vehicles(old, new)
    vehicle_cost = sum(_price_of(c) for c in added)
    if added and paid < vehicle_cost:
        out.append(CheatFlag("AC005", "Vehicles without payment",
                             f"{len(added)} new car(s) worth {vehicle_cost}, paid {paid}"))

    # AC006: win rate, only re-evaluated when races were added in this save
    s = new.stats
    if (s.total_races > old.stats.total_races
            and s.total_races > t.win_rate_min_races
            and s.wins / s.total_races > t.win_rate_limit):
        out.append(CheatFlag("AC006", "Implausible win rate", f"{s.wins}/{s.total_races}"))

    # AC007: skills moving backwards
    lowered = [n for n in SKILL_NAMES if getattr(new.skills, n) < getattr(old.skills, n)]
    if lowered:
        out.append(CheatFlag("AC007", "Skill decreased", ", ".join(lowered)))

    # AC008: base stats above the catalog car
    boosted = [f"{c.name or c.id}.{stat}" for c in new.cars for stat in _boosted_stats(c)]
    if boosted:
        out.append(CheatFlag("AC008", "Vehicle stats above catalog", ", ".join(boosted)))

    # AC009: upgrades past the car's limit, or gained without paying
    over = [
        f"{c.name or c.id}.{name}"
        for c in new.cars
        for name in UPGRADE_NAMES
        if c.upgrades.get_level(name) > max_upgrade_level(_price_of(c))
    ]
    upgrade_total = _unpaid_upgrade_cost(old, new)
    left_after_vehicles = paid - vehicle_cost
    if over:
        out.append(CheatFlag("AC009", "Upgrades beyond limit", ", ".join(over)))
    elif upgrade_total and left_after_vehicles < upgrade_total:
        out.append(CheatFlag("AC009", "Upgrades without payment",
                             f"upgrades worth {upgrade_total}, paid {max(left_after_vehicles, 0)}"))

    return out
