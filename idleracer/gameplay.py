"""
Game actions. Each call is one read-modify-write of a single player.

Routes in main.py hand over the authenticated Player; every action brings
fuel and daily tasks up to date, computes the authoritative new state with the
pure engine modules, saves the player (optimistic version check) and returns
the post-mutation fields the client displays.
"""
from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any, Optional

from idleracer import daily_tasks
from idleracer.achievements import check_race_achievements, unlock_achievement
from idleracer.cache.leaderboard_cache import leaderboard_cache
from idleracer.config import (
    ANTI_CHEAT_HARD_BLOCK, CAR_CATALOG, DEFAULT_RACE_TYPE, LEADERBOARD_MAX_LIMIT,
    MAX_TASK_PROGRESS_STEP, RATING_RANK_DEFAULT, RATING_RANKS,
    SUSPICION_REVIEW_THRESHOLD,
)
from idleracer.errors import (
    InsufficientResourceError, NotFoundError, SuspiciousActivityError, ValidationError,
)
from idleracer.models import GameData, Player, Vehicle, utcnow
from idleracer.opponents import generate_opponents
from idleracer.progression import (
    apply_level_up, check_purchase, check_upgrade, fuel_regen_eta,
    regenerate_all, required_level_for_price, required_xp, spend_fuel,
    unlock_car_tiers, upgrade_cost, max_upgrade_level,
)
from idleracer.scheduler.jobs import event_scheduler
from idleracer.security_log import log_game_action, log_money_change, log_suspicious_activity
from idleracer.simulation.engine import price_race, resolve_race, roll_skill_gain, settle_race
from idleracer.storage import list_players, save_player
from idleracer.validation.anti_cheat import AntiCheatThresholds, detect_cheating
from idleracer.validation.validator import validate_game_data

log = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _sync(gd: GameData, now: datetime, rng: Optional[random.Random] = None) -> bool:
    """Regenerate fuel and roll the daily task cycle if due. True if anything changed."""
    changed = regenerate_all(gd, now) > 0
    if daily_tasks.check_and_reset(gd, now, rng):
        log.debug("Daily tasks regenerated")
        changed = True
    return daily_tasks.refresh_all(gd) or changed


def _tasks(gd: GameData) -> Optional[dict]:
    return gd.daily_tasks.model_dump() if gd.daily_tasks else None


def _core_fields(gd: GameData, now: datetime, car: Optional[Vehicle] = None) -> dict[str, Any]:
    """Fields every mutating response carries; fuel is for `car`, else the current car."""
    if car is None:
        car = gd.vehicle(gd.current_car) or gd.cars[0]
    return {
        "money": gd.money,
        "level": gd.level,
        "experience": gd.experience,
        "next_level_xp": required_xp(gd.level + 1),
        "daily_tasks": _tasks(gd),
        "car_id": car.id,
        **_fuel_fields(car, now),
    }


def _vehicle(gd: GameData, index: int) -> Vehicle:
    car = gd.vehicle(index)
    if car is None:
        raise NotFoundError(f"Car not found: {index}")
    return car


def _fuel_fields(car: Vehicle, now: datetime) -> dict[str, Any]:
    return {
        "fuel": car.fuel,
        "max_fuel": car.max_fuel,
        "regen_time_minutes": fuel_regen_eta(car, now),
    }


def _fleet_fuel(gd: GameData, now: datetime) -> list[dict[str, Any]]:
    return [{"car_id": c.id, "car_name": c.name, **_fuel_fields(c, now)} for c in gd.cars]


def _catalog_car(car_id: int) -> dict:
    entry = next((c for c in CAR_CATALOG if c["id"] == car_id), None)
    if entry is None:
        raise NotFoundError(f"Car not in catalog: {car_id}")
    return entry


# ── Player state ──────────────────────────────────────────────────────────────

async def get_player_state(player: Player, now: datetime | None = None) -> dict:
    now = now or utcnow()
    if _sync(player.game_data, now):
        await save_player(player)
    return {
        "username": player.username,
        "game_data": player.game_data.model_dump(),
        "next_level_xp": required_xp(player.game_data.level + 1),
    }


async def save_player_state(
    player: Player,
    payload: Any,
    now: datetime | None = None,
    thresholds: AntiCheatThresholds | None = None,
    hard_block: bool = ANTI_CHEAT_HARD_BLOCK,
) -> dict:
    """Validate, diff against the stored state, then persist.

    Structural errors reject the save.  Anti-cheat flags are logged and counted
    but only block the save when `hard_block` is set.
    """
    now = now or utcnow()
    new = validate_game_data(payload)
    old = player.game_data

    since = player.last_save_at or player.created_at
    flags = detect_cheating(old, new, (now - since).total_seconds(), thresholds)
    if flags:
        for f in flags:
            log_suspicious_activity(player.id, player.username, f.label, code=f.code, detail=f.detail)
        player.suspicion_count += len(flags)
        if not player.under_review and player.suspicion_count >= SUSPICION_REVIEW_THRESHOLD:
            player.under_review = True
            log_suspicious_activity(player.id, player.username, "flagged for review",
                                    suspicion_count=player.suspicion_count)
        if hard_block:
            await save_player(player)
            raise SuspiciousActivityError("Save rejected: " + ", ".join(f.label for f in flags))

    # Server-owned fields are never taken from the client
    new.daily_tasks = old.daily_tasks
    new.daily_stats = old.daily_stats
    new.rating = old.rating
    new.unlocked_car_tiers = list(old.unlocked_car_tiers)
    unlock_car_tiers(new)

    log_money_change(player.id, player.username, new.money - old.money, "save")
    player.game_data = new
    player.last_save_at = now
    daily_tasks.refresh_all(new)
    await save_player(player)

    return {
        "success": True,
        "timestamp": now,
        "cars": _fleet_fuel(new, now),
        **_core_fields(new, now),
    }


# ── Races ─────────────────────────────────────────────────────────────────────

async def list_opponents(player: Player, now: datetime | None = None) -> dict:
    now = now or utcnow()
    event = await event_scheduler.current_event(now)
    return {
        "level": player.game_data.level,
        "opponents": [o.model_dump() for o in generate_opponents(player.game_data.level)],
        "event": event.model_dump() if event else None,
    }


async def run_race(
    player: Player,
    opponent_index: int,
    car_index: Optional[int] = None,
    race_type: str = DEFAULT_RACE_TYPE,
    bet: int = 0,
    now: datetime | None = None,
    rng: Optional[random.Random] = None,
) -> dict:
    now = now or utcnow()
    gd = player.game_data
    _sync(gd, now, rng)

    car_index = gd.current_car if car_index is None else car_index
    car = _vehicle(gd, car_index)
    roster = generate_opponents(gd.level)
    if not 0 <= opponent_index < len(roster):
        raise NotFoundError(f"Opponent not found: {opponent_index}")
    opponent = roster[opponent_index]

    if bet < 0:
        raise ValidationError("bet must be non-negative")
    if bet > gd.money:
        raise InsufficientResourceError(f"Insufficient funds for bet: need {bet}, have {gd.money}")

    event = await event_scheduler.current_event(now)
    fuel_cost = price_race(opponent, race_type, event)
    if fuel_cost and not spend_fuel(car, fuel_cost, now):
        raise InsufficientResourceError(
            f"Not enough fuel: need {fuel_cost}, have {car.fuel} "
            f"(next unit in {fuel_regen_eta(car, now)} min)"
        )

    outcome = resolve_race(car, gd.skills, opponent.difficulty, rng)
    settlement = settle_race(outcome, opponent, race_type, event, bet)

    gd.money += settlement.reward + settlement.bet_delta
    gd.experience += settlement.xp_gained
    gd.stats.total_races += 1
    earned = settlement.reward + max(settlement.bet_delta, 0)
    gd.stats.money_earned += earned
    if outcome.won:
        gd.stats.wins += 1
    else:
        gd.stats.losses += 1
        gd.stats.money_spent += bet

    level_up = apply_level_up(gd)
    if level_up.leveled_up:
        log_game_action(player.id, player.username, "level_up",
                        level=level_up.new_level, reward=level_up.total_reward)

    skill = roll_skill_gain(outcome.won, race_type, opponent.difficulty, rng)
    if skill is not None:
        setattr(gd.skills, skill, getattr(gd.skills, skill) + 1)

    daily_tasks.update_progress(gd, "total_races")
    daily_tasks.update_progress(gd, "fuel_spent", settlement.fuel_cost)
    daily_tasks.update_progress(gd, "wins")
    daily_tasks.update_progress(gd, "money_earned")
    new_achievements = check_race_achievements(gd, now)

    log_money_change(player.id, player.username, settlement.reward + settlement.bet_delta, "race")
    await save_player(player)

    return {
        **outcome.model_dump(),
        **settlement.model_dump(),
        "opponent": opponent.model_dump(),
        "skill_gained": skill,
        "leveled_up": level_up.leveled_up,
        "level_up_reward": level_up.total_reward,
        "new_achievements": [a.model_dump() for a in new_achievements],
        "stats": gd.stats.model_dump(),
        "skills": gd.skills.model_dump(),
        **_core_fields(gd, now, car),
    }


# ── Shop ──────────────────────────────────────────────────────────────────────

async def buy_upgrade(
    player: Player,
    upgrade_type: str,
    car_index: Optional[int] = None,
    now: datetime | None = None,
) -> dict:
    now = now or utcnow()
    gd = player.game_data
    _sync(gd, now)

    car = _vehicle(gd, gd.current_car if car_index is None else car_index)
    event = await event_scheduler.current_event(now)
    cost = check_upgrade(car, upgrade_type, gd.money, event)

    new_level = car.upgrades.get_level(upgrade_type) + 1
    car.upgrades.set_level(upgrade_type, new_level)
    gd.money -= cost
    gd.stats.money_spent += cost
    daily_tasks.update_progress(gd, "upgrades_bought", 1)

    log_money_change(player.id, player.username, -cost, f"upgrade {upgrade_type}")
    await save_player(player)

    at_max = new_level >= max_upgrade_level(car.price)
    return {
        "upgrade": upgrade_type,
        "upgrade_level": new_level,
        "cost": cost,
        "next_cost": None if at_max else upgrade_cost(upgrade_type, new_level, event),
        "upgrades": car.upgrades.model_dump(),
        **_core_fields(gd, now, car),
    }


def car_catalog(player: Player) -> list[dict]:
    gd = player.game_data
    return [
        {
            **entry,
            "required_level": required_level_for_price(entry["price"]),
            "owned": gd.owns_catalog_car(entry["id"]),
        }
        for entry in CAR_CATALOG
    ]


async def buy_car(player: Player, car_id: int, now: datetime | None = None) -> dict:
    now = now or utcnow()
    gd = player.game_data
    _sync(gd, now)

    entry = _catalog_car(car_id)
    price = check_purchase(gd, entry)
    gd.cars.append(Vehicle.from_catalog(entry, now))
    gd.money -= price
    gd.stats.money_spent += price

    log_money_change(player.id, player.username, -price, f"buy car {car_id}")
    await save_player(player)

    return {
        "car": gd.cars[-1].model_dump(),
        "car_index": len(gd.cars) - 1,
        "price": price,
        **_core_fields(gd, now, gd.cars[-1]),
    }


# ── Daily tasks ───────────────────────────────────────────────────────────────

async def claim_daily_task(player: Player, task_id: str, now: datetime | None = None) -> dict:
    now = now or utcnow()
    gd = player.game_data
    _sync(gd, now)

    result = daily_tasks.claim_reward(gd, task_id)
    await save_player(player)

    if result.bonus_reward:
        message = f"Earned ${result.reward} for \"{result.task_name}\" + bonus ${result.bonus_reward}!"
    else:
        message = f"Earned ${result.reward} for \"{result.task_name}\"!"
    return {
        "success": True,
        "reward": result.reward,
        "bonus_reward": result.bonus_reward,
        "message": message,
        **_core_fields(gd, now),
    }


async def update_task_progress(
    player: Player,
    stat_type: str,
    amount: int = 1,
    now: datetime | None = None,
) -> dict:
    if not 0 < amount <= MAX_TASK_PROGRESS_STEP:
        raise ValidationError(f"amount must be between 1 and {MAX_TASK_PROGRESS_STEP}")
    now = now or utcnow()
    gd = player.game_data
    _sync(gd, now)

    daily_tasks.update_progress(gd, stat_type, amount)
    await save_player(player)
    return {"success": True, **_core_fields(gd, now)}


# ── Events & fuel ─────────────────────────────────────────────────────────────

async def get_current_event(now: datetime | None = None) -> dict:
    now = now or utcnow()
    event = await event_scheduler.current_event(now)
    if event is None:
        return {"event": None}
    remaining = max(0, int((event.end_time - now).total_seconds()))
    return {"event": event.model_dump(), "remaining_seconds": remaining}


async def regenerate_fuel(player: Player, now: datetime | None = None) -> dict:
    now = now or utcnow()
    gd = player.game_data
    granted = regenerate_all(gd, now)
    if granted:
        await save_player(player)
    return {
        "success": True,
        "granted": granted,
        "cars": _fleet_fuel(gd, now),
        **_core_fields(gd, now),
    }


async def fuel_status(player: Player, now: datetime | None = None) -> dict:
    now = now or utcnow()
    if regenerate_all(player.game_data, now):
        await save_player(player)
    return {"fuel_status": _fleet_fuel(player.game_data, now)}


# ── Leaderboard, achievements, profile ────────────────────────────────────────

async def leaderboard(page: int = 1, limit: int = 50) -> list[dict]:
    if page < 1 or not 1 <= limit <= LEADERBOARD_MAX_LIMIT:
        raise ValidationError(f"page must be >= 1 and limit between 1 and {LEADERBOARD_MAX_LIMIT}")
    skip = (page - 1) * limit
    cached = leaderboard_cache.get(limit, skip)
    if cached is not None:
        return cached

    rows = []
    for pos, p in enumerate(await list_players(limit=limit, skip=skip), start=skip + 1):
        s = p.game_data.stats
        rows.append({
            "position": pos,
            "username": p.username,
            "wins": s.wins,
            "total_races": s.total_races,
            "win_rate": round(s.wins / s.total_races * 100, 1) if s.total_races else 0.0,
            "money": p.game_data.money,
            "level": p.game_data.level,
            "experience": p.game_data.experience,
            "rating": p.game_data.rating,
        })
    leaderboard_cache.put(limit, skip, rows)
    return rows


def list_achievements(player: Player) -> dict:
    items = [a.model_dump() for a in player.game_data.achievements]
    return {"achievements": items, "total": len(items)}


async def unlock_achievements(player: Player, items: list[dict], now: datetime | None = None) -> list[dict]:
    """Unlock each {id, name, description}; returns the ones that were new."""
    now = now or utcnow()
    unlocked = []
    for item in items:
        if not item.get("id") or not item.get("name") or not item.get("description"):
            continue
        if unlock_achievement(player.game_data, item["id"], item["name"], item["description"], now):
            unlocked.append(player.game_data.achievements[-1].model_dump())
    if unlocked:
        await save_player(player)
    return unlocked


def _rank(rating: int) -> dict:
    for min_rating, name, icon in RATING_RANKS:
        if rating >= min_rating:
            return {"name": name, "icon": icon}
    name, icon = RATING_RANK_DEFAULT
    return {"name": name, "icon": icon}


def profile_stats(player: Player) -> dict:
    gd = player.game_data
    s = gd.stats
    return {
        "username": player.username,
        "level": gd.level,
        "experience": gd.experience,
        "money": gd.money,
        "rating": gd.rating,
        "rank": _rank(gd.rating),
        "stats": {
            **s.model_dump(),
            "win_rate": round(s.wins / s.total_races * 100) if s.total_races else 0,
            "average_money_per_race": round(s.money_earned / s.total_races) if s.total_races else 0,
        },
        "achievements": {"total": len(gd.achievements)},
        "cars": {"owned": len(gd.cars), "current": gd.current_car},
        "skills": gd.skills.model_dump(),
        "created_at": player.created_at,
        "last_login": player.last_login,
    }
