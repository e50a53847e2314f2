"""
Daily task tracker.

Each cycle picks DAILY_TASKS_PER_CYCLE templates and snapshots the player's
counters into `daily_stats`.  Cumulative counters (races, wins, money earned)
report progress as lifetime-now minus the snapshot; session counters (fuel
spent, upgrades bought) have no lifetime field, so the snapshot itself
accumulates and progress mirrors it.  Cycles roll over 24h after generation.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from idleracer.config import (
    DAILY_ALL_CLAIMED_BONUS, DAILY_TASK_CATALOG, DAILY_TASK_WINDOW,
    DAILY_TASKS_PER_CYCLE, DAILY_TRACKED_STATS,
)
from idleracer.errors import ConflictError, InsufficientResourceError, NotFoundError, ValidationError
from idleracer.models import DailyStats, DailyTask, DailyTaskSet, GameData

log = logging.getLogger(__name__)

_default_rng = random.Random()


@dataclass(frozen=True)
class ClaimResult:
    task_id: str
    task_name: str
    reward: int
    bonus_reward: int


def _lifetime(game_data: GameData, stat: str) -> int:
    return getattr(game_data.stats, DAILY_TRACKED_STATS[stat])


def _snapshot(game_data: GameData) -> DailyStats:
    counters = {
        stat: _lifetime(game_data, stat)
        for stat, field in DAILY_TRACKED_STATS.items()
        if field is not None
    }
    return DailyStats(**counters)


# ── Cycle management ──────────────────────────────────────────────────────────

def needs_reset(game_data: GameData, now: datetime) -> bool:
    tasks = game_data.daily_tasks
    if tasks is None or game_data.daily_stats is None:
        return True
    return now - tasks.generated_at >= DAILY_TASK_WINDOW


def reset_tasks(game_data: GameData, now: datetime, rng: Optional[random.Random] = None) -> DailyTaskSet:
    rng = rng or _default_rng
    templates = rng.sample(DAILY_TASK_CATALOG, DAILY_TASKS_PER_CYCLE)
    game_data.daily_tasks = DailyTaskSet(
        tasks=[DailyTask(**t) for t in templates],
        generated_at=now,
    )
    game_data.daily_stats = _snapshot(game_data)
    return game_data.daily_tasks


def check_and_reset(game_data: GameData, now: datetime, rng: Optional[random.Random] = None) -> bool:
    if not needs_reset(game_data, now):
        return False
    reset_tasks(game_data, now, rng)
    return True


# ── Progress ──────────────────────────────────────────────────────────────────

def update_progress(game_data: GameData, stat: str, amount: int = 1) -> bool:
    """Refresh tasks bound to `stat`. Returns True if any task progressed.

    Call after the lifetime counters in `game_data.stats` have been updated;
    `amount` only matters for session counters.
    """
    if stat not in DAILY_TRACKED_STATS:
        raise ValidationError(f"Unknown task stat: {stat}")
    if amount < 0:
        raise ValidationError("amount must be non-negative")
    if game_data.daily_tasks is None or game_data.daily_stats is None:
        return False

    baseline = game_data.daily_stats
    if DAILY_TRACKED_STATS[stat] is None:
        setattr(baseline, stat, getattr(baseline, stat) + amount)
        value = getattr(baseline, stat)
    else:
        value = _lifetime(game_data, stat) - getattr(baseline, stat)

    changed = False
    for task in game_data.daily_tasks.tasks:
        if task.track_stat != stat or task.completed:
            continue
        progress = min(max(value, 0), task.required)
        if progress != task.progress:
            task.progress = progress
            changed = True
        if progress >= task.required:
            task.completed = True
            changed = True
    return changed


def refresh_all(game_data: GameData) -> bool:
    """Recompute every cumulative task from the current lifetime counters."""
    changed = False
    for stat, field in DAILY_TRACKED_STATS.items():
        if field is not None:
            changed |= update_progress(game_data, stat, 0)
    return changed


# ── Rewards ───────────────────────────────────────────────────────────────────

def claim_reward(game_data: GameData, task_id: str) -> ClaimResult:
    task_set = game_data.daily_tasks
    task = task_set.find(task_id) if task_set else None
    if task is None:
        raise NotFoundError(f"Task not found: {task_id}")
    if task.claimed:
        raise ConflictError("Reward already claimed")
    if not task.completed:
        raise InsufficientResourceError(
            f"Task not completed: {task.progress}/{task.required}"
        )

    task.claimed = True
    task_set.completed_count += 1
    game_data.money += task.reward

    bonus = 0
    if not task_set.bonus_claimed and all(t.claimed for t in task_set.tasks):
        task_set.bonus_claimed = True
        bonus = DAILY_ALL_CLAIMED_BONUS
        game_data.money += bonus
        log.info("All daily tasks claimed, bonus %d paid", bonus)

    return ClaimResult(task_id=task.id, task_name=task.name, reward=task.reward, bonus_reward=bonus)
