"""Achievement unlocking. An id is only ever recorded once."""
from __future__ import annotations

from datetime import datetime

from idleracer.config import RACE_ACHIEVEMENTS
from idleracer.models import Achievement, GameData, utcnow


def has_achievement(game_data: GameData, achievement_id: str) -> bool:
    return any(a.id == achievement_id for a in game_data.achievements)


def unlock_achievement(
    game_data: GameData,
    achievement_id: str,
    name: str,
    description: str,
    now: datetime | None = None,
) -> bool:
    if has_achievement(game_data, achievement_id):
        return False
    game_data.achievements.append(Achievement(
        id=achievement_id,
        name=name,
        description=description,
        unlocked_at=now or utcnow(),
    ))
    return True


def check_race_achievements(game_data: GameData, now: datetime | None = None) -> list[Achievement]:
    """Unlock every milestone achievement the current counters satisfy."""
    unlocked = []
    for a in RACE_ACHIEVEMENTS:
        if a["stat"] == "level":
            value = game_data.level
        else:
            value = getattr(game_data.stats, a["stat"])
        if value >= a["at"] and unlock_achievement(game_data, a["id"], a["name"], a["description"], now):
            unlocked.append(game_data.achievements[-1])
    return unlocked
