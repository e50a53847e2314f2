"""Opponent roster generation: one opponent per difficulty class, scaled by level."""
from __future__ import annotations

import math

from idleracer.config import (
    OPPONENT_BASE_DIFFICULTY, OPPONENT_BASE_REWARD, OPPONENT_CLASSES,
    OPPONENT_DIFFICULTY_PER_LEVEL, OPPONENT_NAMES, OPPONENT_REWARD_PER_LEVEL,
    OPPONENT_REWARD_STEP, OPPONENT_SETTINGS,
)
from idleracer.models import Opponent
from idleracer.progression import fuel_cost_for


def generate_opponents(level: int) -> list[Opponent]:
    """Build the roster for `level`.

    No randomness: the listing route and the race route both call this, so an
    index handed to the client stays valid while the player's level is unchanged.
    """
    base_difficulty = OPPONENT_BASE_DIFFICULTY + level * OPPONENT_DIFFICULTY_PER_LEVEL
    base_reward = OPPONENT_BASE_REWARD + level * OPPONENT_REWARD_PER_LEVEL

    roster = []
    for i, cls in enumerate(OPPONENT_CLASSES):
        settings = OPPONENT_SETTINGS[cls]
        difficulty = round(base_difficulty * settings["diff_mult"], 2)
        reward = math.floor(base_reward * settings["reward_mult"] / OPPONENT_REWARD_STEP) * OPPONENT_REWARD_STEP
        roster.append(Opponent(
            index=i,
            difficulty_class=cls,
            name=OPPONENT_NAMES[cls],
            difficulty=difficulty,
            reward=reward,
            fuel_cost=fuel_cost_for(difficulty),
        ))
    return roster
