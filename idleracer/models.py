"""Pydantic models for all persistent game entities."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, StrictBool, field_validator, model_validator

from idleracer.config import (
    CAR_CATALOG, CAR_STAT_MAX, DEFAULT_MAX_FUEL, MAX_LEVEL, SCHEMA_VERSION,
    STARTING_CAR_ID, STARTING_MONEY, STARTING_RATING, STRUCTURAL_MAX_UPGRADE,
    UPGRADE_NAMES,
)

EventType = Literal["double_rewards", "upgrade_discount", "free_fuel", "bonus_xp"]
TrackStat = Literal["total_races", "wins", "money_earned", "fuel_spent", "upgrades_bought"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Vehicle ───────────────────────────────────────────────────────────────────

class Upgrades(BaseModel):
    engine:       int = Field(0, ge=0, le=STRUCTURAL_MAX_UPGRADE)
    turbo:        int = Field(0, ge=0, le=STRUCTURAL_MAX_UPGRADE)
    tires:        int = Field(0, ge=0, le=STRUCTURAL_MAX_UPGRADE)
    suspension:   int = Field(0, ge=0, le=STRUCTURAL_MAX_UPGRADE)
    transmission: int = Field(0, ge=0, le=STRUCTURAL_MAX_UPGRADE)

    def get_level(self, name: str) -> int:
        return getattr(self, name)

    def set_level(self, name: str, level: int) -> None:
        setattr(self, name, level)

    def total(self) -> int:
        return sum(getattr(self, n) for n in UPGRADE_NAMES)


class SpecialParts(BaseModel):
    nitro:     StrictBool = False
    body_kit:  StrictBool = False
    ecu_tune:  StrictBool = False
    fuel_tank: StrictBool = False


class Vehicle(BaseModel):
    id: Optional[int] = Field(None, ge=0)   # car catalog id; absent on very old saves
    name: str = ""
    power:        float = Field(0, ge=0, le=CAR_STAT_MAX, allow_inf_nan=False)
    speed:        float = Field(0, ge=0, le=CAR_STAT_MAX, allow_inf_nan=False)
    handling:     float = Field(0, ge=0, le=CAR_STAT_MAX, allow_inf_nan=False)
    acceleration: float = Field(0, ge=0, le=CAR_STAT_MAX, allow_inf_nan=False)
    price: int = Field(0, ge=0)
    owned: bool = True
    fuel: int = Field(DEFAULT_MAX_FUEL, ge=0)
    max_fuel: int = Field(DEFAULT_MAX_FUEL, ge=1)
    last_fuel_update: datetime = Field(default_factory=utcnow)
    upgrades: Upgrades = Field(default_factory=Upgrades)
    special_parts: SpecialParts = Field(default_factory=SpecialParts)

    @field_validator("last_fuel_update")
    @classmethod
    def fuel_update_is_aware(cls, v: datetime) -> datetime:
        return _aware(v)

    @model_validator(mode="after")
    def fuel_within_tank(self) -> "Vehicle":
        if self.fuel > self.max_fuel:
            raise ValueError(f"fuel {self.fuel} exceeds max_fuel {self.max_fuel}")
        return self

    @classmethod
    def from_catalog(cls, entry: dict, now: datetime | None = None) -> "Vehicle":
        return cls(
            id=entry["id"],
            name=entry["name"],
            power=entry["power"],
            speed=entry["speed"],
            handling=entry["handling"],
            acceleration=entry["acceleration"],
            price=entry["price"],
            owned=True,
            last_fuel_update=now or utcnow(),
        )


# ── Player progress ───────────────────────────────────────────────────────────

class Skills(BaseModel):
    # No upper bound: skills keep growing from race rolls.
    driving:   int = Field(1, ge=1)
    speed:     int = Field(1, ge=1)
    reaction:  int = Field(1, ge=1)
    technique: int = Field(1, ge=1)


class PlayerStats(BaseModel):
    total_races:  int = Field(0, ge=0)
    wins:         int = Field(0, ge=0)
    losses:       int = Field(0, ge=0)
    money_earned: int = Field(0, ge=0)
    money_spent:  int = Field(0, ge=0)

    @model_validator(mode="after")
    def wins_consistent(self) -> "PlayerStats":
        if self.wins > self.total_races:
            raise ValueError("wins exceed total_races")
        if self.wins + self.losses > self.total_races:
            raise ValueError("wins + losses exceed total_races")
        return self


class Achievement(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    description: str = ""
    unlocked_at: datetime = Field(default_factory=utcnow)


# ── Daily tasks ───────────────────────────────────────────────────────────────

class DailyTask(BaseModel):
    id: str
    name: str
    description: str
    required: int = Field(ge=1)
    reward: int = Field(ge=0)
    track_stat: TrackStat
    progress: int = 0
    completed: bool = False
    claimed: bool = False


class DailyTaskSet(BaseModel):
    tasks: list[DailyTask] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)
    completed_count: int = 0
    bonus_claimed: bool = False

    @field_validator("generated_at")
    @classmethod
    def generated_at_is_aware(cls, v: datetime) -> datetime:
        return _aware(v)

    def find(self, task_id: str) -> Optional[DailyTask]:
        return next((t for t in self.tasks if t.id == task_id), None)


class DailyStats(BaseModel):
    """Counter baseline at the start of the current task cycle."""
    total_races:     int = 0
    wins:            int = 0
    money_earned:    int = 0
    fuel_spent:      int = 0
    upgrades_bought: int = 0


# ── Game state document ───────────────────────────────────────────────────────

class GameData(BaseModel):
    money: int = Field(STARTING_MONEY, ge=0)
    level: int = Field(1, ge=1, le=MAX_LEVEL)
    experience: float = Field(0.0, ge=0, allow_inf_nan=False)
    rating: int = Field(STARTING_RATING, ge=0)
    current_car: int = Field(0, ge=0)
    skills: Skills = Field(default_factory=Skills)
    stats: PlayerStats = Field(default_factory=PlayerStats)
    unlocked_car_tiers: list[int] = Field(default_factory=lambda: [1])
    achievements: list[Achievement] = Field(default_factory=list)
    cars: list[Vehicle] = Field(min_length=1)
    daily_tasks: Optional[DailyTaskSet] = None
    daily_stats: Optional[DailyStats] = None

    @field_validator("unlocked_car_tiers")
    @classmethod
    def tiers_as_set(cls, v: list[int]) -> list[int]:
        return sorted(set(v))

    @field_validator("achievements")
    @classmethod
    def unique_achievements(cls, v: list[Achievement]) -> list[Achievement]:
        seen: set[str] = set()
        unique = []
        for a in v:
            if a.id not in seen:
                seen.add(a.id)
                unique.append(a)
        return unique

    def owns_catalog_car(self, car_id: int) -> bool:
        return any(c.id == car_id for c in self.cars)

    def vehicle(self, index: int) -> Optional[Vehicle]:
        if 0 <= index < len(self.cars):
            return self.cars[index]
        return None


# ── Player ────────────────────────────────────────────────────────────────────

def starting_game_data(now: datetime | None = None) -> GameData:
    entry = next(c for c in CAR_CATALOG if c["id"] == STARTING_CAR_ID)
    return GameData(cars=[Vehicle.from_catalog(entry, now)])


class Player(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    username: str
    hashed_password: str
    created_at: datetime = Field(default_factory=utcnow)
    last_login: datetime = Field(default_factory=utcnow)
    last_save_at: Optional[datetime] = None
    version: int = 0                  # bumped by storage on every successful save
    schema_version: int = SCHEMA_VERSION
    suspicion_count: int = 0
    under_review: bool = False
    game_data: GameData = Field(default_factory=lambda: starting_game_data())


def migrate_player_document(raw: dict) -> dict:
    """Bring a stored player document up to SCHEMA_VERSION before validation."""
    version = raw.get("schema_version", 1)
    if version >= SCHEMA_VERSION:
        return raw

    gd = raw.setdefault("game_data", {})
    if version < 2:
        gd["unlocked_car_tiers"] = sorted(set(gd.get("unlocked_car_tiers") or [1]))
        gd.setdefault("rating", STARTING_RATING)
        gd["achievements"] = [
            {"id": a} if isinstance(a, str) else a
            for a in gd.get("achievements") or []
        ]
        # v1 task sets reset on calendar days and stored no generated_at
        tasks = gd.get("daily_tasks")
        if tasks is not None and "generated_at" not in tasks:
            gd["daily_tasks"] = None
            gd["daily_stats"] = None
        raw.setdefault("version", 0)

    raw["schema_version"] = SCHEMA_VERSION
    return raw


# ── Global events ─────────────────────────────────────────────────────────────

class GlobalEvent(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: EventType
    title: str
    description: str
    icon: str = "🎉"
    multiplier: float = 2.0
    discount: float = 0.5     # price factor, 0.5 → half price
    start_time: datetime
    end_time: datetime
    is_active: bool = True

    def is_current(self, now: datetime) -> bool:
        return self.is_active and self.start_time <= now <= self.end_time


# ── Races ─────────────────────────────────────────────────────────────────────

class Opponent(BaseModel):
    index: int
    difficulty_class: str
    name: str
    difficulty: float
    reward: int
    fuel_cost: int


class RaceOutcome(BaseModel):
    won: bool
    player_time: float
    opponent_time: float
    nitro_activated: bool
    player_efficiency: float
    opponent_efficiency: float


class RaceSettlement(BaseModel):
    race_type: str
    fuel_cost: int
    reward: int
    xp_gained: int
    bet_delta: int = 0
    event_type: Optional[str] = None
