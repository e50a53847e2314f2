"""Central configuration: paths, economy constants, catalogs and anti-cheat thresholds."""
from datetime import timedelta
from pathlib import Path
import os

# ── Filesystem paths ──────────────────────────────────────────────────────────
ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.environ.get("IDLERACER_DATA_DIR", ROOT / "data"))
PLAYERS_DIR = DATA_DIR / "players"
EVENTS_FILE = DATA_DIR / "events.json"

# ── Auth ──────────────────────────────────────────────────────────────────────
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = 30
USERNAME_MIN, USERNAME_MAX = 3, 20
PASSWORD_MIN = 6

# ── Player document ───────────────────────────────────────────────────────────
SCHEMA_VERSION = 2
STARTING_MONEY = 1_000
STARTING_RATING = 1_000
MAX_LEVEL = 100
SKILL_NAMES = ["driving", "speed", "reaction", "technique"]
CORE_STATS = ["power", "speed", "handling", "acceleration"]
CAR_STAT_MAX = 200
STRUCTURAL_MAX_UPGRADE = 10

# ── Progression ───────────────────────────────────────────────────────────────
XP_BASE = 100
XP_GROWTH = 1.5
LEVEL_UP_REWARD_PER_LEVEL = 500
CAR_TIER_MILESTONES = [5, 10, 15, 20, 25, 30]

# Required player level per car price: (max price inclusive, level)
CAR_LEVEL_STEPS = [
    (5_000, 1),
    (15_000, 5),
    (30_000, 10),
    (50_000, 15),
    (80_000, 20),
    (150_000, 25),
]
CAR_LEVEL_TOP = 30

# ── Fuel ──────────────────────────────────────────────────────────────────────
DEFAULT_MAX_FUEL = 30
FUEL_REGEN_MINUTES = 10   # minutes per unit of fuel
BASE_FUEL_COST = 5

# (lower bound of difficulty, multiplier); the first bound reached wins
FUEL_COST_TIERS = [
    (1.8, 2.5),
    (1.4, 2.0),
    (1.0, 1.5),
]

# ── Upgrades ──────────────────────────────────────────────────────────────────
UPGRADE_NAMES = ["engine", "turbo", "tires", "suspension", "transmission"]

UPGRADE_BASE_COSTS: dict[str, int] = {
    "engine":       500,
    "turbo":        300,
    "tires":        200,
    "suspension":   400,
    "transmission": 600,
}

UPGRADE_COST_MULTIPLIERS: dict[str, float] = {
    "engine":       2.5,
    "turbo":        2.3,
    "tires":        2.2,
    "suspension":   2.4,
    "transmission": 2.5,
}

# Max upgrade level by vehicle price: (max price inclusive, max level)
UPGRADE_TIER_STEPS = [
    (8_000, 5),
    (35_000, 7),
]
UPGRADE_TIER_TOP = 10

SPECIAL_PARTS = ["nitro", "body_kit", "ecu_tune", "fuel_tank"]

# ── Car catalog ───────────────────────────────────────────────────────────────
# id 0 is the starting car every new account owns.
CAR_CATALOG: list[dict] = [
    {"id": 0, "name": "Handa Civic",     "power": 50,  "speed": 60,  "handling": 70,  "acceleration": 55,  "price": 0},
    {"id": 1, "name": "Toyama Corolla",  "power": 55,  "speed": 65,  "handling": 68,  "acceleration": 60,  "price": 3_500},
    {"id": 2, "name": "Volks Golf GTI",  "power": 70,  "speed": 75,  "handling": 78,  "acceleration": 72,  "price": 12_000},
    {"id": 3, "name": "Subaro Impreza",  "power": 85,  "speed": 88,  "handling": 90,  "acceleration": 86,  "price": 25_000},
    {"id": 4, "name": "Nisan Skyline",   "power": 100, "speed": 105, "handling": 98,  "acceleration": 102, "price": 45_000},
    {"id": 5, "name": "Porshe 911",      "power": 120, "speed": 125, "handling": 118, "acceleration": 122, "price": 75_000},
    {"id": 6, "name": "Ferraro F8",      "power": 145, "speed": 150, "handling": 135, "acceleration": 148, "price": 140_000},
    {"id": 7, "name": "Bugatto Chiron",  "power": 180, "speed": 190, "handling": 160, "acceleration": 185, "price": 300_000},
]
STARTING_CAR_ID = 0

# ── Race resolution ───────────────────────────────────────────────────────────
TRACK_BASE_TIME = 60.0
UPGRADE_POWER_BONUS = 2
OPPONENT_EFFICIENCY_PER_DIFFICULTY = 60.0
RACE_JITTER = (0.95, 1.05)
NITRO_CHANCE = 0.3
NITRO_BOOST = 1.2

SKILL_WEIGHTS: dict[str, float] = {
    "driving":   0.002,
    "speed":     0.002,
    "reaction":  0.0015,
    "technique": 0.0015,
}

BASE_XP_WIN = 50
BASE_XP_LOSS = 20
XP_PER_DIFFICULTY = 30
BET_XP_DIVISOR = 100

# Race-type modifiers: fuel cost / reward / xp
RACE_TYPES: dict[str, dict[str, float]] = {
    "classic":   {"fuel": 1.0, "reward": 1.0, "xp": 1.0},
    "drift":     {"fuel": 0.8, "reward": 1.2, "xp": 1.5},
    "sprint":    {"fuel": 0.5, "reward": 0.7, "xp": 0.8},
    "endurance": {"fuel": 2.0, "reward": 2.0, "xp": 2.5},
}
DEFAULT_RACE_TYPE = "classic"

# Skill gain roll: chance = base[outcome] * race_type_factor * clamp(difficulty)
SKILL_GAIN_BASE_CHANCE = {"win": 0.10, "loss": 0.03}
SKILL_GAIN_RACE_TYPE_FACTOR = {
    "classic":   1.0,
    "drift":     1.5,
    "sprint":    0.8,
    "endurance": 1.5,
}
SKILL_GAIN_DIFFICULTY_CLAMP = (0.5, 2.0)
SKILL_GAIN_MAX_CHANCE = 0.35

# ── Opponents ─────────────────────────────────────────────────────────────────
OPPONENT_BASE_DIFFICULTY = 0.7
OPPONENT_DIFFICULTY_PER_LEVEL = 0.02
OPPONENT_BASE_REWARD = 200
OPPONENT_REWARD_PER_LEVEL = 100
OPPONENT_REWARD_STEP = 50

OPPONENT_CLASSES = ["easy", "medium", "hard", "extreme"]
OPPONENT_SETTINGS: dict[str, dict[str, float]] = {
    "easy":    {"diff_mult": 0.8, "reward_mult": 0.8},
    "medium":  {"diff_mult": 1.0, "reward_mult": 1.0},
    "hard":    {"diff_mult": 1.3, "reward_mult": 1.5},
    "extreme": {"diff_mult": 1.6, "reward_mult": 2.0},
}
OPPONENT_NAMES = {
    "easy":    "Sunday Driver",
    "medium":  "Street Racer",
    "hard":    "Track Veteran",
    "extreme": "Midnight Legend",
}

# ── Global events ─────────────────────────────────────────────────────────────
EVENT_TICK_SECONDS = 60
EVENT_COOLDOWN = timedelta(hours=2)
EVENT_DURATION = timedelta(hours=2)
EVENT_SPAWN_CHANCE = 0.3

EVENT_CATALOG: list[dict] = [
    {
        "type": "double_rewards",
        "title": "Double rewards!",
        "description": "Earn x2 money for every race win.",
        "icon": "💰",
        "multiplier": 2.0,
    },
    {
        "type": "upgrade_discount",
        "title": "Upgrade sale!",
        "description": "50% off every car upgrade.",
        "icon": "🔧",
        "discount": 0.5,
    },
    {
        "type": "free_fuel",
        "title": "Free fuel!",
        "description": "Races don't consume fuel.",
        "icon": "⛽",
    },
    {
        "type": "bonus_xp",
        "title": "Double XP!",
        "description": "Earn x2 experience for every race.",
        "icon": "⭐",
        "multiplier": 2.0,
    },
]

# ── Daily tasks ───────────────────────────────────────────────────────────────
DAILY_TASK_WINDOW = timedelta(hours=24)
DAILY_TASKS_PER_CYCLE = 3
DAILY_ALL_CLAIMED_BONUS = 1_000
MAX_TASK_PROGRESS_STEP = 1_000

# stat → field on PlayerStats it mirrors; None marks a session counter
DAILY_TRACKED_STATS: dict[str, str | None] = {
    "total_races":     "total_races",
    "wins":            "wins",
    "money_earned":    "money_earned",
    "fuel_spent":      None,
    "upgrades_bought": None,
}

DAILY_TASK_CATALOG: list[dict] = [
    {"id": "races_5",   "name": "Warm-up",      "description": "Run 5 races",          "required": 5,     "reward": 500,   "track_stat": "total_races"},
    {"id": "wins_3",    "name": "Podium",       "description": "Win 3 races",          "required": 3,     "reward": 1_000, "track_stat": "wins"},
    {"id": "fuel_50",   "name": "Gas guzzler",  "description": "Spend 50 fuel",        "required": 50,    "reward": 750,   "track_stat": "fuel_spent"},
    {"id": "upgrade_2", "name": "Tuner",        "description": "Buy 2 upgrades",       "required": 2,     "reward": 800,   "track_stat": "upgrades_bought"},
    {"id": "earn_5000", "name": "Bread winner", "description": "Earn $5000 in races",  "required": 5_000, "reward": 1_500, "track_stat": "money_earned"},
]

# ── Achievements ──────────────────────────────────────────────────────────────
RACE_ACHIEVEMENTS: list[dict] = [
    {"id": "first_race", "name": "Green light",    "description": "Finish your first race", "stat": "total_races", "at": 1},
    {"id": "first_win",  "name": "First blood",    "description": "Win your first race",    "stat": "wins",        "at": 1},
    {"id": "wins_10",    "name": "Regular winner", "description": "Win 10 races",           "stat": "wins",        "at": 10},
    {"id": "wins_50",    "name": "Street king",    "description": "Win 50 races",           "stat": "wins",        "at": 50},
    {"id": "level_10",   "name": "Seasoned",       "description": "Reach level 10",         "stat": "level",       "at": 10},
]

# ── Leaderboard / profile ─────────────────────────────────────────────────────
LEADERBOARD_CACHE_TTL = 60.0   # seconds
LEADERBOARD_CACHE_MAX_PAGES = 20
LEADERBOARD_MAX_LIMIT = 100

# (min rating, rank name, icon)
RATING_RANKS = [
    (2_500, "Master", "👑"),
    (2_000, "Gold",   "🥇"),
    (1_500, "Silver", "🥈"),
    (1_000, "Bronze", "🥉"),
]
RATING_RANK_DEFAULT = ("Novice", "🔰")

# ── Anti-cheat ────────────────────────────────────────────────────────────────
# Thresholds are game-balance knobs; every one can be overridden from the env.
MAX_RACE_REWARD = 50_000
ANTI_CHEAT_MAX_MONEY_PER_SAVE = int(
    os.environ.get("ANTI_CHEAT_MAX_MONEY_PER_SAVE", MAX_RACE_REWARD * 30)
)
ANTI_CHEAT_RACES_PER_MINUTE = 2
ANTI_CHEAT_MAX_LEVEL_JUMP = int(os.environ.get("ANTI_CHEAT_MAX_LEVEL_JUMP", 3))
ANTI_CHEAT_WIN_RATE_LIMIT = 0.95
ANTI_CHEAT_WIN_RATE_MIN_RACES = 20
ANTI_CHEAT_HARD_BLOCK = os.environ.get("ANTI_CHEAT_HARD_BLOCK", "0").lower() in ("1", "true", "yes")
SUSPICION_REVIEW_THRESHOLD = int(os.environ.get("SUSPICION_REVIEW_THRESHOLD", 5))

LARGE_TRANSACTION = 10_000
