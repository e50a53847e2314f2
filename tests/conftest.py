import random
from datetime import datetime, timezone

import pytest

from idleracer import storage
from idleracer.cache.leaderboard_cache import leaderboard_cache
from idleracer.models import Player

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FixedRng(random.Random):
    """Jitter pinned to the middle of its range; random() returns `roll`."""

    def __init__(self, roll: float = 0.99, seed: int = 7) -> None:
        super().__init__(seed)
        self.roll = roll

    def uniform(self, a, b):
        return (a + b) / 2

    def random(self):
        return self.roll


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fixed_rng():
    return FixedRng()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "PLAYERS_DIR", tmp_path / "players")
    monkeypatch.setattr(storage, "EVENTS_FILE", tmp_path / "events.json")
    storage._locks.clear()
    storage.ensure_dirs()
    leaderboard_cache.clear()
    yield tmp_path
    storage._locks.clear()
    leaderboard_cache.clear()


@pytest.fixture
def player(now):
    p = Player(username="racer", hashed_password="x", created_at=now, last_login=now)
    for car in p.game_data.cars:
        car.last_fuel_update = now
    return p
