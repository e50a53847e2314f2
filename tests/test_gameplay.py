import asyncio
from datetime import timedelta

import pytest

from idleracer import gameplay, storage
from idleracer.errors import (
    ConflictError, InsufficientResourceError, NotFoundError, SuspiciousActivityError,
    ValidationError,
)
from idleracer.models import GlobalEvent

from conftest import FixedRng


def _saved(player):
    asyncio.run(storage.save_player(player))
    return player


def _start_event(now, kind, **kw):
    event = GlobalEvent(type=kind, title=kind, description=kind,
                        start_time=now, end_time=now + timedelta(hours=2), **kw)
    asyncio.run(storage.create_event_if_none_active(event, now))


def _race(player, now, opponent_index=0, **kw):
    kw.setdefault("rng", FixedRng())
    return asyncio.run(gameplay.run_race(player, opponent_index, now=now, **kw))


# ── Races ─────────────────────────────────────────────────────────────────────

def test_first_race_against_easy_opponent(data_dir, player, now):
    _saved(player)
    result = _race(player, now)

    assert result["won"] is True
    assert result["reward"] == 200
    assert result["xp_gained"] == 67
    assert result["fuel"] == 25
    assert result["money"] == 1200
    assert result["stats"]["wins"] == 1
    assert result["stats"]["total_races"] == 1
    assert result["skill_gained"] is None
    assert {a["id"] for a in result["new_achievements"]} == {"first_race", "first_win"}

    stored = asyncio.run(storage.load_player(player.id))
    assert stored.game_data.money == 1200
    assert stored.game_data.stats.money_earned == 200
    assert len(stored.game_data.daily_tasks.tasks) == 3


def test_achievements_unlock_once(data_dir, player, now):
    _saved(player)
    _race(player, now)
    second = _race(player, now + timedelta(minutes=1))
    assert second["new_achievements"] == []
    assert [a.id for a in player.game_data.achievements] == ["first_race", "first_win"]


def test_winning_bet_pays_out(data_dir, player, now):
    _saved(player)
    result = _race(player, now, bet=500)
    assert result["bet_delta"] == 500
    assert result["money"] == 1700
    assert result["xp_gained"] == 72
    assert player.game_data.stats.money_earned == 700


def test_losing_bet_is_forfeited(data_dir, player, now):
    _saved(player)
    result = _race(player, now, opponent_index=3, bet=100)
    assert result["won"] is False
    assert result["reward"] == 0
    assert result["fuel"] == 22
    assert result["money"] == 900
    assert player.game_data.stats.losses == 1
    assert player.game_data.stats.money_spent == 100


def test_bet_validation(data_dir, player, now):
    _saved(player)
    with pytest.raises(InsufficientResourceError, match="bet"):
        _race(player, now, bet=5000)
    with pytest.raises(ValidationError):
        _race(player, now, bet=-1)
    assert player.game_data.stats.total_races == 0


def test_race_without_fuel(data_dir, player, now):
    player.game_data.cars[0].fuel = 3
    _saved(player)
    with pytest.raises(InsufficientResourceError, match="fuel"):
        _race(player, now)
    assert player.game_data.cars[0].fuel == 3
    stored = asyncio.run(storage.load_player(player.id))
    assert stored.game_data.stats.total_races == 0


def test_unknown_opponent_and_car(data_dir, player, now):
    _saved(player)
    with pytest.raises(NotFoundError):
        _race(player, now, opponent_index=4)
    with pytest.raises(NotFoundError):
        _race(player, now, car_index=2)
    with pytest.raises(ValidationError):
        _race(player, now, race_type="drag")


def test_free_fuel_event(data_dir, player, now):
    _saved(player)
    _start_event(now, "free_fuel")
    result = _race(player, now, race_type="endurance")
    assert result["fuel_cost"] == 0
    assert result["fuel"] == 30
    assert result["event_type"] == "free_fuel"


def test_double_rewards_event(data_dir, player, now):
    _saved(player)
    _start_event(now, "double_rewards")
    assert _race(player, now)["reward"] == 400


def test_race_levels_up(data_dir, player, now):
    player.game_data.experience = 140
    _saved(player)
    result = _race(player, now)
    assert result["leveled_up"] is True
    assert result["level"] == 2
    assert result["level_up_reward"] == 1000
    assert result["money"] == 1000 + 200 + 1000


# ── Shop ──────────────────────────────────────────────────────────────────────

def test_buy_upgrade(data_dir, player, now):
    _saved(player)
    result = asyncio.run(gameplay.buy_upgrade(player, "engine", now=now))
    assert result["cost"] == 500
    assert result["upgrade_level"] == 1
    assert result["next_cost"] == 1250
    assert result["money"] == 500
    assert player.game_data.daily_stats.upgrades_bought == 1


def test_buy_upgrade_during_sale(data_dir, player, now):
    _saved(player)
    _start_event(now, "upgrade_discount")
    result = asyncio.run(gameplay.buy_upgrade(player, "tires", now=now))
    assert result["cost"] == 100
    assert result["money"] == 900


def test_buy_upgrade_rejections(data_dir, player, now):
    player.game_data.money = 100
    _saved(player)
    with pytest.raises(InsufficientResourceError, match="need 500"):
        asyncio.run(gameplay.buy_upgrade(player, "engine", now=now))
    with pytest.raises(ValidationError):
        asyncio.run(gameplay.buy_upgrade(player, "wings", now=now))
    assert player.game_data.cars[0].upgrades.engine == 0


def test_buy_car(data_dir, player, now):
    player.game_data.money = 5000
    _saved(player)
    result = asyncio.run(gameplay.buy_car(player, 1, now=now))
    assert result["price"] == 3500
    assert result["car_index"] == 1
    assert result["money"] == 1500
    assert result["car"]["fuel"] == 30

    with pytest.raises(ConflictError):
        asyncio.run(gameplay.buy_car(player, 1, now=now))
    with pytest.raises(InsufficientResourceError, match="level"):
        asyncio.run(gameplay.buy_car(player, 2, now=now))
    with pytest.raises(NotFoundError):
        asyncio.run(gameplay.buy_car(player, 99, now=now))


def test_car_catalog_marks_owned(player):
    catalog = gameplay.car_catalog(player)
    assert len(catalog) == 8
    assert catalog[0]["owned"] is True
    assert catalog[2]["owned"] is False
    assert catalog[2]["required_level"] == 5


# ── Saves ─────────────────────────────────────────────────────────────────────

def test_save_accepts_plausible_state(data_dir, player, now):
    _saved(player)
    payload = player.game_data.model_dump(mode="json")
    payload["money"] = 1600
    payload["rating"] = 9999
    payload["unlocked_car_tiers"] = [1, 5, 10]

    result = asyncio.run(gameplay.save_player_state(player, payload, now=now + timedelta(minutes=5)))
    assert result["success"] is True
    assert result["money"] == 1600

    stored = asyncio.run(storage.load_player(player.id))
    assert stored.game_data.money == 1600
    assert stored.game_data.rating == 1000
    assert stored.game_data.unlocked_car_tiers == [1]
    assert stored.suspicion_count == 0


def test_save_rejects_malformed_state(data_dir, player, now):
    _saved(player)
    payload = player.game_data.model_dump(mode="json")
    payload["money"] = -5
    with pytest.raises(ValidationError, match="money"):
        asyncio.run(gameplay.save_player_state(player, payload, now=now))
    stored = asyncio.run(storage.load_player(player.id))
    assert stored.game_data.money == 1000


def test_suspicious_save_is_flagged_but_kept(data_dir, player, now):
    _saved(player)
    payload = player.game_data.model_dump(mode="json")
    payload["money"] = 5_000_000
    asyncio.run(gameplay.save_player_state(player, payload, now=now, hard_block=False))

    stored = asyncio.run(storage.load_player(player.id))
    assert stored.game_data.money == 5_000_000
    assert stored.suspicion_count == 1
    assert stored.under_review is False


def test_suspicious_save_blocked_in_hard_mode(data_dir, player, now):
    _saved(player)
    payload = player.game_data.model_dump(mode="json")
    payload["money"] = 5_000_000
    with pytest.raises(SuspiciousActivityError):
        asyncio.run(gameplay.save_player_state(player, payload, now=now, hard_block=True))

    stored = asyncio.run(storage.load_player(player.id))
    assert stored.game_data.money == 1000
    assert stored.suspicion_count == 1


def test_repeat_offender_goes_under_review(data_dir, player, now):
    player.suspicion_count = 4
    _saved(player)
    payload = player.game_data.model_dump(mode="json")
    payload["level"] = 50
    asyncio.run(gameplay.save_player_state(player, payload, now=now))
    assert player.under_review is True


# ── Daily tasks, fuel, profile ────────────────────────────────────────────────

def test_update_task_progress_bounds(data_dir, player, now):
    _saved(player)
    for amount in (0, -1, 1001):
        with pytest.raises(ValidationError):
            asyncio.run(gameplay.update_task_progress(player, "fuel_spent", amount, now=now))
    result = asyncio.run(gameplay.update_task_progress(player, "fuel_spent", 10, now=now))
    assert result["success"] is True
    assert player.game_data.daily_stats.fuel_spent == 10


def test_claim_incomplete_task(data_dir, player, now):
    _saved(player)
    asyncio.run(gameplay.get_player_state(player, now))
    task_id = player.game_data.daily_tasks.tasks[0].id
    with pytest.raises(InsufficientResourceError):
        asyncio.run(gameplay.claim_daily_task(player, task_id, now=now))


def test_fuel_status_regenerates(data_dir, player, now):
    car = player.game_data.cars[0]
    car.fuel = 20
    car.last_fuel_update = now - timedelta(minutes=25)
    _saved(player)
    status = asyncio.run(gameplay.fuel_status(player, now))["fuel_status"][0]
    assert status["fuel"] == 22
    assert status["regen_time_minutes"] == 10


def test_current_event_reports_remaining_time(data_dir, now):
    assert asyncio.run(gameplay.get_current_event(now)) == {"event": None}
    _start_event(now, "bonus_xp")
    result = asyncio.run(gameplay.get_current_event(now + timedelta(minutes=30)))
    assert result["event"]["type"] == "bonus_xp"
    assert result["remaining_seconds"] == 90 * 60


def test_unlock_achievements_skips_duplicates(data_dir, player, now):
    _saved(player)
    items = [
        {"id": "collector", "name": "Collector", "description": "Own 3 cars"},
        {"id": "collector", "name": "Collector", "description": "Own 3 cars"},
        {"id": "", "name": "blank", "description": "ignored"},
    ]
    unlocked = asyncio.run(gameplay.unlock_achievements(player, items, now))
    assert [a["id"] for a in unlocked] == ["collector"]
    assert asyncio.run(gameplay.unlock_achievements(player, items[:1], now)) == []


def test_profile_stats(player):
    player.game_data.stats.total_races = 4
    player.game_data.stats.wins = 3
    player.game_data.stats.money_earned = 900
    profile = gameplay.profile_stats(player)
    assert profile["rank"]["name"] == "Bronze"
    assert profile["stats"]["win_rate"] == 75
    assert profile["stats"]["average_money_per_race"] == 225


def test_reading_state_without_changes_keeps_version(data_dir, player, now):
    _saved(player)
    asyncio.run(gameplay.get_player_state(player, now))
    a = asyncio.run(storage.load_player(player.id))
    b = asyncio.run(storage.load_player(player.id))

    asyncio.run(gameplay.get_player_state(a, now))
    asyncio.run(gameplay.get_player_state(a, now + timedelta(minutes=1)))
    assert a.version == b.version

    payload = b.game_data.model_dump(mode="json")
    payload["money"] = 1100
    result = asyncio.run(gameplay.save_player_state(b, payload, now=now + timedelta(minutes=2)))
    assert result["money"] == 1100


def test_reading_state_saves_regenerated_fuel(data_dir, player, now):
    _saved(player)
    asyncio.run(gameplay.get_player_state(player, now))
    version = player.version
    car = player.game_data.cars[0]
    car.fuel = 20
    asyncio.run(gameplay.get_player_state(player, now + timedelta(minutes=10)))
    assert player.version == version + 1
    assert asyncio.run(storage.load_player(player.id)).game_data.cars[0].fuel == 21


def test_claim_response_includes_fuel(data_dir, player, now):
    _saved(player)
    asyncio.run(gameplay.get_player_state(player, now))
    task = player.game_data.daily_tasks.tasks[0]
    task.progress = task.required
    task.completed = True
    result = asyncio.run(gameplay.claim_daily_task(player, task.id, now=now))
    assert result["money"] == 1000 + task.reward
    assert result["fuel"] == 30
    assert result["regen_time_minutes"] == 0
