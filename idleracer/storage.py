"""JSON document store with per-file async locking to prevent concurrent writes."""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from idleracer.config import EVENTS_FILE, PLAYERS_DIR
from idleracer.errors import ConflictError
from idleracer.models import GlobalEvent, Player, migrate_player_document

log = logging.getLogger(__name__)

EVENT_HISTORY_KEEP = 50

_events_adapter = TypeAdapter(list[GlobalEvent])

# One asyncio.Lock per file path, created on first access
_locks: dict[str, asyncio.Lock] = {}


def _lock_for(path: Path) -> asyncio.Lock:
    key = str(path)
    if key not in _locks:
        _locks[key] = asyncio.Lock()
    return _locks[key]


def ensure_dirs() -> None:
    PLAYERS_DIR.mkdir(parents=True, exist_ok=True)
    EVENTS_FILE.parent.mkdir(parents=True, exist_ok=True)


# ── Players ───────────────────────────────────────────────────────────────────

def player_path(player_id: str) -> Path:
    return PLAYERS_DIR / f"{player_id}.json"


def _read_player(path: Path) -> Player:
    raw = json.loads(path.read_text(encoding="utf-8"))
    return Player.model_validate(migrate_player_document(raw))


async def load_player(player_id: str) -> Optional[Player]:
    path = player_path(player_id)
    if not path.exists():
        return None
    async with _lock_for(path):
        return _read_player(path)


async def save_player(player: Player) -> Player:
    """Write `player` if nobody else saved it since it was loaded.

    The stored `version` must equal the in-memory one; on success the version
    is bumped.  A mismatch raises ConflictError and nothing is written.
    """
    path = player_path(player.id)
    async with _lock_for(path):
        if path.exists():
            stored_version = json.loads(path.read_text(encoding="utf-8")).get("version", 0)
            if stored_version != player.version:
                log.info("Version conflict for player %s (%d != %d)", player.id, stored_version, player.version)
                raise ConflictError("Player state changed concurrently, reload and retry")
        player.version += 1
        path.write_text(player.model_dump_json(indent=2), encoding="utf-8")
    return player


async def find_player_by_username(username: str) -> Optional[Player]:
    """Linear scan over every player file."""
    wanted = username.lower()
    for f in PLAYERS_DIR.glob("*.json"):
        async with _lock_for(f):
            p = _read_player(f)
        if p.username.lower() == wanted:
            return p
    return None


async def list_players(limit: int = 50, skip: int = 0) -> list[Player]:
    """Players ordered by level, then experience, then money, descending."""
    players = []
    for f in PLAYERS_DIR.glob("*.json"):
        async with _lock_for(f):
            players.append(_read_player(f))
    players.sort(
        key=lambda p: (p.game_data.level, p.game_data.experience, p.game_data.money),
        reverse=True,
    )
    return players[skip:skip + limit]


# ── Global events ─────────────────────────────────────────────────────────────

def _read_events() -> list[GlobalEvent]:
    if not EVENTS_FILE.exists():
        return []
    return _events_adapter.validate_json(EVENTS_FILE.read_bytes())


def _write_events(events: list[GlobalEvent]) -> None:
    events = sorted(events, key=lambda e: e.start_time)[-EVENT_HISTORY_KEEP:]
    EVENTS_FILE.write_bytes(_events_adapter.dump_json(events, indent=2))


async def find_active_event(now: datetime) -> Optional[GlobalEvent]:
    async with _lock_for(EVENTS_FILE):
        events = _read_events()
    return next((e for e in events if e.is_current(now)), None)


async def latest_event() -> Optional[GlobalEvent]:
    async with _lock_for(EVENTS_FILE):
        events = _read_events()
    return max(events, key=lambda e: e.end_time, default=None)


async def create_event_if_none_active(event: GlobalEvent, now: datetime) -> bool:
    """Insert `event` unless another one is current. Check and insert share one lock."""
    async with _lock_for(EVENTS_FILE):
        events = _read_events()
        if any(e.is_current(now) for e in events):
            return False
        events.append(event)
        _write_events(events)
    return True


async def expire_all_past(now: datetime) -> int:
    """Mark every active event whose end_time has passed as inactive."""
    async with _lock_for(EVENTS_FILE):
        events = _read_events()
        expired = 0
        for e in events:
            if e.is_active and e.end_time < now:
                e.is_active = False
                expired += 1
        if expired:
            _write_events(events)
    return expired
