"""
FastAPI application entry point.

Routes:
  POST /api/auth/register
  POST /api/auth/login
  POST /api/auth/logout
  GET  /api/auth/me

  GET  /api/game/data
  POST /api/game/save

  GET  /api/game/opponents
  POST /api/game/race

  GET  /api/game/cars
  POST /api/game/buy-car
  POST /api/game/upgrade

  POST /api/game/claim-daily-task
  POST /api/game/update-task-progress

  GET  /api/game/event
  POST /api/game/regenerate-fuel
  GET  /api/game/fuel-status

  GET  /api/game/leaderboard
  GET  /api/game/achievements
  POST /api/game/unlock-achievement
  POST /api/game/unlock-achievements-batch
  GET  /api/game/profile-stats

  GET  /health
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from idleracer import gameplay
from idleracer.auth import (
    end_session, get_current_player, hash_password, start_session,
    validate_credentials, verify_password,
)
from idleracer.config import DEFAULT_RACE_TYPE
from idleracer.errors import ConflictError, GameError, ValidationError
from idleracer.models import Player, utcnow
from idleracer.scheduler.jobs import setup_scheduler
from idleracer.storage import ensure_dirs, find_player_by_username, save_player

log = logging.getLogger("uvicorn.error")

# ── Lifespan ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_dirs()
    app.state.scheduler = await setup_scheduler()
    yield
    app.state.scheduler.shutdown()


app = FastAPI(title="IdleRacer", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error mapping ─────────────────────────────────────────────────────────────

@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.reason})


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


@app.get("/health")
async def health():
    return {"status": "ok", "time": utcnow()}


# ── Auth ──────────────────────────────────────────────────────────────────────

class CredentialsBody(BaseModel):
    username: str
    password: str


@app.post("/api/auth/register")
async def register(body: CredentialsBody, response: Response):
    username = validate_credentials(body.username, body.password)
    if await find_player_by_username(username):
        raise ConflictError("Username taken")
    player = Player(username=username, hashed_password=hash_password(body.password))
    await save_player(player)
    log.info("Registered player %s (%s)", player.username, player.id)
    return start_session(response, player)


@app.post("/api/auth/login")
async def login(body: CredentialsBody, response: Response):
    player = await find_player_by_username(body.username.strip())
    if not player or not verify_password(body.password, player.hashed_password):
        log.info("Failed login for %r", body.username)
        return JSONResponse(status_code=401, content={"detail": "Invalid credentials"})
    player.last_login = utcnow()
    await save_player(player)
    return start_session(response, player)


@app.post("/api/auth/logout")
async def logout(response: Response):
    end_session(response)
    return {"ok": True}


@app.get("/api/auth/me")
async def me(player: Player = Depends(get_current_player)):
    return {
        "id": player.id,
        "username": player.username,
        "money": player.game_data.money,
        "level": player.game_data.level,
    }


# ── Game state ────────────────────────────────────────────────────────────────

class SaveBody(BaseModel):
    game_data: Optional[dict[str, Any]] = None


@app.get("/api/game/data")
async def get_data(player: Player = Depends(get_current_player)):
    return await gameplay.get_player_state(player)


@app.post("/api/game/save")
async def save_data(body: SaveBody, player: Player = Depends(get_current_player)):
    if body.game_data is None:
        raise ValidationError("Missing game data")
    return await gameplay.save_player_state(player, body.game_data)


# ── Races ─────────────────────────────────────────────────────────────────────

class RaceBody(BaseModel):
    opponent_index: int
    car_index: Optional[int] = None
    race_type: str = DEFAULT_RACE_TYPE
    bet: int = 0


@app.get("/api/game/opponents")
async def opponents(player: Player = Depends(get_current_player)):
    return await gameplay.list_opponents(player)


@app.post("/api/game/race")
async def race(body: RaceBody, player: Player = Depends(get_current_player)):
    return await gameplay.run_race(
        player,
        body.opponent_index,
        car_index=body.car_index,
        race_type=body.race_type,
        bet=body.bet,
    )


# ── Shop ──────────────────────────────────────────────────────────────────────

class UpgradeBody(BaseModel):
    upgrade_type: str
    car_index: Optional[int] = None


class BuyCarBody(BaseModel):
    car_id: int


@app.get("/api/game/cars")
async def cars(player: Player = Depends(get_current_player)):
    return gameplay.car_catalog(player)


@app.post("/api/game/buy-car")
async def buy_car(body: BuyCarBody, player: Player = Depends(get_current_player)):
    return await gameplay.buy_car(player, body.car_id)


@app.post("/api/game/upgrade")
async def upgrade(body: UpgradeBody, player: Player = Depends(get_current_player)):
    return await gameplay.buy_upgrade(player, body.upgrade_type, car_index=body.car_index)


# ── Daily tasks ───────────────────────────────────────────────────────────────

class ClaimBody(BaseModel):
    task_id: str


class ProgressBody(BaseModel):
    stat_type: str
    amount: int = 1


@app.post("/api/game/claim-daily-task")
async def claim_daily_task(body: ClaimBody, player: Player = Depends(get_current_player)):
    return await gameplay.claim_daily_task(player, body.task_id)


@app.post("/api/game/update-task-progress")
async def update_task_progress(body: ProgressBody, player: Player = Depends(get_current_player)):
    return await gameplay.update_task_progress(player, body.stat_type, body.amount)


# ── Events & fuel ─────────────────────────────────────────────────────────────

@app.get("/api/game/event")
async def current_event():
    return await gameplay.get_current_event()


@app.post("/api/game/regenerate-fuel")
async def regenerate_fuel(player: Player = Depends(get_current_player)):
    return await gameplay.regenerate_fuel(player)


@app.get("/api/game/fuel-status")
async def fuel_status(player: Player = Depends(get_current_player)):
    return await gameplay.fuel_status(player)


# ── Leaderboard, achievements, profile ────────────────────────────────────────

class AchievementBody(BaseModel):
    achievement_id: str
    name: str
    description: str


class AchievementBatchBody(BaseModel):
    achievements: list[dict[str, Any]]


@app.get("/api/game/leaderboard")
async def leaderboard(page: int = 1, limit: int = 50, player: Player = Depends(get_current_player)):
    return await gameplay.leaderboard(page=page, limit=limit)


@app.get("/api/game/achievements")
async def achievements(player: Player = Depends(get_current_player)):
    return gameplay.list_achievements(player)


@app.post("/api/game/unlock-achievement")
async def unlock_achievement(body: AchievementBody, player: Player = Depends(get_current_player)):
    if not (body.achievement_id.strip() and body.name.strip() and body.description.strip()):
        raise ValidationError("achievement_id, name and description are required")
    unlocked = await gameplay.unlock_achievements(
        player, [{"id": body.achievement_id, "name": body.name, "description": body.description}]
    )
    if not unlocked:
        return {"success": False, "message": "Achievement already unlocked"}
    return {"success": True, "achievement": unlocked[0]}


@app.post("/api/game/unlock-achievements-batch")
async def unlock_achievements_batch(body: AchievementBatchBody, player: Player = Depends(get_current_player)):
    unlocked = await gameplay.unlock_achievements(player, body.achievements)
    return {
        "success": True,
        "new_achievements": unlocked,
        "message": f"Unlocked {len(unlocked)} new achievement(s)",
    }


@app.get("/api/game/profile-stats")
async def profile_stats(player: Player = Depends(get_current_player)):
    return gameplay.profile_stats(player)
