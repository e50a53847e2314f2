"""Accounts: credential rules, bcrypt hashing, JWT session cookies, player dependency."""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Cookie, HTTPException, Response, status

from idleracer.config import (
    JWT_ALGORITHM, JWT_EXPIRE_DAYS, PASSWORD_MIN, SECRET_KEY, USERNAME_MAX,
    USERNAME_MIN,
)
from idleracer.errors import ValidationError
from idleracer.models import Player

SESSION_COOKIE = "session"
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def validate_credentials(username: str, password: str) -> str:
    """Return the trimmed username or raise ValidationError."""
    username = username.strip()
    if not USERNAME_MIN <= len(username) <= USERNAME_MAX:
        raise ValidationError(f"Username must be {USERNAME_MIN}-{USERNAME_MAX} characters")
    if not _USERNAME_RE.match(username):
        raise ValidationError("Username may only contain letters, digits, '.', '_' and '-'")
    if len(password) < PASSWORD_MIN:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN} characters")
    return username


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def create_token(player_id: str) -> str:
    now = datetime.now(timezone.utc)
    claims = {"sub": player_id, "iat": now, "exp": now + timedelta(days=JWT_EXPIRE_DAYS)}
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[str]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM]).get("sub")
    except jwt.PyJWTError:
        return None


def start_session(response: Response, player: Player) -> dict:
    response.set_cookie(
        SESSION_COOKIE,
        create_token(player.id),
        httponly=True,
        samesite="lax",
        max_age=86400 * JWT_EXPIRE_DAYS,
    )
    return {"id": player.id, "username": player.username}


def end_session(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE)


async def get_current_player(session: Optional[str] = Cookie(default=None)) -> Player:
    """FastAPI dependency: load the session's player or raise 401."""
    if not session:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    player_id = decode_token(session)
    if not player_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    from idleracer.storage import load_player
    player = await load_player(player_id)
    if player is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Player not found")
    return player
