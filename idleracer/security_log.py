"""Security and game-action audit logging."""
from __future__ import annotations

import logging

from idleracer.config import LARGE_TRANSACTION

log = logging.getLogger("idleracer.security")


def log_suspicious_activity(player_id: str, username: str, activity: str, **data) -> None:
    log.warning("SECURITY player=%s (%s): %s %s", player_id, username, activity, data or "")


def log_game_action(player_id: str, username: str, action: str, **details) -> None:
    log.info("ACTION player=%s (%s): %s %s", player_id, username, action, details or "")


def log_money_change(player_id: str, username: str, change: int, reason: str) -> None:
    if abs(change) > LARGE_TRANSACTION:
        log_game_action(player_id, username, "large_transaction", change=change, reason=reason)
