"""Structural validation of client-submitted game state."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from idleracer.errors import ValidationError
from idleracer.models import GameData

log = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 3


def _format_error(err: dict) -> str:
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]


def validate_game_data(payload: Any) -> GameData:
    """Parse `payload` into GameData or raise ValidationError naming the field.

    Nothing is persisted here; a rejected save leaves the stored state untouched.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid game data format")
    try:
        data = GameData.model_validate(payload)
    except PydanticValidationError as exc:
        reason = "; ".join(_format_error(e) for e in exc.errors()[:MAX_REPORTED_ERRORS])
        log.info("Rejected game data: %s", reason)
        raise ValidationError(reason) from exc

    if data.current_car >= len(data.cars):
        raise ValidationError(f"current_car: index {data.current_car} out of range")
    return data
