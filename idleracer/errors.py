"""Domain errors raised by the game engine and mapped to HTTP responses in main.py."""
from __future__ import annotations


class GameError(Exception):
    """Base game error, mapped to an HTTP response at the request boundary."""

    status_code = 400

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ValidationError(GameError):
    """Malformed or out-of-range payload; nothing is mutated."""

    status_code = 400


class NotFoundError(GameError):
    """Player, vehicle, task, opponent or catalog car does not exist."""

    status_code = 404


class InsufficientResourceError(GameError):
    """Money, fuel, level or task progress below the requirement."""

    status_code = 400


class SuspiciousActivityError(GameError):
    """Anti-cheat refused a save (hard-block mode only)."""

    status_code = 403


class ConflictError(GameError):
    """Already owned, already claimed, max level, or a concurrent write."""

    status_code = 409
