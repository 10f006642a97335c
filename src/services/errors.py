"""
Whose Track? - Service Errors

Every error the UI may show a player derives from ``GameError``.
"""

from src.engine.base import (
    DuplicateGuessError,
    GameError,
    GuessRejectedError,
    InvalidTransitionError,
    NotEnoughTracksError,
)


class LobbyNotFoundError(GameError):
    """No lobby matches the given code or ID."""


class PermissionDeniedError(GameError):
    """The caller is not allowed to do this (usually: not the host)."""


class LobbyFullError(GameError):
    """The lobby has reached its player limit."""


class LobbyClosedError(GameError):
    """The lobby is not in a state that allows this action."""


class NotReadyError(GameError):
    """The game cannot start yet."""


__all__ = [
    "DuplicateGuessError",
    "GameError",
    "GuessRejectedError",
    "InvalidTransitionError",
    "LobbyClosedError",
    "LobbyFullError",
    "LobbyNotFoundError",
    "NotEnoughTracksError",
    "NotReadyError",
    "PermissionDeniedError",
]
