"""
Whose Track? Services.

Game orchestration and maintenance built on the database layer and engine.
"""

from src.services.cleanup import CleanupReport, CleanupService
from src.services.errors import (
    GameError,
    LobbyClosedError,
    LobbyFullError,
    LobbyNotFoundError,
    NotReadyError,
    PermissionDeniedError,
)
from src.services.game_service import GameService, GameSnapshot

__all__ = [
    "CleanupReport",
    "CleanupService",
    "GameError",
    "GameService",
    "GameSnapshot",
    "LobbyClosedError",
    "LobbyFullError",
    "LobbyNotFoundError",
    "NotReadyError",
    "PermissionDeniedError",
]
