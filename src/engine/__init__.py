"""
Whose Track? Game Engine.

Pure Python game logic with zero UI/database dependencies.
Handles round distribution, phase transitions, guess checks and scoring.
"""

from src.engine.base import (
    DuplicateGuessError,
    GameError,
    GamePhase,
    GuessOutcome,
    GuessRejectedError,
    InvalidTransitionError,
    LobbySettings,
    LobbyStatus,
    NotEnoughTracksError,
    PlayerStanding,
    RoundPlan,
    RoundResult,
    TimeRange,
    Track,
)
from src.engine.distribution import distribute_rounds
from src.engine.game import GameEngine

__all__ = [
    # Data Classes
    "GuessOutcome",
    "LobbySettings",
    "PlayerStanding",
    "RoundPlan",
    "RoundResult",
    "Track",
    # Enums
    "GamePhase",
    "LobbyStatus",
    "TimeRange",
    # Errors
    "DuplicateGuessError",
    "GameError",
    "GuessRejectedError",
    "InvalidTransitionError",
    "NotEnoughTracksError",
    # Engines
    "GameEngine",
    "distribute_rounds",
]
