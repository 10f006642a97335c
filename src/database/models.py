"""
Whose Track? - Database Models

Pydantic models that mirror the Supabase table schemas.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from src.engine.base import GamePhase, LobbySettings, Track


class Lobby(BaseModel):
    """Mirrors the `lobbies` table."""

    id: UUID
    code: str = Field(max_length=6)
    name: str = Field(max_length=60)
    host_user_id: str
    settings: dict = Field(default_factory=dict)
    status: str = "waiting"
    max_players: int = 8
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def game_settings(self) -> LobbySettings:
        return LobbySettings.from_dict(self.settings)


class Player(BaseModel):
    """Mirrors the `players` table."""

    id: UUID
    lobby_id: UUID
    user_id: str
    username: str = Field(max_length=30)
    avatar_url: str | None = None
    is_ready: bool = False
    total_score: int = 0
    correct_guesses: int = 0
    tracks: list[dict] = Field(default_factory=list)
    joined_at: datetime

    model_config = {"from_attributes": True}

    @property
    def top_tracks(self) -> list[Track]:
        return [Track.from_dict(t) for t in self.tracks]


class GameState(BaseModel):
    """Mirrors the `game_sessions` table."""

    lobby_id: UUID
    phase: str = "waiting"
    round_number: int = 0
    total_rounds: int = 0
    round_started_at: datetime | None = None
    round_ends_at: datetime | None = None
    next_round_at: datetime | None = None
    version: int = 0
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def game_phase(self) -> GamePhase:
        return GamePhase(self.phase)


class Round(BaseModel):
    """Mirrors the `rounds` table."""

    id: UUID
    lobby_id: UUID
    round_number: int
    track: dict
    owner_user_id: str
    status: str = "pending"
    started_at: datetime | None = None
    ended_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def track_info(self) -> Track:
        return Track.from_dict(self.track)


class Guess(BaseModel):
    """Mirrors the `guesses` table."""

    id: UUID
    round_id: UUID
    lobby_id: UUID
    round_number: int
    voter_user_id: str
    guessed_user_id: str
    is_correct: bool = False
    points: int = 0
    submitted_at: datetime

    model_config = {"from_attributes": True}


class SpotifyAccount(BaseModel):
    """Mirrors the `spotify_accounts` table."""

    user_id: str
    display_name: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    access_token: str
    refresh_token: str | None = None
    expires_at: int = 0
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
