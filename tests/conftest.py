"""
Whose Track? - Test Configuration and Fixtures

Common fixtures and test data for all test modules.
"""

from datetime import datetime, timezone
from typing import Any, Callable
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from src.config.settings import Settings
from src.engine.base import Track

# Query-builder methods of the supabase table API used by the managers
_BUILDER_METHODS = (
    "select", "insert", "update", "upsert", "delete",
    "eq", "in_", "lt", "order", "limit",
)


# =============================================================================
# TRACK TEST DATA
# =============================================================================

def make_track(track_id: str, owner: str = "", preview: bool = True) -> Track:
    """Build a track with readable defaults."""
    return Track(
        id=track_id,
        name=f"Song {track_id}",
        artists=(f"Artist {track_id}",),
        album=f"Album {track_id}",
        preview_url=f"https://p.scdn.co/mp3-preview/{track_id}" if preview else None,
        owner_id=owner,
    )


@pytest.fixture
def track_factory() -> Callable[..., Track]:
    return make_track


@pytest.fixture
def tracks_by_player() -> dict[str, list[Track]]:
    """Three players with ten unique tracks each."""
    return {
        player: [make_track(f"{player}-{i}") for i in range(10)]
        for player in ("alice", "bob", "cara")
    }


# =============================================================================
# TIME
# =============================================================================

@pytest.fixture
def now() -> datetime:
    return datetime(2026, 5, 1, 20, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# SETTINGS
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        supabase_url="https://example.supabase.co",
        supabase_key="service-key",
        spotify_client_id="client-id",
        spotify_client_secret="client-secret",
        spotify_redirect_uri="http://localhost:8501",
    )


# =============================================================================
# SUPABASE MOCKS
# =============================================================================

def make_query(data: list[dict] | None = None, count: int | None = None) -> MagicMock:
    """A table query whose builder methods all return itself."""
    query = MagicMock()
    for name in _BUILDER_METHODS:
        getattr(query, name).return_value = query
    query.execute.return_value = MagicMock(data=data if data is not None else [], count=count)
    return query


@pytest.fixture
def mock_client() -> Callable[..., tuple[MagicMock, MagicMock]]:
    """Factory returning (client, query) with canned execute() results."""

    def _make(data: list[dict] | None = None, count: int | None = None):
        query = make_query(data, count)
        client = MagicMock()
        client.table.return_value = query
        return client, query

    return _make


# =============================================================================
# ROW FACTORIES
# =============================================================================

def lobby_row(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": str(uuid4()),
        "code": "ABC234",
        "name": "Friday night",
        "host_user_id": "alice",
        "settings": {},
        "status": "waiting",
        "max_players": 8,
        "created_at": "2026-05-01T19:00:00+00:00",
        "updated_at": "2026-05-01T19:00:00+00:00",
    }
    row.update(overrides)
    return row


def player_row(user_id: str, lobby_id: str | None = None, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": str(uuid4()),
        "lobby_id": lobby_id or str(uuid4()),
        "user_id": user_id,
        "username": user_id.capitalize(),
        "avatar_url": None,
        "is_ready": False,
        "total_score": 0,
        "correct_guesses": 0,
        "tracks": [],
        "joined_at": "2026-05-01T19:00:00+00:00",
    }
    row.update(overrides)
    return row


def session_row(lobby_id: str | None = None, **overrides: Any) -> dict[str, Any]:
    row = {
        "lobby_id": lobby_id or str(uuid4()),
        "phase": "waiting",
        "round_number": 0,
        "total_rounds": 0,
        "round_started_at": None,
        "round_ends_at": None,
        "next_round_at": None,
        "version": 0,
        "updated_at": "2026-05-01T19:00:00+00:00",
    }
    row.update(overrides)
    return row


def round_row(round_number: int, owner: str, lobby_id: str | None = None, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": str(uuid4()),
        "lobby_id": lobby_id or str(uuid4()),
        "round_number": round_number,
        "track": make_track(f"{owner}-{round_number}", owner=owner).to_dict(),
        "owner_user_id": owner,
        "status": "open",
        "started_at": "2026-05-01T20:00:00+00:00",
        "ended_at": None,
    }
    row.update(overrides)
    return row


def guess_row(round_id: str, voter: str, guessed: str, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": str(uuid4()),
        "round_id": round_id,
        "lobby_id": str(uuid4()),
        "round_number": 1,
        "voter_user_id": voter,
        "guessed_user_id": guessed,
        "is_correct": False,
        "points": 0,
        "submitted_at": "2026-05-01T20:00:05+00:00",
    }
    row.update(overrides)
    return row
