"""
Whose Track? - Game State Manager

CRUD operations for the `game_sessions` table.

Every write goes through ``compare_and_set`` so concurrent clients racing to
close or advance a round cannot both win.
"""

from datetime import datetime
from typing import Any

from supabase import Client

from src.database.models import GameState


def _serialize(updates: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in updates.items()
    }


class GameStateManager:
    """Manages the single game session row of each lobby."""

    def __init__(self, client: Client) -> None:
        self.client = client
        self.table = client.table("game_sessions")

    def create(self, lobby_id: str, **fields: Any) -> GameState:
        """Initialize the session for a lobby at version 0."""
        data = (
            self.table
            .insert({"lobby_id": lobby_id, "version": 0, **_serialize(fields)})
            .execute()
        )
        return GameState.model_validate(data.data[0])

    def get(self, lobby_id: str) -> GameState | None:
        """Get the current session for a lobby."""
        data = (
            self.table
            .select("*")
            .eq("lobby_id", lobby_id)
            .execute()
        )
        if data.data:
            return GameState.model_validate(data.data[0])
        return None

    def compare_and_set(
        self,
        lobby_id: str,
        expected_version: int,
        updates: dict[str, Any],
    ) -> GameState | None:
        """
        Apply ``updates`` only if the row is still at ``expected_version``.

        Args:
            lobby_id: The lobby whose session to update
            expected_version: Version the caller read
            updates: Column values to write; datetimes are serialized

        Returns:
            The updated session, or None if another writer got there first
        """
        payload = _serialize(updates)
        payload["version"] = expected_version + 1
        data = (
            self.table
            .update(payload)
            .eq("lobby_id", lobby_id)
            .eq("version", expected_version)
            .execute()
        )
        if not data.data:
            return None
        return GameState.model_validate(data.data[0])
