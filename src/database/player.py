"""
Whose Track? - Player Manager

CRUD operations for the `players` table.
"""

from postgrest.exceptions import APIError
from supabase import Client

from src.database.models import Player

UNIQUE_VIOLATION = "23505"


class PlayerManager:
    """Manages lobby membership records in Supabase."""

    def __init__(self, client: Client) -> None:
        self.client = client
        self.table = client.table("players")

    def join(
        self,
        lobby_id: str,
        user_id: str,
        username: str,
        avatar_url: str | None = None,
        is_ready: bool = False,
    ) -> Player:
        """Add a player to a lobby.

        Joining twice returns the existing membership.
        """
        try:
            data = (
                self.table
                .insert({
                    "lobby_id": lobby_id,
                    "user_id": user_id,
                    "username": username,
                    "avatar_url": avatar_url,
                    "is_ready": is_ready,
                })
                .execute()
            )
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                existing = self.get_by_user(lobby_id, user_id)
                if existing is not None:
                    return existing
            raise
        return Player.model_validate(data.data[0])

    def get_by_user(self, lobby_id: str, user_id: str) -> Player | None:
        """Get a lobby member by Spotify user ID."""
        data = (
            self.table
            .select("*")
            .eq("lobby_id", lobby_id)
            .eq("user_id", user_id)
            .execute()
        )
        if data.data:
            return Player.model_validate(data.data[0])
        return None

    def list_by_lobby(self, lobby_id: str) -> list[Player]:
        """Get all players in a lobby, in join order."""
        data = (
            self.table
            .select("*")
            .eq("lobby_id", lobby_id)
            .order("joined_at")
            .execute()
        )
        return [Player.model_validate(row) for row in data.data]

    def set_ready(
        self,
        lobby_id: str,
        user_id: str,
        is_ready: bool,
        tracks: list[dict] | None = None,
    ) -> Player:
        """Update a player's ready flag, storing their tracks when given."""
        updates: dict = {"is_ready": is_ready}
        if tracks is not None:
            updates["tracks"] = tracks
        data = (
            self.table
            .update(updates)
            .eq("lobby_id", lobby_id)
            .eq("user_id", user_id)
            .execute()
        )
        return Player.model_validate(data.data[0])

    def update_score(
        self,
        lobby_id: str,
        user_id: str,
        total_score: int,
        correct_guesses: int,
    ) -> Player:
        """Overwrite a player's totals."""
        data = (
            self.table
            .update({
                "total_score": total_score,
                "correct_guesses": correct_guesses,
            })
            .eq("lobby_id", lobby_id)
            .eq("user_id", user_id)
            .execute()
        )
        return Player.model_validate(data.data[0])

    def reset_for_new_game(self, lobby_id: str) -> None:
        """Zero scores and clear ready flags for every player in a lobby."""
        (
            self.table
            .update({
                "total_score": 0,
                "correct_guesses": 0,
                "is_ready": False,
            })
            .eq("lobby_id", lobby_id)
            .execute()
        )

    def clear_ready(self, lobby_id: str) -> None:
        """Un-ready every player in a lobby and forget their collected tracks."""
        self.table.update({"is_ready": False, "tracks": []}).eq("lobby_id", lobby_id).execute()

    def remove(self, lobby_id: str, user_id: str) -> bool:
        """Remove a player from a lobby. Returns False if they were not in it."""
        data = (
            self.table
            .delete()
            .eq("lobby_id", lobby_id)
            .eq("user_id", user_id)
            .execute()
        )
        return bool(data.data)

    def count_in_lobby(self, lobby_id: str) -> int:
        """Count players currently in a lobby."""
        data = (
            self.table
            .select("id", count="exact")
            .eq("lobby_id", lobby_id)
            .execute()
        )
        return data.count or 0
