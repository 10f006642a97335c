"""
Whose Track? - Lobby Manager

CRUD operations for the `lobbies` table.
"""

import secrets
import string

from postgrest.exceptions import APIError
from supabase import Client

from src.database.models import Lobby

UNIQUE_VIOLATION = "23505"


def _generate_code(length: int = 6) -> str:
    """Generate an alphanumeric lobby code, avoiding ambiguous characters."""
    alphabet = string.ascii_uppercase.replace("O", "").replace("I", "")
    alphabet += string.digits.replace("0", "").replace("1", "")
    return "".join(secrets.choice(alphabet) for _ in range(length))


class LobbyManager:
    """Manages lobby lifecycle in Supabase."""

    CODE_ATTEMPTS = 5

    def __init__(self, client: Client) -> None:
        self.client = client
        self.table = client.table("lobbies")

    def create(
        self,
        name: str,
        host_user_id: str,
        settings: dict,
        max_players: int = 8,
    ) -> Lobby:
        """Create a new lobby with a unique code.

        Retries with a fresh code if the generated one is already taken.
        """
        attempts = 0
        while True:
            attempts += 1
            try:
                data = (
                    self.table
                    .insert({
                        "code": _generate_code(),
                        "name": name,
                        "host_user_id": host_user_id,
                        "settings": settings,
                        "max_players": max_players,
                    })
                    .execute()
                )
                return Lobby.model_validate(data.data[0])
            except APIError as exc:
                if exc.code != UNIQUE_VIOLATION or attempts >= self.CODE_ATTEMPTS:
                    raise

    def get_by_code(self, code: str) -> Lobby | None:
        """Look up a lobby by its join code."""
        data = (
            self.table
            .select("*")
            .eq("code", code.upper())
            .execute()
        )
        if data.data:
            return Lobby.model_validate(data.data[0])
        return None

    def get_by_id(self, lobby_id: str) -> Lobby | None:
        """Look up a lobby by its UUID."""
        data = (
            self.table
            .select("*")
            .eq("id", lobby_id)
            .execute()
        )
        if data.data:
            return Lobby.model_validate(data.data[0])
        return None

    def update_settings(self, lobby_id: str, settings: dict) -> Lobby:
        """Replace the lobby's game settings."""
        data = (
            self.table
            .update({"settings": settings})
            .eq("id", lobby_id)
            .execute()
        )
        return Lobby.model_validate(data.data[0])

    def update_status(self, lobby_id: str, status: str) -> Lobby:
        """Update lobby status (waiting, playing, finished)."""
        data = (
            self.table
            .update({"status": status})
            .eq("id", lobby_id)
            .execute()
        )
        return Lobby.model_validate(data.data[0])

    def set_host(self, lobby_id: str, host_user_id: str) -> Lobby:
        """Hand the lobby to another player."""
        data = (
            self.table
            .update({"host_user_id": host_user_id})
            .eq("id", lobby_id)
            .execute()
        )
        return Lobby.model_validate(data.data[0])

    def list_all(self) -> list[Lobby]:
        data = self.table.select("*").execute()
        return [Lobby.model_validate(row) for row in data.data]

    def delete(self, lobby_id: str) -> None:
        """Delete a lobby (cascades to players, session, rounds, guesses)."""
        self.table.delete().eq("id", lobby_id).execute()
