"""
Whose Track? - Round Manager

CRUD operations for the `rounds` table.
"""

from datetime import datetime

from supabase import Client

from src.database.models import Round
from src.engine.base import RoundPlan


class RoundManager:
    """Manages the planned and played rounds of a game."""

    def __init__(self, client: Client) -> None:
        self.client = client
        self.table = client.table("rounds")

    def create_many(self, lobby_id: str, plans: list[RoundPlan]) -> list[Round]:
        """Insert one pending row per planned round."""
        if not plans:
            return []
        data = (
            self.table
            .insert([
                {
                    "lobby_id": lobby_id,
                    "round_number": plan.round_number,
                    "track": plan.track.to_dict(),
                    "owner_user_id": plan.owner_id,
                    "status": "pending",
                }
                for plan in plans
            ])
            .execute()
        )
        return sorted(
            (Round.model_validate(row) for row in data.data),
            key=lambda r: r.round_number,
        )

    def get(self, lobby_id: str, round_number: int) -> Round | None:
        data = (
            self.table
            .select("*")
            .eq("lobby_id", lobby_id)
            .eq("round_number", round_number)
            .execute()
        )
        if data.data:
            return Round.model_validate(data.data[0])
        return None

    def list_by_lobby(self, lobby_id: str) -> list[Round]:
        """All rounds of the current game, in play order."""
        data = (
            self.table
            .select("*")
            .eq("lobby_id", lobby_id)
            .order("round_number")
            .execute()
        )
        return [Round.model_validate(row) for row in data.data]

    def open(self, lobby_id: str, round_number: int, started_at: datetime) -> Round | None:
        """Mark a pending round as open. Returns None if it was not pending."""
        data = (
            self.table
            .update({"status": "open", "started_at": started_at.isoformat()})
            .eq("lobby_id", lobby_id)
            .eq("round_number", round_number)
            .eq("status", "pending")
            .execute()
        )
        if data.data:
            return Round.model_validate(data.data[0])
        return None

    def close(self, lobby_id: str, round_number: int, ended_at: datetime) -> Round | None:
        """Mark an open round as closed. Returns None if it was not open."""
        data = (
            self.table
            .update({"status": "closed", "ended_at": ended_at.isoformat()})
            .eq("lobby_id", lobby_id)
            .eq("round_number", round_number)
            .eq("status", "open")
            .execute()
        )
        if data.data:
            return Round.model_validate(data.data[0])
        return None

    def delete_by_lobby(self, lobby_id: str) -> None:
        """Drop every round of a lobby (cascades to guesses)."""
        self.table.delete().eq("lobby_id", lobby_id).execute()

    def delete_many(self, round_ids: list[str]) -> None:
        """Drop specific rounds (cascades to guesses)."""
        if not round_ids:
            return
        self.table.delete().in_("id", round_ids).execute()

    def renumber(self, round_id: str, round_number: int) -> None:
        self.table.update({"round_number": round_number}).eq("id", round_id).execute()
