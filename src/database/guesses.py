"""
Whose Track? - Guess Manager

CRUD operations for the `guesses` table.

The unique (round_id, voter_user_id) constraint is what makes a guess
count once, however many tabs a player has open.
"""

from datetime import datetime

from postgrest.exceptions import APIError
from supabase import Client

from src.database.models import Guess
from src.engine.base import DuplicateGuessError, GuessOutcome

UNIQUE_VIOLATION = "23505"


class GuessManager:
    """Manages submitted guesses."""

    def __init__(self, client: Client) -> None:
        self.client = client
        self.table = client.table("guesses")

    def insert(
        self,
        round_id: str,
        lobby_id: str,
        round_number: int,
        outcome: GuessOutcome,
        submitted_at: datetime,
    ) -> Guess:
        """
        Record a scored guess.

        Raises:
            DuplicateGuessError: If the voter already guessed in this round
        """
        try:
            data = (
                self.table
                .insert({
                    "round_id": round_id,
                    "lobby_id": lobby_id,
                    "round_number": round_number,
                    "voter_user_id": outcome.voter_id,
                    "guessed_user_id": outcome.guessed_id,
                    "is_correct": outcome.is_correct,
                    "points": outcome.points,
                    "submitted_at": submitted_at.isoformat(),
                })
                .execute()
            )
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise DuplicateGuessError(
                    "You already locked in a guess this round."
                ) from exc
            raise
        return Guess.model_validate(data.data[0])

    def list_for_round(self, round_id: str) -> list[Guess]:
        """Guesses of one round in submission order."""
        data = (
            self.table
            .select("*")
            .eq("round_id", round_id)
            .order("submitted_at")
            .execute()
        )
        return [Guess.model_validate(row) for row in data.data]

    def count_for_round(self, round_id: str) -> int:
        data = (
            self.table
            .select("id", count="exact")
            .eq("round_id", round_id)
            .execute()
        )
        return data.count or 0

    def list_for_lobby(self, lobby_id: str) -> list[Guess]:
        """Every guess of the lobby's current game."""
        data = (
            self.table
            .select("*")
            .eq("lobby_id", lobby_id)
            .order("submitted_at")
            .execute()
        )
        return [Guess.model_validate(row) for row in data.data]
