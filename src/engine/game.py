"""
Whose Track? - Round Engine

The game state machine: phase transitions, round timing, guess checks,
scoring and standings.

All methods are stateless class methods operating on immutable data.
Time is always passed in, never read from the clock, so callers decide
what "now" means (and tests can freeze it).
"""

from datetime import datetime, timedelta
from typing import Iterable, Mapping, Sequence

from src.engine.base import (
    GamePhase,
    GuessOutcome,
    GuessRejectedError,
    InvalidTransitionError,
    LobbySettings,
    PlayerStanding,
    RoundPlan,
    RoundResult,
)

_TRANSITIONS: dict[GamePhase, frozenset[GamePhase]] = {
    GamePhase.WAITING: frozenset({GamePhase.PLAYING}),
    GamePhase.PLAYING: frozenset({GamePhase.VOTING}),
    GamePhase.VOTING: frozenset({GamePhase.PLAYING, GamePhase.FINISHED}),
    GamePhase.FINISHED: frozenset({GamePhase.WAITING}),
}


class GameEngine:
    """
    Stateless engine for guess-the-owner rounds.

    All methods are class methods operating on immutable data.
    State is passed in and returned, never stored.
    """

    DEFAULT_POINTS = 10

    # -- State machine ---------------------------------------------------

    @classmethod
    def can_transition(cls, current: GamePhase, target: GamePhase) -> bool:
        return target in _TRANSITIONS[current]

    @classmethod
    def transition(cls, current: GamePhase, target: GamePhase) -> GamePhase:
        """Validate a phase change.

        Returns:
            The target phase

        Raises:
            InvalidTransitionError: If the move is not allowed
        """
        if not cls.can_transition(current, target):
            raise InvalidTransitionError(current, target)
        return target

    @classmethod
    def next_phase_after_reveal(cls, round_number: int, total_rounds: int) -> GamePhase:
        """Phase that follows the reveal of ``round_number``."""
        if round_number >= total_rounds:
            return GamePhase.FINISHED
        return GamePhase.PLAYING

    # -- Timing ------------------------------------------------------------

    @classmethod
    def round_deadline(cls, started_at: datetime, settings: LobbySettings) -> datetime:
        return started_at + timedelta(seconds=settings.round_duration)

    @classmethod
    def reveal_deadline(cls, closed_at: datetime, settings: LobbySettings) -> datetime:
        return closed_at + timedelta(seconds=settings.reveal_duration)

    @classmethod
    def is_round_expired(
        cls,
        ends_at: datetime | None,
        now: datetime,
        grace_seconds: float = 0.0,
    ) -> bool:
        if ends_at is None:
            return False
        return now > ends_at + timedelta(seconds=grace_seconds)

    @classmethod
    def seconds_left(cls, ends_at: datetime | None, now: datetime) -> int:
        """Whole seconds until ``ends_at``, never negative."""
        if ends_at is None:
            return 0
        return max(0, int((ends_at - now).total_seconds() + 0.999))

    @classmethod
    def should_close_round(
        cls,
        phase: GamePhase,
        guess_count: int,
        expected_voters: int,
        ends_at: datetime | None,
        now: datetime,
        grace_seconds: float = 0.0,
    ) -> bool:
        """A round closes once everyone has guessed or its timer ran out."""
        if phase != GamePhase.PLAYING:
            return False
        if expected_voters > 0 and guess_count >= expected_voters:
            return True
        return cls.is_round_expired(ends_at, now, grace_seconds)

    @classmethod
    def should_advance(
        cls,
        phase: GamePhase,
        next_round_at: datetime | None,
        now: datetime,
    ) -> bool:
        """The reveal is over and the next round (or the end) is due."""
        if phase != GamePhase.VOTING:
            return False
        return next_round_at is None or now >= next_round_at

    # -- Guesses -----------------------------------------------------------

    @classmethod
    def check_guess(
        cls,
        *,
        phase: GamePhase,
        current_round: int,
        round_number: int,
        ends_at: datetime | None,
        now: datetime,
        voter_id: str,
        guessed_id: str,
        member_ids: Iterable[str],
        grace_seconds: float = 0.0,
    ) -> None:
        """
        Reject a guess that breaks the round rules.

        Args:
            phase: Current game phase
            current_round: Round the session is on
            round_number: Round the client believes it is guessing for
            ends_at: Deadline of the current round
            now: Submission time
            voter_id: Who is guessing
            guessed_id: Whose track they say it is
            member_ids: User IDs of the lobby's players
            grace_seconds: Tolerance for network latency after the deadline

        Raises:
            GuessRejectedError: With a message fit for the player
        """
        members = set(member_ids)
        if phase != GamePhase.PLAYING:
            raise GuessRejectedError("No round is accepting guesses right now.")
        if round_number != current_round:
            raise GuessRejectedError(
                f"Round {round_number} is over; the game is on round {current_round}."
            )
        if cls.is_round_expired(ends_at, now, grace_seconds):
            raise GuessRejectedError("Time is up for this round.")
        if voter_id not in members:
            raise GuessRejectedError("Only players in this lobby can guess.")
        if guessed_id not in members:
            raise GuessRejectedError("You can only guess a player in this lobby.")

    @classmethod
    def score_guess(
        cls,
        voter_id: str,
        guessed_id: str,
        owner_id: str,
        points_per_correct: int = DEFAULT_POINTS,
    ) -> GuessOutcome:
        """Score one guess against the track owner."""
        is_correct = guessed_id == owner_id
        return GuessOutcome(
            voter_id=voter_id,
            guessed_id=guessed_id,
            is_correct=is_correct,
            points=points_per_correct if is_correct else 0,
        )

    @classmethod
    def resolve_round(
        cls,
        plan: RoundPlan,
        guesses: Sequence[tuple[str, str]],
        expected_voters: Iterable[str] = (),
        points_per_correct: int = DEFAULT_POINTS,
    ) -> RoundResult:
        """
        Tally a round.

        Args:
            plan: The round that was played
            guesses: (voter_id, guessed_id) pairs in submission order.
                Only the first guess of each voter counts.
            expected_voters: Players who were supposed to guess
            points_per_correct: Points for a correct guess

        Returns:
            RoundResult with one outcome per voter
        """
        outcomes: list[GuessOutcome] = []
        seen: set[str] = set()
        for voter_id, guessed_id in guesses:
            if voter_id in seen:
                continue
            seen.add(voter_id)
            outcomes.append(
                cls.score_guess(voter_id, guessed_id, plan.owner_id, points_per_correct)
            )

        return RoundResult(
            round_number=plan.round_number,
            track=plan.track,
            outcomes=tuple(outcomes),
            missing_voters=frozenset(set(expected_voters) - seen),
        )

    # -- Standings -----------------------------------------------------------

    @classmethod
    def compute_standings(
        cls,
        players: Iterable[Mapping[str, object]],
    ) -> list[PlayerStanding]:
        """
        Rank players for the leaderboard.

        Sorted by score, then correct guesses (both descending), then name.
        Players with equal score and correct guesses share a rank and the
        next rank skips accordingly (1, 1, 3).

        Args:
            players: Mappings with ``user_id``, ``username``, ``total_score``
                and ``correct_guesses`` keys

        Returns:
            Standings in rank order
        """
        rows = sorted(
            players,
            key=lambda p: (
                -int(p.get("total_score", 0)),
                -int(p.get("correct_guesses", 0)),
                str(p.get("username", "")).lower(),
            ),
        )

        standings: list[PlayerStanding] = []
        prev_key: tuple[int, int] | None = None
        rank = 0
        for position, row in enumerate(rows, start=1):
            key = (int(row.get("total_score", 0)), int(row.get("correct_guesses", 0)))
            if key != prev_key:
                rank = position
                prev_key = key
            standings.append(PlayerStanding(
                rank=rank,
                user_id=str(row["user_id"]),
                username=str(row.get("username", "")),
                score=key[0],
                correct_guesses=key[1],
            ))
        return standings

    @classmethod
    def tally_totals(
        cls,
        guesses: Iterable[Mapping[str, object]],
        member_ids: Iterable[str],
    ) -> dict[str, tuple[int, int]]:
        """
        Recompute every player's total from scratch.

        Args:
            guesses: Counted guess rows with ``voter_user_id``, ``points``
                and ``is_correct`` keys
            member_ids: Players to report (zero if they never scored)

        Returns:
            User ID -> (total_score, correct_guesses)
        """
        totals = {m: (0, 0) for m in member_ids}
        for row in guesses:
            voter = str(row["voter_user_id"])
            score, correct = totals.get(voter, (0, 0))
            totals[voter] = (
                score + int(row.get("points", 0) or 0),
                correct + (1 if row.get("is_correct") else 0),
            )
        return totals
