"""
Whose Track? - Round Engine Tests

Tests for the phase machine, timers, guess checks, scoring and standings.
"""

from datetime import timedelta

import pytest
from src.engine.base import (
    GamePhase,
    GuessRejectedError,
    InvalidTransitionError,
    LobbySettings,
    RoundPlan,
)
from src.engine.game import GameEngine

from tests.conftest import make_track

MEMBERS = ("alice", "bob", "cara")


class TestTransitions:
    """Tests for the phase state machine."""

    @pytest.mark.parametrize("current,target", [
        (GamePhase.WAITING, GamePhase.PLAYING),
        (GamePhase.PLAYING, GamePhase.VOTING),
        (GamePhase.VOTING, GamePhase.PLAYING),
        (GamePhase.VOTING, GamePhase.FINISHED),
        (GamePhase.FINISHED, GamePhase.WAITING),
    ])
    def test_allowed(self, current, target):
        assert GameEngine.transition(current, target) is target

    @pytest.mark.parametrize("current,target", [
        (GamePhase.WAITING, GamePhase.VOTING),
        (GamePhase.PLAYING, GamePhase.FINISHED),
        (GamePhase.PLAYING, GamePhase.PLAYING),
        (GamePhase.FINISHED, GamePhase.PLAYING),
    ])
    def test_rejected(self, current, target):
        assert not GameEngine.can_transition(current, target)
        with pytest.raises(InvalidTransitionError):
            GameEngine.transition(current, target)

    def test_next_phase_after_reveal(self):
        assert GameEngine.next_phase_after_reveal(3, 10) is GamePhase.PLAYING
        assert GameEngine.next_phase_after_reveal(10, 10) is GamePhase.FINISHED


class TestTiming:
    """Tests for deadlines and expiry."""

    def test_deadlines(self, now):
        settings = LobbySettings(round_duration=20, reveal_duration=4)
        assert GameEngine.round_deadline(now, settings) == now + timedelta(seconds=20)
        assert GameEngine.reveal_deadline(now, settings) == now + timedelta(seconds=4)

    def test_not_expired_at_deadline(self, now):
        assert not GameEngine.is_round_expired(now, now)

    def test_expired_after_deadline(self, now):
        assert GameEngine.is_round_expired(now, now + timedelta(milliseconds=1))

    def test_grace_extends_deadline(self, now):
        later = now + timedelta(seconds=1)
        assert not GameEngine.is_round_expired(now, later, grace_seconds=1.5)
        assert GameEngine.is_round_expired(now, later, grace_seconds=0.5)

    def test_no_deadline_never_expires(self, now):
        assert not GameEngine.is_round_expired(None, now)

    def test_seconds_left_rounds_up(self, now):
        assert GameEngine.seconds_left(now + timedelta(seconds=4.2), now) == 5

    def test_seconds_left_never_negative(self, now):
        assert GameEngine.seconds_left(now - timedelta(seconds=3), now) == 0
        assert GameEngine.seconds_left(None, now) == 0


class TestShouldCloseRound:

    def test_closes_when_everyone_guessed(self, now):
        ends_at = now + timedelta(seconds=20)
        assert GameEngine.should_close_round(GamePhase.PLAYING, 3, 3, ends_at, now)

    def test_stays_open_while_waiting_for_guesses(self, now):
        ends_at = now + timedelta(seconds=20)
        assert not GameEngine.should_close_round(GamePhase.PLAYING, 2, 3, ends_at, now)

    def test_closes_on_timer(self, now):
        ends_at = now - timedelta(seconds=1)
        assert GameEngine.should_close_round(GamePhase.PLAYING, 0, 3, ends_at, now)

    def test_waits_out_grace(self, now):
        ends_at = now - timedelta(seconds=1)
        assert not GameEngine.should_close_round(
            GamePhase.PLAYING, 0, 3, ends_at, now, grace_seconds=1.5
        )

    def test_only_in_playing(self, now):
        assert not GameEngine.should_close_round(GamePhase.VOTING, 3, 3, now, now)

    def test_no_expected_voters_waits_for_timer(self, now):
        ends_at = now + timedelta(seconds=5)
        assert not GameEngine.should_close_round(GamePhase.PLAYING, 0, 0, ends_at, now)


class TestShouldAdvance:

    def test_advances_after_reveal(self, now):
        assert GameEngine.should_advance(GamePhase.VOTING, now, now)

    def test_waits_for_reveal(self, now):
        assert not GameEngine.should_advance(
            GamePhase.VOTING, now + timedelta(seconds=1), now
        )

    def test_no_reveal_deadline_advances(self, now):
        assert GameEngine.should_advance(GamePhase.VOTING, None, now)

    def test_only_in_voting(self, now):
        assert not GameEngine.should_advance(GamePhase.PLAYING, None, now)


class TestCheckGuess:
    """Tests for guess validation."""

    def _check(self, now, **overrides):
        kwargs = dict(
            phase=GamePhase.PLAYING,
            current_round=2,
            round_number=2,
            ends_at=now + timedelta(seconds=10),
            now=now,
            voter_id="alice",
            guessed_id="bob",
            member_ids=MEMBERS,
        )
        kwargs.update(overrides)
        GameEngine.check_guess(**kwargs)

    def test_valid_guess(self, now):
        self._check(now)

    def test_guessing_yourself_is_allowed(self, now):
        self._check(now, guessed_id="alice")

    def test_wrong_phase(self, now):
        with pytest.raises(GuessRejectedError, match="No round is accepting"):
            self._check(now, phase=GamePhase.VOTING)

    def test_stale_round(self, now):
        with pytest.raises(GuessRejectedError, match="Round 1 is over"):
            self._check(now, round_number=1)

    def test_late_guess(self, now):
        with pytest.raises(GuessRejectedError, match="Time is up"):
            self._check(now, ends_at=now - timedelta(seconds=2))

    def test_late_guess_within_grace(self, now):
        self._check(now, ends_at=now - timedelta(seconds=1), grace_seconds=1.5)

    def test_outsider_voter(self, now):
        with pytest.raises(GuessRejectedError, match="Only players"):
            self._check(now, voter_id="mallory")

    def test_outsider_target(self, now):
        with pytest.raises(GuessRejectedError, match="guess a player in this lobby"):
            self._check(now, guessed_id="mallory")


class TestScoring:

    def test_correct_guess(self):
        outcome = GameEngine.score_guess("alice", "bob", "bob")
        assert outcome.is_correct
        assert outcome.points == GameEngine.DEFAULT_POINTS

    def test_wrong_guess(self):
        outcome = GameEngine.score_guess("alice", "cara", "bob")
        assert not outcome.is_correct
        assert outcome.points == 0

    def test_custom_points(self):
        assert GameEngine.score_guess("alice", "bob", "bob", points_per_correct=3).points == 3

    def test_resolve_round(self):
        plan = RoundPlan(round_number=1, track=make_track("t", owner="bob"))
        result = GameEngine.resolve_round(
            plan,
            [("alice", "bob"), ("bob", "cara"), ("alice", "cara")],
            expected_voters=MEMBERS,
        )
        assert [o.voter_id for o in result.outcomes] == ["alice", "bob"]
        assert result.correct_voters == ("alice",)
        assert result.missing_voters == frozenset({"cara"})
        assert result.owner_id == "bob"


class TestStandings:
    """Tests for compute_standings and tally_totals."""

    def test_sorted_by_score_then_correct_then_name(self):
        standings = GameEngine.compute_standings([
            {"user_id": "c", "username": "Cara", "total_score": 10, "correct_guesses": 1},
            {"user_id": "a", "username": "alice", "total_score": 20, "correct_guesses": 2},
            {"user_id": "b", "username": "Bob", "total_score": 10, "correct_guesses": 1},
        ])
        assert [s.user_id for s in standings] == ["a", "b", "c"]

    def test_ties_share_rank(self):
        standings = GameEngine.compute_standings([
            {"user_id": "a", "username": "A", "total_score": 10, "correct_guesses": 1},
            {"user_id": "b", "username": "B", "total_score": 10, "correct_guesses": 1},
            {"user_id": "c", "username": "C", "total_score": 0, "correct_guesses": 0},
        ])
        assert [s.rank for s in standings] == [1, 1, 3]

    def test_empty(self):
        assert GameEngine.compute_standings([]) == []

    def test_tally_totals(self):
        totals = GameEngine.tally_totals(
            [
                {"voter_user_id": "alice", "points": 10, "is_correct": True},
                {"voter_user_id": "alice", "points": 0, "is_correct": False},
                {"voter_user_id": "bob", "points": 10, "is_correct": True},
            ],
            MEMBERS,
        )
        assert totals == {"alice": (10, 1), "bob": (10, 1), "cara": (0, 0)}

    def test_tally_handles_null_points(self):
        totals = GameEngine.tally_totals(
            [{"voter_user_id": "alice", "points": None, "is_correct": False}], ["alice"]
        )
        assert totals == {"alice": (0, 0)}
