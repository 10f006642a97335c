"""
Whose Track? - Base Classes Tests

Tests for dataclasses, enums, and error types.
"""

import pytest
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
    RoundResult,
    TimeRange,
    Track,
)


class TestEnums:
    """Tests for the string-valued enums stored in the database."""

    def test_lobby_status_values(self):
        assert LobbyStatus.WAITING.value == "waiting"
        assert LobbyStatus.PLAYING.value == "playing"
        assert LobbyStatus.FINISHED.value == "finished"

    def test_game_phase_values(self):
        assert [p.value for p in GamePhase] == ["waiting", "playing", "voting", "finished"]

    def test_time_range_round_trips_from_value(self):
        assert TimeRange("medium_term") is TimeRange.MEDIUM_TERM


class TestErrors:
    """Tests for the error hierarchy."""

    def test_engine_errors_are_value_errors(self):
        for cls in (NotEnoughTracksError, GuessRejectedError, DuplicateGuessError):
            assert issubclass(cls, GameError)
            assert issubclass(cls, ValueError)

    def test_duplicate_is_a_rejection(self):
        assert issubclass(DuplicateGuessError, GuessRejectedError)

    def test_invalid_transition_message(self):
        err = InvalidTransitionError(GamePhase.WAITING, GamePhase.FINISHED)
        assert err.current is GamePhase.WAITING
        assert err.target is GamePhase.FINISHED
        assert "'waiting'" in str(err)
        assert "'finished'" in str(err)


class TestTrack:
    """Tests for Track dataclass."""

    def test_artist_line_joins_artists(self, track_factory):
        track = Track(id="t1", name="Song", artists=("A", "B"))
        assert track.artist_line == "A, B"

    def test_embed_url(self):
        assert Track(id="abc", name="x").embed_url == "https://open.spotify.com/embed/track/abc"

    def test_with_owner_keeps_other_fields(self, track_factory):
        track = track_factory("t1")
        owned = track.with_owner("alice", "Alice")
        assert owned.owner_id == "alice"
        assert owned.owner_name == "Alice"
        assert owned.name == track.name
        assert owned.preview_url == track.preview_url
        assert track.owner_id == ""

    def test_dict_round_trip(self, track_factory):
        track = track_factory("t1", owner="bob")
        data = track.to_dict()
        assert data["artists"] == ["Artist t1"]
        assert Track.from_dict(data) == track

    def test_from_dict_tolerates_missing_fields(self):
        track = Track.from_dict({"id": 42})
        assert track.id == "42"
        assert track.artists == ()
        assert track.preview_url is None

    def test_track_is_frozen(self, track_factory):
        track = track_factory("t1")
        with pytest.raises(AttributeError):
            track.name = "Other"


class TestLobbySettings:
    """Tests for LobbySettings dataclass."""

    def test_defaults(self):
        s = LobbySettings()
        assert s.rounds == 10
        assert s.round_duration == 30
        assert s.tracks_per_player == 20
        assert s.time_range is TimeRange.SHORT_TERM
        assert s.reveal_duration == 5
        assert s.require_preview is False

    @pytest.mark.parametrize("rounds", [0, 51])
    def test_rounds_out_of_range(self, rounds):
        with pytest.raises(ValueError, match="Rounds must be between"):
            LobbySettings(rounds=rounds)

    @pytest.mark.parametrize("duration", [9, 121])
    def test_duration_out_of_range(self, duration):
        with pytest.raises(ValueError, match="Round duration"):
            LobbySettings(round_duration=duration)

    @pytest.mark.parametrize("tracks", [4, 51])
    def test_tracks_out_of_range(self, tracks):
        with pytest.raises(ValueError, match="Tracks per player"):
            LobbySettings(tracks_per_player=tracks)

    def test_reveal_can_be_zero(self):
        assert LobbySettings(reveal_duration=0).reveal_duration == 0

    def test_negative_reveal_raises(self):
        with pytest.raises(ValueError, match="Reveal duration"):
            LobbySettings(reveal_duration=-1)

    def test_from_dict_none_gives_defaults(self):
        assert LobbySettings.from_dict(None) == LobbySettings()

    def test_from_dict_partial(self):
        s = LobbySettings.from_dict({"rounds": 3, "time_range": "long_term"})
        assert s.rounds == 3
        assert s.time_range is TimeRange.LONG_TERM
        assert s.round_duration == 30

    def test_to_dict_stores_enum_value(self):
        assert LobbySettings().to_dict()["time_range"] == "short_term"


class TestRoundResult:
    """Tests for RoundResult dataclass."""

    def _result(self, track_factory):
        return RoundResult(
            round_number=2,
            track=track_factory("t1", owner="bob"),
            outcomes=(
                GuessOutcome("alice", "bob", True, 10),
                GuessOutcome("cara", "alice", False, 0),
            ),
            missing_voters=frozenset({"dave"}),
        )

    def test_owner_id(self, track_factory):
        assert self._result(track_factory).owner_id == "bob"

    def test_correct_voters(self, track_factory):
        assert self._result(track_factory).correct_voters == ("alice",)

    def test_points_by_voter(self, track_factory):
        assert self._result(track_factory).points_by_voter == {"alice": 10, "cara": 0}

    def test_str_lists_every_guess(self, track_factory):
        text = str(self._result(track_factory))
        assert text.startswith("Round 2: 'Song t1' belonged to bob")
        assert "alice guessed bob (correct, +10)" in text
        assert "cara guessed alice (wrong, +0)" in text
