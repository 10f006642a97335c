"""Tests for src/realtime/subscriptions.py — channel management (mocked)."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.realtime.events import EventPayload, GameEvent
from src.realtime.subscriptions import ChannelManager


@pytest.fixture
def mock_client():
    """Create a mock Supabase client with async realtime support."""
    client = MagicMock()

    # Each call to client.realtime.channel() returns a fresh mock channel
    def make_channel(name):
        channel = AsyncMock()
        channel.on_postgres_changes = MagicMock(return_value=channel)
        channel.subscribe = AsyncMock(return_value=channel)
        channel.unsubscribe = AsyncMock()
        return channel

    client.realtime.channel = MagicMock(side_effect=make_channel)
    client.realtime.remove_channel = AsyncMock()
    return client


class TestChannelManager:
    def test_subscribe_creates_channels(self, mock_client):
        mgr = ChannelManager(mock_client)
        try:
            mgr.subscribe("lobby-123", lambda p: None)

            # One channel per table: lobbies, players, game_sessions, guesses
            assert mock_client.realtime.channel.call_count == 4
            assert "lobby-123" in mgr.active_subscriptions
        finally:
            mgr.shutdown()

    def test_subscribe_idempotent(self, mock_client):
        mgr = ChannelManager(mock_client)
        try:
            mgr.subscribe("lobby-123", lambda p: None)
            mgr.subscribe("lobby-123", lambda p: None)  # duplicate

            # Still only 4 channels
            assert mock_client.realtime.channel.call_count == 4
        finally:
            mgr.shutdown()

    def test_unsubscribe_removes_channels(self, mock_client):
        mgr = ChannelManager(mock_client)
        try:
            mgr.subscribe("lobby-123", lambda p: None)
            mgr.unsubscribe("lobby-123")

            assert "lobby-123" not in mgr.active_subscriptions
        finally:
            mgr.shutdown()

    def test_unsubscribe_nonexistent_is_noop(self, mock_client):
        mgr = ChannelManager(mock_client)
        try:
            mgr.unsubscribe("no-such-lobby")  # should not raise
        finally:
            mgr.shutdown()

    def test_unsubscribe_all(self, mock_client):
        mgr = ChannelManager(mock_client)
        try:
            mgr.subscribe("lobby-1", lambda p: None)
            mgr.subscribe("lobby-2", lambda p: None)
            mgr.unsubscribe_all()

            assert mgr.active_subscriptions == []
        finally:
            mgr.shutdown()

    def test_channel_naming(self, mock_client):
        mgr = ChannelManager(mock_client)
        try:
            mgr.subscribe("abc-def", lambda p: None)

            call_args = [
                call.args[0]
                for call in mock_client.realtime.channel.call_args_list
            ]
            assert "lobby:abc-def:lobbies" in call_args
            assert "lobby:abc-def:players" in call_args
            assert "lobby:abc-def:game_sessions" in call_args
            assert "lobby:abc-def:guesses" in call_args
        finally:
            mgr.shutdown()


class TestHandleChange:
    def test_session_update_fires_callback(self, mock_client):
        received = []
        mgr = ChannelManager(mock_client)
        try:
            mgr._handle_change(
                payload={
                    "data": {
                        "type": "UPDATE",
                        "record": {"phase": "voting", "round_number": 3, "version": 8},
                        "old_record": {"phase": "playing", "round_number": 3, "version": 7},
                    }
                },
                table="game_sessions",
                lobby_id="lobby-x",
                on_event=received.append,
            )

            assert len(received) == 1
            assert received[0].event == GameEvent.ROUND_ENDED
            assert received[0].lobby_id == "lobby-x"
            assert received[0].user_id is None
            assert received[0].data["table"] == "game_sessions"
        finally:
            mgr.shutdown()

    def test_player_insert_fires_callback(self, mock_client):
        received = []
        mgr = ChannelManager(mock_client)
        try:
            mgr._handle_change(
                payload={
                    "data": {
                        "type": "INSERT",
                        "record": {"user_id": "spotify-42", "username": "Robyn"},
                        "old_record": {},
                    }
                },
                table="players",
                lobby_id="lobby-y",
                on_event=received.append,
            )

            assert len(received) == 1
            assert received[0].event == GameEvent.PLAYER_JOINED
            assert received[0].user_id == "spotify-42"
        finally:
            mgr.shutdown()

    def test_player_delete_uses_old_record(self, mock_client):
        received = []
        mgr = ChannelManager(mock_client)
        try:
            mgr._handle_change(
                payload={
                    "data": {
                        "type": "DELETE",
                        "record": None,
                        "old_record": {"user_id": "spotify-42"},
                    }
                },
                table="players",
                lobby_id="lobby-y",
                on_event=received.append,
            )

            assert received[0].event == GameEvent.PLAYER_LEFT
            assert received[0].user_id == "spotify-42"
        finally:
            mgr.shutdown()

    def test_guess_insert_names_voter(self, mock_client):
        received = []
        mgr = ChannelManager(mock_client)
        try:
            mgr._handle_change(
                payload={
                    "eventType": "INSERT",
                    "record": {"voter_user_id": "spotify-7", "guessed_user_id": "spotify-8"},
                    "old_record": {},
                },
                table="guesses",
                lobby_id="lobby-g",
                on_event=received.append,
            )

            assert received[0].event == GameEvent.GUESS_SUBMITTED
            assert received[0].user_id == "spotify-7"
        finally:
            mgr.shutdown()

    def test_unclassified_change_ignored(self, mock_client):
        received = []
        mgr = ChannelManager(mock_client)
        try:
            mgr._handle_change(
                payload={"data": {"type": "INSERT", "record": {"status": "waiting"}, "old_record": {}}},
                table="lobbies",
                lobby_id="lobby-l",
                on_event=received.append,
            )

            assert received == []
        finally:
            mgr.shutdown()

    def test_unknown_table_ignored(self, mock_client):
        received = []
        mgr = ChannelManager(mock_client)
        try:
            mgr._handle_change(
                payload={"data": {"type": "INSERT", "record": {}, "old_record": {}}},
                table="unknown_table",
                lobby_id="lobby-z",
                on_event=received.append,
            )

            assert len(received) == 0
        finally:
            mgr.shutdown()

    def test_callback_error_does_not_propagate(self, mock_client):
        """Errors in on_event should be logged, not raised."""
        mgr = ChannelManager(mock_client)

        def boom(payload):
            raise RuntimeError("listener failed")

        try:
            mgr._handle_change(
                payload={"data": {"type": "UPDATE", "record": None, "old_record": None}},
                table="game_sessions",
                lobby_id="lobby-err",
                on_event=boom,
            )
            # Should not raise
        finally:
            mgr.shutdown()
