"""
Whose Track? - Lobby and Player Manager Tests

The Supabase client is mocked; tests check the queries sent and how
rows come back.
"""

from unittest.mock import MagicMock, patch

import pytest
from postgrest.exceptions import APIError
from src.database.lobby import LobbyManager, _generate_code
from src.database.models import Lobby, Player
from src.database.player import PlayerManager

from tests.conftest import lobby_row, player_row


def _unique_violation() -> APIError:
    return APIError({"code": "23505", "message": "duplicate key value", "details": None, "hint": None})


class TestGenerateCode:

    def test_length_and_alphabet(self):
        for _ in range(50):
            code = _generate_code()
            assert len(code) == 6
            assert not set(code) & set("OI01")
            assert code.isalnum()


class TestLobbyManager:

    def test_create_returns_model(self, mock_client):
        row = lobby_row()
        client, query = mock_client([row])
        lobby = LobbyManager(client).create("Friday night", "alice", {"rounds": 5})

        assert isinstance(lobby, Lobby)
        assert lobby.code == "ABC234"
        client.table.assert_called_with("lobbies")
        sent = query.insert.call_args.args[0]
        assert sent["host_user_id"] == "alice"
        assert sent["settings"] == {"rounds": 5}
        assert sent["max_players"] == 8
        assert len(sent["code"]) == 6

    def test_create_retries_on_code_collision(self, mock_client):
        client, query = mock_client()
        query.execute.side_effect = [_unique_violation(), MagicMock(data=[lobby_row()])]

        lobby = LobbyManager(client).create("x", "alice", {})

        assert lobby.host_user_id == "alice"
        assert query.insert.call_count == 2

    def test_create_gives_up_after_attempts(self, mock_client):
        client, query = mock_client()
        query.execute.side_effect = _unique_violation()

        with pytest.raises(APIError):
            LobbyManager(client).create("x", "alice", {})
        assert query.insert.call_count == LobbyManager.CODE_ATTEMPTS

    def test_create_reraises_other_errors(self, mock_client):
        client, query = mock_client()
        query.execute.side_effect = APIError({"code": "42501", "message": "denied"})

        with pytest.raises(APIError):
            LobbyManager(client).create("x", "alice", {})
        assert query.insert.call_count == 1

    def test_get_by_code_uppercases(self, mock_client):
        client, query = mock_client([lobby_row()])
        assert LobbyManager(client).get_by_code("abc234") is not None
        query.eq.assert_called_with("code", "ABC234")

    def test_get_by_id_missing(self, mock_client):
        client, _ = mock_client([])
        assert LobbyManager(client).get_by_id("nope") is None

    def test_update_status(self, mock_client):
        client, query = mock_client([lobby_row(status="playing")])
        lobby = LobbyManager(client).update_status("l1", "playing")
        assert lobby.status == "playing"
        query.update.assert_called_with({"status": "playing"})

    def test_set_host(self, mock_client):
        client, query = mock_client([lobby_row(host_user_id="bob")])
        assert LobbyManager(client).set_host("l1", "bob").host_user_id == "bob"
        query.update.assert_called_with({"host_user_id": "bob"})

    def test_game_settings_property(self, mock_client):
        client, _ = mock_client([lobby_row(settings={"rounds": 3})])
        lobby = LobbyManager(client).get_by_id("l1")
        assert lobby.game_settings.rounds == 3

    def test_delete(self, mock_client):
        client, query = mock_client()
        LobbyManager(client).delete("l1")
        query.delete.assert_called_once()
        query.eq.assert_called_with("id", "l1")


class TestPlayerManager:

    def test_join(self, mock_client):
        client, query = mock_client([player_row("alice")])
        player = PlayerManager(client).join("l1", "alice", "Alice")
        assert isinstance(player, Player)
        client.table.assert_called_with("players")
        assert query.insert.call_args.args[0]["is_ready"] is False

    def test_join_twice_returns_existing(self, mock_client):
        existing = player_row("alice")
        client, query = mock_client()
        query.execute.side_effect = [_unique_violation(), MagicMock(data=[existing])]

        player = PlayerManager(client).join("l1", "alice", "Alice")

        assert str(player.id) == existing["id"]

    def test_join_other_error_propagates(self, mock_client):
        client, query = mock_client()
        query.execute.side_effect = APIError({"code": "23503", "message": "fk"})
        with pytest.raises(APIError):
            PlayerManager(client).join("l1", "alice", "Alice")

    def test_list_in_join_order(self, mock_client):
        client, query = mock_client([player_row("alice"), player_row("bob")])
        players = PlayerManager(client).list_by_lobby("l1")
        assert [p.user_id for p in players] == ["alice", "bob"]
        query.order.assert_called_with("joined_at")

    def test_set_ready_with_tracks(self, mock_client, track_factory):
        tracks = [track_factory("t1").to_dict()]
        client, query = mock_client([player_row("alice", is_ready=True, tracks=tracks)])

        player = PlayerManager(client).set_ready("l1", "alice", True, tracks=tracks)

        query.update.assert_called_with({"is_ready": True, "tracks": tracks})
        assert player.top_tracks[0].id == "t1"

    def test_unready_keeps_tracks(self, mock_client):
        client, query = mock_client([player_row("alice")])
        PlayerManager(client).set_ready("l1", "alice", False)
        query.update.assert_called_with({"is_ready": False})

    def test_update_score(self, mock_client):
        client, query = mock_client([player_row("alice", total_score=20, correct_guesses=2)])
        player = PlayerManager(client).update_score("l1", "alice", 20, 2)
        assert player.total_score == 20
        query.update.assert_called_with({"total_score": 20, "correct_guesses": 2})

    def test_reset_for_new_game(self, mock_client):
        client, query = mock_client()
        PlayerManager(client).reset_for_new_game("l1")
        query.update.assert_called_with(
            {"total_score": 0, "correct_guesses": 0, "is_ready": False}
        )

    def test_clear_ready_drops_tracks(self, mock_client):
        client, query = mock_client()
        PlayerManager(client).clear_ready("l1")
        query.update.assert_called_once_with({"is_ready": False, "tracks": []})
        query.eq.assert_called_once_with("lobby_id", "l1")

    @pytest.mark.parametrize("rows,expected", [([{"id": "x"}], True), ([], False)])
    def test_remove(self, mock_client, rows, expected):
        client, _ = mock_client(rows)
        assert PlayerManager(client).remove("l1", "alice") is expected

    def test_count_in_lobby(self, mock_client):
        client, query = mock_client(count=3)
        assert PlayerManager(client).count_in_lobby("l1") == 3
        query.select.assert_called_with("id", count="exact")

    def test_count_none_is_zero(self, mock_client):
        client, _ = mock_client(count=None)
        assert PlayerManager(client).count_in_lobby("l1") == 0


@patch("src.database.lobby.secrets.choice", side_effect=lambda alphabet: alphabet[0])
def test_generate_code_uses_secrets(mock_choice):
    assert _generate_code(4) == "AAAA"
    assert mock_choice.call_count == 4
