"""
Whose Track? - Lobby Cleanup Tests
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from src.database.lobby import LobbyManager
from src.database.models import Lobby
from src.database.player import PlayerManager
from src.services.cleanup import CleanupReport, CleanupService, main

from tests.conftest import lobby_row


def _lobby(lobby_id: str, status: str, updated_at) -> Lobby:
    return Lobby.model_validate(
        lobby_row(id=lobby_id, status=status, updated_at=updated_at.isoformat())
    )


@pytest.fixture
def cleanup(settings, now) -> CleanupService:
    svc = CleanupService(client=MagicMock(), settings=settings)
    svc.lobbies = MagicMock(spec=LobbyManager)
    svc.players = MagicMock(spec=PlayerManager)

    ids = {
        "empty": "00000000-0000-4000-8000-000000000001",
        "idle": "00000000-0000-4000-8000-000000000002",
        "active": "00000000-0000-4000-8000-000000000003",
        "old_finished": "00000000-0000-4000-8000-000000000004",
        "new_finished": "00000000-0000-4000-8000-000000000005",
    }
    svc.lobbies.list_all.return_value = [
        _lobby(ids["empty"], "waiting", now),
        _lobby(ids["idle"], "playing", now - timedelta(hours=3)),
        _lobby(ids["active"], "waiting", now - timedelta(minutes=30)),
        _lobby(ids["old_finished"], "finished", now - timedelta(days=4)),
        _lobby(ids["new_finished"], "finished", now - timedelta(days=1)),
    ]
    svc.players.count_in_lobby.side_effect = lambda lobby_id: 0 if lobby_id == ids["empty"] else 2
    svc.ids = ids
    return svc


class TestCleanupService:

    def test_stats_classifies_without_deleting(self, cleanup, now):
        report = cleanup.stats(now=now)

        assert report.dry_run
        assert report.empty == [cleanup.ids["empty"]]
        assert report.inactive == [cleanup.ids["idle"]]
        assert report.finished == [cleanup.ids["old_finished"]]
        assert report.total == 3
        cleanup.lobbies.delete.assert_not_called()

    def test_run_deletes_each_stale_lobby(self, cleanup, now):
        report = cleanup.run(now=now)

        assert not report.dry_run
        deleted = [c.args[0] for c in cleanup.lobbies.delete.call_args_list]
        assert deleted == [
            cleanup.ids["empty"], cleanup.ids["idle"], cleanup.ids["old_finished"],
        ]

    def test_empty_finished_lobby_counted_once(self, cleanup, now):
        lobby_id = "00000000-0000-4000-8000-000000000009"
        cleanup.lobbies.list_all.return_value = [
            _lobby(lobby_id, "finished", now - timedelta(days=10))
        ]
        cleanup.players.count_in_lobby.side_effect = None
        cleanup.players.count_in_lobby.return_value = 0

        report = cleanup.stats(now=now)

        assert report.empty == [lobby_id]
        assert report.finished == []


class TestCleanupReport:

    def test_str(self):
        report = CleanupReport(empty=["a"], inactive=["b", "c"], dry_run=True)
        assert str(report) == "Cleanup would remove 3 lobbies (1 empty, 2 inactive, 0 finished)"

    def test_str_after_run(self):
        assert str(CleanupReport()).startswith("Cleanup removed 0 lobbies")


class TestMain:

    @patch("src.services.cleanup.configure_logging")
    @patch("src.services.cleanup.get_settings")
    @patch("src.services.cleanup.CleanupService")
    def test_dry_run(self, mock_service, mock_settings, mock_logging, capsys):
        mock_service.return_value.stats.return_value = CleanupReport(dry_run=True)

        assert main(["--dry-run"]) == 0

        mock_service.return_value.stats.assert_called_once()
        mock_service.return_value.run.assert_not_called()
        assert "would remove" in capsys.readouterr().out

    @patch("src.services.cleanup.configure_logging")
    @patch("src.services.cleanup.get_settings")
    @patch("src.services.cleanup.CleanupService")
    def test_run(self, mock_service, mock_settings, mock_logging):
        mock_service.return_value.run.return_value = CleanupReport()
        assert main([]) == 0
        mock_service.return_value.run.assert_called_once()
