"""
Whose Track? - Lobby Cleanup

Deletes lobbies nobody will come back to. Deleting a lobby cascades to its
players, session, rounds and guesses.
"""

import argparse
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from supabase import Client

from src.config.logging import configure_logging
from src.config.settings import Settings, get_settings
from src.database.client import get_supabase_client
from src.database.lobby import LobbyManager
from src.database.player import PlayerManager
from src.engine.base import LobbyStatus
from src.services.game_service import utcnow

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    """What a cleanup pass found (and, unless dry, deleted)."""
    empty: list[str] = field(default_factory=list)
    inactive: list[str] = field(default_factory=list)
    finished: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total(self) -> int:
        return len(self.empty) + len(self.inactive) + len(self.finished)

    def __str__(self) -> str:
        verb = "would remove" if self.dry_run else "removed"
        return (
            f"Cleanup {verb} {self.total} lobbies "
            f"({len(self.empty)} empty, {len(self.inactive)} inactive, "
            f"{len(self.finished)} finished)"
        )


class CleanupService:
    """
    Finds and removes stale lobbies.

    Categories, each lobby counted once in this order:
        empty: no players left
        inactive: waiting or playing, untouched for ``inactive_lobby_hours``
        finished: finished, untouched for ``finished_lobby_days``
    """

    def __init__(
        self,
        client: Client | None = None,
        settings: Settings | None = None,
    ) -> None:
        client = client or get_supabase_client()
        self.settings = settings or get_settings()
        self.lobbies = LobbyManager(client)
        self.players = PlayerManager(client)

    def _classify(self, now: datetime) -> CleanupReport:
        inactive_before = now - timedelta(hours=self.settings.inactive_lobby_hours)
        finished_before = now - timedelta(days=self.settings.finished_lobby_days)
        report = CleanupReport()

        for lobby in self.lobbies.list_all():
            lobby_id = str(lobby.id)
            if self.players.count_in_lobby(lobby_id) == 0:
                report.empty.append(lobby_id)
            elif lobby.status == LobbyStatus.FINISHED.value:
                if lobby.updated_at < finished_before:
                    report.finished.append(lobby_id)
            elif lobby.updated_at < inactive_before:
                report.inactive.append(lobby_id)
        return report

    def stats(self, now: datetime | None = None) -> CleanupReport:
        """Report what ``run`` would delete, without deleting anything."""
        report = self._classify(now or utcnow())
        report.dry_run = True
        return report

    def run(self, now: datetime | None = None) -> CleanupReport:
        """Delete every stale lobby and report what went."""
        report = self._classify(now or utcnow())
        for lobby_id in (*report.empty, *report.inactive, *report.finished):
            self.lobbies.delete(lobby_id)
        logger.info("%s", report)
        return report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Remove stale Whose Track? lobbies.")
    parser.add_argument(
        "--dry-run", action="store_true", help="Only report what would be removed."
    )
    args = parser.parse_args(argv)

    configure_logging(get_settings().log_level)
    service = CleanupService()
    report = service.stats() if args.dry_run else service.run()
    print(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
