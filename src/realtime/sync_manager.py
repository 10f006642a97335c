"""
Whose Track? - Realtime Sync Manager

High-level manager that ties channel subscriptions to lobby state.
Provides convenience functions for the UI layer and a polling fallback
that turns successive database reads into the same events the Realtime
channels produce.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from supabase import Client

from src.database.game_state import GameStateManager
from src.database.guesses import GuessManager
from src.database.lobby import LobbyManager
from src.database.models import GameState, Lobby, Player
from src.database.player import PlayerManager
from src.database.rounds import RoundManager
from src.realtime.events import EventPayload, GameEvent
from src.realtime.subscriptions import ChannelManager

logger = logging.getLogger(__name__)


@dataclass
class PolledState:
    """One polling read of a lobby."""

    lobby: Lobby | None
    players: list[Player] = field(default_factory=list)
    session: GameState | None = None
    guess_voters: frozenset[str] = frozenset()


class RealtimeManager:
    """Coordinates realtime subscriptions and state reconciliation.

    Wraps ChannelManager with snapshot fetching, a polling fallback and
    clean teardown.
    """

    def __init__(self, client: Client) -> None:
        self._client = client
        self._channel_mgr = ChannelManager(client)
        self._lobby_mgr = LobbyManager(client)
        self._player_mgr = PlayerManager(client)
        self._session_mgr = GameStateManager(client)
        self._round_mgr = RoundManager(client)
        self._guess_mgr = GuessManager(client)
        self._poll_threads: dict[str, threading.Event] = {}

    def subscribe(
        self,
        lobby_id: str,
        on_event: Callable[[EventPayload], None],
        *,
        use_polling_fallback: bool = True,
        poll_interval: float = 2.0,
    ) -> None:
        """Subscribe to live updates for a lobby.

        Tries Realtime channels first and falls back to a polling thread.

        Args:
            lobby_id: UUID of the lobby to watch.
            on_event: Callback receiving EventPayload for each change.
            use_polling_fallback: Fall back to polling if channels fail.
            poll_interval: Seconds between polls (fallback only).
        """
        try:
            self._channel_mgr.subscribe(lobby_id, on_event)
            logger.info("Realtime subscription active for lobby %s", lobby_id)
        except Exception:
            logger.exception("WebSocket subscription failed for lobby %s", lobby_id)
            if use_polling_fallback:
                logger.info("Falling back to polling for lobby %s", lobby_id)
                self._start_polling(lobby_id, on_event, poll_interval)
            else:
                raise

    def unsubscribe(self, lobby_id: str) -> None:
        """Unsubscribe from a lobby (both channels and polling)."""
        self._channel_mgr.unsubscribe(lobby_id)
        self._stop_polling(lobby_id)

    def get_snapshot(self, lobby_id: str) -> dict[str, Any]:
        """Fetch the current full state of a lobby.

        Returns:
            Dict with 'lobby', 'players' and 'game_state' keys.
        """
        return {
            "lobby": self._lobby_mgr.get_by_id(lobby_id),
            "players": self._player_mgr.list_by_lobby(lobby_id),
            "game_state": self._session_mgr.get(lobby_id),
        }

    def shutdown(self) -> None:
        """Clean up all subscriptions and background threads."""
        for lobby_id in list(self._poll_threads):
            self._stop_polling(lobby_id)
        self._channel_mgr.shutdown()

    # -- Polling fallback ------------------------------------------------

    def _start_polling(
        self,
        lobby_id: str,
        on_event: Callable[[EventPayload], None],
        interval: float,
    ) -> None:
        if lobby_id in self._poll_threads:
            return

        stop_event = threading.Event()
        self._poll_threads[lobby_id] = stop_event
        thread = threading.Thread(
            target=self._poll_loop,
            args=(lobby_id, on_event, interval, stop_event),
            daemon=True,
            name=f"poll-{lobby_id[:8]}",
        )
        thread.start()

    def _stop_polling(self, lobby_id: str) -> None:
        stop_event = self._poll_threads.pop(lobby_id, None)
        if stop_event:
            stop_event.set()

    def _read_state(self, lobby_id: str) -> PolledState:
        lobby = self._lobby_mgr.get_by_id(lobby_id)
        players = self._player_mgr.list_by_lobby(lobby_id)
        session = self._session_mgr.get(lobby_id)

        voters: frozenset[str] = frozenset()
        if session is not None and session.round_number > 0:
            current = self._round_mgr.get(lobby_id, session.round_number)
            if current is not None:
                voters = frozenset(
                    g.voter_user_id for g in self._guess_mgr.list_for_round(str(current.id))
                )
        return PolledState(lobby=lobby, players=players, session=session, guess_voters=voters)

    def _poll_loop(
        self,
        lobby_id: str,
        on_event: Callable[[EventPayload], None],
        interval: float,
        stop_event: threading.Event,
    ) -> None:
        last: PolledState | None = None
        while not stop_event.is_set():
            try:
                current = self._read_state(lobby_id)
                if last is not None:
                    for payload in self._diff(lobby_id, last, current):
                        on_event(payload)
                last = current
            except Exception:
                logger.exception("Polling error for lobby %s", lobby_id)
            stop_event.wait(interval)

    def _diff(
        self,
        lobby_id: str,
        prev: PolledState,
        cur: PolledState,
    ) -> list[EventPayload]:
        """Events explaining how ``prev`` became ``cur``."""
        events: list[EventPayload] = []

        def emit(event: GameEvent, user_id: str | None = None, **data: Any) -> None:
            events.append(EventPayload(event=event, lobby_id=lobby_id, user_id=user_id, data=data))

        old_players = {p.user_id: p for p in prev.players}
        new_players = {p.user_id: p for p in cur.players}
        for uid in new_players.keys() - old_players.keys():
            emit(GameEvent.PLAYER_JOINED, uid, username=new_players[uid].username)
        for uid in old_players.keys() - new_players.keys():
            emit(GameEvent.PLAYER_LEFT, uid)
        for uid in new_players.keys() & old_players.keys():
            if new_players[uid].is_ready != old_players[uid].is_ready:
                emit(GameEvent.PLAYER_READY, uid, is_ready=new_players[uid].is_ready)

        if prev.lobby and cur.lobby:
            if cur.lobby.host_user_id != prev.lobby.host_user_id:
                emit(GameEvent.HOST_CHANGED, cur.lobby.host_user_id)
            if cur.lobby.settings != prev.lobby.settings:
                emit(GameEvent.SETTINGS_UPDATED, settings=cur.lobby.settings)
            if cur.lobby.status != prev.lobby.status and cur.lobby.status == "playing":
                emit(GameEvent.GAME_STARTED)

        for uid in cur.guess_voters - prev.guess_voters:
            emit(GameEvent.GUESS_SUBMITTED, uid)

        if prev.session and cur.session and cur.session.version != prev.session.version:
            session = cur.session.model_dump(mode="json")
            if cur.session.phase != prev.session.phase:
                event = {
                    "playing": GameEvent.ROUND_STARTED,
                    "voting": GameEvent.ROUND_ENDED,
                    "finished": GameEvent.GAME_FINISHED,
                }.get(cur.session.phase, GameEvent.STATE_UPDATED)
                emit(event, game_state=session)
            elif cur.session.round_number != prev.session.round_number:
                emit(GameEvent.ROUND_STARTED, game_state=session)
            else:
                emit(GameEvent.STATE_UPDATED, game_state=session)

        return events


# -- Module-level convenience functions ----------------------------------

_manager_instance: RealtimeManager | None = None
_manager_lock = threading.Lock()


def _get_manager(client: Client) -> RealtimeManager:
    """Get or create the singleton RealtimeManager."""
    global _manager_instance
    with _manager_lock:
        if _manager_instance is None:
            _manager_instance = RealtimeManager(client)
        return _manager_instance


def subscribe_to_lobby(
    client: Client,
    lobby_id: str,
    on_event: Callable[[EventPayload], None],
) -> RealtimeManager:
    """Subscribe to realtime updates for a lobby.

    Returns:
        The RealtimeManager instance (for snapshot access, etc.)
    """
    manager = _get_manager(client)
    manager.subscribe(lobby_id, on_event)
    return manager


def unsubscribe_from_lobby(client: Client, lobby_id: str) -> None:
    """Unsubscribe from realtime updates for a lobby."""
    _get_manager(client).unsubscribe(lobby_id)
