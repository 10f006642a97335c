"""
Whose Track? - Channel Subscription Management

Manages Supabase Realtime channel subscriptions for live lobbies.
The Realtime client is async-only, so channels live on an asyncio event
loop running in a daemon thread.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable

from supabase import Client

from src.realtime.events import (
    EventPayload,
    GameEvent,
    classify_guess_change,
    classify_lobby_change,
    classify_player_change,
    classify_session_change,
)

logger = logging.getLogger(__name__)

Classifier = Callable[[str, dict[str, Any], dict[str, Any]], GameEvent | None]

# Table -> (classifier, filter column, column naming the acting user)
_WATCHED: dict[str, tuple[Classifier, str, str | None]] = {
    "lobbies": (classify_lobby_change, "id", "host_user_id"),
    "players": (classify_player_change, "lobby_id", "user_id"),
    "game_sessions": (classify_session_change, "lobby_id", None),
    "guesses": (classify_guess_change, "lobby_id", "voter_user_id"),
}


class ChannelManager:
    """Manages Supabase Realtime channel subscriptions.

    Callbacks run on the background loop thread; callers must not touch
    Streamlit state from them directly.
    """

    SUBSCRIBE_TIMEOUT = 10

    def __init__(self, client: Client) -> None:
        self._client = client
        self._channels: dict[str, list[Any]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        """Start the background event loop if not running."""
        with self._lock:
            if self._loop is None or not self._loop.is_running():
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._run_loop, daemon=True, name="realtime-loop"
                )
                self._thread.start()
            return self._loop

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def subscribe(
        self,
        lobby_id: str,
        on_event: Callable[[EventPayload], None],
    ) -> None:
        """Watch every table of one lobby.

        Args:
            lobby_id: UUID of the lobby to watch.
            on_event: Called with an EventPayload for each classified change.
        """
        if lobby_id in self._channels:
            logger.warning("Already subscribed to lobby %s", lobby_id)
            return

        loop = self._ensure_loop()
        future = asyncio.run_coroutine_threadsafe(
            self._subscribe_async(lobby_id, on_event), loop
        )
        future.result(timeout=self.SUBSCRIBE_TIMEOUT)

    async def _subscribe_async(
        self,
        lobby_id: str,
        on_event: Callable[[EventPayload], None],
    ) -> None:
        channels = []
        for table, (_, filter_col, _) in _WATCHED.items():
            channel = self._client.realtime.channel(f"lobby:{lobby_id}:{table}")
            channel.on_postgres_changes(
                event="*",
                callback=lambda payload, t=table: self._handle_change(
                    payload, t, lobby_id, on_event
                ),
                table=table,
                schema="public",
                filter=f"{filter_col}=eq.{lobby_id}",
            )
            await channel.subscribe(
                callback=lambda state, err, t=table: self._on_subscribe_state(
                    state, err, lobby_id, t
                )
            )
            channels.append(channel)

        self._channels[lobby_id] = channels
        logger.info("Subscribed to lobby %s (%d channels)", lobby_id, len(channels))

    def _handle_change(
        self,
        payload: dict[str, Any],
        table: str,
        lobby_id: str,
        on_event: Callable[[EventPayload], None],
    ) -> None:
        """Classify a postgres_changes payload and hand it to ``on_event``."""
        if table not in _WATCHED:
            return
        classifier, _, user_col = _WATCHED[table]
        try:
            data = payload.get("data", payload)
            change_type = data.get("type", data.get("eventType", ""))
            record = data.get("record") or {}
            old_record = data.get("old_record") or {}

            event = classifier(change_type, record, old_record)
            if event is None:
                return

            user_id = None
            if user_col is not None:
                user_id = record.get(user_col) or old_record.get(user_col)

            on_event(EventPayload(
                event=event,
                lobby_id=lobby_id,
                user_id=str(user_id) if user_id else None,
                data={
                    "table": table,
                    "change_type": change_type,
                    "record": record,
                    "old_record": old_record,
                },
            ))
        except Exception:
            logger.exception("Error handling %s change for lobby %s", table, lobby_id)

    def _on_subscribe_state(
        self, state: str, error: Exception | None, lobby_id: str, table: str
    ) -> None:
        if error:
            logger.error("Subscription error for %s/%s: %s", lobby_id, table, error)
        else:
            logger.debug("Channel %s/%s state: %s", lobby_id, table, state)

    def unsubscribe(self, lobby_id: str) -> None:
        """Drop every channel of a lobby."""
        channels = self._channels.pop(lobby_id, None)
        if not channels:
            return

        loop = self._ensure_loop()
        future = asyncio.run_coroutine_threadsafe(
            self._unsubscribe_async(channels), loop
        )
        try:
            future.result(timeout=self.SUBSCRIBE_TIMEOUT)
        except Exception:
            logger.exception("Error unsubscribing from lobby %s", lobby_id)
        logger.info("Unsubscribed from lobby %s", lobby_id)

    async def _unsubscribe_async(self, channels: list[Any]) -> None:
        for channel in channels:
            try:
                await channel.unsubscribe()
                await self._client.realtime.remove_channel(channel)
            except Exception:
                logger.exception("Error removing channel")

    def unsubscribe_all(self) -> None:
        for lobby_id in list(self._channels):
            self.unsubscribe(lobby_id)

    @property
    def active_subscriptions(self) -> list[str]:
        """Lobby IDs with live channels."""
        return list(self._channels)

    def shutdown(self) -> None:
        """Stop the background event loop and clean up."""
        self.unsubscribe_all()
        if self._loop and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._loop = None
        self._thread = None
