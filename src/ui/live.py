"""Realtime hookup for the views.

Realtime callbacks arrive on a background thread and cannot touch
Streamlit state, so they only bump a per-lobby change counter. The polling
fragments compare it with the value they saw last and rerun on a change.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict

from src.database.client import get_supabase_client
from src.realtime.events import EventPayload
from src.realtime.sync_manager import subscribe_to_lobby, unsubscribe_from_lobby

logger = logging.getLogger(__name__)

_counters: defaultdict[str, int] = defaultdict(int)
_watched: set[str] = set()
_lock = threading.Lock()


def _on_event(payload: EventPayload) -> None:
    with _lock:
        _counters[payload.lobby_id] += 1
    logger.debug("%s in lobby %s", payload.event.name, payload.lobby_id)


def watch_lobby(lobby_id: str) -> None:
    """Subscribe this process to a lobby once."""
    with _lock:
        if lobby_id in _watched:
            return
        _watched.add(lobby_id)
    try:
        subscribe_to_lobby(get_supabase_client(), lobby_id, _on_event)
    except Exception:
        # Polling still keeps the page current
        logger.exception("Realtime unavailable for lobby %s", lobby_id)


def unwatch_lobby(lobby_id: str) -> None:
    with _lock:
        if lobby_id not in _watched:
            return
        _watched.discard(lobby_id)
        _counters.pop(lobby_id, None)
    unsubscribe_from_lobby(get_supabase_client(), lobby_id)


def change_counter(lobby_id: str) -> int:
    with _lock:
        return _counters[lobby_id]
