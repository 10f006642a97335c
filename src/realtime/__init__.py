"""
Whose Track? Real-time Sync.

Supabase Realtime subscriptions with a polling fallback for live lobbies.
"""

from src.realtime.events import EventPayload, GameEvent
from src.realtime.subscriptions import ChannelManager
from src.realtime.sync_manager import (
    RealtimeManager,
    subscribe_to_lobby,
    unsubscribe_from_lobby,
)

__all__ = [
    "ChannelManager",
    "EventPayload",
    "GameEvent",
    "RealtimeManager",
    "subscribe_to_lobby",
    "unsubscribe_from_lobby",
]
