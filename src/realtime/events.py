"""
Whose Track? - Realtime Event Definitions

Event types and payloads for lobby and round changes.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class GameEvent(Enum):
    """Events that can occur in a lobby."""

    PLAYER_JOINED = auto()
    PLAYER_LEFT = auto()
    PLAYER_READY = auto()
    HOST_CHANGED = auto()
    SETTINGS_UPDATED = auto()
    GAME_STARTED = auto()
    ROUND_STARTED = auto()
    GUESS_SUBMITTED = auto()
    ROUND_ENDED = auto()
    GAME_FINISHED = auto()
    STATE_UPDATED = auto()


@dataclass
class EventPayload:
    """Wrapper for realtime event data."""

    event: GameEvent
    lobby_id: str
    user_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


# Map database change patterns to game events
_LOBBY_STATUS_EVENTS: dict[str, GameEvent] = {
    "playing": GameEvent.GAME_STARTED,
    "finished": GameEvent.GAME_FINISHED,
}

_PLAYER_EVENT_MAP: dict[str, GameEvent] = {
    "INSERT": GameEvent.PLAYER_JOINED,
    "DELETE": GameEvent.PLAYER_LEFT,
}

_PHASE_EVENTS: dict[str, GameEvent] = {
    "playing": GameEvent.ROUND_STARTED,
    "voting": GameEvent.ROUND_ENDED,
    "finished": GameEvent.GAME_FINISHED,
}


def classify_lobby_change(
    change_type: str, record: dict[str, Any], old_record: dict[str, Any]
) -> GameEvent | None:
    """Determine the game event from a lobbies table change."""
    if change_type != "UPDATE":
        return None
    new_status = record.get("status")
    if new_status != old_record.get("status"):
        return _LOBBY_STATUS_EVENTS.get(new_status, GameEvent.STATE_UPDATED)
    if record.get("host_user_id") != old_record.get("host_user_id"):
        return GameEvent.HOST_CHANGED
    if record.get("settings") != old_record.get("settings"):
        return GameEvent.SETTINGS_UPDATED
    return None


def classify_player_change(
    change_type: str, record: dict[str, Any], old_record: dict[str, Any]
) -> GameEvent | None:
    """Determine the game event from a players table change."""
    if change_type in _PLAYER_EVENT_MAP:
        return _PLAYER_EVENT_MAP[change_type]
    if change_type == "UPDATE":
        if record.get("is_ready") != old_record.get("is_ready"):
            return GameEvent.PLAYER_READY
        if record.get("total_score") != old_record.get("total_score"):
            return GameEvent.STATE_UPDATED
    return None


def classify_session_change(
    change_type: str, record: dict[str, Any], old_record: dict[str, Any]
) -> GameEvent | None:
    """Determine the game event from a game_sessions table change."""
    if change_type != "UPDATE":
        return GameEvent.STATE_UPDATED

    phase = record.get("phase")
    if phase != old_record.get("phase"):
        return _PHASE_EVENTS.get(phase, GameEvent.STATE_UPDATED)
    if record.get("round_number") != old_record.get("round_number"):
        return GameEvent.ROUND_STARTED
    return GameEvent.STATE_UPDATED


def classify_guess_change(
    change_type: str, record: dict[str, Any], old_record: dict[str, Any]
) -> GameEvent | None:
    """Determine the game event from a guesses table change."""
    if change_type == "INSERT":
        return GameEvent.GUESS_SUBMITTED
    return None
