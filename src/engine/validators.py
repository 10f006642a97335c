"""
Whose Track? - Input Validation Utilities

Provides validation functions for lobby and game inputs. All validators
either return validated data or raise descriptive ValueError exceptions.
"""

import re
from typing import Any, Mapping

from src.engine.base import LobbySettings, TimeRange

_CODE_ALPHABET = re.compile(r"^[A-HJ-NP-Z2-9]+$")


def validate_username(name: str | None, max_length: int = 30) -> str:
    """
    Validate and normalize a display name.

    Args:
        name: Raw name (usually the Spotify display name)
        max_length: Maximum characters kept

    Returns:
        Stripped name, truncated to ``max_length``

    Raises:
        ValueError: If the name is empty
    """
    if name is None or not str(name).strip():
        raise ValueError("Player name cannot be empty.")
    return str(name).strip()[:max_length]


def validate_lobby_code(code: str | None, length: int = 6) -> str:
    """
    Validate a join code typed by a player.

    Args:
        code: Raw code, any case, surrounding whitespace allowed
        length: Expected code length

    Returns:
        Upper-cased code

    Raises:
        ValueError: If the code has the wrong length or characters
    """
    if not code or not code.strip():
        raise ValueError("Please enter a lobby code.")
    normalized = code.strip().upper()
    if len(normalized) != length:
        raise ValueError(f"Lobby codes are {length} characters long.")
    if not _CODE_ALPHABET.match(normalized):
        raise ValueError(f"'{normalized}' is not a valid lobby code.")
    return normalized


def validate_player_count(count: int, minimum: int = 2, maximum: int = 8) -> int:
    """
    Validate number of players for starting a game.

    Args:
        count: Number of players
        minimum: Fewest players allowed
        maximum: Most players allowed

    Returns:
        Validated count

    Raises:
        ValueError: If count is outside [minimum, maximum]
    """
    if not isinstance(count, int):
        raise ValueError(f"Player count must be an integer, got {type(count).__name__}.")

    if not (minimum <= count <= maximum):
        raise ValueError(f"Player count must be {minimum}-{maximum}, got {count}.")

    return count


def validate_settings(
    data: Mapping[str, Any] | LobbySettings | None,
    base: LobbySettings | None = None,
) -> LobbySettings:
    """
    Validate a (possibly partial) settings update.

    Args:
        data: New values; missing keys keep the value from ``base``
        base: Current settings (defaults when None)

    Returns:
        Complete, validated settings

    Raises:
        ValueError: If a key is unknown, a value has the wrong type or is
            out of range
    """
    if isinstance(data, LobbySettings):
        return data

    merged = (base or LobbySettings()).to_dict()
    for key, value in (data or {}).items():
        if key not in merged:
            raise ValueError(f"Unknown setting '{key}'.")
        merged[key] = value

    for key in ("rounds", "round_duration", "tracks_per_player", "reveal_duration"):
        value = merged[key]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(
                f"Setting '{key}' must be an integer, got {type(value).__name__}."
            )

    time_range = merged["time_range"]
    if isinstance(time_range, TimeRange):
        merged["time_range"] = time_range.value
    elif time_range not in {t.value for t in TimeRange}:
        raise ValueError(f"Unknown time range '{time_range}'.")

    return LobbySettings.from_dict(merged)
